"""
What the pipeline did, at two levels of detail.

`ActivityLog` is the short user-facing feed (one line per completed
operation, shown in the dashboard sidebar and by the `log` command).
`InteractionLog` writes an optional JSON trace per operation with the
prompt, raw output and parsed results.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)


def make_serializable(data: Any) -> Any:
    try:
        json.dumps(data)
        return data
    except TypeError:
        if isinstance(data, dict):
            return {str(key): make_serializable(value) for key, value in data.items()}
        if isinstance(data, (list, set, tuple)):
            return [make_serializable(item) for item in data]
        return repr(data)


class InteractionTrace:
    """Steps of one operation; written as JSON on `finish` when a path is set."""

    def __init__(self, path: Optional[Path], operation: str, subject: str) -> None:
        self.path = path
        self.record: Dict[str, Any] = {
            "timestamp": datetime.utcnow().strftime("%Y%m%d_%H%M%S"),
            "operation": operation,
            "subject": subject,
            "steps": [],
        }

    def step(self, name: str, context: Dict[str, Any]) -> None:
        self.record["steps"].append(
            {
                "step": name,
                "timestamp": datetime.utcnow().isoformat(timespec="seconds") + "Z",
                "context": make_serializable(context),
            }
        )

    def finish(self, *, outcome: Optional[str] = None, error: Optional[str] = None) -> Optional[Path]:
        if outcome is not None:
            self.record["outcome"] = outcome
        if error:
            self.record["error"] = error
        if self.path is None:
            return None
        try:
            self.path.write_text(json.dumps(self.record, indent=2, ensure_ascii=False), encoding="utf-8")
            logger.info("Wrote interaction log to %s", self.path)
        except OSError as exc:  # pragma: no cover - filesystem issues
            logger.warning("Failed to write interaction log %s: %s", self.path, exc)
            return None
        return self.path


class InteractionLog:
    def __init__(self, log_dir: Optional[Path]) -> None:
        self._log_dir = Path(log_dir) if log_dir else None

    @property
    def enabled(self) -> bool:
        return self._log_dir is not None

    def start(self, operation: str, subject: str) -> InteractionTrace:
        if self._log_dir is None:
            return InteractionTrace(None, operation, subject)
        try:
            self._log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:  # pragma: no cover - filesystem issues
            logger.warning("Unable to create log directory %s: %s", self._log_dir, exc)
            return InteractionTrace(None, operation, subject)
        timestamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
        path = self._log_dir / f"{operation}_{timestamp}_{uuid4().hex[:8]}.json"
        return InteractionTrace(path, operation, subject)


@dataclass(frozen=True, slots=True)
class ActivityEntry:
    timestamp: str
    channel: str
    message: str


class ActivityLog:
    """Bounded feed; the oldest lines drop off once `max_entries` is reached."""

    def __init__(self, *, max_entries: int = 500) -> None:
        self._entries: Deque[ActivityEntry] = deque(maxlen=max(1, max_entries))

    @property
    def entries(self) -> List[ActivityEntry]:
        return list(self._entries)

    def post(self, channel: str, message: str) -> ActivityEntry:
        entry = ActivityEntry(datetime.utcnow().strftime("%Y-%m-%dT%H:%M:%SZ"), channel, message)
        self._entries.append(entry)
        logger.info("[%s] %s", channel, message)
        return entry

    def latest(self) -> Optional[ActivityEntry]:
        return self._entries[-1] if self._entries else None

    def channel(self, name: str) -> List[ActivityEntry]:
        return [entry for entry in self._entries if entry.channel == name]

    def transcript(self) -> str:
        return "\n".join(f"[{entry.timestamp}] {entry.channel}: {entry.message}" for entry in self._entries)
