"""
Persistence Bridge: mirrors the campaign state to a local key-value store.

The stored value is one JSON document holding the profile, the research
vault and the derived asset collections. Nothing here raises past `save` or
`load`: quota and corruption failures are logged and reported through the
return value.
"""

from __future__ import annotations

import errno
import json
import logging
import os
import tempfile
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, StrictBool, StrictInt, StrictStr, ValidationError

from campaign_state_manager import (
    AppState,
    CampaignProfile,
    CreativeAsset,
    Opponent,
    ParsedSummary,
    ResearchSnapshot,
    StrategicReport,
    find_snapshot,
    utc_timestamp,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "3"
STORAGE_KEY_PREFIX = "campaign_vault_state"
DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024


class StoreQuotaExceeded(OSError):
    """Raised by a store when a value does not fit in its remaining capacity."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """In-process store; used by tests and as a fallback when no directory is writable."""

    def __init__(self, *, quota_bytes: Optional[int] = None) -> None:
        self._data: Dict[str, str] = {}
        self._quota = quota_bytes

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self._quota is not None:
            used = sum(len(v.encode("utf-8")) for k, v in self._data.items() if k != key)
            if used + len(value.encode("utf-8")) > self._quota:
                raise StoreQuotaExceeded(errno.ENOSPC, f"Store quota of {self._quota} bytes exceeded")
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)


class JsonFileStore:
    """One file per key under `directory`, replaced atomically on every write."""

    def __init__(self, directory: str | Path, *, quota_bytes: Optional[int] = DEFAULT_QUOTA_BYTES) -> None:
        self._dir = Path(directory)
        self._quota = quota_bytes

    def _path(self, key: str) -> Path:
        safe = "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in key)
        return self._dir / f"{safe}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Unable to read %s: %s", path, exc)
            return None

    def set(self, key: str, value: str) -> None:
        encoded = value.encode("utf-8")
        if self._quota is not None and len(encoded) > self._quota:
            raise StoreQuotaExceeded(errno.ENOSPC, f"Value of {len(encoded)} bytes exceeds {self._quota} byte quota")
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(encoded)
            os.replace(tmp_name, path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            if exc.errno in (errno.ENOSPC, errno.EDQUOT):
                raise StoreQuotaExceeded(exc.errno, str(exc)) from exc
            raise

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


# ----------------------------------------------------------------------
# (De)serialization
# ----------------------------------------------------------------------
def serialize_state(state: AppState, *, schema_version: str = SCHEMA_VERSION) -> str:
    payload = {
        "schema_version": schema_version,
        "saved_at": utc_timestamp(),
        "profile": asdict(state.profile),
        "vault": [asdict(snapshot) for snapshot in state.vault],
        "active_snapshot_id": state.active_snapshot_id,
        "creative_assets": [asdict(asset) for asset in state.creative_assets],
        "branding_assets": [asdict(asset) for asset in state.branding_assets],
        "strategic_reports": [asdict(report) for report in state.strategic_reports],
    }
    return json.dumps(payload, ensure_ascii=False)


# Strict field types: a null or wrongly typed field makes the whole payload invalid.
class StoredOpponent(BaseModel):
    name: StrictStr
    party: StrictStr = ""
    incumbent: StrictBool = False
    strengths: List[StrictStr] = []
    weaknesses: List[StrictStr] = []

    def to_record(self) -> Opponent:
        return Opponent(
            name=self.name,
            party=self.party,
            incumbent=self.incumbent,
            strengths=tuple(self.strengths),
            weaknesses=tuple(self.weaknesses),
        )


class StoredProfile(BaseModel):
    session_id: StrictStr
    candidate_name: StrictStr = ""
    office_sought: StrictStr = ""
    district_id: StrictStr = ""
    party: StrictStr = "D"
    voter_research: Optional[StrictStr] = None
    treasurer: StrictStr = ""
    campaign_address: StrictStr = ""
    opponents: List[StoredOpponent] = []
    vote_goal: Dict[str, Any] = {}
    budget_estimate: Dict[str, Any] = {}
    dna: Dict[str, Any] = {}
    legal_shield: Dict[str, Any] = {}

    def to_record(self) -> CampaignProfile:
        fields = self.model_dump(exclude={"opponents"})
        return CampaignProfile(opponents=tuple(item.to_record() for item in self.opponents), **fields)


class StoredSummary(BaseModel):
    signal: StrictStr
    threat: StrictStr
    action: StrictStr


class StoredSnapshot(BaseModel):
    id: StrictStr
    topic: StrictStr
    created_at: StrictStr
    raw_text: StrictStr = ""
    parsed_summary: Optional[StoredSummary] = None
    signal_strength: Optional[StrictInt] = None
    error: Optional[StrictStr] = None
    error_detail: Optional[StrictStr] = None

    def to_record(self) -> ResearchSnapshot:
        summary = self.parsed_summary
        return ResearchSnapshot(
            id=self.id,
            topic=self.topic,
            created_at=self.created_at,
            raw_text=self.raw_text,
            parsed_summary=ParsedSummary(summary.signal, summary.threat, summary.action) if summary else None,
            signal_strength=self.signal_strength,
            error=self.error,
            error_detail=self.error_detail,
        )


class StoredAsset(BaseModel):
    id: StrictStr
    type: StrictStr
    title: StrictStr
    media_type: StrictStr = "text"
    status: StrictStr = "draft"
    content: Optional[StrictStr] = None
    media_url: Optional[StrictStr] = None
    prompt: Optional[StrictStr] = None

    def to_record(self) -> CreativeAsset:
        return CreativeAsset(**self.model_dump())


class StoredReport(BaseModel):
    id: StrictStr
    title: StrictStr
    timestamp: StrictStr
    content: StrictStr
    status: StrictStr = "draft"

    def to_record(self) -> StrategicReport:
        return StrategicReport(**self.model_dump())


class StoredState(BaseModel):
    schema_version: StrictStr
    saved_at: Optional[StrictStr] = None
    profile: Optional[StoredProfile] = None
    vault: List[StoredSnapshot] = []
    active_snapshot_id: Optional[StrictStr] = None
    creative_assets: List[StoredAsset] = []
    branding_assets: List[StoredAsset] = []
    strategic_reports: List[StoredReport] = []

    def to_state(self) -> AppState:
        return AppState(
            profile=self.profile.to_record() if self.profile else CampaignProfile(),
            vault=tuple(item.to_record() for item in self.vault),
            active_snapshot_id=self.active_snapshot_id,
            creative_assets=tuple(item.to_record() for item in self.creative_assets),
            branding_assets=tuple(item.to_record() for item in self.branding_assets),
            strategic_reports=tuple(item.to_record() for item in self.strategic_reports),
        )


def deserialize_state(raw: str, *, schema_version: str = SCHEMA_VERSION) -> Optional[AppState]:
    """Rebuild an `AppState`; `None` for anything unreadable or from another schema."""

    try:
        payload = json.loads(raw)
    except (TypeError, ValueError, RecursionError) as exc:
        logger.warning("Stored campaign state is not valid JSON: %s", exc)
        return None
    if not isinstance(payload, dict) or payload.get("schema_version") != schema_version:
        logger.info("Stored campaign state has schema %r; expected %r.",
                    payload.get("schema_version") if isinstance(payload, dict) else None, schema_version)
        return None
    try:
        state = StoredState.model_validate(payload).to_state()
    except ValidationError as exc:
        logger.warning("Stored campaign state is structurally invalid: %s", exc)
        return None

    if find_snapshot(state, state.active_snapshot_id) is None:
        fallback = state.vault[0].id if state.vault else None
        state = replace(state, active_snapshot_id=fallback)
    return state


class PersistenceBridge:
    def __init__(self, store: KeyValueStore, *, schema_version: str = SCHEMA_VERSION) -> None:
        self._store = store
        self._schema_version = schema_version
        self.key = f"{STORAGE_KEY_PREFIX}::v{schema_version}"
        self.last_error: Optional[str] = None

    def save(self, state: AppState) -> bool:
        """Write synchronously. Returns False (after logging) when the write failed."""

        try:
            payload = serialize_state(state, schema_version=self._schema_version)
            self._store.set(self.key, payload)
        except StoreQuotaExceeded as exc:
            self.last_error = f"Local storage quota exceeded: {exc}"
            logger.warning("%s. Clearing stale state under %s.", self.last_error, self.key)
            try:
                self._store.remove(self.key)
            except OSError as cleanup_exc:
                logger.warning("Failed to clear stale state: %s", cleanup_exc)
            return False
        except OSError as exc:
            self.last_error = f"Local storage write failed: {exc}"
            logger.warning(self.last_error)
            return False
        except (TypeError, ValueError) as exc:
            # Unencodable text (lone surrogates) or non-JSON values in the opaque profile dicts.
            self.last_error = f"Campaign state could not be encoded: {exc}"
            logger.warning(self.last_error)
            return False
        self.last_error = None
        logger.debug("Persisted campaign state (%d bytes) under %s", len(payload), self.key)
        return True

    def load(self) -> Optional[AppState]:
        try:
            raw = self._store.get(self.key)
        except OSError as exc:
            logger.warning("Unable to read stored campaign state: %s", exc)
            return None
        if raw is None:
            return None
        state = deserialize_state(raw, schema_version=self._schema_version)
        if state is not None:
            logger.info("Restored campaign state with %d vault entries.", len(state.vault))
        return state

    def restore(self) -> AppState:
        return self.load() or AppState()

    def clear(self) -> None:
        self._store.remove(self.key)
