"""
Probe Orchestrator for the campaign Intelligence Vault.

- Sequences probe catalog -> inference gateway -> research vault.
- Routes rival extraction through `RivalExtractor` under a caller-supplied
  merge policy (review first by default, or immediate merge).
- Owns one exclusivity flag per operation category; a second call in the
  same category while one is in flight is ignored.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Set

from campaign_state_manager import (
    CampaignStore,
    Opponent,
    ResearchSnapshot,
    active_snapshot,
    add_opponents,
    drop_pending_rival,
    find_snapshot,
    new_snapshot_id,
    normalize_name,
    prepend_snapshot,
    remove_opponent,
    select_snapshot,
    set_pending_rivals,
    utc_timestamp,
)
from domain.summary_parser import parse_summary, signal_strength

from .inference_gateway import InferenceError, InferenceErrorKind, InferenceGateway, classify_failure, run_sync
from .interaction_log import ActivityLog, InteractionLog
from .probe_prompts import SCAN_MESSAGES, ProbeTopic, build_probe_prompt
from .rival_extractor import STATUS_BUSY, STATUS_CONFIG_ERROR, ExtractionResult, RivalExtractor

logger = logging.getLogger(__name__)

PROBE = "probe"
EXTRACT_RIVALS = "extract_rivals"

EMPTY_RESPONSE_TEXT = "No actionable signals detected."
FAILED_PROBE_TEXT = "Research probe failed. Please try again."


class ExclusivityFlags:
    """Per-category in-flight flags; there is no lock across categories."""

    def __init__(self) -> None:
        self._active: Set[str] = set()

    def is_active(self, category: str) -> bool:
        return category in self._active

    @contextmanager
    def hold(self, category: str) -> Iterator[bool]:
        """Yield True when the flag was acquired, False when the category is busy."""

        if category in self._active:
            yield False
            return
        self._active.add(category)
        try:
            yield True
        finally:
            self._active.discard(category)


class ProbeOrchestrator:
    """Entry point for every Intelligence Vault operation triggered from the UI."""

    def __init__(
        self,
        store: CampaignStore,
        gateway: InferenceGateway,
        *,
        activity_log: Optional[ActivityLog] = None,
        extractor: Optional[RivalExtractor] = None,
        log_dir: Optional[Path] = None,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._activity = activity_log if activity_log is not None else ActivityLog()
        self._extractor = extractor or RivalExtractor(gateway)
        self._flags = ExclusivityFlags()
        self._interactions = InteractionLog(log_dir)
        self.status_text = ""

    @property
    def store(self) -> CampaignStore:
        return self._store

    @property
    def gateway(self) -> InferenceGateway:
        return self._gateway

    @property
    def activity_log(self) -> ActivityLog:
        return self._activity

    def is_busy(self, category: str = PROBE) -> bool:
        return self._flags.is_active(category)

    # ------------------------------------------------------------------
    # Probes
    # ------------------------------------------------------------------
    async def run_probe(self, topic: "ProbeTopic | str") -> Optional[ResearchSnapshot]:
        """
        Dispatch one research probe and record it in the vault.

        Returns the new snapshot, or None when the call was ignored (unknown
        topic, another probe in flight) or short-circuited (missing credential).
        """

        try:
            topic = ProbeTopic.parse(topic)
        except ValueError as exc:
            logger.warning("Ignoring probe request: %s", exc)
            return None
        with self._flags.hold(PROBE) as acquired:
            if not acquired:
                logger.info("Ignoring %s probe: another probe is already in flight.", topic.value)
                return None
            try:
                return await self._run_probe(topic)
            finally:
                self.status_text = ""

    async def _run_probe(self, topic: ProbeTopic) -> Optional[ResearchSnapshot]:
        config_error = self._gateway.credential_error()
        if config_error:
            self._activity.post("intel_ops", config_error)
            return None

        self.status_text = SCAN_MESSAGES[topic]
        trace = self._interactions.start("probe", topic.value)
        snapshot: ResearchSnapshot
        try:
            prompt = build_probe_prompt(topic, self._store.state.profile)
            trace.step("prompt", {"topic": topic.value, "prompt": prompt})
            text = await self._gateway.infer(prompt)
        except InferenceError as exc:
            snapshot = self._failed_snapshot(topic, exc.kind, exc.describe(f"{topic.value} probe"), exc.detail)
        except Exception as exc:
            logger.exception("Unexpected failure during %s probe: %s", topic.value, exc)
            kind = classify_failure(exc)
            snapshot = self._failed_snapshot(topic, kind, InferenceError(kind, str(exc)).describe(f"{topic.value} probe"), str(exc))
        else:
            text = text or EMPTY_RESPONSE_TEXT
            snapshot = ResearchSnapshot(
                id=new_snapshot_id(),
                topic=topic.value,
                created_at=utc_timestamp(),
                raw_text=text,
                parsed_summary=parse_summary(text),
                signal_strength=signal_strength(text),
            )

        # Prepend at completion time so index 0 is always the newest completed probe.
        self._store.dispatch(prepend_snapshot, snapshot)
        if snapshot.failed:
            trace.step("failure", {"error": snapshot.error, "detail": snapshot.error_detail})
            trace.finish(outcome=snapshot.id, error=snapshot.error)
            self._activity.post("intel_ops", f"Probe failed for {topic.value}: {snapshot.error_detail}")
        else:
            trace.step("response", {"raw_output": snapshot.raw_text, "parsed": snapshot.parsed_summary})
            trace.finish(outcome=snapshot.id)
            self._activity.post(
                "intel_ops",
                f"Tactical scan [{topic.value}] complete. Research pinned to vault. "
                f"Signal strength: {snapshot.signal_strength}%",
            )
        return snapshot

    @staticmethod
    def _failed_snapshot(topic: ProbeTopic, kind: InferenceErrorKind, message: str, detail: str) -> ResearchSnapshot:
        logger.warning("%s probe failed (%s): %s", topic.value, kind.value, detail)
        return ResearchSnapshot(
            id=new_snapshot_id(failed=True),
            topic=topic.value,
            created_at=utc_timestamp(),
            raw_text=FAILED_PROBE_TEXT,
            error=kind.value,
            error_detail=message,
        )

    # ------------------------------------------------------------------
    # Rival extraction
    # ------------------------------------------------------------------
    async def extract_rivals(self, snapshot_id: Optional[str] = None, *, auto_merge: bool = False) -> ExtractionResult:
        """
        Extract opponent candidates from a snapshot (the active one by default).

        Review mode (default) parks the candidates as pending rivals for the
        user to confirm one by one; `auto_merge=True` adds them to the profile
        immediately. Both paths share the same validation and dedup.
        """

        with self._flags.hold(EXTRACT_RIVALS) as acquired:
            if not acquired:
                logger.info("Ignoring rival extraction: one is already in flight.")
                return ExtractionResult(STATUS_BUSY, message="Rival extraction already in progress.")

            state = self._store.state
            snapshot = find_snapshot(state, snapshot_id) if snapshot_id else active_snapshot(state)
            config_error = self._gateway.credential_error()
            if config_error and snapshot is not None:
                self._activity.post("rival_extractor", config_error)
                return ExtractionResult(STATUS_CONFIG_ERROR, message=config_error, error=InferenceErrorKind.MISSING_CREDENTIAL.value)

            trace = self._interactions.start("extract_rivals", snapshot.id if snapshot else "none")
            result = await self._extractor.extract(snapshot, state.profile)
            trace.step(
                "extraction",
                {
                    "prompt": self._extractor.last_prompt,
                    "raw_output": self._extractor.last_raw_output,
                    "status": result.status,
                    "candidates": result.candidates,
                },
            )

            if result.ok:
                # Dedup again against the profile as it is now, not as it was at dispatch.
                if auto_merge:
                    before = self._store.state.profile.opponents
                    after = self._store.dispatch(add_opponents, result.candidates).profile.opponents
                    merged = after[len(before):]
                    result = ExtractionResult(
                        result.status,
                        candidates=result.candidates,
                        merged=merged,
                        duplicates=result.duplicates + len(result.candidates) - len(merged),
                        rejected=result.rejected,
                        message=f"Registered {len(merged)} new rival(s) from intelligence stream.",
                    )
                else:
                    self._store.dispatch(set_pending_rivals, result.candidates)
            trace.finish(outcome=result.status, error=result.error)
            self._activity.post("rival_extractor", result.message)
            return result

    def register_pending_rival(self, name: str) -> bool:
        """Confirm one pending rival; returns False if it was not added (unknown or duplicate)."""

        key = normalize_name(name)
        pending = next((item for item in self._store.state.pending_rivals if normalize_name(item.name) == key), None)
        if pending is None:
            return False
        added = self._register(pending)
        self._store.dispatch(drop_pending_rival, pending.name)
        return added

    def dismiss_pending_rivals(self) -> None:
        self._store.dispatch(set_pending_rivals, ())

    def register_opponent(self, opponent: Opponent) -> bool:
        """Manual registration from the threat matrix form."""

        return self._register(opponent)

    def _register(self, opponent: Opponent) -> bool:
        before = len(self._store.state.profile.opponents)
        after = len(self._store.dispatch(add_opponents, [opponent]).profile.opponents)
        if after == before:
            self._activity.post("threat_matrix", f"{opponent.name} is already tracked; keeping the existing record.")
            return False
        self._activity.post("threat_matrix", f"Registered {opponent.name} as a rival.")
        return True

    def remove_opponent(self, name: str) -> bool:
        before = self._store.state
        return self._store.dispatch(remove_opponent, name) is not before

    # ------------------------------------------------------------------
    # Vault helpers
    # ------------------------------------------------------------------
    def select_snapshot(self, snapshot_id: str) -> bool:
        return self._store.dispatch(select_snapshot, snapshot_id).active_snapshot_id == snapshot_id

    def export_snapshot_text(self, snapshot_id: Optional[str] = None) -> Optional[str]:
        state = self._store.state
        snapshot = find_snapshot(state, snapshot_id) if snapshot_id else active_snapshot(state)
        if snapshot is None:
            return None
        lines = [f"{snapshot.topic} research brief", f"Captured: {snapshot.created_at}", ""]
        if snapshot.error:
            lines.append(f"Error: {snapshot.error} ({snapshot.error_detail})")
            lines.append("")
        lines.append(snapshot.raw_text)
        return "\n".join(lines)

    # Sync bridges for Streamlit and the CLI loop.
    def run_probe_sync(self, topic: "ProbeTopic | str") -> Optional[ResearchSnapshot]:
        return run_sync(self.run_probe(topic))

    def extract_rivals_sync(self, snapshot_id: Optional[str] = None, *, auto_merge: bool = False) -> ExtractionResult:
        return run_sync(self.extract_rivals(snapshot_id, auto_merge=auto_merge))
