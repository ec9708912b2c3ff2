"""RivalExtractor: turns one research snapshot into validated, deduplicated opponent candidates."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from campaign_state_manager import CampaignProfile, Opponent, ResearchSnapshot
from domain.rivals import RivalParseError, filter_new_rivals, parse_rival_payload, validate_rival_records

from .inference_gateway import InferenceError, InferenceErrorKind, InferenceGateway, classify_failure
from .probe_prompts import rival_extraction_prompt

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_PARSE_FAILURE = "parse_failure"
STATUS_SERVICE_ERROR = "service_error"
STATUS_CONFIG_ERROR = "config_error"
STATUS_NO_SNAPSHOT = "no_snapshot"
STATUS_BUSY = "busy"


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    status: str
    candidates: Tuple[Opponent, ...] = ()
    merged: Tuple[Opponent, ...] = ()
    duplicates: int = 0
    rejected: int = 0
    message: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


class RivalExtractor:
    """Second inference pass over a snapshot's raw text. Never raises past `extract`."""

    def __init__(self, gateway: InferenceGateway) -> None:
        self._gateway = gateway
        self.last_prompt: Optional[str] = None
        self.last_raw_output: Optional[str] = None

    async def extract(self, snapshot: Optional[ResearchSnapshot], profile: CampaignProfile) -> ExtractionResult:
        self.last_prompt = None
        self.last_raw_output = None
        if snapshot is None:
            return ExtractionResult(STATUS_NO_SNAPSHOT, message="No active research selected. Please run a probe first.")
        if snapshot.failed or not snapshot.raw_text.strip():
            return ExtractionResult(
                STATUS_NO_SNAPSHOT,
                message=f"Snapshot {snapshot.id} has no usable research text to extract rivals from.",
            )

        prompt = rival_extraction_prompt(snapshot.raw_text, profile)
        self.last_prompt = prompt
        try:
            raw = await self._gateway.infer(prompt, structured_output=True)
        except InferenceError as exc:
            status = STATUS_CONFIG_ERROR if exc.kind is InferenceErrorKind.MISSING_CREDENTIAL else STATUS_SERVICE_ERROR
            return ExtractionResult(status, message=exc.describe("Rival extraction"), error=exc.kind.value)
        except Exception as exc:
            logger.exception("Unexpected failure during rival extraction: %s", exc)
            kind = classify_failure(exc)
            return ExtractionResult(
                STATUS_SERVICE_ERROR, message=InferenceError(kind, str(exc)).describe("Rival extraction"), error=kind.value
            )
        self.last_raw_output = raw

        try:
            records = parse_rival_payload(raw)
        except RivalParseError as exc:
            logger.warning("Rival extraction returned malformed output for %s: %s", snapshot.id, exc)
            return ExtractionResult(
                STATUS_PARSE_FAILURE,
                message="Rival extraction returned malformed output; no candidates found.",
                error=str(exc),
            )

        valid, rejected = validate_rival_records(records)
        fresh, duplicates = filter_new_rivals(profile.opponents, valid)
        logger.info(
            "Rival extraction for %s: %d valid, %d rejected, %d duplicates, %d new",
            snapshot.id,
            len(valid),
            rejected,
            duplicates,
            len(fresh),
        )
        return ExtractionResult(
            STATUS_OK,
            candidates=tuple(fresh),
            duplicates=duplicates,
            rejected=rejected,
            message=f"Extracted {len(fresh)} new rival(s) from intelligence stream.",
        )
