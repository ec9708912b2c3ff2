"""Validation and dedup of opponent records pulled out of free-form research text."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, List, Sequence, Tuple

from pydantic import BaseModel, ValidationError, field_validator

from campaign_state_manager import Opponent, normalize_name

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")
_WRAPPER_KEYS = ("opponents", "rivals", "candidates")
_FALSE_STRINGS = {"", "false", "no", "n", "0", "off", "none", "null", "challenger"}


class RivalParseError(ValueError):
    """Raised when the model output is not a JSON list of records."""


class RivalCandidate(BaseModel):
    name: str
    party: str = ""
    incumbent: bool = False
    strengths: List[str] = []
    weaknesses: List[str] = []

    @field_validator("name", mode="before")
    @classmethod
    def _require_name(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("name must be a non-empty string")
        return value.strip()

    @field_validator("party", mode="before")
    @classmethod
    def _coerce_party(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("incumbent", mode="before")
    @classmethod
    def _coerce_incumbent(cls, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() not in _FALSE_STRINGS
        return bool(value)

    @field_validator("strengths", "weaknesses", mode="before")
    @classmethod
    def _coerce_list(cls, value: Any) -> List[str]:
        if not isinstance(value, (list, tuple)):
            return []
        items = [str(item).strip() for item in value if item is not None]
        return [item for item in items if item]

    def to_opponent(self) -> Opponent:
        return Opponent(
            name=self.name,
            party=self.party,
            incumbent=self.incumbent,
            strengths=tuple(self.strengths),
            weaknesses=tuple(self.weaknesses),
        )


def parse_rival_payload(text: str) -> List[Any]:
    """Decode the extractor's response into a list of raw records."""

    cleaned = _FENCE.sub("", (text or "").strip()).strip()
    if not cleaned:
        raise RivalParseError("Empty response from the extraction model.")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise RivalParseError(f"Response is not valid JSON: {exc.msg}") from exc

    if isinstance(data, dict):
        for key in _WRAPPER_KEYS:
            if isinstance(data.get(key), list):
                return data[key]
        if "name" in data:
            return [data]
        raise RivalParseError("JSON object does not contain an opponent list.")
    if not isinstance(data, list):
        raise RivalParseError(f"Expected a JSON array, got {type(data).__name__}.")
    return data


def validate_rival_records(records: Iterable[Any]) -> Tuple[List[Opponent], int]:
    """Return the valid opponents and how many records were rejected."""

    valid: List[Opponent] = []
    rejected = 0
    for record in records:
        if not isinstance(record, dict):
            rejected += 1
            continue
        try:
            valid.append(RivalCandidate.model_validate(record).to_opponent())
        except ValidationError as exc:
            rejected += 1
            logger.debug("Rejected rival record %r: %s", record, exc)
    return valid, rejected


def filter_new_rivals(
    existing: Sequence[Opponent], candidates: Iterable[Opponent]
) -> Tuple[List[Opponent], int]:
    """Drop candidates whose name is already tracked, or repeated within the batch."""

    seen = {normalize_name(item.name) for item in existing}
    fresh: List[Opponent] = []
    duplicates = 0
    for candidate in candidates:
        key = normalize_name(candidate.name)
        if key in seen:
            duplicates += 1
            continue
        seen.add(key)
        fresh.append(candidate)
    return fresh, duplicates


def split_traits(raw: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in (raw or "").split(",") if part.strip())


def opponent_from_form(
    name: str, party: str = "", incumbent: bool = False, strengths: str = "", weaknesses: str = ""
) -> Opponent:
    """Build an opponent from the manual registration form."""

    if not name or not name.strip():
        raise ValueError("Opponent name is required.")
    return Opponent(
        name=name.strip(),
        party=(party or "").strip(),
        incumbent=bool(incumbent),
        strengths=split_traits(strengths),
        weaknesses=split_traits(weaknesses),
    )
