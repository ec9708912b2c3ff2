"""
State models supporting the campaign intelligence workflow.

`AppState` is the single application-state container. Every change goes
through a reducer below that returns a new `AppState`; `CampaignStore` holds
the current value and mirrors persisted parts to the Persistence Bridge.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

if TYPE_CHECKING:  # pragma: no cover
    from domain.persistence import PersistenceBridge

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Opponent:
    """A rival candidate tracked in the threat matrix."""

    name: str
    party: str = ""
    incumbent: bool = False
    strengths: Tuple[str, ...] = ()
    weaknesses: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CampaignProfile:
    """Root aggregate for the candidate and district facts."""

    session_id: str = field(default_factory=lambda: "sess-" + uuid4().hex[:9])
    candidate_name: str = ""
    office_sought: str = ""
    district_id: str = ""
    party: str = "D"
    voter_research: Optional[str] = None
    treasurer: str = ""
    campaign_address: str = ""
    opponents: Tuple[Opponent, ...] = ()
    vote_goal: Dict[str, Any] = field(default_factory=dict)
    budget_estimate: Dict[str, Any] = field(default_factory=dict)
    dna: Dict[str, Any] = field(default_factory=dict)
    legal_shield: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ParsedSummary:
    signal: str
    threat: str
    action: str


@dataclass(frozen=True, slots=True)
class ResearchSnapshot:
    """One probe attempt, successful or not. Never edited in place."""

    id: str
    topic: str
    created_at: str
    raw_text: str = ""
    parsed_summary: Optional[ParsedSummary] = None
    signal_strength: Optional[int] = None
    error: Optional[str] = None
    error_detail: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True, slots=True)
class CreativeAsset:
    id: str
    type: str
    title: str
    media_type: str = "text"
    status: str = "draft"
    content: Optional[str] = None
    media_url: Optional[str] = None
    prompt: Optional[str] = None


@dataclass(frozen=True, slots=True)
class StrategicReport:
    id: str
    title: str
    timestamp: str
    content: str
    status: str = "draft"


@dataclass(frozen=True, slots=True)
class AppState:
    """Everything the dashboard shows. `pending_rivals` is session-only."""

    profile: CampaignProfile = field(default_factory=CampaignProfile)
    vault: Tuple[ResearchSnapshot, ...] = ()
    active_snapshot_id: Optional[str] = None
    creative_assets: Tuple[CreativeAsset, ...] = ()
    branding_assets: Tuple[CreativeAsset, ...] = ()
    strategic_reports: Tuple[StrategicReport, ...] = ()
    pending_rivals: Tuple[Opponent, ...] = ()


PERSISTED_FIELDS = (
    "profile",
    "vault",
    "active_snapshot_id",
    "creative_assets",
    "branding_assets",
    "strategic_reports",
)


def new_snapshot_id(*, failed: bool = False) -> str:
    prefix = "res-error" if failed else "res"
    return f"{prefix}-{time.time_ns()}-{uuid4().hex[:8]}"


def utc_timestamp() -> str:
    return datetime.utcnow().isoformat(timespec="seconds") + "Z"


def default_profile() -> CampaignProfile:
    return CampaignProfile()


def demo_profile() -> CampaignProfile:
    """Sample campaign used by the "load demo" action."""

    return CampaignProfile(
        session_id="demo-vault-001",
        candidate_name="Marcus Thorne",
        office_sought="Texas House District 52",
        district_id="TX-HD-52",
        party="D",
        voter_research=(
            "Working class district with rapid tech sector growth. Major issues: property taxes, "
            "school funding, infrastructure."
        ),
        treasurer="Robert Law",
        campaign_address="123 Strategy Blvd, Austin, TX 78701",
        opponents=(
            Opponent(
                name="Sarah Jenkins",
                party="R",
                incumbent=True,
                strengths=("High name ID", "Deep pockets", "Endorsements"),
                weaknesses=("Voted against infrastructure", "Out of touch"),
            ),
            Opponent(
                name="Bill Smith",
                party="R",
                incumbent=False,
                strengths=("Law Enforcement ties",),
                weaknesses=("No local experience", "Recent scandal"),
            ),
        ),
        vote_goal={"total_registered_voters": 82000, "expected_turnout_percentage": 44, "target_vote_goal": 19845},
        budget_estimate={"total_projected_needed": 180000},
    )


def missing_profile_fields(profile: CampaignProfile) -> List[str]:
    missing: List[str] = []
    if not profile.candidate_name.strip():
        missing.append("Candidate Name")
    if not profile.office_sought.strip():
        missing.append("Office Sought")
    if not profile.district_id.strip():
        missing.append("District ID")
    return missing


# ----------------------------------------------------------------------
# Lookups
# ----------------------------------------------------------------------
def find_snapshot(state: AppState, snapshot_id: Optional[str]) -> Optional[ResearchSnapshot]:
    if not snapshot_id:
        return None
    for snapshot in state.vault:
        if snapshot.id == snapshot_id:
            return snapshot
    return None


def active_snapshot(state: AppState) -> Optional[ResearchSnapshot]:
    return find_snapshot(state, state.active_snapshot_id)


def normalize_name(name: str) -> str:
    """Identity key for opponents: trimmed and case-folded."""

    return (name or "").strip().casefold()


# ----------------------------------------------------------------------
# Reducers
# ----------------------------------------------------------------------
def prepend_snapshot(state: AppState, snapshot: ResearchSnapshot) -> AppState:
    """Newest first: a new snapshot always lands at index 0 and becomes active."""

    return replace(state, vault=(snapshot,) + state.vault, active_snapshot_id=snapshot.id)


def replace_snapshot(state: AppState, snapshot: ResearchSnapshot) -> AppState:
    if find_snapshot(state, snapshot.id) is None:
        return state
    vault = tuple(snapshot if item.id == snapshot.id else item for item in state.vault)
    return replace(state, vault=vault)


def select_snapshot(state: AppState, snapshot_id: Optional[str]) -> AppState:
    if snapshot_id is None:
        return replace(state, active_snapshot_id=None)
    if find_snapshot(state, snapshot_id) is None:
        return state
    return replace(state, active_snapshot_id=snapshot_id)


def update_profile(state: AppState, **changes: Any) -> AppState:
    if "opponents" in changes:
        raise ValueError("Use add_opponents/remove_opponent to change the opponent list.")
    return replace(state, profile=replace(state.profile, **changes))


def load_profile(state: AppState, profile: CampaignProfile) -> AppState:
    """Replace the profile wholesale (demo load, fresh start)."""

    return replace(state, profile=profile, pending_rivals=())


def add_opponents(state: AppState, opponents: Iterable[Opponent]) -> AppState:
    """Append opponents whose names are not already tracked (first write wins)."""

    seen = {normalize_name(item.name) for item in state.profile.opponents}
    added: List[Opponent] = []
    for opponent in opponents:
        key = normalize_name(opponent.name)
        if not key or key in seen:
            continue
        seen.add(key)
        added.append(opponent)
    if not added:
        return state
    profile = replace(state.profile, opponents=state.profile.opponents + tuple(added))
    return replace(state, profile=profile)


def remove_opponent(state: AppState, name: str) -> AppState:
    key = normalize_name(name)
    remaining = tuple(item for item in state.profile.opponents if normalize_name(item.name) != key)
    if len(remaining) == len(state.profile.opponents):
        return state
    return replace(state, profile=replace(state.profile, opponents=remaining))


def set_pending_rivals(state: AppState, rivals: Iterable[Opponent]) -> AppState:
    return replace(state, pending_rivals=tuple(rivals))


def drop_pending_rival(state: AppState, name: str) -> AppState:
    key = normalize_name(name)
    return replace(
        state,
        pending_rivals=tuple(item for item in state.pending_rivals if normalize_name(item.name) != key),
    )


def add_creative_asset(state: AppState, asset: CreativeAsset) -> AppState:
    return replace(state, creative_assets=(asset,) + state.creative_assets)


def add_branding_asset(state: AppState, asset: CreativeAsset) -> AppState:
    return replace(state, branding_assets=(asset,) + state.branding_assets)


def add_strategic_report(state: AppState, report: StrategicReport) -> AppState:
    return replace(state, strategic_reports=(report,) + state.strategic_reports)


def persisted_view(state: AppState) -> Tuple[Any, ...]:
    return tuple(getattr(state, name) for name in PERSISTED_FIELDS)


class CampaignStore:
    """
    Holds the current `AppState` and applies reducers to it.

    Persisted parts are written through the bridge synchronously on every
    change. `is_syncing` only drives the dashboard indicator for a short
    window after each write.
    """

    def __init__(
        self,
        state: Optional[AppState] = None,
        *,
        bridge: Optional["PersistenceBridge"] = None,
        sync_window_seconds: float = 0.8,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._state = state or AppState()
        self._bridge = bridge
        self._sync_window = max(0.0, sync_window_seconds)
        self._clock = clock
        self._last_sync: Optional[float] = None
        self.last_save_ok: Optional[bool] = None

    @classmethod
    def restored(cls, bridge: "PersistenceBridge", **kwargs: Any) -> "CampaignStore":
        """Build a store from whatever the bridge can load (or defaults)."""

        return cls(bridge.restore(), bridge=bridge, **kwargs)

    @property
    def state(self) -> AppState:
        return self._state

    def dispatch(self, reducer: Callable[..., AppState], *args: Any, **kwargs: Any) -> AppState:
        previous = self._state
        updated = reducer(previous, *args, **kwargs)
        if updated is previous:
            return previous
        self._state = updated
        if persisted_view(updated) != persisted_view(previous):
            self._sync()
        return updated

    def _sync(self) -> None:
        if self._bridge is None:
            return
        self._last_sync = self._clock()
        self.last_save_ok = self._bridge.save(self._state)
        if not self.last_save_ok:
            logger.warning("Campaign state could not be persisted; continuing in memory.")

    @property
    def is_syncing(self) -> bool:
        if self._last_sync is None:
            return False
        return (self._clock() - self._last_sync) < self._sync_window
