import asyncio
from typing import Any, List, Optional, Tuple

import pytest

from agents import ProbeOrchestrator
from agents.interaction_log import ActivityLog
from agents.inference_gateway import CONFIG_ERROR_MESSAGE
from campaign_state_manager import AppState, CampaignProfile, CampaignStore, Opponent
from domain.persistence import MemoryStore, PersistenceBridge


class FakeGateway:
    """Stands in for InferenceGateway; replays scripted responses or raises scripted errors."""

    def __init__(self, responses: Optional[List[Any]] = None, *, configured: bool = True) -> None:
        self.responses = list(responses or ["[SIGNAL] quiet [THREAT] none [ACTION] wait"])
        self.calls: List[Tuple[str, bool]] = []
        self.configured = configured
        self.gate: Optional[asyncio.Event] = None

    @property
    def is_configured(self) -> bool:
        return self.configured

    def credential_error(self) -> Optional[str]:
        return None if self.configured else CONFIG_ERROR_MESSAGE

    async def infer(self, prompt: str, *, structured_output: bool = False) -> str:
        self.calls.append((prompt, structured_output))
        if self.gate is not None:
            await self.gate.wait()
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture
def profile() -> CampaignProfile:
    return CampaignProfile(
        session_id="sess-test",
        candidate_name="Dana Cruz",
        office_sought="City Council District 4",
        district_id="CC-4",
        party="D",
    )


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def bridge(memory_store) -> PersistenceBridge:
    return PersistenceBridge(memory_store)


@pytest.fixture
def store(profile, bridge) -> CampaignStore:
    return CampaignStore(AppState(profile=profile), bridge=bridge)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def activity() -> ActivityLog:
    return ActivityLog()


@pytest.fixture
def orchestrator(store, gateway, activity) -> ProbeOrchestrator:
    return ProbeOrchestrator(store, gateway, activity_log=activity)


@pytest.fixture
def make_gateway():
    return FakeGateway


@pytest.fixture
def sarah() -> Opponent:
    return Opponent(name="Sarah Jenkins", party="R", incumbent=True, strengths=("High name ID",))
