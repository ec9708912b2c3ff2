import pytest

from campaign_state_manager import (
    AppState,
    CampaignStore,
    CreativeAsset,
    Opponent,
    ResearchSnapshot,
    StrategicReport,
    active_snapshot,
    add_branding_asset,
    add_creative_asset,
    add_opponents,
    add_strategic_report,
    demo_profile,
    drop_pending_rival,
    load_profile,
    missing_profile_fields,
    new_snapshot_id,
    prepend_snapshot,
    remove_opponent,
    replace_snapshot,
    select_snapshot,
    set_pending_rivals,
    update_profile,
)
from domain.persistence import MemoryStore, PersistenceBridge


def _snapshot(snapshot_id: str, topic: str = "ECONOMIC") -> ResearchSnapshot:
    return ResearchSnapshot(id=snapshot_id, topic=topic, created_at="2026-01-01T00:00:00Z", raw_text="brief")


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_prepend_puts_newest_first_and_selects_it():
    state = prepend_snapshot(AppState(), _snapshot("a"))
    state = prepend_snapshot(state, _snapshot("b"))

    assert [item.id for item in state.vault] == ["b", "a"]
    assert active_snapshot(state).id == "b"


def test_select_ignores_unknown_ids():
    state = prepend_snapshot(AppState(), _snapshot("a"))

    assert select_snapshot(state, "missing") is state
    assert select_snapshot(state, None).active_snapshot_id is None


def test_add_opponents_first_write_wins(sarah):
    state = add_opponents(AppState(), [sarah])
    again = add_opponents(state, [Opponent(name="SARAH JENKINS", party="I")])

    assert again is state
    assert state.profile.opponents[0].party == "R"


def test_remove_opponent_matches_normalized_name(sarah):
    state = add_opponents(AppState(), [sarah, Opponent(name="Bill Smith")])
    state = remove_opponent(state, "  sarah jenkins")

    assert [item.name for item in state.profile.opponents] == ["Bill Smith"]
    assert remove_opponent(state, "nobody") is state


def test_update_profile_refuses_opponent_list():
    with pytest.raises(ValueError):
        update_profile(AppState(), opponents=())
    assert update_profile(AppState(), candidate_name="Dana").profile.candidate_name == "Dana"


def test_pending_rivals_and_profile_load():
    state = set_pending_rivals(AppState(), [Opponent(name="A"), Opponent(name="B")])
    assert [item.name for item in drop_pending_rival(state, "a").pending_rivals] == ["B"]

    loaded = load_profile(state, demo_profile())
    assert loaded.pending_rivals == ()
    assert loaded.profile.district_id == "TX-HD-52"
    assert missing_profile_fields(loaded.profile) == []
    assert missing_profile_fields(AppState().profile) == ["Candidate Name", "Office Sought", "District ID"]


def test_snapshot_ids_are_unique_and_marked_on_failure():
    ids = {new_snapshot_id() for _ in range(50)}

    assert len(ids) == 50
    assert new_snapshot_id(failed=True).startswith("res-error-")


def test_store_persists_only_persisted_changes(bridge, memory_store):
    store = CampaignStore(bridge=bridge)

    store.dispatch(set_pending_rivals, [Opponent(name="A")])
    assert memory_store.keys() == []

    store.dispatch(prepend_snapshot, _snapshot("a"))
    assert memory_store.keys() == [bridge.key]
    assert store.last_save_ok is True


def test_store_returns_same_state_for_noop_reducer(bridge):
    store = CampaignStore(bridge=bridge)
    before = store.state

    assert store.dispatch(select_snapshot, "missing") is before
    assert store.last_save_ok is None


def test_is_syncing_window():
    clock = FakeClock()
    store = CampaignStore(bridge=PersistenceBridge(MemoryStore()), clock=clock)
    assert store.is_syncing is False

    store.dispatch(prepend_snapshot, _snapshot("a"))
    assert store.is_syncing is True
    clock.now += 0.5
    assert store.is_syncing is True
    clock.now += 0.5
    assert store.is_syncing is False


def test_replace_snapshot_keeps_position():
    state = prepend_snapshot(prepend_snapshot(AppState(), _snapshot("a")), _snapshot("b"))
    updated = replace_snapshot(state, ResearchSnapshot(id="a", topic="ECONOMIC", created_at="later", raw_text="new"))

    assert [item.id for item in updated.vault] == ["b", "a"]
    assert updated.vault[1].raw_text == "new"
    assert replace_snapshot(state, _snapshot("zzz")) is state


def test_asset_collections_are_persisted(bridge):
    store = CampaignStore(bridge=bridge)
    store.dispatch(add_creative_asset, CreativeAsset(id="c1", type="mailer", title="Door hanger", content="Vote"))
    store.dispatch(add_branding_asset, CreativeAsset(id="b1", type="logo", title="Logo", media_type="image"))
    store.dispatch(add_strategic_report, StrategicReport(id="r1", title="Plan", timestamp="now", content="..."))

    restored = bridge.load()
    assert restored.creative_assets[0].title == "Door hanger"
    assert restored.branding_assets[0].media_type == "image"
    assert restored.strategic_reports[0].id == "r1"
