import json
from pathlib import Path

from streamlit.testing.v1 import AppTest

from agents import ProbeOrchestrator
from campaign_state_manager import ResearchSnapshot, prepend_snapshot

APP_PATH = str(Path(__file__).resolve().parent.parent / "streamlit_app.py")


def _app_with(orchestrator) -> AppTest:
    app = AppTest.from_file(APP_PATH, default_timeout=30)
    app.session_state["orchestrator"] = orchestrator
    return app


def _button(app: AppTest, label: str):
    return next(button for button in app.button if button.label == label)


def test_successful_extraction_message_survives_rerun(store, make_gateway):
    store.dispatch(
        prepend_snapshot,
        ResearchSnapshot(id="res-seed", topic="OPPOSITION", created_at="now", raw_text="Opposition notes"),
    )
    gateway = make_gateway([json.dumps({"opponents": [{"name": "J. Park", "party": "I"}]})])
    app = _app_with(ProbeOrchestrator(store, gateway))

    app.run()
    _button(app, "Extract and register all").click().run()

    assert not app.exception
    assert [item.value for item in app.success] == ["Registered 1 new rival(s) from intelligence stream."]
    assert [item.name for item in store.state.profile.opponents] == ["J. Park"]


def test_failed_extraction_shows_warning(store, make_gateway):
    store.dispatch(
        prepend_snapshot,
        ResearchSnapshot(id="res-seed", topic="OPPOSITION", created_at="now", raw_text="Opposition notes"),
    )
    app = _app_with(ProbeOrchestrator(store, make_gateway(["not json"])))

    app.run()
    _button(app, "Extract rivals for review").click().run()

    assert not app.exception
    assert len(app.success) == 0
    assert any("malformed" in item.value for item in app.warning)
