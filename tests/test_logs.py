import json

from agents.interaction_log import ActivityLog, InteractionLog, make_serializable
from campaign_state_manager import ParsedSummary


def test_activity_log_caps_entries_and_filters_channels():
    log = ActivityLog(max_entries=3)
    log.post("intel_ops", "line 0")
    for idx in range(1, 5):
        log.post("threat_matrix", f"line {idx}")

    assert [entry.message for entry in log.entries] == ["line 2", "line 3", "line 4"]
    assert log.latest().message == "line 4"
    assert log.channel("intel_ops") == []
    assert len(log.channel("threat_matrix")) == 3
    assert log.transcript().count("\n") == 2


def test_empty_activity_log():
    log = ActivityLog()

    assert log.latest() is None
    assert log.transcript() == ""


def test_disabled_interaction_log_writes_nothing():
    trace = InteractionLog(None).start("probe", "MEDIA")
    trace.step("prompt", {"prompt": "x"})

    assert trace.finish(outcome="res-1") is None
    assert trace.record["outcome"] == "res-1"


def test_interaction_trace_serializes_dataclasses(tmp_path):
    log = InteractionLog(tmp_path / "traces")
    trace = log.start("extract_rivals", "res-1")
    trace.step("extraction", {"parsed": ParsedSummary("a", "b", "c"), "names": ("A", "B")})

    path = trace.finish(outcome="ok")

    record = json.loads(path.read_text(encoding="utf-8"))
    assert log.enabled
    assert record["operation"] == "extract_rivals"
    assert record["steps"][0]["context"]["names"] == ["A", "B"]
    assert isinstance(record["steps"][0]["context"]["parsed"], str)


def test_make_serializable_passes_plain_data_through():
    data = {"a": [1, 2], "b": None}

    assert make_serializable(data) is data
