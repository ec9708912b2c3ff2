import asyncio
from dataclasses import replace

from agents.inference_gateway import InferenceError, InferenceErrorKind
from agents.rival_extractor import (
    STATUS_CONFIG_ERROR,
    STATUS_NO_SNAPSHOT,
    STATUS_OK,
    STATUS_PARSE_FAILURE,
    STATUS_SERVICE_ERROR,
    RivalExtractor,
)
from campaign_state_manager import ResearchSnapshot


def _snapshot(text="Opposition brief", error=None):
    return ResearchSnapshot(id="res-1", topic="OPPOSITION", created_at="now", raw_text=text, error=error)


def test_extract_returns_only_new_valid_candidates(make_gateway, profile, sarah):
    gateway = make_gateway(
        ['{"opponents": [{"name": "sarah jenkins "}, {"name": "J. Park", "party": "I", "incumbent": false}, {"party": "R"}]}']
    )
    extractor = RivalExtractor(gateway)
    profile = replace(profile, opponents=(sarah,))

    result = asyncio.run(extractor.extract(_snapshot(), profile))

    assert result.status == STATUS_OK
    assert [item.name for item in result.candidates] == ["J. Park"]
    assert result.duplicates == 1
    assert result.rejected == 1
    assert gateway.calls[0][1] is True
    assert "Opposition brief" in extractor.last_prompt


def test_malformed_output_is_parse_failure(make_gateway, profile):
    result = asyncio.run(RivalExtractor(make_gateway(["Sorry, I cannot help"])).extract(_snapshot(), profile))

    assert result.status == STATUS_PARSE_FAILURE
    assert result.candidates == ()


def test_gateway_errors_become_statuses(make_gateway, profile):
    quota = make_gateway([InferenceError(InferenceErrorKind.QUOTA_EXCEEDED, "429")])
    missing = make_gateway([InferenceError(InferenceErrorKind.MISSING_CREDENTIAL, "no key")])
    crash = make_gateway([KeyError("oops")])

    assert asyncio.run(RivalExtractor(quota).extract(_snapshot(), profile)).status == STATUS_SERVICE_ERROR
    assert asyncio.run(RivalExtractor(missing).extract(_snapshot(), profile)).status == STATUS_CONFIG_ERROR
    assert asyncio.run(RivalExtractor(crash).extract(_snapshot(), profile)).error == InferenceErrorKind.UNKNOWN.value


def test_unusable_snapshots_are_skipped(make_gateway, profile):
    gateway = make_gateway()
    extractor = RivalExtractor(gateway)

    assert asyncio.run(extractor.extract(None, profile)).status == STATUS_NO_SNAPSHOT
    assert asyncio.run(extractor.extract(_snapshot(error="QuotaExceeded"), profile)).status == STATUS_NO_SNAPSHOT
    assert asyncio.run(extractor.extract(_snapshot(text="  "), profile)).status == STATUS_NO_SNAPSHOT
    assert gateway.calls == []
