import pytest

from campaign_state_manager import Opponent
from domain.rivals import (
    RivalCandidate,
    RivalParseError,
    filter_new_rivals,
    opponent_from_form,
    parse_rival_payload,
    split_traits,
    validate_rival_records,
)


def test_parse_accepts_bare_list_and_wrapped_object():
    assert parse_rival_payload('[{"name": "J. Park"}]') == [{"name": "J. Park"}]
    assert parse_rival_payload('{"opponents": [{"name": "J. Park"}]}') == [{"name": "J. Park"}]
    assert parse_rival_payload('{"rivals": []}') == []
    assert parse_rival_payload('{"name": "Solo"}') == [{"name": "Solo"}]


def test_parse_strips_code_fences():
    raw = '```json\n[{"name": "Lee"}]\n```'
    assert parse_rival_payload(raw) == [{"name": "Lee"}]


@pytest.mark.parametrize("raw", ["", "not json", '"just a string"', '{"summary": "nobody"}', "42"])
def test_parse_rejects_non_list_payloads(raw):
    with pytest.raises(RivalParseError):
        parse_rival_payload(raw)


def test_validation_coerces_loose_fields():
    candidate = RivalCandidate.model_validate(
        {"name": "  J. Park ", "party": None, "incumbent": "false", "strengths": "lots", "weaknesses": ["", "gaffes"]}
    )

    assert candidate.name == "J. Park"
    assert candidate.party == ""
    assert candidate.incumbent is False
    assert candidate.strengths == []
    assert candidate.weaknesses == ["gaffes"]


@pytest.mark.parametrize("value, expected", [("yes", True), ("Incumbent", True), ("no", False), ("challenger", False), (1, True), (0, False)])
def test_incumbent_coercion(value, expected):
    assert RivalCandidate.model_validate({"name": "X", "incumbent": value}).incumbent is expected


def test_validate_counts_rejected_records():
    valid, rejected = validate_rival_records([{"name": "A"}, {"name": ""}, "B", {"party": "R"}, {"name": "C", "party": "I"}])

    assert [item.name for item in valid] == ["A", "C"]
    assert valid[1].party == "I"
    assert rejected == 3


def test_filter_is_case_insensitive_and_drops_batch_repeats():
    existing = [Opponent(name="Sarah Jenkins")]
    fresh, duplicates = filter_new_rivals(
        existing,
        [Opponent(name="sarah jenkins "), Opponent(name="J. Park"), Opponent(name="j. park")],
    )

    assert [item.name for item in fresh] == ["J. Park"]
    assert duplicates == 2


def test_opponent_from_form():
    opponent = opponent_from_form(" Bill Smith ", "R", True, "ties, , money", "")

    assert opponent == Opponent(name="Bill Smith", party="R", incumbent=True, strengths=("ties", "money"))
    assert split_traits("") == ()
    with pytest.raises(ValueError):
        opponent_from_form("   ")
