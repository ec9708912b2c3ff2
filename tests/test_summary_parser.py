from domain.summary_parser import (
    ACTION_FALLBACK,
    SIGNAL_FALLBACK_CHARS,
    THREAT_FALLBACK,
    parse_summary,
    signal_strength,
)


def test_all_three_markers_are_split_out():
    parsed = parse_summary("[SIGNAL] tax growth [THREAT] backlash [ACTION] hold line")

    assert parsed.signal == "tax growth"
    assert parsed.threat == "backlash"
    assert parsed.action == "hold line"
    assert signal_strength("[SIGNAL] tax growth [THREAT] backlash [ACTION] hold line") == 100


def test_colon_style_markers_across_lines():
    text = "[SIGNAL: Payroll up 4%]\n[THREAT: Rent anxiety]\n[ACTION: Door knock in Ward 3]"
    parsed = parse_summary(text)

    assert parsed.signal == "Payroll up 4%"
    assert parsed.threat == "Rent anxiety"
    assert parsed.action == "Door knock in Ward 3"


def test_missing_markers_fall_back():
    text = "x" * 500
    parsed = parse_summary(text)

    assert parsed.signal == "x" * SIGNAL_FALLBACK_CHARS
    assert parsed.threat == THREAT_FALLBACK
    assert parsed.action == ACTION_FALLBACK
    assert signal_strength(text) == 40


def test_partial_markers_only_fill_what_is_present():
    parsed = parse_summary("Intro text. THREAT: rival mailer landing Friday")

    assert parsed.threat == "rival mailer landing Friday"
    assert parsed.action == ACTION_FALLBACK
    assert parsed.signal == "Intro text. THREAT: rival mailer landing Friday"
    assert signal_strength("THREAT: rival mailer landing Friday") == 60


def test_lowercase_words_are_not_markers():
    parsed = parse_summary("Take action on the threat of low turnout.")

    assert parsed.threat == THREAT_FALLBACK
    assert parsed.action == ACTION_FALLBACK


def test_empty_and_none_inputs():
    assert parse_summary(None).signal == ""
    assert parse_summary("").threat == THREAT_FALLBACK
    assert signal_strength(None) == 40


def test_repeated_marker_keeps_first_section():
    parsed = parse_summary("[SIGNAL] first [SIGNAL] second [ACTION] go")

    assert parsed.signal == "first"
    assert parsed.action == "go"
    assert signal_strength("[SIGNAL] first [SIGNAL] second [ACTION] go") == 80
