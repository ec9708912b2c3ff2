"""
Probe catalog and system prompts used by the campaign intelligence agents.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Tuple

from campaign_state_manager import CampaignProfile


class ProbeTopic(str, Enum):
    ECONOMIC = "ECONOMIC"
    SENTIMENT = "SENTIMENT"
    POLICY = "POLICY"
    OPPOSITION = "OPPOSITION"
    MEDIA = "MEDIA"
    REGISTRATION = "REGISTRATION"
    SOCIAL = "SOCIAL"
    FUNDRAISING = "FUNDRAISING"
    GEOGRAPHY = "GEOGRAPHY"
    ETHICS = "ETHICS"

    @classmethod
    def parse(cls, value: "str | ProbeTopic") -> "ProbeTopic":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(
                f"Unknown probe topic {value!r}. Choose one of: {', '.join(t.value for t in cls)}"
            ) from None


PRIORITY_GROUPS: Dict[str, Tuple[ProbeTopic, ...]] = {
    "critical": (ProbeTopic.FUNDRAISING, ProbeTopic.OPPOSITION, ProbeTopic.ECONOMIC),
    "tactical": (ProbeTopic.SENTIMENT, ProbeTopic.MEDIA, ProbeTopic.SOCIAL, ProbeTopic.REGISTRATION),
    "strategic": (ProbeTopic.POLICY, ProbeTopic.GEOGRAPHY, ProbeTopic.ETHICS),
}

TOPIC_LABELS: Dict[ProbeTopic, str] = {
    ProbeTopic.ECONOMIC: "Economic",
    ProbeTopic.SENTIMENT: "Sentiment",
    ProbeTopic.POLICY: "Policy",
    ProbeTopic.OPPOSITION: "Opposition",
    ProbeTopic.MEDIA: "Media",
    ProbeTopic.REGISTRATION: "Voter Data",
    ProbeTopic.SOCIAL: "Social Media",
    ProbeTopic.FUNDRAISING: "Fundraising",
    ProbeTopic.GEOGRAPHY: "Geography",
    ProbeTopic.ETHICS: "Compliance",
}

SCAN_MESSAGES: Dict[ProbeTopic, str] = {
    ProbeTopic.ECONOMIC: "Aggregating economic stressors...",
    ProbeTopic.SENTIMENT: "Monitoring voter sentiment patterns...",
    ProbeTopic.POLICY: "Tracking legislative volatility...",
    ProbeTopic.OPPOSITION: "Scanning opposition landscape...",
    ProbeTopic.MEDIA: "Monitoring regional media sentiment...",
    ProbeTopic.REGISTRATION: "Analyzing voter registration volatility...",
    ProbeTopic.SOCIAL: "Scanning social media landscape...",
    ProbeTopic.FUNDRAISING: "Hunting for donors and PACs...",
    ProbeTopic.GEOGRAPHY: "Mapping community hotspots...",
    ProbeTopic.ETHICS: "Monitoring compliance threats...",
}

_SECTIONS_HINT = "Format your response with these sections: [SIGNAL: {signal}], [THREAT: {threat}], [ACTION: {action}]."

_TEMPLATES: Dict[ProbeTopic, Tuple[str, Tuple[str, str, str]]] = {
    ProbeTopic.ECONOMIC: (
        "Perform an economic intelligence audit for {district}. Analyze employment rates, housing affordability "
        "trends, and major local business developments, and how they could shape the {office} race. "
        "Include specific data and sources where possible.",
        ("key economic indicators", "risks to the campaign", "recommended campaign response"),
    ),
    ProbeTopic.SENTIMENT: (
        "Detect prevailing voter sentiment and the top 5 political grievances in {district}. Analyze recent "
        "social movements or local controversies and the mood toward incumbents.",
        ("mood/trends", "narrative risks", "outreach strategy"),
    ),
    ProbeTopic.POLICY: (
        "Analyze legislative impacts and local policy challenges in {district}. Focus on infrastructure needs, "
        "school board tensions, and recent tax changes, and recommend positions for {candidate}.",
        ("policy landscape", "opposition angles", "policy position"),
    ),
    ProbeTopic.OPPOSITION: (
        "Perform a deep dive on the political opposition for the {office} seat in {district}. Identify active "
        "candidates{known_rivals}, their funding sources, and vulnerabilities {candidate} can exploit.",
        ("opponent status", "their strengths", "counter-strategy"),
    ),
    ProbeTopic.MEDIA: (
        "Monitor local media sentiment in {district} for the {office} race. Identify key outlets, influential "
        "journalists, top trending stories and narrative threats.",
        ("media landscape", "negative coverage risks", "media strategy"),
    ),
    ProbeTopic.REGISTRATION: (
        "Analyze voter registration shifts in {district}. Who are the new voters? What are the demographic "
        "trends and turnout patterns? Identify persuadable voter segments.",
        ("registration patterns", "turnout challenges", "voter contact plan"),
    ),
    ProbeTopic.SOCIAL: (
        "Summarize trending topics, hashtags, and public opinion related to the {office} race in {district}. "
        "Note where {candidate}'s name appears and the sentiment around it.",
        ("social trends", "viral risks", "social media strategy"),
    ),
    ProbeTopic.FUNDRAISING: (
        "Identify potential donors, local PACs, and political contributors in the {district} region aligning "
        "with the {party} party. Analyze giving patterns and suggest contact strategies for {candidate}.",
        ("donor landscape", "opponent fundraising", "solicitation strategy"),
    ),
    ProbeTopic.GEOGRAPHY: (
        "Identify high-traffic intersections, community centers, swing precincts and popular town hall venues "
        "in {district}. Find where campaign visibility and field investment are needed.",
        ("key locations", "coverage gaps", "visibility plan"),
    ),
    ProbeTopic.ETHICS: (
        "Review ethics and compliance requirements for the {office} race in {district}: contribution limits, "
        "reporting deadlines, disclaimer requirements, and recent campaign finance controversies.",
        ("compliance landscape", "potential violations", "protective measures"),
    ),
}


def _field(value: str, placeholder: str) -> str:
    value = (value or "").strip()
    return value or placeholder


def build_probe_prompt(topic: "ProbeTopic | str", profile: CampaignProfile) -> str:
    """Materialize the topic's template against the current profile."""

    topic = ProbeTopic.parse(topic)
    template, (signal, threat, action) = _TEMPLATES[topic]
    rivals: List[str] = [opponent.name for opponent in profile.opponents]
    known_rivals = f" (known so far: {', '.join(rivals)})" if rivals else ""
    body = template.format(
        district=_field(profile.district_id, "the district"),
        office=_field(profile.office_sought, "the local"),
        candidate=_field(profile.candidate_name, "our candidate"),
        party=_field(profile.party, "candidate's"),
        known_rivals=known_rivals,
    )
    return f"{body} {_SECTIONS_HINT.format(signal=signal, threat=threat, action=action)}"


PROBE_ANALYST_PROMPT: str = (
    "You are a political intelligence analyst supporting a local campaign. Answer with concise, factual briefs. "
    "Always structure the brief with the bracketed SIGNAL, THREAT and ACTION sections the request asks for, "
    "and flag any figure you are not confident about."
)

RIVAL_EXTRACTOR_PROMPT: str = (
    "You extract structured records about political opponents from research notes. "
    "Respond ONLY with a JSON object of the form {\"opponents\": [...]} and nothing else."
)


def rival_extraction_prompt(raw_text: str, profile: CampaignProfile) -> str:
    return (
        "Identify and extract political opponents from the following research text. Filter for candidates "
        f"specifically relevant to the {_field(profile.office_sought, 'local')} seat in "
        f"{_field(profile.district_id, 'the district')}. Exclude {_field(profile.candidate_name, 'our candidate')}. "
        "Return a JSON object with a key `opponents` holding an array of objects with these exact fields: "
        "name (string), party (string), incumbent (boolean), strengths (array of strings), "
        f"weaknesses (array of strings).\n\nResearch text:\n{raw_text}"
    )
