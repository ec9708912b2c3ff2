
import re
from typing import Dict, Optional

from campaign_state_manager import ParsedSummary

SIGNAL_FALLBACK_CHARS = 200
THREAT_FALLBACK = "Potential narrative threat detected."
ACTION_FALLBACK = "Recommended immediate outreach."

# Upper-case only: "action" or "threat" inside ordinary prose must not split the brief.
_MARKER = re.compile(r"\[?[ \t]*\b(SIGNAL|THREAT|ACTION)\b[ \t]*[:\]]?")
_EDGE_CHARS = " \t\r\n[]:,*#-"


def _sections(text: str) -> Dict[str, str]:
    matches = list(_MARKER.finditer(text))
    found: Dict[str, str] = {}
    for idx, match in enumerate(matches):
        label = match.group(1)
        if label in found:
            continue
        end = matches[idx + 1].start() if idx + 1 < len(matches) else len(text)
        found[label] = text[match.end():end].strip(_EDGE_CHARS)
    return found


def parse_summary(text: Optional[str]) -> ParsedSummary:
    text = text or ""
    found = _sections(text)
    signal = found.get("SIGNAL") or text.strip()[:SIGNAL_FALLBACK_CHARS]
    threat = found.get("THREAT") or THREAT_FALLBACK
    action = found.get("ACTION") or ACTION_FALLBACK
    return ParsedSummary(signal=signal, threat=threat, action=action)


def signal_strength(text: Optional[str]) -> int:
    # display-only
    markers = len(_sections(text or ""))
    return min(100, 40 + 20 * markers)
