"""
Pattern-based place name extraction from assistant Markdown.

Assistant answers list route stops as emphasized items, e.g.::

    1. **Monterey:** aquarium and Cannery Row
    **Big Sur:** cliffs along Highway 1

No grammar is involved: two regex rules collect candidate spans, a validity
filter removes descriptive words and coordinates, and the survivors are
deduplicated case-insensitively while keeping first-seen order.
"""
from __future__ import annotations

import re
from typing import Iterable, List

from domain.models import RawCandidate

RULE_ENUMERATED = "enumerated"
RULE_EMPHASIS_COLON = "emphasis_colon"

# "1. **Monterey**" / "2. **Big Sur:**"
_ENUMERATED_RE = re.compile(r"^\s*\d+\.\s+\*\*(?P<span>[^*\n]+?)\*\*", re.MULTILINE)
# "**Monterey:**"
_EMPHASIS_COLON_RE = re.compile(r"\*\*(?P<span>[^*\n]+?):\*\*")
_COORDINATE_RE = re.compile(r"^-?\d+(?:\.\d+)?,\s*-?\d+(?:\.\d+)?$")

STOP_WORDS = (
    "route",
    "scenic stops",
    "scenic stop",
    "stops",
    "stop",
    "waypoint",
    "destination",
    "origin",
    "start",
    "end",
    "directions",
    "map",
    "location",
    "place",
    "places",
)
_STOP_WORD_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(w) for w in sorted(STOP_WORDS, key=len, reverse=True)) + r")\b"
)


def normalize_place_key(name: str) -> str:
    """Identity of a place name: trimmed, whitespace-collapsed, case-folded."""
    return " ".join(name.split()).casefold()


def _clean_span(span: str) -> str:
    return span.strip().rstrip(":;").strip()


def find_candidates(text: str) -> List[RawCandidate]:
    """Run both pattern rules and return raw candidates ordered by position in text."""
    if not text:
        return []
    candidates: List[RawCandidate] = []
    for rule, pattern in ((RULE_ENUMERATED, _ENUMERATED_RE), (RULE_EMPHASIS_COLON, _EMPHASIS_COLON_RE)):
        for match in pattern.finditer(text):
            candidates.append(
                RawCandidate(
                    text=_clean_span(match.group("span")),
                    rule=rule,
                    position=match.start("span"),
                )
            )
    # Stable sort: an item matched by both rules keeps the enumerated capture first.
    candidates.sort(key=lambda c: c.position)
    return candidates


def is_valid_place_name(name: str) -> bool:
    """Reject stop words, descriptive phrases, bare coordinates and too-short strings."""
    trimmed = name.strip()
    if len(trimmed) < 2:
        return False
    if _COORDINATE_RE.match(trimmed):
        return False
    normalized = normalize_place_key(trimmed)
    if normalized in STOP_WORDS:
        return False
    if _STOP_WORD_RE.search(normalized):
        return False
    return True


def clean_locations(names: Iterable[str]) -> List[str]:
    """Filter and deduplicate an already extracted list, keeping first-seen order."""
    cleaned: List[str] = []
    seen: set[str] = set()
    for name in names:
        if not name or not is_valid_place_name(name):
            continue
        trimmed = " ".join(name.split())
        key = normalize_place_key(trimmed)
        if key in seen:
            continue
        seen.add(key)
        cleaned.append(trimmed)
    return cleaned


def extract_locations(text: str) -> List[str]:
    """Extract an ordered, duplicate-free list of place names from assistant text."""
    return clean_locations(c.text for c in find_candidates(text))
