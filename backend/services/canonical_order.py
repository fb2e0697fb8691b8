"""
Reorder extracted place names against a known reference route.

Assistant text often lists stops in narrative order that roughly matches a
well-known itinerary. When a reference route is configured, matching names are
pulled into reference order and everything unrecognized follows in its
original relative order. Nothing is dropped.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from services.location_extractor import normalize_place_key
from settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CanonicalPlace:
    name: str
    aliases: Tuple[str, ...] = ()

    def keys(self) -> List[str]:
        return [normalize_place_key(n) for n in (self.name, *self.aliases) if n]


@dataclass(frozen=True)
class CanonicalRoute:
    name: str
    places: Tuple[CanonicalPlace, ...] = field(default_factory=tuple)

    def __bool__(self) -> bool:
        return bool(self.places)


PRESETS: Dict[str, CanonicalRoute] = {
    "pacific_coast": CanonicalRoute(
        name="pacific_coast",
        places=(
            CanonicalPlace("San Francisco", ("SF", "San Fran")),
            CanonicalPlace("Half Moon Bay"),
            CanonicalPlace("Santa Cruz"),
            CanonicalPlace("Monterey"),
            CanonicalPlace("Carmel-by-the-Sea", ("Carmel",)),
            CanonicalPlace("Big Sur"),
            CanonicalPlace("San Simeon", ("Hearst Castle",)),
            CanonicalPlace("Cambria"),
            CanonicalPlace("San Luis Obispo", ("SLO",)),
            CanonicalPlace("Pismo Beach"),
            CanonicalPlace("Santa Barbara"),
            CanonicalPlace("Malibu"),
            CanonicalPlace("Santa Monica"),
            CanonicalPlace("Los Angeles", ("LA", "L.A.")),
        ),
    ),
}


def resolve_canonical_order(
    places: Sequence[str],
    reference: Optional[CanonicalRoute] = None,
) -> List[str]:
    """
    Return places reordered to follow the reference route.

    Matching is case-insensitive against the canonical name or any alias. The
    input spelling is kept in the output.
    """
    if not reference:
        return list(places)

    consumed = [False] * len(places)
    keys = [normalize_place_key(p) for p in places]
    ordered: List[str] = []
    for canonical in reference.places:
        wanted = set(canonical.keys())
        for idx, key in enumerate(keys):
            if not consumed[idx] and key in wanted:
                consumed[idx] = True
                ordered.append(places[idx])
                break
    ordered.extend(p for idx, p in enumerate(places) if not consumed[idx])
    return ordered


def load_canonical_route(path: str) -> CanonicalRoute:
    """Load a route from a JSON list of {"name": ..., "aliases": [...]} objects."""
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    places = tuple(
        CanonicalPlace(str(item["name"]), tuple(str(a) for a in item.get("aliases") or ()))
        for item in data
        if item.get("name")
    )
    return CanonicalRoute(name=path, places=places)


def get_configured_canonical_route() -> Optional[CanonicalRoute]:
    """Canonical route from settings: a JSON file wins over a named preset."""
    if settings.CANONICAL_ROUTE_PATH:
        try:
            return load_canonical_route(settings.CANONICAL_ROUTE_PATH)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Could not load canonical route %s: %s", settings.CANONICAL_ROUTE_PATH, exc)
    preset = settings.CANONICAL_ROUTE_PRESET
    if not preset:
        return None
    route = PRESETS.get(preset)
    if route is None:
        logger.warning("Unknown CANONICAL_ROUTE_PRESET %r; no reordering applied", preset)
    return route
