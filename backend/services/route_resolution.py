"""
Route resolution: turn an ordered list of place names into a RouteResult.

Resolution walks an explicit degrade cascade, first success wins:

    FULL_ROUTE       one multi-stop directions request (needs >= 2 places)
    GEOCODED_POINTS  one lookup per place, fanned out concurrently
    NONE             nothing resolved; the caller shows the schematic fallback

Every failure path ends in a RouteResult. Collaborator errors (non-OK status
or an exception) only move the cascade to the next tier.
"""
from __future__ import annotations

import asyncio
import difflib
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from domain.models import (
    Bounds,
    LatLng,
    PlaceReference,
    ResolutionTier,
    ResolvedStop,
    RouteResult,
    StopRole,
)
from services.location_extractor import normalize_place_key
from services.provider_types import DirectionsRequest, DirectionsResult, GeocodeResult
from settings import settings

logger = logging.getLogger(__name__)

RouteQuery = Callable[[DirectionsRequest], Awaitable[DirectionsResult]]
AddressLookup = Callable[[str], Awaitable[GeocodeResult]]

TITLE_SIMILARITY_THRESHOLD = 0.8
# Shorter keys ("LA", "SF") only correlate on an exact match.
MIN_CONTAINMENT_KEY_CHARS = 4

_TOKEN_RE = re.compile(r"\w+")


def _is_token_affix(shorter: List[str], longer: List[str]) -> bool:
    n = len(shorter)
    if not n or n > len(longer):
        return False
    return longer[:n] == shorter or longer[-n:] == shorter


def titles_match(name: str, title: str) -> bool:
    """
    Title similarity between an extracted name and a reference title.

    Equal keys always match. Otherwise both keys need at least
    MIN_CONTAINMENT_KEY_CHARS characters, and one must be a whole-token
    prefix or suffix of the other ("Monterey" / "Monterey Bay Aquarium") or
    close enough by difflib ratio ("Santa Barbra" / "Santa Barbara").
    """
    a = normalize_place_key(name)
    b = normalize_place_key(title)
    if not a or not b:
        return False
    if a == b:
        return True
    if min(len(a), len(b)) < MIN_CONTAINMENT_KEY_CHARS:
        return False
    tokens_a = _TOKEN_RE.findall(a)
    tokens_b = _TOKEN_RE.findall(b)
    if tokens_a == tokens_b:
        return True
    if len(tokens_a) <= len(tokens_b):
        affix = _is_token_affix(tokens_a, tokens_b)
    else:
        affix = _is_token_affix(tokens_b, tokens_a)
    if affix:
        return True
    return difflib.SequenceMatcher(None, a, b).ratio() >= TITLE_SIMILARITY_THRESHOLD


def correlate_references(
    places: Sequence[str],
    references: Sequence[PlaceReference],
) -> List[Optional[PlaceReference]]:
    """For each place, the first reference with a similar title (each used once)."""
    used: set[int] = set()
    matches: List[Optional[PlaceReference]] = []
    for name in places:
        found = None
        for idx, ref in enumerate(references):
            if idx in used or not ref.title:
                continue
            if titles_match(name, ref.title):
                found = ref
                used.add(idx)
                break
        matches.append(found)
    return matches


def seed_places_from_references(references: Sequence[PlaceReference]) -> List[str]:
    """Use reference titles as the place list when nothing was extracted from text."""
    seeded: List[str] = []
    seen: set[str] = set()
    for ref in references:
        title = (ref.title or "").strip()
        key = normalize_place_key(title)
        if len(title) < 2 or key in seen:
            continue
        seen.add(key)
        seeded.append(title)
    return seeded


def assign_roles(count: int) -> List[StopRole]:
    """Role for each of `count` resolved stops: origin, intermediates, destination."""
    if count <= 0:
        return []
    if count == 1:
        return [StopRole.ORIGIN]
    return [StopRole.ORIGIN] + [StopRole.INTERMEDIATE] * (count - 2) + [StopRole.DESTINATION]


@dataclass
class _Attempt:
    """Per-call resolution input; never shared between calls."""
    places: List[str]
    references: List[Optional[PlaceReference]]

    def query_token(self, index: int) -> str:
        ref = self.references[index]
        if ref is not None and ref.provider_id:
            return f"place_id:{ref.provider_id}"
        return self.places[index]

    def place_id(self, index: int) -> Optional[str]:
        ref = self.references[index]
        return ref.provider_id if ref is not None else None


class GeocodeFanOut:
    """
    N concurrent lookups reassembled in request order.

    Each lookup writes into its own slot (index = position in the place list)
    and bumps the settle counter whether it succeeded or failed. Results are
    read only after every slot has settled, so completion order never affects
    the final stop order.
    """

    def __init__(self, places: Sequence[str], lookup: AddressLookup):
        self.places = list(places)
        self.lookup = lookup
        self.slots: List[Optional[LatLng]] = [None] * len(self.places)
        self.settled = 0

    async def _lookup_into_slot(self, index: int) -> None:
        name = self.places[index]
        try:
            result = await self.lookup(name)
            if result is not None and result.ok:
                self.slots[index] = result.location
            else:
                status = result.status.value if result is not None else "no result"
                logger.info("Geocode failed for %r: %s", name, status)
        except Exception as exc:
            logger.warning("Geocode lookup raised for %r: %s", name, exc)
        finally:
            self.settled += 1

    async def run(self) -> List[Optional[LatLng]]:
        tasks = [asyncio.ensure_future(self._lookup_into_slot(i)) for i in range(len(self.places))]
        if tasks:
            await asyncio.gather(*tasks)
        if self.settled != len(self.places):
            logger.warning("Geocode fan-out settled %d of %d lookups", self.settled, len(self.places))
        return list(self.slots)


class RouteResolutionEngine:
    """Drives the FULL_ROUTE -> GEOCODED_POINTS -> NONE cascade."""

    def __init__(
        self,
        route_query: RouteQuery,
        address_lookup: AddressLookup,
        max_waypoints: Optional[int] = None,
        travel_mode: Optional[str] = None,
    ):
        self.route_query = route_query
        self.address_lookup = address_lookup
        self.max_waypoints = max(0, max_waypoints if max_waypoints is not None else settings.ROUTE_MAX_WAYPOINTS)
        self.travel_mode = travel_mode or settings.ROUTE_TRAVEL_MODE
        self._handlers: Dict[ResolutionTier, Callable[[_Attempt], Awaitable[Optional[RouteResult]]]] = {
            ResolutionTier.FULL_ROUTE: self._resolve_full_route,
            ResolutionTier.GEOCODED_POINTS: self._resolve_geocoded_points,
        }

    # Tier entry conditions

    @staticmethod
    def tier_applies(tier: ResolutionTier, place_count: int) -> bool:
        if tier == ResolutionTier.FULL_ROUTE:
            return place_count >= 2
        if tier == ResolutionTier.GEOCODED_POINTS:
            return place_count >= 1
        return True

    async def resolve(
        self,
        places: Sequence[str],
        references: Sequence[PlaceReference] = (),
    ) -> RouteResult:
        """Resolve places (or, failing that, reference titles) into a RouteResult."""
        place_list = list(places)
        if not place_list:
            place_list = seed_places_from_references(references)
        if not place_list:
            return RouteResult.unresolved()

        attempt = _Attempt(places=place_list, references=correlate_references(place_list, references))

        for tier in (ResolutionTier.FULL_ROUTE, ResolutionTier.GEOCODED_POINTS):
            if not self.tier_applies(tier, len(place_list)):
                continue
            try:
                result = await self._handlers[tier](attempt)
            except Exception as exc:
                logger.warning("Route tier %s failed unexpectedly: %s", tier.value, exc)
                result = None
            if result is not None:
                print(f"[ROUTE] resolved {len(place_list)} places at tier {tier.value}")
                return result
            print(f"[ROUTE] tier {tier.value} failed for {len(place_list)} places; degrading")
        return RouteResult.unresolved()

    # Tier handlers: return a RouteResult on success, None to fall through.

    def build_directions_request(self, attempt: _Attempt) -> Tuple[DirectionsRequest, List[int]]:
        """Request for the full-route tier plus the place indices of the waypoints sent."""
        last = len(attempt.places) - 1
        middle = list(range(1, last))
        kept = middle[: self.max_waypoints]
        if len(kept) < len(middle):
            logger.info(
                "Dropping %d waypoints over the provider limit of %d",
                len(middle) - len(kept),
                self.max_waypoints,
            )
        request = DirectionsRequest(
            origin=attempt.query_token(0),
            destination=attempt.query_token(last),
            waypoints=[attempt.query_token(i) for i in kept],
            travel_mode=self.travel_mode,
            optimize_waypoints=False,
        )
        return request, kept

    async def _resolve_full_route(self, attempt: _Attempt) -> Optional[RouteResult]:
        request, kept = self.build_directions_request(attempt)
        response = await self.route_query(request)
        if response is None or not response.ok or not response.legs:
            status = response.status.value if response is not None else "no response"
            logger.info("Directions request failed with %s; falling back to geocoding", status)
            return None

        last = len(attempt.places) - 1
        stop_indices = [0, *kept, last]
        points = [response.legs[0].start] + [leg.end for leg in response.legs]
        roles = assign_roles(len(points))
        stops = []
        for pos, (point, role) in enumerate(zip(points, roles)):
            if role == StopRole.DESTINATION or pos < len(stop_indices) - 1:
                idx = last if role == StopRole.DESTINATION else stop_indices[pos]
                label, place_id = attempt.places[idx], attempt.place_id(idx)
            else:
                label, place_id = response.legs[pos - 1].end_address or f"Stop {pos}", None
            stops.append(ResolvedStop(role=role, label=label, location=point, place_id=place_id))

        return RouteResult(
            tier=ResolutionTier.FULL_ROUTE,
            stops=tuple(stops),
            path=tuple(response.path) if response.path else None,
            bounds=response.bounds,
        )

    async def _resolve_geocoded_points(self, attempt: _Attempt) -> Optional[RouteResult]:
        slots = await GeocodeFanOut(attempt.places, self.address_lookup).run()

        resolved = [(idx, point) for idx, point in enumerate(slots) if point is not None]
        if not resolved:
            return None

        roles = assign_roles(len(resolved))
        stops = tuple(
            ResolvedStop(
                role=role,
                label=attempt.places[idx],
                location=point,
                place_id=attempt.place_id(idx),
            )
            for (idx, point), role in zip(resolved, roles)
        )
        points = [point for _, point in resolved]
        return RouteResult(
            tier=ResolutionTier.GEOCODED_POINTS,
            stops=stops,
            path=tuple(points) if len(points) >= 2 else None,
            bounds=Bounds.around(points),
        )
