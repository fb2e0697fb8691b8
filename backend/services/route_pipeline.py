"""
Per-message route pipeline.

    text -> extract_locations -> resolve_canonical_order -> RouteResolutionEngine
         -> assemble_map_view (+ static map)   when something resolved
         -> build_fallback_view (+ schematic) when nothing did, or the map failed

RouteMapSession keeps the latest view for one conversation and drops results
of invocations that were superseded while their lookups were still running.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from domain.models import ChatMessage, MessageSender, PlaceReference, ResolutionTier, RouteResult
from services.canonical_order import CanonicalRoute, get_configured_canonical_route, resolve_canonical_order
from services.directions_client import get_default_directions_client
from services.fallback_renderer import FallbackView, build_fallback_view, build_route_deep_link
from services.geocoding import geocode_address_async
from services.location_extractor import extract_locations
from services.map_route_renderer import render_route_map, render_schematic_map
from services.route_assembler import MapView, assemble_map_view
from services.route_resolution import RouteResolutionEngine
from settings import settings

logger = logging.getLogger(__name__)

MapSurface = Callable[[str, MapView], Tuple[str, str]]
SchematicSurface = Callable[[str, FallbackView], Tuple[str, str]]


def place_references_from_chunks(chunks: Optional[Iterable[Dict[str, Any]]]) -> List[PlaceReference]:
    """Parse maps grounding chunks into PlaceReferences; web chunks are skipped."""
    references: List[PlaceReference] = []
    for chunk in chunks or []:
        if not isinstance(chunk, dict):
            continue
        maps = chunk.get("maps")
        if not isinstance(maps, dict):
            continue
        title = (maps.get("title") or "").strip()
        uri = maps.get("uri") or None
        if not title and not uri:
            continue
        snippet = None
        sources = maps.get("placeAnswerSources") or []
        if sources and isinstance(sources[0], dict):
            reviews = sources[0].get("reviewSnippets") or []
            if reviews and isinstance(reviews[0], dict):
                snippet = reviews[0].get("content")
        references.append(
            PlaceReference(
                provider_id=maps.get("placeId") or None,
                title=title,
                uri=uri,
                review_snippet=snippet,
            )
        )
    return references


@dataclass
class RouteView:
    """What the chat UI renders under an assistant message."""
    message_id: str
    tier: ResolutionTier
    place_names: List[str] = field(default_factory=list)
    references: List[PlaceReference] = field(default_factory=list)
    result: Optional[RouteResult] = None
    map: Optional[MapView] = None
    fallback: Optional[FallbackView] = None
    deep_link: Optional[str] = None
    image_path: Optional[str] = None


class RoutePipeline:
    def __init__(
        self,
        engine: Optional[RouteResolutionEngine] = None,
        canonical_route: Optional[CanonicalRoute] = None,
        render_enabled: Optional[bool] = None,
        map_surface: MapSurface = render_route_map,
        schematic_surface: SchematicSurface = render_schematic_map,
    ):
        if engine is None:
            engine = RouteResolutionEngine(
                route_query=get_default_directions_client().route_async,
                address_lookup=geocode_address_async,
            )
        self.engine = engine
        self.canonical_route = canonical_route if canonical_route is not None else get_configured_canonical_route()
        self.render_enabled = settings.ROUTE_MAP_RENDER_ENABLED if render_enabled is None else render_enabled
        self.map_surface = map_surface
        self.schematic_surface = schematic_surface

    def extract_places(self, text: str) -> List[str]:
        return resolve_canonical_order(extract_locations(text), self.canonical_route)

    def _fallback(self, view: RouteView) -> RouteView:
        view.fallback = build_fallback_view(view.place_names, view.references)
        if self.render_enabled:
            rel_path, _ = self.schematic_surface(view.message_id, view.fallback)
            view.image_path = rel_path or None
        return view

    async def run(self, message: ChatMessage) -> Optional[RouteView]:
        """Resolve one message into a RouteView, or None if there is nothing to draw."""
        if message.is_thinking or message.sender != MessageSender.AI:
            return None

        place_names = self.extract_places(message.text)
        references = place_references_from_chunks(message.grounding_chunks)
        if not place_names and not references:
            return None

        result = await self.engine.resolve(place_names, references)
        view = RouteView(
            message_id=message.id,
            tier=result.tier,
            place_names=place_names,
            references=references,
            result=result,
            deep_link=build_route_deep_link(place_names, references),
        )
        if result.tier == ResolutionTier.NONE:
            return self._fallback(view)

        view.map = assemble_map_view(result)
        if self.render_enabled:
            rel_path, _ = self.map_surface(message.id, view.map)
            if not rel_path:
                logger.warning("Map surface failed for message %s; showing schematic fallback", message.id)
                return self._fallback(view)
            view.image_path = rel_path
        return view


class RouteMapSession:
    """
    Latest route view for one conversation.

    Every update() takes a new generation number; when its pipeline run
    finishes after a newer update() started, the result is discarded.
    """

    def __init__(self, pipeline: RoutePipeline):
        self.pipeline = pipeline
        self.current: Optional[RouteView] = None
        self.last_message: Optional[ChatMessage] = None
        self._generation = 0

    async def update(self, message: ChatMessage) -> Optional[RouteView]:
        if message.is_thinking:
            return None
        self._generation += 1
        generation = self._generation
        self.last_message = message

        view = await self.pipeline.run(message)
        if generation != self._generation:
            logger.info("Discarding stale route view for message %s", message.id)
            return None
        self.current = view
        return view

    async def refresh(self) -> Optional[RouteView]:
        """Re-run the last message, e.g. once the route provider becomes available."""
        if self.last_message is None:
            return None
        return await self.update(self.last_message)
