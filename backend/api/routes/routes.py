"""
Route map API routes.

Extracts place names from assistant answers and resolves them into a map view
or a schematic fallback.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel, Field

from domain.models import Bounds, ChatMessage, LatLng, MessageSender
from services.route_pipeline import RoutePipeline, RouteView

router = APIRouter()
logger = logging.getLogger(__name__)

_pipeline: Optional[RoutePipeline] = None


def get_pipeline() -> RoutePipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = RoutePipeline()
    return _pipeline


class ExtractRequest(BaseModel):
    text: str


class ExtractResponse(BaseModel):
    places: List[str]


class ResolveRequest(BaseModel):
    message_id: Optional[str] = None
    text: str = ""
    is_thinking: bool = False
    grounding_chunks: List[Dict[str, Any]] = Field(default_factory=list)


class LatLngSchema(BaseModel):
    lat: float
    lng: float


class BoundsSchema(BaseModel):
    south_west: LatLngSchema
    north_east: LatLngSchema


class MarkerSchema(BaseModel):
    position: LatLngSchema
    role: str
    label: str
    title: str
    color: str
    size: int
    z_index: int


class PolylineSchema(BaseModel):
    points: List[LatLngSchema]
    color: str
    weight: int
    opacity: float
    geodesic: bool


class MapViewSchema(BaseModel):
    markers: List[MarkerSchema]
    polyline: Optional[PolylineSchema] = None
    viewport: Optional[BoundsSchema] = None
    center: Optional[LatLngSchema] = None
    zoom: int


class SchematicNodeSchema(BaseModel):
    label: str
    display_label: str
    role: str
    color: str
    is_start: bool
    is_end: bool


class FallbackViewSchema(BaseModel):
    kind: str
    nodes: List[SchematicNodeSchema]
    deep_link: Optional[str] = None


class RouteViewResponse(BaseModel):
    message_id: str
    tier: str
    places: List[str]
    map: Optional[MapViewSchema] = None
    fallback: Optional[FallbackViewSchema] = None
    deep_link: Optional[str] = None
    image_path: Optional[str] = None


def _latlng(point: Optional[LatLng]) -> Optional[LatLngSchema]:
    if point is None:
        return None
    return LatLngSchema(lat=point.lat, lng=point.lng)


def _bounds(bounds: Optional[Bounds]) -> Optional[BoundsSchema]:
    if bounds is None:
        return None
    return BoundsSchema(south_west=_latlng(bounds.south_west), north_east=_latlng(bounds.north_east))


def route_view_to_response(view: RouteView) -> RouteViewResponse:
    """Convert a pipeline RouteView to the API response."""
    map_schema = None
    if view.map is not None:
        polyline = view.map.polyline
        map_schema = MapViewSchema(
            markers=[
                MarkerSchema(
                    position=_latlng(m.position),
                    role=m.role.value,
                    label=m.label,
                    title=m.title,
                    color=m.color,
                    size=m.size,
                    z_index=m.z_index,
                )
                for m in view.map.markers
            ],
            polyline=PolylineSchema(
                points=[_latlng(p) for p in polyline.points],
                color=polyline.color,
                weight=polyline.weight,
                opacity=polyline.opacity,
                geodesic=polyline.geodesic,
            )
            if polyline
            else None,
            viewport=_bounds(view.map.viewport),
            center=_latlng(view.map.center),
            zoom=view.map.zoom,
        )

    fallback_schema = None
    if view.fallback is not None:
        fallback_schema = FallbackViewSchema(
            kind=view.fallback.kind,
            nodes=[
                SchematicNodeSchema(
                    label=n.label,
                    display_label=n.display_label,
                    role=n.role.value,
                    color=n.color,
                    is_start=n.is_start,
                    is_end=n.is_end,
                )
                for n in view.fallback.nodes
            ],
            deep_link=view.fallback.deep_link,
        )

    return RouteViewResponse(
        message_id=view.message_id,
        tier=view.tier.value,
        places=view.place_names,
        map=map_schema,
        fallback=fallback_schema,
        deep_link=view.deep_link,
        image_path=view.image_path,
    )


@router.post("/extract", response_model=ExtractResponse)
async def extract_places(data: ExtractRequest):
    """Place names found in the text, in route order."""
    return ExtractResponse(places=get_pipeline().extract_places(data.text))


@router.post("/resolve", response_model=RouteViewResponse, responses={204: {"description": "Nothing to route"}})
async def resolve_route(data: ResolveRequest):
    """
    Resolve an assistant message into a route view.

    Thinking placeholders and messages without any place information return
    204 so the client renders nothing.
    """
    if not data.text.strip() and not data.grounding_chunks and not data.is_thinking:
        raise HTTPException(status_code=400, detail="Message has no text or grounding chunks")

    message = ChatMessage(
        text=data.text,
        sender=MessageSender.AI,
        grounding_chunks=data.grounding_chunks,
        is_thinking=data.is_thinking,
    )
    if data.message_id:
        message.id = data.message_id

    view = await get_pipeline().run(message)
    if view is None:
        return Response(status_code=204)
    logger.debug("Resolved message %s at tier %s", view.message_id, view.tier.value)
    return route_view_to_response(view)
