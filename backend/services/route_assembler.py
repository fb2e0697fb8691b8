"""
Build renderable map primitives (markers, polyline, viewport) from a RouteResult.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from domain.models import Bounds, LatLng, ResolutionTier, RouteResult, StopRole
from services.geocoding import compute_centroid

ORIGIN_COLOR = "#22c55e"
INTERMEDIATE_COLOR = "#3b82f6"
DESTINATION_COLOR = "#ef4444"
ROUTE_COLOR = "#3b82f6"

ENDPOINT_MARKER_SIZE = 20
INTERMEDIATE_MARKER_SIZE = 16
ENDPOINT_Z_INDEX = 1000
INTERMEDIATE_Z_INDEX = 500

ROUTE_ZOOM = 7
SINGLE_POINT_ZOOM = 13

_MARKER_STYLE = {
    StopRole.ORIGIN: (ORIGIN_COLOR, ENDPOINT_MARKER_SIZE, ENDPOINT_Z_INDEX),
    StopRole.INTERMEDIATE: (INTERMEDIATE_COLOR, INTERMEDIATE_MARKER_SIZE, INTERMEDIATE_Z_INDEX),
    StopRole.DESTINATION: (DESTINATION_COLOR, ENDPOINT_MARKER_SIZE, ENDPOINT_Z_INDEX),
}


@dataclass
class MapMarker:
    position: LatLng
    role: StopRole
    label: str
    title: str
    color: str
    size: int
    z_index: int


@dataclass
class MapPolyline:
    points: List[LatLng]
    color: str = ROUTE_COLOR
    weight: int = 5
    opacity: float = 0.9
    geodesic: bool = False


@dataclass
class MapView:
    tier: ResolutionTier
    markers: List[MapMarker] = field(default_factory=list)
    polyline: Optional[MapPolyline] = None
    viewport: Optional[Bounds] = None  # None: skip fitting, use center/zoom
    center: Optional[LatLng] = None
    zoom: int = ROUTE_ZOOM


def _marker_title(role: StopRole, label: str, stop_number: int) -> str:
    if role == StopRole.ORIGIN:
        return f"Start: {label}"
    if role == StopRole.DESTINATION:
        return f"End: {label}"
    return f"Stop {stop_number}: {label}"


def assemble_map_view(result: RouteResult) -> MapView:
    """Markers for every resolved stop, a connecting path and a viewport."""
    if result.tier == ResolutionTier.NONE:
        raise ValueError("cannot assemble a map view for an unresolved route")

    stops = result.resolved_stops
    markers: List[MapMarker] = []
    intermediate_count = 0
    for stop in stops:
        if stop.role == StopRole.INTERMEDIATE:
            intermediate_count += 1
        color, size, z_index = _MARKER_STYLE[stop.role]
        markers.append(
            MapMarker(
                position=stop.location,
                role=stop.role,
                label=stop.label,
                title=_marker_title(stop.role, stop.label, intermediate_count),
                color=color,
                size=size,
                z_index=z_index,
            )
        )

    polyline = None
    if len(stops) >= 2:
        if result.tier == ResolutionTier.FULL_ROUTE and result.path:
            polyline = MapPolyline(points=list(result.path), weight=5, opacity=0.9, geodesic=False)
        else:
            points = list(result.path) if result.path else [s.location for s in stops]
            polyline = MapPolyline(points=points, weight=4, opacity=0.8, geodesic=True)

    positions = [s.location for s in stops]
    bounds = result.bounds or Bounds.around(positions)
    centroid: Optional[Tuple[float, float]] = compute_centroid(p.as_tuple() for p in positions)
    center = LatLng(*centroid) if centroid else None

    if bounds is None or bounds.is_single_point or len({p.as_tuple() for p in positions}) <= 1:
        return MapView(
            tier=result.tier,
            markers=markers,
            polyline=polyline,
            viewport=None,
            center=center,
            zoom=SINGLE_POINT_ZOOM,
        )
    return MapView(
        tier=result.tier,
        markers=markers,
        polyline=polyline,
        viewport=bounds,
        center=center,
        zoom=ROUTE_ZOOM,
    )
