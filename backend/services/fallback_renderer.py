"""
Schematic route preview used when no geographic data could be resolved or the
map surface failed. Always carries a deep link to Google Maps when one can be
built.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence
from urllib.parse import quote

from domain.models import PlaceReference, StopRole
from services.route_assembler import DESTINATION_COLOR, INTERMEDIATE_COLOR, ORIGIN_COLOR

GOOGLE_MAPS_DIR_URL = "https://www.google.com/maps/dir/"
GOOGLE_MAPS_SEARCH_URL = "https://www.google.com/maps/search/?api=1&query="
MAX_LABEL_CHARS = 15

# Characters JavaScript's encodeURIComponent leaves unescaped.
_URI_COMPONENT_SAFE = "-_.!~*'()"

KIND_SCHEMATIC = "schematic"
KIND_SINGLE = "single"
KIND_LINK_ONLY = "link_only"


@dataclass
class SchematicNode:
    label: str
    display_label: str
    role: StopRole
    color: str
    is_start: bool = False
    is_end: bool = False


@dataclass
class FallbackView:
    kind: str
    nodes: List[SchematicNode] = field(default_factory=list)
    deep_link: Optional[str] = None


def truncate_label(label: str, max_chars: int = MAX_LABEL_CHARS) -> str:
    if len(label) > max_chars:
        return f"{label[:max_chars]}..."
    return label


def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def build_route_deep_link(
    place_names: Sequence[str],
    references: Sequence[PlaceReference] = (),
) -> Optional[str]:
    """Google Maps link for the ordered places, or the first reference's own link."""
    if len(place_names) >= 2:
        return GOOGLE_MAPS_DIR_URL + "/".join(encode_uri_component(p) for p in place_names)
    if len(place_names) == 1:
        return GOOGLE_MAPS_SEARCH_URL + encode_uri_component(place_names[0])
    for ref in references:
        if ref.uri:
            return ref.uri
    return None


def build_fallback_view(
    place_names: Sequence[str],
    references: Sequence[PlaceReference] = (),
) -> FallbackView:
    deep_link = build_route_deep_link(place_names, references)

    if len(place_names) == 1:
        name = place_names[0]
        node = SchematicNode(
            label=name,
            display_label=name,
            role=StopRole.ORIGIN,
            color=INTERMEDIATE_COLOR,
        )
        return FallbackView(kind=KIND_SINGLE, nodes=[node], deep_link=deep_link)

    if not place_names:
        return FallbackView(kind=KIND_LINK_ONLY, deep_link=deep_link)

    last = len(place_names) - 1
    nodes: List[SchematicNode] = []
    for idx, name in enumerate(place_names):
        if idx == 0:
            role, color = StopRole.ORIGIN, ORIGIN_COLOR
        elif idx == last:
            role, color = StopRole.DESTINATION, DESTINATION_COLOR
        else:
            role, color = StopRole.INTERMEDIATE, INTERMEDIATE_COLOR
        nodes.append(
            SchematicNode(
                label=name,
                display_label=truncate_label(name),
                role=role,
                color=color,
                is_start=idx == 0,
                is_end=idx == last,
            )
        )
    return FallbackView(kind=KIND_SCHEMATIC, nodes=nodes, deep_link=deep_link)
