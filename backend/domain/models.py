"""
Core domain models for the route pipeline.
These are framework-agnostic and can be used across all services.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import uuid


class MessageSender(str, Enum):
    """Who wrote a chat message."""
    USER = "user"
    AI = "ai"


class StopRole(str, Enum):
    """Position of a stop within a resolved route."""
    ORIGIN = "origin"
    INTERMEDIATE = "intermediate"
    DESTINATION = "destination"


class ResolutionTier(str, Enum):
    """
    Degrade cascade of route resolution, best first.

    - FULL_ROUTE: one multi-stop directions request succeeded
    - GEOCODED_POINTS: per-place lookups resolved at least one point
    - NONE: nothing geographic could be resolved
    """
    FULL_ROUTE = "full_route"
    GEOCODED_POINTS = "geocoded_points"
    NONE = "none"


@dataclass(frozen=True)
class LatLng:
    lat: float
    lng: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.lat, self.lng)


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned lat/lng box (south-west and north-east corners)."""
    south_west: LatLng
    north_east: LatLng

    @property
    def is_single_point(self) -> bool:
        return (
            self.south_west.lat == self.north_east.lat
            and self.south_west.lng == self.north_east.lng
        )

    @classmethod
    def around(cls, points: List[LatLng]) -> Optional["Bounds"]:
        if not points:
            return None
        lats = [p.lat for p in points]
        lngs = [p.lng for p in points]
        return cls(
            south_west=LatLng(min(lats), min(lngs)),
            north_east=LatLng(max(lats), max(lngs)),
        )


@dataclass(frozen=True)
class RawCandidate:
    """A span captured from assistant text by one pattern rule."""
    text: str
    rule: str
    position: int = 0


@dataclass(frozen=True)
class PlaceReference:
    """Structured place hint attached to an assistant message (a maps grounding chunk)."""
    provider_id: Optional[str]
    title: str
    uri: Optional[str] = None
    review_snippet: Optional[str] = None


@dataclass(frozen=True)
class ResolvedStop:
    role: StopRole
    label: str
    location: Optional[LatLng] = None  # None means unresolved
    place_id: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.location is not None


@dataclass(frozen=True)
class RouteResult:
    """Output of route resolution. Built once per message, never mutated."""
    tier: ResolutionTier
    stops: Tuple[ResolvedStop, ...] = ()
    path: Optional[Tuple[LatLng, ...]] = None
    bounds: Optional[Bounds] = None

    @classmethod
    def unresolved(cls) -> "RouteResult":
        return cls(tier=ResolutionTier.NONE)

    @property
    def resolved_stops(self) -> List[ResolvedStop]:
        return [s for s in self.stops if s.is_resolved]


@dataclass
class ChatMessage:
    """An assistant or user message as handed over by the chat layer."""
    text: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    sender: MessageSender = MessageSender.AI
    timestamp: datetime = field(default_factory=datetime.utcnow)
    grounding_chunks: List[Dict[str, Any]] = field(default_factory=list)
    is_thinking: bool = False
