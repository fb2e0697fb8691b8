from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from domain.models import Bounds, LatLng


class DirectionsStatus(str, Enum):
    # Google Directions status vocabulary, plus UNREACHABLE for transport errors.
    OK = "OK"
    NOT_FOUND = "NOT_FOUND"
    ZERO_RESULTS = "ZERO_RESULTS"
    MAX_WAYPOINTS_EXCEEDED = "MAX_WAYPOINTS_EXCEEDED"
    MAX_ROUTE_LENGTH_EXCEEDED = "MAX_ROUTE_LENGTH_EXCEEDED"
    INVALID_REQUEST = "INVALID_REQUEST"
    OVER_DAILY_LIMIT = "OVER_DAILY_LIMIT"
    OVER_QUERY_LIMIT = "OVER_QUERY_LIMIT"
    REQUEST_DENIED = "REQUEST_DENIED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    UNREACHABLE = "UNREACHABLE"

    @classmethod
    def parse(cls, value: Optional[str]) -> "DirectionsStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN_ERROR


class GeocodeStatus(str, Enum):
    OK = "OK"
    ZERO_RESULTS = "ZERO_RESULTS"
    ERROR = "ERROR"


@dataclass
class DirectionsRequest:
    origin: str
    destination: str
    waypoints: List[str] = field(default_factory=list)
    travel_mode: str = "driving"
    optimize_waypoints: bool = False  # keep the given (narrative) order


@dataclass
class RouteLeg:
    start: LatLng
    end: LatLng
    start_address: Optional[str] = None
    end_address: Optional[str] = None
    distance_m: Optional[int] = None
    duration_s: Optional[int] = None


@dataclass
class DirectionsResult:
    status: DirectionsStatus
    legs: List[RouteLeg] = field(default_factory=list)
    path: List[LatLng] = field(default_factory=list)
    bounds: Optional[Bounds] = None

    @property
    def ok(self) -> bool:
        return self.status == DirectionsStatus.OK


@dataclass
class GeocodeResult:
    status: GeocodeStatus
    location: Optional[LatLng] = None
    display_name: Optional[str] = None  # provider's full label for the match

    @property
    def ok(self) -> bool:
        return self.status == GeocodeStatus.OK and self.location is not None
