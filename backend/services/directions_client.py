"""
Multi-stop route client for the Google Directions web service.
"""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, List, Optional

import polyline
import requests

from domain.models import Bounds, LatLng
from services.provider_types import DirectionsRequest, DirectionsResult, DirectionsStatus, RouteLeg
from settings import settings

DIRECTIONS_BASE_URL = os.getenv(
    "DIRECTIONS_BASE_URL", "https://maps.googleapis.com/maps/api/directions/json"
)


def _latlng(raw: Any) -> LatLng:
    return LatLng(float(raw["lat"]), float(raw["lng"]))


def _decode_path(encoded: Optional[str]) -> List[LatLng]:
    if not encoded:
        return []
    return [LatLng(lat, lng) for lat, lng in polyline.decode(encoded)]


class DirectionsClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_MAPS_API_KEY
        self.base_url = (base_url or DIRECTIONS_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.ROUTE_HTTP_TIMEOUT
        self.session = session or requests.Session()
        self.logger = logging.getLogger(__name__)

    def _build_params(self, request: DirectionsRequest) -> dict:
        params = {
            "origin": request.origin,
            "destination": request.destination,
            "mode": request.travel_mode,
            "key": self.api_key,
        }
        if request.waypoints:
            prefix = "optimize:true" if request.optimize_waypoints else "optimize:false"
            params["waypoints"] = "|".join([prefix, *request.waypoints])
        return params

    def _parse(self, data: dict) -> DirectionsResult:
        status = DirectionsStatus.parse(data.get("status"))
        if status != DirectionsStatus.OK:
            return DirectionsResult(status=status)
        routes = data.get("routes") or []
        if not routes:
            return DirectionsResult(status=DirectionsStatus.ZERO_RESULTS)
        route = routes[0]

        legs: List[RouteLeg] = []
        for leg in route.get("legs") or []:
            legs.append(
                RouteLeg(
                    start=_latlng(leg["start_location"]),
                    end=_latlng(leg["end_location"]),
                    start_address=leg.get("start_address"),
                    end_address=leg.get("end_address"),
                    distance_m=(leg.get("distance") or {}).get("value"),
                    duration_s=(leg.get("duration") or {}).get("value"),
                )
            )

        bounds = None
        raw_bounds = route.get("bounds") or {}
        if raw_bounds.get("southwest") and raw_bounds.get("northeast"):
            bounds = Bounds(
                south_west=_latlng(raw_bounds["southwest"]),
                north_east=_latlng(raw_bounds["northeast"]),
            )
        path = _decode_path((route.get("overview_polyline") or {}).get("points"))
        return DirectionsResult(status=status, legs=legs, path=path, bounds=bounds)

    def route(self, request: DirectionsRequest) -> DirectionsResult:
        """Issue one directions request. Never raises; failures map to a status."""
        if not self.api_key:
            self.logger.warning("GOOGLE_MAPS_API_KEY not set; skipping directions request")
            return DirectionsResult(status=DirectionsStatus.REQUEST_DENIED)

        try:
            resp = self.session.get(self.base_url, params=self._build_params(request), timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as exc:
            self.logger.warning("Directions request failed: %s", exc)
            return DirectionsResult(status=DirectionsStatus.UNREACHABLE)
        except ValueError as exc:
            self.logger.warning("Directions response was not JSON: %s", exc)
            return DirectionsResult(status=DirectionsStatus.UNKNOWN_ERROR)

        try:
            result = self._parse(data)
        except (KeyError, TypeError, ValueError, IndexError) as exc:
            self.logger.warning("Directions response could not be parsed: %s", exc)
            return DirectionsResult(status=DirectionsStatus.UNKNOWN_ERROR)

        self.logger.debug(
            "DirectionsClient.route: origin=%r destination=%r waypoints=%d status=%s legs=%d",
            request.origin,
            request.destination,
            len(request.waypoints),
            result.status.value,
            len(result.legs),
        )
        return result

    async def route_async(self, request: DirectionsRequest) -> DirectionsResult:
        return await asyncio.to_thread(self.route, request)


_default_directions_client: Optional[DirectionsClient] = None


def get_default_directions_client() -> DirectionsClient:
    global _default_directions_client
    if _default_directions_client is None:
        _default_directions_client = DirectionsClient()
    return _default_directions_client
