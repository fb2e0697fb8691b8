from fastapi import FastAPI
from fastapi.testclient import TestClient
from unittest.mock import patch

from api.routes import routes as routes_router
from domain.models import LatLng, ResolutionTier, ResolvedStop, RouteResult, StopRole
from services.canonical_order import PRESETS
from services.route_pipeline import RoutePipeline

ANSWER = "1. **Los Angeles**\n2. **San Francisco**\n3. **Big Sur**\n"


class StubEngine:
    def __init__(self, result):
        self.result = result
        self.calls = []

    async def resolve(self, places, references=()):
        self.calls.append(list(places))
        return self.result


def _client() -> TestClient:
    app = FastAPI()
    app.include_router(routes_router.router, prefix="/routes")
    return TestClient(app)


def _pipeline(result):
    return RoutePipeline(
        engine=StubEngine(result),
        canonical_route=PRESETS["pacific_coast"],
        render_enabled=False,
    )


def _geocoded_result():
    return RouteResult(
        tier=ResolutionTier.GEOCODED_POINTS,
        stops=(
            ResolvedStop(role=StopRole.ORIGIN, label="San Francisco", location=LatLng(37.77, -122.42)),
            ResolvedStop(role=StopRole.DESTINATION, label="Los Angeles", location=LatLng(34.05, -118.24)),
        ),
        path=(LatLng(37.77, -122.42), LatLng(34.05, -118.24)),
    )


def test_extract_endpoint_returns_ordered_places():
    with patch.object(routes_router, "get_pipeline", return_value=_pipeline(RouteResult.unresolved())):
        resp = _client().post("/routes/extract", json={"text": ANSWER})
    assert resp.status_code == 200
    assert resp.json() == {"places": ["San Francisco", "Big Sur", "Los Angeles"]}


def test_resolve_endpoint_returns_map_view():
    with patch.object(routes_router, "get_pipeline", return_value=_pipeline(_geocoded_result())):
        resp = _client().post("/routes/resolve", json={"message_id": "msg-7", "text": ANSWER})

    assert resp.status_code == 200
    data = resp.json()
    assert data["message_id"] == "msg-7"
    assert data["tier"] == "geocoded_points"
    assert data["places"] == ["San Francisco", "Big Sur", "Los Angeles"]
    assert [m["title"] for m in data["map"]["markers"]] == ["Start: San Francisco", "End: Los Angeles"]
    assert data["map"]["polyline"]["geodesic"] is True
    assert data["fallback"] is None
    assert data["deep_link"].startswith("https://www.google.com/maps/dir/")


def test_resolve_endpoint_returns_fallback_when_unresolved():
    with patch.object(routes_router, "get_pipeline", return_value=_pipeline(RouteResult.unresolved())):
        resp = _client().post("/routes/resolve", json={"text": ANSWER})

    assert resp.status_code == 200
    data = resp.json()
    assert data["tier"] == "none"
    assert data["map"] is None
    assert [n["role"] for n in data["fallback"]["nodes"]] == ["origin", "intermediate", "destination"]


def test_resolve_thinking_message_is_no_content():
    with patch.object(routes_router, "get_pipeline", return_value=_pipeline(_geocoded_result())):
        resp = _client().post("/routes/resolve", json={"text": ANSWER, "is_thinking": True})
    assert resp.status_code == 204


def test_resolve_message_without_places_is_no_content():
    with patch.object(routes_router, "get_pipeline", return_value=_pipeline(_geocoded_result())):
        resp = _client().post("/routes/resolve", json={"text": "Have a great trip!"})
    assert resp.status_code == 204


def test_resolve_empty_message_is_bad_request():
    resp = _client().post("/routes/resolve", json={"text": "   "})
    assert resp.status_code == 400


def test_resolve_malformed_body_is_unprocessable():
    resp = _client().post("/routes/resolve", json={"text": ["not", "a", "string"]})
    assert resp.status_code == 422
