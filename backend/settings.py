import os

# Basic settings helper to read environment configuration.


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_int(val: str | None, default: int) -> int:
    if val is None or not val.strip():
        return default
    try:
        return int(val)
    except ValueError:
        return default


class Settings:
    def __init__(self) -> None:
        # Google Directions accepts at most 25 intermediate waypoints per request.
        self.ROUTE_MAX_WAYPOINTS: int = _as_int(os.getenv("ROUTE_MAX_WAYPOINTS"), 25)
        self.ROUTE_TRAVEL_MODE: str = os.getenv("ROUTE_TRAVEL_MODE", "driving")
        self.ROUTE_HTTP_TIMEOUT: float = float(os.getenv("ROUTE_HTTP_TIMEOUT", "5.0"))
        self.GOOGLE_MAPS_API_KEY: str | None = os.getenv("GOOGLE_MAPS_API_KEY") or None
        self.CANONICAL_ROUTE_PRESET: str = os.getenv("CANONICAL_ROUTE_PRESET", "").strip()
        self.CANONICAL_ROUTE_PATH: str | None = os.getenv("CANONICAL_ROUTE_PATH") or None
        self.ROUTE_MAP_RENDER_ENABLED: bool = _as_bool(os.getenv("ROUTE_MAP_RENDER_ENABLED"), False)


settings = Settings()
