"""Lightweight forward geocoding helpers using OpenStreetMap Nominatim.

Single-address lookups for the route pipeline's per-place fallback tier. The
API surface is intentionally small: one blocking lookup plus an awaitable
wrapper so the route engine can fan lookups out from the event loop.
"""

from __future__ import annotations

import asyncio
import os
import time
import threading
import logging
import re
import sqlite3
from typing import Any, Iterable, Optional, Tuple

import requests

from domain.models import LatLng
from services.provider_types import GeocodeResult, GeocodeStatus

NOMINATIM_SEARCH_URL = os.getenv("NOMINATIM_SEARCH_URL", "https://nominatim.openstreetmap.org/search")
logger = logging.getLogger(__name__)
_session = requests.Session()
_last_request_ts: float = 0.0
_lock = threading.Lock()
_MIN_INTERVAL_SEC = float(os.getenv("NOMINATIM_MIN_INTERVAL", "1.1"))
_TIMEOUT_SEC = float(os.getenv("ROUTE_HTTP_TIMEOUT", "5.0"))
_logged_ua = False
NOMINATIM_USER_AGENT = os.getenv("NOMINATIM_USER_AGENT")
NOMINATIM_REFERER = os.getenv("NOMINATIM_REFERER")
NOMINATIM_CACHE_PATH = os.getenv("NOMINATIM_CACHE_PATH")
if not NOMINATIM_CACHE_PATH:
    NOMINATIM_CACHE_PATH = os.path.join(os.path.dirname(__file__), "..", "data", "geocode_cache.sqlite")
NOMINATIM_CACHE_TTL_SECONDS = int(os.getenv("NOMINATIM_CACHE_TTL_SECONDS", str(180 * 24 * 3600)))

FALLBACK_UA = "trip-route-pipeline/0.1 (contact: example@example.com)"
if NOMINATIM_USER_AGENT is None:
    logger.warning(
        "NOMINATIM_USER_AGENT not set in environment; using fallback UA. "
        "This may violate Nominatim usage policy."
    )

def _redact_email(ua: str) -> str:
    if "@" not in ua:
        return ua
    return re.sub(r"\S+@\S+", "<redacted>", ua)

_ua_value = NOMINATIM_USER_AGENT or FALLBACK_UA
NOMINATIM_HEADERS = {
    "User-Agent": _ua_value,
}
if NOMINATIM_REFERER:
    NOMINATIM_HEADERS["Referer"] = NOMINATIM_REFERER

_CACHE_DB_LOCK = threading.Lock()
_CACHE_DB: Optional[sqlite3.Connection] = None
_MEMORY_CACHE: dict[str, GeocodeResult] = {}
_MEMORY_CACHE_LOCK = threading.Lock()
_MEMORY_CACHE_MAX = 512


def _normalize_query(address: str) -> str:
    """Collapse whitespace and case so equivalent queries share a cache row."""
    return " ".join(address.split()).lower()


def _throttled_get(
    url: str,
    *,
    params: dict[str, Any],
    headers: dict[str, str],
    timeout: float,
) -> requests.Response:
    """Perform a GET request with a simple global rate limit."""
    global _last_request_ts
    with _lock:
        now = time.time()
        delta = now - _last_request_ts
        if delta < _MIN_INTERVAL_SEC:
            time.sleep(_MIN_INTERVAL_SEC - delta)
        _last_request_ts = time.time()
    return _session.get(url, params=params, headers=headers, timeout=timeout)


def _get_geocode_db() -> sqlite3.Connection:
    """Lazily open the geocode cache DB and ensure schema exists."""
    global _CACHE_DB
    with _CACHE_DB_LOCK:
        if _CACHE_DB is None:
            os.makedirs(os.path.dirname(NOMINATIM_CACHE_PATH), exist_ok=True)
            # Lookups run in worker threads (see geocode_address_async).
            _CACHE_DB = sqlite3.connect(NOMINATIM_CACHE_PATH, check_same_thread=False)
            _CACHE_DB.execute(
                """
                CREATE TABLE IF NOT EXISTS forward_geocodes (
                    query TEXT PRIMARY KEY,
                    lat REAL NOT NULL,
                    lon REAL NOT NULL,
                    display_name TEXT,
                    fetched_at INTEGER NOT NULL
                )
                """
            )
            _CACHE_DB.commit()
        return _CACHE_DB


def _get_geocode_from_cache(query: str) -> Optional[GeocodeResult]:
    """Lookup geocode result in SQLite cache respecting TTL."""
    try:
        db = _get_geocode_db()
        with _CACHE_DB_LOCK:
            row = db.execute(
                "SELECT lat, lon, display_name, fetched_at FROM forward_geocodes WHERE query=?",
                (query,),
            ).fetchone()
        if not row:
            print(f"[GEOCODE] cache miss {query!r}")
            return None
        lat, lon, display_name, fetched_at = row
        if NOMINATIM_CACHE_TTL_SECONDS > 0:
            age = time.time() - (fetched_at or 0)
            if age > NOMINATIM_CACHE_TTL_SECONDS:
                print(f"[GEOCODE] cache expired {query!r}")
                return None
        print(f"[GEOCODE] cache hit {query!r}")
        return GeocodeResult(
            status=GeocodeStatus.OK,
            location=LatLng(float(lat), float(lon)),
            display_name=display_name,
        )
    except Exception as exc:
        print(f"[GEOCODE] cache read failed for {query!r}: {exc}")
        return None


def _store_geocode_in_cache(query: str, result: GeocodeResult) -> None:
    """Upsert a successful geocode result into SQLite cache."""
    if not result.ok:
        return
    try:
        db = _get_geocode_db()
        with _CACHE_DB_LOCK:
            db.execute(
                "INSERT OR REPLACE INTO forward_geocodes (query, lat, lon, display_name, fetched_at) VALUES (?, ?, ?, ?, ?)",
                (query, result.location.lat, result.location.lng, result.display_name, int(time.time())),
            )
            db.commit()
        print(f"[GEOCODE] cache store {query!r}")
    except Exception as exc:
        print(f"[GEOCODE] cache write failed for {query!r}: {exc}")
        return


def _parse_search_response(data: Any) -> GeocodeResult:
    if not isinstance(data, list) or not data:
        return GeocodeResult(status=GeocodeStatus.ZERO_RESULTS)
    best = data[0]
    try:
        location = LatLng(float(best["lat"]), float(best["lon"]))
    except (KeyError, TypeError, ValueError):
        return GeocodeResult(status=GeocodeStatus.ERROR)
    return GeocodeResult(
        status=GeocodeStatus.OK,
        location=location,
        display_name=best.get("display_name"),
    )


def cache_clear() -> None:
    """Drop the in-process lookup cache (the SQLite cache is untouched)."""
    with _MEMORY_CACHE_LOCK:
        _MEMORY_CACHE.clear()


def geocode_address(address: str) -> GeocodeResult:
    """Resolve a free-form place name to a coordinate using Nominatim search.

    Never raises: network and parsing errors come back as GeocodeStatus.ERROR.
    Only successful results are cached (in memory and in SQLite), so a
    transient failure is retried on the next lookup.
    """
    query = _normalize_query(address)
    if not query:
        return GeocodeResult(status=GeocodeStatus.ZERO_RESULTS)

    with _MEMORY_CACHE_LOCK:
        remembered = _MEMORY_CACHE.get(query)
    if remembered:
        return remembered

    cached = _get_geocode_from_cache(query)
    if cached:
        with _MEMORY_CACHE_LOCK:
            _MEMORY_CACHE[query] = cached
        return cached

    global _logged_ua
    if not _logged_ua:
        logger.debug("Nominatim User-Agent: %s", _redact_email(_ua_value))
        _logged_ua = True

    params = {
        "q": address.strip(),
        "format": "jsonv2",
        "limit": "1",
    }

    try:
        resp = _throttled_get(
            NOMINATIM_SEARCH_URL, params=params, headers=NOMINATIM_HEADERS, timeout=_TIMEOUT_SEC
        )
    except Exception as exc:
        logger.warning("Nominatim search error for %r: %s", address, exc)
        return GeocodeResult(status=GeocodeStatus.ERROR)

    if resp is None:
        return GeocodeResult(status=GeocodeStatus.ERROR)

    try:
        data = resp.json()
    except Exception as exc:
        logger.warning("Nominatim search JSON error for %r: %s", address, exc)
        return GeocodeResult(status=GeocodeStatus.ERROR)

    result = _parse_search_response(data)
    if result.ok:
        _store_geocode_in_cache(query, result)
        with _MEMORY_CACHE_LOCK:
            if len(_MEMORY_CACHE) >= _MEMORY_CACHE_MAX:
                _MEMORY_CACHE.pop(next(iter(_MEMORY_CACHE)))
            _MEMORY_CACHE[query] = result
    else:
        logger.debug("Nominatim search for %r returned %s", address, result.status.value)
    return result


async def geocode_address_async(address: str) -> GeocodeResult:
    """Awaitable wrapper: runs the blocking lookup in a worker thread."""
    return await asyncio.to_thread(geocode_address, address)


def compute_centroid(points: Iterable[Tuple[float, float]]) -> Optional[Tuple[float, float]]:
    """Compute the centroid of a collection of (lat, lon) points."""
    pts = list(points)
    if not pts:
        return None
    lat_sum = 0.0
    lon_sum = 0.0
    for lat, lon in pts:
        lat_sum += lat
        lon_sum += lon
    return (lat_sum / len(pts), lon_sum / len(pts))
