"""
NASA NeoWs (Near Earth Object Web Service) client and the conversion of its
records into EntryParameters. See https://api.nasa.gov/ for the API.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from .impact_model import Composition, EntryParameters

logger = logging.getLogger(__name__)

NASA_API_BASE = "https://api.nasa.gov/neo/rest/v1"
DEFAULT_VELOCITY_KMS = 20.0  # typical asteroid encounter speed
DEFAULT_ANGLE_DEG = 45.0
MAX_PAGE_SIZE = 20
MAX_FEED_DAYS = 7


def _api_key() -> str:
    return os.getenv("NASA_API_KEY") or "DEMO_KEY"


def _timeout() -> float:
    return float(os.getenv("HTTP_TIMEOUT_S", "10"))


# -------------------------------
# Record helpers
# -------------------------------
def mean_diameter_m(asteroid: Dict[str, Any]) -> float:
    m = asteroid["estimated_diameter"]["meters"]
    return (m["estimated_diameter_min"] + m["estimated_diameter_max"]) / 2.0


def neo_to_entry_parameters(asteroid: Dict[str, Any]) -> EntryParameters:
    """
    Average of the min/max kilometer diameter estimates (rounded to whole m),
    speed of the first close approach (20 km/s when none is listed),
    stony composition and a 45 deg angle.
    """
    km = asteroid["estimated_diameter"]["kilometers"]
    diameter_km = (km["estimated_diameter_min"] + km["estimated_diameter_max"]) / 2.0

    velocity = DEFAULT_VELOCITY_KMS
    approaches = asteroid.get("close_approach_data") or []
    if approaches:
        velocity = float(approaches[0]["relative_velocity"]["kilometers_per_second"])

    return EntryParameters(
        diameter=round(diameter_km * 1000.0),
        velocity=velocity,
        composition=Composition.STONY,  # most NEOs are stony
        impact_angle=DEFAULT_ANGLE_DEG,
        name=asteroid.get("name"),
        nasa_id=asteroid.get("id"),
        is_potentially_hazardous=bool(asteroid.get("is_potentially_hazardous_asteroid", False)),
    )


def filter_by_diameter(asteroids: List[Dict[str, Any]], min_m: float, max_m: float) -> List[Dict[str, Any]]:
    """Keep records whose mean diameter lies in [min_m, max_m); records without an estimate are skipped."""
    kept = []
    for a in asteroids:
        try:
            d = mean_diameter_m(a)
        except (KeyError, TypeError) as e:
            logger.warning(f"[neo.skip] id={a.get('id') if isinstance(a, dict) else None} error={e!r}")
            continue
        if min_m <= d < max_m:
            kept.append(a)
    return kept


def flatten_feed(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Records of a /feed response (grouped by date) in date order."""
    by_date = data.get("near_earth_objects") or {}
    return [a for day in sorted(by_date) for a in by_date[day]]


# -------------------------------
# HTTP
# -------------------------------
class NeoCatalog:
    """Thin NeoWs client. Pass an httpx.Client to reuse a connection (or to mock it)."""

    def __init__(self, client: Optional[httpx.Client] = None, api_key: Optional[str] = None,
                 base_url: Optional[str] = None):
        self._client = client
        self.api_key = api_key or _api_key()
        self.base_url = (base_url or os.getenv("NASA_API_BASE") or NASA_API_BASE).rstrip("/")

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        printable = dict(params or {})
        query = dict(printable, api_key=self.api_key)
        url = f"{self.base_url}{path}"
        logger.info(f"[neo] GET {url} params={printable}")
        if self._client is not None:
            r = self._client.get(url, params=query)
        else:
            with httpx.Client(timeout=_timeout()) as client:
                r = client.get(url, params=query)
        logger.info(f"[neo] status={r.status_code}")
        r.raise_for_status()
        return r.json()

    def browse(self, page: int = 0, size: int = MAX_PAGE_SIZE) -> Dict[str, Any]:
        """One page of the whole catalog; NeoWs caps size at 20."""
        return self._get("/neo/browse", {"page": page, "size": min(size, MAX_PAGE_SIZE)})

    def lookup(self, asteroid_id: str) -> Dict[str, Any]:
        return self._get(f"/neo/{asteroid_id}")

    def feed(self, start_date: str, end_date: str) -> Dict[str, Any]:
        """Close approaches between two YYYY-MM-DD dates (at most 7 days apart)."""
        return self._get("/feed", {"start_date": start_date, "end_date": end_date})

    def famous_asteroids(self, limit: int = 20) -> List[Dict[str, Any]]:
        """
        Curated list for the asteroid picker: 50 m - 1 km bodies from the first
        pages of the catalog, topped up with 10-50 m ones when fewer than 10
        were found. Largest first.
        """
        found: List[Dict[str, Any]] = []
        for page in range(5):
            objs = self.browse(page, MAX_PAGE_SIZE).get("near_earth_objects", [])
            found.extend(filter_by_diameter(objs, 50.0, 1000.0))
            if len(found) >= limit:
                break

        if len(found) < 10:
            for page in range(3):
                objs = self.browse(page, MAX_PAGE_SIZE).get("near_earth_objects", [])
                found.extend(filter_by_diameter(objs, 10.0, 50.0))
                if len(found) >= limit:
                    break

        found.sort(key=mean_diameter_m, reverse=True)
        logger.info(f"[neo] famous_asteroids kept={min(len(found), limit)} of {len(found)}")
        return found[:limit]
