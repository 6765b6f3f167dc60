from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List

from .impact_model import ImpactResult

EARTH_RADIUS_KM = 6371.0088


@dataclass(frozen=True)
class ImpactZone:
    lat: float
    lng: float
    radius: float  # meters
    color: str
    label: str

    def as_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng, "radius": self.radius, "color": self.color, "label": self.label}


def impact_zones(result: ImpactResult, lat: float, lng: float) -> List[ImpactZone]:
    """Map overlay circles, innermost effect first. Zero-radius zones are skipped."""
    b = result.blast_radius
    rings = [
        (result.crater_diameter / 2.0, "#8B4513", "Crater"),
        (result.thermal_radius * 1000.0, "#FF8C00", "Thermal Radiation (3rd degree burns)"),
        (b.twenty_psi * 1000.0, "#DC143C", "20 psi overpressure"),
        (b.five_psi * 1000.0, "#FF6347", "5 psi overpressure"),
        (b.one_psi * 1000.0, "#FFD700", "1 psi overpressure"),
    ]
    return [ImpactZone(lat, lng, r, color, label) for r, color, label in rings if r > 0.0]


# --- geometry helpers (geodesic-ish) ---

def _destination_point(lon_deg: float, lat_deg: float, bearing_rad: float, distance_km: float):
    """Point reached from (lon,lat) going 'distance_km' along 'bearing_rad' on a sphere."""
    δ = distance_km / EARTH_RADIUS_KM
    φ1 = math.radians(lat_deg)
    λ1 = math.radians(lon_deg)
    θ = bearing_rad

    sinφ2 = math.sin(φ1)*math.cos(δ) + math.cos(φ1)*math.sin(δ)*math.cos(θ)
    φ2 = math.asin(max(-1.0, min(1.0, sinφ2)))
    y = math.sin(θ)*math.sin(δ)*math.cos(φ1)
    x = math.cos(δ) - math.sin(φ1)*math.sin(φ2)
    λ2 = λ1 + math.atan2(y, x)
    # normalize lon to [-180, 180)
    lon2 = math.degrees((λ2 + math.pi) % (2*math.pi) - math.pi)
    lat2 = math.degrees(φ2)
    return lon2, lat2


def zone_as_feature(zone: ImpactZone, steps: int = 64) -> dict:
    """Closed polygon approximating the zone circle, label/color as properties."""
    radius_km = zone.radius / 1000.0
    coords = []
    for i in range(steps + 1):  # close ring
        b = 2 * math.pi * (i / steps)
        x, y = _destination_point(zone.lng, zone.lat, b, radius_km)
        coords.append([x, y])
    return {
        "type": "Feature",
        "properties": {"label": zone.label, "color": zone.color, "radius_m": zone.radius},
        "geometry": {"type": "Polygon", "coordinates": [coords]},
    }


def zones_as_geojson(zones: List[ImpactZone], steps: int = 64) -> dict:
    return {"type": "FeatureCollection", "features": [zone_as_feature(z, steps) for z in zones]}
