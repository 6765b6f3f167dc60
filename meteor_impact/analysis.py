"""
Natural language analysis of an impact scenario.

Builds the prompt from EntryParameters + ImpactResult, resolves the impact
coordinate to a place name (OpenStreetMap Nominatim) and forwards the prompt
to Gemini's generateContent endpoint. None of this feeds back into the physics.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

import httpx

from .impact_model import EntryParameters, ImpactResult, ImpactType

logger = logging.getLogger(__name__)

NOMINATIM_URL = "https://nominatim.openstreetmap.org/reverse"
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
USER_AGENT = "Meteor Impact Calculator"
UNKNOWN_LOCATION = "Unknown location"
REMOTE_LOCATION = "Ocean/Remote area"


class AnalysisError(Exception):
    pass


class AnalysisUnavailable(AnalysisError):
    """No text-generation API key configured."""


class AnalysisFailed(AnalysisError):
    """The text-generation service errored or answered with no text."""


def _timeout() -> float:
    return float(os.getenv("HTTP_TIMEOUT_S", "10"))


# -------------------------------
# Reverse geocoding
# -------------------------------
def location_name_from_address(address: dict) -> str:
    parts = []
    place = address.get("city") or address.get("town") or address.get("village")
    if place:
        parts.append(place)
    if address.get("state"):
        parts.append(address["state"])
    if address.get("country"):
        parts.append(address["country"])
    return ", ".join(parts) if parts else REMOTE_LOCATION


def get_location_name(lat: float, lng: float, client: Optional[httpx.Client] = None) -> str:
    """City/town/village, state, country; never raises."""
    url = os.getenv("NOMINATIM_URL") or NOMINATIM_URL
    params = {"format": "json", "lat": lat, "lon": lng, "zoom": 10}
    headers = {"User-Agent": USER_AGENT}
    try:
        if client is not None:
            r = client.get(url, params=params, headers=headers)
        else:
            with httpx.Client(timeout=_timeout()) as c:
                r = c.get(url, params=params, headers=headers)
        if r.status_code >= 400:
            logger.warning(f"[geocode] status={r.status_code} lat={lat} lng={lng}")
            return UNKNOWN_LOCATION
        data = r.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"[geocode.error] lat={lat} lng={lng} error={e}")
        return UNKNOWN_LOCATION
    if not isinstance(data, dict):
        logger.warning(f"[geocode] unexpected body type={type(data).__name__} lat={lat} lng={lng}")
        return UNKNOWN_LOCATION
    address = data.get("address")
    return location_name_from_address(address if isinstance(address, dict) else {})


# -------------------------------
# Prompt
# -------------------------------
def _num(x: float) -> str:
    return f"{x:g}"


def build_prompt(params: EntryParameters, result: ImpactResult, lat: float = 0.0, lng: float = 0.0,
                 location_name: Optional[str] = None) -> str:
    if params.diameter >= 1000:
        diameter = f"{params.diameter / 1000:.2f} km"
    else:
        diameter = f"{_num(params.diameter)} meters"

    asteroid = [
        f"  - Diameter: {diameter}",
        f"  - Composition: {params.composition.value}",
        f"  - Velocity: {_num(params.velocity)} km/s",
    ]
    if params.name:
        asteroid.append(f"  - Name: {params.name} (NASA asteroid)")
    if params.is_potentially_hazardous:
        asteroid.append("  - Classification: Potentially Hazardous Asteroid (PHA)")

    location = [f"  - Coordinates: {lat:.4f}°, {lng:.4f}°"]
    if location_name:
        location.append(f"  - Location: {location_name}")

    surface = result.impact_type is ImpactType.SURFACE
    b = result.blast_radius
    effects = [
        f"  - Impact Type: {'Surface Impact' if surface else 'Atmospheric Airburst'}",
        f"  - Impact Energy: {result.energy_tnt:.2f} Megatons TNT equivalent",
    ]
    if surface and result.crater_diameter > 0:
        effects.append(f"  - Crater Diameter: {result.crater_diameter / 1000:.2f} km")
    effects += [
        f"  - Seismic Magnitude: {result.seismic_magnitude:.1f}",
        f"  - Thermal Radiation Radius: {result.thermal_radius:.1f} km (3rd degree burns)",
        "  - Air Blast Radii:",
        f"    * 20 PSI (total destruction): {b.twenty_psi:.1f} km",
        f"    * 5 PSI (severe damage): {b.five_psi:.1f} km",
        f"    * 1 PSI (moderate damage): {b.one_psi:.1f} km",
    ]

    lines = [
        "You are an expert about NEOs analyzing a hypothetical asteroid impact scenario. "
        "Provide a brief, comprehensive analysis in natural language.",
        "",
        "**Impact Scenario:**",
        "- **Asteroid Details:**",
        *asteroid,
        "",
        "- **Impact Location:**",
        *location,
        "",
        "- **Calculated Impact Effects:**",
        *effects,
        "",
        "**Please provide a brief analysis covering:**",
        "",
        "1. **Immediate Impact Effects** (first few seconds to minutes):",
        "   - What happens at ground zero",
        "   - Blast wave propagation",
        "   - Thermal effects and firestorms",
        "   - Initial casualties",
        "",
        "2. **Regional Effects** (hours to days):",
        "   - Area affected and population at risk",
        "   - Infrastructure damage",
        "   - Estimated death toll and injuries",
        "   - Secondary effects (fires, building collapse)",
        "",
        "3. **Global/Climate Effects** (if applicable for large impacts):",
        "   - Atmospheric effects",
        "   - Climate impact",
        "   - Global temperature changes",
        "   - Long-term consequences",
        "",
        "4. **Comparison to Historical Events**:",
        "   - Compare to similar known impacts or nuclear weapons",
        "   - Put the energy scale in perspective",
        "",
        "5. **Survival and Mitigation**:",
        "   - Safe distances",
        "   - Immediate actions for people in affected areas",
        "   - Long-term recovery challenges",
        "",
        "Please write in short, clear, engaging language suitable for general audiences "
        "but scientifically accurate. Be realistic about casualties but remain educational.",
    ]
    return "\n".join(lines)


# -------------------------------
# Text generation
# -------------------------------
def _candidate_text(data) -> str:
    """Text parts of the first candidate, joined; empty for any other shape."""
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return ""
    content = candidates[0].get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ""
    return "".join(p.get("text") or "" for p in parts if isinstance(p, dict))


def generate_analysis(prompt: str, client: Optional[httpx.Client] = None,
                      api_key: Optional[str] = None, model: Optional[str] = None) -> str:
    key = api_key or os.getenv("GEMINI_API_KEY")
    if not key:
        raise AnalysisUnavailable("Gemini API key not configured. Add GEMINI_API_KEY to your .env file.")
    model = model or os.getenv("GEMINI_MODEL") or "gemini-flash-latest"
    url = GEMINI_URL.format(model=model)
    body = {"contents": [{"parts": [{"text": prompt}]}]}

    logger.info(f"[analysis] POST model={model} prompt_chars={len(prompt)}")
    try:
        timeout = max(_timeout(), 60.0)
        if client is not None:
            r = client.post(url, params={"key": key}, json=body, timeout=timeout)
        else:
            with httpx.Client(timeout=timeout) as c:
                r = c.post(url, params={"key": key}, json=body)
        r.raise_for_status()
        data = r.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"[analysis.error] {e}")
        raise AnalysisFailed("Failed to generate impact analysis. Please try again.") from e

    text = _candidate_text(data)
    if not text:
        raise AnalysisFailed("Text generation returned no content.")
    return text
