from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel, Field
import httpx
import logging
import os
from datetime import date
from dotenv import load_dotenv
from typing import Any, Dict, Iterator, Literal, Optional

from .analysis import AnalysisFailed, AnalysisUnavailable, build_prompt, generate_analysis, get_location_name
from .impact_model import EntryParameters, ImpactCalculator, InvalidParameter, NonFiniteResult
from .neo_catalog import MAX_FEED_DAYS, MAX_PAGE_SIZE, NeoCatalog, flatten_feed, neo_to_entry_parameters
from .presets import PRESET_SCENARIOS, get_preset
from .zones import impact_zones, zones_as_geojson

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("meteor_impact.app")

app = FastAPI(title="Meteor Impact Calculator", version="1.0.0")

CompositionName = Literal["iron", "stony", "carbonaceous", "comet"]


# -------------------------------
# Dependencies
# -------------------------------
def get_http_client() -> Iterator[httpx.Client]:
    with httpx.Client(timeout=float(os.getenv("HTTP_TIMEOUT_S", "10"))) as client:
        yield client


def get_neo_catalog(client: httpx.Client = Depends(get_http_client)) -> NeoCatalog:
    return NeoCatalog(client=client)


# -------------------------------
# Health
# -------------------------------
@app.get("/health")
def health():
    return {"status": "ok"}


# -------------------------------
# Impact calculation
# -------------------------------
class ImpactRequest(BaseModel):
    diameter: float = Field(..., gt=0, description="Body diameter in meters")
    velocity: float = Field(..., gt=0, description="Entry speed in km/s")
    composition: CompositionName = Field("stony")
    impact_angle: Optional[float] = Field(None, ge=0, le=90,
                                          description="Degrees from horizontal; omit for the canonical 45")
    lat: float = Field(0.0, ge=-90, le=90)
    lng: float = Field(0.0, ge=-180, le=180)
    name: Optional[str] = None
    nasa_id: Optional[str] = None
    is_potentially_hazardous: bool = False

    def to_entry(self) -> EntryParameters:
        try:
            return EntryParameters(
                diameter=self.diameter,
                velocity=self.velocity,
                composition=self.composition,
                impact_angle=self.impact_angle,
                name=self.name,
                nasa_id=self.nasa_id,
                is_potentially_hazardous=self.is_potentially_hazardous,
            )
        except InvalidParameter as e:
            raise HTTPException(status_code=422, detail=str(e))


def _calculate(params: EntryParameters):
    model = ImpactCalculator(params)
    try:
        result = model.calculate()
    except NonFiniteResult as e:
        logger.error(f"[impact.error] {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return model, result


def _parameters_block(model: ImpactCalculator) -> Dict[str, Any]:
    p = model.p
    return {
        "diameter": p.diameter,
        "velocity": p.velocity,
        "composition": p.composition.value,
        "density_kgpm3": model.density_kgpm3(),
        "impact_angle": p.impact_angle,
        "angle_deg": model.angle_deg(),
        "angle_mode": p.angle_mode,
        "name": p.name,
        "nasa_id": p.nasa_id,
        "is_potentially_hazardous": p.is_potentially_hazardous,
    }


def impact_summary(params: EntryParameters, lat: float = 0.0, lng: float = 0.0,
                   geojson: bool = False) -> Dict[str, Any]:
    model, result = _calculate(params)
    zones = impact_zones(result, lat, lng)
    out = {
        "parameters": _parameters_block(model),
        "result": result.to_dict(),
        "entry": model.assess_entry().as_dict(),
        "zones": [z.as_dict() for z in zones],
    }
    if geojson:
        out["zones_geojson"] = zones_as_geojson(zones)
    logger.info(f"[impact] d={params.diameter}m v={params.velocity}km/s {params.composition.value} "
                f"angle={model.angle_deg()}({params.angle_mode}) -> {result.impact_type.value} "
                f"E={result.energy_tnt:.3g}Mt")
    return out


@app.post("/impact")
def impact(req: ImpactRequest, geojson: bool = Query(False, description="Include zone polygons as GeoJSON")):
    return impact_summary(req.to_entry(), req.lat, req.lng, geojson=geojson)


# -------------------------------
# Presets
# -------------------------------
@app.get("/presets")
def presets():
    return [dict(p.as_dict(), index=i) for i, p in enumerate(PRESET_SCENARIOS)]


@app.get("/presets/{index}/impact")
def preset_impact(index: int):
    try:
        preset = get_preset(index)
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))
    out = impact_summary(preset.parameters)
    out["preset"] = preset.as_dict()
    return out


# -------------------------------
# NASA NeoWs
# -------------------------------
def _neo_entry(asteroid: Dict[str, Any]) -> Dict[str, Any]:
    try:
        p = neo_to_entry_parameters(asteroid)
    except (KeyError, TypeError, ValueError) as e:
        # InvalidParameter is a ValueError: e.g. a catalog entry with a zero diameter estimate
        logger.warning(f"[neo.skip] id={asteroid.get('id')} error={e!r}")
        return {
            "nasa_id": asteroid.get("id"),
            "name": asteroid.get("name"),
            "is_potentially_hazardous": bool(asteroid.get("is_potentially_hazardous_asteroid", False)),
            "parameters": None,
        }
    return {
        "nasa_id": p.nasa_id,
        "name": p.name,
        "is_potentially_hazardous": p.is_potentially_hazardous,
        "parameters": {
            "diameter": p.diameter,
            "velocity": p.velocity,
            "composition": p.composition.value,
            "impact_angle": p.impact_angle,
        },
    }


def _upstream_error(e: httpx.HTTPError) -> HTTPException:
    if isinstance(e, httpx.HTTPStatusError) and e.response.status_code == 404:
        return HTTPException(status_code=404, detail="Asteroid not found in NASA NeoWs.")
    logger.error(f"[neo.error] {e}")
    return HTTPException(status_code=502, detail=f"Error fetching data from NASA NeoWs: {str(e)}")


@app.get("/neo/browse")
def neo_browse(
    page: int = Query(0, ge=0, description="0-based page"),
    size: int = Query(MAX_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    catalog: NeoCatalog = Depends(get_neo_catalog),
):
    try:
        data = catalog.browse(page, size)
    except httpx.HTTPError as e:
        raise _upstream_error(e)
    return {
        "page": data.get("page", {}),
        "asteroids": [_neo_entry(a) for a in data.get("near_earth_objects", [])],
    }


@app.get("/neo/famous")
def neo_famous(catalog: NeoCatalog = Depends(get_neo_catalog)):
    try:
        found = catalog.famous_asteroids()
    except httpx.HTTPError as e:
        raise _upstream_error(e)
    return {"asteroids": [_neo_entry(a) for a in found]}


@app.get("/neo/feed")
def neo_feed(
    start_date: date = Query(..., description="YYYY-MM-DD"),
    end_date: date = Query(..., description="YYYY-MM-DD, at most 7 days after start_date"),
    catalog: NeoCatalog = Depends(get_neo_catalog),
):
    if not 0 <= (end_date - start_date).days <= MAX_FEED_DAYS:
        raise HTTPException(status_code=422,
                            detail=f"end_date must be 0-{MAX_FEED_DAYS} days after start_date")
    try:
        data = catalog.feed(start_date.isoformat(), end_date.isoformat())
    except httpx.HTTPError as e:
        raise _upstream_error(e)
    return {
        "element_count": data.get("element_count", 0),
        "asteroids": [_neo_entry(a) for a in flatten_feed(data)],
    }


@app.get("/neo/{asteroid_id}")
def neo_lookup(asteroid_id: str, catalog: NeoCatalog = Depends(get_neo_catalog)):
    try:
        data = catalog.lookup(asteroid_id)
    except httpx.HTTPError as e:
        raise _upstream_error(e)
    return _neo_entry(data)


# -------------------------------
# Natural language analysis
# -------------------------------
@app.post("/impact-analysis")
def impact_analysis(req: ImpactRequest, client: httpx.Client = Depends(get_http_client)):
    params = req.to_entry()
    _, result = _calculate(params)

    location_name = None
    if req.lat != 0 or req.lng != 0:
        location_name = get_location_name(req.lat, req.lng, client=client)

    prompt = build_prompt(params, result, req.lat, req.lng, location_name)
    try:
        text = generate_analysis(prompt, client=client)
    except AnalysisUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except AnalysisFailed as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"analysis": text, "location_name": location_name, "result": result.to_dict()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("meteor_impact.app:app", host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8000")))
