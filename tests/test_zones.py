import math

import pytest

from meteor_impact.impact_model import EntryParameters, calculate_impact
from meteor_impact.zones import impact_zones, zones_as_geojson


def test_airburst_zones_have_no_crater():
    result = calculate_impact(EntryParameters(20, 19, "stony"))
    zones = impact_zones(result, 55.15, 61.43)
    assert [z.label for z in zones] == [
        "Thermal Radiation (3rd degree burns)",
        "20 psi overpressure",
        "5 psi overpressure",
        "1 psi overpressure",
    ]
    assert zones[0].radius == pytest.approx(result.thermal_radius * 1000)
    assert zones[-1].radius == pytest.approx(result.blast_radius.one_psi * 1000)


def test_surface_zones_start_with_crater():
    result = calculate_impact(EntryParameters(50, 12.8, "iron"))
    zones = impact_zones(result, 35.03, -111.02)
    assert zones[0].label == "Crater"
    assert zones[0].color == "#8B4513"
    assert zones[0].radius == pytest.approx(result.crater_diameter / 2)
    assert all((z.lat, z.lng) == (35.03, -111.02) for z in zones)


def test_zones_as_geojson_circles():
    result = calculate_impact(EntryParameters(1000, 20, "stony"))
    zones = impact_zones(result, 10.0, 20.0)
    gj = zones_as_geojson(zones, steps=32)
    assert gj["type"] == "FeatureCollection"
    assert len(gj["features"]) == len(zones)
    crater = gj["features"][0]
    ring = crater["geometry"]["coordinates"][0]
    assert len(ring) == 33
    assert ring[0] == pytest.approx(ring[-1])
    # first point is due north of the centre, one radius away
    lon, lat = ring[0]
    assert lon == pytest.approx(20.0)
    expected_dlat = math.degrees(zones[0].radius / 1000.0 / 6371.0088)
    assert lat - 10.0 == pytest.approx(expected_dlat, rel=1e-6)
    assert crater["properties"]["label"] == "Crater"
