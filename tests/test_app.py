import httpx
import pytest
from fastapi.testclient import TestClient

from meteor_impact.app import app, get_http_client
from tests.test_neo_catalog import FEED, make_neo


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def upstream():
    """Routes outbound httpx calls to a per-test handler."""
    routes = {}

    def handler(request: httpx.Request) -> httpx.Response:
        for host, respond in routes.items():
            if request.url.host == host:
                return respond(request)
        return httpx.Response(599, json={"error": f"unexpected host {request.url.host}"})

    def override():
        with httpx.Client(transport=httpx.MockTransport(handler)) as c:
            yield c

    app.dependency_overrides[get_http_client] = override
    return routes


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_impact_airburst(client):
    r = client.post("/impact", json={"diameter": 20, "velocity": 19, "composition": "stony"})
    assert r.status_code == 200
    body = r.json()
    assert body["result"]["impact_type"] == "airburst"
    assert body["result"]["crater_diameter"] == 0.0
    assert body["parameters"]["angle_mode"] == "fixed"
    assert body["parameters"]["angle_deg"] == 45.0
    assert body["entry"]["rule"] == "high_altitude_breakup"
    assert "Crater" not in [z["label"] for z in body["zones"]]
    assert "zones_geojson" not in body


def test_impact_surface_with_caller_angle_and_geojson(client):
    r = client.post("/impact?geojson=true",
                    json={"diameter": 1000, "velocity": 20, "composition": "stony", "impact_angle": 60,
                          "lat": 21.3, "lng": -89.5})
    body = r.json()
    assert body["result"]["impact_type"] == "surface"
    assert body["result"]["crater_diameter"] > 0
    assert body["parameters"]["angle_mode"] == "caller"
    assert body["zones"][0]["label"] == "Crater"
    assert len(body["zones_geojson"]["features"]) == len(body["zones"])


@pytest.mark.parametrize(
    "payload",
    [
        {"diameter": 0, "velocity": 20, "composition": "stony"},
        {"diameter": 100, "velocity": 0, "composition": "stony"},
        {"diameter": 100, "velocity": 20, "composition": "unknown"},
        {"diameter": 100, "velocity": 20, "composition": "iron", "impact_angle": 120},
    ],
)
def test_impact_rejects_invalid_parameters(client, payload):
    assert client.post("/impact", json=payload).status_code == 422


def test_impact_non_finite_is_server_error(client):
    r = client.post("/impact", json={"diameter": 1e200, "velocity": 20, "composition": "stony"})
    assert r.status_code == 500


def test_presets(client):
    presets = client.get("/presets").json()
    assert len(presets) == 7
    assert presets[2]["index"] == 2
    r = client.get("/presets/2/impact")
    assert r.status_code == 200
    assert r.json()["result"]["impact_type"] == "surface"
    assert r.json()["preset"]["name"].startswith("Barringer")
    assert client.get("/presets/42/impact").status_code == 404


def test_neo_browse(client, upstream):
    def neows(request):
        return httpx.Response(200, json={
            "page": {"size": 20, "number": 0, "total_pages": 1, "total_elements": 2},
            "near_earth_objects": [make_neo("2000433", 16000.0, 18000.0, velocity=5.9),
                                   make_neo("bad", 0.0, 0.0)],
        })

    upstream["api.nasa.gov"] = neows
    body = client.get("/neo/browse?page=0&size=5").json()
    eros, bad = body["asteroids"]
    assert eros["parameters"] == {"diameter": 17000.0, "velocity": 5.9, "composition": "stony", "impact_angle": 45.0}
    assert bad["parameters"] is None
    assert set(bad) == set(eros)


def test_neo_lookup_errors(client, upstream):
    upstream["api.nasa.gov"] = lambda r: httpx.Response(404, json={})
    assert client.get("/neo/123").status_code == 404
    upstream["api.nasa.gov"] = lambda r: httpx.Response(500, json={})
    assert client.get("/neo/123").status_code == 502


def test_neo_famous(client, upstream):
    page = [make_neo(str(i), 60.0 + i, 90.0 + i) for i in range(20)]
    upstream["api.nasa.gov"] = lambda r: httpx.Response(200, json={"near_earth_objects": page})
    body = client.get("/neo/famous").json()
    assert len(body["asteroids"]) == 20
    assert body["asteroids"][0]["nasa_id"] == "19"


def test_impact_analysis(client, upstream, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    upstream["nominatim.openstreetmap.org"] = lambda r: httpx.Response(
        200, json={"address": {"city": "Chelyabinsk", "country": "Russia"}})
    prompts = []

    def gemini(request):
        prompts.append(request.read().decode())
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "Analysis."}]}}]})

    upstream["generativelanguage.googleapis.com"] = gemini
    r = client.post("/impact-analysis",
                    json={"diameter": 20, "velocity": 19, "composition": "stony", "lat": 55.15, "lng": 61.43})
    assert r.status_code == 200
    body = r.json()
    assert body == {"analysis": "Analysis.", "location_name": "Chelyabinsk, Russia", "result": body["result"]}
    assert body["result"]["impact_type"] == "airburst"
    assert "Chelyabinsk, Russia" in prompts[0]


def test_impact_analysis_skips_geocoding_at_origin(client, upstream, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    upstream["generativelanguage.googleapis.com"] = lambda r: httpx.Response(
        200, json={"candidates": [{"content": {"parts": [{"text": "ok"}]}}]})
    body = client.post("/impact-analysis", json={"diameter": 20, "velocity": 19}).json()
    assert body["location_name"] is None


def test_impact_analysis_status_codes(client, upstream, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    payload = {"diameter": 20, "velocity": 19, "composition": "stony"}
    assert client.post("/impact-analysis", json=payload).status_code == 503

    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    upstream["generativelanguage.googleapis.com"] = lambda r: httpx.Response(500, json={})
    assert client.post("/impact-analysis", json=payload).status_code == 502


def test_neo_feed(client, upstream):
    seen = []

    def neows(request):
        seen.append(request)
        return httpx.Response(200, json=FEED)

    upstream["api.nasa.gov"] = neows
    r = client.get("/neo/feed?start_date=2029-04-13&end_date=2029-04-14")
    assert r.status_code == 200
    body = r.json()
    assert body["element_count"] == 3
    assert [a["nasa_id"] for a in body["asteroids"]] == ["2099942", "2000433", "late"]
    assert body["asteroids"][0]["is_potentially_hazardous"] is True
    assert seen[0].url.path.endswith("/feed")
    assert seen[0].url.params["start_date"] == "2029-04-13"


@pytest.mark.parametrize(
    "query",
    [
        "start_date=2029-04-14&end_date=2029-04-13",
        "start_date=2029-04-01&end_date=2029-04-09",
        "start_date=not-a-date&end_date=2029-04-13",
        "start_date=2029-04-13",
    ],
)
def test_neo_feed_rejects_bad_ranges(client, query):
    assert client.get(f"/neo/feed?{query}").status_code == 422


def test_neo_famous_skips_malformed_records(client, upstream):
    page = [{"id": "broken", "estimated_diameter": {}}, make_neo("ok", 100.0, 300.0)]
    upstream["api.nasa.gov"] = lambda r: httpx.Response(200, json={"near_earth_objects": page})
    r = client.get("/neo/famous")
    assert r.status_code == 200
    assert [a["nasa_id"] for a in r.json()["asteroids"]] == ["ok"]


def test_impact_analysis_with_non_object_geocode_body(client, upstream, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    upstream["nominatim.openstreetmap.org"] = lambda r: httpx.Response(200, json=["not", "an", "object"])
    upstream["generativelanguage.googleapis.com"] = lambda r: httpx.Response(200, json=[])
    payload = {"diameter": 20, "velocity": 19, "lat": 10.0, "lng": 10.0}
    assert client.post("/impact-analysis", json=payload).status_code == 502

    upstream["generativelanguage.googleapis.com"] = lambda r: httpx.Response(
        200, json={"candidates": [{"content": {"parts": [{"text": "ok"}]}}]})
    assert client.post("/impact-analysis", json=payload).json()["location_name"] == "Unknown location"
