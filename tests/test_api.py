import json

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import PIXEL, ROBIN, ScriptedVision, completion, make_settings, make_vision
from natureid.services.api import create_app


def app_client(vision, **settings_overrides) -> TestClient:
    return TestClient(create_app(make_settings(**settings_overrides), vision=vision))


def test_identify_returns_result_and_records_history(client):
    r = client.post("/identify", json={"image": PIXEL})
    assert r.status_code == 200
    ident = r.json()["identification"]
    assert ident["name"] == "European Robin"
    assert ident["scientificName"] == "Erithacus rubecula"
    assert ident["additionalInfo"] == {"habitat": "Woodland and gardens"}
    assert ident["degraded"] is False

    history = client.get("/history").json()
    assert len(history) == 1
    entry = history[0]
    assert entry["imageData"] == PIXEL
    assert entry["type"] == "animal"
    assert entry["results"]["identification"]["name"] == "European Robin"
    assert entry["id"]
    assert entry["timestamp"].endswith("+00:00")


def test_history_keeps_original_image_not_repaired_one():
    vision = ScriptedVision(["plant"])
    with app_client(vision) as c:
        assert c.post("/identify", json={"image": "QUJD"}).status_code == 200
        assert c.get("/history").json()[0]["imageData"] == "QUJD"
    assert vision.seen == ["QUJD"]


@pytest.mark.parametrize("body", [{}, {"image": ""}, {"image": None}])
def test_identify_without_image_is_400(client, body):
    r = client.post("/identify", json=body)
    assert r.status_code == 400
    assert r.json()["message"] == "No image provided"
    assert client.get("/history").json() == []


@pytest.mark.parametrize("kwargs", [
    {"content": b"not json", "headers": {"content-type": "application/json"}},
    {"json": {"image": 123}},
    {"json": ["a", "b"]},
])
def test_identify_bad_body_is_400(client, kwargs):
    r = client.post("/identify", **kwargs)
    assert r.status_code == 400
    assert "message" in r.json()
    assert client.get("/history").json() == []


def test_wrong_method_is_405(client):
    r = client.get("/identify")
    assert r.status_code == 405
    assert r.json()["message"] == "Method not allowed"
    assert client.put("/history").status_code == 405


def test_upstream_status_surfaces_in_500():
    vision = make_vision(lambda r: httpx.Response(503, text="Service Unavailable"))
    with app_client(vision) as c:
        r = c.post("/identify", json={"image": PIXEL})
        assert r.status_code == 500
        message = r.json()["message"]
        assert message.startswith("Failed to identify with AI service:")
        assert "503" in message
        assert c.get("/history").json() == []


def test_transport_failure_is_500():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with app_client(make_vision(handler)) as c:
        r = c.post("/identify", json={"image": PIXEL})
        assert r.status_code == 500
        assert "timed out" in r.json()["message"]


def test_empty_reply_is_500():
    vision = make_vision(lambda r: httpx.Response(200, json={"choices": [{"message": {"content": ""}}]}))
    with app_client(vision) as c:
        r = c.post("/identify", json={"image": PIXEL})
        assert r.status_code == 500
        assert "Empty response" in r.json()["message"]


def test_unparseable_reply_returns_degraded_result():
    vision = make_vision(lambda r: httpx.Response(200, json={"choices": [{"message": {"content": "A plant, maybe?"}}]}))
    with app_client(vision) as c:
        r = c.post("/identify", json={"image": PIXEL})
        assert r.status_code == 200
        ident = r.json()["identification"]
        assert ident["degraded"] is True
        assert ident["name"] == "Unknown Species"
        assert ident["confidence"] == 0.5
        assert ident["category"] == "plant"
        assert c.get("/history?type=plant").json()[0]["results"]["identification"]["degraded"] is True
        assert c.get("/status").json()["fallback_count"] == 1


def test_null_confidence_reply_returns_degraded_result():
    reply = {"identification": dict(ROBIN["identification"], confidence=None)}
    vision = make_vision(lambda r: completion(json.dumps(reply)))
    with app_client(vision) as c:
        r = c.post("/identify", json={"image": PIXEL})
        assert r.status_code == 200
        ident = r.json()["identification"]
        assert ident["degraded"] is True
        assert ident["confidence"] == 0.5
        assert c.get("/status").json()["fallback_count"] == 1


def test_missing_api_key_is_500():
    vision = make_vision(lambda r: httpx.Response(200), openrouter_api_key=None)
    with app_client(vision, openrouter_api_key=None) as c:
        r = c.post("/identify", json={"image": PIXEL})
        assert r.status_code == 500
        assert "not configured" in r.json()["message"]
        assert c.get("/health").json()["all_ok"] is False


def test_vision_returning_no_identification_is_500():
    class EmptyVision(ScriptedVision):
        def identify(self, image):
            from natureid.orchestrator.contracts import IdentifyResponse
            return IdentifyResponse()

    with app_client(EmptyVision([])) as c:
        r = c.post("/identify", json={"image": PIXEL})
        assert r.status_code == 500
        assert "invalid response" in r.json()["message"]


def test_history_filter_and_capacity():
    categories = ["plant", "animal"] * 6    # 12 identifications
    with app_client(ScriptedVision(categories)) as c:
        for _ in categories:
            assert c.post("/identify", json={"image": PIXEL}).status_code == 200

        everything = c.get("/history?type=all").json()
        assert len(everything) == 10
        assert [e["results"]["identification"]["name"] for e in everything][:2] == ["animal-12", "plant-11"]
        assert everything[-1]["results"]["identification"]["name"] == "plant-3"

        plants = c.get("/history", params={"type": "plant"}).json()
        assert [e["type"] for e in plants] == ["plant"] * 5
        assert [e["results"]["identification"]["name"] for e in plants] == [
            "plant-11", "plant-9", "plant-7", "plant-5", "plant-3"]

        ids = [e["id"] for e in everything]
        assert len(set(ids)) == 10


def test_history_unknown_type_is_400(client):
    r = client.get("/history?type=fungus")
    assert r.status_code == 400
    assert "fungus" in r.json()["message"]


def test_clear_history(client):
    client.post("/identify", json={"image": PIXEL})
    r = client.delete("/history")
    assert r.status_code == 200
    assert r.json() == {"message": "History cleared successfully"}
    assert client.get("/history?type=all").json() == []
    assert client.delete("/history").status_code == 200


def test_history_entry_lookup_and_delete(client):
    client.post("/identify", json={"image": PIXEL})
    entry_id = client.get("/history").json()[0]["id"]

    r = client.get(f"/history/{entry_id}")
    assert r.status_code == 200
    assert r.json()["id"] == entry_id

    r = client.delete(f"/history/{entry_id}")
    assert r.json() == {"deleted": True, "id": entry_id}
    assert client.get(f"/history/{entry_id}").status_code == 404
    assert client.delete(f"/history/{entry_id}").status_code == 404


def test_history_write_failure_does_not_fail_request():
    vision = ScriptedVision(["plant"])
    app = create_app(make_settings(), vision=vision)

    def broken_add(entry):
        raise RuntimeError("disk on fire")

    app.state.history.add = broken_add
    with TestClient(app) as c:
        r = c.post("/identify", json={"image": PIXEL})
        assert r.status_code == 200
        assert c.get("/history").json() == []
        assert any("history write failed" in line for line in c.get("/status").json()["logs"])


def test_oversized_body_is_413():
    with app_client(ScriptedVision(["plant"]), max_body_bytes=200) as c:
        r = c.post("/identify", json={"image": "data:image/png;base64," + "A" * 1000})
        assert r.status_code == 413
        assert c.get("/history").json() == []


def test_status_and_health(client):
    client.post("/identify", json={"image": PIXEL})
    status = client.get("/status").json()
    assert status["vision_adapter"] == "OpenRouterVision"
    assert status["identify_count"] == 1
    assert status["history_size"] == 1
    assert status["history_capacity"] == 10
    assert status["last_identified"] == "animal:European Robin"
    assert any(line.startswith("identify: done") for line in status["logs"])

    health = client.get("/health").json()
    assert health["all_ok"] is True
    assert health["api_key_configured"] is True


def test_mock_adapter_selected_by_settings():
    with TestClient(create_app(make_settings(vision_adapter="mock"))) as c:
        r = c.post("/identify", json={"image": PIXEL})
        assert r.status_code == 200
        assert r.json()["identification"]["scientificName"] == "Helianthus annuus"
        assert c.get("/status").json()["vision_adapter"] == "MockVision"
