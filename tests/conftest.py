import json

import httpx
import pytest
from fastapi.testclient import TestClient

from natureid.adapters.vision.base import VisionAdapter
from natureid.adapters.vision.openrouter_vision import OpenRouterVision
from natureid.config import Settings
from natureid.orchestrator.contracts import HistoryEntry, Identification, IdentifyResponse
from natureid.services.api import create_app
from natureid.services.status_store import StatusStore

API_URL = "https://openrouter.test/api/v1/chat/completions"

# 1x1 PNG
PIXEL = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="

ROBIN = {
    "identification": {
        "category": "animal",
        "name": "European Robin",
        "scientificName": "Erithacus rubecula",
        "confidence": 0.88,
        "description": "Small songbird with an orange-red breast.",
        "additionalInfo": {"habitat": "Woodland and gardens"},
    }
}


def completion(content) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


def make_settings(**overrides) -> Settings:
    values = dict(openrouter_api_key="test-key", openrouter_api_url=API_URL)
    values.update(overrides)
    return Settings(**values)


def make_vision(handler, status=None, **settings_overrides) -> OpenRouterVision:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return OpenRouterVision(status or StatusStore(), make_settings(**settings_overrides), http_client=client)


def ident(category="plant", name="Daisy", confidence=0.8) -> Identification:
    return Identification(
        category=category,
        name=name,
        scientific_name="Bellis perennis" if category == "plant" else "Vulpes vulpes",
        confidence=confidence,
        description="test",
    )


def make_entry(entry_id: str, category="plant") -> HistoryEntry:
    return HistoryEntry(
        id=entry_id,
        timestamp="2026-01-01T00:00:00+00:00",
        image_data=PIXEL,
        results=IdentifyResponse(identification=ident(category)),
        type=category,
    )


class ScriptedVision(VisionAdapter):
    """Returns the queued categories in order, one per call."""

    def __init__(self, categories):
        self.categories = list(categories)
        self.seen = []

    def identify(self, image):
        self.seen.append(image)
        category = self.categories.pop(0)
        return IdentifyResponse(identification=ident(category, name=f"{category}-{len(self.seen)}"))


@pytest.fixture
def status():
    return StatusStore()


@pytest.fixture
def robin_vision():
    return make_vision(lambda request: completion("Sure! " + json.dumps(ROBIN)))


@pytest.fixture
def client(robin_vision):
    app = create_app(make_settings(), vision=robin_vision)
    with TestClient(app) as c:
        yield c
