from natureid.adapters.vision.base import VisionAdapter
from natureid.orchestrator.contracts import Identification, IdentifyResponse

# Offline stand-in: same answer for every photo
_MOCK = Identification(
    category="plant",
    name="Common Sunflower",
    scientific_name="Helianthus annuus",
    confidence=0.9,
    description="Tall annual with a large yellow flower head and a dark central disc.",
    additional_info={
        "habitat": "Open fields, roadsides and gardens",
        "notes": "mock_vision: the image was not analysed",
    },
)


class MockVision(VisionAdapter):
    def __init__(self, status_store):
        self.status = status_store

    def identify(self, image: str) -> IdentifyResponse:
        self.status.log(f"mock_vision: {_MOCK.name} (conf={_MOCK.confidence:.2f})")
        return IdentifyResponse(identification=_MOCK)
