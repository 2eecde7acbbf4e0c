from natureid.orchestrator.contracts import IdentifyResponse


class VisionAdapter:
    ready: bool = True

    def identify(self, image: str) -> IdentifyResponse:
        """Return the identification envelope for an image reference (data URI, URL or raw base64)."""
        raise NotImplementedError
