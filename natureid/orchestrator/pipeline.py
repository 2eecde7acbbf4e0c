import threading
import time
from datetime import datetime, timezone

from natureid.adapters.image.normalizer import describe_payload, looks_like_image_data_uri, prepare_for_upload
from natureid.orchestrator.contracts import HistoryEntry, IdentifyResponse
from natureid.orchestrator.errors import IdentificationError, InvalidInputError, StorageError

INVALID_RESPONSE_MSG = "Failed to identify the image. The AI service returned an invalid response."


class EntryIdFactory:
    """Millisecond-timestamp ids, bumped by one when two requests land in the same ms."""

    def __init__(self, clock=time.time):
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            ms = int(self._clock() * 1000)
            if ms <= self._last:
                ms = self._last + 1
            self._last = ms
            return str(ms)


class IdentifyPipeline:
    """
    One identification request:
      received → validated → normalized → identified → stored → responded
    Stateless across requests; the only shared state is the history store.
    """

    def __init__(self, vision, history, status_store, new_id=None):
        self.vision = vision
        self.history = history
        self.status = status_store
        self.new_id = new_id or EntryIdFactory()

    def run(self, image) -> IdentifyResponse:
        t0 = time.time()

        # validated
        if not image:
            self.status.log("identify: rejected, no image")
            raise InvalidInputError("No image provided")
        if not isinstance(image, str):
            self.status.log(f"identify: rejected, image is {type(image).__name__}")
            raise InvalidInputError("Image must be a string")
        self.status.log(f"identify: received {describe_payload(image)}")

        # normalized
        processed = prepare_for_upload(image)
        if not looks_like_image_data_uri(processed):
            self.status.log("identify: not a data:image/ URI, passing through")

        # identified
        try:
            result = self.vision.identify(processed)
        except Exception as e:
            self.status.last_error = f"{type(e).__name__}: {e}"
            self.status.log(f"identify: error {type(e).__name__}: {e}")
            raise IdentificationError(f"Failed to identify with AI service: {e}") from e

        if result is None or result.identification is None:
            self.status.last_error = "invalid response"
            self.status.log("identify: vision returned no identification")
            raise IdentificationError(INVALID_RESPONSE_MSG)

        ident = result.identification
        self.status.identify_count += 1
        if ident.degraded:
            self.status.fallback_count += 1
        self.status.last_identified = f"{ident.category}:{ident.name}"

        # stored: best-effort, never fails the request
        try:
            self._store(image, result)
        except StorageError as e:
            self.status.log(f"identify: {e.message}")

        dt = int((time.time() - t0) * 1000)
        self.status.log(f"identify: done {ident.category} {ident.name} degraded={ident.degraded} dt={dt}ms")
        return result

    def _store(self, original_image: str, result: IdentifyResponse):
        try:
            entry = HistoryEntry(
                id=self.new_id(),
                timestamp=datetime.now(timezone.utc).isoformat(),
                image_data=original_image,
                results=result,
                type=result.identification.category,
            )
            self.history.add(entry)
        except Exception as e:
            raise StorageError(f"history write failed: {type(e).__name__}: {e}") from e
