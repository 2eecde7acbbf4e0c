from abc import ABC, abstractmethod


class CameraAdapter(ABC):
    @abstractmethod
    def capture_bytes(self) -> bytes | None:
        """Capture one photo. Returns JPEG bytes or None on failure."""
        ...

    def capture_data_uri(self) -> str | None:
        from natureid.adapters.image.normalizer import bytes_to_data_uri
        raw = self.capture_bytes()
        return bytes_to_data_uri(raw, "image/jpeg") if raw else None
