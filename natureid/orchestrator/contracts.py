from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

Category = Literal["plant", "animal"]

HISTORY_FILTERS = ("all", "plant", "animal")

MAX_HISTORY_ITEMS = 10   # free tier cap

# Sentinels used by the degraded (unparseable reply) result
UNKNOWN_SPECIES = "Unknown Species"
UNKNOWN_SCIENTIFIC_NAME = "N/A"
FALLBACK_CONFIDENCE = 0.5


class Identification(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    category: Category
    name: str
    scientific_name: str = Field(alias="scientificName")
    confidence: float
    description: str
    additional_info: dict[str, str] = Field(default_factory=dict, alias="additionalInfo")
    degraded: bool = False    # True only for the synthesized fallback

    @field_validator("category", mode="before")
    @classmethod
    def _lower_category(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v):
        # keep it displayable as 0-100 %, the model's self-report is otherwise trusted
        # pydantic only wraps ValueError, a TypeError would escape validation
        if isinstance(v, bool) or not isinstance(v, (int, float, str)):
            raise ValueError(f"confidence must be a number, got {type(v).__name__}")
        v = float(v)
        return min(1.0, max(0.0, v))

    @field_validator("additional_info", mode="before")
    @classmethod
    def _stringify_info(cls, v):
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(k): val if isinstance(val, str) else str(val) for k, val in v.items()}
        return v

    @property
    def confidence_percent(self) -> int:
        return int(self.confidence * 100 + 0.5)

    @property
    def confidence_level(self) -> str:
        pct = self.confidence_percent
        if pct >= 85:
            return "high"
        if pct >= 70:
            return "moderate"
        if pct >= 50:
            return "low"
        return "very_low"


class IdentifyResponse(BaseModel):
    """Envelope the model is asked to emit: {"identification": {...}}."""
    model_config = ConfigDict(frozen=True)

    identification: Optional[Identification] = None


class HistoryEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    timestamp: str                     # ISO-8601, UTC
    image_data: str = Field(alias="imageData")   # original upload, not the normalized one
    results: IdentifyResponse
    type: Category
