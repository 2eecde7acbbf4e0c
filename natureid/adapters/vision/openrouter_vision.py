"""
OpenRouter species identifier.
Uses OpenRouter's OpenAI-compatible chat-completions API with a multimodal
message (instruction text + image_url). Requires OPENROUTER_API_KEY in
natureid/.env or the process environment.

The model is asked to answer with {"identification": {...}} as plain text.
Replies that carry text but not that shape are recovered with a degraded
result (degraded=True, confidence 0.5) instead of failing the request.
Transport errors (httpx.HTTPError, timeouts) are not caught here.
"""
import json
import re
from typing import Callable, Optional

import httpx
from pydantic import ValidationError

from natureid.adapters.image.normalizer import DATA_IMAGE_PREFIX, describe_payload
from natureid.adapters.vision.base import VisionAdapter
from natureid.config import Settings
from natureid.orchestrator.contracts import (
    Identification, IdentifyResponse,
    UNKNOWN_SPECIES, UNKNOWN_SCIENTIFIC_NAME, FALLBACK_CONFIDENCE,
)
from natureid.orchestrator.errors import (
    ConfigurationError, EmptyResponseError, InvalidImageError,
    MalformedResponseError, UpstreamTransportError,
)

_PROMPT = """
I need you to carefully analyze this image and identify if it contains a plant or animal species.

IMPORTANT: Be honest about your confidence level. If you're not very certain, use a lower confidence score (below 0.7).
If the image is unclear, low quality, or you can't identify the species with reasonable certainty,
admit this by using a low confidence score (0.3-0.5) and stating your uncertainty.

Please provide:
- Category (plant or animal)
- Common name of the species (be specific)
- Scientific name (genus and species)
- Brief description (1-2 sentences about key identifying features)
- Additional relevant information (habitat, characteristics, interesting facts)

Format your response as JSON with this structure:
{
  "identification": {
    "category": "plant" or "animal",
    "name": "Common name",
    "scientificName": "Scientific name",
    "confidence": 0.3 to 0.95,
    "description": "Brief description of key features",
    "additionalInfo": {
      "habitat": "Where it's commonly found",
      "characteristics": "Distinctive traits",
      "notes": "Any uncertainty or limitations in your identification"
    }
  }
}

If you cannot confidently identify the species, indicate this in your response with lower confidence.
""".strip()

DEFAULT_IMAGE_PREFIX = "data:image/jpeg;base64,"

FALLBACK_DESCRIPTION = (
    "We could not properly identify this specimen. "
    "The AI provided a response but it was not in the expected format."
)
FALLBACK_NOTE = "The identification system encountered an issue. Try again with a clearer image."


# ── Image reference repair ─────────────────────────────────────────────────
# Ordered: the first rule whose predicate matches rewrites the payload.

def _is_url(p: str) -> bool:
    return p.startswith("http://") or p.startswith("https://")


def _is_image_data_uri(p: str) -> bool:
    return p.startswith(DATA_IMAGE_PREFIX)


def _is_other_data_uri(p: str) -> bool:
    return p.startswith("data:")


def _rewrap_data_uri(p: str) -> str:
    b64 = p.split("base64,", 1)[1] if "base64," in p else p
    return DEFAULT_IMAGE_PREFIX + b64


_IMAGE_REF_RULES: list[tuple[str, Callable[[str], bool], Callable[[str], str]]] = [
    ("url",            _is_url,             lambda p: p),
    ("image_data_uri", _is_image_data_uri,  lambda p: p),
    ("other_data_uri", _is_other_data_uri,  _rewrap_data_uri),
    ("raw_base64",     lambda p: True,      lambda p: DEFAULT_IMAGE_PREFIX + p),
]


def resolve_image_reference(payload: str) -> tuple[str, str]:
    """(rule name, image reference) for the first rule that matches."""
    if not payload:
        raise InvalidImageError("No image was provided for analysis")
    for name, matches, rewrite in _IMAGE_REF_RULES:
        if matches(payload):
            return name, rewrite(payload)
    raise AssertionError("raw_base64 rule always matches")


def to_image_reference(payload: str) -> str:
    return resolve_image_reference(payload)[1]


# ── Reply parsing ──────────────────────────────────────────────────────────

_JSON_SPAN = re.compile(r"\{[\s\S]*\}")


def _greedy_span(content: str) -> Optional[dict]:
    # first "{" to last "}"
    m = _JSON_SPAN.search(content)
    if not m:
        return None
    return json.loads(m.group(0))


def _first_object(content: str) -> Optional[dict]:
    # first complete object, ignoring braces in trailing prose
    start = content.find("{")
    if start < 0:
        return None
    obj, _ = json.JSONDecoder().raw_decode(content, start)
    return obj


_JSON_SPAN_RULES: list[Callable[[str], Optional[dict]]] = [_greedy_span, _first_object]


def extract_identification(content: str) -> IdentifyResponse:
    """Parse the JSON object embedded in a free-text reply. Raises MalformedResponseError."""
    if not _JSON_SPAN.search(content):
        raise MalformedResponseError("Could not find JSON in the response")

    last_error = "Could not find JSON in the response"
    for rule in _JSON_SPAN_RULES:
        try:
            data = rule(content)
        except ValueError as e:
            last_error = f"invalid JSON: {e}"
            continue
        if not isinstance(data, dict) or not data.get("identification"):
            last_error = "Invalid identification format in response"
            continue
        try:
            return IdentifyResponse.model_validate(data)
        except ValidationError as e:
            last_error = f"Invalid identification format in response: {e.error_count()} field error(s)"
    raise MalformedResponseError(last_error)


def fallback_identification(raw: str) -> IdentifyResponse:
    category = "plant" if "plant" in (raw or "").lower() else "animal"
    return IdentifyResponse(identification=Identification(
        category=category,
        name=UNKNOWN_SPECIES,
        scientific_name=UNKNOWN_SCIENTIFIC_NAME,
        confidence=FALLBACK_CONFIDENCE,
        description=FALLBACK_DESCRIPTION,
        additional_info={"note": FALLBACK_NOTE},
        degraded=True,
    ))


def _message_content(data) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices") or []
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    if isinstance(content, list):
        # some providers return content parts
        content = "".join(p.get("text", "") for p in content if isinstance(p, dict))
    return content if isinstance(content, str) and content.strip() else None


def _upstream_error(resp: httpx.Response) -> UpstreamTransportError:
    text = resp.text
    code = resp.status_code
    try:
        body = json.loads(text)
    except ValueError:
        return UpstreamTransportError(f"OpenRouter API error ({code}): {text[:100]}...", upstream_status=code)
    err = body.get("error") if isinstance(body, dict) else None
    msg = err.get("message") if isinstance(err, dict) else None
    if msg:
        return UpstreamTransportError(f"OpenRouter API error ({code}): {msg}", upstream_status=code)
    return UpstreamTransportError(f"OpenRouter API responded with status {code}", upstream_status=code)


class OpenRouterVision(VisionAdapter):
    def __init__(self, status_store, settings: Settings, http_client: Optional[httpx.Client] = None):
        self.status = status_store
        self.settings = settings
        self._api_key = settings.openrouter_api_key
        self._http = http_client or httpx.Client(timeout=settings.openrouter_timeout)
        self.ready = bool(self._api_key)
        if self.ready:
            self.status.log(f"openrouter_vision: ready (model={settings.openrouter_model})")
        else:
            self.status.log("openrouter_vision: OPENROUTER_API_KEY not set")

    def build_payload(self, image_url: str) -> dict:
        return {
            "model": self.settings.openrouter_model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": _PROMPT},
                        {"type": "image_url", "image_url": {"url": image_url}},
                    ],
                }
            ],
            "max_tokens": 1000,
            "response_format": {"type": "text"},
        }

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.settings.openrouter_referer,
            "X-Title": self.settings.openrouter_title,
        }

    def identify(self, image: str) -> IdentifyResponse:
        if not self.ready:
            raise ConfigurationError("OpenRouter API key is not configured")

        rule, image_url = resolve_image_reference(image)
        self.status.log(f"openrouter_vision: image {describe_payload(image)} rule={rule}")

        resp = self._http.post(
            self.settings.openrouter_api_url,
            json=self.build_payload(image_url),
            headers=self._headers(),
            timeout=self.settings.openrouter_timeout,
        )
        if not resp.is_success:
            err = _upstream_error(resp)
            self.status.log(f"openrouter_vision: HTTP {resp.status_code} — {resp.text[:300]}")
            raise err

        try:
            data = resp.json()
        except ValueError:
            self.status.log(f"openrouter_vision: unparseable envelope '{resp.text[:200]}'")
            raise UpstreamTransportError("Failed to parse API response", upstream_status=resp.status_code)

        content = _message_content(data)
        if content is None:
            raise EmptyResponseError("Empty response from OpenRouter API")
        self.status.log(f"openrouter_vision: raw='{content[:200]}'")

        try:
            result = extract_identification(content)
        except MalformedResponseError as e:
            self.status.log(f"openrouter_vision: {e.message}, degraded fallback")
            return fallback_identification(content)

        ident = result.identification
        self.status.log(f"openrouter_vision: → {ident.category} {ident.name} (conf={ident.confidence:.2f})")
        return result

    def close(self):
        self._http.close()
