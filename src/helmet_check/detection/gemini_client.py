"""Gemini vision client for person and helmet detection."""

import base64
import json
import logging
import math
import re
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from helmet_check.config import (
    DETECTION_TIMEOUT,
    GEMINI_API_BASE,
    GEMINI_MODEL_NAME,
    GOOGLE_API_KEY,
)
from helmet_check.models import PersonDetection

logger = logging.getLogger(__name__)

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*\n(.*?)\n\s*```", re.DOTALL)
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)

PROMPT_TEMPLATE = """
IMPORTANT: You are a safety compliance expert analyzing construction-site images.
IMPORTANT: The coordinates you return are used for further processing and must be accurate.
Analyze this image for safety compliance.
1. Identify every PERSON in the image.
2. Assign each person a person_id starting from 0 and check whether they wear a HELMET.
3. Return a JSON object with the list of persons and the data for each person.

COORDINATES:
- Return bounding boxes as [ymin, xmin, ymax, xmax] on a scale of 0 to 1000.
- Every box has 4 coordinates; use 0 for a missing coordinate, at most 2 may be missing.
- 0,0 is top-left. 1000,1000 is bottom-right.
- If a person wears NO helmet, return "helmetBox": null.

CONFIDENCE:
- Estimate your confidence (0-100) that the person exists and that the helmet exists.
- A partly visible person lowers the confidence.
- Items smaller than 3% of the image are not persons.

Output schema:
{{
  "fileName": "{file_name}",
  "persons": [
    {{
      "person_id": number,
      "personConfidence": number,
      "helmetConfidence": number,
      "hasHelmet": boolean,
      "personBox": [ymin, xmin, ymax, xmax],
      "helmetBox": [ymin, xmin, ymax, xmax] or null
    }}
  ]
}}
"""


class ModelResponseError(Exception):
    """The model answered without usable content."""


class ModelResponseParseError(ModelResponseError):
    """No valid JSON object could be recovered from the model answer."""


class GeminiDetector:
    """Detect people and helmets with a Gemini vision model.

    The HTTP client is owned by the caller when passed in; otherwise the
    detector creates one and closes it in ``aclose``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str | None = None,
        timeout: float = DETECTION_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
        api_base: str = GEMINI_API_BASE,
    ) -> None:
        self.api_key = api_key or GOOGLE_API_KEY
        if not self.api_key:
            raise ValueError("Gemini API key is required. Set GOOGLE_API_KEY in .env file.")
        self.model_name = model_name or GEMINI_MODEL_NAME
        self.api_base = api_base
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def detect(
        self,
        image: bytes,
        media_type: str,
        file_name: str,
        confidence_threshold: float,
    ) -> list[PersonDetection]:
        """Detect persons in one image.

        Failures are logged and reported as an empty list so that one bad image
        never aborts a batch.
        """
        logger.info("Analyzing image %s", file_name)
        try:
            body = await self._generate(image, media_type, file_name)
            parsed = parse_model_response(extract_response_text(body))
        except (httpx.HTTPError, ModelResponseError) as exc:
            logger.error("Failed to detect helmets in %s: %s", file_name, exc)
            return []

        persons = normalize_persons(parsed, confidence_threshold)
        logger.info("Detected %d person(s) in %s", len(persons), file_name)
        return persons

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, max=10),
        retry=retry_if_exception_type(httpx.TimeoutException),
        reraise=True,
    )
    async def _generate(self, image: bytes, media_type: str, file_name: str) -> dict:
        """Call generateContent and return the parsed response body."""
        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": PROMPT_TEMPLATE.format(file_name=file_name)},
                        {
                            "inline_data": {
                                "mime_type": media_type,
                                "data": base64.b64encode(image).decode("ascii"),
                            }
                        },
                    ],
                }
            ]
        }
        resp = await self._client.post(
            f"{self.api_base}/models/{self.model_name}:generateContent",
            headers={"x-goog-api-key": self.api_key},
            json=payload,
        )
        resp.raise_for_status()
        try:
            return resp.json()
        except ValueError as exc:
            raise ModelResponseError(f"Gemini API returned a non-JSON body: {exc}") from exc


def extract_response_text(body: dict) -> str:
    """Return the text of the first candidate in a generateContent response."""
    try:
        parts = body["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ModelResponseError(f"No candidates in Gemini response: {body!r:.200}") from exc
    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
    if not text.strip():
        raise ModelResponseError("No text in response from Gemini API")
    return text


def parse_model_response(text: str) -> dict:
    """Recover the JSON object from a model answer.

    Accepts a fenced ```json block, prose around a bare object, or raw JSON.
    """
    candidate = text
    fenced = _FENCED_JSON_RE.search(text)
    if fenced:
        candidate = fenced.group(1)
    else:
        bare = _JSON_OBJECT_RE.search(text)
        if bare:
            candidate = bare.group(0)
    try:
        parsed = json.loads(candidate)
    except ValueError as exc:
        raise ModelResponseParseError(f"Could not parse model answer: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ModelResponseParseError("Model answer is not a JSON object")
    return parsed


def normalize_persons(parsed: dict, confidence_threshold: float) -> list[PersonDetection]:
    """Turn the model's ``persons`` list into PersonDetection objects.

    Confidences are rescaled from 0-100 to 0-1. A helmet verdict whose rescaled
    confidence falls below ``confidence_threshold`` is downgraded to no helmet
    and loses its box; a "no helmet" verdict is never upgraded.
    """
    raw_persons = parsed.get("persons")
    if not isinstance(raw_persons, list):
        return []

    persons: list[PersonDetection] = []
    for raw in raw_persons:
        if not isinstance(raw, dict):
            continue
        person_box = _coerce_box(raw.get("personBox"))
        if person_box is None:
            logger.warning("Skipping person without a valid box: %r", raw)
            continue

        person_id = len(persons)
        helmet_confidence = _rescale(raw.get("helmetConfidence"))
        model_has_helmet = raw.get("hasHelmet") is True
        has_helmet = model_has_helmet and helmet_confidence >= confidence_threshold
        if model_has_helmet and not has_helmet:
            logger.info(
                "Person %d helmet confidence %.1f%% below threshold %.1f%%, marked as no helmet",
                person_id,
                helmet_confidence * 100,
                confidence_threshold * 100,
            )

        persons.append(
            PersonDetection(
                person_id=person_id,
                person_confidence=_rescale(raw.get("personConfidence")),
                helmet_confidence=helmet_confidence,
                has_helmet=has_helmet,
                person_box=person_box,
                helmet_box=_coerce_box(raw.get("helmetBox")) if has_helmet else None,
            )
        )
    return persons


def _rescale(value: Any) -> float:
    """Map a 0-100 model confidence onto [0, 1]. Unusable values become 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    try:
        value = float(value)
    except OverflowError:
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return min(max(value / 100, 0.0), 1.0)


def _coerce_box(value: Any) -> list[float] | None:
    if not isinstance(value, list) or len(value) != 4:
        return None
    box: list[float] = []
    for coord in value:
        if isinstance(coord, bool) or not isinstance(coord, (int, float)):
            return None
        try:
            coord = float(coord)
        except OverflowError:
            return None
        if not math.isfinite(coord):
            return None
        box.append(coord)
    return box
