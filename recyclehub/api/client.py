from __future__ import annotations

import io
import time
from dataclasses import dataclass, field

import requests
from PIL import Image, UnidentifiedImageError
from pydantic import ValidationError

from .schemas import PredictionResponse

MAX_IMAGE_BYTES = 5 * 1024 * 1024
# Pillow format name -> upload MIME type
ALLOWED_FORMATS: dict[str, str] = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
}

_LABEL_ALIASES: dict[str, str] = {
    "organic": "biodegradable",
    "biodegradable": "biodegradable",
    "recyclable": "recyclable",
    "recycle": "recyclable",
    "hazardous": "hazardous",
    "non-recyclable": "hazardous",
}


class ImageValidationError(ValueError):
    pass


@dataclass(frozen=True)
class WasteClassification:
    type: str
    confidence: int  # percent, 0-100
    processing_time: int


def map_label(raw: str | None) -> str:
    """Map an upstream class name onto one of the three waste types."""
    key = (raw or "").strip().lower()
    return _LABEL_ALIASES.get(key, "recyclable")


def validate_image(data: bytes) -> str:
    """Check size and format of an upload; return its MIME type."""
    if len(data) > MAX_IMAGE_BYTES:
        raise ImageValidationError("File size must be under 5MB.")
    try:
        with Image.open(io.BytesIO(data)) as image:
            image_format = image.format
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageValidationError("Only JPG, PNG or WEBP images are allowed.") from exc
    mime_type = ALLOWED_FORMATS.get(image_format or "")
    if mime_type is None:
        raise ImageValidationError("Only JPG, PNG or WEBP images are allowed.")
    return mime_type


@dataclass
class PredictionClient:
    base_url: str
    timeout: float = 20.0
    session: requests.Session = field(default_factory=requests.Session)

    def classify(self, data: bytes, filename: str = "upload") -> WasteClassification:
        mime_type = validate_image(data)
        started = time.perf_counter()
        try:
            response = self.session.post(
                f"{self.base_url.rstrip('/')}/api/predict",
                files={"file": (filename, data, mime_type)},
                timeout=self.timeout,
            )
        except requests.Timeout as exc:  # pragma: no cover - network conditions
            raise RuntimeError("Timed out waiting for prediction response") from exc
        except requests.RequestException as exc:  # pragma: no cover - network conditions
            raise RuntimeError(f"Failed to call prediction API: {exc}") from exc

        if not response.ok:
            raise RuntimeError(
                f"Prediction failed ({response.status_code}): {response.text or response.reason}"
            )
        try:
            prediction = PredictionResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise RuntimeError(f"Unexpected prediction response: {exc}") from exc
        elapsed_ms = round((time.perf_counter() - started) * 1000)

        return WasteClassification(
            type=map_label(prediction.label),
            confidence=round(prediction.confidence * 100),
            processing_time=elapsed_ms,
        )


__all__ = [
    "ALLOWED_FORMATS",
    "ImageValidationError",
    "MAX_IMAGE_BYTES",
    "PredictionClient",
    "WasteClassification",
    "map_label",
    "validate_image",
]
