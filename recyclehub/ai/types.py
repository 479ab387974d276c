from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

WASTE_CLASSES: tuple[str, ...] = ("recyclable", "biodegradable", "hazardous")

# Used whenever the upstream omits a label or confidence.
DEFAULT_LABEL: str = "recyclable"
DEFAULT_CONFIDENCE: float = 0.9


class Classifier(Protocol):
    def classify(self, image_bytes: bytes) -> "Classification": ...


@dataclass(frozen=True)
class Classification:
    label: str
    confidence: float
    processing_time: int | None = None

    def with_processing_time(self, elapsed_ms: int) -> Classification:
        return Classification(
            label=self.label,
            confidence=self.confidence,
            processing_time=elapsed_ms,
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"class": self.label, "confidence": self.confidence}
        if self.processing_time is not None:
            payload["processingTime"] = self.processing_time
        return payload


__all__ = [
    "Classifier",
    "Classification",
    "WASTE_CLASSES",
    "DEFAULT_LABEL",
    "DEFAULT_CONFIDENCE",
]
