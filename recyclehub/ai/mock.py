from __future__ import annotations

import random
from dataclasses import dataclass, field

from .types import Classification, WASTE_CLASSES


@dataclass
class MockClassifier:
    """Synthetic classifier used when no upstream model is configured."""

    rng: random.Random = field(default_factory=random.Random)
    min_confidence: float = 0.80
    min_latency_ms: int = 100
    max_latency_ms: int = 300

    def classify(self, image_bytes: bytes = b"") -> Classification:
        label = self.rng.choice(WASTE_CLASSES)
        confidence = round(self.rng.uniform(self.min_confidence, 1.0), 2)
        # Simulated latency; nothing is measured in mock mode.
        processing_time = self.rng.randrange(self.min_latency_ms, self.max_latency_ms)
        return Classification(
            label=label,
            confidence=confidence,
            processing_time=processing_time,
        )


__all__ = ["MockClassifier"]
