from __future__ import annotations

from .types import Classification, Classifier

__all__ = [
    "Classification",
    "Classifier",
    "MockClassifier",
]


def __getattr__(name: str):
    if name == "MockClassifier":
        from .mock import MockClassifier

        return MockClassifier
    raise AttributeError(f"module 'recyclehub.ai' has no attribute {name!r}")
