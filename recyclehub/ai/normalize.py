"""Collapse heterogeneous upstream classifier payloads into a ``Classification``.

Upstream models answer in several shapes. Each recognised shape is modelled as
its own type and :func:`match_shape` resolves a payload to exactly one of them,
trying them in a fixed order:

1. ``RankedList``   - ``[{"label": ..., "score": ...}, ...]``
2. ``SingleObject`` - ``{"class"|"prediction"|...: ..., "confidence"|...: ...}``
3. ``Nested``       - ``{"result": <any of these shapes>}``
4. ``Unrecognized`` - anything else
"""
from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

from .types import Classification, DEFAULT_CONFIDENCE, DEFAULT_LABEL

logger = logging.getLogger(__name__)

CLASS_FIELDS: tuple[str, ...] = (
    "class",
    "prediction",
    "label",
    "category",
    "type",
    "class_name",
    "predicted_class",
)
CONFIDENCE_FIELDS: tuple[str, ...] = ("confidence", "probability", "score", "conf", "p")
NESTED_FIELD = "result"
MAX_NESTING_DEPTH = 8


@dataclass(frozen=True)
class RankedList:
    entries: tuple[Mapping[str, Any], ...]


@dataclass(frozen=True)
class SingleObject:
    label: Any
    confidence: Any = None


@dataclass(frozen=True)
class Nested:
    inner: Any


@dataclass(frozen=True)
class Unrecognized:
    payload: Any


Shape = Union[RankedList, SingleObject, Nested, Unrecognized]


def _is_ranked_entry(entry: Any) -> bool:
    return isinstance(entry, Mapping) and "label" in entry and "score" in entry


def _first_present(payload: Mapping[str, Any], fields: Sequence[str]) -> Any:
    for name in fields:
        value = payload.get(name)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def match_shape(payload: Any) -> Shape:
    """Resolve ``payload`` to the first recognised shape."""
    if isinstance(payload, list):
        if payload and all(_is_ranked_entry(entry) for entry in payload):
            return RankedList(entries=tuple(payload))
        return Unrecognized(payload)

    if not isinstance(payload, Mapping):
        return Unrecognized(payload)

    label = _first_present(payload, CLASS_FIELDS)
    if label is not None:
        return SingleObject(
            label=label,
            confidence=_first_present(payload, CONFIDENCE_FIELDS),
        )

    if payload.get(NESTED_FIELD) is not None:
        return Nested(inner=payload[NESTED_FIELD])

    return Unrecognized(payload)


def coerce_confidence(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    try:
        score = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if not math.isfinite(score):
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, score))


def coerce_label(value: Any) -> str:
    if value is None:
        return DEFAULT_LABEL
    label = str(value).strip()
    return label or DEFAULT_LABEL


def _rank_score(value: Any) -> float:
    # Missing or unparseable scores rank below every real score.
    if value is None or isinstance(value, bool):
        return -math.inf
    try:
        score = float(value)
    except (TypeError, ValueError):
        return -math.inf
    return score if math.isfinite(score) else -math.inf


def _best_entry(entries: Sequence[Mapping[str, Any]]) -> Mapping[str, Any]:
    best = entries[0]
    best_score = _rank_score(best.get("score"))
    for entry in entries[1:]:
        score = _rank_score(entry.get("score"))
        if score > best_score:
            best, best_score = entry, score
    return best


def normalize(payload: Any, _depth: int = 0) -> Classification:
    """Normalise an upstream JSON payload into the canonical result.

    Timing fields reported by the upstream are ignored; callers attach their
    own measured processing time.
    """
    shape = match_shape(payload)

    if isinstance(shape, RankedList):
        best = _best_entry(shape.entries)
        return Classification(
            label=coerce_label(best.get("label")),
            confidence=coerce_confidence(best.get("score")),
        )

    if isinstance(shape, SingleObject):
        return Classification(
            label=coerce_label(shape.label),
            confidence=coerce_confidence(shape.confidence),
        )

    if isinstance(shape, Nested):
        if _depth >= MAX_NESTING_DEPTH:
            logger.debug("Nested result exceeds depth=%d; using default", MAX_NESTING_DEPTH)
            return default_classification()
        return normalize(shape.inner, _depth + 1)

    logger.debug("Unrecognized upstream payload type=%s", type(payload).__name__)
    return default_classification()


def default_classification() -> Classification:
    return Classification(label=DEFAULT_LABEL, confidence=DEFAULT_CONFIDENCE)


__all__ = [
    "CLASS_FIELDS",
    "CONFIDENCE_FIELDS",
    "Nested",
    "RankedList",
    "Shape",
    "SingleObject",
    "Unrecognized",
    "coerce_confidence",
    "coerce_label",
    "default_classification",
    "match_shape",
    "normalize",
]
