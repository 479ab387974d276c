import unittest

from recyclehub.ai.normalize import (
    Nested,
    RankedList,
    SingleObject,
    Unrecognized,
    match_shape,
    normalize,
)
from recyclehub.ai.types import Classification, DEFAULT_CONFIDENCE, DEFAULT_LABEL


class MatchShapeTests(unittest.TestCase):
    def test_ranked_list_takes_priority(self) -> None:
        shape = match_shape([{"label": "glass", "score": 0.4}])
        self.assertIsInstance(shape, RankedList)

    def test_class_field_beats_nested_result(self) -> None:
        shape = match_shape({"label": "paper", "result": {"label": "metal"}})
        self.assertIsInstance(shape, SingleObject)
        self.assertEqual(shape.label, "paper")

    def test_nested_result(self) -> None:
        shape = match_shape({"result": {"label": "metal", "score": 0.6}})
        self.assertIsInstance(shape, Nested)

    def test_list_without_label_and_score_is_unrecognized(self) -> None:
        self.assertIsInstance(match_shape([{"label": "glass"}]), Unrecognized)
        self.assertIsInstance(match_shape([]), Unrecognized)
        self.assertIsInstance(match_shape("plastic"), Unrecognized)


class NormalizeTests(unittest.TestCase):
    def test_ranked_list_picks_highest_score(self) -> None:
        result = normalize(
            [{"label": "glass", "score": 0.4}, {"label": "plastic", "score": 0.95}]
        )
        self.assertEqual(result.label, "plastic")
        self.assertAlmostEqual(result.confidence, 0.95)

    def test_ranked_list_ignores_entries_without_usable_score(self) -> None:
        result = normalize(
            [
                {"label": "plastic", "score": 0.85},
                {"label": "glass", "score": None},
                {"label": "paper", "score": "n/a"},
            ]
        )
        self.assertEqual(result.label, "plastic")
        self.assertAlmostEqual(result.confidence, 0.85)

    def test_ranked_list_all_scores_missing_uses_first_with_default(self) -> None:
        result = normalize([{"label": "glass", "score": None}, {"label": "tin", "score": "?"}])
        self.assertEqual(result.label, "glass")
        self.assertAlmostEqual(result.confidence, 0.9)

    def test_alternate_field_names(self) -> None:
        result = normalize({"prediction": "organic", "probability": 0.77})
        self.assertEqual(result.label, "organic")
        self.assertAlmostEqual(result.confidence, 0.77)

    def test_field_priority_order(self) -> None:
        result = normalize(
            {"category": "metal", "class": "glass", "score": 0.2, "confidence": 0.6}
        )
        self.assertEqual(result.label, "glass")
        self.assertAlmostEqual(result.confidence, 0.6)

    def test_nested_result(self) -> None:
        result = normalize({"result": {"label": "metal", "score": 0.6}})
        self.assertEqual(result.label, "metal")
        self.assertAlmostEqual(result.confidence, 0.6)

    def test_unrecognized_shape_uses_default(self) -> None:
        self.assertEqual(
            normalize({}),
            Classification(label=DEFAULT_LABEL, confidence=DEFAULT_CONFIDENCE),
        )
        self.assertEqual(normalize(None).label, "recyclable")

    def test_missing_confidence_defaults(self) -> None:
        result = normalize({"class": "hazardous"})
        self.assertEqual(result.label, "hazardous")
        self.assertAlmostEqual(result.confidence, 0.9)

    def test_unparseable_and_out_of_range_confidence(self) -> None:
        self.assertAlmostEqual(normalize({"class": "a", "confidence": "high"}).confidence, 0.9)
        self.assertAlmostEqual(normalize({"class": "a", "confidence": "nan"}).confidence, 0.9)
        self.assertAlmostEqual(normalize({"class": "a", "confidence": "0.35"}).confidence, 0.35)
        self.assertEqual(normalize({"class": "a", "confidence": 7}).confidence, 1.0)
        self.assertEqual(normalize({"class": "a", "confidence": -2}).confidence, 0.0)

    def test_blank_class_falls_through_to_next_field(self) -> None:
        result = normalize({"class": "  ", "label": "glass", "score": 0.5})
        self.assertEqual(result.label, "glass")

    def test_upstream_timing_is_discarded(self) -> None:
        result = normalize({"class": "glass", "confidence": 0.5, "processingTime": 42})
        self.assertIsNone(result.processing_time)

    def test_idempotent_on_canonical_payload(self) -> None:
        first = normalize({"class": "biodegradable", "confidence": 0.83})
        second = normalize(first.to_payload())
        self.assertEqual(first, second)

    def test_deep_nesting_falls_back_to_default(self) -> None:
        payload: dict = {"label": "glass", "score": 0.1}
        for _ in range(20):
            payload = {"result": payload}
        self.assertEqual(normalize(payload).label, "recyclable")


if __name__ == "__main__":
    unittest.main()
