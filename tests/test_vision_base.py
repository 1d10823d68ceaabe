"""
Tests for vision/base.py.

Covers:
  - bundle_from_annotation: OCR fallback order, web-entity ranking + cap,
    best guess, face count, missing sections
  - SignalBundle.merge: set semantics for logos / web entities, OCR joining
  - parse_json_response: plain JSON, markdown-fenced JSON, invalid JSON
  - second_opinion_from: defaults for malformed fields
"""
from __future__ import annotations

import pytest

from vision.base import (
    Label, SignalBundle, bundle_from_annotation,
    parse_json_response, second_opinion_from, union,
)


# ── bundle_from_annotation ────────────────────────────────────────────────────

class TestBundleFromAnnotation:
    def test_labels_keep_detector_order(self, make_annotation):
        b = bundle_from_annotation(make_annotation(labels=[("Vacuum", 0.9), ("Appliance", 0.8)]))
        assert [l.description for l in b.labels] == ["Vacuum", "Appliance"]
        assert b.labels[0].score == 0.9

    def test_full_text_preferred_over_text_annotations(self, make_annotation):
        resp = make_annotation(text="DYSON V8")
        resp["text_annotations"] = [{"description": "other"}]
        assert bundle_from_annotation(resp).ocr_text == "DYSON V8"

    def test_falls_back_to_first_text_annotation(self, make_annotation):
        resp = make_annotation()
        resp["text_annotations"] = [{"description": "first"}, {"description": "second"}]
        assert bundle_from_annotation(resp).ocr_text == "first"

    def test_no_text_gives_empty_string(self, make_annotation):
        assert bundle_from_annotation(make_annotation()).ocr_text == ""

    def test_web_entities_sorted_by_score_and_capped(self, make_annotation):
        entities = [(f"e{i}", i / 20) for i in range(20)]
        b = bundle_from_annotation(make_annotation(entities=entities))
        assert len(b.web_entities) == 12
        assert b.web_entities[0] == "e19"
        assert b.web_entities[-1] == "e8"

    def test_web_entities_without_description_dropped(self, make_annotation):
        resp = make_annotation(entities=[("Dyson", 0.9)])
        resp["web_detection"]["web_entities"].append({"score": 5.0})
        assert bundle_from_annotation(resp).web_entities == ["Dyson"]

    def test_best_guess_and_faces(self, make_annotation):
        b = bundle_from_annotation(make_annotation(best_guess="dyson v8", faces=2))
        assert b.best_guess == "dyson v8"
        assert b.face_count == 2

    def test_safe_search_passed_through(self, make_annotation):
        b = bundle_from_annotation(make_annotation())
        assert b.safe_search == {"adult": "VERY_UNLIKELY"}

    def test_objects_carry_normalised_box(self):
        resp = {"localized_object_annotations": [{
            "name": "Shoe", "score": 0.7,
            "bounding_poly": {"normalized_vertices": [
                {"x": 0.1, "y": 0.2}, {"x": 0.5, "y": 0.2}, {"x": 0.5, "y": 0.9}, {"x": 0.1, "y": 0.9},
            ]},
        }]}
        obj = bundle_from_annotation(resp).objects[0]
        assert obj.name == "Shoe"
        assert obj.box[2] == (0.5, 0.9)

    def test_empty_response(self):
        b = bundle_from_annotation({})
        assert b == SignalBundle()


# ── merge ─────────────────────────────────────────────────────────────────────

class TestMerge:
    def test_sets_never_shrink_and_have_no_duplicates(self):
        base = SignalBundle(logos=["Dyson", "LG"], web_entities=["Vacuum cleaner"])
        crop = SignalBundle(logos=["LG", "dyson"], web_entities=["Vacuum cleaner", "Dyson V8"])
        base.merge(crop)
        assert base.logos == ["Dyson", "LG", "dyson"]          # case-sensitive
        assert base.web_entities == ["Vacuum cleaner", "Dyson V8"]

    def test_labels_and_objects_concatenated(self):
        base = SignalBundle(labels=[Label("Vacuum", 0.9)])
        base.merge(SignalBundle(labels=[Label("Vacuum", 0.8)]))
        assert len(base.labels) == 2

    def test_ocr_joined_skipping_empty(self):
        base = SignalBundle(ocr_text="")
        base.merge(SignalBundle(ocr_text="V8"))
        assert base.ocr_text == "V8"
        base.merge(SignalBundle(ocr_text="ABSOLUTE"))
        assert base.ocr_text == "V8\nABSOLUTE"

    def test_best_guess_earlier_wins(self):
        base = SignalBundle(best_guess="first")
        base.merge(SignalBundle(best_guess="second"))
        assert base.best_guess == "first"

    def test_best_guess_taken_from_crop_when_empty(self):
        base = SignalBundle()
        base.merge(SignalBundle(best_guess="crop guess"))
        assert base.best_guess == "crop guess"

    def test_union_keeps_first_seen_order(self):
        assert union(["b", "a"], ["a", "c", "b"]) == ["b", "a", "c"]


# ── parse_json_response ───────────────────────────────────────────────────────

class TestParseJsonResponse:
    def test_plain_json(self):
        data = parse_json_response('{"brand": "Dyson"}', "test")
        assert data["brand"] == "Dyson"

    def test_json_fenced_with_backticks(self):
        data = parse_json_response("```json\n{\"brand\": \"Dyson\"}\n```", "test")
        assert data["brand"] == "Dyson"

    def test_invalid_json_raises_value_error(self):
        with pytest.raises(ValueError, match="JSON parse error"):
            parse_json_response("I think it is a vacuum.", "test")

    def test_non_object_raises_value_error(self):
        with pytest.raises(ValueError):
            parse_json_response("[1, 2]", "test")


# ── second_opinion_from ───────────────────────────────────────────────────────

class TestSecondOpinionFrom:
    def test_full_payload(self):
        so = second_opinion_from({
            "brand": "Dyson", "model": "V8 Absolute", "product_type": "stick vacuum",
            "synonyms": ["cordless vacuum", "cordless vacuum"], "confidence": 0.85,
        })
        assert so.brand == "Dyson"
        assert so.synonyms == ["cordless vacuum"]
        assert so.confidence == 0.85

    def test_malformed_fields_default(self):
        so = second_opinion_from({"brand": 42, "synonyms": "vacuum", "confidence": "high"})
        assert so.brand == ""
        assert so.synonyms == []
        assert so.confidence == 0.0

    def test_confidence_clamped(self):
        assert second_opinion_from({"confidence": 7}).confidence == 1.0
        assert second_opinion_from({"confidence": -1}).confidence == 0.0
