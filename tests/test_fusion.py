"""
Tests for vision/fusion.py.

Covers:
  - face policy: rejection with no crop / second-opinion calls
  - first pass failure → FatalExtractionFailure
  - no region (incl. 3-vertex polygon) → bundle equals the first pass
  - crop pass merged when a region is found
  - crop pass failure degrades silently
  - second opinion: folded into logos / entities, None on failure,
    always given the original (not preprocessed) bytes
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from errors import FatalExtractionFailure, PolicyRejection
from vision.base import (
    ImageAnnotator, SecondOpinion, SecondOpinionProvider, bundle_from_annotation,
)
from vision.fusion import SignalFusionEngine, apply_second_opinion
from vision.model_hints import combine


def region(n: int = 4) -> dict:
    corners = [{"x": 0.25, "y": 0.25}, {"x": 0.75, "y": 0.25}, {"x": 0.75, "y": 0.75}, {"x": 0.25, "y": 0.75}]
    return {"name": "Vacuum", "score": 0.9, "bounding_poly": {"normalized_vertices": corners[:n]}}


def fake_annotator(responses: list[dict], regions: list[dict] | None = None) -> ImageAnnotator:
    annotator = MagicMock(spec=ImageAnnotator)
    annotator.annotate = AsyncMock(side_effect=responses)
    annotator.localize_objects = AsyncMock(return_value=regions or [])
    return annotator


def fake_opinion(result=None, exc: Exception | None = None) -> SecondOpinionProvider:
    provider = MagicMock(spec=SecondOpinionProvider)
    provider.extract = AsyncMock(return_value=result, side_effect=exc)
    return provider


@pytest.fixture
def photo(make_image):
    return make_image(400, 300)


@pytest.mark.asyncio
class TestFacePolicy:
    async def test_faces_rejected_without_further_calls(self, photo, make_annotation):
        annotator = fake_annotator([make_annotation(faces=1)])
        opinion = fake_opinion(SecondOpinion(brand="Dyson"))
        engine = SignalFusionEngine(annotator, opinion)

        with pytest.raises(PolicyRejection):
            await engine.analyse(photo)

        assert annotator.annotate.await_count == 1
        annotator.localize_objects.assert_not_awaited()
        opinion.extract.assert_not_called()


@pytest.mark.asyncio
class TestFirstPass:
    async def test_annotate_error_is_fatal(self, photo):
        annotator = fake_annotator([RuntimeError("Vision API error: quota")])
        with pytest.raises(FatalExtractionFailure, match="quota"):
            await SignalFusionEngine(annotator).analyse(photo)

    async def test_corrupt_image_is_fatal(self, make_annotation):
        annotator = fake_annotator([make_annotation()])
        with pytest.raises(FatalExtractionFailure):
            await SignalFusionEngine(annotator).analyse(b"not an image")
        annotator.annotate.assert_not_awaited()


@pytest.mark.asyncio
class TestCropPass:
    async def test_three_vertex_region_leaves_first_pass_untouched(self, photo, make_annotation):
        base = make_annotation(labels=[("Vacuum", 0.9)], logos=["Dyson"], text="V8 SV10 2019",
                               best_guess="dyson v8", entities=[("Dyson", 0.8)])
        annotator = fake_annotator([base], regions=[region(n=3)])

        bundle = await SignalFusionEngine(annotator).analyse(photo)

        expected = bundle_from_annotation(base)
        expected.model_hints = combine(expected.ocr_text)
        assert bundle == expected
        assert annotator.annotate.await_count == 1

    async def test_region_found_merges_crop_signals(self, photo, make_annotation):
        base = make_annotation(labels=[("Appliance", 0.9)], logos=["Dyson"], text="V8",
                               entities=[("Vacuum cleaner", 0.9)])
        crop = make_annotation(labels=[("Vacuum", 0.95)], logos=["Dyson", "Makita"], text="SV10",
                               best_guess="dyson v8 absolute", entities=[("Dyson V8", 0.7)])
        annotator = fake_annotator([base, crop], regions=[region()])

        bundle = await SignalFusionEngine(annotator).analyse(photo)

        assert annotator.annotate.await_count == 2
        assert [l.description for l in bundle.labels] == ["Appliance", "Vacuum"]
        assert bundle.logos == ["Dyson", "Makita"]
        assert bundle.ocr_text == "V8\nSV10"
        assert bundle.best_guess == "dyson v8 absolute"
        assert bundle.web_entities == ["Vacuum cleaner", "Dyson V8"]

    async def test_crop_pass_failure_is_skipped(self, photo, make_annotation):
        base = make_annotation(logos=["Dyson"])
        annotator = fake_annotator([base, RuntimeError("timeout")], regions=[region()])

        bundle = await SignalFusionEngine(annotator).analyse(photo)

        assert bundle.logos == ["Dyson"]

    async def test_localizer_failure_is_skipped(self, photo, make_annotation):
        annotator = fake_annotator([make_annotation(logos=["Dyson"])])
        annotator.localize_objects = AsyncMock(side_effect=RuntimeError("boom"))

        bundle = await SignalFusionEngine(annotator).analyse(photo)

        assert bundle.logos == ["Dyson"]


@pytest.mark.asyncio
class TestSecondOpinion:
    async def test_brand_and_type_folded_in(self, photo, make_annotation):
        annotator = fake_annotator([make_annotation(logos=["Dyson"], entities=[("Vacuum", 0.5)])])
        opinion = fake_opinion(SecondOpinion(brand="Dyson", model="V8", product_type="stick vacuum",
                                             confidence=0.8))

        bundle = await SignalFusionEngine(annotator, opinion).analyse(photo)

        assert bundle.logos == ["Dyson"]
        assert bundle.web_entities == ["Vacuum", "stick vacuum"]
        assert bundle.second_opinion.model == "V8"

    async def test_receives_original_bytes(self, photo, make_annotation):
        annotator = fake_annotator([make_annotation()])
        opinion = fake_opinion(None)

        await SignalFusionEngine(annotator, opinion).analyse(photo)

        opinion.extract.assert_awaited_once_with(photo)

    async def test_none_leaves_bundle_without_opinion(self, photo, make_annotation):
        annotator = fake_annotator([make_annotation(logos=["Dyson"])])
        bundle = await SignalFusionEngine(annotator, fake_opinion(None)).analyse(photo)
        assert bundle.second_opinion is None
        assert bundle.logos == ["Dyson"]

    async def test_exception_is_not_fatal(self, photo, make_annotation):
        annotator = fake_annotator([make_annotation()])
        opinion = fake_opinion(exc=RuntimeError("rate limited"))
        bundle = await SignalFusionEngine(annotator, opinion).analyse(photo)
        assert bundle.second_opinion is None

    async def test_model_hints_from_merged_ocr(self, photo, make_annotation):
        annotator = fake_annotator([make_annotation(text="Model SM-G991B spare part 123456")])
        bundle = await SignalFusionEngine(annotator).analyse(photo)
        assert bundle.model_hints == ["123456", "SM-G991B"]


class TestApplySecondOpinion:
    def test_empty_fields_not_inserted(self):
        from vision.base import SignalBundle
        bundle = SignalBundle(logos=["LG"])
        apply_second_opinion(bundle, SecondOpinion())
        assert bundle.logos == ["LG"]
        assert bundle.web_entities == []
        assert bundle.second_opinion == SecondOpinion()
