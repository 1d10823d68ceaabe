"""
Signal fusion — turns one photo into one SignalBundle.

Pipeline:
  preprocess → full-image pass            (fatal on failure)
  face check                               (policy rejection, stops everything)
  auto-crop → preprocess → crop pass       (optional, merged when present)
  model hints from merged OCR text
  second opinion on the original image     (optional, runs alongside the crop pass)
  fold second-opinion brand / type into logos / web entities
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from errors import FatalExtractionFailure, PolicyRejection
from outcome import Outcome, guarded
from vision import model_hints
from vision.base import (
    ImageAnnotator, SecondOpinion, SecondOpinionProvider,
    SignalBundle, bundle_from_annotation, union,
)
from vision.cropper import crop_primary_object
from vision.preprocess import preprocess

logger = logging.getLogger(__name__)


class SignalFusionEngine:

    def __init__(
        self,
        annotator: ImageAnnotator,
        second_opinion: Optional[SecondOpinionProvider] = None,
    ) -> None:
        self._annotator = annotator
        self._second_opinion = second_opinion

    async def extract(self, image_bytes: bytes) -> SignalBundle:
        """One analysis pass: preprocess, annotate, normalise."""
        cleaned = await asyncio.to_thread(preprocess, image_bytes)
        return bundle_from_annotation(await self._annotator.annotate(cleaned))

    async def analyse(self, image_bytes: bytes) -> SignalBundle:
        try:
            cleaned = await asyncio.to_thread(preprocess, image_bytes)
            bundle = bundle_from_annotation(await self._annotator.annotate(cleaned))
        except Exception as exc:
            logger.error("First analysis pass failed: %s", exc, exc_info=True)
            raise FatalExtractionFailure(str(exc) or "vision error") from exc

        if bundle.face_count > 0:
            logger.info("Rejected: %d face(s) detected", bundle.face_count)
            raise PolicyRejection()

        opinion_task = None
        if self._second_opinion is not None:
            opinion_task = asyncio.create_task(self._second_opinion.extract(image_bytes))

        crop = await guarded("auto-crop", self._crop_pass(cleaned), logger)
        if crop.ok:
            bundle.merge(crop.value)

        bundle.model_hints = model_hints.combine(bundle.ocr_text)

        if opinion_task is not None:
            opinion: Outcome[SecondOpinion] = await guarded("second-opinion", opinion_task, logger)
            if opinion.ok:
                apply_second_opinion(bundle, opinion.value)

        logger.info(
            "Signals: %d labels, %d logos, %d entities, %d hints, second opinion=%s",
            len(bundle.labels), len(bundle.logos), len(bundle.web_entities),
            len(bundle.model_hints), bundle.second_opinion is not None,
        )
        return bundle

    async def _crop_pass(self, cleaned: bytes) -> Optional[SignalBundle]:
        region = await crop_primary_object(cleaned, self._annotator)
        if region is None:
            return None
        return await self.extract(region)


def apply_second_opinion(bundle: SignalBundle, opinion: SecondOpinion) -> None:
    bundle.second_opinion = opinion
    if opinion.brand:
        bundle.logos = union(bundle.logos, [opinion.brand])
    if opinion.product_type:
        bundle.web_entities = union(bundle.web_entities, [opinion.product_type])
