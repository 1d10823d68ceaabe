"""
Google Cloud Vision annotator — uses the google-cloud-vision SDK.

One annotate_image request per analysis pass asks for every feature the
signal bundle needs:

  LABEL_DETECTION          ≤20
  LOGO_DETECTION           ≤10
  OBJECT_LOCALIZATION      ≤10
  DOCUMENT_TEXT_DETECTION  (with language hints)
  WEB_DETECTION            entities + best-guess label
  SAFE_SEARCH_DETECTION
  FACE_DETECTION           only the count is used (product-only policy)

The SDK is synchronous, so calls run in a worker thread.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any, Optional

from google.cloud import vision
from google.oauth2 import service_account

import config
from vision.base import ImageAnnotator

logger = logging.getLogger(__name__)

_FEATURES = [
    (vision.Feature.Type.LABEL_DETECTION,         20),
    (vision.Feature.Type.LOGO_DETECTION,          10),
    (vision.Feature.Type.OBJECT_LOCALIZATION,     10),
    (vision.Feature.Type.DOCUMENT_TEXT_DETECTION, None),
    (vision.Feature.Type.WEB_DETECTION,           None),
    (vision.Feature.Type.SAFE_SEARCH_DETECTION,   None),
    (vision.Feature.Type.FACE_DETECTION,          None),
]


def build_client() -> vision.ImageAnnotatorClient:
    """
    Create the SDK client from whichever credentials are configured:
    key file → inline JSON → API key → application default credentials.
    """
    key_path = config.GOOGLE_APPLICATION_CREDENTIALS
    if key_path:
        if not os.path.exists(key_path):
            raise RuntimeError(f"Vision key file not found: {key_path}")
        logger.info("Vision client: using key file %s", key_path)
        creds = service_account.Credentials.from_service_account_file(key_path)
        return vision.ImageAnnotatorClient(credentials=creds)

    if config.GOOGLE_CREDENTIALS:
        logger.info("Vision client: using inline GOOGLE_CREDENTIALS")
        info = json.loads(config.GOOGLE_CREDENTIALS)
        creds = service_account.Credentials.from_service_account_info(info)
        return vision.ImageAnnotatorClient(credentials=creds)

    if config.GOOGLE_API_KEY:
        logger.info("Vision client: using API key")
        return vision.ImageAnnotatorClient(client_options={"api_key": config.GOOGLE_API_KEY})

    logger.warning("Vision client: using application default credentials")
    return vision.ImageAnnotatorClient()


class GoogleVisionAnnotator(ImageAnnotator):

    def __init__(
        self,
        client: Optional[vision.ImageAnnotatorClient] = None,
        language_hints: Optional[list[str]] = None,
    ) -> None:
        self.name = "google/vision"
        self._client = client or build_client()
        self._language_hints = language_hints or config.VISION_LANGUAGE_HINTS

    async def annotate(self, image_bytes: bytes) -> dict[str, Any]:
        request = vision.AnnotateImageRequest(
            image=vision.Image(content=image_bytes),
            features=[
                vision.Feature(type_=kind, max_results=limit) if limit else vision.Feature(type_=kind)
                for kind, limit in _FEATURES
            ],
            image_context=vision.ImageContext(language_hints=self._language_hints),
        )
        response = await asyncio.to_thread(self._client.annotate_image, request)
        return _to_dict(response)

    async def localize_objects(self, image_bytes: bytes) -> list[dict[str, Any]]:
        response = await asyncio.to_thread(
            self._client.object_localization,
            image=vision.Image(content=image_bytes),
        )
        return _to_dict(response).get("localized_object_annotations") or []


def _to_dict(response: vision.AnnotateImageResponse) -> dict[str, Any]:
    """Raise on an in-band error, otherwise convert to a plain dict (enum names, not ints)."""
    if response.error.message:
        raise RuntimeError(f"Vision API error: {response.error.message}")
    return vision.AnnotateImageResponse.to_dict(response, use_integers_for_enums=False)
