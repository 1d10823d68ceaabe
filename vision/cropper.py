"""
Auto-crop to the most confident object so the second analysis pass sees
the product at a higher effective resolution.
"""
from __future__ import annotations

import io
import logging
import math
from typing import Optional

from PIL import Image

from vision.base import ImageAnnotator, vertices_of
from vision.preprocess import encode

logger = logging.getLogger(__name__)

PAD = 0.06          # fraction of each dimension added on every side
MIN_CROP_PX = 50    # smaller crops add nothing over the full image


def pick_region(annotations: list[dict]) -> Optional[list[tuple[float, float]]]:
    """Vertices of the highest-scoring annotation (first wins on ties), or None."""
    if not annotations:
        return None
    top = max(annotations, key=lambda a: a.get("score") or 0.0)
    verts = vertices_of(top)
    if len(verts) < 4:
        return None
    return verts


def pixel_box(
    verts: list[tuple[float, float]], width: int, height: int,
) -> Optional[tuple[int, int, int, int]]:
    """
    Padded pixel rectangle (left, top, right, bottom) for normalised vertices,
    or None when it comes out smaller than MIN_CROP_PX on either side.
    """
    xs = [min(1.0, max(0.0, x)) for x, _ in verts]
    ys = [min(1.0, max(0.0, y)) for _, y in verts]
    min_x, max_x = max(0.0, min(xs) - PAD), min(1.0, max(xs) + PAD)
    min_y, max_y = max(0.0, min(ys) - PAD), min(1.0, max(ys) + PAD)

    left = math.floor(min_x * width)
    top = math.floor(min_y * height)
    w = min(width - left, math.ceil((max_x - min_x) * width))
    h = min(height - top, math.ceil((max_y - min_y) * height))
    if w < MIN_CROP_PX or h < MIN_CROP_PX:
        return None
    return left, top, left + w, top + h


async def crop_primary_object(image_bytes: bytes, annotator: ImageAnnotator) -> Optional[bytes]:
    """Return the cropped product region as image bytes, or None if there is no usable region."""
    verts = pick_region(await annotator.localize_objects(image_bytes))
    if verts is None:
        logger.info("Auto-crop: no confident region")
        return None

    with Image.open(io.BytesIO(image_bytes)) as img:
        fmt = "PNG" if img.format == "PNG" else "JPEG"
        box = pixel_box(verts, img.width, img.height)
        if box is None:
            logger.info("Auto-crop: region below %dpx, skipped", MIN_CROP_PX)
            return None
        cropped = img.convert("RGB").crop(box)

    logger.info("Auto-crop: %s", box)
    return encode(cropped, fmt)
