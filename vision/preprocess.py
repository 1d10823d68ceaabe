"""
OCR-oriented image cleanup applied before every analysis pass.

  1. rotate upright from the EXIF orientation tag
  2. shrink to MAX_IMAGE_WIDTH (never enlarge), resampling in linear light
  3. sharpen
  4. stretch contrast to the full range
"""
from __future__ import annotations

import io
from typing import Optional

from PIL import Image, ImageFilter, ImageOps

import config

GAMMA = 2.2

# 8-bit lookup tables: sRGB-ish → linear and back
_TO_LINEAR   = [round(255 * (i / 255) ** GAMMA) for i in range(256)]
_FROM_LINEAR = [round(255 * (i / 255) ** (1 / GAMMA)) for i in range(256)]


def preprocess(image_bytes: bytes, max_width: Optional[int] = None) -> bytes:
    """Return cleaned image bytes. Raises PIL.UnidentifiedImageError on corrupt input."""
    max_width = max_width or config.MAX_IMAGE_WIDTH

    with Image.open(io.BytesIO(image_bytes)) as src:
        fmt = "PNG" if src.format == "PNG" else "JPEG"
        img = ImageOps.exif_transpose(src).convert("RGB")

    if img.width > max_width:
        height = max(1, round(img.height * max_width / img.width))
        img = _apply_lut(img, _TO_LINEAR)
        img = img.resize((max_width, height), Image.Resampling.LANCZOS)
        img = _apply_lut(img, _FROM_LINEAR)

    img = img.filter(ImageFilter.UnsharpMask(radius=1, percent=100, threshold=2))
    img = ImageOps.autocontrast(img, cutoff=0.5)
    return encode(img, fmt)


def encode(img: Image.Image, fmt: str = "JPEG") -> bytes:
    buf = io.BytesIO()
    if fmt == "PNG":
        img.save(buf, format="PNG")
    else:
        img.save(buf, format="JPEG", quality=92)
    return buf.getvalue()


def _apply_lut(img: Image.Image, table: list[int]) -> Image.Image:
    return img.point(table * len(img.getbands()))
