"""
Shared pytest fixtures.

Images are generated in memory with Pillow and HTTP is faked at the
aiohttp.ClientSession level, so no test touches the network.
"""
from __future__ import annotations

import io
import sys
from pathlib import Path
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

# ── Make the project root importable without installing the package ────────────
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture
def make_image():
    """Factory: make_image(width, height, fmt="JPEG", orientation=None) → bytes."""
    def _make(width: int, height: int, fmt: str = "JPEG", orientation: Optional[int] = None) -> bytes:
        img = Image.new("RGB", (width, height))
        # a horizontal gradient so contrast stretching has something to do
        for x in range(width):
            shade = 40 + int(150 * x / max(1, width - 1))
            img.paste((shade, shade, 255 - shade), (x, 0, x + 1, height))
        buf = io.BytesIO()
        if orientation is not None:
            exif = Image.Exif()
            exif[0x0112] = orientation
            img.save(buf, format=fmt, exif=exif)
        else:
            img.save(buf, format=fmt)
        return buf.getvalue()
    return _make


@pytest.fixture
def fake_session():
    """
    Factory: fake_session(status=200, json_data=None, text="") → a MagicMock
    standing in for aiohttp.ClientSession(); .get and .post both answer with
    the same response.
    """
    def _make(status: int = 200, json_data: Any = None, text: str = "",
              json_error: Optional[Exception] = None) -> MagicMock:
        mock_resp = MagicMock()
        mock_resp.status = status
        if json_error is not None:
            mock_resp.json = AsyncMock(side_effect=json_error)
        else:
            mock_resp.json = AsyncMock(return_value=json_data)
        mock_resp.text = AsyncMock(return_value=text)
        mock_resp.__aenter__ = AsyncMock(return_value=mock_resp)
        mock_resp.__aexit__ = AsyncMock(return_value=False)

        mock_session = MagicMock()
        mock_session.get = MagicMock(return_value=mock_resp)
        mock_session.post = MagicMock(return_value=mock_resp)
        mock_session.__aenter__ = AsyncMock(return_value=mock_session)
        mock_session.__aexit__ = AsyncMock(return_value=False)
        return mock_session
    return _make


def annotation(
    labels: tuple = (),
    logos: tuple = (),
    text: str = "",
    best_guess: str = "",
    entities: tuple = (),
    faces: int = 0,
) -> dict:
    """Minimal annotate() response in the backend's field names."""
    return {
        "label_annotations": [{"description": d, "score": s} for d, s in labels],
        "logo_annotations": [{"description": d} for d in logos],
        "localized_object_annotations": [],
        "full_text_annotation": {"text": text} if text else {},
        "text_annotations": [],
        "web_detection": {
            "web_entities": [{"description": d, "score": s} for d, s in entities],
            "best_guess_labels": [{"label": best_guess}] if best_guess else [],
        },
        "safe_search_annotation": {"adult": "VERY_UNLIKELY"},
        "face_annotations": [{}] * faces,
    }


@pytest.fixture
def make_annotation():
    return annotation
