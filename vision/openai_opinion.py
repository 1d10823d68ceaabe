"""
OpenAI "second opinion" — a compact brand/model guess from a chat model
with vision, independent of the Vision API signals.

The reply is untrusted: anything that is not a JSON object yields None,
and malformed fields inside a JSON object fall back to their defaults.
"""
from __future__ import annotations

import base64
import logging
import time
from typing import Optional

from openai import AsyncOpenAI

import config
from vision.base import (
    SecondOpinion, SecondOpinionProvider,
    parse_json_response, second_opinion_from,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """Extract product facts from an image. Return ONLY compact JSON:
{"brand":"","model":"","product_type":"","synonyms":[],"confidence":0..1}"""

USER_PROMPT = "Identify brand and model if visible."


class OpenAISecondOpinion(SecondOpinionProvider):

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 client: Optional[AsyncOpenAI] = None):
        self.name = "openai"
        self.model_id = model or config.OPENAI_MODEL
        self._client = client or AsyncOpenAI(api_key=api_key or config.OPENAI_API_KEY)

    @property
    def full_name(self) -> str:
        return f"{self.name}/{self.model_id}"

    async def extract(self, image_bytes: bytes) -> Optional[SecondOpinion]:
        b64 = base64.b64encode(image_bytes).decode()
        t0 = time.monotonic()
        try:
            response = await self._client.chat.completions.create(
                model=self.model_id,
                temperature=0,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": USER_PROMPT},
                            {
                                "type": "image_url",
                                "image_url": {"url": f"data:image/jpeg;base64,{b64}"},
                            },
                        ],
                    },
                ],
            )
            raw = response.choices[0].message.content or ""
            data = parse_json_response(raw, self.full_name)
        except Exception as exc:
            logger.warning("[%s] second opinion failed: %s", self.full_name, exc)
            return None

        opinion = second_opinion_from(data)
        logger.info(
            "[%s] second opinion: %s %s (%s) conf=%.2f latency=%dms",
            self.full_name, opinion.brand or "?", opinion.model or "?",
            opinion.product_type or "?", opinion.confidence,
            int((time.monotonic() - t0) * 1000),
        )
        return opinion
