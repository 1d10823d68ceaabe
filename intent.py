"""
intent.py — turn fused image signals into a marketplace query.

One chat-completion round trip. The model is asked for JSON; when the
reply can't be parsed, or leaves fields out, the missing pieces are
rebuilt from the signals themselves (second-opinion brand + model, then
model hints, then the top web entity) so a query is always returned.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from openai import AsyncOpenAI

import config
from vision.base import parse_json_response

logger = logging.getLogger(__name__)

INTENTS = ("buy", "sell", "compare", "clarify")
DEFAULT_CONFIDENCE = 0.6
FALLBACK_FOLLOW_UP = "Which exact product name/model?"

SYSTEM_PROMPT = """You classify intent and craft a concrete marketplace query.
Return JSON:
- intent: ["buy","sell","compare","clarify"]
- confidence: 0..1
- bestQuery: <=5 tokens; prefer BRAND + MODEL (e.g., "lego 75288", "dyson v8 absolute")
- followUp: optional"""


@dataclass
class IntentResult:
    intent: str
    confidence: float
    best_query: str
    follow_up: Optional[str] = None

    def to_dict(self) -> dict:
        out: dict[str, Any] = {
            "intent": self.intent,
            "confidence": self.confidence,
            "bestQuery": self.best_query,
        }
        if self.follow_up:
            out["followUp"] = self.follow_up
        return out


def _names(items: list, limit: int) -> list[str]:
    """Labels arrive either as plain strings or as {description, score} dicts."""
    out = []
    if not isinstance(items, list):
        return []
    for item in items[:limit]:
        name = item.get("description") if isinstance(item, dict) else item
        if isinstance(name, str) and name:
            out.append(name)
    return out


def _opinion(signals: dict) -> dict:
    opinion = signals.get("secondOpinion")
    return opinion if isinstance(opinion, dict) else {}


def build_user_prompt(signals: dict, user_prompt: str = "") -> str:
    opinion = _opinion(signals)
    parts = (opinion.get("brand"), opinion.get("model"), opinion.get("product_type"))
    so = " ".join(x for x in parts if isinstance(x, str) and x)
    return (
        "Signals:\n"
        f"Logos: {', '.join(_names(signals.get('logos'), 8)) or 'none'}\n"
        f"OpenAI Vision: {so} (conf={opinion.get('confidence') or 0})\n"
        f"Best guess: {signals.get('bestGuess') or 'none'}\n"
        f"Entities: {', '.join(_names(signals.get('webEntities'), 10)) or 'none'}\n"
        f"Labels: {', '.join(_names(signals.get('labels'), 12)) or 'none'}\n"
        f"OCR: {str(signals.get('ocrText') or '')[:180]}\n"
        f"Model hints: {' '.join(_names(signals.get('modelHints'), 8)) or 'none'}\n"
        f"User prompt: {user_prompt or 'none'}\n\n"
        "Rule: Prefer BRAND + MODEL when available. No filler words."
    )


def fallback_query(signals: dict) -> str:
    opinion = _opinion(signals)
    brand_model = " ".join(x for x in (opinion.get("brand"), opinion.get("model")) if isinstance(x, str) and x)
    if brand_model:
        return brand_model
    hints = " ".join(_names(signals.get("modelHints"), 8))
    if hints:
        return hints
    entities = _names(signals.get("webEntities"), 10)
    return entities[0] if entities else "product"


def repair(data: Optional[dict], signals: dict) -> IntentResult:
    """Fill every missing or malformed field. data=None means the reply was unparseable."""
    if data is None:
        return IntentResult(
            intent="clarify",
            confidence=DEFAULT_CONFIDENCE,
            best_query=fallback_query(signals),
            follow_up=FALLBACK_FOLLOW_UP,
        )

    intent = data.get("intent")
    confidence = data.get("confidence")
    best_query = data.get("bestQuery")
    follow_up = data.get("followUp")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        confidence = DEFAULT_CONFIDENCE
    return IntentResult(
        intent=intent if intent in INTENTS else "clarify",
        confidence=float(confidence),
        best_query=best_query.strip() if isinstance(best_query, str) and best_query.strip()
        else fallback_query(signals),
        follow_up=follow_up if isinstance(follow_up, str) and follow_up else None,
    )


class IntentClassifier:

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 client: Optional[AsyncOpenAI] = None):
        self.model_id = model or config.OPENAI_MODEL
        self._client = client or AsyncOpenAI(api_key=api_key or config.OPENAI_API_KEY)

    async def classify(self, signals: dict, user_prompt: str = "") -> IntentResult:
        """Transport errors propagate; only the reply's content is repaired."""
        completion = await self._client.chat.completions.create(
            model=self.model_id,
            temperature=0,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(signals, user_prompt)},
            ],
        )
        raw = completion.choices[0].message.content or ""
        try:
            data = parse_json_response(raw, f"intent/{self.model_id}")
        except ValueError:
            data = None
        result = repair(data, signals)
        logger.info("Intent: %s (%.2f) query='%s'", result.intent, result.confidence, result.best_query)
        return result
