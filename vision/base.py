"""
Shared types for the image-analysis side: the signal bundle every pass
produces, the second-opinion result, and the capability interface the
image-understanding backend must implement.
"""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)

WEB_ENTITY_LIMIT = 12


# ── Signal bundle ─────────────────────────────────────────────────────────────

@dataclass
class Label:
    description: str
    score: float


@dataclass
class DetectedObject:
    name: str
    score: float
    box: list[tuple[float, float]]   # normalised (x, y) vertices


@dataclass
class SecondOpinion:
    """Model-derived guess, independent of the image-understanding backend."""
    brand: str = ""
    model: str = ""
    product_type: str = ""
    synonyms: list[str] = field(default_factory=list)
    confidence: float = 0.0

    def to_dict(self) -> dict:
        return {
            "brand": self.brand,
            "model": self.model,
            "product_type": self.product_type,
            "synonyms": list(self.synonyms),
            "confidence": self.confidence,
        }


@dataclass
class SignalBundle:
    labels: list[Label] = field(default_factory=list)
    logos: list[str] = field(default_factory=list)          # ordered set
    objects: list[DetectedObject] = field(default_factory=list)
    ocr_text: str = ""
    best_guess: str = ""
    web_entities: list[str] = field(default_factory=list)   # ordered set
    face_count: int = 0
    safe_search: dict = field(default_factory=dict)
    model_hints: list[str] = field(default_factory=list)
    second_opinion: Optional[SecondOpinion] = None

    def merge(self, other: "SignalBundle") -> None:
        """Fold a later pass into this one. Earlier values win where only one can."""
        self.labels = self.labels + other.labels
        self.logos = union(self.logos, other.logos)
        self.objects = self.objects + other.objects
        self.ocr_text = "\n".join(t for t in (self.ocr_text, other.ocr_text) if t)
        self.best_guess = self.best_guess or other.best_guess
        self.web_entities = union(self.web_entities, other.web_entities)

    def to_dict(self) -> dict:
        """JSON shape returned by /api/vision."""
        return {
            "labels": [{"description": l.description, "score": l.score} for l in self.labels],
            "logos": list(self.logos),
            "objects": [
                {"name": o.name, "score": o.score, "box": [{"x": x, "y": y} for x, y in o.box]}
                for o in self.objects
            ],
            "safeSearch": self.safe_search,
            "faceCount": self.face_count,
            "ocrText": self.ocr_text,
            "bestGuess": self.best_guess,
            "webEntities": list(self.web_entities),
            "modelHints": list(self.model_hints),
            "secondOpinion": self.second_opinion.to_dict() if self.second_opinion else None,
        }


def union(*groups: Iterable[str]) -> list[str]:
    """Exact-string set union that keeps first-seen order."""
    seen: dict[str, None] = {}
    for group in groups:
        for item in group:
            seen.setdefault(item, None)
    return list(seen)


# ── Response normalisation ────────────────────────────────────────────────────

def bundle_from_annotation(resp: dict) -> SignalBundle:
    """
    Normalise one image-annotation response into a single-pass bundle.

    `resp` uses the backend's field names (label_annotations,
    web_detection, …) as produced by AnnotateImageResponse.to_dict().
    Missing sections simply produce empty fields.
    """
    labels = [
        Label(description=l.get("description", ""), score=float(l.get("score") or 0.0))
        for l in resp.get("label_annotations") or []
    ]
    logos = union(x.get("description", "") for x in resp.get("logo_annotations") or [] if x.get("description"))
    objects = [
        DetectedObject(
            name=o.get("name", ""),
            score=float(o.get("score") or 0.0),
            box=vertices_of(o),
        )
        for o in resp.get("localized_object_annotations") or []
    ]

    full_text = (resp.get("full_text_annotation") or {}).get("text") or ""
    if not full_text:
        text_annotations = resp.get("text_annotations") or []
        full_text = (text_annotations[0].get("description") or "") if text_annotations else ""

    web = resp.get("web_detection") or {}
    best_guesses = web.get("best_guess_labels") or []
    best_guess = (best_guesses[0].get("label") or "") if best_guesses else ""
    entities = [e for e in web.get("web_entities") or [] if e.get("description")]
    # sorted() is stable, so equal scores keep the backend's order
    entities = sorted(entities, key=lambda e: e.get("score") or 0.0, reverse=True)[:WEB_ENTITY_LIMIT]

    return SignalBundle(
        labels=labels,
        logos=logos,
        objects=objects,
        ocr_text=full_text,
        best_guess=best_guess,
        web_entities=union(e["description"] for e in entities),
        face_count=len(resp.get("face_annotations") or []),
        safe_search=resp.get("safe_search_annotation") or {},
    )


def vertices_of(annotation: dict) -> list[tuple[float, float]]:
    poly = annotation.get("bounding_poly") or {}
    return [
        (float(v.get("x") or 0.0), float(v.get("y") or 0.0))
        for v in poly.get("normalized_vertices") or []
    ]


# ── Second-opinion parsing ────────────────────────────────────────────────────

def parse_json_response(raw: str, provider_name: str) -> dict:
    """
    Parse JSON from a model response, handling markdown fences gracefully.
    Raises ValueError on parse failure.
    """
    text = (raw or "").strip()
    # Strip ```json ... ``` or ``` ... ``` fences if present
    if text.startswith("```"):
        lines = text.split("\n")
        text = "\n".join(lines[1:-1] if lines[-1].strip() == "```" else lines[1:])
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.error("[%s] Non-JSON response: %s", provider_name, (raw or "")[:300])
        raise ValueError(f"[{provider_name}] JSON parse error: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"[{provider_name}] expected a JSON object, got {type(data).__name__}")
    return data


def second_opinion_from(data: dict) -> SecondOpinion:
    """Build a SecondOpinion from parsed JSON, defaulting every malformed field."""
    def _text(key: str) -> str:
        value = data.get(key)
        return value.strip() if isinstance(value, str) else ""

    synonyms = data.get("synonyms")
    confidence = data.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        confidence = 0.0

    return SecondOpinion(
        brand=_text("brand"),
        model=_text("model"),
        product_type=_text("product_type"),
        synonyms=union(s.strip() for s in synonyms if isinstance(s, str) and s.strip())
        if isinstance(synonyms, list) else [],
        confidence=min(1.0, max(0.0, float(confidence))),
    )


# ── Capability interfaces ─────────────────────────────────────────────────────

class ImageAnnotator(ABC):
    """The image-understanding backend both analysis passes go through."""

    name: str

    @abstractmethod
    async def annotate(self, image_bytes: bytes) -> dict[str, Any]:
        """Run every feature in one round trip; return the raw response as a dict."""
        ...

    @abstractmethod
    async def localize_objects(self, image_bytes: bytes) -> list[dict[str, Any]]:
        """Return object annotations (name, score, bounding_poly) only."""
        ...


class SecondOpinionProvider(ABC):
    name: str

    @abstractmethod
    async def extract(self, image_bytes: bytes) -> Optional[SecondOpinion]:
        """Return a guess, or None when the call or its parse failed."""
        ...
