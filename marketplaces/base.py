"""
Abstract base for all marketplace providers.
Every provider returns the same Listing list — the aggregator doesn't care
which backend (API or scraped page) a listing came from.
"""
from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urljoin, urlparse

DEFAULT_CURRENCY = "EUR"


@dataclass(frozen=True)
class Listing:
    title: str
    source: str                 # e.g. "eBay (EBAY_GB)", "DoneDeal"
    price: Optional[float]
    currency: str
    url: Optional[str]

    @property
    def dedup_key(self) -> str:
        # url is deliberately not part of the key
        price = "" if self.price is None else str(self.price)
        return f"{self.title}|{price}|{self.source}"

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "source": self.source,
            "price": self.price,
            "currency": self.currency,
            "url": self.url,
        }


def make_listing(
    title: Any,
    source: str,
    price: Optional[float],
    currency: Any = None,
    url: Any = None,
) -> Optional[Listing]:
    """Normalise raw fields into a Listing; None when the title is empty."""
    clean = clean_title(title)
    if not clean:
        return None
    if price is not None and (not math.isfinite(price) or price < 0):
        price = None
    return Listing(
        title=clean,
        source=source,
        price=price,
        currency=normalise_currency(currency),
        url=sanitise_url(url),
    )


# ── Field normalisers ──────────────────────────────────────────────────────────

def clean_title(title: Any) -> str:
    return re.sub(r"\s+", " ", str(title or "")).strip()


def normalise_currency(currency: Any) -> str:
    if not currency:
        return DEFAULT_CURRENCY
    code = str(currency).strip()
    if code == "€":
        return "EUR"
    return code.upper() or DEFAULT_CURRENCY


def sanitise_url(url: Any) -> Optional[str]:
    """Keep only absolute http(s) URLs; relative paths and other schemes become None."""
    if not url or not isinstance(url, str):
        return None
    parsed = urlparse(url.strip())
    if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
        return None
    return url.strip()


def absolute_url(href: Any, origin: str) -> Optional[str]:
    """Resolve a scraped link against the site it came from."""
    if not href or not isinstance(href, str):
        return None
    href = href.strip()
    if not re.match(r"^https?://", href, re.IGNORECASE):
        href = urljoin(origin, href)
    return sanitise_url(href)


def as_dict(value: Any) -> dict:
    """Nested API objects that are not objects are treated as empty."""
    return value if isinstance(value, dict) else {}


def parse_number(raw: Any) -> Optional[float]:
    """Parse a plain numeric API field ('29.99', 29.99); None when absent or invalid."""
    if raw is None or raw == "":
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def parse_price_text(text: Any) -> Optional[float]:
    """
    Extract a price from display text: '€1,250', '€ 49,99', '1.250,00 €', '£12.50'.

    Currency symbols and spaces are dropped. When both separators appear the
    last one is the decimal point. A lone comma is a decimal comma unless it
    is followed by exactly three digits (thousands); a lone dot is always a
    decimal point unless it repeats.
    """
    cleaned = re.sub(r"[^0-9.,]", "", str(text or "")).rstrip(".,")
    if not re.search(r"\d", cleaned):
        return None

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        head, _, tail = cleaned.rpartition(",")
        if cleaned.count(",") > 1 or len(tail) == 3:
            cleaned = cleaned.replace(",", "")
        else:
            cleaned = f"{head}.{tail}"
    elif cleaned.count(".") > 1:
        cleaned = cleaned.replace(".", "")

    try:
        return float(cleaned)
    except ValueError:
        return None


class MarketplaceProvider(ABC):
    """All providers must implement this interface."""

    @abstractmethod
    async def search(self, query: str) -> Optional[list[Listing]]:
        """
        Search the marketplace for `query`.
        Returns listings in the backend's order, or None when the provider is
        not configured. Transport errors may raise; the aggregator absorbs them.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name for logs."""
        ...
