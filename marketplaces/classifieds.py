"""
Irish classifieds sites scraped from their public search pages.

  DoneDeal    https://www.donedeal.ie/search?q=<query>
  Adverts.ie  https://www.adverts.ie/for-sale/q_<query>/

Both are local second-hand pools that complement (never replace) the eBay
results, so the aggregator always runs them.

Selectors are listed most-specific first: for the result cards and for each
field, the first selector that matches anything wins. Markup changes are
expected — a page that no longer matches simply yields no listings, and
any fetch or parse error is logged and swallowed here.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import aiohttp
from bs4 import BeautifulSoup, Tag

import config
from marketplaces.base import (
    Listing, MarketplaceProvider,
    absolute_url, clean_title, make_listing, parse_price_text,
)

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; ProductScanner/1.0)"
MAX_CARDS  = 12


@dataclass(frozen=True)
class SiteLayout:
    name: str
    origin: str
    search_path: str                 # formatted with the url-quoted query as {q}
    card_selectors: tuple[str, ...]
    title_selectors: tuple[str, ...]
    price_selectors: tuple[str, ...]
    link_selectors: tuple[str, ...] = ("a[href]",)
    currency: str = "EUR"

    def search_url(self, query: str) -> str:
        return self.origin + self.search_path.format(q=quote(query, safe=""))


DONEDEAL = SiteLayout(
    name="DoneDeal",
    origin="https://www.donedeal.ie",
    search_path="/search?q={q}",
    card_selectors=('[data-testid="search-result"]', ".ad", "article"),
    title_selectors=('[data-testid="search-result-title"]', ".ad-title", "h3"),
    price_selectors=('[data-testid="search-result-price"]', ".ad-price", ".price"),
)

ADVERTS = SiteLayout(
    name="Adverts.ie",
    origin="https://www.adverts.ie",
    search_path="/for-sale/q_{q}/",
    card_selectors=(".srp-listing", ".item-info", "article"),
    title_selectors=(".heading", "h3", "a[title]"),
    price_selectors=(".price", ".amount"),
)


class ClassifiedsProvider(MarketplaceProvider):

    def __init__(self, layout: SiteLayout, timeout: Optional[float] = None) -> None:
        self.layout = layout
        self._timeout = timeout or config.SCRAPER_TIMEOUT

    @property
    def name(self) -> str:
        return self.layout.name

    async def search(self, query: str) -> Optional[list[Listing]]:
        try:
            html = await self._fetch(query)
            listings = parse_listings(html, self.layout)
        except Exception as exc:
            logger.warning("[%s] scrape failed for '%s': %s", self.name, query, exc)
            return []
        logger.info("[%s] %d listings for '%s'", self.name, len(listings), query)
        return listings

    async def _fetch(self, query: str) -> str:
        async with aiohttp.ClientSession() as session:
            async with session.get(
                self.layout.search_url(query),
                headers={"User-Agent": USER_AGENT},
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if resp.status != 200:
                    raise RuntimeError(f"HTTP {resp.status}")
                return await resp.text()


# ── Parsing ────────────────────────────────────────────────────────────────────

def parse_listings(html: str, layout: SiteLayout) -> list[Listing]:
    soup = BeautifulSoup(html, "html.parser")
    listings: list[Listing] = []
    for card in _first_match(soup, layout.card_selectors)[:MAX_CARDS]:
        title = _field_text(card, layout.title_selectors)
        price_el = _field(card, layout.price_selectors)
        link_el = card if card.name == "a" and card.get("href") else _field(card, layout.link_selectors)
        listing = make_listing(
            title=title,
            source=layout.name,
            price=parse_price_text(price_el.get_text()) if price_el else None,
            currency=layout.currency,
            url=absolute_url(link_el.get("href") if link_el else None, layout.origin),
        )
        if listing:
            listings.append(listing)
    return listings


def _first_match(root: BeautifulSoup | Tag, selectors: tuple[str, ...]) -> list[Tag]:
    for selector in selectors:
        found = root.select(selector)
        if found:
            return found
    return []


def _field(card: Tag, selectors: tuple[str, ...]) -> Optional[Tag]:
    for selector in selectors:
        el = card.select_one(selector)
        if el is not None:
            return el
    return None


def _field_text(card: Tag, selectors: tuple[str, ...]) -> str:
    el = _field(card, selectors)
    return clean_title(el.get_text(" ")) if el else ""
