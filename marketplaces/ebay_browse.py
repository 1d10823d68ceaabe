"""
eBay Browse API provider (item_summary/search).

Needs an application token from TokenCache. Fixed to a single preferred
marketplace (EBAY_GB by default) — the closest large marketplace for Irish
and British buyers.

API docs: https://developer.ebay.com/api-docs/buy/browse/resources/item_summary/methods/search
"""
from __future__ import annotations

import logging
from typing import Optional

import aiohttp

import config
from marketplaces.base import Listing, MarketplaceProvider, as_dict, make_listing, parse_number
from marketplaces.token_cache import TokenCache

logger = logging.getLogger(__name__)

SEARCH_URL   = "https://api.ebay.com/buy/browse/v1/item_summary/search"
RESULT_LIMIT = 20


class EbayBrowseProvider(MarketplaceProvider):

    def __init__(
        self,
        token_cache: TokenCache,
        marketplace: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._tokens = token_cache
        self._marketplace = marketplace or config.EBAY_BROWSE_MARKETPLACE
        self._timeout = timeout or config.PROVIDER_TIMEOUT

    @property
    def name(self) -> str:
        return f"eBay Browse ({self._marketplace})"

    async def search(self, query: str) -> Optional[list[Listing]]:
        token = await self._tokens.get_token()
        if not token:
            logger.info("[%s] no eBay client credentials — skipped", self.name)
            return None

        summaries = await self._fetch(query, token)
        listings = [l for l in (self._parse_item(it) for it in summaries) if l]
        logger.info("[%s] %d listings for '%s'", self.name, len(listings), query)
        return listings

    # ── HTTP helper ───────────────────────────────────────────────────────────

    async def _fetch(self, query: str, token: str) -> list:
        headers = {
            "Authorization":           f"Bearer {token}",
            "X-EBAY-C-MARKETPLACE-ID": self._marketplace,
            "Accept":                  "application/json",
        }
        params = {"q": query, "limit": str(RESULT_LIMIT)}
        async with aiohttp.ClientSession() as session:
            async with session.get(
                SEARCH_URL,
                headers=headers,
                params=params,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise RuntimeError(f"eBay Browse error {resp.status}: {text[:200]}")
                data = await resp.json()
        return data.get("itemSummaries") or []

    # ── Parser ────────────────────────────────────────────────────────────────

    def _parse_item(self, raw: dict) -> Optional[Listing]:
        if not isinstance(raw, dict):
            return None
        price = as_dict(raw.get("price"))
        return make_listing(
            title=raw.get("title"),
            source=f"eBay ({self._marketplace})",
            price=parse_number(price.get("value")),
            currency=price.get("currency"),
            url=raw.get("itemWebUrl") or raw.get("itemAffiliateWebUrl"),
        )
