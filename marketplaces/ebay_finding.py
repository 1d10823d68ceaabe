"""
eBay Finding API provider (findItemsByKeywords) — the legacy keyword search.

Only an application id is needed (no OAuth). One instance serves one
GLOBAL-ID; the aggregator chains IE → GB → US instances and stops at the
first region that answers.

The JSON flavour of this API wraps every value in a one-element list:
  {"findItemsByKeywordsResponse": [{"searchResult": [{"item": [
      {"title": ["…"], "viewItemURL": ["…"],
       "sellingStatus": [{"currentPrice": [{"@currencyId": "EUR", "__value__": "12.0"}]}]}
  ]}]}]}
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import aiohttp

import config
from marketplaces.base import Listing, MarketplaceProvider, as_dict, make_listing, parse_number

logger = logging.getLogger(__name__)

ENDPOINT        = "https://svcs.ebay.com/services/search/FindingService/v1"
SERVICE_VERSION = "1.13.0"
PAGE_SIZE       = 20
USER_AGENT      = "ProductScanner/1.0 (+local)"


class EbayFindingProvider(MarketplaceProvider):

    group = "ebay-finding"

    def __init__(
        self,
        global_id: str,
        app_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.global_id = global_id
        self._app_id = app_id if app_id is not None else config.EBAY_APP_ID
        self._timeout = timeout or config.PROVIDER_TIMEOUT

    @property
    def name(self) -> str:
        return f"eBay Finding ({self.global_id})"

    async def search(self, query: str) -> Optional[list[Listing]]:
        if not self._app_id:
            logger.info("[%s] EBAY_APP_ID not set — skipped", self.name)
            return None

        items = await self._fetch(query)
        listings = [l for l in (self._parse_item(it) for it in items) if l]
        logger.info("[%s] %d listings for '%s'", self.name, len(listings), query)
        return listings

    # ── HTTP helper ───────────────────────────────────────────────────────────

    async def _fetch(self, query: str) -> list:
        params = {
            "OPERATION-NAME":                 "findItemsByKeywords",
            "SERVICE-VERSION":                SERVICE_VERSION,
            "SECURITY-APPNAME":               self._app_id,
            "RESPONSE-DATA-FORMAT":           "JSON",
            "REST-PAYLOAD":                   "true",
            "GLOBAL-ID":                      self.global_id,
            "paginationInput.entriesPerPage": str(PAGE_SIZE),
            "keywords":                       query,
        }
        headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        async with aiohttp.ClientSession() as session:
            async with session.get(
                ENDPOINT,
                headers=headers,
                params=params,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise RuntimeError(f"eBay Finding {self.global_id} error {resp.status}: {text[:200]}")
                # Finding answers JSON as text/plain on some regions
                data = await resp.json(content_type=None)

        if not isinstance(data, dict):
            raise RuntimeError(f"eBay Finding {self.global_id}: unexpected payload")
        envelope = _first(data.get("findItemsByKeywordsResponse")) or {}
        result = _first(envelope.get("searchResult")) or {}
        return result.get("item") or []

    # ── Parser ────────────────────────────────────────────────────────────────

    def _parse_item(self, raw: dict) -> Optional[Listing]:
        if not isinstance(raw, dict):
            return None
        status = as_dict(_first(raw.get("sellingStatus")))
        price = as_dict(_first(status.get("currentPrice")))
        return make_listing(
            title=_first(raw.get("title")),
            source=f"eBay ({self.global_id})",
            price=parse_number(price.get("__value__")),
            currency=price.get("@currencyId"),
            url=_first(raw.get("viewItemURL")),
        )


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value
