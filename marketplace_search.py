"""
marketplace_search.py — public interface for listing search.

The web layer imports only from here:
  from marketplace_search import build_aggregator, MarketplaceAggregator

Provider order (each step is a ProviderStep: provider + "should I run" predicate):

  1. eBay Browse (EBAY_GB)                    always
  2. eBay Finding IE → GB → US                only if Browse was unavailable or
                                              returned < FALLBACK_MIN_RESULTS,
                                              and stop at the first region that answers
  3. DoneDeal, Adverts.ie                     always, started up front and run
                                              concurrently with steps 1–2

Every provider call has its own timeout; a failing provider is logged and
skipped, never fatal. Results are concatenated in step order and
de-duplicated by title + price + source (first occurrence wins).
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

import config
from marketplaces.base import Listing, MarketplaceProvider
from marketplaces.classifieds import ADVERTS, DONEDEAL, ClassifiedsProvider
from marketplaces.ebay_browse import EbayBrowseProvider
from marketplaces.ebay_finding import EbayFindingProvider
from marketplaces.token_cache import TokenCache
from outcome import Outcome, guarded

logger = logging.getLogger(__name__)

__all__ = ["Listing", "MarketplaceAggregator", "ProviderStep", "build_aggregator", "dedupe"]


@dataclass
class SearchState:
    """Outcomes so far, keyed by step name, in the order they finished."""
    outcomes: dict[str, Outcome[list[Listing]]] = field(default_factory=dict)
    succeeded_groups: set[str] = field(default_factory=set)

    def record(self, step: "ProviderStep", outcome: Outcome[list[Listing]]) -> None:
        self.outcomes[step.name] = outcome
        if outcome.ok and step.group:
            self.succeeded_groups.add(step.group)

    def outcome(self, step: str) -> Optional[Outcome[list[Listing]]]:
        return self.outcomes.get(step)

    def group_succeeded(self, group: str) -> bool:
        return group in self.succeeded_groups


def always(_state: SearchState) -> bool:
    return True


@dataclass
class ProviderStep:
    provider: MarketplaceProvider
    should_run: Callable[[SearchState], bool] = always
    independent: bool = False      # runs concurrently, never waits on other steps
    group: Optional[str] = None
    timeout: float = config.PROVIDER_TIMEOUT

    @property
    def name(self) -> str:
        return self.provider.name


class MarketplaceAggregator:

    def __init__(self, steps: list[ProviderStep]) -> None:
        self.steps = steps

    async def search(self, query: str) -> list[Listing]:
        state = SearchState()

        # Independent steps start right away
        background = {
            step.name: asyncio.create_task(self._run(step, query))
            for step in self.steps if step.independent
        }

        for step in self.steps:
            if step.independent:
                continue
            if not step.should_run(state):
                logger.info("[%s] not needed", step.name)
                continue
            state.record(step, await self._run(step, query))

        for step in self.steps:
            if step.name in background:
                state.record(step, await background[step.name])

        collected: list[Listing] = []
        for step in self.steps:
            outcome = state.outcome(step.name)
            if outcome is not None and outcome.ok:
                collected.extend(outcome.value)

        result = dedupe(collected)
        logger.info("Search '%s' → %d listings (%d before dedup)", query, len(result), len(collected))
        return result

    async def _run(self, step: ProviderStep, query: str) -> Outcome[list[Listing]]:
        return await guarded(
            step.name,
            asyncio.wait_for(step.provider.search(query), timeout=step.timeout),
            logger,
        )


def dedupe(listings: list[Listing]) -> list[Listing]:
    seen: dict[str, Listing] = {}
    for listing in listings:
        seen.setdefault(listing.dedup_key, listing)
    return list(seen.values())


# ── Default provider chain ─────────────────────────────────────────────────────

def build_aggregator(
    token_cache: Optional[TokenCache] = None,
    finding_regions: Optional[list[str]] = None,
    min_results: Optional[int] = None,
) -> MarketplaceAggregator:
    """Wire the standard chain from config. The token cache should live as long as the process."""
    token_cache = token_cache or TokenCache()
    regions = finding_regions or config.EBAY_FINDING_REGIONS
    threshold = config.FALLBACK_MIN_RESULTS if min_results is None else min_results

    browse = EbayBrowseProvider(token_cache)
    steps: list[ProviderStep] = [ProviderStep(browse)]

    def fallback_needed(state: SearchState) -> bool:
        outcome = state.outcome(browse.name)
        return outcome is None or not outcome.ok or len(outcome.value) < threshold

    def next_finding_region(state: SearchState) -> bool:
        return fallback_needed(state) and not state.group_succeeded(EbayFindingProvider.group)

    for region in regions:
        steps.append(ProviderStep(
            EbayFindingProvider(region),
            should_run=next_finding_region,
            group=EbayFindingProvider.group,
        ))

    for layout in (DONEDEAL, ADVERTS):
        steps.append(ProviderStep(
            ClassifiedsProvider(layout),
            independent=True,
            timeout=config.SCRAPER_TIMEOUT,
        ))

    return MarketplaceAggregator(steps)
