"""
Outcome of an optional step: either a value, or the reason it was skipped.

Used for the crop pass and the second opinion in vision/fusion.py and for
every provider call in marketplace_search.py, so that a failure is logged
once at the boundary and then carried as data rather than as an exception.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: Optional[T] = None
    reason: Optional[str] = None     # set only when skipped

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def skipped(cls, reason: str) -> "Outcome[T]":
        return cls(reason=reason)


async def guarded(step: str, awaitable: Awaitable[Any], log: logging.Logger) -> Outcome:
    """
    Await an optional step and turn any exception into Outcome.skipped.
    A None result is also a skip: the step ran but produced nothing.
    """
    try:
        value = await awaitable
    except Exception as exc:
        log.warning("[%s] skipped: %s", step, exc)
        return Outcome.skipped(f"{type(exc).__name__}: {exc}")
    if value is None:
        log.info("[%s] skipped: no result", step)
        return Outcome.skipped("no result")
    return Outcome.success(value)
