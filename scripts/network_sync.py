"""
Synchronization points: named network exchanges, URL settling and element states.

A scenario only reads dependent UI fields after the exchange that refreshes
them has completed; a page-load event alone is never treated as readiness.
Playwright timeouts are translated to SyncTimeoutError naming what was awaited.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from playwright.async_api import TimeoutError as PWTimeoutError

from services.errors import SyncTimeoutError, UnexpectedStatusError
from suite_config import TIMEOUT_MS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Exchange:
    name: str
    pattern: re.Pattern
    method: Optional[str] = None

    def matches(self, response) -> bool:
        if not self.pattern.search(response.url or ""):
            return False
        if self.method and (response.request.method or "").upper() != self.method:
            return False
        return True

    def describe(self) -> str:
        return f"{self.name} exchange ({self.method or 'ANY'} /{self.pattern.pattern}/)"


LOGIN = Exchange("login", re.compile(r"/login", re.I), "POST")
ADD_TO_CART = Exchange("add-to-cart", re.compile(r"/addtocart/", re.I), "POST")
CART = Exchange("cart-fetch", re.compile(r"/cart(?:[/?#]|$)", re.I), "GET")
PRICE = Exchange("price-recompute", re.compile(r"/price/", re.I))
SEARCH_RESULTS = Exchange("search-results", re.compile(r"/search/results", re.I), "GET")


async def exchange(
    page,
    spec: Exchange,
    action: Callable[[], Awaitable[None]],
    *,
    stage: str,
    timeout_ms: Optional[int] = None,
    require_ok: bool = True,
):
    """Run ``action`` and block until the matching response arrives.

    Success is exactly HTTP 200 unless ``require_ok`` is False.
    """
    timeout_ms = timeout_ms or TIMEOUT_MS

    async def _trigger() -> None:
        try:
            await action()
        except PWTimeoutError as e:
            raise SyncTimeoutError(stage, f"action that triggers the {spec.name} exchange", timeout_ms) from e

    try:
        async with page.expect_response(spec.matches, timeout=timeout_ms) as info:
            await _trigger()
        response = await info.value
    except PWTimeoutError as e:
        raise SyncTimeoutError(stage, spec.describe(), timeout_ms) from e

    logger.info("%s done: status=%s url=%s", spec.name, response.status, response.url)
    if require_ok and response.status != 200:
        raise UnexpectedStatusError(stage, spec.name, response.status, response.url)
    return response


async def wait_for_path(page, fragment: str, *, stage: str, timeout_ms: Optional[int] = None) -> str:
    timeout_ms = timeout_ms or TIMEOUT_MS
    try:
        await page.wait_for_url(re.compile(re.escape(fragment)), timeout=timeout_ms)
    except PWTimeoutError as e:
        raise SyncTimeoutError(stage, f"URL containing '{fragment}' (current: {page.url})", timeout_ms) from e
    return page.url


async def wait_state(locator, state: str, *, stage: str, what: str, timeout_ms: Optional[int] = None) -> None:
    timeout_ms = timeout_ms or TIMEOUT_MS
    try:
        await locator.wait_for(state=state, timeout=timeout_ms)
    except PWTimeoutError as e:
        raise SyncTimeoutError(stage, f"{what} to be {state}", timeout_ms) from e


async def read_text(locator, *, stage: str, what: str, timeout_ms: Optional[int] = None) -> str:
    """Live read of an element's text content; callers never cache the result."""
    timeout_ms = timeout_ms or TIMEOUT_MS
    try:
        return (await locator.text_content(timeout=timeout_ms)) or ""
    except PWTimeoutError as e:
        raise SyncTimeoutError(stage, f"{what} text", timeout_ms) from e


async def read_value(locator, *, stage: str, what: str, timeout_ms: Optional[int] = None) -> str:
    timeout_ms = timeout_ms or TIMEOUT_MS
    try:
        return await locator.input_value(timeout=timeout_ms)
    except PWTimeoutError as e:
        raise SyncTimeoutError(stage, f"{what} value", timeout_ms) from e
