import logging
from urllib.parse import urlencode

from locators import SEARCH
from network_sync import SEARCH_RESULTS, exchange, wait_for_path, wait_state
from services.errors import StageError
from suite_config import BASE_URL, TIMEOUT_MS

logger = logging.getLogger(__name__)

STAGE = "navigate"
PRODUCT_PATH = "/products/"


async def search_and_open(page, identifier: str, *, from_home: bool = True, timeout_ms: int = TIMEOUT_MS) -> None:
    """Search from the header box; done only once the URL is a product detail view."""
    if from_home:
        await page.goto(BASE_URL + "/", wait_until="domcontentloaded", timeout=timeout_ms)

    search = page.locator(SEARCH["input"]).first
    await wait_state(search, "visible", stage=STAGE, what="search input", timeout_ms=timeout_ms)
    if not await search.is_enabled():
        raise StageError(STAGE, "Search input is disabled", {"identifier": identifier})

    await search.fill("")
    await search.fill(identifier)
    await search.press("Enter")

    url = await wait_for_path(page, PRODUCT_PATH, stage=STAGE, timeout_ms=timeout_ms)
    logger.info("Product page opened: identifier=%s url=%s", identifier, url)


async def open_search_results(page, identifier: str, *, timeout_ms: int = TIMEOUT_MS) -> None:
    """Direct visit of the results URL; the storefront redirects single hits to the product."""
    url = f"{BASE_URL}/search/results?{urlencode({'query': identifier})}"
    await exchange(
        page,
        SEARCH_RESULTS,
        lambda: page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms),
        stage=STAGE,
        timeout_ms=timeout_ms,
        require_ok=False,
    )
    landed = await wait_for_path(page, PRODUCT_PATH, stage=STAGE, timeout_ms=timeout_ms)
    logger.info("Product page opened from results: identifier=%s url=%s", identifier, landed)
