import logging
from urllib.parse import urlparse

from locators import CART, TEXT
from network_sync import CART as CART_EXCHANGE
from network_sync import exchange, read_text, read_value, wait_for_path, wait_state
from suite_config import BASE_URL, TIMEOUT_MS

logger = logging.getLogger(__name__)

CART_PATH = "/cart"


def is_cart_url(url: str) -> bool:
    return urlparse(url or "").path.rstrip("/").endswith(CART_PATH)


async def open_cart(page, *, stage: str = "open_cart", timeout_ms: int = TIMEOUT_MS) -> None:
    await exchange(
        page,
        CART_EXCHANGE,
        lambda: page.goto(BASE_URL + CART_PATH, wait_until="domcontentloaded", timeout=timeout_ms),
        stage=stage,
        timeout_ms=timeout_ms,
    )
    await wait_for_path(page, CART_PATH, stage=stage, timeout_ms=timeout_ms)
    logger.info("Cart opened: %s", page.url)


async def read_item_number(page, *, stage: str = "verify_cart") -> str:
    return await read_text(page.locator(CART["item_number"]).first, stage=stage, what="cart item number")


async def read_item_quantity(page, *, stage: str = "verify_cart") -> str:
    return await read_value(page.locator(CART["item_quantity"]).first, stage=stage, what="cart item quantity")


async def read_special_instructions(page, *, stage: str = "verify_cart") -> str:
    return await read_text(
        page.locator(CART["special_instructions"]).first, stage=stage, what="cart special instructions"
    )


async def read_tab_count(page, *, stage: str = "verify_cart") -> str:
    tab = page.locator(CART["tab_link"], has_text=TEXT["cart_tab"]).first
    badge = tab.locator(CART["tab_count"]).first
    await wait_state(badge, "visible", stage=stage, what="cart item count badge")
    return await read_text(badge, stage=stage, what="cart item count badge")
