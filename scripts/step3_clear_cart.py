import asyncio
import json
import logging
from enum import Enum

from playwright.async_api import async_playwright

from locators import CART, TEXT
from network_sync import wait_state
from services.errors import ConfigError, StageError, SyncTimeoutError
from step1_login import authenticate
from step5_cart import is_cart_url, open_cart
from suite_config import BASE_URL, HEADLESS, TIMEOUT_MS, load_credentials

logger = logging.getLogger(__name__)

STAGE = "clear_cart"


class Affordance(str, Enum):
    ABSENT = "absent"
    ACTIONABLE = "actionable"
    DISABLED = "disabled"


async def probe_remove_all(page) -> Affordance:
    button = page.locator(CART["remove_all"])
    if await button.count() == 0:
        return Affordance.ABSENT
    first = button.first
    if await first.is_visible() and await first.is_enabled():
        return Affordance.ACTIONABLE
    return Affordance.DISABLED


async def _empty_indicator_visible(page) -> bool:
    indicator = page.get_by_text(TEXT["cart_empty"])
    try:
        return await indicator.count() > 0 and await indicator.first.is_visible()
    except Exception:
        return False


async def _wait_cart_settled(page, timeout_ms: int) -> None:
    # The cart renders either the remove-all control or the empty notice; probing before that is meaningless.
    remove_all = page.locator(CART["remove_all"])
    deadline = asyncio.get_running_loop().time() + (timeout_ms / 1000.0)
    while True:
        if await remove_all.count() > 0:
            return
        if await _empty_indicator_visible(page):
            return
        if asyncio.get_running_loop().time() >= deadline:
            raise SyncTimeoutError(STAGE, f"remove-all control or '{TEXT['cart_empty']}' notice", timeout_ms)
        await page.wait_for_timeout(120)


async def empty_cart(page, *, timeout_ms: int = TIMEOUT_MS) -> Affordance:
    """
    Bring the cart to its empty state. Idempotent.

    ABSENT is not taken on faith: the empty notice must be on screen, otherwise
    the cart is merely un-clearable and that is an error.
    """
    if not is_cart_url(page.url):
        await open_cart(page, stage=STAGE, timeout_ms=timeout_ms)

    await _wait_cart_settled(page, timeout_ms)
    state = await probe_remove_all(page)
    logger.info("Remove-all control: %s", state.value)

    if state is Affordance.DISABLED:
        raise StageError(STAGE, "Remove-all control is present but not actionable", {"url": page.url})

    if state is Affordance.ACTIONABLE:
        await page.locator(CART["remove_all"]).first.click(timeout=timeout_ms)
        confirm = page.locator(CART["confirm_remove_all"]).first
        await wait_state(confirm, "visible", stage=STAGE, what="remove-all confirmation", timeout_ms=timeout_ms)
        await confirm.click(timeout=timeout_ms)

    indicator = page.get_by_text(TEXT["cart_empty"]).first
    await wait_state(indicator, "visible", stage=STAGE, what=f"'{TEXT['cart_empty']}' notice", timeout_ms=timeout_ms)
    logger.info("Cart is empty (was %s)", state.value)
    return state


async def _run() -> tuple[bool, dict]:
    credentials = load_credentials()
    browser = None
    context = None
    page = None
    try:
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=HEADLESS)
            session = await authenticate(browser, credentials)
            context = await browser.new_context(base_url=BASE_URL, storage_state=str(session.storage_state))
            page = await context.new_page()
            state = await empty_cart(page)
            return True, {"ok": True, "remove_all": state.value, "url": page.url}
    except StageError as e:
        return False, {
            "ok": False,
            "error": str(e),
            "stage": e.stage,
            "url": page.url if page is not None else "",
            "details": e.details,
        }
    finally:
        try:
            if context is not None:
                await context.close()
        except Exception:
            pass
        try:
            if browser is not None:
                await browser.close()
        except Exception:
            pass


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(name)s: %(message)s")
    try:
        ok, payload = asyncio.run(_run())
    except ConfigError as e:
        ok, payload = False, {"ok": False, "error": str(e), "stage": "config"}

    print(json.dumps(payload, ensure_ascii=False))
    return 0 if ok else 2


if __name__ == "__main__":
    raise SystemExit(main())
