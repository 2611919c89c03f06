import logging

from locators import PRODUCT, TEXT
from network_sync import ADD_TO_CART, PRICE, exchange, read_text, read_value, wait_state
from services.errors import StageError
from services.reconcile import extract_quantity
from suite_config import TIMEOUT_MS

logger = logging.getLogger(__name__)

# Reactive inputs only pick up programmatic values once these events fire.
_DISPATCH_JS = """(el, [value, events]) => {
    el.value = value;
    for (const name of events) {
        el.dispatchEvent(new Event(name, { bubbles: true }));
    }
}"""


async def _visible(page, selector: str, *, stage: str, what: str, timeout_ms: int):
    loc = page.locator(selector).first
    await wait_state(loc, "visible", stage=stage, what=what, timeout_ms=timeout_ms)
    return loc


async def read_item_number(page, *, stage: str = "verify_product", timeout_ms: int = TIMEOUT_MS) -> str:
    loc = await _visible(page, PRODUCT["item_number_visible"], stage=stage, what="item number", timeout_ms=timeout_ms)
    return await read_text(loc, stage=stage, what="item number", timeout_ms=timeout_ms)


async def read_status(page, *, stage: str = "verify_product", timeout_ms: int = TIMEOUT_MS) -> str:
    loc = await _visible(page, PRODUCT["status"], stage=stage, what="status message", timeout_ms=timeout_ms)
    return await read_text(loc, stage=stage, what="status message", timeout_ms=timeout_ms)


async def read_price(page, *, stage: str = "verify_product", timeout_ms: int = TIMEOUT_MS) -> str:
    loc = await _visible(page, PRODUCT["price"], stage=stage, what="main price", timeout_ms=timeout_ms)
    return await read_text(loc, stage=stage, what="main price", timeout_ms=timeout_ms)


async def read_description(page, *, stage: str = "verify_product", timeout_ms: int = TIMEOUT_MS) -> str:
    loc = page.locator(PRODUCT["description"]).first
    return await read_text(loc, stage=stage, what="product description", timeout_ms=timeout_ms)


async def read_ship_date(page, *, stage: str = "verify_product", timeout_ms: int = TIMEOUT_MS) -> str:
    loc = await _visible(page, PRODUCT["ship_date"], stage=stage, what="ship date", timeout_ms=timeout_ms)
    return await read_text(loc, stage=stage, what="ship date", timeout_ms=timeout_ms)


async def read_quantity(page, *, stage: str = "set_quantity", timeout_ms: int = TIMEOUT_MS) -> str:
    loc = page.locator(PRODUCT["quantity"]).first
    return await read_value(loc, stage=stage, what="quantity input", timeout_ms=timeout_ms)


async def set_quantity(
    page,
    qty: int,
    *,
    await_price: bool = False,
    stage: str = "set_quantity",
    timeout_ms: int = TIMEOUT_MS,
) -> None:
    """Type a quantity like a user. With ``await_price`` the call returns only after the price refresh."""
    field = await _visible(page, PRODUCT["quantity"], stage=stage, what="quantity input", timeout_ms=timeout_ms)

    async def _type() -> None:
        await field.click(timeout=timeout_ms)
        await field.fill("")
        await field.type(str(qty), delay=20, timeout=timeout_ms)

    if await_price:
        await exchange(page, PRICE, _type, stage=stage, timeout_ms=timeout_ms)
    else:
        await _type()
    logger.info("Quantity set to %s", qty)


async def force_quantity(page, qty: int, *, stage: str = "set_quantity", timeout_ms: int = TIMEOUT_MS) -> None:
    """
    Write the value straight into the input and fire input/change.

    Used for quantities the widget refuses to accept from the keyboard; the call
    returns after the price refresh and once the loading overlay is gone.
    """
    field = await _visible(page, PRODUCT["quantity"], stage=stage, what="quantity input", timeout_ms=timeout_ms)

    async def _write() -> None:
        await field.click(timeout=timeout_ms)
        await field.fill("")
        await field.evaluate(_DISPATCH_JS, [str(qty), ["input", "change"]])

    await exchange(page, PRICE, _write, stage=stage, timeout_ms=timeout_ms)
    await wait_state(
        page.locator(PRODUCT["loading"]).first, "hidden", stage=stage, what="loading indicator", timeout_ms=timeout_ms
    )
    logger.info("Quantity forced to %s", qty)


async def set_special_instructions(
    page, text: str, *, stage: str = "special_instructions", timeout_ms: int = TIMEOUT_MS
) -> None:
    area = page.locator(PRODUCT["special_instructions"]).first
    await wait_state(area, "attached", stage=stage, what="special instructions textarea", timeout_ms=timeout_ms)
    await area.evaluate(_DISPATCH_JS, [text, ["input", "change", "blur"]])
    logger.info("Special instructions set (%s chars)", len(text))


async def add_to_cart(
    page,
    *,
    await_exchange: bool = True,
    stage: str = "add_to_cart",
    timeout_ms: int = TIMEOUT_MS,
) -> None:
    button = await _visible(page, PRODUCT["add_to_cart"], stage=stage, what="add-to-cart button", timeout_ms=timeout_ms)
    if not await button.is_enabled():
        raise StageError(stage, "Add-to-cart button is disabled", {"url": page.url})

    if await_exchange:
        await exchange(page, ADD_TO_CART, lambda: button.click(timeout=timeout_ms), stage=stage, timeout_ms=timeout_ms)
        logger.info("Added to cart")
    else:
        await button.click(timeout=timeout_ms)


async def accept_available_quantity(page, *, stage: str = "over_stock", timeout_ms: int = TIMEOUT_MS) -> int:
    """Handle the over-stock notice: read the offered quantity, accept it, wait for add-to-cart.

    Returns the available quantity parsed from its labelled text.
    """
    notice = page.get_by_text(TEXT["over_stock"]).first
    await wait_state(notice, "visible", stage=stage, what=f"'{TEXT['over_stock']}' notice", timeout_ms=timeout_ms)

    available = await _visible(
        page, PRODUCT["available_quantity"], stage=stage, what="available quantity", timeout_ms=timeout_ms
    )
    available_text = await read_text(available, stage=stage, what="available quantity", timeout_ms=timeout_ms)
    try:
        offered = extract_quantity(available_text)
    except ValueError as e:
        raise StageError(stage, f"Available quantity is unreadable: {available_text!r}") from e

    accept = page.locator(PRODUCT["modal_button"], has_text=TEXT["accept"]).first
    await exchange(page, ADD_TO_CART, lambda: accept.click(timeout=timeout_ms), stage=stage, timeout_ms=timeout_ms)
    logger.info("Accepted available quantity %s", offered)
    return offered
