"""
Storefront scenarios.

A scenario body starts on the product page and only mutates and asserts.
Fetching the backend record, logging in, opening the product and emptying the
cart afterwards belong to orchestrator.run_scenario.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import step4_product_actions as product
import step5_cart as cart
from services.errors import ReconciliationError, StageError
from services.product_api import ProductRecord
from services.reconcile import (
    ComparisonOutcome,
    FieldPolicy,
    assert_reconciled,
    description,
    identifier,
    money,
    parse_money,
    parse_quantity,
    quantity,
    scaled_money,
    status,
    text,
)

logger = logging.getLogger(__name__)

WORKFLOW_SKU = "4196:4677:P"
PACKAGING_SKU = "61-0089:100000:T"
SPECIAL_INSTRUCTION = "E2E Workflow Automation"
CART_QUANTITY = 5
RECALC_QUANTITY = 3
EXCESSIVE_QUANTITY = 99999


@dataclass
class ScenarioContext:
    page: Any
    record: Optional[ProductRecord] = None
    stage: str = "init"
    checks: List[ComparisonOutcome] = field(default_factory=list)

    def enter(self, stage: str) -> None:
        self.stage = stage
        logger.info("stage=%s", stage)

    def check(self, expected: Any, actual: Any, policy: FieldPolicy) -> ComparisonOutcome:
        try:
            outcome = assert_reconciled(expected, actual, policy, stage=self.stage)
        except ReconciliationError as e:
            self.checks.append(e.outcome)
            raise
        self.checks.append(outcome)
        return outcome

    def require(self, condition: bool, message: str, **details: Any) -> None:
        if not condition:
            raise StageError(self.stage, message, details)

    def need_record(self) -> ProductRecord:
        if self.record is None:
            raise StageError(self.stage, "Scenario needs the backend product record, but none was fetched")
        return self.record


@dataclass(frozen=True)
class Scenario:
    name: str
    sku: str
    run: Callable[[ScenarioContext], Awaitable[None]]
    entry: str = "search"
    fetch_record: bool = False
    uses_cart: bool = False
    summary: str = ""


async def api_ui_product(ctx: ScenarioContext) -> None:
    record = ctx.need_record()
    page = ctx.page

    ctx.enter("verify_sku")
    shown = await product.read_item_number(page, stage=ctx.stage)
    ctx.check(record.sku, shown, identifier("item-number vs API SKU"))
    ctx.check(WORKFLOW_SKU, shown, identifier("item-number"))

    ctx.enter("verify_status")
    ctx.check(record.status, await product.read_status(page, stage=ctx.stage), status("status-message"))

    ctx.enter("verify_price")
    ctx.check(record.price, await product.read_price(page, stage=ctx.stage), money("main-price"))

    ctx.enter("verify_description")
    ctx.check(
        record.description,
        await product.read_description(page, stage=ctx.stage),
        description("product-description"),
    )


async def e2e_workflow(ctx: ScenarioContext) -> None:
    page = ctx.page

    ctx.enter("verify_product")
    shown = await product.read_item_number(page, stage=ctx.stage)
    ctx.check(WORKFLOW_SKU, shown, identifier("item-number"))
    # The cart must show what the product page showed, not the constant we searched for.
    item_number = shown.strip()

    ctx.enter("special_instructions")
    await product.set_special_instructions(page, SPECIAL_INSTRUCTION, stage=ctx.stage)

    ctx.enter("add_to_cart")
    await product.add_to_cart(page, stage=ctx.stage)

    ctx.enter("open_cart")
    await cart.open_cart(page, stage=ctx.stage)

    ctx.enter("verify_cart")
    ctx.check("1", await cart.read_tab_count(page, stage=ctx.stage), text("cart-item-count"))
    ctx.check(item_number, await cart.read_item_number(page, stage=ctx.stage), identifier("cart item-number"))
    ctx.check(
        SPECIAL_INSTRUCTION,
        await cart.read_special_instructions(page, stage=ctx.stage),
        text("special-instructions"),
    )


async def product_details(ctx: ScenarioContext) -> None:
    page = ctx.page

    ctx.enter("verify_product")
    ctx.check(PACKAGING_SKU, await product.read_item_number(page, stage=ctx.stage), description("item-number"))

    price_text = await product.read_price(page, stage=ctx.stage)
    try:
        price = parse_money(price_text)
    except ValueError as e:
        raise StageError(ctx.stage, f"Main price is not numeric: {price_text!r}") from e
    ctx.require(price > 0, f"Main price must be positive, got {price}", price=str(price))

    ship_date = await product.read_ship_date(page, stage=ctx.stage)
    ctx.require(bool(ship_date.strip()), "Ship date is empty")


async def quantity_to_cart(ctx: ScenarioContext) -> None:
    page = ctx.page

    ctx.enter("set_quantity")
    await product.set_quantity(page, CART_QUANTITY, stage=ctx.stage)
    ctx.check(str(CART_QUANTITY), await product.read_quantity(page, stage=ctx.stage), text("quantity input"))

    ctx.enter("add_to_cart")
    await product.add_to_cart(page, stage=ctx.stage)

    ctx.enter("open_cart")
    await cart.open_cart(page, stage=ctx.stage)

    ctx.enter("verify_cart")
    ctx.check(CART_QUANTITY, await cart.read_item_quantity(page, stage=ctx.stage), quantity("item-quantity"))


async def price_recalculation(ctx: ScenarioContext) -> None:
    page = ctx.page

    ctx.enter("read_unit_price")
    unit_price = await product.read_price(page, stage=ctx.stage)

    ctx.enter("set_quantity")
    await product.set_quantity(page, RECALC_QUANTITY, await_price=True, stage=ctx.stage)
    ctx.check(str(RECALC_QUANTITY), await product.read_quantity(page, stage=ctx.stage), text("quantity input"))

    ctx.enter("verify_total")
    total = await product.read_price(page, stage=ctx.stage)
    ctx.check(unit_price, total, scaled_money(RECALC_QUANTITY, field="main-price total"))


async def inventory_boundary(ctx: ScenarioContext) -> None:
    page = ctx.page

    ctx.enter("set_quantity")
    await product.force_quantity(page, EXCESSIVE_QUANTITY, stage=ctx.stage)
    ctx.check(str(EXCESSIVE_QUANTITY), await product.read_quantity(page, stage=ctx.stage), text("quantity input"))

    ctx.enter("add_to_cart")
    await product.add_to_cart(page, await_exchange=False, stage=ctx.stage)

    ctx.enter("over_stock")
    available = await product.accept_available_quantity(page, stage=ctx.stage)

    ctx.enter("open_cart")
    await cart.open_cart(page, stage=ctx.stage)

    ctx.enter("verify_cart")
    in_cart = await cart.read_item_quantity(page, stage=ctx.stage)
    ctx.check(available, in_cart, quantity("item-quantity vs available"))
    ctx.require(
        parse_quantity(in_cart) != EXCESSIVE_QUANTITY,
        f"Cart kept the requested {EXCESSIVE_QUANTITY} instead of the available quantity",
        in_cart=in_cart,
    )


SCENARIOS: Dict[str, Scenario] = {
    s.name: s
    for s in (
        Scenario(
            "api_ui_product",
            WORKFLOW_SKU,
            api_ui_product,
            fetch_record=True,
            summary="API record vs product page: SKU, status, price, description",
        ),
        Scenario(
            "e2e_workflow",
            WORKFLOW_SKU,
            e2e_workflow,
            uses_cart=True,
            summary="search, special instructions, add to cart, verify cart",
        ),
        Scenario(
            "product_details",
            PACKAGING_SKU,
            product_details,
            entry="results",
            summary="item number, positive price, ship date",
        ),
        Scenario(
            "quantity_to_cart",
            PACKAGING_SKU,
            quantity_to_cart,
            entry="results",
            uses_cart=True,
            summary=f"quantity {CART_QUANTITY} persists into the cart",
        ),
        Scenario(
            "price_recalculation",
            PACKAGING_SKU,
            price_recalculation,
            entry="results",
            summary=f"total follows quantity {RECALC_QUANTITY}",
        ),
        Scenario(
            "inventory_boundary",
            PACKAGING_SKU,
            inventory_boundary,
            entry="results",
            uses_cart=True,
            summary=f"quantity {EXCESSIVE_QUANTITY} falls back to the available stock",
        ),
    )
}
