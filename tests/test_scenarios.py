from decimal import Decimal

import pytest

import scenarios
from fakes import BASE, FakeElement, FakePage
from locators import CART, PRODUCT, TEXT
from scenarios import SCENARIOS, ScenarioContext
from services.errors import ReconciliationError, StageError
from services.product_api import ProductRecord

PRODUCT_URL = BASE + "/products/details"
TAB_BADGE = CART["tab_count"]
OVER_STOCK = f"text={TEXT['over_stock']}"
ACCEPT = f"{PRODUCT['modal_button']}|{TEXT['accept']}"


def _product_page(**elements: FakeElement) -> FakePage:
    page = FakePage(PRODUCT_URL)
    page.elements.update({PRODUCT[k]: v for k, v in elements.items()})
    return page


def _reprice(total: str):
    def _hook(p: FakePage) -> None:
        p.elements[PRODUCT["price"]].text = total
        p.emit(BASE + "/api/price/61-0089", 200, "POST")

    return _hook


class TestCatalogue:
    def test_six_scenarios(self) -> None:
        assert list(SCENARIOS) == [
            "api_ui_product",
            "e2e_workflow",
            "product_details",
            "quantity_to_cart",
            "price_recalculation",
            "inventory_boundary",
        ]

    def test_only_api_scenario_fetches_a_record(self) -> None:
        assert [s.name for s in SCENARIOS.values() if s.fetch_record] == ["api_ui_product"]

    def test_cart_owners(self) -> None:
        owners = {s.name for s in SCENARIOS.values() if s.uses_cart}
        assert owners == {"e2e_workflow", "quantity_to_cart", "inventory_boundary"}


class TestApiUiProduct:
    RECORD = ProductRecord(scenarios.WORKFLOW_SKU, "In Stock", "Ring Mounting", Decimal("1234.50"))

    def _page(self, price: str = "$1,234.50") -> FakePage:
        return _product_page(
            item_number_visible=FakeElement(text=f" {scenarios.WORKFLOW_SKU} "),
            status=FakeElement(text="In Stock"),
            price=FakeElement(text=price),
            description=FakeElement(text="14K Ring Mounting with accents"),
        )

    @pytest.mark.asyncio
    async def test_all_fields_reconcile(self) -> None:
        ctx = ScenarioContext(page=self._page(), record=self.RECORD)

        await SCENARIOS["api_ui_product"].run(ctx)

        assert [c.passed for c in ctx.checks] == [True] * 5
        assert ctx.stage == "verify_description"

    @pytest.mark.asyncio
    async def test_price_mismatch_stops_before_description(self) -> None:
        ctx = ScenarioContext(page=self._page(price="$1,300.00"), record=self.RECORD)

        with pytest.raises(ReconciliationError) as exc:
            await SCENARIOS["api_ui_product"].run(ctx)

        assert exc.value.stage == "verify_price"
        assert ctx.checks[-1].field == "main-price"
        assert not ctx.checks[-1].passed
        assert len(ctx.checks) == 4

    @pytest.mark.asyncio
    async def test_requires_backend_record(self) -> None:
        with pytest.raises(StageError, match="backend product record"):
            await SCENARIOS["api_ui_product"].run(ScenarioContext(page=self._page()))


class TestProductDetails:
    @pytest.mark.asyncio
    async def test_passes_with_price_and_ship_date(self) -> None:
        page = _product_page(
            item_number_visible=FakeElement(text=scenarios.PACKAGING_SKU),
            price=FakeElement(text="$12.40"),
            ship_date=FakeElement(text="Ships Tomorrow"),
        )
        await SCENARIOS["product_details"].run(ScenarioContext(page=page))

    @pytest.mark.asyncio
    async def test_zero_price_fails(self) -> None:
        page = _product_page(
            item_number_visible=FakeElement(text=scenarios.PACKAGING_SKU),
            price=FakeElement(text="$0.00"),
            ship_date=FakeElement(text="Ships Tomorrow"),
        )
        with pytest.raises(StageError, match="positive"):
            await SCENARIOS["product_details"].run(ScenarioContext(page=page))


class TestPriceRecalculation:
    def _page(self, total: str) -> FakePage:
        page = _product_page(price=FakeElement(text="$1,250.00"), quantity=FakeElement(value="1"))
        page.hooks[("type", PRODUCT["quantity"])] = _reprice(total)
        return page

    @pytest.mark.asyncio
    async def test_total_follows_quantity(self) -> None:
        ctx = ScenarioContext(page=self._page("$3,750.02"))

        await SCENARIOS["price_recalculation"].run(ctx)

        total = ctx.checks[-1]
        assert total.passed
        assert total.expected == Decimal("3750.00")

    @pytest.mark.asyncio
    async def test_stale_total_fails(self) -> None:
        ctx = ScenarioContext(page=self._page("$1,250.00"))

        with pytest.raises(ReconciliationError) as exc:
            await SCENARIOS["price_recalculation"].run(ctx)

        assert exc.value.stage == "verify_total"


class TestInventoryBoundary:
    def _page(self, available: str = "Available: 1,200", in_cart: str = "1200") -> FakePage:
        page = _product_page(quantity=FakeElement(value="1"), add_to_cart=FakeElement())
        page.hooks[("evaluate", PRODUCT["quantity"])] = lambda p: p.emit(BASE + "/api/price/61-0089", 200)

        def _over_stock(p: FakePage) -> None:
            p.elements[OVER_STOCK] = FakeElement(text=TEXT["over_stock"])
            p.elements[PRODUCT["available_quantity"]] = FakeElement(text=available)
            p.elements[ACCEPT] = FakeElement(text=TEXT["accept"])

        def _accept(p: FakePage) -> None:
            p.emit(BASE + "/addtocart/", 200, "POST")

        def _render_cart(p: FakePage, url: str) -> None:
            if url.endswith("/cart"):
                p.elements[CART["item_quantity"]] = FakeElement(value=in_cart)

        page.hooks[("click", PRODUCT["add_to_cart"])] = _over_stock
        page.hooks[("click", ACCEPT)] = _accept
        page.goto_hooks.append(_render_cart)
        return page

    @pytest.mark.asyncio
    async def test_cart_receives_available_quantity(self) -> None:
        page = self._page()
        ctx = ScenarioContext(page=page)

        await SCENARIOS["inventory_boundary"].run(ctx)

        quantity_write = [a for a in page.actions if a[0] == "evaluate"][0]
        assert quantity_write[2] == str(scenarios.EXCESSIVE_QUANTITY)
        assert ctx.checks[-1].expected == 1200
        assert ctx.checks[-1].passed
        assert ctx.stage == "verify_cart"

    @pytest.mark.asyncio
    async def test_missing_over_stock_notice_times_out(self) -> None:
        page = self._page()
        page.hooks.pop(("click", PRODUCT["add_to_cart"]))
        ctx = ScenarioContext(page=page)

        with pytest.raises(StageError) as exc:
            await scenarios.inventory_boundary(ctx)

        assert exc.value.stage == "over_stock"

    @pytest.mark.asyncio
    async def test_cart_keeping_requested_quantity_fails(self) -> None:
        ctx = ScenarioContext(page=self._page(in_cart="99,999"))

        with pytest.raises(ReconciliationError) as exc:
            await SCENARIOS["inventory_boundary"].run(ctx)

        assert exc.value.stage == "verify_cart"
        assert ctx.checks[-1].actual == 99999

    @pytest.mark.asyncio
    async def test_unreadable_available_quantity(self) -> None:
        page = self._page(available="Available: 2.5")

        with pytest.raises(StageError, match="unreadable") as exc:
            await SCENARIOS["inventory_boundary"].run(ScenarioContext(page=page))

        assert exc.value.stage == "over_stock"
        assert not any(a == ("click", ACCEPT) for a in page.actions)


class TestQuantityToCart:
    @pytest.mark.asyncio
    async def test_quantity_persists(self) -> None:
        page = _product_page(quantity=FakeElement(value="1"), add_to_cart=FakeElement())
        page.hooks[("click", PRODUCT["add_to_cart"])] = lambda p: p.emit(BASE + "/addtocart/", 200, "POST")
        page.goto_hooks.append(lambda p, url: p.elements.update({CART["item_quantity"]: FakeElement(value="5")}))
        ctx = ScenarioContext(page=page)

        await SCENARIOS["quantity_to_cart"].run(ctx)

        assert [c.field for c in ctx.checks] == ["quantity input", "item-quantity"]
        assert all(c.passed for c in ctx.checks)

    @pytest.mark.asyncio
    async def test_disabled_add_to_cart(self) -> None:
        page = _product_page(quantity=FakeElement(value="1"), add_to_cart=FakeElement(enabled=False))
        with pytest.raises(StageError, match="disabled") as exc:
            await SCENARIOS["quantity_to_cart"].run(ScenarioContext(page=page))
        assert exc.value.stage == "add_to_cart"


class TestE2EWorkflow:
    @pytest.mark.asyncio
    async def test_cart_reflects_product_page(self) -> None:
        sku = scenarios.WORKFLOW_SKU
        page = _product_page(
            item_number_visible=FakeElement(text=sku),
            special_instructions=FakeElement(),
            add_to_cart=FakeElement(),
        )
        page.hooks[("click", PRODUCT["add_to_cart"])] = lambda p: p.emit(BASE + "/addtocart/", 200, "POST")

        def _render_cart(p: FakePage, url: str) -> None:
            p.elements[TAB_BADGE] = FakeElement(text="1")
            p.elements[CART["item_number"]] = FakeElement(text=sku)
            p.elements[CART["special_instructions"]] = FakeElement(text=scenarios.SPECIAL_INSTRUCTION)

        page.goto_hooks.append(_render_cart)
        ctx = ScenarioContext(page=page)

        await SCENARIOS["e2e_workflow"].run(ctx)

        assert page.elements[PRODUCT["special_instructions"]].value == scenarios.SPECIAL_INSTRUCTION
        assert [c.field for c in ctx.checks] == [
            "item-number",
            "cart-item-count",
            "cart item-number",
            "special-instructions",
        ]
