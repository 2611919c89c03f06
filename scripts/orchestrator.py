# scripts/orchestrator.py
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import uuid
from typing import Any, Dict, List, Optional

from playwright.async_api import async_playwright

from scenarios import SCENARIOS, Scenario, ScenarioContext
from services.errors import ConfigError, StageError
from services.product_api import fetch_product
from step1_login import SessionCache
from step2_search import open_search_results, search_and_open
from step3_clear_cart import empty_cart
from suite_config import (
    API_BASE_URL,
    API_TIMEOUT_SEC,
    BASE_URL,
    HEADLESS,
    SCREENSHOT_ON_FAIL,
    Credentials,
    artifact_path,
    load_credentials,
)

logger = logging.getLogger(__name__)

SCENARIO_RESULT_JSON_PREFIX = "SCENARIO_RESULT_JSON="
RUN_INSTANCE_ID = uuid.uuid4().hex[:12]


async def _fetch_record(scenario: Scenario, credentials: Credentials):
    return await asyncio.to_thread(
        fetch_product,
        API_BASE_URL,
        credentials.username,
        credentials.password,
        scenario.sku,
        timeout=API_TIMEOUT_SEC,
    )


async def _navigate(page, scenario: Scenario) -> None:
    if scenario.entry == "results":
        await open_search_results(page, scenario.sku)
    else:
        await search_and_open(page, scenario.sku)


async def _screenshot(page, scenario: Scenario) -> str:
    if not SCREENSHOT_ON_FAIL or page is None:
        return ""
    path = artifact_path(f"{scenario.name}_failed.png")
    try:
        await page.screenshot(path=str(path), full_page=True)
        return str(path)
    except Exception:
        return ""


async def _cleanup(page, cart_lock: Optional[asyncio.Lock]) -> None:
    if cart_lock is None:
        await empty_cart(page)
        return
    async with cart_lock:
        await empty_cart(page)


async def run_scenario(
    browser,
    sessions: SessionCache,
    scenario: Scenario,
    credentials: Credentials,
    *,
    cart_lock: Optional[asyncio.Lock] = None,
) -> Dict[str, Any]:
    """
    fetch record -> login -> navigate -> scenario body -> empty cart.

    The first failure ends the scenario; the cart is still emptied and the
    context closed. ConfigError is not a scenario failure and propagates.
    """
    context = None
    page = None
    ctx = ScenarioContext(page=None)
    failure: Optional[Dict[str, Any]] = None

    logger.info("[%s] start sku=%s", scenario.name, scenario.sku)
    try:
        if scenario.fetch_record:
            ctx.enter("fetch_product")
            ctx.record = await _fetch_record(scenario, credentials)

        ctx.enter("login")
        session = await sessions.get(browser, credentials)

        context = await browser.new_context(base_url=BASE_URL, storage_state=str(session.storage_state))
        page = await context.new_page()
        ctx.page = page

        ctx.enter("navigate")
        await _navigate(page, scenario)

        await scenario.run(ctx)
    except ConfigError:
        raise
    except StageError as e:
        failure = {"stage": e.stage or ctx.stage, "error": str(e), "details": e.details}
    except Exception as e:
        failure = {"stage": ctx.stage, "error": f"{type(e).__name__}: {e}", "details": {}}

    screenshot = ""
    if failure is not None:
        logger.error("[%s] FAILED at stage=%s: %s", scenario.name, failure["stage"], failure["error"])
        screenshot = await _screenshot(page, scenario)

    url = page.url if page is not None else ""
    cleanup_error = ""
    try:
        if page is not None:
            await _cleanup(page, cart_lock)
    except Exception as e:
        cleanup_error = f"{type(e).__name__}: {e}"
        logger.error("[%s] cleanup failed: %s", scenario.name, cleanup_error)
    finally:
        try:
            if context is not None:
                await context.close()
        except Exception:
            pass

    payload: Dict[str, Any] = {
        "ok": failure is None and not cleanup_error,
        "scenario": scenario.name,
        "sku": scenario.sku,
        "run": RUN_INSTANCE_ID,
        "url": url,
        "checks": [c.as_dict() for c in ctx.checks],
    }
    if failure is not None:
        payload.update(failure)
        if cleanup_error:
            payload["cleanup_error"] = cleanup_error
    elif cleanup_error:
        payload.update({"stage": "cleanup", "error": cleanup_error, "details": {}})
    else:
        payload["stage"] = "done"
    if screenshot:
        payload["screenshot"] = screenshot

    logger.info("[%s] %s", scenario.name, "ok" if payload["ok"] else "FAILED")
    return payload


async def run_all(
    names: List[str],
    credentials: Credentials,
    *,
    headless: bool = HEADLESS,
    parallel: bool = False,
    sessions: Optional[SessionCache] = None,
) -> List[Dict[str, Any]]:
    """
    Run scenarios against one browser with a shared session cache.

    In parallel mode only scenarios that leave the cart alone run together;
    cart scenarios follow one at a time and every cart clean-up is serialized.
    """
    selected = [SCENARIOS[n] for n in dict.fromkeys(names)]
    sessions = sessions or SessionCache()
    cart_lock = asyncio.Lock()
    results: Dict[str, Dict[str, Any]] = {}

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=headless)
        try:
            if parallel:
                free = [s for s in selected if not s.uses_cart]
                owned = [s for s in selected if s.uses_cart]
                # Let every concurrent scenario settle before the browser can close.
                done = await asyncio.gather(
                    *(run_scenario(browser, sessions, s, credentials, cart_lock=cart_lock) for s in free),
                    return_exceptions=True,
                )
                errors = [r for r in done if isinstance(r, BaseException)]
                if errors:
                    raise errors[0]
                results.update((r["scenario"], r) for r in done)
                for s in owned:
                    results[s.name] = await run_scenario(browser, sessions, s, credentials, cart_lock=cart_lock)
            else:
                for s in selected:
                    results[s.name] = await run_scenario(browser, sessions, s, credentials)
        finally:
            await browser.close()

    return [results[s.name] for s in selected]


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Storefront end-to-end scenarios")
    ap.add_argument(
        "-s",
        "--scenario",
        action="append",
        choices=sorted(SCENARIOS),
        help="Scenario to run (repeatable). Default: all.",
    )
    ap.add_argument("--list", action="store_true", help="List scenarios and exit")
    ap.add_argument("--headed", action="store_true", help="Show the browser window")
    ap.add_argument("--parallel", action="store_true", help="Run cart-free scenarios concurrently")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    if args.list:
        for s in SCENARIOS.values():
            print(f"{s.name:<22} {s.sku:<18} {s.summary}")
        return 0

    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(name)s: %(message)s")

    try:
        credentials = load_credentials()
    except ConfigError as e:
        print(f"[ORCH] {e}", file=sys.stderr, flush=True)
        return 2

    names = args.scenario or list(SCENARIOS)
    print(f"[ORCH] start run={RUN_INSTANCE_ID} scenarios={','.join(names)} parallel={args.parallel}", flush=True)
    try:
        results = asyncio.run(
            run_all(names, credentials, headless=HEADLESS and not args.headed, parallel=args.parallel)
        )
    except ConfigError as e:
        print(f"[ORCH] {e}", file=sys.stderr, flush=True)
        return 2

    for r in results:
        print(SCENARIO_RESULT_JSON_PREFIX + json.dumps(r, ensure_ascii=False), flush=True)

    failed = [r for r in results if not r["ok"]]
    for r in failed:
        print(f"[ORCH] FAIL {r['scenario']} stage={r['stage']}: {r['error']}", file=sys.stderr, flush=True)
    print(f"[ORCH] run={RUN_INSTANCE_ID} passed={len(results) - len(failed)} failed={len(failed)}", flush=True)
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
