"""Live runs against the storefront. Opt in with STULLER_E2E=1 and real credentials."""

import os

import pytest

from orchestrator import run_all
from scenarios import SCENARIOS
from step1_login import SessionCache
from suite_config import HEADLESS, load_credentials

pytestmark = [
    pytest.mark.e2e,
    pytest.mark.skipif(os.getenv("STULLER_E2E") != "1", reason="set STULLER_E2E=1 to drive the live storefront"),
]


@pytest.mark.asyncio
@pytest.mark.parametrize("name", list(SCENARIOS))
async def test_scenario(name) -> None:
    [result] = await run_all([name], load_credentials(), headless=HEADLESS, sessions=SessionCache())
    assert result["ok"], f"{name} failed at {result['stage']}: {result.get('error')}"
