import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from playwright.async_api import async_playwright

from locators import LOGIN
from network_sync import LOGIN as LOGIN_EXCHANGE
from network_sync import exchange, wait_state
from services.errors import ConfigError, StageError
from suite_config import BASE_URL, HEADLESS, TIMEOUT_MS, Credentials, load_credentials, state_path

logger = logging.getLogger(__name__)

STAGE = "login"


@dataclass(frozen=True)
class AuthenticatedSession:
    username: str
    storage_state: Path
    url: str = ""

    def is_usable(self, credentials: Credentials) -> bool:
        return self.username == credentials.username and self.storage_state.exists()


async def login(page, credentials: Credentials, *, timeout_ms: int = TIMEOUT_MS) -> None:
    if not credentials.username or not credentials.password:
        raise ConfigError("Credentials missing: username and password are both required.")

    await page.goto(BASE_URL + "/", wait_until="domcontentloaded", timeout=timeout_ms)

    account = page.locator(LOGIN["account"]).first
    await wait_state(account, "visible", stage=STAGE, what="account menu", timeout_ms=timeout_ms)
    await account.click(timeout=timeout_ms)

    username = page.locator(LOGIN["username"]).first
    await wait_state(username, "visible", stage=STAGE, what="username field", timeout_ms=timeout_ms)
    await username.fill(credentials.username)

    password = page.locator(LOGIN["password"]).first
    await wait_state(password, "visible", stage=STAGE, what="password field", timeout_ms=timeout_ms)
    await password.fill(credentials.password)

    submit = page.locator(LOGIN["submit"]).first
    await exchange(
        page,
        LOGIN_EXCHANGE,
        lambda: submit.click(timeout=timeout_ms),
        stage=STAGE,
        timeout_ms=timeout_ms,
    )
    logger.info("Login ok: user=%s url=%s", credentials.username, page.url)


async def authenticate(
    browser,
    credentials: Credentials,
    *,
    path: Optional[Path] = None,
    timeout_ms: int = TIMEOUT_MS,
) -> AuthenticatedSession:
    """Log in inside a throwaway context and persist its storage state."""
    if not credentials.username or not credentials.password:
        raise ConfigError("Credentials missing: username and password are both required.")

    path = path or state_path()
    context = await browser.new_context(base_url=BASE_URL)
    try:
        page = await context.new_page()
        await login(page, credentials, timeout_ms=timeout_ms)
        await context.storage_state(path=str(path))
        logger.info("Session state saved to %s", path)
        return AuthenticatedSession(username=credentials.username, storage_state=path, url=page.url or "")
    finally:
        try:
            await context.close()
        except Exception:
            pass


class SessionCache:
    """
    Authenticated session shared by reference across the scenarios of one run.

    Created empty; the first get() logs in. Later calls reuse the saved storage
    state while the identity is unchanged and the state file still exists.
    There is no explicit teardown.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path
        self._session: Optional[AuthenticatedSession] = None
        self._lock = asyncio.Lock()
        self.logins = 0

    @property
    def current(self) -> Optional[AuthenticatedSession]:
        return self._session

    async def get(self, browser, credentials: Credentials) -> AuthenticatedSession:
        async with self._lock:
            cached = self._session
            if cached is not None and cached.is_usable(credentials):
                logger.info("Reusing cached session: user=%s", cached.username)
                return cached

            self._session = await authenticate(browser, credentials, path=self._path)
            self.logins += 1
            return self._session


async def _run() -> tuple[bool, dict]:
    credentials = load_credentials()
    browser = None
    try:
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=HEADLESS)
            session = await authenticate(browser, credentials)
            return True, {"ok": True, "storage_state_file": str(session.storage_state), "url": session.url}
    except StageError as e:
        return False, {"ok": False, "error": str(e), "stage": e.stage, "details": e.details}
    finally:
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
