import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from services.errors import ConfigError

ROOT = Path(__file__).resolve().parents[1]
ART = ROOT / "artifacts"

load_dotenv(ROOT / ".env")


def _to_int(value: str, default: int) -> int:
    try:
        iv = int((value or "").strip())
        if iv > 0:
            return iv
    except Exception:
        pass
    return default


def _to_bool(value: str, default: bool) -> bool:
    raw = (value or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


BASE_URL = (os.getenv("STULLER_BASE_URL") or "https://www.stuller.com").strip().rstrip("/")
API_BASE_URL = (os.getenv("STULLER_API_BASE_URL") or "https://api.stuller.com").strip().rstrip("/")
STORAGE_STATE_FILE = (os.getenv("STULLER_STORAGE_STATE_FILE") or ".state_stuller.json").strip()
TIMEOUT_MS = _to_int(os.getenv("STULLER_TIMEOUT_MS", "20000"), 20000)
API_TIMEOUT_SEC = _to_int(os.getenv("STULLER_API_TIMEOUT_SEC", "30"), 30)
HEADLESS = _to_bool(os.getenv("STULLER_HEADLESS", "1"), True)
SCREENSHOT_ON_FAIL = _to_bool(os.getenv("STULLER_SCREENSHOT_ON_FAIL", "1"), True)


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str = field(repr=False)


def load_credentials() -> Credentials:
    """Read the two secrets at call time; either one missing is fatal."""
    username = (os.getenv("STULLER_USERNAME") or "").strip()
    password = os.getenv("STULLER_PASSWORD") or ""
    missing = [name for name, v in (("STULLER_USERNAME", username), ("STULLER_PASSWORD", password)) if not v]
    if missing:
        raise ConfigError(f"Credentials missing: {', '.join(missing)}. Set them in .env or the environment.")
    return Credentials(username=username, password=password)


def state_path() -> Path:
    p = Path(STORAGE_STATE_FILE)
    if not p.is_absolute():
        p = ROOT / p
    p.parent.mkdir(parents=True, exist_ok=True)
    return p


def artifact_path(name: str) -> Path:
    ART.mkdir(exist_ok=True)
    return ART / name
