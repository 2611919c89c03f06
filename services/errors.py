from __future__ import annotations

from typing import Any


class ConfigError(RuntimeError):
    """Missing or invalid suite configuration. Raised before any network activity."""


class StageError(RuntimeError):
    def __init__(self, stage: str, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.stage = stage
        self.details = details or {}


class SyncTimeoutError(StageError):
    def __init__(self, stage: str, condition: str, timeout_ms: int) -> None:
        super().__init__(
            stage,
            f"Timed out after {timeout_ms}ms waiting for {condition}",
            {"condition": condition, "timeout_ms": timeout_ms},
        )
        self.condition = condition
        self.timeout_ms = timeout_ms


class UnexpectedStatusError(StageError):
    def __init__(self, stage: str, exchange: str, status: int, url: str = "") -> None:
        super().__init__(
            stage,
            f"{exchange} returned HTTP {status} (expected 200)",
            {"exchange": exchange, "status": status, "url": url},
        )
        self.exchange = exchange
        self.status = status
        self.url = url


class ReconciliationError(StageError):
    def __init__(self, stage: str, outcome: Any) -> None:
        super().__init__(stage, outcome.describe(), outcome.as_dict())
        self.outcome = outcome
