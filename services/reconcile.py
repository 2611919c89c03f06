"""
Backend-vs-UI reconciliation.

Every comparison normalizes both sides with the same field rules first: the
API gives a decimal price, the page gives "$1,234.50". Inputs are treated as
final values; waiting for spinners or price refreshes is the caller's job.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from services.errors import ReconciliationError

logger = logging.getLogger(__name__)

MONEY_TOLERANCE = Decimal("0.01")
SCALED_MONEY_TOLERANCE = Decimal("0.05")
SCALED_MONEY_STEP = Decimal("0.005")

_MONEY_NOISE_RE = re.compile(r"USD|[\s$€£¥]", re.I)
_MONEY_RE = re.compile(r"^[-+]?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?$")
_QUANTITY_RE = re.compile(r"^\s*(?:\d{1,3}(?:,\d{3})+|\d+)\s*$")
_NUMBER_TOKEN_RE = re.compile(r"-?\d(?:[\d,.]*\d)?")


class FieldKind(str, Enum):
    IDENTIFIER = "identifier"
    STATUS = "status"
    TEXT = "text"
    DESCRIPTION = "description"
    MONEY = "money"
    SCALED_MONEY = "scaled_money"
    QUANTITY = "quantity"


_EXACT_KINDS = {FieldKind.IDENTIFIER, FieldKind.STATUS, FieldKind.TEXT}
_MONEY_KINDS = {FieldKind.MONEY, FieldKind.SCALED_MONEY}


@dataclass(frozen=True)
class FieldPolicy:
    field: str
    kind: FieldKind
    tolerance: Decimal = Decimal("0")
    quantity: int = 1

    @property
    def rule(self) -> str:
        if self.kind is FieldKind.DESCRIPTION:
            return "contains"
        if self.kind is FieldKind.SCALED_MONEY:
            return f"within ±{self.tolerance} of unit x {self.quantity}"
        if self.kind is FieldKind.MONEY:
            return f"within ±{self.tolerance}"
        return "exact"


def identifier(field: str = "SKU") -> FieldPolicy:
    return FieldPolicy(field, FieldKind.IDENTIFIER)


def status(field: str = "Status") -> FieldPolicy:
    return FieldPolicy(field, FieldKind.STATUS)


def text(field: str) -> FieldPolicy:
    return FieldPolicy(field, FieldKind.TEXT)


def description(field: str = "Description") -> FieldPolicy:
    return FieldPolicy(field, FieldKind.DESCRIPTION)


def money(field: str = "Price", tolerance: Decimal = MONEY_TOLERANCE) -> FieldPolicy:
    return FieldPolicy(field, FieldKind.MONEY, tolerance=Decimal(tolerance))


def scaled_money(quantity: int, field: str = "Total", tolerance: Decimal | None = None) -> FieldPolicy:
    """Line total policy: expected is the unit price, multiplied by ``quantity``.

    Per-unit rounding accumulates, so the default tolerance grows by half a
    cent per unit and never drops below ``SCALED_MONEY_TOLERANCE``. At compare
    time it is further capped below half the unit price, so the totals for
    ``quantity - 1`` and ``quantity + 1`` never pass.
    """
    if quantity < 1:
        raise ValueError(f"Quantity must be >= 1, got: {quantity}")
    if tolerance is None:
        tolerance = max(SCALED_MONEY_TOLERANCE, SCALED_MONEY_STEP * quantity)
    return FieldPolicy(field, FieldKind.SCALED_MONEY, tolerance=Decimal(tolerance), quantity=quantity)


def quantity(field: str = "Quantity") -> FieldPolicy:
    return FieldPolicy(field, FieldKind.QUANTITY)


@dataclass(frozen=True)
class ComparisonOutcome:
    passed: bool
    field: str
    rule: str
    expected: Any = None
    actual: Any = None
    tolerance: Decimal | None = None
    reason: str = ""

    def describe(self) -> str:
        verdict = "OK" if self.passed else "MISMATCH"
        parts = [f"{self.field}: {verdict} ({self.rule})", f"expected={self.expected!r}", f"actual={self.actual!r}"]
        if self.tolerance is not None:
            parts.append(f"tolerance={self.tolerance}")
        if self.reason:
            parts.append(f"- {self.reason}")
        return " ".join(parts)

    def as_dict(self) -> dict:
        def _plain(v: Any) -> Any:
            return str(v) if isinstance(v, Decimal) else v

        return {
            "passed": self.passed,
            "field": self.field,
            "rule": self.rule,
            "expected": _plain(self.expected),
            "actual": _plain(self.actual),
            "tolerance": _plain(self.tolerance),
            "reason": self.reason,
        }


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def normalize_text(value: Any) -> str:
    return str(value).strip()


def parse_money(value: Any) -> Decimal:
    """Parse an API number or a rendered price string ("$1,234.50") to Decimal.

    Commas are accepted only as thousands separators.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a money value: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        raw = _MONEY_NOISE_RE.sub("", str(value))
        if not _MONEY_RE.match(raw):
            raise ValueError(f"Not a money value: {value!r}")
        try:
            result = Decimal(raw.replace(",", ""))
        except InvalidOperation as e:
            raise ValueError(f"Not a money value: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Not a money value: {value!r}")
    return result


def parse_quantity(value: Any) -> int:
    """Parse a whole, non-negative quantity as rendered in an input ("5", "1,200")."""
    if isinstance(value, bool):
        raise ValueError(f"Not a quantity: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Not a quantity: {value!r}")
        return value
    raw = str(value)
    if not _QUANTITY_RE.match(raw):
        raise ValueError(f"Not a quantity: {value!r}")
    return int(raw.strip().replace(",", ""))


def extract_quantity(text: Any) -> int:
    """Pull the single quantity out of labelled text such as "Available: 1,200"."""
    tokens = _NUMBER_TOKEN_RE.findall(str(text or ""))
    if len(tokens) != 1:
        raise ValueError(f"Expected exactly one quantity in {text!r}, found {len(tokens)}")
    return parse_quantity(tokens[0])


def _outcome(policy: FieldPolicy, passed: bool, expected: Any, actual: Any, **kw: Any) -> ComparisonOutcome:
    return ComparisonOutcome(passed=passed, field=policy.field, rule=policy.rule, expected=expected, actual=actual, **kw)


def _compare_money(expected: Any, actual: Any, policy: FieldPolicy) -> ComparisonOutcome:
    try:
        exp = parse_money(expected)
    except ValueError as e:
        return _outcome(policy, False, expected, actual, tolerance=policy.tolerance, reason=f"expected side: {e}")
    try:
        act = parse_money(actual)
    except ValueError as e:
        return _outcome(policy, False, exp, actual, tolerance=policy.tolerance, reason=f"actual side: {e}")

    half_unit = Decimal("0")
    if policy.kind is FieldKind.SCALED_MONEY:
        half_unit = abs(exp) / 2
        exp = exp * policy.quantity

    diff = abs(act - exp)
    reason = ""
    if diff > policy.tolerance:
        reason = f"diff={diff}"
    elif half_unit and diff >= half_unit:
        # A neighbouring quantity would be at least as close.
        reason = f"diff={diff} is not below half the unit price ({half_unit})"
    return _outcome(
        policy,
        not reason,
        exp,
        act,
        tolerance=policy.tolerance,
        reason=reason,
    )


def _compare_quantity(expected: Any, actual: Any, policy: FieldPolicy) -> ComparisonOutcome:
    try:
        exp = parse_quantity(expected)
    except ValueError as e:
        return _outcome(policy, False, expected, actual, reason=f"expected side: {e}")
    try:
        act = parse_quantity(actual)
    except ValueError as e:
        return _outcome(policy, False, exp, actual, reason=f"actual side: {e}")
    return _outcome(policy, exp == act, exp, act)


def reconcile(expected: Any, actual: Any, policy: FieldPolicy) -> ComparisonOutcome:
    """Compare a backend-of-record value with a rendered UI value under ``policy``.

    Fails closed: a missing or blank side is a failure naming that side.
    """
    if _is_blank(expected):
        return _outcome(policy, False, expected, actual, reason="expected value is missing")
    if _is_blank(actual):
        return _outcome(policy, False, expected, actual, reason="actual value is missing")

    if policy.kind in _MONEY_KINDS:
        return _compare_money(expected, actual, policy)
    if policy.kind is FieldKind.QUANTITY:
        return _compare_quantity(expected, actual, policy)

    exp = normalize_text(expected)
    act = normalize_text(actual)
    if policy.kind is FieldKind.DESCRIPTION:
        return _outcome(policy, exp in act, exp, act, reason="" if exp in act else "expected text not found in UI text")
    return _outcome(policy, exp == act, exp, act)


def assert_reconciled(expected: Any, actual: Any, policy: FieldPolicy, *, stage: str = "assert") -> ComparisonOutcome:
    outcome = reconcile(expected, actual, policy)
    if not outcome.passed:
        logger.error("Reconciliation failed at stage=%s: %s", stage, outcome.describe())
        raise ReconciliationError(stage, outcome)
    logger.info("Reconciled %s", outcome.describe())
    return outcome
