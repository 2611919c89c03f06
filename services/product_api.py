from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

import requests

from services.errors import StageError, UnexpectedStatusError
from services.reconcile import parse_money

logger = logging.getLogger(__name__)

STAGE = "fetch_product"


@dataclass(frozen=True)
class ProductRecord:
    """Backend-of-record product, used as the expected side of every comparison."""

    sku: str
    status: str
    description: str
    price: Decimal

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ProductRecord":
        if not isinstance(data, dict):
            raise StageError(STAGE, f"Product payload is not an object: {type(data).__name__}")

        missing = [k for k in ("SKU", "Status", "Description", "Price") if data.get(k) is None]
        price = data.get("Price")
        if price is not None and (not isinstance(price, dict) or price.get("Value") is None):
            missing.append("Price.Value")
        if missing:
            raise StageError(STAGE, f"Product payload is missing: {', '.join(missing)}", {"keys": sorted(data.keys())})

        try:
            value = parse_money(price["Value"])
        except ValueError as e:
            raise StageError(STAGE, f"Product price is not numeric: {price['Value']!r}") from e

        return cls(
            sku=str(data["SKU"]),
            status=str(data["Status"]),
            description=str(data["Description"]),
            price=value,
        )


def fetch_product(
    base_url: str,
    username: str,
    password: str,
    sku: str,
    *,
    timeout: int = 30,
    session: Optional[requests.Session] = None,
) -> ProductRecord:
    """
    GET /v2/products?SKU=... and return the first record.
    An empty Products collection is a failure, not an empty result.
    """
    session = session or requests.Session()

    url = base_url.rstrip("/") + "/v2/products"
    logger.info("Fetching product record sku=%s url=%s", sku, url)
    r = session.get(
        url,
        params={"SKU": sku},
        headers={"accept": "application/json"},
        auth=(username, password),
        timeout=timeout,
    )
    if r.status_code != 200:
        raise UnexpectedStatusError(STAGE, "product lookup", r.status_code, url)

    payload = r.json()
    products = payload.get("Products") if isinstance(payload, dict) else None
    if not isinstance(products, list):
        raise StageError(STAGE, "Unexpected payload shape: 'Products' is not a list", {"sku": sku})
    if not products:
        raise StageError(STAGE, f"No products returned for SKU={sku}", {"sku": sku})

    record = ProductRecord.from_payload(products[0])
    logger.info("Product record sku=%s status=%s price=%s", record.sku, record.status, record.price)
    return record
