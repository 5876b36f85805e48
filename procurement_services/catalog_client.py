"""
CatalogClient -- synchronous catalog snapshot lookups over HTTP.

Responsibility:
    Fetch one catalog item's current name, model, manufacturer, price, lead
    time, stock flag and supplier from the catalog subsystem, and translate
    every failure into a typed procurement error.

Architecture position:
    Services -- I/O boundary.  Called only on the add-line path, before any
    purchase order lock is taken.

Failure classification:
    transport error / timeout -> UpstreamUnavailableError (no status)
    404                       -> CatalogItemNotFoundError
    other 4xx                 -> UpstreamRequestError (status + upstream message)
    5xx                       -> UpstreamUnavailableError (status + upstream message)
    2xx with unusable body    -> UpstreamUnavailableError
"""

from decimal import Decimal, InvalidOperation
from typing import Any
from urllib.parse import quote

import httpx

from procurement_kernel.domain.dtos import CatalogSnapshot
from procurement_kernel.exceptions import (
    CatalogItemNotFoundError,
    UpstreamRequestError,
    UpstreamUnavailableError,
    ValidationError,
)
from procurement_kernel.logging_config import get_logger

logger = get_logger("services.catalog_client")

DEFAULT_TIMEOUT_SECONDS = 5.0


class CatalogClient:
    """
    Catalog Snapshot Fetcher.

    Contract:
        ``fetch_snapshot(item_id)`` performs exactly one GET with a finite
        timeout and either returns a CatalogSnapshot or raises.

    Non-goals:
        - No retries and no caching; a failed lookup fails the add-line call.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "CatalogClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def item_url(self, item_id: str) -> str:
        return f"{self._base_url}/api/catalog/items/{quote(str(item_id), safe='')}"

    def fetch_snapshot(self, item_id: str) -> CatalogSnapshot:
        """
        Look up a catalog item.

        Raises:
            ValidationError: ``item_id`` is blank.
            CatalogItemNotFoundError, UpstreamRequestError,
            UpstreamUnavailableError: see module docstring.
        """
        if not isinstance(item_id, str) or not item_id.strip():
            raise ValidationError("catalogItemId is required")

        url = self.item_url(item_id)
        try:
            response = self._client.get(url, timeout=self._timeout)
        except httpx.TimeoutException as exc:
            logger.warning(
                "catalog_request_timeout",
                extra={"url": url, "timeout_seconds": self._timeout},
            )
            raise UpstreamUnavailableError(
                f"Catalog service timed out after {self._timeout}s ({url})"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "catalog_unreachable",
                extra={"url": url, "error": str(exc)},
            )
            raise UpstreamUnavailableError(
                f"Catalog service unreachable at {url}: {exc}"
            ) from exc

        status = response.status_code
        if status == 404:
            raise CatalogItemNotFoundError(item_id)
        if not response.is_success:
            message = _upstream_message(response)
            logger.warning(
                "catalog_request_failed",
                extra={"url": url, "upstream_status": status, "upstream_message": message},
            )
            if status >= 500:
                raise UpstreamUnavailableError(message, upstream_status=status)
            raise UpstreamRequestError(message, upstream_status=status)

        try:
            snapshot = parse_snapshot(response.json())
        except (ValueError, KeyError, TypeError, InvalidOperation) as exc:
            logger.warning(
                "catalog_response_malformed",
                extra={"url": url, "error": str(exc)},
            )
            raise UpstreamUnavailableError(
                f"Catalog service returned an unusable body for item {item_id}"
            ) from exc

        logger.debug(
            "catalog_snapshot_fetched",
            extra={
                "catalog_item_id": item_id,
                "supplier_code": snapshot.supplier_code,
                "unit_price": snapshot.unit_price,
            },
        )
        return snapshot


def _upstream_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {response.status_code}"


def parse_snapshot(data: Any) -> CatalogSnapshot:
    """
    Build a CatalogSnapshot from the catalog item JSON.

    Raises:
        KeyError / TypeError / ValueError: required fields missing or invalid.
    """
    if not isinstance(data, dict):
        raise TypeError("catalog item body must be an object")

    name = data["name"]
    supplier_code = data["supplier_code"]
    if not isinstance(name, str) or not name:
        raise ValueError("catalog item has no name")
    if not isinstance(supplier_code, str) or not supplier_code:
        raise ValueError("catalog item has no supplier_code")

    price = data["price_usd"]
    if isinstance(price, bool) or price is None:
        raise ValueError("price_usd must be a number")
    unit_price = Decimal(str(price))
    if not unit_price.is_finite() or unit_price < 0:
        raise ValueError(f"price_usd must be a non-negative number, got {price!r}")

    lead_time = data.get("lead_time_days")
    return CatalogSnapshot(
        name=name,
        model=data.get("model"),
        manufacturer=data.get("manufacturer"),
        unit_price=unit_price,
        lead_time_days=int(lead_time) if lead_time is not None else None,
        in_stock=bool(data.get("in_stock", False)),
        supplier_code=supplier_code,
    )
