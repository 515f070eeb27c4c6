# shopcart/services/catalog_client.py
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

import requests
from requests import RequestException

from shopcart.domain.errors import CatalogItemNotFound, CatalogUnavailable
from shopcart.domain.pricing import money
from shopcart.utils.logging import get_logger
from shopcart.utils.retry import http_retry
from shopcart.utils.settings import CATALOG_SERVICE_URL, CATALOG_TIMEOUT_SECONDS

logger = get_logger(__name__)


@dataclass(frozen=True)
class CatalogItem:
    id: int
    name: str
    price: Decimal
    available: int
    description: str = ""


class CatalogReader(Protocol):
    """Read-only view of the catalog. Never mutates stock."""

    def get_item(self, item_id: int) -> CatalogItem:
        """Raises CatalogItemNotFound when the item does not exist."""
        ...


class HttpCatalogReader:
    def __init__(self, base_url: str | None = None, timeout: float = CATALOG_TIMEOUT_SECONDS):
        self.base_url = (base_url or CATALOG_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def _fetch(self, item_id: int) -> requests.Response:
        url = f"{self.base_url}/items/{item_id}"
        logger.info(f"CatalogReader GET {url}")
        return requests.get(url, timeout=self.timeout)

    def get_item(self, item_id: int) -> CatalogItem:
        try:
            resp = self._fetch(item_id)
        except RequestException as e:
            logger.error(f"Catalog unreachable for item {item_id}: {e}")
            raise CatalogUnavailable() from e

        if resp.status_code == 404:
            raise CatalogItemNotFound(item_id)

        try:
            resp.raise_for_status()
        except RequestException as e:
            logger.error(f"Catalog returned {resp.status_code} for item {item_id}")
            raise CatalogUnavailable() from e

        data = resp.json()
        return CatalogItem(
            id=int(data["id"]),
            name=data.get("name", ""),
            description=data.get("description") or "",
            price=money(data["price"]),
            available=int(data.get("available", 0)),
        )
