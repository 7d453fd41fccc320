"""Product catalog.

Products come from a JSON array served at CATALOG_URL. Whatever goes wrong
with that request, the listing falls back to SAMPLE_PRODUCTS so it is never
empty because of a network problem.
"""

import logging
from typing import List, Optional

import httpx
from pydantic import ValidationError

from schemas import Product
import settings

logger = logging.getLogger(__name__)

SAMPLE_PRODUCTS = [
    Product(
        id="p1",
        name="Aurora Headphones",
        price=2499,
        image="/headphones.svg",
        description="Comfortable over-ear wireless headphones with noise cancellation.",
    ),
    Product(
        id="p2",
        name="Nimbus Smartwatch",
        price=3499,
        image="/smartwatch.svg",
        description="Health tracking, notifications and long battery life.",
    ),
    Product(
        id="p3",
        name="Comet Portable Speaker",
        price=1299,
        image="/speaker.svg",
        description="Rugged, waterproof bluetooth speaker with punchy bass.",
    ),
]


class CatalogProvider:
    def __init__(self, url: Optional[str] = None, client: Optional[httpx.Client] = None,
                 timeout: Optional[float] = None):
        self.url = url or settings.CATALOG_URL
        self.timeout = settings.CATALOG_TIMEOUT if timeout is None else timeout
        self._client = client

    def _get_client(self) -> httpx.Client:
        if self._client is not None:
            return self._client
        return httpx.Client(timeout=self.timeout)

    def _fetch(self) -> List[Product]:
        client = self._get_client()
        try:
            response = client.get(self.url)
            response.raise_for_status()
            data = response.json()
        finally:
            if client is not self._client:
                client.close()
        if not isinstance(data, list):
            raise ValueError("catalog body is not a JSON array")
        return [Product.model_validate(item) for item in data]

    def list_products(self) -> List[Product]:
        try:
            return self._fetch()
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.warning("Catalog fetch from %s failed, using built-in products: %s", self.url, e)
            return list(SAMPLE_PRODUCTS)

    def get_product(self, product_id: str) -> Optional[Product]:
        for product in self.list_products():
            if product.id == product_id:
                return product
        return None
