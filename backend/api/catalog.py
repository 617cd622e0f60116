"""
Product catalog collaborators.

The price update pipeline reads identifiers from a catalog and writes
price, product URL and last-updated fields back to it. Two implementations:
an in-memory catalog (tests, manual runs) and the WooCommerce REST API.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol
import logging

import httpx

logger = logging.getLogger(__name__)


@dataclass
class CatalogProduct:
    """A catalog entry as seen by the pipeline."""
    id: str
    identifier: str
    name: str = ''
    meta: Dict[str, str] = field(default_factory=dict)


def price_field_keys(prefix: str) -> Dict[str, str]:
    """
    Meta keys written for a site.

    Examples:
        '_dm' -> {'price': '_dm_price', 'url': '_dm_url', 'updated_at': '_dm_last_updated'}
    """
    return {
        'price': f"{prefix}_price",
        'url': f"{prefix}_url",
        'updated_at': f"{prefix}_last_updated",
    }


class ProductCatalog(Protocol):
    """Supplies identifiers and persists scrape results."""

    async def list_products(self) -> List[CatalogProduct]:
        ...

    async def update_price_fields(
        self,
        product: CatalogProduct,
        prefix: str,
        price: str,
        product_url: str,
        updated_at: str,
    ) -> None:
        ...


class InMemoryCatalog:
    """Catalog held in a dict; writes land in each product's meta."""

    def __init__(self, products: Optional[List[CatalogProduct]] = None):
        self.products: Dict[str, CatalogProduct] = {p.id: p for p in products or []}

    async def list_products(self) -> List[CatalogProduct]:
        return list(self.products.values())

    async def update_price_fields(
        self,
        product: CatalogProduct,
        prefix: str,
        price: str,
        product_url: str,
        updated_at: str,
    ) -> None:
        if product.id not in self.products:
            raise KeyError(f"Unknown product: {product.id}")
        keys = price_field_keys(prefix)
        self.products[product.id].meta.update({
            keys['price']: price,
            keys['url']: product_url,
            keys['updated_at']: updated_at,
        })


class WooCommerceCatalog:
    """
    Catalog backed by the WooCommerce REST API (v3).

    Products are identified by their SKU, which holds the GTIN. Price
    fields are stored as product meta data.
    """

    PER_PAGE = 100

    def __init__(
        self,
        base_url: str,
        consumer_key: str,
        consumer_secret: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the catalog client.

        Args:
            base_url: Shop URL (e.g., 'https://shop.example.com')
            consumer_key: REST API consumer key
            consumer_secret: REST API consumer secret
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)

        Raises:
            ValueError: If the URL or credentials are missing
        """
        if not base_url or not consumer_key or not consumer_secret:
            raise ValueError("WooCommerce URL, consumer key and consumer secret are required")

        self.api_url = f"{base_url.rstrip('/')}/wp-json/wc/v3/"
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            auth=(consumer_key, consumer_secret),
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings) -> 'WooCommerceCatalog':
        return cls(
            base_url=settings.woocommerce_url,
            consumer_key=settings.woocommerce_consumer_key,
            consumer_secret=settings.woocommerce_consumer_secret,
        )

    async def list_products(self) -> List[CatalogProduct]:
        """
        Fetch every published product, page by page.

        Products without a SKU cannot be looked up and are left out.

        Raises:
            httpx.HTTPError: On request failure
        """
        products: List[CatalogProduct] = []
        page = 1
        while True:
            logger.debug(f"Fetching catalog page {page}")
            response = await self._client.get('products', params={
                'per_page': self.PER_PAGE,
                'status': 'publish',
                'page': page,
            })
            response.raise_for_status()
            page_products: List[Dict[str, Any]] = response.json()

            for item in page_products:
                sku = (item.get('sku') or '').strip()
                if not sku:
                    continue
                products.append(CatalogProduct(
                    id=str(item['id']),
                    identifier=sku,
                    name=item.get('name', ''),
                ))

            if len(page_products) < self.PER_PAGE:
                break
            page += 1

        logger.info(f"Loaded {len(products)} products with SKU from WooCommerce")
        return products

    async def update_price_fields(
        self,
        product: CatalogProduct,
        prefix: str,
        price: str,
        product_url: str,
        updated_at: str,
    ) -> None:
        keys = price_field_keys(prefix)
        response = await self._client.put(f"products/{product.id}", json={
            'meta_data': [
                {'key': keys['price'], 'value': price},
                {'key': keys['url'], 'value': product_url},
                {'key': keys['updated_at'], 'value': updated_at},
            ],
        })
        response.raise_for_status()

    async def close(self) -> None:
        await self._client.aclose()
