"""
Tests for the product catalog clients.

The WooCommerce client runs against httpx.MockTransport.
"""

import asyncio
import json

import httpx
import pytest

from api.catalog import CatalogProduct, InMemoryCatalog, WooCommerceCatalog, price_field_keys


def woo_catalog(handler) -> WooCommerceCatalog:
    return WooCommerceCatalog(
        base_url="https://shop.example/",
        consumer_key="ck_test",
        consumer_secret="cs_test",
        transport=httpx.MockTransport(handler),
    )


class TestWooCommerceCatalog:
    """Test product listing and price write-back over the REST API."""

    def test_requires_configuration(self):
        with pytest.raises(ValueError):
            WooCommerceCatalog(base_url="", consumer_key="ck", consumer_secret="cs")
        with pytest.raises(ValueError):
            WooCommerceCatalog(base_url="https://shop.example", consumer_key=None, consumer_secret="cs")

    def test_api_url(self):
        catalog = woo_catalog(lambda request: httpx.Response(200, json=[]))
        assert catalog.api_url == "https://shop.example/wp-json/wc/v3/"

    def test_lists_all_pages_and_skips_missing_sku(self, monkeypatch):
        monkeypatch.setattr(WooCommerceCatalog, "PER_PAGE", 2)
        pages = {
            "1": [{"id": 1, "sku": "4005808730735", "name": "Ariel"}, {"id": 2, "sku": "", "name": "Gutschein"}],
            "2": [{"id": 3, "sku": " 4015000000000 ", "name": "Persil"}],
        }
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=pages[request.url.params["page"]])

        async def scenario():
            catalog = woo_catalog(handler)
            try:
                return await catalog.list_products()
            finally:
                await catalog.close()

        products = asyncio.run(scenario())

        assert [(p.id, p.identifier, p.name) for p in products] == [
            ("1", "4005808730735", "Ariel"),
            ("3", "4015000000000", "Persil"),
        ]
        assert len(requests) == 2
        assert requests[0].url.path == "/wp-json/wc/v3/products"
        assert requests[0].url.params["status"] == "publish"
        assert requests[0].url.params["per_page"] == "2"
        assert requests[0].headers["authorization"].startswith("Basic ")

    def test_update_price_fields(self):
        captured = {}

        def handler(request):
            captured["method"] = request.method
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": 101})

        async def scenario():
            catalog = woo_catalog(handler)
            try:
                await catalog.update_price_fields(
                    CatalogProduct(id="101", identifier="4005808730735"),
                    prefix="_dm",
                    price="3.99",
                    product_url="https://www.dm.de/ariel-p4005808730735.html",
                    updated_at="2026-01-01T00:00:00+00:00",
                )
            finally:
                await catalog.close()

        asyncio.run(scenario())

        assert captured["method"] == "PUT"
        assert captured["path"] == "/wp-json/wc/v3/products/101"
        assert captured["body"] == {"meta_data": [
            {"key": "_dm_price", "value": "3.99"},
            {"key": "_dm_url", "value": "https://www.dm.de/ariel-p4005808730735.html"},
            {"key": "_dm_last_updated", "value": "2026-01-01T00:00:00+00:00"},
        ]}

    def test_server_error_raises(self):
        async def scenario():
            catalog = woo_catalog(lambda request: httpx.Response(500, json={"message": "boom"}))
            try:
                await catalog.list_products()
            finally:
                await catalog.close()

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(scenario())


class TestInMemoryCatalog:
    """Test the dict-backed catalog."""

    def test_update_unknown_product(self):
        catalog = InMemoryCatalog()

        with pytest.raises(KeyError):
            asyncio.run(catalog.update_price_fields(
                CatalogProduct(id="1", identifier="x"),
                prefix="_dm", price="1.00", product_url="", updated_at="",
            ))

    def test_price_field_keys(self):
        assert price_field_keys("_metro") == {
            "price": "_metro_price",
            "url": "_metro_url",
            "updated_at": "_metro_last_updated",
        }
