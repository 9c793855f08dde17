# backend/tests/unit/test_storefront_service.py
import httpx
import pytest

from app.models.domain import Store
from app.services.storefront_service import StorefrontService


def _service(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StorefrontService("https://acme.myshopify.com/", "shpat_test", http_client=client)


@pytest.mark.asyncio
async def test_get_order_queries_by_name():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = request.url
        seen["token"] = request.headers["X-Shopify-Access-Token"]
        return httpx.Response(200, json={"orders": [{"name": "#1001", "fulfillment_status": None}]})

    service = _service(handler)
    order = await service.get_order("1001")
    await service.close()

    assert order["name"] == "#1001"
    assert seen["url"].host == "acme.myshopify.com"
    assert seen["url"].path == "/admin/api/2024-07/orders.json"
    assert seen["url"].params["name"] == "1001"
    assert seen["token"] == "shpat_test"


@pytest.mark.asyncio
async def test_get_order_returns_none_on_errors_and_empty_results():
    missing = _service(lambda request: httpx.Response(200, json={"orders": []}))
    assert await missing.get_order("1") is None

    failing = _service(lambda request: httpx.Response(500, json={"errors": "boom"}))
    assert await failing.get_order("1") is None


@pytest.mark.asyncio
async def test_search_products_maps_summaries():
    product = {
        "id": 7, "title": "Blue T-Shirt", "handle": "blue-t-shirt",
        "body_html": "<p>Soft &amp; light cotton</p>",
        "variants": [{"price": "29.99", "inventory_quantity": 4}],
        "images": [{"src": "https://cdn.example/blue.png"}],
    }
    service = _service(lambda request: httpx.Response(200, json={"products": [product, product, product, product]}))

    products = await service.search_products("shirt", limit=3)

    assert len(products) == 3
    summary = products[0]
    assert summary.title == "Blue T-Shirt"
    assert summary.description == "Soft & light cotton"
    assert summary.price == "29.99"
    assert summary.stock_status == "In stock"
    assert summary.image == "https://cdn.example/blue.png"
    assert summary.url == "https://acme.myshopify.com/products/blue-t-shirt"


@pytest.mark.asyncio
async def test_unconfigured_store_makes_no_requests():
    def handler(request):
        raise AssertionError("no request expected")

    store = Store(name="No Shopify")
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    service = StorefrontService(store.domain, store.access_token, http_client=client)

    assert service.is_configured is False
    assert await service.get_order("1001") is None
    assert await service.search_products("shirt") == []
    await service.close()


@pytest.mark.asyncio
async def test_search_products_with_malformed_payload_returns_empty():
    product = {"id": 8, "title": "Broken", "variants": ["not-a-variant"]}
    service = _service(lambda request: httpx.Response(200, json={"products": [product]}))

    assert await service.search_products("shirt") == []
    await service.close()
