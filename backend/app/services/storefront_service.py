# /app/services/storefront_service.py

import re
import html
import httpx
import logging
import tenacity
from typing import Optional, List, Dict, Any

from app.models.domain import Store, ProductSummary

# Read-only lookups against a store's Shopify Admin REST API. Order and product
# data are only consumed, never written.

logger = logging.getLogger(__name__)

SHOPIFY_API_VERSION = "2024-07"
TAG_PATTERN = re.compile(r"<[^>]*>?")


def _strip_html(value: Optional[str]) -> str:
    return html.unescape(TAG_PATTERN.sub("", value or "")).strip()


class StorefrontService:
    def __init__(self, domain: Optional[str], access_token: Optional[str], http_client: Optional[httpx.AsyncClient] = None):
        self.domain = (domain or "").replace('https://', '').replace('http://', '').rstrip('/')
        self.access_token = access_token
        self.http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(10.0, read=30.0, connect=5.0)
        )

    @classmethod
    def for_store(cls, store: Store) -> "StorefrontService":
        return cls(store.domain, store.access_token)

    @property
    def is_configured(self) -> bool:
        return bool(self.domain and self.access_token)

    @tenacity.retry(
        retry=tenacity.retry_if_exception_type((httpx.RequestError, httpx.TimeoutException)),
        stop=tenacity.stop_after_attempt(3),
        wait=tenacity.wait_exponential(multiplier=2, min=1, max=10),
        before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def resilient_api_call(self, func, *args, **kwargs):
        return await func(*args, **kwargs)

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"https://{self.domain}/admin/api/{SHOPIFY_API_VERSION}/{path}"
        headers = {"X-Shopify-Access-Token": self.access_token}
        resp = await self.resilient_api_call(self.http_client.get, url, params=params, headers=headers)
        resp.raise_for_status()
        return resp.json()

    async def get_order(self, order_number: str) -> Optional[Dict[str, Any]]:
        """Looks an order up by its display number, e.g. '1001' or '#1001'."""
        if not self.is_configured:
            return None
        try:
            data = await self._get("orders.json", {"name": order_number, "status": "any"})
            orders = data.get("orders") or []
            return orders[0] if orders else None
        except Exception as e:
            logger.error(f"Storefront get_order error for {order_number} on {self.domain}: {e}")
            return None

    async def search_products(self, query: str, limit: int = 3) -> List[ProductSummary]:
        if not self.is_configured:
            return []
        try:
            data = await self._get("products.json", {"title": query, "limit": limit})
            return [self._to_summary(p) for p in (data.get("products") or [])[:limit]]
        except Exception as e:
            logger.error(f"Storefront search_products error for '{query}' on {self.domain}: {e}")
            return []

    def _to_summary(self, product: Dict[str, Any]) -> ProductSummary:
        variants = product.get("variants") or []
        images = product.get("images") or []
        stock_status = "Unknown"
        if variants:
            stock_status = "In stock" if (variants[0].get("inventory_quantity") or 0) > 0 else "Out of stock"
        return ProductSummary(
            id=product.get("id"),
            title=product.get("title") or "Product",
            description=_strip_html(product.get("body_html"))[:200],
            price=str(variants[0].get("price") or "") if variants else "",
            image=images[0].get("src", "") if images else "",
            stock_status=stock_status,
            url=f"https://{self.domain}/products/{product['handle']}" if product.get("handle") else None,
        )

    async def close(self):
        await self.http_client.aclose()
