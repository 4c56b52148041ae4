"""
PayPal REST: OAuth-токен, заказы (create/capture) и каталог товаров.

Ошибки HTTP и сети превращаются в PayPalError с текстом, который можно
показать пользователю.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aiohttp

from storefront.config import settings
from storefront.constants import (
    CATALOG_MAX_PAGES,
    CATALOG_PAGE_SIZE,
    NO_INVENTORY_SUFFIX,
    PAYPAL_LIVE_URL,
    PAYPAL_SANDBOX_URL,
)
from storefront.models import Product
from storefront.utils.validators import (
    clean_product_description,
    clean_product_name,
    require_https_url,
    require_product_category,
    require_product_type,
)

logger = logging.getLogger(__name__)


class PayPalError(Exception):
    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


@dataclass
class CatalogPage:
    products: List[Dict[str, Any]]
    total_count: int


def _error_message(status: int, data: Any, fallback: str) -> str:
    data = data if isinstance(data, dict) else {}
    if status == 400:
        details = data.get("details")
        if details:
            if not isinstance(details, list):
                details = [details]
            parts = []
            for d in details:
                if isinstance(d, dict):
                    parts.append(str(d.get("description") or d.get("issue") or d.get("message") or d))
                else:
                    parts.append(str(d))
            return f"Bad request: {', '.join(parts)}"
        if data.get("message"):
            return f"Bad request: {data['message']}"
        return "Bad request: The data sent to PayPal is invalid"
    if status == 401:
        return "Authentication failed: Invalid PayPal credentials"
    if status == 403:
        return "Access forbidden: Insufficient permissions"
    if status == 404:
        return f"Not found: {data.get('message') or fallback}"
    if status == 422:
        return f"Unprocessable entity: {data.get('message') or 'PayPal cannot process this request'}"
    return str(data.get("message") or data.get("error_description") or fallback)


class PayPalClient:
    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        api_url: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        page_delay: float = 0.1,
    ) -> None:
        self.client_id = client_id if client_id is not None else settings.paypal_client_id
        self.client_secret = client_secret if client_secret is not None else settings.paypal_client_secret
        self.api_url = api_url or (PAYPAL_LIVE_URL if settings.is_live else PAYPAL_SANDBOX_URL)
        self.page_delay = page_delay
        self._session = session
        self._token: Optional[Dict[str, Any]] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=30))
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

    # ---------------- auth ----------------

    def _token_valid(self) -> bool:
        if not self._token:
            return False
        return time.time() < self._token["created"] + float(self._token.get("expires_in", 0))

    async def get_token(self) -> str:
        if not self._token_valid():
            session = await self._get_session()
            try:
                async with session.post(
                    self.api_url + "/v1/oauth2/token",
                    data={"grant_type": "client_credentials"},
                    headers={"Accept": "application/json", "Accept-Language": "en_US"},
                    auth=aiohttp.BasicAuth(self.client_id, self.client_secret),
                ) as resp:
                    try:
                        data = await resp.json(content_type=None)
                    except ValueError:
                        # html-страница от балансировщика и т.п.
                        data = None
                    if resp.status >= 400:
                        logger.error("PayPal token request -> %s", resp.status)
                        fallback = f"Failed to get PayPal token: {resp.reason or resp.status}"
                        raise PayPalError(_error_message(resp.status, data, fallback), resp.status)
            except asyncio.TimeoutError as e:
                logger.error("PayPal token request timed out")
                raise PayPalError("PayPal token request timed out") from e
            except aiohttp.ClientError as e:
                logger.error("PayPal token request network error: %s", e)
                raise PayPalError(f"Failed to get PayPal token: {e}") from e

            if not isinstance(data, dict) or not data.get("access_token"):
                raise PayPalError("Failed to get PayPal token: no access_token in response", resp.status)
            self._token = {**data, "created": time.time()}
        return str(self._token["access_token"])

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        token = await self.get_token()
        session = await self._get_session()
        h = {
            "Accept": "application/json",
            "Accept-Language": "en_US",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }
        if headers:
            h.update(headers)

        try:
            async with session.request(method, self.api_url + path, json=json, params=params, headers=h) as resp:
                text = await resp.text()
                data: Any = None
                if text:
                    try:
                        data = await resp.json(content_type=None)
                    except ValueError:
                        # html-страница ошибки вместо JSON
                        data = None
                if resp.status >= 400:
                    logger.error("PayPal %s %s -> %s: %s", method, path, resp.status, data)
                    raise PayPalError(_error_message(resp.status, data, resp.reason or "PayPal API error"), resp.status)
                return data or {}
        except asyncio.TimeoutError as e:
            logger.error("PayPal %s %s timed out", method, path)
            raise PayPalError("PayPal request timed out") from e
        except aiohttp.ClientError as e:
            logger.error("PayPal %s %s network error: %s", method, path, e)
            raise PayPalError(f"PayPal unreachable: {e}") from e

    # ---------------- orders ----------------

    async def create_order(self, order_request: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"PayPal-Request-Id": f"order-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"}
        try:
            return await self._request("POST", "/v2/checkout/orders", json=order_request, headers=headers)
        except PayPalError as e:
            raise PayPalError(f"Failed to create PayPal order: {e.message}", e.status) from e

    async def capture_order(self, order_id: str) -> Dict[str, Any]:
        try:
            return await self._request("POST", f"/v2/checkout/orders/{order_id}/capture", json={})
        except PayPalError as e:
            raise PayPalError(f"Failed to capture PayPal order: {e.message}", e.status) from e

    # ---------------- catalog ----------------

    async def list_products(self) -> CatalogPage:
        products: List[Dict[str, Any]] = []
        page = 1
        while True:
            data = await self._request(
                "GET",
                "/v1/catalogs/products",
                params={"page_size": CATALOG_PAGE_SIZE, "page": page, "total_required": "true"},
            )
            batch = data.get("products") or []
            if not batch:
                logger.info("no products on page %d, stopping", page)
                break

            products.extend(batch)
            total = data.get("total_items")
            if len(batch) < CATALOG_PAGE_SIZE:
                break
            if total and len(products) >= int(total):
                break
            if page >= CATALOG_MAX_PAGES:
                logger.warning("reached page limit (%d), stopping pagination", CATALOG_MAX_PAGES)
                break

            page += 1
            if self.page_delay:
                await asyncio.sleep(self.page_delay)

        logger.info("PayPal catalog fetched: %d products", len(products))
        return CatalogPage(products=products, total_count=len(products))

    async def list_shop_products(self) -> List[Product]:
        """Товары для витрины: с ценой, без помеченных как no inventory."""
        page = await self.list_products()
        items = [Product.from_paypal(p, settings.default_price) for p in page.products]
        return [p for p in items if p.in_stock]

    async def get_product(self, product_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/v1/catalogs/products/{product_id}")

    async def create_product(
        self,
        name: str,
        description: str,
        image_url: str,
        product_type: str = "SERVICE",
        category: str = "SOFTWARE",
        home_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        data = {
            "name": clean_product_name(name),
            "description": clean_product_description(description),
            "type": require_product_type(product_type),
            "category": require_product_category(category),
            "image_url": require_https_url(image_url, "Image URL"),
            "home_url": require_https_url(home_url or settings.home_url, "Home URL"),
        }
        created = await self._request("POST", "/v1/catalogs/products", json=data)
        logger.info("PayPal product created: %s", created.get("id"))
        return created

    async def update_product(self, product_id: str, **updates: Any) -> None:
        ops = [
            {"op": "replace", "path": f"/{field}", "value": value}
            for field, value in updates.items()
            if value is not None
        ]
        if not ops:
            return
        await self._request("PATCH", f"/v1/catalogs/products/{product_id}", json=ops)

    async def mark_no_inventory(self, product_id: str) -> str:
        """
        Удалить товар из каталога PayPal нельзя, поэтому дописываем в имя суффикс,
        витрина такие товары скрывает.
        """
        current = await self.get_product(product_id)
        name = str(current.get("name") or "Unnamed Product")
        if NO_INVENTORY_SUFFIX in name:
            return name
        new_name = f"{name} {NO_INVENTORY_SUFFIX}"
        await self.update_product(product_id, name=new_name)
        logger.info("product %s marked as no inventory", product_id)
        return new_name
