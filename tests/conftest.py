import asyncio
from dataclasses import replace
from typing import Any, Dict, List, Optional

import pytest

from storefront.config import settings
from storefront.db import sqlite as db
from storefront.models import Product
from storefront.services import receipt_pdf
from storefront.services.cart import CartStore, MemoryCartStorage
from storefront.services.paypal import PayPalError


class FakePayPal:
    """Подменяет PayPalClient: считает вызовы, может падать."""

    def __init__(self) -> None:
        self.create_calls: List[Dict[str, Any]] = []
        self.capture_calls: List[str] = []
        self.create_error: Optional[Exception] = None
        self.capture_error: Optional[Exception] = None
        self.capture_status = "COMPLETED"
        self.products: Dict[str, Dict[str, Any]] = {}
        self.gate: Optional[asyncio.Event] = None
        self._n = 0

    async def create_order(self, order_request: Dict[str, Any]) -> Dict[str, Any]:
        self.create_calls.append(order_request)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.create_error is not None:
            raise self.create_error
        self._n += 1
        order_id = f"ORDER-{self._n}"
        return {
            "id": order_id,
            "status": "CREATED",
            "links": [{"rel": "approve", "href": f"https://paypal.test/approve?token={order_id}"}],
        }

    async def capture_order(self, order_id: str) -> Dict[str, Any]:
        self.capture_calls.append(order_id)
        await asyncio.sleep(0)
        if self.capture_error is not None:
            raise self.capture_error
        return {
            "id": order_id,
            "status": self.capture_status,
            "purchase_units": [{"payments": {"captures": [{"id": f"CAP-{order_id}"}]}}],
        }

    async def get_product(self, product_id: str) -> Dict[str, Any]:
        if product_id not in self.products:
            raise PayPalError(f"Not found: {product_id}", 404)
        return self.products[product_id]

    async def list_shop_products(self) -> List[Product]:
        return [Product.from_paypal(p, 10.0) for p in self.products.values()]

    async def close(self) -> None:
        pass


@pytest.fixture
def storage():
    return MemoryCartStorage()


@pytest.fixture
def cart(storage):
    return CartStore(storage)


@pytest.fixture
def fake_paypal():
    return FakePayPal()


@pytest.fixture
def p1():
    return Product(id="p1", name="Poster", price=9.99, description="A2 poster", category="PHYSICAL_GOODS")


@pytest.fixture
def p2():
    return Product(id="p2", name="E-book", price=4.5, category="DIGITAL_GOODS")


@pytest.fixture
def tmp_settings(tmp_path, monkeypatch):
    s = replace(settings, db_path=str(tmp_path / "shop.db"), export_dir=str(tmp_path / "exports"))
    monkeypatch.setattr(db, "settings", s)
    monkeypatch.setattr(receipt_pdf, "settings", s)
    db.init_db()
    return s
