from __future__ import annotations

import logging
import time
import uuid
from dataclasses import replace
from typing import Any, Dict, List, Protocol

from storefront.constants import CART_STORAGE_KEY
from storefront.models import CartEntry, DisplayRow, Product
from storefront.services.display import get_display_cart

logger = logging.getLogger(__name__)


class CartStorage(Protocol):
    def load(self, key: str) -> List[Dict[str, Any]]: ...

    def save(self, key: str, rows: List[Dict[str, Any]]) -> None: ...


class MemoryCartStorage:
    def __init__(self) -> None:
        self.blobs: Dict[str, List[Dict[str, Any]]] = {}

    def load(self, key: str) -> List[Dict[str, Any]]:
        return [dict(r) for r in self.blobs.get(key, [])]

    def save(self, key: str, rows: List[Dict[str, Any]]) -> None:
        self.blobs[key] = [dict(r) for r in rows]


def new_entry_id(product_id: str) -> str:
    return f"{product_id}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:12]}"


class CartStore:
    """
    Корзина: одна запись на каждую добавленную единицу товара.

    Количество товара = число записей с этим product_id, поля товара
    снимаются в момент добавления и дальше не перечитываются из каталога.
    Любая мутация сразу пересохраняет весь список в storage.
    """

    def __init__(self, storage: CartStorage, key: str = CART_STORAGE_KEY) -> None:
        self.storage = storage
        self.key = key
        self._entries: List[CartEntry] = [CartEntry.from_dict(r) for r in storage.load(key)]

    @property
    def entries(self) -> List[CartEntry]:
        return list(self._entries)

    def _persist(self) -> None:
        self.storage.save(self.key, [e.to_dict() for e in self._entries])

    def _for_product(self, product_id: str) -> List[CartEntry]:
        return [e for e in self._entries if e.product_id == product_id]

    def add_to_cart(self, product: Product) -> CartEntry:
        entry = CartEntry(
            entry_id=new_entry_id(product.id),
            product_id=product.id,
            name=product.name,
            price=float(product.price),
            description=product.description,
            category=product.category,
            image_url=product.image_url,
        )
        self._entries.append(entry)
        self._persist()
        logger.info("cart %s: added %s (%s)", self.key, product.name, entry.entry_id)
        return entry

    def remove_from_cart(self, product_id: str, remove_all: bool = False) -> int:
        """Возвращает сколько записей удалено (0 если товара нет в корзине)."""
        if remove_all:
            before = len(self._entries)
            self._entries = [e for e in self._entries if e.product_id != product_id]
            removed = before - len(self._entries)
        else:
            # самая старая запись
            idx = next((i for i, e in enumerate(self._entries) if e.product_id == product_id), None)
            if idx is None:
                return 0
            del self._entries[idx]
            removed = 1

        if removed:
            self._persist()
        return removed

    def update_quantity(self, product_id: str, new_quantity: int) -> None:
        if new_quantity <= 0:
            self.remove_from_cart(product_id, remove_all=True)
            return

        current = self._for_product(product_id)
        current_qty = len(current)
        if new_quantity == current_qty:
            return

        if new_quantity > current_qty:
            if not current:
                # клонировать не из чего, а заново тянуть товар из каталога нельзя
                logger.warning("cart %s: %s not in cart, cannot raise quantity", self.key, product_id)
                return
            template = current[0]
            for _ in range(new_quantity - current_qty):
                self._entries.append(replace(template, entry_id=new_entry_id(product_id)))
        else:
            keep = {e.entry_id for e in current[:new_quantity]}
            self._entries = [e for e in self._entries if e.product_id != product_id or e.entry_id in keep]

        self._persist()
        logger.info("cart %s: quantity %s %d -> %d", self.key, product_id, current_qty, new_quantity)

    def clear_cart(self) -> None:
        self._entries = []
        self._persist()

    def get_total_value(self) -> float:
        return sum((e.price for e in self._entries), 0.0)

    def get_item_count(self) -> int:
        return len(self._entries)

    def is_empty(self) -> bool:
        return self.get_item_count() == 0

    def get_display_cart(self) -> List[DisplayRow]:
        return get_display_cart(self._entries)

    def quantity_of(self, product_id: str) -> int:
        return len(self._for_product(product_id))
