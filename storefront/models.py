from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from storefront.constants import NO_INVENTORY_SUFFIX


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    price: float
    description: Optional[str] = None
    category: Optional[str] = None  # DIGITAL_GOODS / PHYSICAL_GOODS
    image_url: Optional[str] = None

    @property
    def in_stock(self) -> bool:
        return NO_INVENTORY_SUFFIX not in self.name

    @classmethod
    def from_paypal(cls, data: Dict[str, Any], default_price: float) -> "Product":
        """
        Каталог PayPal не хранит цену: берём price из payload, если есть,
        иначе default_price. type PHYSICAL -> PHYSICAL_GOODS, остальное цифровое.
        """
        price = data.get("price")
        try:
            price_f = float(price) if price is not None else float(default_price)
        except (TypeError, ValueError):
            price_f = float(default_price)
        if price_f < 0:
            price_f = float(default_price)

        category = "PHYSICAL_GOODS" if str(data.get("type", "")).upper() == "PHYSICAL" else "DIGITAL_GOODS"
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or "Unknown Item"),
            price=price_f,
            description=data.get("description"),
            category=category,
            image_url=data.get("image_url"),
        )


@dataclass(frozen=True)
class CartEntry:
    """Одна единица товара в корзине. quantity всегда 1."""

    entry_id: str
    product_id: str
    name: str
    price: float
    description: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    quantity: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CartEntry":
        return cls(
            entry_id=str(data["entry_id"]),
            product_id=str(data["product_id"]),
            name=str(data.get("name") or ""),
            price=float(data.get("price") or 0),
            description=data.get("description"),
            category=data.get("category"),
            image_url=data.get("image_url"),
        )


@dataclass
class DisplayRow:
    product_id: str
    name: str
    unit_price: float
    quantity: int = 0
    entry_ids: List[str] = field(default_factory=list)
    description: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None

    @property
    def subtotal(self) -> float:
        return self.unit_price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["subtotal"] = self.subtotal
        return d
