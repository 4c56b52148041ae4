"""
Оформление заказа через PayPal для одной корзины.

    IDLE -> CREATING_ORDER -> AWAITING_APPROVAL -> CAPTURING -> SETTLED | FAILED

Каждая запись корзины уходит отдельной позицией с quantity "1".
Корзина очищается только после успешного capture. Автоповторов нет:
после FAILED новая попытка начинается с нового заказа.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from storefront.config import settings
from storefront.constants import DEFAULT_ITEM_CATEGORY
from storefront.models import CartEntry
from storefront.services.cart import CartStore
from storefront.services.paypal import PayPalError
from storefront.services.pricing import to_amount, total_amount

logger = logging.getLogger(__name__)

MSG_IN_PROGRESS = "Order creation already in progress"
MSG_EMPTY_CART = "Cart is empty"


class CheckoutValidationError(ValueError):
    pass


class OrderProvider(Protocol):
    async def create_order(self, order_request: Dict[str, Any]) -> Dict[str, Any]: ...

    async def capture_order(self, order_id: str) -> Dict[str, Any]: ...


class CheckoutState(str, Enum):
    IDLE = "idle"
    CREATING_ORDER = "creating_order"
    AWAITING_APPROVAL = "awaiting_approval"
    CAPTURING = "capturing"
    SETTLED = "settled"
    FAILED = "failed"


@dataclass
class Receipt:
    order_id: str
    items: List[Dict[str, Any]]
    total: str
    currency: str
    capture_id: Optional[str] = None
    created_at: str = field(default_factory=lambda: datetime.now().strftime("%Y-%m-%d %H:%M:%S"))


def build_line_items(entries: Sequence[CartEntry], currency: Optional[str] = None) -> List[Dict[str, Any]]:
    currency = currency or settings.currency
    return [
        {
            "name": e.name or "Unknown Item",
            "quantity": "1",
            "category": e.category or DEFAULT_ITEM_CATEGORY,
            "unit_amount": {"currency_code": currency, "value": to_amount(e.price)},
        }
        for e in entries
    ]


def build_order_request(
    items: List[Dict[str, Any]],
    total: str,
    currency: Optional[str] = None,
    brand_name: Optional[str] = None,
    return_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
) -> Dict[str, Any]:
    if not items or not total:
        raise CheckoutValidationError("Missing items or total")

    currency = currency or settings.currency
    return {
        "intent": "CAPTURE",
        "purchase_units": [
            {
                "amount": {
                    "currency_code": currency,
                    "value": total,
                    "breakdown": {"item_total": {"currency_code": currency, "value": total}},
                },
                "items": items,
            }
        ],
        "application_context": {
            "brand_name": brand_name or settings.brand_name,
            "user_action": "PAY_NOW",
            "return_url": return_url or f"{settings.app_url}/checkout/return",
            "cancel_url": cancel_url or f"{settings.app_url}/checkout/cancel",
        },
    }


def order_request_for(entries: Sequence[CartEntry], **kwargs: Any) -> Dict[str, Any]:
    items = build_line_items(entries, kwargs.get("currency"))
    total = total_amount(e.price for e in entries) if entries else ""
    return build_order_request(items, total, **kwargs)


def approve_url(order: Dict[str, Any]) -> Optional[str]:
    for link in order.get("links") or []:
        if link.get("rel") in ("approve", "payer-action"):
            return link.get("href")
    return None


def _capture_id(result: Dict[str, Any]) -> Optional[str]:
    try:
        return result["purchase_units"][0]["payments"]["captures"][0]["id"]
    except (KeyError, IndexError, TypeError):
        return None


class CheckoutOrchestrator:
    def __init__(
        self,
        cart: CartStore,
        provider: OrderProvider,
        return_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> None:
        self.cart = cart
        self.provider = provider
        self.return_url = return_url
        self.cancel_url = cancel_url

        self.state = CheckoutState.IDLE
        self.order_id: Optional[str] = None
        self.approve_url: Optional[str] = None
        self.order_request: Optional[Dict[str, Any]] = None
        self.error: Optional[str] = None
        self.receipt: Optional[Receipt] = None

        self._in_flight = False
        self._attempt = 0

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def _fail(self, message: str) -> Tuple[bool, str]:
        self.state = CheckoutState.FAILED
        self.error = message
        self._in_flight = False
        return False, message

    async def start(self) -> Tuple[bool, str]:
        """
        Создаёт заказ из текущей корзины.
        (True, order_id) или (False, сообщение для пользователя).
        """
        # проверка и установка флага до первого await
        if self._in_flight:
            logger.warning("cart %s: checkout rejected, order already in flight", self.cart.key)
            return False, MSG_IN_PROGRESS
        self._in_flight = True

        try:
            request = order_request_for(
                self.cart.entries,
                return_url=self.return_url,
                cancel_url=self.cancel_url,
            )
        except CheckoutValidationError as e:
            self._in_flight = False
            msg = MSG_EMPTY_CART if self.cart.is_empty() else str(e)
            return False, msg

        self._attempt += 1
        attempt = self._attempt
        self.state = CheckoutState.CREATING_ORDER
        self.order_id = None
        self.approve_url = None
        self.error = None
        self.receipt = None
        self.order_request = request

        logger.info("cart %s: creating order with %d items", self.cart.key, self.cart.get_item_count())
        try:
            order = await self.provider.create_order(request)
        except PayPalError as e:
            if attempt != self._attempt or self.state != CheckoutState.CREATING_ORDER:
                logger.warning("cart %s: ignoring stale create error: %s", self.cart.key, e.message)
                return False, "stale"
            logger.error("cart %s: order creation failed: %s", self.cart.key, e.message)
            return self._fail(e.message)
        except Exception:
            if attempt != self._attempt or self.state != CheckoutState.CREATING_ORDER:
                logger.warning("cart %s: ignoring stale create error", self.cart.key)
                return False, "stale"
            logger.exception("cart %s: order creation crashed", self.cart.key)
            return self._fail("Failed to create PayPal order")

        if attempt != self._attempt or self.state != CheckoutState.CREATING_ORDER:
            logger.warning("cart %s: ignoring stale order %s", self.cart.key, order.get("id"))
            return False, "stale"

        order_id = order.get("id")
        if not order_id:
            return self._fail("PayPal did not return an order id")

        self.order_id = str(order_id)
        self.approve_url = approve_url(order)
        self.state = CheckoutState.AWAITING_APPROVAL
        logger.info("cart %s: order %s awaiting approval", self.cart.key, self.order_id)
        return True, self.order_id

    async def approve(self, order_id: str) -> Tuple[bool, str]:
        """Покупатель подтвердил оплату у PayPal, делаем capture."""
        if self.state != CheckoutState.AWAITING_APPROVAL or not self.order_id:
            return False, "No order is awaiting approval"
        if order_id != self.order_id:
            logger.warning("cart %s: approval for unknown order %s", self.cart.key, order_id)
            return False, f"Unknown order {order_id}"

        self.state = CheckoutState.CAPTURING
        logger.info("cart %s: capturing order %s", self.cart.key, order_id)
        try:
            result = await self.provider.capture_order(order_id)
        except PayPalError as e:
            if self.order_id != order_id or self.state != CheckoutState.CAPTURING:
                logger.warning("cart %s: ignoring stale capture error for %s", self.cart.key, order_id)
                return False, "stale"
            logger.error("cart %s: capture of %s failed: %s", self.cart.key, order_id, e.message)
            return self._fail(e.message)
        except Exception:
            if self.order_id != order_id or self.state != CheckoutState.CAPTURING:
                logger.warning("cart %s: ignoring stale capture error for %s", self.cart.key, order_id)
                return False, "stale"
            logger.exception("cart %s: capture of %s crashed", self.cart.key, order_id)
            return self._fail("Failed to capture PayPal order")

        if self.order_id != order_id or self.state != CheckoutState.CAPTURING:
            logger.warning("cart %s: ignoring stale capture for %s", self.cart.key, order_id)
            return False, "stale"

        status = str(result.get("status") or "COMPLETED").upper()
        if status != "COMPLETED":
            logger.error("cart %s: order %s captured with status %s", self.cart.key, order_id, status)
            return self._fail(f"Payment not completed: {status}")

        unit = (self.order_request or {}).get("purchase_units", [{}])[0]
        self.receipt = Receipt(
            order_id=order_id,
            items=list(unit.get("items", [])),
            total=unit.get("amount", {}).get("value", ""),
            currency=unit.get("amount", {}).get("currency_code", settings.currency),
            capture_id=_capture_id(result),
        )
        self.state = CheckoutState.SETTLED
        self._in_flight = False

        try:
            self.cart.clear_cart()
        except Exception:
            logger.exception("order %s captured but cart %s was not cleared, retrying", order_id, self.cart.key)
            self.cart.clear_cart()

        logger.info("cart %s: order %s settled", self.cart.key, order_id)
        return True, order_id

    def cancel(self) -> Tuple[bool, str]:
        """
        Отмена на стороне PayPal (или пока заказ ещё создаётся).
        Корзина не трогается, capture не вызывается.
        """
        if self.state not in (CheckoutState.AWAITING_APPROVAL, CheckoutState.CREATING_ORDER):
            return False, "Nothing to cancel"

        logger.info("cart %s: checkout cancelled (order %s)", self.cart.key, self.order_id)
        self.state = CheckoutState.IDLE
        self.order_id = None
        self.approve_url = None
        self._in_flight = False
        return True, "cancelled"
