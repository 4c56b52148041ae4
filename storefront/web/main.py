from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Form, HTTPException
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse
from pydantic import BaseModel

from storefront.config import settings
from storefront.constants import CART_STORAGE_KEY
from storefront.db.sqlite import SqliteCartStorage, init_db
from storefront.models import Product
from storefront.services.cart import CartStore
from storefront.services.checkout import (
    MSG_IN_PROGRESS,
    CheckoutOrchestrator,
    CheckoutState,
    CheckoutValidationError,
    build_order_request,
)
from storefront.services.paypal import PayPalClient, PayPalError
from storefront.services.receipt_pdf import generate_receipt_pdf, receipt_path

logger = logging.getLogger(__name__)

app = FastAPI(title="Storefront")

paypal = PayPalClient()

# корзина одна: локальный магазин на одного пользователя
STATE: Dict[str, Any] = {}


@app.on_event("startup")
def _startup() -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    init_db()
    cart = CartStore(SqliteCartStorage(), key=CART_STORAGE_KEY)
    STATE["cart"] = cart
    STATE["checkout"] = CheckoutOrchestrator(cart, paypal)


@app.on_event("shutdown")
async def _shutdown() -> None:
    await paypal.close()


def _cart() -> CartStore:
    return STATE["cart"]


def _checkout() -> CheckoutOrchestrator:
    return STATE["checkout"]


def _back(msg: str) -> RedirectResponse:
    return RedirectResponse(url=f"/cart?msg={msg}", status_code=303)


# ---------------- catalog ----------------

@app.get("/products")
async def products():
    try:
        items = await paypal.list_shop_products()
    except PayPalError as e:
        return JSONResponse(status_code=502, content={"error": e.message})
    return {"products": [asdict(p) for p in items], "total": len(items)}


# ---------------- cart ----------------

@app.get("/cart")
def cart_show(msg: str = ""):
    cart = _cart()
    return {
        "items": [r.to_dict() for r in cart.get_display_cart()],
        "item_count": cart.get_item_count(),
        "total": round(cart.get_total_value(), settings.decimals),
        "currency": settings.currency,
        "checkout": _checkout().state.value,
        "message": msg,
    }


@app.post("/cart/add")
async def cart_add(product_id: str = Form(...)):
    try:
        data = await paypal.get_product(product_id.strip())
    except PayPalError as e:
        return _back(f"add:{e.message}")
    product = Product.from_paypal(data, settings.default_price)
    if not product.in_stock:
        return _back("add:out of stock")
    _cart().add_to_cart(product)
    return _back("add:OK")


@app.post("/cart/remove")
def cart_remove(product_id: str = Form(...), remove_all: bool = Form(False)):
    removed = _cart().remove_from_cart(product_id.strip(), remove_all)
    return _back(f"remove:{removed}")


@app.post("/cart/quantity")
def cart_quantity(product_id: str = Form(...), quantity: int = Form(...)):
    _cart().update_quantity(product_id.strip(), int(quantity))
    return _back("quantity:OK")


@app.post("/cart/clear")
def cart_clear():
    _cart().clear_cart()
    return _back("clear:OK")


# ---------------- PayPal API ----------------

class OrderItem(BaseModel):
    name: str
    quantity: str = "1"
    category: Optional[str] = None
    unit_amount: Dict[str, str]


class CreateOrderBody(BaseModel):
    items: Optional[List[OrderItem]] = None
    total: Optional[str] = None


class CaptureOrderBody(BaseModel):
    orderID: Optional[str] = None


@app.post("/api/paypal/create-order")
async def api_create_order(body: CreateOrderBody):
    try:
        items = [{**i.model_dump(), "category": "DIGITAL_GOODS"} for i in (body.items or [])]
        request = build_order_request(items, body.total or "")
    except CheckoutValidationError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    try:
        order = await paypal.create_order(request)
    except PayPalError as e:
        logger.error("create order error: %s", e.message)
        return JSONResponse(status_code=500, content={"error": e.message})
    return {"id": order.get("id")}


@app.post("/api/paypal/capture-order")
async def api_capture_order(body: CaptureOrderBody):
    if not body.orderID:
        return JSONResponse(status_code=400, content={"error": "Missing orderID"})
    try:
        return await paypal.capture_order(body.orderID)
    except PayPalError as e:
        logger.error("capture order error: %s", e.message)
        return JSONResponse(status_code=500, content={"error": e.message})


# ---------------- checkout ----------------

@app.post("/checkout")
async def checkout_start():
    checkout = _checkout()
    ok, res = await checkout.start()
    if ok:
        return {"id": res, "approve_url": checkout.approve_url}
    if res == MSG_IN_PROGRESS:
        return JSONResponse(status_code=409, content={"error": res})
    if checkout.state == CheckoutState.FAILED:
        return JSONResponse(status_code=502, content={"error": res})
    return JSONResponse(status_code=400, content={"error": res})


@app.get("/checkout/return")
async def checkout_return(token: str):
    checkout = _checkout()
    ok, res = await checkout.approve(token)
    if not ok:
        return JSONResponse(status_code=502 if checkout.state == CheckoutState.FAILED else 409, content={"error": res})

    receipt_url = None
    if checkout.receipt is not None:
        try:
            generate_receipt_pdf(checkout.receipt)
            receipt_url = f"/receipts/{res}"
        except OSError as e:
            logger.error("receipt for %s not generated: %s", res, e)
    return {"order": res, "status": checkout.state.value, "receipt": receipt_url}


@app.get("/checkout/cancel")
def checkout_cancel():
    ok, res = _checkout().cancel()
    return {"cancelled": ok, "message": res}


@app.get("/receipts/{order_id}", response_class=FileResponse)
def receipt_download(order_id: str):
    # только файлы из EXPORT_DIR
    if "/" in order_id or "\\" in order_id or ".." in order_id:
        raise HTTPException(status_code=404, detail="Receipt not found")
    p = Path(receipt_path(order_id))
    if not p.exists():
        raise HTTPException(status_code=404, detail="Receipt not found")
    return FileResponse(str(p), filename=p.name)
