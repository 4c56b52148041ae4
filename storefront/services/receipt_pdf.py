from __future__ import annotations

import os

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from storefront.config import settings
from storefront.services.checkout import Receipt


def receipt_path(order_id: str) -> str:
    return os.path.join(settings.export_dir, f"receipt_{order_id}.pdf")


def generate_receipt_pdf(receipt: Receipt) -> str:
    os.makedirs(settings.export_dir, exist_ok=True)
    path = receipt_path(receipt.order_id)

    c = canvas.Canvas(path, pagesize=A4)
    w, h = A4

    y = h - 50
    c.setFont("Helvetica-Bold", 14)
    c.drawString(40, y, f"{settings.brand_name} - RECEIPT")
    y -= 20

    c.setFont("Helvetica", 11)
    c.drawString(40, y, f"Order: {receipt.order_id}")
    y -= 16
    if receipt.capture_id:
        c.drawString(40, y, f"Capture: {receipt.capture_id}")
        y -= 16
    c.drawString(40, y, f"Date: {receipt.created_at}")
    y -= 16
    c.drawString(40, y, f"Currency: {receipt.currency}")
    y -= 24

    # header
    c.setFont("Helvetica-Bold", 10)
    c.drawString(40, y, "Item")
    c.drawString(310, y, "Qty")
    c.drawString(440, y, "Price")
    y -= 10
    c.line(40, y, 550, y)
    y -= 16

    # по строке на каждую единицу, как в заказе
    c.setFont("Helvetica", 10)
    for it in receipt.items:
        c.drawString(40, y, str(it.get("name", ""))[:45])
        c.drawRightString(340, y, str(it.get("quantity", "1")))
        c.drawRightString(550, y, str(it.get("unit_amount", {}).get("value", "")))
        y -= 14
        if y < 80:
            c.showPage()
            y = h - 50
            c.setFont("Helvetica", 10)

    y -= 10
    c.line(40, y, 550, y)
    y -= 18
    c.setFont("Helvetica-Bold", 12)
    c.drawRightString(550, y, f"TOTAL: {receipt.total} {receipt.currency}")

    c.save()
    return path
