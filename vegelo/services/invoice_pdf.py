from __future__ import annotations

import os
import re
from typing import Optional

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from vegelo.config import settings
from vegelo.services.pricing import line_total
from vegelo.store.models import Order
from vegelo.utils.formatters import money, quantity


def generate_invoice_pdf(order: Order, export_dir: Optional[str] = None) -> str:
    export_dir = export_dir or settings.export_dir
    os.makedirs(export_dir, exist_ok=True)

    filename = "invoice_" + re.sub(r"[^A-Za-z0-9_-]", "_", order.id) + ".pdf"
    path = os.path.join(export_dir, filename)

    c = canvas.Canvas(path, pagesize=A4)
    w, h = A4

    y = h - 50
    c.setFont("Helvetica-Bold", 16)
    c.drawString(40, y, "Vegelo")
    c.setFont("Helvetica-Bold", 12)
    c.drawRightString(550, y, f"INVOICE {order.id}")
    y -= 18

    c.setFont("Helvetica", 10)
    c.drawRightString(550, y, f"Date: {order.order_date.strftime('%Y-%m-%d')}")
    c.drawRightString(550, y - 14, f"Status: {order.status.value}")
    y -= 10

    # customer
    c.setFont("Helvetica-Bold", 11)
    c.drawString(40, y, "Bill to:")
    y -= 16
    c.setFont("Helvetica", 10)
    for line in (order.customer.name, order.customer.address, order.customer.phone):
        c.drawString(40, y, line[:80])
        y -= 14
    c.drawString(40, y, f"Paid via: {order.payment_method.value}")
    y -= 24

    # header
    c.setFont("Helvetica-Bold", 10)
    c.drawString(40, y, "Item")
    c.drawString(300, y, "Qty")
    c.drawString(380, y, "Price")
    c.drawString(480, y, "Total")
    y -= 10
    c.line(40, y, 550, y)
    y -= 16

    c.setFont("Helvetica", 10)
    for it in order.items:
        c.drawString(40, y, it.name[:45])
        c.drawRightString(350, y, quantity(it.quantity, it.unit.value))
        c.drawRightString(440, y, money(it.price))
        c.drawRightString(550, y, money(line_total(it)))
        y -= 14
        if y < 80:
            c.showPage()
            y = h - 50
            c.setFont("Helvetica", 10)

    y -= 10
    c.line(40, y, 550, y)
    y -= 18
    c.setFont("Helvetica-Bold", 12)
    c.drawRightString(550, y, f"TOTAL: {money(order.total)}")

    y -= 40
    c.setFont("Helvetica", 9)
    c.drawCentredString(w / 2, y, "Thank you for your business!")

    c.save()
    return path
