"""Shipment (loading) slip for a configured shipment order."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence

from reportlab.lib.units import mm

from shipdesk.documents.common import (
    ACCENT,
    CONTENT_WIDTH,
    MARGIN,
    MUTED,
    PAGE_HEIGHT,
    PANEL,
    RULE,
    SlipCanvas,
    aggregate_products,
    format_short_date,
    truncate_address,
)
from shipdesk.models import ShipmentOrder, ShipmentType


logger = logging.getLogger(__name__)

MAX_PRODUCT_ROWS_SINGLE = 12
MAX_PRODUCT_ROWS_MULTI = 10
QR_SIZE = 32 * mm

TITLES = {
    ShipmentType.TRUCK: "LOADING SHEET",
    ShipmentType.COURIER: "COURIER DISPATCH",
    ShipmentType.IN_PERSON: "PICKUP SLIP",
}
TRANSPORT_TITLES = {
    ShipmentType.TRUCK: "TRUCK DETAILS",
    ShipmentType.COURIER: "COURIER DETAILS",
    ShipmentType.IN_PERSON: "PICKUP DETAILS",
}
SCAN_CAPTIONS = {
    ShipmentType.TRUCK: "SCAN TO LOAD",
    ShipmentType.COURIER: "SCAN TO DISPATCH",
    ShipmentType.IN_PERSON: "SCAN TO RELEASE",
}
SIGNATURES = {
    ShipmentType.TRUCK: (
        ("Checked By", "Warehouse Supervisor"),
        ("Driver Signature", "Driver Name"),
        ("Loaded By", "Loader Name"),
    ),
    ShipmentType.COURIER: (
        ("Packed By", "Warehouse Staff"),
        ("Courier Agent", "Agent Name & Sign"),
        ("Verified By", "Supervisor"),
    ),
    ShipmentType.IN_PERSON: (
        ("Prepared By", "Warehouse Staff"),
        ("Recipient Sign", "Name & Signature"),
        ("Released By", "Supervisor"),
    ),
}

NO_PRODUCTS = {"product_name": "No products found", "sku": "N/A", "customer_name": "N/A", "quantity": 0}


def slip_title(order: ShipmentOrder) -> str:
    title = TITLES.get(order.shipment_type, "SHIPMENT SLIP")
    return f"MULTI-CUSTOMER {title}" if order.is_multi else title


def transport_lines(order: ShipmentOrder) -> list[tuple[str, str]]:
    """Label/value rows of the transport details box."""

    details = order.details or {}
    if order.shipment_type == ShipmentType.TRUCK:
        return [
            ("Truck No", details.get("truckNumber") or "N/A"),
            ("Transporter", details.get("transporterName") or "N/A"),
            ("Driver Name", details.get("driverName") or "N/A"),
            ("Driver Phone", details.get("driverPhone") or "N/A"),
        ]
    if order.shipment_type == ShipmentType.COURIER:
        lines = [
            ("Courier Service", details.get("courierName") or "N/A"),
            ("AWB Number", details.get("awbNumber") or "N/A"),
        ]
        if details.get("expectedPickup"):
            lines.append(("Expected Pickup", details["expectedPickup"]))
        return lines
    if order.shipment_type == ShipmentType.IN_PERSON:
        return [
            ("Pickup By", details.get("contactPerson") or "N/A"),
            ("ID Proof Type", details.get("idProof") or "N/A"),
            ("Phone Number", details.get("phoneNumber") or "N/A"),
        ]
    return []


def visible_products(
    products: Iterable[Any], *, is_multi: bool
) -> tuple[list[dict[str, Any]], int]:
    """Aggregated product rows to print and how many were left off."""

    rows = aggregate_products(products) or [dict(NO_PRODUCTS)]
    limit = MAX_PRODUCT_ROWS_MULTI if is_multi else MAX_PRODUCT_ROWS_SINGLE
    return rows[:limit], max(len(rows) - limit, 0)


def _draw_header(page: SlipCanvas, order: ShipmentOrder, shipper: Mapping[str, str], generated_at: datetime) -> float:
    top = PAGE_HEIGHT - MARGIN
    page.text(MARGIN, top - 8 * mm, slip_title(order), size=16, bold=True, color=ACCENT)
    page.text(MARGIN, top - 14 * mm, shipper.get("name") or "", size=9, bold=True)
    page.text(MARGIN, top - 18 * mm, shipper.get("address") or "", size=7, color=MUTED, width=CONTENT_WIDTH - QR_SIZE - 10 * mm)
    if shipper.get("phone"):
        page.text(MARGIN, top - 22 * mm, f"Phone: {shipper['phone']}", size=7, color=MUTED)

    page.text(MARGIN, top - 29 * mm, f"Shipment: {order.shipment_id}", size=10, bold=True)
    page.text(MARGIN, top - 34 * mm, f"Date: {format_short_date(generated_at)}", size=8)
    page.text(MARGIN + 40 * mm, top - 34 * mm, f"Cartons: {order.total_cartons}", size=8)
    page.text(
        MARGIN + 70 * mm,
        top - 34 * mm,
        ShipmentType.LABELS.get(order.shipment_type, "Not configured"),
        size=8,
        bold=True,
    )

    qr_x = MARGIN + CONTENT_WIDTH - QR_SIZE
    page.qr(order.shipment_id or order.id, qr_x, top - QR_SIZE, QR_SIZE)
    page.text(
        qr_x + QR_SIZE / 2,
        top - QR_SIZE - 4 * mm,
        SCAN_CAPTIONS.get(order.shipment_type, "SCAN"),
        size=7,
        bold=True,
        align="center",
    )
    bottom = top - 40 * mm
    page.line(MARGIN, bottom, MARGIN + CONTENT_WIDTH, bottom, color=ACCENT, width=1.5)
    return bottom - 5 * mm


def _draw_address_boxes(page: SlipCanvas, customer: Mapping[str, Any], y: float) -> float:
    width = (CONTENT_WIDTH - 4 * mm) / 2
    height = 24 * mm
    for index, (title, key) in enumerate((("BILL TO", "bill_to_address"), ("SHIP TO", "ship_to_address"))):
        x = MARGIN + index * (width + 4 * mm)
        page.rect(x, y - height, width, height, fill=PANEL, stroke=RULE)
        page.text(x + 3 * mm, y - 5 * mm, title, size=8, bold=True, color=ACCENT)
        page.text(x + 3 * mm, y - 10 * mm, customer.get("customer_name") or "N/A", size=9, bold=True, width=width - 6 * mm)
        page.text(x + 3 * mm, y - 15 * mm, customer.get(key) or "N/A", size=7, width=width - 6 * mm)
        contact = customer.get("customer_phone") or customer.get("customer_email") or ""
        if contact:
            page.text(x + 3 * mm, y - 20 * mm, contact, size=7, color=MUTED, width=width - 6 * mm)
    return y - height - 5 * mm


def _draw_customer_table(page: SlipCanvas, customers: Sequence[Mapping[str, Any]], y: float) -> float:
    page.text(MARGIN, y, f"CUSTOMER DELIVERY DETAILS ({len(customers)} Customers)", size=9, bold=True, color=ACCENT)
    y -= 3 * mm
    columns = (
        ("#", MARGIN + 2 * mm, 6 * mm),
        ("Customer", MARGIN + 9 * mm, 40 * mm),
        ("Bill To", MARGIN + 51 * mm, 58 * mm),
        ("Ship To", MARGIN + 111 * mm, 58 * mm),
        ("Crtn", MARGIN + CONTENT_WIDTH - 2 * mm, 10 * mm),
    )
    page.rect(MARGIN, y - 5 * mm, CONTENT_WIDTH, 5 * mm, fill=PANEL, stroke=None)
    for title, x, _ in columns:
        page.text(x, y - 3.5 * mm, title, size=7, bold=True, align="right" if title == "Crtn" else "left")
    y -= 9 * mm
    for index, customer in enumerate(customers, start=1):
        values = (
            str(index),
            customer.get("customer_name") or "N/A",
            truncate_address(customer.get("bill_to_address")),
            truncate_address(customer.get("ship_to_address")),
            str(customer.get("carton_count") or 0),
        )
        for (title, x, width), value in zip(columns, values):
            page.text(x, y, value, size=7, width=width, align="right" if title == "Crtn" else "left")
        page.line(MARGIN, y - 1.5 * mm, MARGIN + CONTENT_WIDTH, y - 1.5 * mm, color=PANEL, width=0.5)
        y -= 4.5 * mm
    return y - 3 * mm


def _draw_transport(page: SlipCanvas, order: ShipmentOrder, y: float) -> float:
    lines = transport_lines(order)
    height = (8 + 4.5 * len(lines)) * mm
    if order.destination:
        height += 4.5 * mm
    page.rect(MARGIN, y - height, CONTENT_WIDTH, height, stroke=ACCENT, stroke_width=1)
    page.text(MARGIN + 3 * mm, y - 5 * mm, TRANSPORT_TITLES.get(order.shipment_type, "TRANSPORT DETAILS"), size=8, bold=True, color=ACCENT)
    row_y = y - 10 * mm
    for label, value in lines:
        page.text(MARGIN + 3 * mm, row_y, f"{label}:", size=8, color=MUTED)
        page.text(MARGIN + 40 * mm, row_y, value, size=8, bold=True, width=CONTENT_WIDTH - 45 * mm)
        row_y -= 4.5 * mm
    if order.destination:
        page.text(MARGIN + 3 * mm, row_y, "Destination:", size=8, color=MUTED)
        page.text(MARGIN + 40 * mm, row_y, order.destination, size=8, bold=True, width=CONTENT_WIDTH - 45 * mm)
    y -= height + 4 * mm

    if order.special_instructions:
        page.text(MARGIN, y, f"Instructions: {order.special_instructions}", size=8, width=CONTENT_WIDTH)
        y -= 6 * mm
    return y


def _draw_products(page: SlipCanvas, products: Sequence[Any], is_multi: bool, y: float) -> float:
    rows, hidden = visible_products(products, is_multi=is_multi)
    page.text(MARGIN, y, f"PRODUCT DETAILS ({len(rows) + hidden} items)", size=9, bold=True, color=ACCENT)
    y -= 3 * mm
    columns = (
        ("No.", MARGIN + 2 * mm, 8 * mm),
        ("Product Name", MARGIN + 12 * mm, 95 * mm),
        ("Customer", MARGIN + 110 * mm, 55 * mm),
        ("Qty", MARGIN + CONTENT_WIDTH - 2 * mm, 12 * mm),
    )
    page.rect(MARGIN, y - 5 * mm, CONTENT_WIDTH, 5 * mm, fill=PANEL, stroke=None)
    for title, x, _ in columns:
        page.text(x, y - 3.5 * mm, title, size=7, bold=True, align="right" if title == "Qty" else "left")
    y -= 9 * mm
    for index, row in enumerate(rows, start=1):
        values = (str(index), row["product_name"], row["customer_name"], str(row["quantity"]))
        for (title, x, width), value in zip(columns, values):
            page.text(x, y, value, size=7, width=width, align="right" if title == "Qty" else "left")
        page.line(MARGIN, y - 1.5 * mm, MARGIN + CONTENT_WIDTH, y - 1.5 * mm, color=PANEL, width=0.5)
        y -= 4.5 * mm
    if hidden:
        page.text(MARGIN + 2 * mm, y, f"+ {hidden} more products", size=7, color=MUTED)
        y -= 4.5 * mm
    return y


def _draw_signatures(page: SlipCanvas, order: ShipmentOrder) -> None:
    boxes = SIGNATURES.get(order.shipment_type, SIGNATURES[ShipmentType.TRUCK])
    width = (CONTENT_WIDTH - 2 * 4 * mm) / len(boxes)
    for index, (title, subtitle) in enumerate(boxes):
        page.signature_box(MARGIN + index * (width + 4 * mm), MARGIN, width, title, subtitle)


def render_shipment_slip(
    order: ShipmentOrder,
    customers: Sequence[Mapping[str, Any]],
    products: Sequence[Any],
    *,
    shipper: Mapping[str, str] | None = None,
    generated_at: datetime | None = None,
) -> bytes:
    page = SlipCanvas(f"{slip_title(order)} {order.shipment_id}")
    y = _draw_header(page, order, shipper or {}, generated_at or datetime.now())

    if order.is_multi:
        y = _draw_customer_table(page, customers, y)
    else:
        y = _draw_address_boxes(page, customers[0] if customers else {}, y)

    y = _draw_transport(page, order, y)
    _draw_products(page, products, order.is_multi, y)
    _draw_signatures(page, order)

    logger.info("Rendered %s for %s", slip_title(order).lower(), order.shipment_id)
    return page.render()
