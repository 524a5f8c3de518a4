"""Dispatch slip handed to the driver when a truck leaves."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping

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
    format_short_date,
    truncate_address,
)


logger = logging.getLogger(__name__)

MAX_CARTON_ROWS = 30
ROW_HEIGHT = 4.5 * mm


def flatten_cartons(cartons_by_stop: Mapping[Any, list[Mapping[str, Any]]]) -> list[Mapping[str, Any]]:
    """Cartons in stop order."""

    ordered: list[Mapping[str, Any]] = []
    for stop in sorted(cartons_by_stop, key=lambda key: int(key)):
        ordered.extend(cartons_by_stop[stop])
    return ordered


def _section(page: SlipCanvas, title: str, y: float, height: float) -> None:
    page.rect(MARGIN, y - height, CONTENT_WIDTH, height, stroke=RULE)
    page.text(MARGIN + 3 * mm, y - 5 * mm, title, size=8, bold=True, color=ACCENT)


def _info_row(page: SlipCanvas, y: float, pairs: list[tuple[str, Any]]) -> None:
    width = (CONTENT_WIDTH - 6 * mm) / len(pairs)
    for index, (label, value) in enumerate(pairs):
        page.label_value(MARGIN + 3 * mm + index * width, y, label, value, width=width - 3 * mm)


def render_dispatch_slip(data: Mapping[str, Any], *, generated_at: datetime | None = None) -> bytes:
    """Render the data from ``ShipmentService.get_dispatch_slip_data``."""

    now = generated_at or datetime.now()
    shipment = data.get("shipment") or {}
    driver = data.get("driver") or {}
    routes = data.get("routes") or []
    cartons = flatten_cartons(data.get("cartons_by_stop") or {})
    total_quantity = sum(int(carton.get("quantity") or 0) for carton in cartons)

    page = SlipCanvas(f"Dispatch Slip {shipment.get('id') or ''}".strip())
    top = PAGE_HEIGHT - MARGIN

    page.text(MARGIN, top - 8 * mm, "DISPATCH SLIP", size=16, bold=True, color=ACCENT)
    page.text(MARGIN, top - 13 * mm, "Warehouse Management System", size=8, color=MUTED)
    page.text(MARGIN + CONTENT_WIDTH, top - 8 * mm, f"Date: {format_short_date(now)}", size=9, bold=True, align="right")
    page.text(MARGIN + CONTENT_WIDTH, top - 13 * mm, f"Time: {now.strftime('%H:%M')}", size=8, color=MUTED, align="right")
    y = top - 17 * mm
    page.line(MARGIN, y, MARGIN + CONTENT_WIDTH, y, color=ACCENT, width=1.5)

    y -= 4 * mm
    _section(page, "SHIPMENT DETAILS", y, 18 * mm)
    _info_row(
        page,
        y - 10 * mm,
        [
            ("Shipment ID", shipment.get("id")),
            ("Truck No.", shipment.get("truck_number")),
            ("Total Stops", len(routes)),
            ("Total Cartons", shipment.get("total_cartons", len(cartons))),
        ],
    )

    y -= 22 * mm
    _section(page, "DRIVER DETAILS", y, 18 * mm)
    _info_row(
        page,
        y - 10 * mm,
        [
            ("Driver Name", driver.get("driver_name")),
            ("Phone", driver.get("phone_number")),
            ("License ID", driver.get("license_id")),
            ("Vehicle", driver.get("vehicle_registration")),
        ],
    )

    y -= 22 * mm
    address_height = (12 + 9 * max(len(routes), 1)) * mm
    _section(page, "DELIVERY & BILLING INFORMATION", y, address_height)
    half = (CONTENT_WIDTH - 9 * mm) / 2
    bill_x = MARGIN + 3 * mm
    ship_x = bill_x + half + 3 * mm
    page.text(bill_x, y - 10 * mm, "BILL TO", size=7, bold=True, color=MUTED)
    page.text(ship_x, y - 10 * mm, "SHIP TO", size=7, bold=True, color=MUTED)
    first = routes[0] if routes else {}
    page.text(bill_x, y - 14 * mm, first.get("customer_name") or "N/A", size=8, bold=True, width=half)
    page.text(bill_x, y - 18 * mm, truncate_address(first.get("bill_to_address"), 60), size=7, width=half)
    stop_y = y - 14 * mm
    for stop, route in enumerate(routes, start=1):
        page.text(ship_x, stop_y, f"Stop {stop}: {route.get('customer_name') or 'N/A'}", size=8, bold=True, width=half)
        page.text(ship_x, stop_y - 4 * mm, truncate_address(route.get("ship_to_address"), 60), size=7, width=half)
        stop_y -= 9 * mm

    y -= address_height + 4 * mm
    page.text(MARGIN, y, "CARTON DETAILS", size=9, bold=True, color=ACCENT)
    y -= 3 * mm
    page.rect(MARGIN, y - 5 * mm, CONTENT_WIDTH, 5 * mm, fill=PANEL, stroke=None)
    page.text(MARGIN + 2 * mm, y - 3.5 * mm, "Carton ID", size=7, bold=True)
    page.text(MARGIN + 55 * mm, y - 3.5 * mm, "Product", size=7, bold=True)
    page.text(MARGIN + CONTENT_WIDTH - 2 * mm, y - 3.5 * mm, "Qty", size=7, bold=True, align="right")
    y -= 9 * mm
    for carton in cartons[:MAX_CARTON_ROWS]:
        product = carton.get("products") or {}
        page.text(MARGIN + 2 * mm, y, carton.get("carton_barcode") or "N/A", size=7, width=50 * mm)
        page.text(MARGIN + 55 * mm, y, product.get("product_name") or "Unknown", size=7, width=CONTENT_WIDTH - 75 * mm)
        page.text(MARGIN + CONTENT_WIDTH - 2 * mm, y, str(carton.get("quantity") or 0), size=7, align="right")
        page.line(MARGIN, y - 1.5 * mm, MARGIN + CONTENT_WIDTH, y - 1.5 * mm, color=PANEL, width=0.5)
        y -= ROW_HEIGHT
    if len(cartons) > MAX_CARTON_ROWS:
        page.text(MARGIN + 2 * mm, y, f"+ {len(cartons) - MAX_CARTON_ROWS} more cartons", size=7, color=MUTED)
        y -= ROW_HEIGHT

    page.rect(MARGIN, y - 6 * mm, CONTENT_WIDTH, 7 * mm, fill=PANEL, stroke=None)
    page.text(MARGIN + 3 * mm, y - 3.5 * mm, f"TOTAL CARTONS: {len(cartons)}", size=8, bold=True)
    page.text(MARGIN + CONTENT_WIDTH - 3 * mm, y - 3.5 * mm, f"TOTAL QTY: {total_quantity}", size=8, bold=True, align="right")

    footer_top = MARGIN + 30 * mm
    page.text(MARGIN, footer_top, "AUTHORIZATION & ACKNOWLEDGMENT", size=8, bold=True, color=ACCENT)
    width = (CONTENT_WIDTH - 8 * mm) / 3
    for index, title in enumerate(("Dispatched By", "Driver Signature", "Customer Signature")):
        page.signature_box(MARGIN + index * (width + 4 * mm), MARGIN + 6 * mm, width, title, "Name & Signature")
    page.text(
        MARGIN,
        MARGIN,
        "All parties acknowledge receipt and verification of shipment details and carton contents.",
        size=6,
        color=MUTED,
    )

    logger.info("Rendered dispatch slip for %s (%s cartons)", shipment.get("id"), len(cartons))
    return page.render()
