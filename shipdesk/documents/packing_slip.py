"""Packing slips: two boxes per A4 page, separated by a cut line."""

from __future__ import annotations

import json
import logging
from typing import Any, Sequence

from reportlab.lib.units import mm

from shipdesk.documents.common import (
    ACCENT,
    CONTENT_WIDTH,
    HIGHLIGHT,
    MARGIN,
    MUTED,
    PAGE_HEIGHT,
    PANEL,
    RULE,
    WHITE,
    SlipCanvas,
    format_box_type,
    format_slip_date,
)
from shipdesk.services.shipment_service import PackingSlip


logger = logging.getLogger(__name__)

MAX_ITEM_ROWS = 10
CUT_BAND = 10 * mm
SLIP_HEIGHT = (PAGE_HEIGHT - 2 * MARGIN - CUT_BAND) / 2
QR_SIZE = 30 * mm


def total_quantity(slip: PackingSlip) -> int:
    return sum(item.quantity for item in slip.items)


def packing_slip_qr_payload(slip: PackingSlip) -> dict[str, Any]:
    """Contents of the QR code printed on a box."""

    return {
        "order": slip.order_number,
        "carton_no": slip.carton_barcode,
        "box": f"{slip.box_number}/{slip.total_boxes}",
        "total_items": total_quantity(slip),
        "items": [{"product": item.product_name, "qty": item.quantity} for item in slip.items],
        "weight": f"{slip.box_weight:.1f} kg",
        "packed_by": slip.packed_by,
        "date": format_slip_date(slip.packed_date),
    }


def _draw_slip(page: SlipCanvas, slip: PackingSlip, top: float) -> None:
    left = MARGIN
    width = CONTENT_WIDTH
    bottom = top - SLIP_HEIGHT
    page.rect(left, bottom, width, SLIP_HEIGHT, stroke=ACCENT, stroke_width=2, radius=6)

    inner = left + 5 * mm
    y = top - 9 * mm
    total = total_quantity(slip)

    page.text(inner, y, "PACKAGING SLIP", size=13, bold=True, color=ACCENT)
    page.text(inner, y - 5 * mm, f"Order: {slip.order_number}", size=9, bold=True)
    badge_y = y - 11 * mm
    page.rect(inner, badge_y - 1.5 * mm, 22 * mm, 5 * mm, fill=ACCENT, stroke=None, radius=2)
    page.text(inner + 11 * mm, badge_y, f"BOX {slip.box_number}/{slip.total_boxes}", size=8, bold=True, color=WHITE, align="center")
    page.rect(inner + 24 * mm, badge_y - 1.5 * mm, 20 * mm, 5 * mm, fill=HIGHLIGHT, stroke=None, radius=2)
    page.text(inner + 34 * mm, badge_y, f"{total} Items", size=8, bold=True, color=WHITE, align="center")

    payload = json.dumps(packing_slip_qr_payload(slip), separators=(",", ":"))
    page.qr(payload, left + width - QR_SIZE - 5 * mm, top - QR_SIZE - 5 * mm, QR_SIZE)

    # ship-to panel and box details
    panel_top = top - QR_SIZE - 9 * mm
    panel_height = 26 * mm
    ship_width = width * 0.6 - 7 * mm
    page.rect(inner, panel_top - panel_height, ship_width, panel_height, fill=PANEL, stroke=RULE)
    page.text(inner + 3 * mm, panel_top - 5 * mm, "SHIP TO", size=8, bold=True, color=ACCENT)
    page.text(inner + 3 * mm, panel_top - 10 * mm, slip.customer_name or "N/A", size=9, bold=True, width=ship_width - 6 * mm)
    page.text(inner + 3 * mm, panel_top - 14 * mm, f"Email: {slip.customer_email or 'N/A'}", size=7, width=ship_width - 6 * mm)
    page.text(inner + 3 * mm, panel_top - 18 * mm, f"Phone: {slip.customer_phone or 'N/A'}", size=7, width=ship_width - 6 * mm)
    page.text(inner + 3 * mm, panel_top - 22 * mm, slip.shipping_address or "N/A", size=7, width=ship_width - 6 * mm)

    box_left = inner + ship_width + 4 * mm
    box_width = left + width - 5 * mm - box_left
    page.rect(box_left, panel_top - panel_height, box_width, panel_height, stroke=RULE)
    page.text(box_left + 3 * mm, panel_top - 5 * mm, "BOX DETAILS", size=8, bold=True, color=ACCENT)
    details = (
        ("Type", format_box_type(slip.box_type)),
        ("Weight", f"{slip.box_weight:.1f} kg"),
        ("Products", str(len(slip.items))),
        ("Total Qty", str(total)),
    )
    for index, (label, value) in enumerate(details):
        row_y = panel_top - (10 + 4 * index) * mm
        page.text(box_left + 3 * mm, row_y, f"{label}:", size=7, bold=True)
        page.text(box_left + box_width - 3 * mm, row_y, value, size=7, bold=True, align="right")

    # items table
    table_top = panel_top - panel_height - 5 * mm
    sku_x = inner + width * 0.55
    qty_x = left + width - 8 * mm
    page.rect(inner, table_top - 5 * mm, width - 10 * mm, 5 * mm, fill=PANEL, stroke=None)
    page.text(inner + 2 * mm, table_top - 3.5 * mm, "PRODUCT", size=7, bold=True)
    page.text(sku_x, table_top - 3.5 * mm, "SKU", size=7, bold=True)
    page.text(qty_x, table_top - 3.5 * mm, "QTY", size=7, bold=True, align="right")

    row_y = table_top - 9 * mm
    for item in slip.items[:MAX_ITEM_ROWS]:
        page.text(inner + 2 * mm, row_y, item.product_name, size=7, width=sku_x - inner - 4 * mm)
        page.text(sku_x, row_y, item.sku, size=7, width=qty_x - sku_x - 10 * mm)
        page.text(qty_x, row_y, str(item.quantity), size=7, bold=True, align="right")
        page.line(inner, row_y - 1.5 * mm, left + width - 5 * mm, row_y - 1.5 * mm, color=PANEL, width=0.5)
        row_y -= 4.5 * mm
    if len(slip.items) > MAX_ITEM_ROWS:
        page.text(inner + 2 * mm, row_y, f"+{len(slip.items) - MAX_ITEM_ROWS} more items", size=7, color=MUTED)

    footer_y = bottom + 5 * mm
    page.line(inner, footer_y + 5 * mm, left + width - 5 * mm, footer_y + 5 * mm)
    page.text(inner, footer_y, f"Packed By: {slip.packed_by}", size=7, bold=True)
    page.text(inner + 55 * mm, footer_y, f"Date: {format_slip_date(slip.packed_date)}", size=7)
    page.text(left + width - 5 * mm, footer_y, f"Slip ID: {slip.slip_id}", size=6, color=MUTED, align="right")


def _draw_empty_half(page: SlipCanvas, top: float) -> None:
    page.rect(MARGIN, top - SLIP_HEIGHT, CONTENT_WIDTH, SLIP_HEIGHT, stroke=RULE, dash=(4, 3), radius=6)
    page.text(MARGIN + CONTENT_WIDTH / 2, top - SLIP_HEIGHT / 2, "No additional box", size=11, color=RULE, align="center")


def _draw_cut_line(page: SlipCanvas, y: float) -> None:
    page.line(MARGIN, y, MARGIN + CONTENT_WIDTH, y, color=RULE, dash=(3, 2))
    page.text(MARGIN + CONTENT_WIDTH / 2, y + 1.5 * mm, "CUT HERE", size=7, bold=True, color=MUTED, align="center")


def render_packing_slips(slips: Sequence[PackingSlip]) -> bytes:
    """Render ``slips`` two to a page; an odd last slip leaves a blank half."""

    order_number = slips[0].order_number if slips else ""
    page = SlipCanvas(f"Packing Slips {order_number}".strip())
    upper_top = PAGE_HEIGHT - MARGIN
    lower_top = upper_top - SLIP_HEIGHT - CUT_BAND

    for start in range(0, len(slips), 2):
        if start:
            page.new_page()
        _draw_slip(page, slips[start], upper_top)
        _draw_cut_line(page, upper_top - SLIP_HEIGHT - CUT_BAND / 2)
        if start + 1 < len(slips):
            _draw_slip(page, slips[start + 1], lower_top)
        else:
            _draw_empty_half(page, lower_top)

    if not slips:
        page.text(MARGIN, PAGE_HEIGHT - MARGIN - 10 * mm, "No cartons found for this session", size=11, color=MUTED)

    logger.info("Rendered %s packing slips for order %s", len(slips), order_number or "-")
    return page.render()
