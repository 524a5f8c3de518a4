"""Drawing primitives and formatting shared by the slip generators."""

from __future__ import annotations

import io
from datetime import datetime
from typing import Any, Iterable, Mapping

from reportlab.graphics import renderPDF
from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas


PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 12 * mm
CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

INK = HexColor("#1F2937")
MUTED = HexColor("#6B7280")
RULE = HexColor("#9CA3AF")
PANEL = HexColor("#F3F4F6")
ACCENT = HexColor("#4C1D95")
HIGHLIGHT = HexColor("#EA580C")
WHITE = HexColor("#FFFFFF")

MAX_ADDRESS_LENGTH = 40

_BOX_TYPES = {
    "small": "Small",
    "medium": "Medium",
    "large": "Large",
    "extra_large": "XL",
}


def truncate_address(address: str | None, limit: int = MAX_ADDRESS_LENGTH) -> str:
    text = (address or "").strip() or "N/A"
    if len(text) > limit:
        return f"{text[: limit - 3]}..."
    return text


def format_box_type(box_type: str | None) -> str:
    key = (box_type or "").strip().lower()
    return _BOX_TYPES.get(key, key.replace("_", " ").title() or "Medium")


def format_slip_date(value: datetime) -> str:
    """``7 Mar 2025``"""

    return f"{value.day} {value.strftime('%b')} {value.year}"


def format_short_date(value: datetime) -> str:
    return value.strftime("%d/%m/%Y")


def _item_field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def aggregate_products(items: Iterable[Any]) -> list[dict[str, Any]]:
    """Merge duplicate product lines, summing quantities.

    Lines are keyed by ``(sku, product_name, customer_name)`` and keep the
    order in which each key was first seen.
    """

    merged: dict[tuple[str, str, str], dict[str, Any]] = {}
    for item in items:
        product_name = _item_field(item, "product_name") or "Unknown Product"
        sku = _item_field(item, "sku") or "N/A"
        customer_name = _item_field(item, "customer_name") or "N/A"
        quantity = int(_item_field(item, "quantity") or 0)
        key = (sku, product_name, customer_name)
        if key in merged:
            merged[key]["quantity"] += quantity
        else:
            merged[key] = {
                "product_name": product_name,
                "sku": sku,
                "customer_name": customer_name,
                "quantity": quantity,
            }
    return list(merged.values())


def fit_text(text: Any, width: float, *, font: str = FONT, size: float = 8) -> str:
    """Clip ``text`` with an ellipsis so it fits in ``width`` points."""

    value = "" if text is None else str(text)
    if stringWidth(value, font, size) <= width:
        return value
    while value and stringWidth(f"{value}...", font, size) > width:
        value = value[:-1]
    return f"{value}..."


class SlipCanvas:
    """Thin wrapper over a reportlab canvas that renders to bytes."""

    def __init__(self, title: str) -> None:
        self._buffer = io.BytesIO()
        self.c = canvas.Canvas(self._buffer, pagesize=A4)
        self.c.setTitle(title)
        self.c.setAuthor("Shipdesk")

    def text(
        self,
        x: float,
        y: float,
        value: Any,
        *,
        size: float = 8,
        bold: bool = False,
        color=INK,
        width: float | None = None,
        align: str = "left",
    ) -> None:
        font = FONT_BOLD if bold else FONT
        content = fit_text(value, width, font=font, size=size) if width else str(value)
        self.c.saveState()
        self.c.setFont(font, size)
        self.c.setFillColor(color)
        if align == "right":
            self.c.drawRightString(x, y, content)
        elif align == "center":
            self.c.drawCentredString(x, y, content)
        else:
            self.c.drawString(x, y, content)
        self.c.restoreState()

    def rect(
        self,
        x: float,
        y: float,
        w: float,
        h: float,
        *,
        fill=None,
        stroke=RULE,
        stroke_width: float = 0.75,
        radius: float = 0,
        dash: tuple[float, float] | None = None,
    ) -> None:
        self.c.saveState()
        if fill is not None:
            self.c.setFillColor(fill)
        if stroke is not None:
            self.c.setStrokeColor(stroke)
            self.c.setLineWidth(stroke_width)
        if dash:
            self.c.setDash(*dash)
        if radius:
            self.c.roundRect(
                x, y, w, h, radius, fill=1 if fill is not None else 0, stroke=1 if stroke is not None else 0
            )
        else:
            self.c.rect(x, y, w, h, fill=1 if fill is not None else 0, stroke=1 if stroke is not None else 0)
        self.c.restoreState()

    def line(
        self,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        *,
        color=RULE,
        width: float = 0.75,
        dash: tuple[float, float] | None = None,
    ) -> None:
        self.c.saveState()
        self.c.setStrokeColor(color)
        self.c.setLineWidth(width)
        if dash:
            self.c.setDash(*dash)
        self.c.line(x1, y1, x2, y2)
        self.c.restoreState()

    def qr(self, value: str, x: float, y: float, size: float) -> None:
        """Draw a square QR code with its lower-left corner at ``(x, y)``."""

        widget = QrCodeWidget(value)
        x1, y1, x2, y2 = widget.getBounds()
        drawing = Drawing(
            size,
            size,
            transform=[size / (x2 - x1), 0, 0, size / (y2 - y1), 0, 0],
        )
        drawing.add(widget)
        renderPDF.draw(drawing, self.c, x, y)

    def label_value(
        self, x: float, y: float, label: str, value: Any, *, width: float, size: float = 8
    ) -> None:
        self.text(x, y, f"{label}:", size=size - 1, color=MUTED)
        self.text(x, y - size - 2, value if value not in (None, "") else "N/A", size=size, bold=True, width=width)

    def signature_box(self, x: float, y: float, w: float, title: str, subtitle: str) -> None:
        self.rect(x, y, w, 18 * mm, stroke=RULE)
        self.text(x + 3 * mm, y + 18 * mm - 5 * mm, title, size=8, bold=True)
        self.line(x + 3 * mm, y + 6 * mm, x + w - 3 * mm, y + 6 * mm, color=MUTED, width=0.5)
        self.text(x + 3 * mm, y + 2.5 * mm, f"{subtitle} / Date: _____", size=6, color=MUTED)

    def new_page(self) -> None:
        self.c.showPage()

    def render(self) -> bytes:
        self.c.save()
        return self._buffer.getvalue()
