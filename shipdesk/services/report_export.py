"""Layout of the inventory CSV report."""

from __future__ import annotations

import re
from typing import Any

from shipdesk.models import InventoryItem
from shipdesk.services.warehouse_service import InventoryReport
from shipdesk.utils import currency
from shipdesk.utils.csv_export import Column, rows_to_csv


REPORT_TITLE = "COMPREHENSIVE INVENTORY REPORT"

INVENTORY_COLUMNS: list[Column] = [
    ("warehouse", "Warehouse"),
    ("name", "Item Name"),
    ("sku", "SKU"),
    ("barcode", "Barcode"),
    ("description", "Description"),
    ("category", "Category"),
    ("quantity", "Current Quantity"),
    ("min_stock", "Minimum Stock"),
    ("unit_price", "Unit Price"),
    ("total_value", "Total Value"),
    ("stock_status", "Stock Status"),
    ("location", "Location"),
    ("updated_at", "Last Updated"),
]


def report_preamble(report: InventoryReport) -> list[list[Any]]:
    """Summary block and category breakdown written above the item table."""

    lines: list[list[Any]] = [
        [REPORT_TITLE],
        ["Warehouse:", report.warehouse_name],
        ["Generated on:", report.generated_at.strftime("%Y-%m-%d %H:%M:%S")],
        ["Generated by:", report.generated_by],
        ["Total Items:", report.total_items],
        ["Low Stock Items:", report.low_stock_items],
        ["Out of Stock Items:", report.out_of_stock_items],
        ["Total Inventory Value:", currency.display(report.total_value)],
        [],
        ["CATEGORY BREAKDOWN:"],
    ]
    for category, count in report.category_breakdown.items():
        lines.append([category, count])
    lines.append([])
    return lines


def report_row(item: InventoryItem, warehouse_name: str) -> dict[str, Any]:
    return {
        "warehouse": warehouse_name,
        "name": item.name,
        "sku": item.sku,
        "barcode": item.barcode,
        "description": item.description,
        "category": item.category,
        "quantity": item.quantity,
        "min_stock": item.min_stock,
        "unit_price": currency.export_format(item.unit_price),
        "total_value": currency.export_format(item.total_value),
        "stock_status": item.stock_status_label,
        "location": item.location,
        "updated_at": item.updated_at,
    }


def report_rows(report: InventoryReport) -> list[dict[str, Any]]:
    return [report_row(item, report.warehouse_name) for item in report.items]


def report_filename(report: InventoryReport) -> str:
    warehouse = re.sub(r"\s+", "_", report.warehouse_name.strip()).lower() or "warehouse"
    timestamp = report.generated_at.strftime("%Y-%m-%d_%H-%M-%S")
    return f"{warehouse}_inventory_report_{timestamp}.csv"


def render_inventory_csv(report: InventoryReport) -> str:
    return rows_to_csv(report_rows(report), INVENTORY_COLUMNS, preamble=report_preamble(report))
