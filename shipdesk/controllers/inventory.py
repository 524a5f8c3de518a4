"""Inventory screen: list, search, category filter and item edits."""

from __future__ import annotations

import logging
import threading
from decimal import Decimal
from typing import Any, Mapping

from apscheduler.schedulers.background import BackgroundScheduler

from shipdesk.controllers.common import (
    Debouncer,
    RecoveryChoice,
    ScreenController,
)
from shipdesk.errors import ShipdeskError, ValidationError
from shipdesk.models import InventoryItem, Warehouse
from shipdesk.services.warehouse_service import InventoryReport, WarehouseService
from shipdesk.utils import currency
from shipdesk.validation import parse_quantity, validate_inventory_form


logger = logging.getLogger(__name__)

ALL_CATEGORIES = "All"


class InventoryController(ScreenController):
    source = "inventory"

    def __init__(
        self,
        warehouses: WarehouseService,
        *,
        user_name: str,
        debounce_seconds: float = 0.5,
        max_consecutive_errors: int = 3,
        scheduler: BackgroundScheduler | None = None,
    ) -> None:
        super().__init__(max_consecutive_errors=max_consecutive_errors)
        self.warehouses = warehouses
        self.user_name = user_name
        self.items: list[InventoryItem] = []
        self.filtered_items: list[InventoryItem] = []
        self.search_term = ""
        self.category = ALL_CATEGORIES
        self.filter_passes = 0
        self.loaded = False
        self._filter_lock = threading.Lock()
        self._search = Debouncer(
            debounce_seconds,
            self._apply_search,
            scheduler=scheduler,
            job_id="inventory-search",
        )

    # -- loading --------------------------------------------------------

    def select_warehouse(self, warehouse_id: str) -> Warehouse | None:
        try:
            warehouse = self.warehouses.set_current_warehouse(warehouse_id)
        except ShipdeskError as exc:
            self.handle_failure("Failed to switch warehouse", exc)
            return None
        self.notify_info(f"Switching to {warehouse.name}...")
        self.load_inventory()
        return warehouse

    def load_inventory(self) -> bool:
        self.is_loading = True
        try:
            items = self.warehouses.fetch_inventory()
        except ShipdeskError as exc:
            self.handle_failure("Failed to load inventory", exc)
            return False

        self.items = items
        self.loaded = True
        self.is_loading = False
        self.errors.record_success()
        self.apply_filters()
        logger.info(
            "Loaded %s inventory items for %s",
            len(items),
            self.warehouses.current_warehouse_name,
        )
        return True

    def ensure_loaded(self) -> None:
        if not self.loaded and not self.errors.prompt_open:
            self.load_inventory()

    # -- filtering ------------------------------------------------------

    def categories(self) -> list[str]:
        found = sorted({item.category for item in self.items if item.category})
        return [ALL_CATEGORIES, *found]

    def search(self, term: str) -> None:
        """Queue a filter pass for ``term`` after the debounce window."""

        self._search.submit((term or "").strip())

    def flush_search(self) -> bool:
        return self._search.flush()

    def _apply_search(self, term: str) -> None:
        self.search_term = term
        self.apply_filters()

    def set_category(self, category: str | None) -> None:
        self.category = category or ALL_CATEGORIES
        self.apply_filters()

    def apply_filters(self) -> list[InventoryItem]:
        with self._filter_lock:
            self.filter_passes += 1
            term = self.search_term.lower()
            category = self.category
            self.filtered_items = [
                item
                for item in self.items
                if item.matches(term)
                and (category == ALL_CATEGORIES or item.category == category)
            ]
            return list(self.filtered_items)

    # -- mutations ------------------------------------------------------

    def _reject(self, exc: ValidationError) -> None:
        self.notify_invalid("Invalid input", exc)
        raise exc

    def add_item(self, form: Mapping[str, Any], *, user_name: str | None = None) -> InventoryItem | None:
        try:
            item = validate_inventory_form(form)
        except ValidationError as exc:
            self._reject(exc)

        with self.guard.hold("Add item"):
            try:
                created = self.warehouses.insert_inventory(
                    item, created_by=user_name or self.user_name
                )
            except ShipdeskError as exc:
                self.handle_failure("Failed to add item", exc)
                return None

        self.notify_success(
            f"Item added successfully to {self.warehouses.current_warehouse_name}!"
        )
        self.load_inventory()
        return created

    def update_item(
        self, item_id: str, form: Mapping[str, Any], *, user_name: str | None = None
    ) -> InventoryItem | None:
        try:
            item = validate_inventory_form(form)
        except ValidationError as exc:
            self._reject(exc)

        with self.guard.hold("Update item"):
            try:
                updated = self.warehouses.update_inventory(
                    item_id, item.to_row(), updated_by=user_name or self.user_name
                )
            except ShipdeskError as exc:
                self.handle_failure("Failed to update item", exc)
                return None

        self.notify_success("Item updated successfully")
        self.load_inventory()
        return updated

    def update_quantity(
        self, item_id: str, quantity: Any, *, user_name: str | None = None
    ) -> InventoryItem | None:
        try:
            new_quantity = parse_quantity(quantity)
        except ValidationError as exc:
            self._reject(exc)

        with self.guard.hold("Update quantity"):
            try:
                updated = self.warehouses.update_inventory(
                    item_id, {"quantity": new_quantity}, updated_by=user_name or self.user_name
                )
            except ShipdeskError as exc:
                self.handle_failure("Failed to update quantity", exc)
                return None

        self.notify_success("Quantity updated successfully")
        self.load_inventory()
        return updated

    def delete_item(self, item_id: str, *, user_name: str | None = None) -> bool:
        with self.guard.hold("Delete item"):
            try:
                self.warehouses.delete_inventory(item_id, deleted_by=user_name or self.user_name)
            except ShipdeskError as exc:
                self.handle_failure("Failed to delete item", exc)
                return False

        self.notify_success("Item deleted successfully")
        self.load_inventory()
        return True

    def export_report(self, *, user_name: str | None = None) -> InventoryReport | None:
        with self.guard.hold("Export report"):
            try:
                report = self.warehouses.generate_inventory_report(
                    generated_by=user_name or self.user_name
                )
            except ShipdeskError as exc:
                self.handle_failure("Failed to export inventory", exc)
                return None

        self.errors.record_success()
        self.notify_success(f"Inventory report ready ({report.total_items} items)")
        return report

    # -- recovery -------------------------------------------------------

    def resolve_recovery(self, choice: str) -> bool:
        if choice not in RecoveryChoice.ALL_CHOICES:
            raise ValidationError({"action": "Choose reset or restart"})

        self.errors.resolve()
        self.guard.reset()
        self.is_loading = False
        self._search.cancel()
        if choice == RecoveryChoice.RESTART:
            return self.load_inventory()
        self.notify_info("Screen reset")
        return True

    def state(self) -> dict[str, Any]:
        data = self.screen_state()
        data.update(
            {
                "warehouse": {
                    "id": self.warehouses.current_warehouse_id,
                    "name": self.warehouses.current_warehouse_name,
                },
                "search": self.search_term,
                "search_pending": self._search.pending,
                "category": self.category,
                "categories": self.categories(),
                "total_items": len(self.items),
                "total_value": currency.format_amount(
                    sum((item.total_value for item in self.items), Decimal("0")), compact=True
                ),
                "items": [item.as_dict() for item in self.filtered_items],
                "notices": self.notices(),
            }
        )
        return data
