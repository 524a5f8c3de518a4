"""Field validators for shipment configuration and inventory forms.

Each ``validate_*`` function returns ``None`` when the value is acceptable,
otherwise the message to show next to the field.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from shipdesk.errors import ValidationError
from shipdesk.models import (
    DEFAULT_CATEGORY,
    DEFAULT_LOCATION,
    InventoryItem,
    LoadingStrategy,
    ShipmentType,
)


TRUCK_NUMBER_PATTERN = re.compile(r"^[A-Z]{2}\d{2}[A-Z]{1,2}\d{4}$")
COURIER_SERVICES = ("Blue Dart", "Delhivery", "FedEx", "DHL", "DTDC")
MAX_FIELD_LENGTH = 255


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_truck_number(value: str | None) -> str:
    return _clean(value).replace(" ", "").upper()


def validate_truck_number(value: str | None) -> str | None:
    if not _clean(value):
        return "Truck number is required"
    if not TRUCK_NUMBER_PATTERN.match(normalize_truck_number(value)):
        return "Invalid format. Expected: MH12AB1234"
    return None


def validate_phone_number(value: str | None) -> str | None:
    if not _clean(value):
        return "Phone number is required"
    digits = re.sub(r"\D", "", str(value))
    if len(digits) != 10:
        return "Phone number must be 10 digits"
    if digits[0] not in "6789":
        return "Invalid phone number"
    return None


def validate_driver_name(value: str | None) -> str | None:
    name = _clean(value)
    if not name:
        return "Driver name is required"
    if len(name) < 3:
        return "Name must be at least 3 characters"
    return None


def validate_awb_number(value: str | None) -> str | None:
    awb = _clean(value)
    if not awb:
        return "AWB number is required"
    if len(awb) < 8:
        return "Invalid AWB number"
    return None


def validate_destination(value: str | None) -> str | None:
    destination = _clean(value)
    if not destination:
        return "Destination is required"
    if len(destination) < 10:
        return "Please enter complete destination address"
    return None


def validate_contact_person(value: str | None) -> str | None:
    name = _clean(value)
    if not name:
        return "Contact person name is required"
    if len(name) < 3:
        return "Name must be at least 3 characters"
    return None


def validate_id_proof(value: str | None) -> str | None:
    id_proof = _clean(value)
    if not id_proof:
        return "ID proof number is required"
    if len(id_proof) < 6:
        return "Invalid ID proof number"
    return None


def _detail_errors(shipment_type: str, details: Mapping[str, Any]) -> dict[str, str]:
    checks: dict[str, str | None] = {}
    if shipment_type == ShipmentType.TRUCK:
        checks = {
            "truckNumber": validate_truck_number(details.get("truckNumber")),
            "driverName": validate_driver_name(details.get("driverName")),
            "driverPhone": validate_phone_number(details.get("driverPhone")),
        }
    elif shipment_type == ShipmentType.COURIER:
        courier = _clean(details.get("courierName"))
        checks = {
            "courierName": None if courier else "Courier service is required",
            "awbNumber": validate_awb_number(details.get("awbNumber")),
        }
    elif shipment_type == ShipmentType.IN_PERSON:
        checks = {
            "contactPerson": validate_contact_person(details.get("contactPerson")),
            "phoneNumber": validate_phone_number(details.get("phoneNumber")),
            "idProof": validate_id_proof(details.get("idProof")),
        }
    return {field: message for field, message in checks.items() if message}


def configuration_errors(
    shipment_type: str | None,
    details: Mapping[str, Any] | None,
    destination: str | None,
) -> dict[str, str]:
    """Collect every field error for a configuration submission."""

    errors: dict[str, str] = {}
    parsed_type = ShipmentType.parse(shipment_type)
    if parsed_type is None:
        errors["shipment_type"] = "Select a shipment type"
    message = validate_destination(destination)
    if message:
        errors["destination"] = message
    if parsed_type is not None:
        errors.update(_detail_errors(parsed_type, details or {}))
    return errors


def normalize_details(shipment_type: str, details: Mapping[str, Any]) -> dict[str, Any]:
    """Return the detail payload stored for ``shipment_type``."""

    if shipment_type == ShipmentType.TRUCK:
        payload = {
            "truckNumber": normalize_truck_number(details.get("truckNumber")),
            "driverName": _clean(details.get("driverName")),
            "driverPhone": _clean(details.get("driverPhone")),
        }
        for optional in ("transporterName", "licenseId"):
            if _clean(details.get(optional)):
                payload[optional] = _clean(details.get(optional))
        return payload
    if shipment_type == ShipmentType.COURIER:
        payload = {
            "courierName": _clean(details.get("courierName")),
            "awbNumber": _clean(details.get("awbNumber")),
        }
        if _clean(details.get("expectedPickup")):
            payload["expectedPickup"] = _clean(details.get("expectedPickup"))
        return payload
    return {
        "contactPerson": _clean(details.get("contactPerson")),
        "phoneNumber": _clean(details.get("phoneNumber")),
        "idProof": _clean(details.get("idProof")),
    }


def validate_configuration(
    shipment_type: str | None,
    details: Mapping[str, Any] | None,
    destination: str | None,
    loading_strategy: str | None = None,
) -> tuple[str, dict[str, Any], str | None]:
    """Validate a configuration form and return the normalized values.

    Returns ``(shipment_type, details, loading_strategy)``. The loading
    strategy only applies to truck shipments and defaults to NON-LIFO.
    """

    errors = configuration_errors(shipment_type, details, destination)
    if errors:
        raise ValidationError(errors)

    parsed_type = ShipmentType.parse(shipment_type)
    strategy = None
    if parsed_type == ShipmentType.TRUCK:
        strategy = LoadingStrategy.parse(loading_strategy) or LoadingStrategy.NON_LIFO
    return parsed_type, normalize_details(parsed_type, details or {}), strategy


def _required_text(
    form: Mapping[str, Any], field: str, label: str, errors: dict[str, str]
) -> str:
    value = _clean(form.get(field))
    if not value:
        errors[field] = f"{label} is required"
    elif len(value) > MAX_FIELD_LENGTH:
        errors[field] = f"{label} must be {MAX_FIELD_LENGTH} characters or fewer"
    return value


def _non_negative_int(
    form: Mapping[str, Any], field: str, message: str, errors: dict[str, str]
) -> int:
    raw = _clean(form.get(field))
    try:
        value = int(raw)
    except ValueError:
        errors[field] = message
        return 0
    if value < 0:
        errors[field] = message
    return value


def parse_quantity(value: Any) -> int:
    """Parse a quantity edit, rejecting blanks and negative numbers."""

    errors: dict[str, str] = {}
    quantity = _non_negative_int(
        {"quantity": value}, "quantity", "Please enter a valid quantity (0 or greater)", errors
    )
    if errors:
        raise ValidationError(errors)
    return quantity


def validate_inventory_form(form: Mapping[str, Any]) -> InventoryItem:
    """Build an :class:`InventoryItem` from submitted form fields.

    Raises :class:`ValidationError` listing every invalid field.
    """

    errors: dict[str, str] = {}
    name = _required_text(form, "name", "Item name", errors)
    sku = _required_text(form, "sku", "SKU", errors)
    barcode = _required_text(form, "barcode", "Barcode", errors)
    quantity = _non_negative_int(form, "quantity", "Please enter a valid quantity", errors)
    min_stock = _non_negative_int(
        form, "min_stock", "Please enter a valid minimum stock", errors
    )

    unit_price = Decimal("0")
    try:
        unit_price = Decimal(_clean(form.get("unit_price")))
        if unit_price < 0 or not unit_price.is_finite():
            errors["unit_price"] = "Please enter a valid unit price"
    except InvalidOperation:
        errors["unit_price"] = "Please enter a valid unit price"

    description = _clean(form.get("description"))
    if len(description) > MAX_FIELD_LENGTH:
        errors["description"] = (
            f"Description must be {MAX_FIELD_LENGTH} characters or fewer"
        )

    if errors:
        raise ValidationError(errors)

    return InventoryItem(
        id=None,
        name=name,
        sku=sku,
        barcode=barcode,
        description=description,
        category=_clean(form.get("category")) or DEFAULT_CATEGORY,
        quantity=quantity,
        min_stock=min_stock,
        unit_price=unit_price,
        location=_clean(form.get("location")) or DEFAULT_LOCATION,
    )
