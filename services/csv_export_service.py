"""
CSV export service for fulfilled orders.

Generates the CSV handed to customers once an order is fulfilled: one row per
lead, with phone number, state and order number, in the order the leads were
stored.

Security:
- CSV Injection Prevention: Neutralizes fields that would execute as formulas
- Security Logging: Logs every neutralized field
"""

from __future__ import annotations

import csv
import logging
import re
from io import StringIO
from typing import Iterable

from domain.lead import ExportRecord

logger = logging.getLogger(__name__)

EXPORT_HEADER = ["Phone Number", "State", "Order Number"]


# Characters that make spreadsheets evaluate a cell as a formula.
_FORMULA_TRIGGERS = ('=', '+', '-', '@', '\t', '\r')

# International phone numbers ("+15550100") start with '+' but carry no formula.
_INTERNATIONAL_PHONE = re.compile(r"^\+\d+$")


def sanitize_csv_field(value: str | None, field_name: str = "unknown") -> str:
    """
    Neutralize a field to prevent CSV injection attacks with security logging.

    A value starting with a character that can trigger formula execution in
    Excel/Sheets (=, +, -, @, tab, carriage return) is prefixed with a single
    quote so it is shown as text. The original characters are kept. Numbers in
    international format ('+' followed by digits only) are exported as-is.

    If a value is neutralized, a warning is logged for security monitoring.

    Example:
        sanitize_csv_field("=1+1", "phone_number")
        # Returns "'=1+1" and logs warning about the "=" trigger

        sanitize_csv_field("+15550100", "phone_number")
        # Returns "+15550100"
    """
    if value is None or value == "":
        return ""

    text = str(value).strip()
    if not text or not text.startswith(_FORMULA_TRIGGERS) or _INTERNATIONAL_PHONE.match(text):
        return text

    sanitized = f"'{text}"
    logger.warning(
        f"CSV injection character neutralized in field '{field_name}'",
        extra={
            "field_name": field_name,
            "trigger_character": text[0],
            "original_value": text[:100],
            "sanitized_value": sanitized[:100],
            "modification_type": "csv_injection_prevention"
        }
    )

    return sanitized


def export_filename(order_number: str) -> str:
    """Download filename for an order's export."""

    safe = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in order_number)
    return f"order_{safe}_export.csv"


def generate_order_export_csv(records: Iterable[ExportRecord]) -> str:
    """
    Generate the CSV for a fulfilled order.

    Args:
        records: export rows, already in ascending lead order

    Returns:
        CSV content as a string (header row always present)
    """
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_HEADER)

    for record in records:
        writer.writerow([
            sanitize_csv_field(record.phone_number, "phone_number"),
            sanitize_csv_field(record.state, "state"),
            sanitize_csv_field(record.order_number, "order_number"),
        ])

    return output.getvalue()


__all__ = [
    "EXPORT_HEADER",
    "export_filename",
    "generate_order_export_csv",
    "sanitize_csv_field",
]
