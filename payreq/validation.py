"""Field validators shared by grouping and submission."""

from __future__ import annotations

from payreq.constant import INVOICE_NUMBER_PATTERN


def is_valid_invoice_format(invoice_number: str | None) -> bool:
    """Return True for invoice numbers shaped like ``AB-12345678``."""
    if not invoice_number:
        return False
    return INVOICE_NUMBER_PATTERN.match(invoice_number) is not None


def is_positive_cost(amount: float | None) -> bool:
    return amount is not None and amount > 0


def normalize_invoice_number(invoice_number: str | None) -> str | None:
    """Trim an invoice number; blank values become None."""
    if invoice_number is None:
        return None
    trimmed = invoice_number.strip()
    return trimmed or None
