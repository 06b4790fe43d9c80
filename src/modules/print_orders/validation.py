"""Validation Engine: print-readiness checks for a storybook.

Pure functions, no I/O.  The same checks gate first submission,
resubmission and the explicit admin ``validate`` action.

1. Cover and interior file references must both be present; if either
   is missing nothing else is checked.
2. Interior page count must reach the binding's minimum (24 for case
   bindings, 8 otherwise).
3. Interior page count must be a multiple of 4.

Checks 2 and 3 are independent and both report.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Mapping, Optional

from modules.print_orders.constants import (
    CASE_BINDINGS,
    MIN_INTERIOR_PAGES_CASE,
    MIN_INTERIOR_PAGES_DEFAULT,
    PAGE_MULTIPLE,
)
from modules.print_orders.dtos import ValidationResult

if TYPE_CHECKING:
    from modules.print_orders.models import PrintOrder


def minimum_interior_pages(binding_type: Optional[str]) -> int:
    if (binding_type or "").lower() in CASE_BINDINGS:
        return MIN_INTERIOR_PAGES_CASE
    return MIN_INTERIOR_PAGES_DEFAULT


def validate_printable_assets(
    printable_files: Optional[Mapping[str, Any]],
    printable_metadata: Optional[Mapping[str, Any]],
) -> ValidationResult:
    files = printable_files or {}
    metadata = printable_metadata or {}

    missing = []
    if not files.get("cover_pdf_url"):
        missing.append("Cover PDF is missing.")
    if not files.get("interior_pdf_url"):
        missing.append("Interior PDF is missing.")
    if missing:
        return ValidationResult(valid=False, errors=missing)

    errors: List[str] = []
    binding_type = metadata.get("binding_type")
    try:
        page_count = int(metadata.get("interior_page_count") or 0)
    except (TypeError, ValueError):
        return ValidationResult(
            valid=False, errors=["Interior page count is not a number."]
        )

    minimum = minimum_interior_pages(binding_type)
    if page_count < minimum:
        errors.append(
            f"Interior has {page_count} pages; {binding_type or 'this'} binding "
            f"requires at least {minimum}."
        )
    if page_count % PAGE_MULTIPLE != 0:
        errors.append(
            f"Interior page count {page_count} is not a multiple of {PAGE_MULTIPLE}."
        )

    return ValidationResult(valid=not errors, errors=errors)


def validate(
    order: PrintOrder, printable_metadata: Optional[Mapping[str, Any]] = None
) -> ValidationResult:
    """Validate *order*'s files against *printable_metadata*.

    Falls back to the metadata stored on the order.
    """
    metadata = (
        printable_metadata
        if printable_metadata is not None
        else order.printable_metadata
    )
    return validate_printable_assets(order.printable_files, metadata)
