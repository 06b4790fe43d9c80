"""Print-order DTOs for the service layer.

Framework-agnostic data transfer objects using Pydantic v2.  These are
the contracts between the API layer (DRF serializers), the service layer
and the vendor boundary.  DTOs are immutable (``frozen=True``).

- ``ShippingAddressDTO`` / ``BillingAddressDTO``: postal addresses.
- ``PrintableFilesDTO`` / ``PrintableMetadataDTO``: finalized assets.
- ``CreatePrintOrderDTO``: input for order creation.
- ``UpdatePrintableAssetsDTO``: input for manual asset correction.
- ``ValidationResult``: Validation Engine output.
- ``SubmissionResult``: vendor identifiers after a (re)submission.
- ``VendorEventEnvelope``: inbound vendor webhook payload.
"""

from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------


class ShippingAddressDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    line1: str
    line2: str = ""
    city: str
    state: str = ""
    postal_code: str
    country: str = "GB"

    @field_validator("name", "line1", "city", "postal_code")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Field must not be blank.")
        return v.strip()


class BillingAddressDTO(ShippingAddressDTO):
    """Account billing address used on vendor invoices."""

    email: str
    phone: str = ""


# ---------------------------------------------------------------------------
# Printable assets
# ---------------------------------------------------------------------------


class PrintableFilesDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    cover_pdf_url: Optional[str] = None
    interior_pdf_url: Optional[str] = None


class PrintableMetadataDTO(BaseModel):
    """Page counts and physical format of the rendered book."""

    model_config = ConfigDict(frozen=True)

    interior_page_count: int = Field(ge=0)
    cover_page_count: int = Field(default=4, ge=0)
    binding_type: str = "case"
    trim_size: str = "A4"
    padding_page_count: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreatePrintOrderDTO(BaseModel):
    """Immutable DTO for print-order creation requests."""

    model_config = ConfigDict(frozen=True)

    parent_uid: str
    story_id: str
    book_id: str = ""
    shipping_address: ShippingAddressDTO
    contact_email: str
    contact_phone: str = ""
    quantity: int = 1
    printable_files: PrintableFilesDTO = PrintableFilesDTO()
    printable_metadata: PrintableMetadataDTO
    requires_approval: bool = False

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class UpdatePrintableAssetsDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    printable_files: PrintableFilesDTO
    printable_metadata: PrintableMetadataDTO


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class ValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool
    errors: List[str] = []


class SubmissionResult(BaseModel):
    """Vendor identifiers assigned by a successful (re)submission."""

    model_config = ConfigDict(frozen=True)

    mixam_order_id: str
    mixam_job_number: str
    mixam_status: str
    is_resubmission: bool = False
    previous_mixam_order_id: str = ""
    previous_mixam_job_number: str = ""


# ---------------------------------------------------------------------------
# Vendor webhook payload
# ---------------------------------------------------------------------------


class VendorEventData(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    status: Optional[str] = None
    tracking_number: Optional[str] = Field(default=None, alias="trackingNumber")
    carrier: Optional[str] = None
    tracking_url: Optional[str] = Field(default=None, alias="trackingUrl")
    estimated_delivery: Optional[str] = Field(default=None, alias="estimatedDelivery")
    validation_errors: Optional[List[str]] = Field(
        default=None, alias="validationErrors"
    )
    message: Optional[str] = None


class VendorEventEnvelope(BaseModel):
    """Signed event pushed by the vendor.

    ``order_id`` is *our* order id, echoed back from the
    ``externalOrderId`` sent at submission.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    event: str
    timestamp: Optional[Union[str, int, float]] = None
    order_id: str = Field(alias="orderId")
    job_number: Optional[str] = Field(default=None, alias="jobNumber")
    data: VendorEventData = VendorEventData()

    @field_validator("order_id", "job_number", mode="before")
    @classmethod
    def numbers_as_text(cls, v: object) -> object:
        # the vendor sends job numbers as integers
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v
