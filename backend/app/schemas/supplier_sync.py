"""Supplier sync schemas.

``SyncedItem`` is the validated shape of one (design, color) group as stored in
``SupplierSync.items_synced`` and as applied to customer stock.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

Quantity = Annotated[int, Field(ge=0, strict=True)]


class SyncedItem(BaseModel):
    """One design/color group with its per-size quantities."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    design: str = Field(min_length=1, max_length=100)
    color: str = Field(min_length=1, max_length=50)
    quantities: Dict[str, Quantity]
    total_quantity: int = 0
    price_per_unit: float = 0.0

    @field_validator("quantities")
    @classmethod
    def validate_quantities(cls, v: Dict[str, int]) -> Dict[str, int]:
        if not v:
            raise ValueError("quantities must contain at least one size")
        for size in v:
            if not size or not size.strip():
                raise ValueError("size labels cannot be empty")
        return v

    @model_validator(mode="after")
    def fill_total(self) -> "SyncedItem":
        self.total_quantity = sum(self.quantities.values())
        return self

    def to_ledger(self) -> dict:
        """Plain dict for the ledger's JSON column."""
        return self.model_dump()


def parse_synced_items(raw: Optional[List[dict]]) -> List[SyncedItem]:
    """Validate a stored ``items_synced`` payload."""
    return [SyncedItem.model_validate(item) for item in (raw or [])]


class RejectSyncRequest(BaseModel):
    """Body for POST /sync/{sync_id}/reject."""

    reason: Optional[str] = Field(default=None, max_length=1000)


class ReportSyncIssueRequest(BaseModel):
    """Body for PUT /sync/tenant/logs/{sync_id}/report-issue."""

    issues: List[Annotated[str, Field(min_length=1, max_length=500)]] = Field(min_length=1, max_length=50)


class OrderItemIn(BaseModel):
    """A wholesale order line as submitted by the supplier."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    design: str = Field(min_length=1, max_length=100)
    color: str = Field(min_length=1, max_length=50)
    size: str = Field(min_length=1, max_length=10)
    quantity: int = Field(ge=1)
    price_per_unit: Decimal = Field(default=Decimal("0"), ge=0)


class WholesaleOrderCreate(BaseModel):
    """Wholesale order creation schema."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    buyer_name: str = Field(min_length=1, max_length=255)
    buyer_contact: str = Field(pattern=r"^[0-9]{10}$")
    buyer_email: Optional[str] = None
    business_name: Optional[str] = None
    challan_number: Optional[str] = Field(default=None, max_length=100)
    discount_type: str = Field(default="none", pattern="^(none|percentage|fixed)$")
    discount_value: Decimal = Field(default=Decimal("0"), ge=0)
    notes: Optional[str] = None
    items: List[OrderItemIn] = Field(min_length=1)


class OrderItemsUpdate(BaseModel):
    """Replacement line items for an existing order."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    items: List[OrderItemIn] = Field(min_length=1)
    changes_made: Optional[dict] = None


class BuyerLinkUpdate(BaseModel):
    """Link (or unlink with null) a buyer to a customer organization."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    customer_tenant_id: Optional[int] = None


class SyncPreferenceUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    sync_preference: str = Field(pattern="^(direct|manual)$")
