from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from ..models.catalog import ServiceUnit
from ..models.quote import AdjustmentSign, QuoteStatus


# ─── Pricing input ─────────────────────────────────────────────────────────────

class ServiceSelection(BaseModel):
    service_id: int
    # Replaces the service's natural measure (area, perimeter or 1)
    quantity: Optional[Decimal] = Field(default=None, ge=0)


class AdjustmentIn(BaseModel):
    concept: str = Field(..., min_length=1)
    sign: AdjustmentSign
    unit: ServiceUnit
    value: Decimal = Field(..., ge=0, decimal_places=2)


class CalculateItemRequest(BaseModel):
    model_config = {"protected_namespaces": ()}

    model_id: int
    glass_type_id: int
    width_mm: int = Field(..., ge=1)
    height_mm: int = Field(..., ge=1)
    services: List[ServiceSelection] = Field(default_factory=list)
    adjustments: List[AdjustmentIn] = Field(default_factory=list)
    color_surcharge_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)


class AddItemRequest(CalculateItemRequest):
    quote_id: Optional[int] = None
    quantity: int = Field(default=1, ge=1)
    name: Optional[str] = Field(default=None, max_length=100)
    room_location: Optional[str] = Field(default=None, max_length=100)


# ─── Pricing output ────────────────────────────────────────────────────────────

class ServiceLineRead(BaseModel):
    service_id: int
    unit: ServiceUnit
    quantity: Decimal
    amount: Decimal

    model_config = {"from_attributes": True}


class AdjustmentLineRead(BaseModel):
    concept: str
    sign: AdjustmentSign
    unit: ServiceUnit
    value: Decimal
    amount: Decimal

    model_config = {"from_attributes": True}


class PriceBreakdown(BaseModel):
    dim_price: Decimal
    acc_price: Decimal
    glass_price: Decimal
    services: List[ServiceLineRead]
    adjustments: List[AdjustmentLineRead]
    subtotal: Decimal
    color_surcharge_percentage: Optional[Decimal] = None
    color_surcharge_amount: Optional[Decimal] = None

    model_config = {"from_attributes": True}


class AddItemResponse(BaseModel):
    item_id: int
    quote_id: int
    subtotal: Decimal


# ─── Cart → quote ──────────────────────────────────────────────────────────────

class CartItem(BaseModel):
    model_config = {"protected_namespaces": ()}

    model_id: int
    glass_type_id: int
    name: str = Field(..., min_length=1, max_length=100)
    width_mm: int = Field(..., ge=1)
    height_mm: int = Field(..., ge=1)
    quantity: int = Field(default=1, ge=1)
    # Locked when the item entered the cart; quote generation never reprices it
    subtotal: Decimal = Field(..., ge=0)


class ProjectAddress(BaseModel):
    project_name: str = Field(..., min_length=1, max_length=100)
    project_street: str = Field(..., min_length=1, max_length=200)
    project_city: str = Field(..., min_length=1, max_length=100)
    project_state: str = Field(..., min_length=1, max_length=100)
    project_postal_code: Optional[str] = Field(default=None, max_length=20)


class GenerateQuoteRequest(BaseModel):
    # Emptiness and size are business rules checked by the service layer
    cart_items: List[CartItem]
    project_address: ProjectAddress


class GenerateQuoteResponse(BaseModel):
    quote_id: int
    valid_until: datetime
    total: Decimal
    item_count: int


# ─── Lifecycle ─────────────────────────────────────────────────────────────────

class SendToVendorRequest(BaseModel):
    contact_phone: str = Field(..., min_length=7, max_length=30)
    contact_email: Optional[EmailStr] = None


class SendToVendorResponse(BaseModel):
    id: int
    status: Literal["sent"]
    sent_at: datetime
    total: Decimal
    currency: str
    contact_phone: str
    contact_email: Optional[str] = None


class QuoteItemRead(BaseModel):
    id: int
    model_id: int
    glass_type_id: int
    name: str
    width_mm: int
    height_mm: int
    quantity: int
    subtotal: Decimal
    accessory_applied: bool
    room_location: Optional[str] = None
    services: List[ServiceLineRead] = Field(default_factory=list)
    adjustments: List[AdjustmentLineRead] = Field(default_factory=list)

    model_config = {"from_attributes": True, "protected_namespaces": ()}


class QuoteRead(BaseModel):
    id: int
    user_id: Optional[int] = None
    status: QuoteStatus
    currency: str
    total: Decimal
    valid_until: Optional[datetime] = None
    is_expired: bool = False
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    sent_at: Optional[datetime] = None
    project_name: Optional[str] = None
    project_street: Optional[str] = None
    project_city: Optional[str] = None
    project_state: Optional[str] = None
    project_postal_code: Optional[str] = None
    items: List[QuoteItemRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class QuoteSummary(BaseModel):
    id: int
    status: QuoteStatus
    currency: str
    total: Decimal
    item_count: int
    valid_until: Optional[datetime] = None
    is_expired: bool = False
    sent_at: Optional[datetime] = None
    project_name: str
    created_at: datetime


class QuoteListResponse(BaseModel):
    quotes: List[QuoteSummary]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool
