import enum
from sqlalchemy import (
    Column,
    Integer,
    ForeignKey,
    Numeric,
    String,
    DateTime,
    Boolean,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .catalog import ServiceUnit
from .types import LowercaseEnum


class QuoteStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    CANCELED = "canceled"


class AdjustmentSign(str, enum.Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


class Quote(BaseModel):
    __tablename__ = "quotes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    status = Column(
        LowercaseEnum(QuoteStatus, name="quotestatus"),
        nullable=False,
        default=QuoteStatus.DRAFT,
        index=True,
    )
    currency = Column(String(3), nullable=False)
    # Always the sum of item subtotals; recomputed, never edited directly
    total = Column(Numeric(12, 2), nullable=False, default=0)
    valid_until = Column(DateTime, nullable=True)

    contact_phone = Column(String, nullable=True)
    contact_email = Column(String, nullable=True)
    sent_at = Column(DateTime, nullable=True)

    project_name = Column(String(100), nullable=True)
    project_street = Column(String(200), nullable=True)
    project_city = Column(String(100), nullable=True)
    project_state = Column(String(100), nullable=True)
    project_postal_code = Column(String(20), nullable=True)

    items = relationship(
        "QuoteItem",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteItem.id",
    )


class QuoteItem(BaseModel):
    __tablename__ = "quote_items"

    id = Column(Integer, primary_key=True, index=True)
    quote_id = Column(Integer, ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)
    model_id = Column(Integer, ForeignKey("glass_models.id"), nullable=False)
    glass_type_id = Column(Integer, ForeignKey("glass_types.id"), nullable=False)
    name = Column(String, nullable=False)
    width_mm = Column(Integer, nullable=False)
    height_mm = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    # Frozen at creation; later catalog price changes never touch it
    subtotal = Column(Numeric(12, 2), nullable=False)
    accessory_applied = Column(Boolean, nullable=False, default=False)
    color_surcharge_percentage = Column(Numeric(5, 2), nullable=True)
    room_location = Column(String(100), nullable=True)

    quote = relationship("Quote", back_populates="items")
    services = relationship(
        "QuoteItemService",
        back_populates="quote_item",
        cascade="all, delete-orphan",
    )
    adjustments = relationship(
        "Adjustment",
        back_populates="quote_item",
        cascade="all, delete-orphan",
    )


class QuoteItemService(BaseModel):
    __tablename__ = "quote_item_services"

    id = Column(Integer, primary_key=True, index=True)
    quote_item_id = Column(Integer, ForeignKey("quote_items.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    unit = Column(LowercaseEnum(ServiceUnit), nullable=False)
    quantity = Column(Numeric(12, 4), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)

    quote_item = relationship("QuoteItem", back_populates="services")
    service = relationship("Service")


class Adjustment(BaseModel):
    """Manual signed correction on one item; ``amount`` is already resolved and signed."""

    __tablename__ = "quote_adjustments"

    id = Column(Integer, primary_key=True, index=True)
    quote_item_id = Column(Integer, ForeignKey("quote_items.id", ondelete="CASCADE"), nullable=False, index=True)
    concept = Column(String, nullable=False)
    sign = Column(LowercaseEnum(AdjustmentSign), nullable=False)
    unit = Column(LowercaseEnum(ServiceUnit), nullable=False)
    value = Column(Numeric(12, 2), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)

    quote_item = relationship("QuoteItem", back_populates="adjustments")
