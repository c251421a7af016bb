from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

from .price_item import round_money, to_decimal


@dataclass(frozen=True)
class TenantSettings:
    """Business configuration a quote inherits when it is created."""

    currency: str
    quote_validity_days: int
    business_name: str = ""
    vendor_email: Optional[str] = None


@dataclass(frozen=True)
class QuoteMetadata:
    currency: str
    valid_until: datetime
    total: Decimal


def _subtotal_of(item: Any) -> Decimal:
    if isinstance(item, Mapping):
        return to_decimal(item.get("subtotal"))
    return to_decimal(getattr(item, "subtotal", None))


def calculate_cart_total(cart_items: Sequence[Any]) -> Decimal:
    """Sum of the subtotals already locked on each cart item."""
    return round_money(sum((_subtotal_of(item) for item in cart_items), Decimal("0")))


def calculate_valid_until(now: datetime, validity_days: int) -> datetime:
    return now + timedelta(days=validity_days)


def calculate_quote_metadata(
    tenant: TenantSettings,
    cart_items: Sequence[Any],
    now: Optional[datetime] = None,
) -> QuoteMetadata:
    now = now or datetime.utcnow()
    return QuoteMetadata(
        currency=tenant.currency,
        valid_until=calculate_valid_until(now, tenant.quote_validity_days),
        total=calculate_cart_total(cart_items),
    )


def is_quote_expired(valid_until: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if valid_until is None:
        return False
    return valid_until < (now or datetime.utcnow())
