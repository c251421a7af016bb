from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

from freezegun import freeze_time

from glassquote.services.quote_metadata import (
    TenantSettings,
    calculate_cart_total,
    calculate_quote_metadata,
    calculate_valid_until,
    is_quote_expired,
)

TENANT = TenantSettings(currency="USD", quote_validity_days=30)


def test_cart_total_sums_locked_subtotals():
    items = [
        {"subtotal": Decimal("262.55")},
        SimpleNamespace(subtotal=Decimal("277.55")),
        {"subtotal": "10.10"},
    ]
    assert calculate_cart_total(items) == Decimal("550.20")


def test_cart_total_of_nothing_is_zero():
    assert calculate_cart_total([]) == Decimal("0.00")


def test_valid_until_adds_validity_days():
    now = datetime(2024, 3, 1, 12, 0)
    assert calculate_valid_until(now, 15) == datetime(2024, 3, 16, 12, 0)


@freeze_time("2024-05-10 08:30:00")
def test_metadata_uses_tenant_values_and_current_time():
    meta = calculate_quote_metadata(TENANT, [{"subtotal": Decimal("100")}])

    assert meta.currency == "USD"
    assert meta.valid_until == datetime(2024, 6, 9, 8, 30)
    assert meta.total == Decimal("100.00")


def test_metadata_accepts_explicit_now():
    now = datetime(2024, 1, 1)
    meta = calculate_quote_metadata(TenantSettings(currency="COP", quote_validity_days=15), [], now)

    assert meta.valid_until == now + timedelta(days=15)
    assert meta.total == Decimal("0.00")


@freeze_time("2024-05-10")
def test_expiry():
    assert is_quote_expired(datetime(2024, 5, 9)) is True
    assert is_quote_expired(datetime(2024, 5, 11)) is False
    assert is_quote_expired(None) is False
