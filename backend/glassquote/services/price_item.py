"""Line-item pricing for configured windows and doors.

``calculate_price_item`` is a pure function: the caller resolves the model,
glass type and services from the catalog (and checks dimensional bounds)
before calling it. The same input always yields the same breakdown.

Order of composition:

1. profile price   = base + width * cost/mm + height * cost/mm
2. accessory price = model accessory price, when included
3. glass price     = billable glass area (after per-side cutting discount) * price/m²
4. services        = max(quantity, minimum billing unit) * rate
5. adjustments     = magnitude * value, signed
6. subtotal        = sum of all of the above, never clamped
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Optional, Sequence

from ..models.catalog import ServiceType, ServiceUnit
from ..models.quote import AdjustmentSign

_CENT = Decimal("0.01")
_FIXED_QUANTITY_STEP = Decimal("0.0001")
_ZERO = Decimal("0")
_MM_PER_M = Decimal("1000")
_SQMM_PER_SQM = Decimal("1000000")
_HUNDRED = Decimal("100")


def to_decimal(value: Any, default: Decimal = _ZERO) -> Decimal:
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def round_money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ModelPricing:
    base_price: Decimal
    cost_per_mm_width: Decimal
    cost_per_mm_height: Decimal
    accessory_price: Optional[Decimal] = None


@dataclass(frozen=True)
class GlassPricing:
    price_per_sqm: Decimal
    discount_width_mm: int = 0
    discount_height_mm: int = 0


@dataclass(frozen=True)
class ServiceInput:
    service_id: int
    type: ServiceType
    unit: ServiceUnit
    rate: Decimal
    minimum_billing_unit: Optional[Decimal] = None
    quantity_override: Optional[Decimal] = None


@dataclass(frozen=True)
class AdjustmentInput:
    concept: str
    sign: AdjustmentSign
    unit: ServiceUnit
    value: Decimal


@dataclass(frozen=True)
class PriceItemInput:
    width_mm: int
    height_mm: int
    model: ModelPricing
    glass: Optional[GlassPricing] = None
    include_accessory: bool = False
    services: Sequence[ServiceInput] = ()
    adjustments: Sequence[AdjustmentInput] = ()
    color_surcharge_percentage: Decimal = _ZERO


@dataclass(frozen=True)
class ServiceLine:
    service_id: int
    unit: ServiceUnit
    quantity: Decimal
    amount: Decimal


@dataclass(frozen=True)
class AdjustmentLine:
    concept: str
    sign: AdjustmentSign
    unit: ServiceUnit
    value: Decimal
    amount: Decimal


@dataclass(frozen=True)
class PriceItemResult:
    dim_price: Decimal
    acc_price: Decimal
    glass_price: Decimal
    subtotal: Decimal
    services: list[ServiceLine] = field(default_factory=list)
    adjustments: list[AdjustmentLine] = field(default_factory=list)
    color_surcharge_percentage: Optional[Decimal] = None
    color_surcharge_amount: Optional[Decimal] = None


def opening_area_sqm(width_mm: int, height_mm: int) -> Decimal:
    """Gross opening area in m², rounded to 2 decimals."""
    area = Decimal(width_mm) * Decimal(height_mm) / _SQMM_PER_SQM
    return round_money(area)


def opening_perimeter_m(width_mm: int, height_mm: int) -> Decimal:
    """Opening perimeter in linear metres, rounded to 2 decimals."""
    perimeter = 2 * (Decimal(width_mm) + Decimal(height_mm)) / _MM_PER_M
    return round_money(perimeter)


def glass_area_sqm(width_mm: int, height_mm: int, glass: GlassPricing) -> Decimal:
    """Billable glass area once the cutting discount is taken off both sides.

    Each axis floors at zero, so an oversized discount contributes no glass
    rather than a negative area.
    """
    discount_w = max(glass.discount_width_mm or 0, 0)
    discount_h = max(glass.discount_height_mm or 0, 0)
    effective_w = max(width_mm - 2 * discount_w, 0)
    effective_h = max(height_mm - 2 * discount_h, 0)
    return Decimal(effective_w) * Decimal(effective_h) / _SQMM_PER_SQM


def _quantity_for_unit(unit: ServiceUnit, width_mm: int, height_mm: int) -> Decimal:
    if unit == ServiceUnit.SQM:
        return opening_area_sqm(width_mm, height_mm)
    if unit == ServiceUnit.ML:
        return opening_perimeter_m(width_mm, height_mm)
    return Decimal(1)


def service_quantity(service: ServiceInput, width_mm: int, height_mm: int) -> Decimal:
    """Quantity billed for ``service``, after the minimum billing floor."""
    if service.type == ServiceType.FIXED:
        quantity = to_decimal(service.quantity_override, Decimal(1))
        quantity = quantity.quantize(_FIXED_QUANTITY_STEP, rounding=ROUND_HALF_UP)
    elif service.quantity_override is not None:
        quantity = round_money(to_decimal(service.quantity_override))
    elif service.type == ServiceType.AREA:
        quantity = opening_area_sqm(width_mm, height_mm)
    else:
        quantity = opening_perimeter_m(width_mm, height_mm)

    minimum = to_decimal(service.minimum_billing_unit)
    if minimum > quantity:
        return minimum
    return quantity


def adjustment_amount(adjustment: AdjustmentInput, width_mm: int, height_mm: int) -> Decimal:
    magnitude = _quantity_for_unit(adjustment.unit, width_mm, height_mm)
    amount = round_money(magnitude * to_decimal(adjustment.value))
    if adjustment.sign == AdjustmentSign.NEGATIVE:
        return -amount
    return amount


def calculate_price_item(data: PriceItemInput) -> PriceItemResult:
    width_mm = max(data.width_mm, 0)
    height_mm = max(data.height_mm, 0)
    model = data.model

    profile_cost = (
        to_decimal(model.base_price)
        + Decimal(width_mm) * to_decimal(model.cost_per_mm_width)
        + Decimal(height_mm) * to_decimal(model.cost_per_mm_height)
    )
    accessory_cost = to_decimal(model.accessory_price) if data.include_accessory else _ZERO

    surcharge_pct = to_decimal(data.color_surcharge_percentage)
    multiplier = Decimal(1) + surcharge_pct / _HUNDRED
    dim_price = round_money(profile_cost * multiplier)
    acc_price = round_money(accessory_cost * multiplier)

    glass_price = _ZERO
    if data.glass is not None and to_decimal(data.glass.price_per_sqm) > _ZERO:
        area = glass_area_sqm(width_mm, height_mm, data.glass)
        glass_price = round_money(area * to_decimal(data.glass.price_per_sqm))

    service_lines: list[ServiceLine] = []
    for service in data.services:
        quantity = service_quantity(service, width_mm, height_mm)
        amount = round_money(quantity * to_decimal(service.rate))
        service_lines.append(
            ServiceLine(
                service_id=service.service_id,
                unit=service.unit,
                quantity=quantity,
                amount=amount,
            )
        )

    adjustment_lines: list[AdjustmentLine] = []
    for adjustment in data.adjustments:
        adjustment_lines.append(
            AdjustmentLine(
                concept=adjustment.concept,
                sign=adjustment.sign,
                unit=adjustment.unit,
                value=to_decimal(adjustment.value),
                amount=adjustment_amount(adjustment, width_mm, height_mm),
            )
        )

    subtotal = (
        dim_price
        + acc_price
        + glass_price
        + sum((line.amount for line in service_lines), _ZERO)
        + sum((line.amount for line in adjustment_lines), _ZERO)
    )

    surcharge_amount = None
    reported_pct = None
    if surcharge_pct > _ZERO:
        reported_pct = surcharge_pct
        # reported surcharge covers the profile only; the accessory still carries the multiplier
        surcharge_amount = round_money(profile_cost * multiplier - profile_cost)

    return PriceItemResult(
        dim_price=dim_price,
        acc_price=acc_price,
        glass_price=glass_price,
        subtotal=round_money(subtotal),
        services=service_lines,
        adjustments=adjustment_lines,
        color_surcharge_percentage=reported_pct,
        color_surcharge_amount=surcharge_amount,
    )
