"""Preconditions for quote mutations.

Each check raises on the first violation and returns ``None`` otherwise.
Composite checks run ownership before status so a non-owner learns nothing
about the state of someone else's quote.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from ..core.config import settings
from ..models.quote import Quote, QuoteStatus
from ..utils.errors import (
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
)

MIN_CART_ITEMS = 1
MAX_CART_ITEMS = settings.MAX_CART_ITEMS


def validate_cart_not_empty(cart_items: Sequence[Any]) -> None:
    if not cart_items:
        raise InvalidArgumentError(
            "El carrito está vacío. Agrega al menos un producto para generar una cotización.",
            {"cart_items": "empty"},
        )


def validate_cart_items_count(cart_items: Sequence[Any], max_items: int = MAX_CART_ITEMS) -> None:
    count = len(cart_items)
    if count < MIN_CART_ITEMS or count > max_items:
        raise InvalidArgumentError(
            f"El carrito debe tener entre {MIN_CART_ITEMS} y {max_items} productos (tiene {count}).",
            {"cart_items": "count_out_of_range"},
        )


def validate_quote_exists(quote: Optional[Quote], quote_id: int) -> Quote:
    if quote is None:
        raise NotFoundError(
            "Cotización no encontrada",
            {"quote_id": str(quote_id)},
        )
    return quote


def validate_quote_ownership(quote: Quote, user_id: int) -> None:
    if quote.user_id != user_id:
        raise PermissionDeniedError(
            "No tienes permiso para modificar esta cotización",
            {"quote_id": "forbidden"},
        )


def validate_quote_is_draft(
    quote: Quote,
    message: str = "Solo se pueden enviar cotizaciones en estado borrador",
) -> None:
    if quote.status != QuoteStatus.DRAFT:
        raise InvalidStateError(message, {"status": _status_value(quote.status)})


def validate_quote_has_items(quote: Quote) -> None:
    if len(quote.items) == 0:
        raise InvalidStateError(
            "La cotización no tiene items. Agrega al menos un producto antes de enviarla.",
            {"items": "empty"},
        )


def validate_send_to_vendor_requirements(quote: Optional[Quote], quote_id: int, user_id: int) -> Quote:
    quote = validate_quote_exists(quote, quote_id)
    validate_quote_ownership(quote, user_id)
    validate_quote_is_draft(quote)
    validate_quote_has_items(quote)
    return quote


def validate_can_add_items(quote: Optional[Quote], quote_id: int, user_id: int) -> Quote:
    quote = validate_quote_exists(quote, quote_id)
    validate_quote_ownership(quote, user_id)
    validate_quote_is_draft(
        quote, "No se pueden agregar ítems a una cotización enviada o cancelada"
    )
    return quote


def validate_can_cancel(quote: Optional[Quote], quote_id: int, user_id: int) -> Quote:
    quote = validate_quote_exists(quote, quote_id)
    validate_quote_ownership(quote, user_id)
    validate_quote_is_draft(quote, "Solo se pueden cancelar cotizaciones en estado borrador")
    return quote


def _status_value(status: Any) -> str:
    return getattr(status, "value", str(status))
