"""Quote lifecycle: building drafts, adding priced items, sending, cancelling.

Every mutating operation runs inside a single ``transaction(db)`` block, so
a failure at any step leaves no partial quote, item or total behind. Reads
of the quote row that precede a status change take a row lock, and the
change itself is a conditional ``UPDATE ... WHERE status = 'draft'``.

Callers hand in the session and the resolved ``TenantSettings``; nothing in
here reads tenant configuration from global state.
"""

from __future__ import annotations

import logging
import math
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Iterator, Optional, Sequence

from sqlalchemy.orm import Session

from .. import models
from ..crud import crud_catalog, crud_quote
from ..database import transaction
from ..utils.errors import (
    InternalError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    QuoteError,
)
from .price_item import (
    AdjustmentInput,
    GlassPricing,
    ModelPricing,
    PriceItemInput,
    PriceItemResult,
    ServiceInput,
    calculate_price_item,
    round_money,
    to_decimal,
)
from .quote_metadata import TenantSettings, calculate_quote_metadata, is_quote_expired
from .quote_validator import (
    validate_can_add_items,
    validate_can_cancel,
    validate_cart_items_count,
    validate_cart_not_empty,
    validate_quote_exists,
    validate_quote_ownership,
    validate_send_to_vendor_requirements,
)

logger = logging.getLogger(__name__)

GENERATE_FAILED = "Error al generar la cotización. Por favor intenta nuevamente."
ADD_ITEM_FAILED = "Error al agregar el ítem a la cotización. Por favor intenta nuevamente."
SEND_FAILED = "Error al enviar la cotización. Por favor intenta nuevamente."
CANCEL_FAILED = "Error al cancelar la cotización. Por favor intenta nuevamente."
READ_FAILED = "Error al consultar las cotizaciones. Por favor intenta nuevamente."

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
SORT_FIELDS = ("created_at", "sent_at", "valid_until", "total")
SORT_ORDERS = ("asc", "desc")


@dataclass(frozen=True)
class GenerateQuoteResult:
    quote_id: int
    valid_until: datetime
    total: Decimal
    item_count: int


@dataclass(frozen=True)
class AddItemResult:
    item_id: int
    quote_id: int
    subtotal: Decimal


@dataclass(frozen=True)
class SendQuoteResult:
    id: int
    status: str
    sent_at: datetime
    total: Decimal
    currency: str
    contact_phone: str
    contact_email: Optional[str] = None


@dataclass(frozen=True)
class QuoteView:
    """A quote as returned to its owner, with expiry evaluated at read time."""

    quote: models.Quote
    is_expired: bool


@dataclass(frozen=True)
class QuoteSummaryRow:
    id: int
    status: models.QuoteStatus
    currency: str
    total: Decimal
    item_count: int
    valid_until: Optional[datetime]
    is_expired: bool
    sent_at: Optional[datetime]
    project_name: str
    created_at: datetime


@dataclass(frozen=True)
class QuotePage:
    quotes: list[QuoteSummaryRow] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    total_pages: int = 0
    has_next_page: bool = False
    has_previous_page: bool = False


def generate_correlation_id(operation: str, user_id: Any) -> str:
    return f"{operation}-{int(time.time() * 1000)}-{str(user_id)[:8]}"


@contextmanager
def _operation(name: str, user_id: Any, failure_message: str, **context: Any) -> Iterator[str]:
    """Log start, outcome and duration; hide unexpected errors behind ``InternalError``."""
    correlation_id = generate_correlation_id(name, user_id)
    started = time.monotonic()
    extra = {"correlation_id": correlation_id, "user_id": user_id, **context}
    logger.info("%s started", name, extra=extra)
    try:
        yield correlation_id
    except QuoteError as exc:
        logger.warning(
            "%s rejected: %s",
            name,
            exc.message,
            extra={**extra, "duration_ms": _elapsed_ms(started), "error_code": exc.code},
        )
        raise
    except Exception as exc:
        logger.exception(
            "%s failed",
            name,
            extra={**extra, "duration_ms": _elapsed_ms(started)},
        )
        raise InternalError(failure_message) from exc
    else:
        logger.info(
            "%s succeeded",
            name,
            extra={**extra, "duration_ms": _elapsed_ms(started)},
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


# ─── Catalog resolution ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class _ResolvedItem:
    model: models.Model
    price_input: PriceItemInput


def _resolve(db: Session, request: Any) -> _ResolvedItem:
    model = crud_catalog.get_model(db, request.model_id)
    if model is None or model.status != models.ModelStatus.PUBLISHED:
        raise NotFoundError(
            "Modelo no encontrado o no disponible",
            {"model_id": str(request.model_id)},
        )

    compatible = {int(gid) for gid in (model.compatible_glass_type_ids or [])}
    if request.glass_type_id not in compatible:
        raise InvalidArgumentError(
            "Tipo de vidrio no compatible con este modelo",
            {"glass_type_id": str(request.glass_type_id)},
        )

    if not model.min_width_mm <= request.width_mm <= model.max_width_mm:
        raise InvalidArgumentError(
            f"Ancho debe estar entre {model.min_width_mm}mm y {model.max_width_mm}mm",
            {"width_mm": "out_of_range"},
        )
    if not model.min_height_mm <= request.height_mm <= model.max_height_mm:
        raise InvalidArgumentError(
            f"Alto debe estar entre {model.min_height_mm}mm y {model.max_height_mm}mm",
            {"height_mm": "out_of_range"},
        )

    glass_type = crud_catalog.get_glass_type(db, request.glass_type_id)
    if glass_type is None:
        raise NotFoundError(
            "Tipo de vidrio no encontrado",
            {"glass_type_id": str(request.glass_type_id)},
        )

    selections = list(request.services or [])
    catalog_services = crud_catalog.get_services(db, [s.service_id for s in selections])
    services: list[ServiceInput] = []
    for selection in selections:
        service = catalog_services.get(selection.service_id)
        if service is None:
            raise NotFoundError(
                f"Servicio {selection.service_id} no encontrado",
                {"service_id": str(selection.service_id)},
            )
        services.append(
            ServiceInput(
                service_id=service.id,
                type=service.type,
                unit=service.unit,
                rate=to_decimal(service.rate),
                minimum_billing_unit=(
                    to_decimal(service.minimum_billing_unit)
                    if service.minimum_billing_unit is not None
                    else None
                ),
                quantity_override=selection.quantity,
            )
        )

    adjustments = [
        AdjustmentInput(concept=a.concept, sign=a.sign, unit=a.unit, value=a.value)
        for a in (request.adjustments or [])
    ]

    price_input = PriceItemInput(
        width_mm=request.width_mm,
        height_mm=request.height_mm,
        model=ModelPricing(
            base_price=to_decimal(model.base_price),
            cost_per_mm_width=to_decimal(model.cost_per_mm_width),
            cost_per_mm_height=to_decimal(model.cost_per_mm_height),
            accessory_price=(
                to_decimal(model.accessory_price)
                if model.accessory_price is not None
                else None
            ),
        ),
        glass=GlassPricing(
            price_per_sqm=to_decimal(glass_type.price_per_sqm),
            discount_width_mm=model.glass_discount_width_mm or 0,
            discount_height_mm=model.glass_discount_height_mm or 0,
        ),
        # Models that carry an accessory kit always bill it
        include_accessory=model.accessory_price is not None and to_decimal(model.accessory_price) > 0,
        services=services,
        adjustments=adjustments,
        color_surcharge_percentage=to_decimal(getattr(request, "color_surcharge_percentage", None)),
    )
    return _ResolvedItem(model=model, price_input=price_input)


def resolve_price_item_input(db: Session, request: Any) -> PriceItemInput:
    """Load catalog data for ``request`` and check it is quotable as asked."""
    return _resolve(db, request).price_input


def calculate_item_preview(db: Session, request: Any) -> PriceItemResult:
    """Price a configuration without persisting anything."""
    return calculate_price_item(resolve_price_item_input(db, request))


# ─── Mutations ─────────────────────────────────────────────────────────────────

def generate_quote_from_cart(
    db: Session,
    tenant: TenantSettings,
    user_id: int,
    cart_items: Sequence[Any],
    project_address: Any,
    now: Optional[datetime] = None,
) -> GenerateQuoteResult:
    """Turn a cart into a draft quote. Cart subtotals are copied, not repriced."""
    validate_cart_not_empty(cart_items)
    validate_cart_items_count(cart_items)

    with _operation("quote-gen", user_id, GENERATE_FAILED, item_count=len(cart_items)):
        with transaction(db):
            metadata = calculate_quote_metadata(tenant, cart_items, now)
            quote = crud_quote.create_quote(
                db,
                user_id=user_id,
                currency=metadata.currency,
                valid_until=metadata.valid_until,
                total=metadata.total,
                project_name=project_address.project_name,
                project_street=project_address.project_street,
                project_city=project_address.project_city,
                project_state=project_address.project_state,
                project_postal_code=getattr(project_address, "project_postal_code", None),
            )
            items = crud_quote.create_quote_items(db, quote, cart_items)
            result = GenerateQuoteResult(
                quote_id=quote.id,
                valid_until=metadata.valid_until,
                total=metadata.total,
                item_count=len(items),
            )
    return result


def add_item_to_quote(
    db: Session,
    tenant: TenantSettings,
    user_id: int,
    request: Any,
    now: Optional[datetime] = None,
) -> AddItemResult:
    """Price one configuration and append it to a draft quote.

    Without ``request.quote_id`` a new draft is opened for the user.
    """
    quote_id = getattr(request, "quote_id", None)
    with _operation("quote-add-item", user_id, ADD_ITEM_FAILED, quote_id=quote_id):
        with transaction(db):
            if quote_id is None:
                metadata = calculate_quote_metadata(tenant, [], now)
                quote = crud_quote.create_quote(
                    db,
                    user_id=user_id,
                    currency=metadata.currency,
                    valid_until=metadata.valid_until,
                )
            else:
                quote = crud_quote.get_quote_for_update(db, quote_id)
                quote = validate_can_add_items(quote, quote_id, user_id)

            resolved = _resolve(db, request)
            priced = calculate_price_item(resolved.price_input)
            item = crud_quote.create_priced_item(
                db,
                quote=quote,
                model_id=resolved.model.id,
                glass_type_id=request.glass_type_id,
                name=getattr(request, "name", None) or resolved.model.name,
                width_mm=request.width_mm,
                height_mm=request.height_mm,
                quantity=getattr(request, "quantity", 1) or 1,
                accessory_applied=resolved.price_input.include_accessory,
                result=priced,
                room_location=getattr(request, "room_location", None),
            )
            crud_quote.recompute_quote_total(db, quote)
            result = AddItemResult(item_id=item.id, quote_id=quote.id, subtotal=priced.subtotal)
    return result


def _run_post_commit(hook: Callable[[SendQuoteResult], Any], result: SendQuoteResult) -> None:
    try:
        hook(result)
    except Exception:
        # The quote is already sent; a failed side effect must not undo that
        logger.exception("Post-send hook failed for quote %s", result.id)


def send_quote_to_vendor(
    db: Session,
    quote_id: int,
    user_id: int,
    contact_phone: str,
    contact_email: Optional[str] = None,
    on_sent: Optional[Callable[[SendQuoteResult], Any]] = None,
    now: Optional[datetime] = None,
) -> SendQuoteResult:
    """Freeze a draft quote as ``sent``. ``on_sent`` runs only after commit."""
    phone = (contact_phone or "").strip()
    if not phone:
        raise InvalidArgumentError(
            "El teléfono de contacto es obligatorio",
            {"contact_phone": "required"},
        )
    email = (contact_email or "").strip() or None

    with _operation("quote-send", user_id, SEND_FAILED, quote_id=quote_id):
        with transaction(db):
            quote = crud_quote.get_quote_for_update(db, quote_id)
            quote = validate_send_to_vendor_requirements(quote, quote_id, user_id)
            sent_at = now or datetime.utcnow()
            updated = crud_quote.transition_status(
                db,
                quote.id,
                models.QuoteStatus.DRAFT,
                models.QuoteStatus.SENT,
                sent_at=sent_at,
                contact_phone=phone,
                contact_email=email,
            )
            if updated == 0:
                raise InvalidStateError(
                    "Solo se pueden enviar cotizaciones en estado borrador",
                    {"status": "changed"},
                )
            result = SendQuoteResult(
                id=quote.id,
                status=models.QuoteStatus.SENT.value,
                sent_at=sent_at,
                total=round_money(to_decimal(quote.total)),
                currency=quote.currency,
                contact_phone=phone,
                contact_email=email,
            )

    if on_sent is not None:
        _run_post_commit(on_sent, result)
    return result


def cancel_quote(db: Session, quote_id: int, user_id: int) -> QuoteView:
    with _operation("quote-cancel", user_id, CANCEL_FAILED, quote_id=quote_id):
        with transaction(db):
            quote = crud_quote.get_quote_for_update(db, quote_id)
            quote = validate_can_cancel(quote, quote_id, user_id)
            updated = crud_quote.transition_status(
                db,
                quote.id,
                models.QuoteStatus.DRAFT,
                models.QuoteStatus.CANCELED,
            )
            if updated == 0:
                raise InvalidStateError(
                    "Solo se pueden cancelar cotizaciones en estado borrador",
                    {"status": "changed"},
                )
    return QuoteView(quote=quote, is_expired=is_quote_expired(quote.valid_until))


# ─── Reads ─────────────────────────────────────────────────────────────────────

def get_quote(
    db: Session,
    quote_id: int,
    user_id: int,
    now: Optional[datetime] = None,
) -> QuoteView:
    quote = validate_quote_exists(crud_quote.get_quote(db, quote_id), quote_id)
    validate_quote_ownership(quote, user_id)
    return QuoteView(quote=quote, is_expired=is_quote_expired(quote.valid_until, now))


def list_user_quotes(
    db: Session,
    user_id: int,
    status: Optional[models.QuoteStatus] = None,
    include_expired: bool = False,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    now: Optional[datetime] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> QuotePage:
    """One page of the user's quotes, newest first unless ``sort_by``/``sort_order`` say otherwise.

    ``search`` matches the project name, street or city, case-insensitively.
    """
    if sort_by not in SORT_FIELDS:
        raise InvalidArgumentError("Campo de ordenamiento no válido", {"sort_by": str(sort_by)})
    if sort_order not in SORT_ORDERS:
        raise InvalidArgumentError("Orden no válido", {"sort_order": str(sort_order)})
    search = (search or "").strip() or None
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)
    now = now or datetime.utcnow()

    with _operation("quote-list", user_id, READ_FAILED, page=page, limit=limit):
        rows, total = crud_quote.list_quotes_for_user(
            db,
            user_id,
            now=now,
            status=status,
            include_expired=include_expired,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            offset=(page - 1) * limit,
            limit=limit,
        )
        counts = crud_quote.count_items(db, [q.id for q in rows])

    summaries = [
        QuoteSummaryRow(
            id=q.id,
            status=q.status,
            currency=q.currency,
            total=round_money(to_decimal(q.total)),
            item_count=counts.get(q.id, 0),
            valid_until=q.valid_until,
            is_expired=is_quote_expired(q.valid_until, now),
            sent_at=q.sent_at,
            project_name=q.project_name or "",
            created_at=q.created_at,
        )
        for q in rows
    ]
    total_pages = math.ceil(total / limit) if total else 0
    return QuotePage(
        quotes=summaries,
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_previous_page=page > 1,
    )
