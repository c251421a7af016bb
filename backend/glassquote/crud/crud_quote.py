from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence
import logging

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from .. import models
from ..services.price_item import PriceItemResult, round_money, to_decimal

logger = logging.getLogger(__name__)


def get_quote(db: Session, quote_id: int) -> Optional[models.Quote]:
    return (
        db.query(models.Quote)
        .options(
            selectinload(models.Quote.items).selectinload(models.QuoteItem.services),
            selectinload(models.Quote.items).selectinload(models.QuoteItem.adjustments),
        )
        .filter(models.Quote.id == quote_id)
        .first()
    )


def get_quote_for_update(db: Session, quote_id: int) -> Optional[models.Quote]:
    """Load a quote holding a row lock until the surrounding transaction ends.

    ``FOR UPDATE`` is dropped by SQLite, which serialises writers anyway.
    """
    return (
        db.query(models.Quote)
        .filter(models.Quote.id == quote_id)
        .with_for_update()
        .first()
    )


def create_quote(
    db: Session,
    *,
    user_id: int,
    currency: str,
    valid_until: datetime,
    total: Decimal = Decimal("0"),
    project_name: Optional[str] = None,
    project_street: Optional[str] = None,
    project_city: Optional[str] = None,
    project_state: Optional[str] = None,
    project_postal_code: Optional[str] = None,
) -> models.Quote:
    db_quote = models.Quote(
        user_id=user_id,
        status=models.QuoteStatus.DRAFT,
        currency=currency,
        total=total,
        valid_until=valid_until,
        project_name=project_name,
        project_street=project_street,
        project_city=project_city,
        project_state=project_state,
        project_postal_code=project_postal_code,
    )
    db.add(db_quote)
    db.flush()
    return db_quote


def create_quote_items(db: Session, quote: models.Quote, cart_items: Sequence) -> list[models.QuoteItem]:
    """Copy cart lines onto a quote, keeping each line's locked subtotal."""
    rows = [
        models.QuoteItem(
            model_id=item.model_id,
            glass_type_id=item.glass_type_id,
            name=item.name,
            width_mm=item.width_mm,
            height_mm=item.height_mm,
            quantity=item.quantity,
            subtotal=round_money(to_decimal(item.subtotal)),
        )
        for item in cart_items
    ]
    quote.items.extend(rows)
    db.flush()
    return rows


def create_priced_item(
    db: Session,
    *,
    quote: models.Quote,
    model_id: int,
    glass_type_id: int,
    name: str,
    width_mm: int,
    height_mm: int,
    quantity: int,
    accessory_applied: bool,
    result: PriceItemResult,
    room_location: Optional[str] = None,
) -> models.QuoteItem:
    """Persist a calculated line together with its service and adjustment rows."""
    item = models.QuoteItem(
        model_id=model_id,
        glass_type_id=glass_type_id,
        name=name,
        width_mm=width_mm,
        height_mm=height_mm,
        quantity=quantity,
        subtotal=result.subtotal,
        accessory_applied=accessory_applied,
        color_surcharge_percentage=result.color_surcharge_percentage,
        room_location=room_location,
    )
    for line in result.services:
        item.services.append(
            models.QuoteItemService(
                service_id=line.service_id,
                unit=line.unit,
                quantity=line.quantity,
                amount=line.amount,
            )
        )
    for line in result.adjustments:
        item.adjustments.append(
            models.Adjustment(
                concept=line.concept,
                sign=line.sign,
                unit=line.unit,
                value=line.value,
                amount=line.amount,
            )
        )
    quote.items.append(item)
    db.flush()
    return item


def sum_item_subtotals(db: Session, quote_id: int) -> Decimal:
    value = (
        db.query(func.coalesce(func.sum(models.QuoteItem.subtotal), 0))
        .filter(models.QuoteItem.quote_id == quote_id)
        .scalar()
    )
    return round_money(to_decimal(value))


def recompute_quote_total(db: Session, quote: models.Quote) -> Decimal:
    """Set ``quote.total`` from the database aggregate over its items."""
    db.flush()
    total = sum_item_subtotals(db, quote.id)
    quote.total = total
    db.flush()
    return total


def transition_status(
    db: Session,
    quote_id: int,
    from_status: models.QuoteStatus,
    to_status: models.QuoteStatus,
    **values,
) -> int:
    """Move a quote between statuses only if it is still in ``from_status``.

    Returns the number of rows changed; zero means another writer got there
    first.
    """
    changes = {"status": to_status, "updated_at": datetime.utcnow()}
    changes.update(values)
    updated = (
        db.query(models.Quote)
        .filter(models.Quote.id == quote_id, models.Quote.status == from_status)
        .update(changes, synchronize_session="fetch")
    )
    logger.debug(
        "Quote %s %s -> %s: %s row(s)",
        quote_id,
        from_status.value,
        to_status.value,
        updated,
    )
    return updated


SORTABLE_COLUMNS = {
    "created_at": models.Quote.created_at,
    "sent_at": models.Quote.sent_at,
    "valid_until": models.Quote.valid_until,
    "total": models.Quote.total,
}


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def list_quotes_for_user(
    db: Session,
    user_id: int,
    *,
    now: datetime,
    status: Optional[models.QuoteStatus] = None,
    include_expired: bool = False,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    offset: int = 0,
    limit: int = 20,
) -> tuple[list[models.Quote], int]:
    query = db.query(models.Quote).filter(models.Quote.user_id == user_id)
    if status is not None:
        query = query.filter(models.Quote.status == status)
    if not include_expired:
        query = query.filter(
            or_(models.Quote.valid_until.is_(None), models.Quote.valid_until >= now)
        )
    if search:
        pattern = _like_pattern(search)
        query = query.filter(
            or_(
                models.Quote.project_name.ilike(pattern, escape="\\"),
                models.Quote.project_street.ilike(pattern, escape="\\"),
                models.Quote.project_city.ilike(pattern, escape="\\"),
            )
        )
    total = query.count()

    column = SORTABLE_COLUMNS[sort_by]
    if sort_order == "asc":
        ordering = (column.asc().nulls_last(), models.Quote.id.asc())
    else:
        ordering = (column.desc().nulls_last(), models.Quote.id.desc())
    rows = query.order_by(*ordering).offset(offset).limit(limit).all()
    return rows, total


def count_items(db: Session, quote_ids: Iterable[int]) -> dict[int, int]:
    ids = list(quote_ids)
    if not ids:
        return {}
    rows = (
        db.query(models.QuoteItem.quote_id, func.count(models.QuoteItem.id))
        .filter(models.QuoteItem.quote_id.in_(ids))
        .group_by(models.QuoteItem.quote_id)
        .all()
    )
    return {quote_id: count for quote_id, count in rows}
