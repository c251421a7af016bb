from typing import Literal, Optional
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..services import quote_service
from ..services.quote_metadata import TenantSettings
from ..utils.notifications import notify_vendor
from .dependencies import get_current_user_id, get_db, get_tenant_settings

router = APIRouter(tags=["quotes"])
logger = logging.getLogger(__name__)


def _quote_read(view: quote_service.QuoteView) -> schemas.QuoteRead:
    quote = schemas.QuoteRead.model_validate(view.quote)
    return quote.model_copy(update={"is_expired": view.is_expired})


@router.post("/quotes/calculate-item", response_model=schemas.PriceBreakdown)
def calculate_item(
    payload: schemas.CalculateItemRequest,
    db: Session = Depends(get_db),
):
    """Price a configuration without saving it."""
    result = quote_service.calculate_item_preview(db, payload)
    return schemas.PriceBreakdown.model_validate(result)


@router.post(
    "/quotes/items",
    response_model=schemas.AddItemResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_item(
    payload: schemas.AddItemRequest,
    db: Session = Depends(get_db),
    tenant: TenantSettings = Depends(get_tenant_settings),
    user_id: int = Depends(get_current_user_id),
):
    """Add a priced item to a draft quote, opening one when ``quote_id`` is omitted."""
    result = quote_service.add_item_to_quote(db, tenant, user_id, payload)
    return schemas.AddItemResponse(
        item_id=result.item_id,
        quote_id=result.quote_id,
        subtotal=result.subtotal,
    )


@router.post(
    "/quotes/from-cart",
    response_model=schemas.GenerateQuoteResponse,
    status_code=status.HTTP_201_CREATED,
)
def generate_from_cart(
    payload: schemas.GenerateQuoteRequest,
    db: Session = Depends(get_db),
    tenant: TenantSettings = Depends(get_tenant_settings),
    user_id: int = Depends(get_current_user_id),
):
    result = quote_service.generate_quote_from_cart(
        db,
        tenant,
        user_id,
        payload.cart_items,
        payload.project_address,
    )
    return schemas.GenerateQuoteResponse(
        quote_id=result.quote_id,
        valid_until=result.valid_until,
        total=result.total,
        item_count=result.item_count,
    )


@router.post("/quotes/{quote_id}/send", response_model=schemas.SendToVendorResponse)
def send_to_vendor(
    quote_id: int,
    payload: schemas.SendToVendorRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    tenant: TenantSettings = Depends(get_tenant_settings),
    user_id: int = Depends(get_current_user_id),
):
    """Freeze the quote as sent; the vendor email goes out after the response."""

    def _schedule_notification(sent: quote_service.SendQuoteResult) -> None:
        background_tasks.add_task(notify_vendor, sent, tenant)

    result = quote_service.send_quote_to_vendor(
        db,
        quote_id,
        user_id,
        payload.contact_phone,
        payload.contact_email,
        on_sent=_schedule_notification,
    )
    logger.info("Quote %s sent to vendor by user %s", result.id, user_id)
    return schemas.SendToVendorResponse(
        id=result.id,
        status=result.status,
        sent_at=result.sent_at,
        total=result.total,
        currency=result.currency,
        contact_phone=result.contact_phone,
        contact_email=result.contact_email,
    )


@router.post("/quotes/{quote_id}/cancel", response_model=schemas.QuoteRead)
def cancel(
    quote_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return _quote_read(quote_service.cancel_quote(db, quote_id, user_id))


@router.get("/quotes/{quote_id}", response_model=schemas.QuoteRead)
def read_quote(
    quote_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return _quote_read(quote_service.get_quote(db, quote_id, user_id))


@router.get("/quotes", response_model=schemas.QuoteListResponse)
def list_quotes(
    status_filter: Optional[models.QuoteStatus] = Query(default=None, alias="status"),
    include_expired: bool = Query(default=False),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=quote_service.DEFAULT_PAGE_SIZE, ge=1, le=quote_service.MAX_PAGE_SIZE),
    search: Optional[str] = Query(default=None, max_length=100),
    sort_by: Literal["created_at", "sent_at", "valid_until", "total"] = Query(default="created_at"),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    result = quote_service.list_user_quotes(
        db,
        user_id,
        status=status_filter,
        include_expired=include_expired,
        page=page,
        limit=limit,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return schemas.QuoteListResponse(
        quotes=[
            schemas.QuoteSummary.model_validate(row, from_attributes=True)
            for row in result.quotes
        ],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
        has_next_page=result.has_next_page,
        has_previous_page=result.has_previous_page,
    )
