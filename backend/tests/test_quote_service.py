from datetime import datetime, timedelta
from decimal import Decimal
import random

import pytest
from freezegun import freeze_time

from glassquote import models
from glassquote.crud import crud_quote
from glassquote.schemas import AddItemRequest, AdjustmentIn, CartItem, ProjectAddress, ServiceSelection
from glassquote.services import quote_service
from glassquote.utils.errors import (
    InternalError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
)

OWNER = 7
STRANGER = 8

ADDRESS = ProjectAddress(
    project_name="Casa Rivera",
    project_street="Calle 10 # 4-21",
    project_city="Medellín",
    project_state="Antioquia",
)


def cart_item(catalog, subtotal="262.55", name="Ventana sala"):
    return CartItem(
        model_id=catalog["model"].id,
        glass_type_id=catalog["glass"].id,
        name=name,
        width_mm=1000,
        height_mm=1500,
        subtotal=Decimal(subtotal),
    )


def item_request(catalog, **overrides):
    values = dict(
        model_id=catalog["model"].id,
        glass_type_id=catalog["glass"].id,
        width_mm=1000,
        height_mm=1500,
    )
    values.update(overrides)
    return AddItemRequest(**values)


def add_item(db, tenant, catalog, user_id=OWNER, **overrides):
    return quote_service.add_item_to_quote(db, tenant, user_id, item_request(catalog, **overrides))


def test_generate_quote_from_cart_copies_locked_subtotals(db, tenant, catalog):
    now = datetime(2024, 4, 1, 9, 0)
    items = [cart_item(catalog, "262.55"), cart_item(catalog, "100.10", name="Ventana cocina")]

    result = quote_service.generate_quote_from_cart(db, tenant, OWNER, items, ADDRESS, now=now)

    assert result.item_count == 2
    assert result.total == Decimal("362.65")
    assert result.valid_until == datetime(2024, 4, 16, 9, 0)

    quote = crud_quote.get_quote(db, result.quote_id)
    assert quote.status == models.QuoteStatus.DRAFT
    assert quote.currency == "COP"
    assert quote.user_id == OWNER
    assert quote.project_city == "Medellín"
    assert [item.subtotal for item in quote.items] == [Decimal("262.55"), Decimal("100.10")]
    assert Decimal(quote.total) == crud_quote.sum_item_subtotals(db, quote.id)


def test_generate_quote_rejects_empty_cart(db, tenant, catalog):
    with pytest.raises(InvalidArgumentError):
        quote_service.generate_quote_from_cart(db, tenant, OWNER, [], ADDRESS)
    assert db.query(models.Quote).count() == 0


def test_generate_quote_rejects_oversized_cart(db, tenant, catalog):
    items = [cart_item(catalog) for _ in range(21)]
    with pytest.raises(InvalidArgumentError):
        quote_service.generate_quote_from_cart(db, tenant, OWNER, items, ADDRESS)
    assert db.query(models.Quote).count() == 0


def test_generate_quote_failure_is_wrapped_and_rolled_back(db, tenant, catalog, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(crud_quote, "create_quote_items", boom)

    with pytest.raises(InternalError) as exc:
        quote_service.generate_quote_from_cart(db, tenant, OWNER, [cart_item(catalog)], ADDRESS)

    assert exc.value.message == "Error al generar la cotización. Por favor intenta nuevamente."
    assert db.query(models.Quote).count() == 0


def test_add_item_opens_draft_quote(db, tenant, catalog):
    result = add_item(db, tenant, catalog)

    assert result.subtotal == Decimal("262.55")
    quote = crud_quote.get_quote(db, result.quote_id)
    assert quote.status == models.QuoteStatus.DRAFT
    assert quote.user_id == OWNER
    assert Decimal(quote.total) == Decimal("262.55")
    item = quote.items[0]
    assert item.id == result.item_id
    assert item.name == "Ventana corrediza"
    assert item.accessory_applied is True


def test_add_item_persists_services_and_adjustments(db, tenant, catalog):
    result = add_item(
        db,
        tenant,
        catalog,
        services=[ServiceSelection(service_id=catalog["installation"].id)],
        adjustments=[AdjustmentIn(concept="Descuento", sign="negative", unit="unit", value=Decimal("10"))],
        room_location="Sala",
    )

    assert result.subtotal == Decimal("267.55")
    item = crud_quote.get_quote(db, result.quote_id).items[0]
    assert item.room_location == "Sala"
    assert [(s.service_id, Decimal(s.amount)) for s in item.services] == [
        (catalog["installation"].id, Decimal("15.00"))
    ]
    assert len(item.adjustments) == 1
    adjustment = item.adjustments[0]
    assert adjustment.quote_item_id == item.id
    assert adjustment.concept == "Descuento"
    assert Decimal(adjustment.amount) == Decimal("-10.00")


def test_total_tracks_sum_of_items_after_each_addition(db, tenant, catalog):
    rng = random.Random(1234)
    services = [catalog["installation"], catalog["sealing"], catalog["cleaning"]]
    quote_id = None
    subtotals = []

    for _ in range(25):
        chosen = [s for s in services if rng.random() < 0.5]
        adjustments = [
            AdjustmentIn(
                concept=f"Ajuste {n}",
                sign=rng.choice(list(models.AdjustmentSign)),
                unit=rng.choice(list(models.ServiceUnit)),
                value=Decimal(rng.randint(0, 5000)) / 100,
            )
            for n in range(rng.randint(0, 2))
        ]
        surcharge = rng.choice([None, Decimal(rng.randint(0, 30))])
        result = add_item(
            db,
            tenant,
            catalog,
            quote_id=quote_id,
            width_mm=rng.randint(500, 3000),
            height_mm=rng.randint(500, 2500),
            services=[ServiceSelection(service_id=s.id) for s in chosen],
            adjustments=adjustments,
            color_surcharge_percentage=surcharge,
        )
        quote_id = result.quote_id
        subtotals.append(result.subtotal)

        quote = crud_quote.get_quote(db, quote_id)
        assert Decimal(quote.total) == sum(subtotals, Decimal("0"))
        assert Decimal(quote.total) == crud_quote.sum_item_subtotals(db, quote_id)

    assert len(crud_quote.get_quote(db, quote_id).items) == 25


def test_add_item_to_someone_elses_quote_is_forbidden(db, tenant, catalog):
    quote_id = add_item(db, tenant, catalog).quote_id

    with pytest.raises(PermissionDeniedError):
        add_item(db, tenant, catalog, user_id=STRANGER, quote_id=quote_id)


def test_add_item_to_someone_elses_sent_quote_is_still_forbidden(db, tenant, catalog):
    quote_id = add_item(db, tenant, catalog).quote_id
    quote_service.send_quote_to_vendor(db, quote_id, OWNER, "+57 300 1234567")

    with pytest.raises(PermissionDeniedError):
        add_item(db, tenant, catalog, user_id=STRANGER, quote_id=quote_id)


@pytest.mark.parametrize("finish", ["send", "cancel"])
def test_items_cannot_be_added_after_leaving_draft(db, tenant, catalog, finish):
    quote_id = add_item(db, tenant, catalog).quote_id
    if finish == "send":
        quote_service.send_quote_to_vendor(db, quote_id, OWNER, "+57 300 1234567")
    else:
        quote_service.cancel_quote(db, quote_id, OWNER)

    with pytest.raises(InvalidStateError):
        add_item(db, tenant, catalog, quote_id=quote_id)

    quote = crud_quote.get_quote(db, quote_id)
    assert quote.status != models.QuoteStatus.DRAFT
    assert len(quote.items) == 1


def test_add_item_to_missing_quote(db, tenant, catalog):
    with pytest.raises(NotFoundError):
        add_item(db, tenant, catalog, quote_id=12345)


def test_width_out_of_bounds_names_the_range(db, tenant, catalog):
    with pytest.raises(InvalidArgumentError) as exc:
        add_item(db, tenant, catalog, width_mm=400)
    assert exc.value.message == "Ancho debe estar entre 500mm y 3000mm"
    assert db.query(models.Quote).count() == 0


def test_height_out_of_bounds_names_the_range(db, tenant, catalog):
    with pytest.raises(InvalidArgumentError) as exc:
        add_item(db, tenant, catalog, height_mm=2600)
    assert exc.value.message == "Alto debe estar entre 500mm y 2500mm"


def test_incompatible_glass_rejected(db, tenant, catalog):
    with pytest.raises(InvalidArgumentError) as exc:
        add_item(db, tenant, catalog, glass_type_id=catalog["other_glass"].id)
    assert exc.value.message == "Tipo de vidrio no compatible con este modelo"


def test_unpublished_model_is_not_quotable(db, tenant, catalog):
    with pytest.raises(NotFoundError) as exc:
        add_item(db, tenant, catalog, model_id=catalog["draft_model"].id, width_mm=800, height_mm=2000)
    assert exc.value.message == "Modelo no encontrado o no disponible"


def test_unknown_service_rolls_back_new_quote(db, tenant, catalog):
    with pytest.raises(NotFoundError) as exc:
        add_item(db, tenant, catalog, services=[ServiceSelection(service_id=999)])

    assert exc.value.message == "Servicio 999 no encontrado"
    assert db.query(models.Quote).count() == 0
    assert db.query(models.QuoteItem).count() == 0


def test_calculate_item_preview_persists_nothing(db, catalog):
    request = item_request(
        catalog,
        services=[ServiceSelection(service_id=catalog["cleaning"].id)],
    )
    result = quote_service.calculate_item_preview(db, request)

    assert result.services[0].quantity == Decimal("3")
    assert result.subtotal == Decimal("274.55")
    assert db.query(models.Quote).count() == 0


@freeze_time("2024-06-01 10:00:00")
def test_send_quote_to_vendor(db, tenant, catalog):
    quote_id = add_item(db, tenant, catalog).quote_id
    notified = []

    result = quote_service.send_quote_to_vendor(
        db,
        quote_id,
        OWNER,
        " +57 300 1234567 ",
        "cliente@example.com",
        on_sent=notified.append,
    )

    assert result.status == "sent"
    assert result.sent_at == datetime(2024, 6, 1, 10, 0)
    assert result.total == Decimal("262.55")
    assert result.currency == "COP"
    assert result.contact_phone == "+57 300 1234567"
    assert notified == [result]

    quote = crud_quote.get_quote(db, quote_id)
    assert quote.status == models.QuoteStatus.SENT
    assert quote.sent_at == datetime(2024, 6, 1, 10, 0)
    assert quote.contact_email == "cliente@example.com"


def test_send_quote_without_items(db, tenant, catalog):
    quote = crud_quote.create_quote(
        db,
        user_id=OWNER,
        currency="COP",
        valid_until=datetime.utcnow() + timedelta(days=15),
    )
    db.commit()

    with pytest.raises(InvalidStateError) as exc:
        quote_service.send_quote_to_vendor(db, quote.id, OWNER, "+57 300 1234567")
    assert exc.value.message.startswith("La cotización no tiene items")


def test_send_quote_twice(db, tenant, catalog):
    quote_id = add_item(db, tenant, catalog).quote_id
    quote_service.send_quote_to_vendor(db, quote_id, OWNER, "+57 300 1234567")

    with pytest.raises(InvalidStateError) as exc:
        quote_service.send_quote_to_vendor(db, quote_id, OWNER, "+57 300 1234567")
    assert exc.value.message == "Solo se pueden enviar cotizaciones en estado borrador"


def test_send_someone_elses_quote(db, tenant, catalog):
    quote_id = add_item(db, tenant, catalog).quote_id

    with pytest.raises(PermissionDeniedError):
        quote_service.send_quote_to_vendor(db, quote_id, STRANGER, "+57 300 1234567")


def test_send_requires_contact_phone(db, tenant, catalog):
    quote_id = add_item(db, tenant, catalog).quote_id

    with pytest.raises(InvalidArgumentError):
        quote_service.send_quote_to_vendor(db, quote_id, OWNER, "   ")
    assert crud_quote.get_quote(db, quote_id).status == models.QuoteStatus.DRAFT


def test_failing_notification_does_not_undo_send(db, tenant, catalog, caplog):
    quote_id = add_item(db, tenant, catalog).quote_id

    def broken_hook(result):
        raise ConnectionError("smtp down")

    result = quote_service.send_quote_to_vendor(
        db, quote_id, OWNER, "+57 300 1234567", on_sent=broken_hook
    )

    assert result.status == "sent"
    assert crud_quote.get_quote(db, quote_id).status == models.QuoteStatus.SENT
    assert "Post-send hook failed" in caplog.text


def test_lost_race_on_status_change_is_invalid_state(db, tenant, catalog, monkeypatch):
    quote_id = add_item(db, tenant, catalog).quote_id
    monkeypatch.setattr(crud_quote, "transition_status", lambda *args, **kwargs: 0)
    notified = []

    with pytest.raises(InvalidStateError):
        quote_service.send_quote_to_vendor(
            db, quote_id, OWNER, "+57 300 1234567", on_sent=notified.append
        )
    assert notified == []


def test_cancel_quote(db, tenant, catalog):
    quote_id = add_item(db, tenant, catalog).quote_id

    view = quote_service.cancel_quote(db, quote_id, OWNER)

    assert view.quote.status == models.QuoteStatus.CANCELED
    with pytest.raises(InvalidStateError):
        quote_service.cancel_quote(db, quote_id, OWNER)
    with pytest.raises(InvalidStateError):
        quote_service.send_quote_to_vendor(db, quote_id, OWNER, "+57 300 1234567")


def test_get_quote_checks_owner(db, tenant, catalog):
    quote_id = add_item(db, tenant, catalog).quote_id

    view = quote_service.get_quote(db, quote_id, OWNER)
    assert view.quote.id == quote_id
    assert view.is_expired is False

    with pytest.raises(PermissionDeniedError):
        quote_service.get_quote(db, quote_id, STRANGER)
    with pytest.raises(NotFoundError):
        quote_service.get_quote(db, 999, OWNER)


def test_get_quote_reports_expiry(db, tenant, catalog):
    created = datetime(2024, 1, 1)
    quote_id = add_item(db, tenant, catalog, quote_id=None).quote_id
    crud_quote.get_quote(db, quote_id).valid_until = created + timedelta(days=15)
    db.commit()

    view = quote_service.get_quote(db, quote_id, OWNER, now=datetime(2024, 2, 1))
    assert view.is_expired is True


def test_list_user_quotes_paginates_newest_first(db, tenant, catalog):
    ids = [
        quote_service.generate_quote_from_cart(db, tenant, OWNER, [cart_item(catalog)], ADDRESS).quote_id
        for _ in range(3)
    ]
    quote_service.generate_quote_from_cart(db, tenant, STRANGER, [cart_item(catalog)], ADDRESS)

    first = quote_service.list_user_quotes(db, OWNER, page=1, limit=2)
    assert first.total == 3
    assert first.total_pages == 2
    assert first.has_next_page is True
    assert first.has_previous_page is False
    assert [q.id for q in first.quotes] == [ids[2], ids[1]]
    assert first.quotes[0].item_count == 1
    assert first.quotes[0].project_name == "Casa Rivera"

    second = quote_service.list_user_quotes(db, OWNER, page=2, limit=2)
    assert [q.id for q in second.quotes] == [ids[0]]
    assert second.has_next_page is False
    assert second.has_previous_page is True


def test_list_user_quotes_filters(db, tenant, catalog):
    now = datetime(2024, 3, 1)
    old_id = quote_service.generate_quote_from_cart(
        db, tenant, OWNER, [cart_item(catalog)], ADDRESS, now=now - timedelta(days=30)
    ).quote_id
    sent_id = quote_service.generate_quote_from_cart(
        db, tenant, OWNER, [cart_item(catalog)], ADDRESS, now=now
    ).quote_id
    quote_service.send_quote_to_vendor(db, sent_id, OWNER, "+57 300 1234567")

    current = quote_service.list_user_quotes(db, OWNER, now=now)
    assert [q.id for q in current.quotes] == [sent_id]

    everything = quote_service.list_user_quotes(db, OWNER, include_expired=True, now=now)
    assert {q.id for q in everything.quotes} == {old_id, sent_id}
    assert {q.id: q.is_expired for q in everything.quotes}[old_id] is True

    sent = quote_service.list_user_quotes(
        db, OWNER, status=models.QuoteStatus.SENT, include_expired=True, now=now
    )
    assert [q.id for q in sent.quotes] == [sent_id]


def test_list_limit_is_capped(db, tenant, catalog):
    page = quote_service.list_user_quotes(db, OWNER, limit=500)
    assert page.limit == 100
    assert page.total == 0
    assert page.total_pages == 0


def test_list_user_quotes_search_matches_project_fields(db, tenant, catalog):
    rivera = quote_service.generate_quote_from_cart(db, tenant, OWNER, [cart_item(catalog)], ADDRESS).quote_id
    norte = quote_service.generate_quote_from_cart(
        db,
        tenant,
        OWNER,
        [cart_item(catalog)],
        ADDRESS.model_copy(
            update={"project_name": "Oficina Norte", "project_street": "Carrera 80 # 12-3", "project_city": "Cali"}
        ),
    ).quote_id
    bodega = quote_service.generate_quote_from_cart(
        db,
        tenant,
        OWNER,
        [cart_item(catalog)],
        ADDRESS.model_copy(
            update={"project_name": "Bodega_Sur", "project_street": "Avenida 68", "project_city": "Bogota"}
        ),
    ).quote_id

    def ids(search):
        return {q.id for q in quote_service.list_user_quotes(db, OWNER, search=search).quotes}

    assert ids("rivera") == {rivera}
    assert ids("CARRERA 80") == {norte}
    assert ids("cali") == {norte}
    assert ids("_") == {bodega}
    assert ids("%") == set()
    assert ids("   ") == {rivera, norte, bodega}
    assert quote_service.list_user_quotes(db, OWNER, search="rivera").total == 1


def _dated_quote(db, tenant, catalog, created, subtotal, sent=None):
    with freeze_time(created):
        quote_id = quote_service.generate_quote_from_cart(
            db, tenant, OWNER, [cart_item(catalog, subtotal)], ADDRESS, now=created
        ).quote_id
    if sent is not None:
        with freeze_time(sent):
            quote_service.send_quote_to_vendor(db, quote_id, OWNER, "+57 300 1234567", now=sent)
    return quote_id


@pytest.mark.parametrize(
    "sort_by, sort_order, expected",
    [
        ("created_at", "desc", ["second", "third", "first"]),
        ("created_at", "asc", ["first", "third", "second"]),
        ("total", "desc", ["first", "third", "second"]),
        ("total", "asc", ["second", "third", "first"]),
        ("valid_until", "asc", ["first", "third", "second"]),
        ("sent_at", "desc", ["third", "second", "first"]),
        ("sent_at", "asc", ["second", "third", "first"]),
    ],
)
def test_list_user_quotes_sorting(db, tenant, catalog, sort_by, sort_order, expected):
    quotes = {
        "first": _dated_quote(db, tenant, catalog, datetime(2024, 1, 1), "300.00"),
        "second": _dated_quote(
            db, tenant, catalog, datetime(2024, 1, 3), "100.00", sent=datetime(2024, 1, 4)
        ),
        "third": _dated_quote(
            db, tenant, catalog, datetime(2024, 1, 2), "200.00", sent=datetime(2024, 1, 5)
        ),
    }

    page = quote_service.list_user_quotes(
        db, OWNER, sort_by=sort_by, sort_order=sort_order, now=datetime(2024, 1, 10)
    )

    assert [q.id for q in page.quotes] == [quotes[name] for name in expected]


def test_list_user_quotes_rejects_unknown_sort(db, tenant, catalog):
    with pytest.raises(InvalidArgumentError) as exc:
        quote_service.list_user_quotes(db, OWNER, sort_by="project_name")
    assert exc.value.field_errors == {"sort_by": "project_name"}

    with pytest.raises(InvalidArgumentError) as exc:
        quote_service.list_user_quotes(db, OWNER, sort_order="sideways")
    assert exc.value.field_errors == {"sort_order": "sideways"}
