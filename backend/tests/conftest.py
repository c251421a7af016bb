import os

# Engine and settings are built at import time; point them at an in-memory DB
os.environ.setdefault("PYTEST_RUN", "1")
os.environ.setdefault("ENV_FILE", os.devnull)

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from glassquote.models import GlassType, Model, ModelStatus, Service, ServiceType, ServiceUnit
from glassquote.models.base import BaseModel
from glassquote.services.quote_metadata import TenantSettings


def setup_db():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    BaseModel.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session_factory():
    return setup_db()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def tenant():
    return TenantSettings(
        currency="COP",
        quote_validity_days=15,
        business_name="Vidrios Test",
        vendor_email="ventas@example.com",
    )


@pytest.fixture
def catalog(db):
    """Published model from the worked pricing example plus services."""
    glass = GlassType(name="Templado 6mm", price_per_sqm=Decimal("20"))
    other_glass = GlassType(name="Laminado 8mm", price_per_sqm=Decimal("45"))
    db.add_all([glass, other_glass])
    db.flush()

    model = Model(
        name="Ventana corrediza",
        status=ModelStatus.PUBLISHED,
        base_price=Decimal("100"),
        cost_per_mm_width=Decimal("0.05"),
        cost_per_mm_height=Decimal("0.04"),
        accessory_price=Decimal("25"),
        min_width_mm=500,
        max_width_mm=3000,
        min_height_mm=500,
        max_height_mm=2500,
        compatible_glass_type_ids=[glass.id],
        glass_discount_width_mm=25,
        glass_discount_height_mm=25,
    )
    draft_model = Model(
        name="Puerta prototipo",
        status=ModelStatus.DRAFT,
        base_price=Decimal("300"),
        min_width_mm=600,
        max_width_mm=1200,
        min_height_mm=1800,
        max_height_mm=2400,
        compatible_glass_type_ids=[glass.id],
    )
    installation = Service(
        name="Instalación",
        type=ServiceType.FIXED,
        unit=ServiceUnit.UNIT,
        rate=Decimal("15"),
        minimum_billing_unit=Decimal("1"),
    )
    sealing = Service(
        name="Sellado",
        type=ServiceType.PERIMETER,
        unit=ServiceUnit.ML,
        rate=Decimal("2"),
        minimum_billing_unit=None,
    )
    cleaning = Service(
        name="Limpieza",
        type=ServiceType.AREA,
        unit=ServiceUnit.SQM,
        rate=Decimal("4"),
        minimum_billing_unit=Decimal("3"),
    )
    db.add_all([model, draft_model, installation, sealing, cleaning])
    db.commit()
    return {
        "model": model,
        "draft_model": draft_model,
        "glass": glass,
        "other_glass": other_glass,
        "installation": installation,
        "sealing": sealing,
        "cleaning": cleaning,
    }


@pytest.fixture
def client(session_factory, catalog):
    from glassquote.api.dependencies import get_db
    from glassquote.main import app

    def override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
