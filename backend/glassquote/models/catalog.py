# backend/glassquote/models/catalog.py
from sqlalchemy import Column, Integer, String, Numeric, JSON
from .base import BaseModel
from .types import LowercaseEnum
import enum


class ModelStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class ServiceType(str, enum.Enum):
    """How a service's natural quantity is measured."""

    AREA = "area"
    PERIMETER = "perimeter"
    FIXED = "fixed"


class ServiceUnit(str, enum.Enum):
    SQM = "sqm"
    ML = "ml"
    UNIT = "unit"


class Model(BaseModel):
    """A window/door template: pricing parameters plus dimensional bounds."""

    __tablename__ = "glass_models"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    status = Column(LowercaseEnum(ModelStatus), nullable=False, default=ModelStatus.DRAFT)

    base_price = Column(Numeric(12, 2), nullable=False)
    cost_per_mm_width = Column(Numeric(12, 4), nullable=False, default=0)
    cost_per_mm_height = Column(Numeric(12, 4), nullable=False, default=0)
    accessory_price = Column(Numeric(12, 2), nullable=True)

    min_width_mm = Column(Integer, nullable=False)
    max_width_mm = Column(Integer, nullable=False)
    min_height_mm = Column(Integer, nullable=False)
    max_height_mm = Column(Integer, nullable=False)

    # Glass type ids this model accepts
    compatible_glass_type_ids = Column(JSON, nullable=False, default=list)
    # Millimetres trimmed from each side before computing the glass area
    glass_discount_width_mm = Column(Integer, nullable=False, default=0)
    glass_discount_height_mm = Column(Integer, nullable=False, default=0)


class GlassType(BaseModel):
    __tablename__ = "glass_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    price_per_sqm = Column(Numeric(12, 2), nullable=False)


class Service(BaseModel):
    """Chargeable add-on such as installation or sealing."""

    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    type = Column(LowercaseEnum(ServiceType), nullable=False)
    unit = Column(LowercaseEnum(ServiceUnit), nullable=False)
    rate = Column(Numeric(12, 2), nullable=False)
    minimum_billing_unit = Column(Numeric(12, 2), nullable=True)
