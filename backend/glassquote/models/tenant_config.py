from sqlalchemy import Column, Integer, String

from .base import BaseModel

DEFAULT_QUOTE_VALIDITY_DAYS = 15


class TenantConfig(BaseModel):
    """Single-row business configuration (currency, quote validity, contact)."""

    __tablename__ = "tenant_configs"

    id = Column(Integer, primary_key=True, default=1)
    business_name = Column(String(100), nullable=False)
    currency = Column(String(3), nullable=False)  # ISO 4217 currency code
    quote_validity_days = Column(Integer, nullable=False, default=DEFAULT_QUOTE_VALIDITY_DAYS)
    locale = Column(String(10), nullable=False, default="es-CO")
    timezone = Column(String(50), nullable=False, default="America/Bogota")
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(30), nullable=True)
