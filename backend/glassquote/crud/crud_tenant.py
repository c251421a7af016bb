from typing import Optional
import logging

from sqlalchemy.orm import Session

from .. import models
from ..core.config import settings
from ..services.quote_metadata import TenantSettings

logger = logging.getLogger(__name__)


def get_tenant_config(db: Session) -> Optional[models.TenantConfig]:
    return db.query(models.TenantConfig).order_by(models.TenantConfig.id).first()


def get_tenant_settings(db: Session) -> TenantSettings:
    """Resolve the business configuration quotes are created with.

    Falls back to environment settings when the tenant row has not been
    seeded yet.
    """
    config = get_tenant_config(db)
    if config is None:
        logger.debug("No tenant config row; using settings defaults")
        return TenantSettings(
            currency=settings.DEFAULT_CURRENCY,
            quote_validity_days=settings.QUOTE_VALIDITY_DAYS,
            business_name=settings.BUSINESS_NAME,
            vendor_email=settings.VENDOR_EMAIL or None,
        )
    return TenantSettings(
        currency=(config.currency or settings.DEFAULT_CURRENCY).upper(),
        quote_validity_days=config.quote_validity_days or settings.QUOTE_VALIDITY_DAYS,
        business_name=config.business_name or settings.BUSINESS_NAME,
        vendor_email=config.contact_email or settings.VENDOR_EMAIL or None,
    )
