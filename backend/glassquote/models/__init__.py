from .catalog import Model, ModelStatus, GlassType, Service, ServiceType, ServiceUnit
from .quote import (
    Quote,
    QuoteStatus,
    QuoteItem,
    QuoteItemService,
    Adjustment,
    AdjustmentSign,
)
from .tenant_config import TenantConfig

__all__ = [
    "Model",
    "ModelStatus",
    "GlassType",
    "Service",
    "ServiceType",
    "ServiceUnit",
    "Quote",
    "QuoteStatus",
    "QuoteItem",
    "QuoteItemService",
    "Adjustment",
    "AdjustmentSign",
    "TenantConfig",
]
