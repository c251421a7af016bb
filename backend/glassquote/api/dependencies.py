from typing import Optional

from fastapi import Depends, Header, status
from sqlalchemy.orm import Session

from ..crud import crud_tenant
from ..database import get_db
from ..services.quote_metadata import TenantSettings
from ..utils.errors import error_response


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> int:
    """Identify the caller from the ``X-User-Id`` header set by the auth proxy."""
    if not x_user_id:
        raise error_response(
            "Could not validate credentials",
            {"x_user_id": "missing"},
            status.HTTP_401_UNAUTHORIZED,
        )
    try:
        user_id = int(x_user_id.strip())
    except ValueError:
        user_id = 0
    if user_id < 1:
        raise error_response(
            "Could not validate credentials",
            {"x_user_id": "invalid"},
            status.HTTP_401_UNAUTHORIZED,
        )
    return user_id


def get_tenant_settings(db: Session = Depends(get_db)) -> TenantSettings:
    return crud_tenant.get_tenant_settings(db)
