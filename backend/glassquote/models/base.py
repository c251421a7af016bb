from datetime import datetime

from sqlalchemy import Column, DateTime

from ..database import Base


def _utcnow() -> datetime:
    return datetime.utcnow()


class BaseModel(Base):
    """Abstract parent of every table; stamps creation and last update in UTC."""

    __abstract__ = True

    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={getattr(self, 'id', None)}>"
