from typing import Iterable, Optional

from sqlalchemy.orm import Session

from .. import models


def get_model(db: Session, model_id: int) -> Optional[models.Model]:
    return db.query(models.Model).filter(models.Model.id == model_id).first()


def get_glass_type(db: Session, glass_type_id: int) -> Optional[models.GlassType]:
    return (
        db.query(models.GlassType)
        .filter(models.GlassType.id == glass_type_id)
        .first()
    )


def get_services(db: Session, service_ids: Iterable[int]) -> dict[int, models.Service]:
    """Return the services that exist among ``service_ids``, keyed by id."""
    ids = list(dict.fromkeys(service_ids))
    if not ids:
        return {}
    rows = db.query(models.Service).filter(models.Service.id.in_(ids)).all()
    return {row.id: row for row in rows}
