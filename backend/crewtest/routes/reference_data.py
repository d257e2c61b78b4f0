"""
Reference data routes - positions, ship types, categories and users.

Lists are readable by any known user; creation is admin-only.
"""

import uuid
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from crewtest.auth import get_current_user, require_admin
from crewtest.database import get_db
from crewtest.logging_config import get_logger, log_with_context
from crewtest.models.reference import Category, Position, ShipType
from crewtest.models.user import User
from crewtest.schemas import ReferenceCreate, UserCreate
from crewtest.serializers import serialize_reference, serialize_user
from crewtest.services.question_bank import get_or_404

router = APIRouter()
logger = get_logger("http")

REFERENCE_TABLES = {
    "positions": Position,
    "ship-types": ShipType,
    "categories": Category,
}


def _list(db: Session, model) -> list:
    return [serialize_reference(r) for r in db.query(model).order_by(model.name).all()]


def _create(db: Session, model, payload: ReferenceCreate) -> dict:
    record = model(id=str(uuid.uuid4()), name=payload.name, description=payload.description)
    db.add(record)
    db.commit()
    db.refresh(record)
    log_with_context(logger, "INFO", "Created {} '{}'".format(model.__tablename__, record.name),
                     context={"id": str(record.id)})
    return serialize_reference(record)


@router.get("/api/reference/positions")
def list_positions(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return _list(db, Position)


@router.post("/api/reference/positions", status_code=201)
def create_position(payload: ReferenceCreate, db: Session = Depends(get_db),
                    admin: User = Depends(require_admin)):
    return _create(db, Position, payload)


@router.get("/api/reference/ship-types")
def list_ship_types(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return _list(db, ShipType)


@router.post("/api/reference/ship-types", status_code=201)
def create_ship_type(payload: ReferenceCreate, db: Session = Depends(get_db),
                     admin: User = Depends(require_admin)):
    return _create(db, ShipType, payload)


@router.get("/api/reference/categories")
def list_categories(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return _list(db, Category)


@router.post("/api/reference/categories", status_code=201)
def create_category(payload: ReferenceCreate, db: Session = Depends(get_db),
                    admin: User = Depends(require_admin)):
    return _create(db, Category, payload)


@router.get("/api/admin/users")
def list_users(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return [serialize_user(u) for u in db.query(User).order_by(User.name).all()]


@router.post("/api/admin/users", status_code=201)
def create_user(payload: UserCreate, db: Session = Depends(get_db),
                admin: User = Depends(require_admin)):
    if payload.position_id:
        get_or_404(db, Position, payload.position_id, "Position")
    if payload.ship_type_id:
        get_or_404(db, ShipType, payload.ship_type_id, "Ship type")

    user = User(id=str(uuid.uuid4()), **payload.model_dump())
    db.add(user)
    db.commit()
    db.refresh(user)
    log_with_context(logger, "INFO", "Created {} user".format(user.role),
                     context={"user_id": str(user.id)})
    return serialize_user(user)
