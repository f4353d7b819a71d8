from decimal import Decimal, InvalidOperation

from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.orm import Session
from typing import Optional

from app.core.errors import ConflictError, NotFoundError, PaymentValidationError
from app.utils.database import get_db
from app.models.system_settings_model import SystemSetting
from app.schemas.settings_schema import SettingPatch, SettingCreate, SettingOut

router = APIRouter(prefix="/settings", tags=["Settings"])

# keys read by the penalty policy must stay numeric
NUMERIC_KEYS = {"PENALTY_FLAT_AMOUNT", "PENALTY_THRESHOLD", "PENALTY_RATE", "PENALTY_CUTOFF_HOUR"}


def _check_value(key: str, value: str) -> str:
    """Validate a policy value and return it in the form it is stored."""
    value = str(value).strip()
    if key not in NUMERIC_KEYS:
        return value
    try:
        number = Decimal(value)
    except InvalidOperation:
        raise PaymentValidationError(f"{key} must be numeric", key=key, value=value)
    if not number.is_finite() or number < 0:
        raise PaymentValidationError(f"{key} out of range", key=key, value=value)
    if key == "PENALTY_CUTOFF_HOUR":
        if number > 23 or number != number.to_integral_value():
            raise PaymentValidationError(f"{key} must be a whole hour between 0 and 23", key=key, value=value)
        # "14.0" and "14" are the same hour
        return str(int(number))
    return value


@router.get("", response_model=list[SettingOut])
def list_settings(db: Session = Depends(get_db)):
    return db.query(SystemSetting).order_by(SystemSetting.key.asc()).all()


@router.post("", response_model=SettingOut, status_code=status.HTTP_201_CREATED)
def create_setting(
        payload: SettingCreate,
        x_user_id: Optional[int] = Header(None),
        db: Session = Depends(get_db),
):
    existing = db.get(SystemSetting, payload.key)
    if existing:
        raise ConflictError("Setting key already exists", key=payload.key)

    value = _check_value(payload.key, payload.value)

    obj = SystemSetting(
        key=payload.key,
        value=value,
        description=payload.description.strip(),
        updated_by=x_user_id,
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


@router.patch("", response_model=SettingOut)
def update_setting(
        payload: SettingPatch,
        x_user_id: Optional[int] = Header(None),
        db: Session = Depends(get_db),
):
    obj = db.get(SystemSetting, payload.key)
    if not obj:
        raise NotFoundError("Setting not found", key=payload.key)

    obj.value = _check_value(obj.key, payload.value)
    obj.updated_by = x_user_id
    if payload.description is not None:
        obj.description = payload.description.strip()
    db.commit()
    db.refresh(obj)
    return obj
