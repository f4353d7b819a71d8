from sqlalchemy.orm import Session

from app.models.system_settings_model import SystemSetting


def get_setting(db: Session, key: str, default: str) -> str:
    row = db.query(SystemSetting).filter(SystemSetting.key == key).first()
    return row.value if row else default


def get_bool_setting(db: Session, key: str, default: bool) -> bool:
    value = get_setting(db, key, "true" if default else "false")
    return str(value).strip().lower() in ("1", "true", "yes", "on")
