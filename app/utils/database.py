from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from app.core.config import DATABASE_URL, DB_ECHO, DB_POOL_SIZE, DB_MAX_OVERFLOW

Base = declarative_base()


def build_engine(url: str = DATABASE_URL, **kwargs) -> Engine:
    """Create an engine; pool settings only apply to server databases."""
    options = {"echo": DB_ECHO, "future": True}
    if not url.startswith("sqlite"):
        options.update(
            pool_pre_ping=True,  # drops dead connections automatically
            pool_size=DB_POOL_SIZE,
            max_overflow=DB_MAX_OVERFLOW,
        )
    options.update(kwargs)
    return create_engine(url, **options)


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind, future=True)


# ---------------------
# Default engine / session for the HTTP layer.
# Services never import these; they receive a Session.
# ---------------------
engine = build_engine()
SessionLocal = build_session_factory(engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
