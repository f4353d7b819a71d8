from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import app.models  # ensure models are registered
from app.core import config
from app.core.errors import register_exception_handlers
from app.core.logging_config import setup_logging
from app.services.chart_of_accounts import seed_chart_of_accounts
from app.utils.database import engine, Base, SessionLocal

from app.routers import (
    payments_router,
    loans_router,
    ledger_router,
    settings_router,
)

logger = setup_logging(config.LOG_LEVEL, config.LOG_FORMAT)

app = FastAPI(title="Loan Collections API", version="1.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Routers
app.include_router(payments_router.router)
app.include_router(loans_router.router)
app.include_router(ledger_router.router)
app.include_router(settings_router.router)


@app.on_event("startup")
def on_startup():
    # DEV ONLY – schema is provisioned by migrations in production
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        seed_chart_of_accounts(db)
        db.commit()
    finally:
        db.close()
    logger.info("Chart of accounts ready")


@app.get("/")
def root():
    return {"message": "Loan collections backend is running"}
