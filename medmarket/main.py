import logging
import os

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medmarket.api.endpoints import admin, auth, dashboard, deliveries, orders, pharmacies, products, profiles
from medmarket.db import engine, get_session
from medmarket.models import Base
from medmarket.services.exceptions import MarketplaceError, wrap_exception

logger = logging.getLogger(__name__)

app = FastAPI(title="MedMarket")

app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(profiles.router, prefix="/api/profiles", tags=["Profiles"])
app.include_router(pharmacies.router, prefix="/api/pharmacies", tags=["Pharmacies"])
app.include_router(products.router, prefix="/api/products", tags=["Products"])
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(deliveries.router, prefix="/api/deliveries", tags=["Deliveries"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"[API] {request.method} {request.url.path} failed: {exc.error_code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    wrapped = wrap_exception(exc, path=request.url.path)
    logger.error(f"[API] {request.method} {request.url.path} database error: {exc}")
    return JSONResponse(status_code=wrapped.status_code, content={"error": wrapped.to_dict()})


@app.on_event("startup")
def on_startup() -> None:
    # Alembic 사용을 권장하지만 로컬 개발 편의를 위해 유지
    if os.getenv("DB_AUTO_CREATE_TABLES", "").strip() in ("1", "true", "TRUE", "yes", "YES"):
        Base.metadata.create_all(bind=engine)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/db/ping")
def db_ping(session: Session = Depends(get_session)) -> dict:
    value = session.execute(text("SELECT 1")).scalar_one()
    return {"ok": value == 1}
