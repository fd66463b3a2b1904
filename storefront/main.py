import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.core.config import CORS_ORIGINS, DATABASE_URL
from storefront.core.database import Base, engine
from storefront.core.errors import InvalidField, RateLimited, StorefrontError
from storefront.core.logging_setup import configure_logging
from storefront.core.startup_checks import ensure_migrations_applied, validate_database_environment
from storefront.middleware.observability import ObservabilityMiddleware
import storefront.models  # registra los modelos antes del create_all

from storefront.routers.catalog import router as catalog_router
from storefront.routers.orders import router as orders_router
from storefront.routers.settings import router as settings_router

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini")))


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        # SQLite en desarrollo: tablas directas. En producción, migraciones.
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        else:
            ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="Storefront API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)


@app.exception_handler(StorefrontError)
async def storefront_error_handler(_: Request, exc: StorefrontError):
    headers = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_: Request, exc: RequestValidationError):
    errors = exc.errors()
    field = None
    if errors:
        location = [str(part) for part in errors[0].get("loc", ()) if part != "body"]
        field = ".".join(location) or None
    error = InvalidField("Datos inválidos en la solicitud", field=field)
    return JSONResponse(status_code=400, content=error.to_dict())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled error endpoint=%s", request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Error interno", "code": "INTERNAL_ERROR"})


app.include_router(catalog_router)
app.include_router(orders_router)
app.include_router(settings_router)


@app.get("/health")
def health():
    return {"status": "ok"}
