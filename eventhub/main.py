from contextlib import asynccontextmanager
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

# IMPORTANT:
# This imports ALL models so SQLAlchemy registers tables + FKs correctly
import eventhub.models  # noqa: F401
from eventhub.core.config import settings
from eventhub.core.db import Base, engine
from eventhub.core.errors import MarketplaceError
from eventhub.core.logging_config import configure_logging

# Routers
from eventhub.routers.auth import router as auth_router
from eventhub.routers.users import router as users_router
from eventhub.routers.events import router as events_router
from eventhub.routers.transactions import router as transactions_router
from eventhub.routers.points import router as points_router
from eventhub.routers.dashboard import router as dashboard_router

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_TABLES:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")
    yield
    await engine.dispose()


app = FastAPI(title="eventhub", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=exc.error, details=str(exc))
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "details": str(exc)},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # auth dependencies and unknown routes
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": HTTPStatus(exc.status_code).phrase, "details": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()

    missing = [
        str(e["loc"][-1])
        for e in errors
        if e.get("type") == "missing" and len(e.get("loc", ())) > 1 and e["loc"][0] == "body"
    ]
    if missing:
        message = f"Missing required fields: {', '.join(missing)}"
    elif errors and all(e.get("type") in ("int_parsing", "int_type", "int_from_float") for e in errors):
        message = "Invalid numeric fields"
    else:
        message = "; ".join(
            f"{'.'.join(str(p) for p in e.get('loc', ())[1:]) or 'body'}: {e.get('msg')}" for e in errors
        )

    return JSONResponse(
        status_code=400,
        content={"error": message, "details": jsonable_encoder(errors)},
    )


@app.get("/health", tags=["System"])
async def health_check():
    return {"status": "healthy", "service": "eventhub"}


# Auth & users
app.include_router(auth_router)
app.include_router(users_router)

# Catalogue
app.include_router(events_router)

# Settlement & points
app.include_router(transactions_router)
app.include_router(points_router)

# Organizer dashboard
app.include_router(dashboard_router)
