import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi import _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware

from venue_reservations.core.config import settings
from venue_reservations.core.errors import AppError
from venue_reservations.core.logging import setup_logging
from venue_reservations.core.rate_limiter import limiter
from venue_reservations.middleware.request_logger import RequestLoggerMiddleware

from venue_reservations.api.health import router as health_router
from venue_reservations.api.availability import router as availability_router
from venue_reservations.api.units import router as units_router
from venue_reservations.api.areas import router as areas_router
from venue_reservations.api.blocks import router as blocks_router
from venue_reservations.api.public import router as public_router
from venue_reservations.api.guests import router as guests_router
from venue_reservations.api.reservations import router as reservations_router
from venue_reservations.api.audit import router as audit_router


# -------------------------------------------------
# Logging
# -------------------------------------------------

setup_logging()
logger = logging.getLogger(__name__)

logger.info("Starting application")


# -------------------------------------------------
# FastAPI
# -------------------------------------------------

app = FastAPI(
    title="Venue Reservations",
    description="Reservations with per-period area capacity, blocks and QR check-in",
    version="0.1.0",
)

# -------------------------------------------------
# Rate Limiting (slowapi)
# -------------------------------------------------
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(RequestLoggerMiddleware)


# -------------------------------------------------
# Errors
# -------------------------------------------------


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": list(err.get("loc", [])), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": {"code": "VALIDATION", "message": "Invalid request", "details": details}},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    error = {"code": "INTERNAL", "message": "Internal server error"}
    if settings.is_development:
        error["detail"] = str(exc)
        error["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return JSONResponse(status_code=500, content={"error": error})


app.include_router(health_router)
app.include_router(availability_router)
app.include_router(units_router)
app.include_router(areas_router)
app.include_router(blocks_router)
# Public routes first: "/v1/reservations/public/..." must not fall into "/{reservation_id}"
app.include_router(public_router)
app.include_router(guests_router)
app.include_router(reservations_router)
app.include_router(audit_router)


# -------------------------------------------------
# Lifecycle
# -------------------------------------------------


@app.on_event("startup")
async def on_startup():
    logger.info("FastAPI startup")

    from venue_reservations.database import init_db

    await init_db()


@app.on_event("shutdown")
async def on_shutdown():
    logger.info("FastAPI shutdown")

    from venue_reservations.database import engine

    await engine.dispose()
