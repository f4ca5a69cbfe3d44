import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .broadcast import RealtimeHub
from .config import CORS_ORIGINS, LOG_LEVEL, RATE_LIMIT_PER_MINUTE
from .db import engine
from .errors import MarketplaceError
from .middleware import RequestLoggingMiddleware, RateLimitMiddleware
from .rabbitmq import RabbitPublisher
from .redis_client import redis_client
from .routes import router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("marketplace")

OPENAPI_TAGS = [
    {"name": "System", "description": "Operational endpoints."},
    {"name": "Bookings", "description": "Booking creation and lifecycle transitions."},
    {"name": "Messages", "description": "Per-booking message threads."},
    {"name": "Payments", "description": "Simulated payment settlement."},
    {"name": "Reviews", "description": "Post-completion reviews and worker ratings."},
    {"name": "Notifications", "description": "Per-user notification inbox."},
    {"name": "Admin", "description": "Status overrides and worker verification."},
]

app = FastAPI(title="Marketplace Service", openapi_tags=OPENAPI_TAGS)

app.add_middleware(RateLimitMiddleware, client=redis_client, max_per_minute=RATE_LIMIT_PER_MINUTE)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)

app.state.hub = RealtimeHub(mirror=RabbitPublisher())


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(
        "unhandled error on %s %s (request_id=%s)",
        request.method,
        request.url.path,
        getattr(request.state, "request_id", None),
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health", tags=["System"])
async def health():
    mirror = app.state.hub.mirror
    return {
        "status": "ok",
        "service": "marketplace-service",
        "events_enabled": bool(mirror and mirror.enabled),
        "realtime_clients": app.state.hub.client_count,
    }


@app.on_event("startup")
async def startup():
    # Never crash the service if RabbitMQ is temporarily unavailable
    mirror = app.state.hub.mirror
    try:
        if mirror:
            await mirror.connect()
    except Exception as e:
        logger.warning("RabbitMQ connect failed at startup; continuing without event mirror: %s", e)


@app.on_event("shutdown")
async def shutdown():
    try:
        await app.state.hub.close()
    except Exception:
        logger.exception("realtime hub shutdown failed")
    if redis_client is not None:
        try:
            await redis_client.aclose()
        except Exception:
            logger.exception("redis client shutdown failed")
    await engine.dispose()
