import json
import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

logger = logging.getLogger("marketplace.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id

        start = time.perf_counter()
        try:
            response: Response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.error(json.dumps({
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status": 500,
                "duration_ms": round(duration_ms, 2),
            }))
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Id"] = request_id

        logger.info(json.dumps({
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round(duration_ms, 2),
            "user_sub": getattr(request.state, "user_sub", None),
            "user_roles": getattr(request.state, "user_roles", None),
        }))
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed one-minute window per identity, counted in redis. Fails open."""

    def __init__(self, app, client=None, max_per_minute: int = 120):
        super().__init__(app)
        self.client = client
        self.max_per_minute = max_per_minute

    async def dispatch(self, request: Request, call_next):
        if self.client is None:
            return await call_next(request)

        if request.url.path in ("/docs", "/openapi.json", "/health"):
            return await call_next(request)
        if request.url.path.startswith("/docs/"):
            return await call_next(request)

        ip = request.client.host if request.client else "unknown"
        user_sub = getattr(request.state, "user_sub", None)
        identity = f"user:{user_sub}" if user_sub else f"ip:{ip}"

        epoch_minute = int(time.time() // 60)
        key = f"rl:{identity}:{epoch_minute}"

        try:
            count = await self.client.incr(key)
            if count == 1:
                await self.client.expire(key, 70)
        except Exception as e:
            logger.warning("rate limiter unavailable, allowing request: %s", e)
            return await call_next(request)

        if count > self.max_per_minute:
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests, please try again later."},
            )

        return await call_next(request)
