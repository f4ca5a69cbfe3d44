import os

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is not set")

DATABASE_ECHO = (os.getenv("DATABASE_ECHO") or "false").lower() in ("1", "true", "yes")

JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM") or "HS256"

if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET environment variable is not set")

REDIS_URL = os.getenv("REDIS_URL")  # optional, rate limiting is off without it
RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE") or "120")

RABBIT_URL = os.getenv("RABBIT_URL")  # optional, mirrors realtime events when set
EXCHANGE_NAME = "domain_events"

# Simulated gateway round-trip for payment settlement
PAYMENT_DELAY_SECONDS = float(os.getenv("PAYMENT_DELAY_SECONDS") or "1.5")

CORS_ORIGINS = [
    o.strip()
    for o in (os.getenv("CORS_ORIGINS") or "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000").split(",")
    if o.strip()
]

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").upper()
