import os

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)
REDIS_DB = int(os.getenv("REDIS_DB", 0))

_REDIS_AUTH = f":{REDIS_PASSWORD}@" if REDIS_PASSWORD else ""
REDIS_URL = os.getenv("REDIS_URL", f"redis://{_REDIS_AUTH}{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}")

# Upper bound on any single store round trip
REDIS_TIMEOUT_SECONDS = float(os.getenv("REDIS_TIMEOUT_SECONDS", 5))

ROOM_TTL_SECONDS = int(os.getenv("ROOM_TTL_SECONDS", 24 * 60 * 60))
SYNC_INTERVAL_SECONDS = float(os.getenv("SYNC_INTERVAL_SECONDS", 5))

ROOM_ID_LENGTH = 6
ROOM_ID_PATTERN = r"^[a-z0-9]{6}$"

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

MOOD_MODE_DEFAULT_MOOD = "neutral"
MOOD_MODE_DEFAULT_LANGUAGE = "english"
