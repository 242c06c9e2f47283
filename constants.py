import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3010))

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = os.getenv("REDIS_PORT", 6379)
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)

if REDIS_PASSWORD:
    _DEFAULT_REDIS_URL = f"redis://:{REDIS_PASSWORD}@{REDIS_HOST}:{REDIS_PORT}"
else:
    _DEFAULT_REDIS_URL = f"redis://{REDIS_HOST}:{REDIS_PORT}"

REDIS_URL = os.getenv("REDIS_URL", _DEFAULT_REDIS_URL)

CORS_ORIGIN = os.getenv("CORS_ORIGIN", "*")
SOCKET_TRANSPORTS = os.getenv("SOCKET_TRANSPORTS", "websocket,polling")
SOCKET_PATH = os.getenv("SOCKET_PATH", "socket.io").strip("/")

# seconds
PING_TIMEOUT = int(os.getenv("PING_TIMEOUT", 60))
PING_INTERVAL = int(os.getenv("PING_INTERVAL", 25))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)
RELOAD = os.getenv("RELOAD", "false").lower() in ("1", "true", "yes")

SERVICE_NAME = "WorkB Socket.io Server"
SERVICE_SHORT_NAME = "socketio"
SERVICE_VERSION = "1.0.0"

VALID_TRANSPORTS = ("websocket", "polling")


def parse_origins(value):
    """Turn a comma-separated origin list into what the socket server expects.

    Returns ``"*"`` for the wildcard (or an empty list), otherwise a list of
    origins.
    """
    origins = [origin.strip() for origin in (value or "").split(",") if origin.strip()]
    if not origins or "*" in origins:
        return "*"
    return origins


def parse_transports(value):
    transports = [t.strip().lower() for t in (value or "").split(",") if t.strip()]
    transports = [t for t in transports if t in VALID_TRANSPORTS]
    if not transports:
        raise ValueError(f"No valid socket transports in {value!r}, expected any of {VALID_TRANSPORTS}")
    return transports
