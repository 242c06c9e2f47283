from urllib.parse import urlsplit

import uvicorn
from constants import HOST, LOG_FILE, LOG_LEVEL, PORT, REDIS_URL, RELOAD, SERVICE_NAME, SOCKET_PATH
from logging_config import get_logger, setup_logging

# Setup logging before importing app
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)

logger = get_logger(__name__)


def redact_url(url: str) -> str:
    parts = urlsplit(url)
    if parts.password:
        netloc = parts.netloc.replace(f":{parts.password}@", ":***@")
        return parts._replace(netloc=netloc).geturl()
    return url


if __name__ == "__main__":
    logger.info("========================================")
    logger.info(f"  {SERVICE_NAME}")
    logger.info(f"  Listening on {HOST}:{PORT}")
    logger.info(f"  Socket path: /{SOCKET_PATH}")
    logger.info(f"  Redis: {redact_url(REDIS_URL)}")
    logger.info("========================================")
    uvicorn.run("app:app", host=HOST, port=PORT, reload=RELOAD, log_config=None)
