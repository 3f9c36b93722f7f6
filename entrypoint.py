import uvicorn
import os
from logging_config import setup_logging

# Setup logging before importing app
log_level = os.getenv("LOG_LEVEL", "DEBUG")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)

from app import app
from backend import redis_backend
from constants import HOST, PORT, WS_MAX_SIZE
from logging_config import get_logger

logger = get_logger(__name__)

if __name__ == "__main__":
    logger.info(f"Starting signaling server on {HOST}:{PORT}")
    if not redis_backend.ping():
        logger.warning("Redis is unreachable; edge throttling admits every request until it comes back")
    # single process: rooms and quota shards live in this process's memory
    uvicorn.run(app, host=HOST, port=PORT, ws_max_size=WS_MAX_SIZE, log_config=None)
