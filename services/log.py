"""Loguru sink configuration shared by the API service and the demo."""
import sys

from loguru import logger

from app.settings import settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - {message}"
)

_configured = False


def setup_logging(level: str = None) -> None:
    global _configured
    if _configured:
        return
    logger.remove()
    logger.add(sys.stderr, level=(level or settings.log_level).upper(), format=LOG_FORMAT)
    _configured = True
