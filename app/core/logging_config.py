"""Logging setup"""
import logging

from app.core.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = None):
    """Configure root logging once for the process"""
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # httpx logs every probe request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
