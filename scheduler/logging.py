# scheduler/logging.py

import logging

from .config import settings


def setup_logging():
    level = logging.DEBUG if settings.ENV == "local" else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
