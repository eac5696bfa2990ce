import logging
import sys

from core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "sqlalchemy.engine", "uvicorn.access")


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the API process and scripts."""
    root = logging.getLogger()
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    root.setLevel(log_level)

    if not any(getattr(h, "_eventforge", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._eventforge = True
        root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
