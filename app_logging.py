"""
Logging Configuration
=====================
Application-wide logging setup shared by the API, the Streamlit app and the
engines.

- One format for every entry point: timestamp | level | module | message
- Console output only (Streamlit / Uvicorn pick up stderr)
- `configure_logging()` is called once per process at startup
"""

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging settings.

    Args:
        level: "DEBUG", "INFO", "WARNING", "ERROR" or "CRITICAL"

    Safe to call more than once; Streamlit re-runs the script on every
    interaction so only the first call installs the handler.
    """
    global _configured
    if _configured:
        logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))
        return

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    _configured = True
    logging.getLogger(__name__).info("Logging initialized with level %s", level)


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger for a module.

    Usage:
        from app_logging import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)
