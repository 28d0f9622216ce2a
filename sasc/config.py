"""
SASC configuration — all environment variables in one place.

Read from the environment when a Settings is constructed. Components take
an explicit Settings for tests and fall back to the module-level instance.
"""

from __future__ import annotations

import logging
import os


class Settings:
    """Client settings from environment variables."""

    def __init__(self) -> None:
        # HTTP transport
        self.API_BASE_URL: str = os.environ.get("SASC_API_BASE_URL", "")
        self.API_VERSION: str = os.environ.get("SASC_API_VERSION", "1")
        self.CLIENT_NAME: str = os.environ.get("SASC_CLIENT_NAME", "sasc-client 1.0.0")
        self.HTTP_TIMEOUT: float = float(os.environ.get("SASC_HTTP_TIMEOUT", "30"))

        # Diligent select: attempt n waits (n + 1) * increment seconds
        self.SELECT_MAX_ATTEMPTS: int = int(os.environ.get("SASC_SELECT_MAX_ATTEMPTS", "10"))
        self.SELECT_RETRY_INCREMENT: float = float(os.environ.get("SASC_SELECT_RETRY_INCREMENT", "0.5"))

        self.LOG_LEVEL: str = os.environ.get("SASC_LOG_LEVEL", "WARNING").upper()


# Singleton instance
settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """
    Attach a stream handler to the `sasc` logger. For applications and
    scripts only; the library itself never installs handlers.
    """
    logger = logging.getLogger("sasc")
    logger.setLevel(level or settings.LOG_LEVEL)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
