# =============================================
# File: rechargeace/utils/logging.py
# Purpose: Loguru file sink for service logs
# =============================================
import os

from loguru import logger

_configured = False


def setup_logging() -> None:
    """Add the rotating file sink once. LOG_FILE="" disables it."""
    global _configured
    if _configured:
        return
    path = os.getenv("LOG_FILE", "logs/app.log")
    if path:
        logger.add(path, rotation="10 MB")
    _configured = True
