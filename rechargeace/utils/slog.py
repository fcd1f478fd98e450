# =============================================
# File: rechargeace/utils/slog.py
# Purpose: JSON-per-line request logging for the API (stdlib logger, caplog-friendly)
# =============================================
from __future__ import annotations
import hashlib
import json
import logging
import os
import uuid
from typing import Any, Dict

LOGGER_NAME = "rechargeace"


def _build_logger() -> logging.Logger:
    log = logging.getLogger(LOGGER_NAME)
    if not log.handlers:
        log.setLevel(getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO))
        handler = logging.StreamHandler()
        # records are pre-rendered JSON
        handler.setFormatter(logging.Formatter("%(message)s"))
        log.addHandler(handler)
        log.propagate = True
    return log


_logger = _build_logger()


def phash(provider: str, daily_data_gb: float, validity_days: int) -> str:
    """Short hash of a normalized preference (groups identical requests in logs)."""
    norm = f"{(provider or '').strip().lower()}|{float(daily_data_gb):g}|{int(validity_days)}"
    return hashlib.sha256(norm.encode("utf-8")).hexdigest()[:10]


def new_request_id() -> str:
    return uuid.uuid4().hex


def log_event(event: str, **fields: Any) -> None:
    _logger.info(json.dumps({"event": event, **fields}, ensure_ascii=False, default=str))


def finalize_request_log(
    request_id: str,
    method: str,
    path: str,
    status: int,
    latency_ms: int,
    client_ip: str | None,
    ctx: Dict[str, Any] | None = None,
) -> None:
    log_event(
        "request.completed",
        request_id=request_id,
        method=method,
        path=path,
        status=status,
        latency_ms=latency_ms,
        client_ip=client_ip or "",
        **(ctx or {}),
    )
