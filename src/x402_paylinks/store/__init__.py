"""
Payment request storage backends.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from ..core.config import ServiceConfig
from ..core.errors import ConfigError
from ..core.models import utcnow
from .base import PaymentRequestStore, SettleOutcome, SettleResult, new_request_id
from .file import FilePaymentRequestStore
from .sql import SqlPaymentRequestStore

__all__ = [
    "FilePaymentRequestStore",
    "PaymentRequestStore",
    "SettleOutcome",
    "SettleResult",
    "SqlPaymentRequestStore",
    "create_store",
    "new_request_id",
]


def create_store(
    config: ServiceConfig,
    *,
    clock: Callable[[], datetime] = utcnow,
) -> PaymentRequestStore:
    """
    Build the store selected by ``X402_STORE_BACKEND``.
    """
    if config.store_backend == "file":
        return FilePaymentRequestStore(config.data_file, clock=clock)
    if config.store_backend == "sql":
        return SqlPaymentRequestStore(config.database_url, clock=clock)
    raise ConfigError(f"Unknown store backend '{config.store_backend}'")
