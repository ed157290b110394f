"""
Public facade for the x402 payment-link package.

The most useful pieces are re-exported here so integrators can
``from x402_paylinks import ...`` without navigating the package.
"""

from .api import create_app, create_payment_service, create_verification_engine
from .core import (
    AlreadyPaidError,
    ChainReaderError,
    ChainReaders,
    ConfigError,
    ExpiredError,
    LinkStatus,
    NotFoundError,
    PaymentLinkError,
    PaymentLinkService,
    PaymentLinksClient,
    PaymentRequest,
    PaymentStatus,
    PaymentSubmission,
    ServiceConfig,
    ServiceParameters,
    ValidationError,
    Verdict,
    VerdictReason,
    VerificationEngine,
    VerificationInconclusiveError,
    VerificationOutcome,
    build_environment,
    classify_transfer,
    load_service_config,
)
from .store import FilePaymentRequestStore, PaymentRequestStore, SqlPaymentRequestStore, create_store

__all__ = (
    "AlreadyPaidError",
    "ChainReaderError",
    "ChainReaders",
    "ConfigError",
    "ExpiredError",
    "FilePaymentRequestStore",
    "LinkStatus",
    "NotFoundError",
    "PaymentLinkError",
    "PaymentLinkService",
    "PaymentLinksClient",
    "PaymentRequest",
    "PaymentRequestStore",
    "PaymentStatus",
    "PaymentSubmission",
    "ServiceConfig",
    "ServiceParameters",
    "SqlPaymentRequestStore",
    "ValidationError",
    "Verdict",
    "VerdictReason",
    "VerificationEngine",
    "VerificationInconclusiveError",
    "VerificationOutcome",
    "build_environment",
    "classify_transfer",
    "create_app",
    "create_payment_service",
    "create_store",
    "create_verification_engine",
    "load_service_config",
)
