"""
Core primitives that implement the payment-link lifecycle.
"""

from .chain import ChainReader, ChainReaders, Web3ChainReader
from .client import LinkStatus, PaymentLinksClient, ServiceResponseError, VerificationOutcome
from .config import ConfigError, ServiceConfig, ServiceParameters, load_service_config
from .environment import ServiceEnvironment, build_environment, parse_env_file
from .errors import (
    AlreadyPaidError,
    ChainReaderError,
    ExpiredError,
    NotFoundError,
    PaymentLinkError,
    ValidationError,
    VerdictReason,
    VerificationInconclusiveError,
)
from .lifecycle import PaymentLinkService, PaymentSubmission, RequestState, RequestView
from .models import PaymentRequest, PaymentStatus, RequestDraft
from .networks import NetworkTable, TokenRegistry, TransferKind, classify_transfer
from .payloads import PaymentRequired, build_payment_required, build_settled_view
from .transfers import TransferExtractor
from .verification import Verdict, VerificationEngine

__all__ = [
    "AlreadyPaidError",
    "ChainReader",
    "ChainReaderError",
    "ChainReaders",
    "ConfigError",
    "ExpiredError",
    "LinkStatus",
    "NetworkTable",
    "NotFoundError",
    "PaymentLinkError",
    "PaymentLinkService",
    "PaymentLinksClient",
    "PaymentRequest",
    "PaymentRequired",
    "PaymentStatus",
    "PaymentSubmission",
    "RequestDraft",
    "RequestState",
    "RequestView",
    "ServiceConfig",
    "ServiceEnvironment",
    "ServiceParameters",
    "ServiceResponseError",
    "TokenRegistry",
    "TransferExtractor",
    "TransferKind",
    "ValidationError",
    "Verdict",
    "VerdictReason",
    "VerificationEngine",
    "VerificationInconclusiveError",
    "VerificationOutcome",
    "Web3ChainReader",
    "build_environment",
    "build_payment_required",
    "build_settled_view",
    "classify_transfer",
    "load_service_config",
    "parse_env_file",
]
