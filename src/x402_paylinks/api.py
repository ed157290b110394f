"""
Public, high-level helpers for assembling the payment-link service.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from fastapi import FastAPI

from .core.chain import ChainReaders
from .core.config import ConfigError, ServiceConfig, ServiceParameters, load_service_config
from .core.lifecycle import PaymentLinkService
from .core.models import utcnow
from .core.transfers import TransferExtractor
from .core.verification import VerificationEngine
from .server import build_app
from .store import PaymentRequestStore, create_store

__all__ = [
    "ConfigError",
    "ServiceConfig",
    "ServiceParameters",
    "create_app",
    "create_payment_service",
    "create_verification_engine",
    "load_service_config",
]


def _resolve_config(
    config: Optional[ServiceConfig],
    *,
    env_file: Optional[str],
    overrides: Optional[Mapping[str, str]],
    base: Optional[Mapping[str, str]],
    parameters: Optional[ServiceParameters],
    **kwargs: Any,
) -> ServiceConfig:
    if config is not None:
        extras = (overrides, base, parameters, *kwargs.values())
        if any(item is not None and item != {} for item in extras):
            raise ValueError(
                "Provide either a pre-built ServiceConfig or individual parameters, not both."
            )
        return config
    return load_service_config(
        env_file=env_file,
        overrides=overrides,
        base=base,
        parameters=parameters,
        **{key: value for key, value in kwargs.items() if value is not None},
    )


def create_verification_engine(
    config: ServiceConfig,
    *,
    readers: Optional[ChainReaders] = None,
) -> VerificationEngine:
    if readers is None:
        readers = ChainReaders(config.networks, timeout_seconds=config.rpc_timeout_seconds)
    return VerificationEngine(readers, TransferExtractor(config.tokens))


def create_payment_service(
    *,
    config: Optional[ServiceConfig] = None,
    store: Optional[PaymentRequestStore] = None,
    readers: Optional[ChainReaders] = None,
    clock: Callable[[], datetime] = utcnow,
    env_file: Optional[str] = ".env",
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
    parameters: Optional[ServiceParameters] = None,
    store_backend: Optional[str] = None,
    data_file: Optional[str] = None,
    database_url: Optional[str] = None,
    default_network: Optional[str] = None,
    verify_timeout_seconds: Optional[float | str] = None,
    rpc_timeout_seconds: Optional[float | str] = None,
    link_prefix: Optional[str] = None,
) -> PaymentLinkService:
    """
    Construct a :class:`PaymentLinkService`.

    Callers can either supply a ready-made :class:`ServiceConfig` or let the
    helper assemble one from environment data. The store is chosen from the
    configuration unless one is passed in.
    """
    cfg = _resolve_config(
        config,
        env_file=env_file,
        overrides=overrides,
        base=base,
        parameters=parameters,
        store_backend=store_backend,
        data_file=data_file,
        database_url=database_url,
        default_network=default_network,
        verify_timeout_seconds=verify_timeout_seconds,
        rpc_timeout_seconds=rpc_timeout_seconds,
        link_prefix=link_prefix,
    )
    return PaymentLinkService(
        store if store is not None else create_store(cfg, clock=clock),
        create_verification_engine(cfg, readers=readers),
        default_network=cfg.default_network,
        link_prefix=cfg.link_prefix,
        verify_timeout_seconds=cfg.verify_timeout_seconds,
        clock=clock,
    )


def create_app(
    *,
    config: Optional[ServiceConfig] = None,
    service: Optional[PaymentLinkService] = None,
    env_file: Optional[str] = ".env",
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
    parameters: Optional[ServiceParameters] = None,
) -> FastAPI:
    """
    Build the FastAPI application, assembling a service from configuration when
    none is given.
    """
    cfg = _resolve_config(
        config,
        env_file=env_file,
        overrides=overrides,
        base=base,
        parameters=parameters,
    )
    if service is None:
        service = create_payment_service(config=cfg)
    return build_app(service, cors_origins=cfg.cors_origins)
