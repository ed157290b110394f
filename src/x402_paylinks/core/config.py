"""
Configuration objects and helpers for the payment-link service.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from eth_utils import is_hex_address, to_checksum_address

from .environment import build_environment
from .errors import ConfigError
from .networks import NetworkTable, TokenRegistry

__all__ = [
    "ConfigError",
    "ServiceConfig",
    "ServiceParameters",
    "load_service_config",
]

STORE_BACKENDS = ("file", "sql")

_RPC_URL_PREFIX = "X402_RPC_URL_"
_TOKEN_PREFIX = "X402_TOKEN_"

_PARAMETER_TO_ENV_KEY = {
    "store_backend": "X402_STORE_BACKEND",
    "data_file": "X402_DATA_FILE",
    "database_url": "X402_DATABASE_URL",
    "default_network": "X402_DEFAULT_NETWORK",
    "verify_timeout_seconds": "X402_VERIFY_TIMEOUT_SECONDS",
    "rpc_timeout_seconds": "X402_RPC_TIMEOUT_SECONDS",
    "link_prefix": "X402_LINK_PREFIX",
    "host": "X402_HOST",
    "port": "X402_PORT",
    "cors_origins": "X402_CORS_ORIGINS",
    "service_url": "X402_SERVICE_URL",
}


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(item) for item in value)
    return str(value)


@dataclass(frozen=True)
class ServiceParameters:
    """
    Explicit parameter bundle for constructing :class:`ServiceConfig`.

    Values set here win over the environment and the ``.env`` file.
    """

    store_backend: Optional[str] = None
    data_file: Optional[str] = None
    database_url: Optional[str] = None
    default_network: Optional[str] = None
    verify_timeout_seconds: Optional[float | str] = None
    rpc_timeout_seconds: Optional[float | str] = None
    link_prefix: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int | str] = None
    cors_origins: Optional[str] = None
    service_url: Optional[str] = None

    def as_overrides(self) -> Dict[str, str]:
        overrides: Dict[str, str] = {}
        for field_name, env_key in _PARAMETER_TO_ENV_KEY.items():
            value = getattr(self, field_name)
            if value is None:
                continue
            overrides[env_key] = _stringify(value)
        return overrides


def _network_key(suffix: str) -> str:
    return suffix.strip().lower().replace("_", "-")


def _positive_number(values: Mapping[str, str], key: str, default: str) -> float:
    raw = values.get(key, default)
    try:
        number = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be a number, got '{raw}'") from exc
    if number <= 0:
        raise ConfigError(f"{key} must be greater than zero")
    return number


def _rpc_overrides(values: Mapping[str, str]) -> Dict[str, str]:
    overrides: Dict[str, str] = {}
    for key, value in values.items():
        if key.startswith(_RPC_URL_PREFIX) and value.strip():
            overrides[_network_key(key[len(_RPC_URL_PREFIX):])] = value.strip()
    return overrides


def _token_overrides(values: Mapping[str, str], networks: NetworkTable) -> Dict[Tuple[str, str], str]:
    """
    Parse ``X402_TOKEN_<NETWORK>_<SYMBOL>=0x...`` entries.

    Network names may themselves contain underscores (``BNB_TESTNET``), so the
    symbol is the last segment and the rest must name a known network.
    """
    tokens: Dict[Tuple[str, str], str] = {}
    known = set(networks.names())
    for key, value in values.items():
        if not key.startswith(_TOKEN_PREFIX):
            continue
        network_part, sep, symbol = key[len(_TOKEN_PREFIX):].rpartition("_")
        network = _network_key(network_part)
        if not sep or not symbol or network not in known:
            raise ConfigError(f"{key} does not name a known network and token symbol")
        address = value.strip()
        if not address.startswith("0x"):
            address = "0x" + address
        if not is_hex_address(address):
            raise ConfigError(f"{key} is not a valid EVM address")
        tokens[(network, symbol.upper())] = to_checksum_address(address)
    return tokens


@dataclass(frozen=True)
class ServiceConfig:
    store_backend: str = "file"
    data_file: str = "data.json"
    database_url: str = "sqlite+aiosqlite:///./paylinks.db"
    default_network: str = "sepolia"
    verify_timeout_seconds: float = 30.0
    rpc_timeout_seconds: float = 15.0
    link_prefix: str = "/r/"
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: Tuple[str, ...] = ("*",)
    service_url: str = "http://localhost:3000/api"
    networks: NetworkTable = field(default_factory=NetworkTable)
    tokens: TokenRegistry = field(default_factory=TokenRegistry)

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> "ServiceConfig":
        store_backend = values.get("X402_STORE_BACKEND", "file").strip().lower()
        if store_backend not in STORE_BACKENDS:
            raise ConfigError(
                f"X402_STORE_BACKEND must be one of {', '.join(STORE_BACKENDS)}, got '{store_backend}'"
            )

        default_network = _network_key(values.get("X402_DEFAULT_NETWORK", "sepolia"))
        try:
            networks = NetworkTable(default=default_network)
        except ValueError as exc:
            raise ConfigError(f"X402_DEFAULT_NETWORK: {exc}") from exc
        networks = networks.with_rpc_overrides(_rpc_overrides(values))

        try:
            tokens = TokenRegistry().merged(_token_overrides(values, networks))
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

        port_raw = values.get("X402_PORT", "3000")
        try:
            port = int(port_raw)
        except ValueError as exc:
            raise ConfigError(f"X402_PORT must be an integer, got '{port_raw}'") from exc

        cors_origins = tuple(
            origin.strip()
            for origin in values.get("X402_CORS_ORIGINS", "*").split(",")
            if origin.strip()
        )

        return cls(
            store_backend=store_backend,
            data_file=values.get("X402_DATA_FILE", "data.json"),
            database_url=values.get("X402_DATABASE_URL", "sqlite+aiosqlite:///./paylinks.db"),
            default_network=default_network,
            verify_timeout_seconds=_positive_number(values, "X402_VERIFY_TIMEOUT_SECONDS", "30"),
            rpc_timeout_seconds=_positive_number(values, "X402_RPC_TIMEOUT_SECONDS", "15"),
            link_prefix=values.get("X402_LINK_PREFIX", "/r/"),
            host=values.get("X402_HOST", "0.0.0.0"),
            port=port,
            cors_origins=cors_origins or ("*",),
            service_url=values.get("X402_SERVICE_URL", "http://localhost:3000/api").rstrip("/"),
            networks=networks,
            tokens=tokens,
        )

    @classmethod
    def from_env(
        cls,
        *,
        env_file: Optional[str] = ".env",
        overrides: Optional[Mapping[str, str]] = None,
        base: Optional[Mapping[str, str]] = None,
        parameters: Optional[ServiceParameters] = None,
    ) -> "ServiceConfig":
        merged_overrides = dict(overrides or {})
        if parameters is not None:
            merged_overrides.update(parameters.as_overrides())

        environment = build_environment(
            env_file=env_file,
            base=base,
            overrides=merged_overrides,
        )
        return cls.from_mapping(environment.variables)


def load_service_config(
    *,
    env_file: Optional[str] = ".env",
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
    parameters: Optional[ServiceParameters] = None,
    **kwargs: Any,
) -> ServiceConfig:
    """
    Convenience wrapper that mirrors :meth:`ServiceConfig.from_env`.

    Keyword arguments named after :class:`ServiceParameters` fields are folded
    into ``parameters``; anything else is a ``TypeError``.
    """
    if kwargs:
        unknown = sorted(set(kwargs) - set(_PARAMETER_TO_ENV_KEY))
        if unknown:
            raise TypeError(f"Unknown service parameter(s): {', '.join(unknown)}")
        base_parameters = asdict(parameters) if parameters is not None else {}
        parameters = ServiceParameters(**{**base_parameters, **kwargs})
    return ServiceConfig.from_env(
        env_file=env_file,
        overrides=overrides,
        base=base,
        parameters=parameters,
    )
