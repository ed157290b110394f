"""
Command-line interface for running and exercising the payment-link service.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from decimal import Decimal
from typing import Any, Iterable, Sequence, Tuple

import requests
import uvicorn

from .api import ConfigError, create_app, create_verification_engine, load_service_config
from .core.client import PaymentLinksClient, ServiceResponseError
from .core.config import ServiceConfig
from .core.errors import ChainReaderError, ValidationError
from .core.lifecycle import normalize_tx_hash
from .core.models import parse_amount


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )


def _env_override(value: str) -> Tuple[str, str]:
    if "=" not in value:
        raise argparse.ArgumentTypeError("Overrides must look like KEY=VALUE")
    key, val = value.split("=", 1)
    key = key.strip()
    if not key:
        raise argparse.ArgumentTypeError("Override key must not be empty")
    return key, val


def _collect_overrides(pairs: Iterable[Tuple[str, str]]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, value in pairs:
        overrides[key] = value
    return overrides


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="x402-paylinks",
        description="Create x402 payment links and verify on-chain payments",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to the .env file containing X402_* settings (default: .env)",
    )
    parser.add_argument(
        "--set",
        action="append",
        type=_env_override,
        metavar="KEY=VALUE",
        default=None,
        help="Override an environment variable without editing the .env file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the HTTP service")
    serve.add_argument("--host", help="Bind address (default: X402_HOST)")
    serve.add_argument("--port", type=int, help="Bind port (default: X402_PORT)")

    create = commands.add_parser("create", help="Create a payment request on a running service")
    create.add_argument("--token", required=True, help="Token symbol, e.g. USDC or ETH")
    create.add_argument("--amount", required=True, help="Amount in human units, e.g. 10.5")
    create.add_argument("--receiver", required=True, help="Address that should receive the payment")
    create.add_argument("--network", help="Network name (default: the service's default network)")
    create.add_argument("--payer", help="Expected payer, informational only")
    create.add_argument("--description", help="Description shown to the payer")
    create.add_argument("--expires-in-days", type=int, help="Days until the link expires")
    create.add_argument("--creator-wallet", help="Owner wallet used to filter listings")

    status = commands.add_parser("status", help="Show what a payer sees for a request")
    status.add_argument("request_id")

    verify = commands.add_parser("verify", help="Submit a transaction hash for verification")
    verify.add_argument("tx_hash")
    verify.add_argument("--request-id", help="Request to settle on a running service")
    verify.add_argument(
        "--local",
        action="store_true",
        help="Check the transaction directly against the chain without a service or store",
    )
    verify.add_argument("--token", help="Expected token symbol (with --local)")
    verify.add_argument("--amount", help="Expected amount in human units (with --local)")
    verify.add_argument("--receiver", help="Expected receiver address (with --local)")
    verify.add_argument("--network", help="Network to read from (with --local)")
    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)
    overrides = _collect_overrides(args.set or ())

    try:
        config = load_service_config(env_file=args.env_file, overrides=overrides)
    except (ConfigError, ValueError) as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1

    if args.command == "serve":
        return _serve(config, args)
    if args.command == "verify" and args.local:
        return _verify_local(config, args)

    client = PaymentLinksClient(config, session=requests.Session())
    try:
        if args.command == "create":
            return _create(client, args)
        if args.command == "status":
            return _status(client, args)
        return _verify_remote(client, args)
    except (requests.RequestException, ServiceResponseError) as exc:
        logging.error("Request to %s failed: %s", client.base_url, exc)
        return 1


def _serve(config: ServiceConfig, args: argparse.Namespace) -> int:
    app = create_app(config=config)
    host = args.host or config.host
    port = args.port or config.port
    logging.info("Serving payment links on %s:%s with %s store", host, port, config.store_backend)
    uvicorn.run(app, host=host, port=port, log_level=args.log_level.lower())
    return 0


def _create(client: PaymentLinksClient, args: argparse.Namespace) -> int:
    created = client.create(
        token=args.token,
        amount=args.amount,
        receiver=args.receiver,
        payer=args.payer,
        description=args.description,
        network=args.network,
        expires_in_days=args.expires_in_days,
        creator_wallet=args.creator_wallet,
    )
    logging.info("Created payment request %s", created.get("id"))
    _emit(created)
    return 0


def _status(client: PaymentLinksClient, args: argparse.Namespace) -> int:
    status = client.status(args.request_id)
    if status.paid:
        logging.info("Request %s is paid", args.request_id)
    elif status.expired:
        logging.warning("Request %s has expired", args.request_id)
    else:
        logging.info("Request %s is awaiting payment", args.request_id)
    _emit(status.raw)
    return 0


def _verify_remote(client: PaymentLinksClient, args: argparse.Namespace) -> int:
    if not args.request_id:
        logging.error("--request-id is required unless --local is given")
        return 2

    outcome = client.verify(args.request_id, args.tx_hash)
    _emit(outcome.raw)
    if outcome.success:
        logging.info("Payment accepted; request %s settled", args.request_id)
        return 0
    if outcome.retryable:
        logging.warning("Verification inconclusive, retry later: %s", outcome.raw.get("details"))
    else:
        logging.error("Payment rejected: %s", outcome.reason or outcome.raw.get("error"))
    return 1


def _verify_local(config: ServiceConfig, args: argparse.Namespace) -> int:
    missing = [name for name in ("token", "amount", "receiver") if not getattr(args, name)]
    if missing:
        logging.error("--local verification needs --%s", " --".join(missing))
        return 2
    try:
        tx_hash = normalize_tx_hash(args.tx_hash)
        amount = parse_amount(args.amount)
    except (ValidationError, ValueError) as exc:
        logging.error("Invalid input: %s", exc)
        return 2

    try:
        verdict = asyncio.run(_run_local_verification(config, tx_hash, amount, args))
    except (ChainReaderError, asyncio.TimeoutError) as exc:
        logging.error("Verification inconclusive, retry later: %s", exc)
        return 1

    _emit(verdict.to_dict())
    if verdict.valid:
        logging.info("Transaction %s satisfies the expected payment", tx_hash)
        return 0
    logging.error("Transaction %s rejected: %s", tx_hash, verdict.message)
    return 1


async def _run_local_verification(
    config: ServiceConfig,
    tx_hash: str,
    amount: Decimal,
    args: argparse.Namespace,
):
    engine = create_verification_engine(config)
    try:
        return await asyncio.wait_for(
            engine.verify(
                tx_hash,
                amount,
                args.token,
                args.receiver,
                args.network or config.default_network,
            ),
            timeout=config.verify_timeout_seconds,
        )
    finally:
        await engine.readers.aclose()
