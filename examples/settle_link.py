"""
Minimal script that uses the public API to create a payment link, show the
payment instructions and submit a transaction hash for it.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Iterable, Tuple

from x402_paylinks import ConfigError, PaymentLinksClient, load_service_config


def _override(value: str) -> Tuple[str, str]:
    if "=" not in value:
        raise argparse.ArgumentTypeError("Overrides must look like KEY=VALUE")
    key, val = value.split("=", 1)
    key = key.strip()
    if not key:
        raise argparse.ArgumentTypeError("Override key must not be empty")
    return key, val


def _build_overrides(pairs: Iterable[Tuple[str, str]]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, value in pairs:
        overrides[key] = value
    return overrides


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create and settle an x402 payment link")
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to the .env file containing X402_* settings",
    )
    parser.add_argument(
        "--set",
        action="append",
        type=_override,
        metavar="KEY=VALUE",
        default=None,
        help="Override an environment variable without editing the .env file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    parser.add_argument("--token", default="USDC", help="Token symbol (default: USDC)")
    parser.add_argument("--amount", default="1", help="Amount in human units (default: 1)")
    parser.add_argument("--receiver", required=True, help="Address that receives the payment")
    parser.add_argument("--network", help="Network name (default: the service default)")
    parser.add_argument("--description", help="Description shown to the payer")
    parser.add_argument("--expires-in-days", type=int, help="Days until the link expires")
    parser.add_argument(
        "--tx-hash",
        help="Transaction that pays the link; without it the script stops after printing instructions",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )

    try:
        config = load_service_config(env_file=args.env_file, overrides=_build_overrides(args.set or ()))
    except (ConfigError, ValueError) as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1

    client = PaymentLinksClient(config)
    logging.info("Using payment-link service at %s", client.base_url)

    try:
        created = client.create(
            token=args.token,
            amount=args.amount,
            receiver=args.receiver,
            network=args.network,
            description=args.description,
            expires_in_days=args.expires_in_days,
        )
        status = client.status(created["id"])
    except Exception as exc:  # noqa: BLE001
        logging.error("Could not create payment link: %s", exc)
        return 1

    logging.info("Share this link with the payer: %s", created["link"])
    if status.payment:
        logging.info("Payer instructions: %s", status.payment["instructions"])

    if not args.tx_hash:
        return 0

    try:
        outcome = client.verify(created["id"], args.tx_hash)
    except Exception as exc:  # noqa: BLE001
        logging.error("Verification request failed: %s", exc)
        return 1

    if outcome.success:
        logging.info("Payment accepted for %s", created["id"])
        return 0

    logging.error("Payment not accepted: %s", outcome.raw)
    return 1


if __name__ == "__main__":
    sys.exit(main())
