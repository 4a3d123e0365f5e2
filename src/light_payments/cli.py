"""
Command-line interface for the c-Token payment actions.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Iterable, Sequence, Tuple

from .api import run_payment
from .core.operations import Operation, PaymentOutcome


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


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="light-payments",
        description="Run a single c-Token payment action on Solana devnet",
    )
    parser.add_argument(
        "operation",
        choices=[op.value for op in Operation],
        help="Payment action to perform",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to the .env file containing LIGHT_PAYMENTS_* settings (default: .env)",
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
    parser.add_argument("--mint", help="Mint public key of the token to move")
    parser.add_argument("--recipient", help="Recipient wallet public key")
    parser.add_argument(
        "--amount",
        type=int,
        help="Amount in the token's smallest units (e.g. 1000000 for 1 USDC)",
    )
    parser.add_argument(
        "--keypair",
        dest="keypair_path",
        help="Path to the payer keypair file (default: ~/.config/solana/id.json)",
    )
    parser.add_argument("--rpc-url", help="RPC endpoint (default: Helius devnet)")
    parser.add_argument("--cluster", help="Explorer cluster name (default: devnet)")
    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)
    overrides = _collect_overrides(args.set or ())

    outcome = asyncio.run(
        run_payment(
            args.operation,
            env_file=args.env_file,
            overrides=overrides,
            mint=args.mint,
            recipient=args.recipient,
            amount=args.amount,
            keypair_path=args.keypair_path,
            rpc_url=args.rpc_url,
            cluster=args.cluster,
        )
    )
    return _handle_outcome(outcome)


def _handle_outcome(outcome: PaymentOutcome) -> int:
    if outcome.ok:
        print(outcome.result.explorer_url)
    return outcome.exit_code


def main() -> None:
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
