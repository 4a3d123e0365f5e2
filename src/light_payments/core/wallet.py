"""
Loading of the signing keypair from a Solana CLI style keyfile.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from solders.keypair import Keypair

__all__ = ["WalletError", "load_keypair"]


class WalletError(Exception):
    """Raised when the keypair file is missing or malformed."""


def load_keypair(path: str) -> Keypair:
    """
    Read a JSON array of 64 byte values (``solana-keygen`` format) into a keypair.
    """
    keyfile = Path(path).expanduser()
    try:
        raw = keyfile.read_text(encoding="utf-8")
    except OSError as exc:
        raise WalletError(f"Cannot read keypair file {keyfile}: {exc}") from exc

    try:
        values = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise WalletError(f"Keypair file {keyfile} is not valid JSON") from exc

    if not isinstance(values, list) or not all(
        isinstance(item, int) and 0 <= item <= 255 for item in values
    ):
        raise WalletError(f"Keypair file {keyfile} must contain a JSON array of bytes")
    if len(values) != 64:
        raise WalletError(
            f"Keypair file {keyfile} must contain 64 bytes, found {len(values)}"
        )

    try:
        keypair = Keypair.from_bytes(bytes(values))
    except ValueError as exc:
        raise WalletError(f"Keypair file {keyfile} holds an invalid keypair") from exc

    logging.debug("Loaded keypair %s from %s", keypair.pubkey(), keyfile)
    return keypair
