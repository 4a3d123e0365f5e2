"""
Transfer c-Tokens by assembling the instructions into one transaction.

Edit the constants below, export HELIUS_API_KEY (or put it in .env) and run
this file directly.
"""

from __future__ import annotations

import logging
import sys

from light_payments import Operation, send_payment

MINT_PUBKEY = "your-mint-pubkey"  # e.g. USDC: "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
RECIPIENT_PUBKEY = "your-recipient-pubkey"
AMOUNT = 1_000_000  # in smallest units (e.g. 1 USDC = 1000000)


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    outcome = send_payment(
        Operation.TRANSFER_VIA_INSTRUCTIONS,
        mint=MINT_PUBKEY,
        recipient=RECIPIENT_PUBKEY,
        amount=AMOUNT,
    )
    if outcome.ok:
        print(outcome.result.explorer_url)
    return outcome.exit_code


if __name__ == "__main__":
    sys.exit(main())
