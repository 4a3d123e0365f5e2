"""
Create a c-Token associated token account from raw instructions.

Edit the constants below, export HELIUS_API_KEY (or put it in .env) and run
this file directly.
"""

from __future__ import annotations

import logging
import sys

from light_payments import Operation, send_payment

MINT_PUBKEY = "your-mint-pubkey"  # e.g. USDC: "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
RECIPIENT_PUBKEY = "your-recipient-pubkey"


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    outcome = send_payment(
        Operation.CREATE_ACCOUNT_VIA_INSTRUCTIONS,
        mint=MINT_PUBKEY,
        recipient=RECIPIENT_PUBKEY,
    )
    if outcome.ok:
        print(outcome.result.explorer_url)
    return outcome.exit_code


if __name__ == "__main__":
    sys.exit(main())
