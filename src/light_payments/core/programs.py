"""
Program ids and deterministic address derivation for c-Token accounts.
"""

from __future__ import annotations

from typing import Tuple

from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from spl.token.constants import TOKEN_2022_PROGRAM_ID, TOKEN_PROGRAM_ID
from spl.token.instructions import get_associated_token_address

__all__ = [
    "ACCOUNT_COMPRESSION_PROGRAM_ID",
    "CTOKEN_PROGRAM_ID",
    "LIGHT_SYSTEM_PROGRAM_ID",
    "SPL_TOKEN_PROGRAM_IDS",
    "SYSTEM_PROGRAM_ID",
    "TOKEN_2022_PROGRAM_ID",
    "TOKEN_PROGRAM_ID",
    "find_associated_token_address_interface",
    "get_account_compression_authority",
    "get_associated_token_address_interface",
    "get_cpi_authority",
    "get_registered_program_pda",
    "get_spl_associated_token_address",
    "get_token_pool_address",
]

CTOKEN_PROGRAM_ID = Pubkey.from_string("cTokenmWW8bLPjZEBAUgYy3zKxQZW6VKi7bqNFEVv3m")
LIGHT_SYSTEM_PROGRAM_ID = Pubkey.from_string("SySTEM1eSU2p4BGQfQpimFEWWSC1XDFeun3Nqzz3rT7")
ACCOUNT_COMPRESSION_PROGRAM_ID = Pubkey.from_string(
    "compr6CUsB5m2jS4Y3831ztGSTnDpnKJTKS95d64XVq"
)

SPL_TOKEN_PROGRAM_IDS = (TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID)

CPI_AUTHORITY_SEED = b"cpi_authority"
POOL_SEED = b"pool"


def find_associated_token_address_interface(
    mint: Pubkey,
    owner: Pubkey,
) -> Tuple[Pubkey, int]:
    """
    Return the c-Token ATA for ``(mint, owner)`` together with its bump seed.
    """
    return Pubkey.find_program_address(
        [bytes(owner), bytes(CTOKEN_PROGRAM_ID), bytes(mint)],
        CTOKEN_PROGRAM_ID,
    )


def get_associated_token_address_interface(mint: Pubkey, owner: Pubkey) -> Pubkey:
    address, _ = find_associated_token_address_interface(mint, owner)
    return address


def get_spl_associated_token_address(
    mint: Pubkey,
    owner: Pubkey,
    token_program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> Pubkey:
    return get_associated_token_address(owner, mint, token_program_id)


def get_token_pool_address(mint: Pubkey, index: int = 0) -> Tuple[Pubkey, int]:
    """
    Pool PDA holding the SPL side of wrapped balances. Index 0 omits the index seed.
    """
    if not 0 <= index < 256:
        raise ValueError(f"Token pool index must fit in a byte, got {index}")
    seeds = [POOL_SEED, bytes(mint)]
    if index:
        seeds.append(bytes([index]))
    return Pubkey.find_program_address(seeds, CTOKEN_PROGRAM_ID)


def get_cpi_authority() -> Pubkey:
    address, _ = Pubkey.find_program_address([CPI_AUTHORITY_SEED], CTOKEN_PROGRAM_ID)
    return address


def get_account_compression_authority() -> Pubkey:
    address, _ = Pubkey.find_program_address(
        [CPI_AUTHORITY_SEED], LIGHT_SYSTEM_PROGRAM_ID
    )
    return address


def get_registered_program_pda() -> Pubkey:
    address, _ = Pubkey.find_program_address(
        [bytes(LIGHT_SYSTEM_PROGRAM_ID)], ACCOUNT_COMPRESSION_PROGRAM_ID
    )
    return address
