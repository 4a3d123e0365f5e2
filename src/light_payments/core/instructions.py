"""
Instruction builders for the c-Token program.

The simple instructions (associated account creation, transfer) use the
SPL-compatible single byte discriminators. Moving balances between the
compressed, c-Token and SPL representations goes through ``Transfer2``, whose
accounts are addressed by index into a packed account table.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Optional, Sequence

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from spl.token.instructions import create_idempotent_associated_token_account

from .programs import (
    ACCOUNT_COMPRESSION_PROGRAM_ID,
    CTOKEN_PROGRAM_ID,
    LIGHT_SYSTEM_PROGRAM_ID,
    SPL_TOKEN_PROGRAM_IDS,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    find_associated_token_address_interface,
    get_account_compression_authority,
    get_cpi_authority,
    get_registered_program_pda,
    get_spl_associated_token_address,
    get_token_pool_address,
)
from .rpc import CompressedTokenAccount, ValidityProof

__all__ = [
    "Compression",
    "CompressionMode",
    "InputTokenData",
    "PackedAccounts",
    "create_ata_interface_idempotent_instruction",
    "create_decompress_instruction",
    "create_transfer_interface_instruction",
    "create_unwrap_instruction",
    "create_wrap_instruction",
    "encode_transfer2",
]

CTOKEN_TRANSFER = 3
TRANSFER2 = 101
CREATE_ATA_IDEMPOTENT = 102

MAX_AMOUNT = 2**64

_NONE = b"\x00"
_SOME = b"\x01"


class CompressionMode(IntEnum):
    COMPRESS = 0
    DECOMPRESS = 1


def _check_amount(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise TypeError(f"Amount must be an integer number of base units, got {amount!r}")
    if not 0 < amount < MAX_AMOUNT:
        raise ValueError(f"Amount must be between 1 and 2**64 - 1, got {amount}")
    return amount


def _vec(items: Sequence[bytes]) -> bytes:
    return struct.pack("<I", len(items)) + b"".join(items)


class PackedAccounts:
    """
    Ordered, de-duplicated account table referenced by ``u8`` indices.

    Inserting a key twice returns the first index and widens its flags.
    """

    def __init__(self) -> None:
        self._metas: List[AccountMeta] = []
        self._indices: Dict[Pubkey, int] = {}

    def __len__(self) -> int:
        return len(self._metas)

    def insert(self, pubkey: Pubkey, *, signer: bool = False, writable: bool = False) -> int:
        index = self._indices.get(pubkey)
        if index is None:
            index = len(self._metas)
            if index > 255:
                raise ValueError("Too many accounts for a u8 index")
            self._indices[pubkey] = index
            self._metas.append(AccountMeta(pubkey, signer, writable))
            return index

        current = self._metas[index]
        self._metas[index] = AccountMeta(
            pubkey,
            current.is_signer or signer,
            current.is_writable or writable,
        )
        return index

    def to_account_metas(self) -> List[AccountMeta]:
        return list(self._metas)


@dataclass(frozen=True)
class Compression:
    mode: CompressionMode
    amount: int
    mint: int
    source_or_recipient: int
    authority: int = 0
    pool_account_index: int = 0
    pool_index: int = 0
    bump: int = 0

    def pack(self) -> bytes:
        return struct.pack(
            "<BQBBBBBB",
            int(self.mode),
            self.amount,
            self.mint,
            self.source_or_recipient,
            self.authority,
            self.pool_account_index,
            self.pool_index,
            self.bump,
        )


@dataclass(frozen=True)
class InputTokenData:
    owner: int
    amount: int
    mint: int
    merkle_tree: int
    queue: int
    leaf_index: int
    root_index: int
    prove_by_index: bool = False
    delegate: Optional[int] = None
    version: int = 1

    def pack(self) -> bytes:
        return struct.pack(
            "<BQ?BBBBBI?H",
            self.owner,
            self.amount,
            self.delegate is not None,
            self.delegate or 0,
            self.mint,
            self.version,
            self.merkle_tree,
            self.queue,
            self.leaf_index,
            self.prove_by_index,
            self.root_index,
        )


def encode_transfer2(
    *,
    output_queue: int = 0,
    compressions: Sequence[Compression] = (),
    proof: Optional[bytes] = None,
    inputs: Sequence[InputTokenData] = (),
) -> bytes:
    data = bytearray([TRANSFER2])
    # transaction hash and lamports-change flags are unused here
    data += struct.pack("<??BBB", False, False, 0, 0, output_queue)
    data += _NONE  # cpi context
    if compressions:
        data += _SOME + _vec([c.pack() for c in compressions])
    else:
        data += _NONE
    if proof is not None:
        if len(proof) != 128:
            raise ValueError("Compressed proof must be 128 bytes")
        data += _SOME + proof
    else:
        data += _NONE
    data += _vec([i.pack() for i in inputs])
    data += _vec([])  # no compressed outputs
    data += _NONE * 4  # in/out lamports, in/out tlv
    return bytes(data)


def create_ata_interface_idempotent_instruction(
    payer: Pubkey,
    ata: Pubkey,
    owner: Pubkey,
    mint: Pubkey,
    program_id: Pubkey = CTOKEN_PROGRAM_ID,
) -> Instruction:
    """
    Create the associated token account ``ata`` unless it already exists.

    ``program_id`` selects the c-Token program or one of the SPL token programs.
    """
    if program_id in SPL_TOKEN_PROGRAM_IDS:
        expected = get_spl_associated_token_address(mint, owner, program_id)
        if expected != ata:
            raise ValueError(f"{ata} is not the associated token account of {owner}")
        return create_idempotent_associated_token_account(
            payer, owner, mint, token_program_id=program_id
        )
    if program_id != CTOKEN_PROGRAM_ID:
        raise ValueError(f"Unsupported token program {program_id}")

    expected, bump = find_associated_token_address_interface(mint, owner)
    if expected != ata:
        raise ValueError(f"{ata} is not the c-Token associated account of {owner}")

    data = bytes([CREATE_ATA_IDEMPOTENT, bump]) + _NONE
    accounts = [
        AccountMeta(owner, False, False),
        AccountMeta(mint, False, False),
        AccountMeta(payer, True, True),
        AccountMeta(ata, False, True),
        AccountMeta(SYSTEM_PROGRAM_ID, False, False),
    ]
    return Instruction(CTOKEN_PROGRAM_ID, data, accounts)


def create_transfer_interface_instruction(
    source: Pubkey,
    destination: Pubkey,
    owner: Pubkey,
    amount: int,
) -> Instruction:
    data = struct.pack("<BQ", CTOKEN_TRANSFER, _check_amount(amount))
    accounts = [
        AccountMeta(source, False, True),
        AccountMeta(destination, False, True),
        AccountMeta(owner, True, False),
    ]
    return Instruction(CTOKEN_PROGRAM_ID, data, accounts)


def _transfer2(
    payer: Pubkey,
    packed: PackedAccounts,
    data: bytes,
    *,
    with_system_accounts: bool,
) -> Instruction:
    if with_system_accounts:
        fixed = [
            AccountMeta(LIGHT_SYSTEM_PROGRAM_ID, False, False),
            AccountMeta(payer, True, True),
            AccountMeta(get_cpi_authority(), False, False),
            AccountMeta(get_registered_program_pda(), False, False),
            AccountMeta(get_account_compression_authority(), False, False),
            AccountMeta(ACCOUNT_COMPRESSION_PROGRAM_ID, False, False),
            AccountMeta(SYSTEM_PROGRAM_ID, False, False),
        ]
    else:
        fixed = [
            AccountMeta(get_cpi_authority(), False, False),
            AccountMeta(payer, True, True),
        ]
    return Instruction(CTOKEN_PROGRAM_ID, data, fixed + packed.to_account_metas())


def create_decompress_instruction(
    payer: Pubkey,
    owner: Pubkey,
    mint: Pubkey,
    destination: Pubkey,
    accounts: Sequence[CompressedTokenAccount],
    proof: ValidityProof,
) -> Instruction:
    """
    Move every balance in ``accounts`` (cold) into the c-Token account ``destination``.
    """
    if not accounts:
        raise ValueError("Nothing to decompress")
    if len(proof.root_indices) != len(accounts):
        raise ValueError(
            f"Proof covers {len(proof.root_indices)} accounts, expected {len(accounts)}"
        )

    packed = PackedAccounts()
    inputs: List[InputTokenData] = []
    output_queue = 0
    for position, account in enumerate(accounts):
        if account.owner != owner or account.mint != mint:
            raise ValueError(f"Compressed account {account.hash} does not belong to {owner}")
        tree = proof.merkle_trees[position] if position < len(proof.merkle_trees) else account.tree
        queue = proof.queues[position] if position < len(proof.queues) else account.queue or tree
        tree_index = packed.insert(tree, writable=True)
        queue_index = packed.insert(queue, writable=True)
        if position == 0:
            output_queue = queue_index
        delegate = None
        if account.delegate is not None:
            delegate = packed.insert(account.delegate)
        inputs.append(
            InputTokenData(
                owner=packed.insert(owner, signer=True),
                amount=account.amount,
                mint=packed.insert(mint),
                merkle_tree=tree_index,
                queue=queue_index,
                leaf_index=account.leaf_index,
                root_index=proof.root_indices[position],
                prove_by_index=(
                    proof.prove_by_index[position]
                    if position < len(proof.prove_by_index)
                    else False
                ),
                delegate=delegate,
            )
        )

    total = _check_amount(sum(account.amount for account in accounts))
    compression = Compression(
        mode=CompressionMode.DECOMPRESS,
        amount=total,
        mint=packed.insert(mint),
        source_or_recipient=packed.insert(destination, writable=True),
        authority=packed.insert(owner, signer=True),
    )
    data = encode_transfer2(
        output_queue=output_queue,
        compressions=[compression],
        proof=proof.compressed_proof,
        inputs=inputs,
    )
    return _transfer2(payer, packed, data, with_system_accounts=True)


def _pool_transfer(
    payer: Pubkey,
    owner: Pubkey,
    mint: Pubkey,
    source: Pubkey,
    destination: Pubkey,
    amount: int,
    *,
    spl_is_source: bool,
    token_program_id: Pubkey,
    pool_index: int,
) -> Instruction:
    _check_amount(amount)
    pool, bump = get_token_pool_address(mint, pool_index)

    packed = PackedAccounts()
    mint_index = packed.insert(mint)
    authority_index = packed.insert(owner, signer=True)
    source_index = packed.insert(source, writable=True)
    destination_index = packed.insert(destination, writable=True)
    pool_account_index = packed.insert(pool, writable=True)
    packed.insert(token_program_id)

    # the SPL side of the move settles against the token pool
    pool_fields = {
        "pool_account_index": pool_account_index,
        "pool_index": pool_index,
        "bump": bump,
    }
    compress = Compression(
        mode=CompressionMode.COMPRESS,
        amount=amount,
        mint=mint_index,
        source_or_recipient=source_index,
        authority=authority_index,
        **(pool_fields if spl_is_source else {}),
    )
    decompress = Compression(
        mode=CompressionMode.DECOMPRESS,
        amount=amount,
        mint=mint_index,
        source_or_recipient=destination_index,
        **({} if spl_is_source else pool_fields),
    )

    data = encode_transfer2(compressions=[compress, decompress])
    return _transfer2(payer, packed, data, with_system_accounts=False)


def create_wrap_instruction(
    payer: Pubkey,
    owner: Pubkey,
    mint: Pubkey,
    source: Pubkey,
    destination: Pubkey,
    amount: int,
    *,
    token_program_id: Pubkey = TOKEN_PROGRAM_ID,
    pool_index: int = 0,
) -> Instruction:
    """SPL token account ``source`` -> c-Token account ``destination``."""
    return _pool_transfer(
        payer,
        owner,
        mint,
        source,
        destination,
        amount,
        spl_is_source=True,
        token_program_id=token_program_id,
        pool_index=pool_index,
    )


def create_unwrap_instruction(
    payer: Pubkey,
    owner: Pubkey,
    mint: Pubkey,
    source: Pubkey,
    destination: Pubkey,
    amount: int,
    *,
    token_program_id: Pubkey = TOKEN_PROGRAM_ID,
    pool_index: int = 0,
) -> Instruction:
    """c-Token account ``source`` -> SPL token account ``destination``."""
    return _pool_transfer(
        payer,
        owner,
        mint,
        source,
        destination,
        amount,
        spl_is_source=False,
        token_program_id=token_program_id,
        pool_index=pool_index,
    )
