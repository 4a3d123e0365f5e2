"""
High-level c-Token actions and the :class:`TokenClient` facade.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from solders.compute_budget import set_compute_unit_limit
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from .instructions import (
    create_ata_interface_idempotent_instruction,
    create_decompress_instruction,
    create_transfer_interface_instruction,
    create_unwrap_instruction,
    create_wrap_instruction,
)
from .programs import (
    CTOKEN_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    get_associated_token_address_interface,
    get_spl_associated_token_address,
)
from .rpc import LightRpc

__all__ = [
    "AccountInterface",
    "TokenClient",
    "TransactionError",
    "create_load_ata_instructions",
    "get_or_create_ata_interface",
    "send_after_load",
    "send_and_confirm_transaction",
    "transfer_interface",
    "unwrap",
]

# Decompression verifies a validity proof on-chain.
LOAD_COMPUTE_UNIT_LIMIT = 500_000
MAX_INPUTS_PER_DECOMPRESS = 8


class TransactionError(Exception):
    """Raised when a submitted transaction is confirmed with an error."""


@dataclass(frozen=True)
class AccountInterface:
    address: Pubkey
    owner: Pubkey
    mint: Pubkey
    created: bool
    signature: Optional[str] = None


async def send_and_confirm_transaction(
    rpc: LightRpc,
    instructions: Sequence[Instruction],
    signers: Sequence[Keypair],
) -> str:
    """
    Sign ``instructions`` with ``signers`` (the first one pays fees), submit and confirm.
    """
    if not instructions:
        raise ValueError("A transaction needs at least one instruction")
    if not signers:
        raise ValueError("A transaction needs at least one signer")

    blockhash = await rpc.get_latest_blockhash()
    message = Message.new_with_blockhash(list(instructions), signers[0].pubkey(), blockhash)
    transaction = VersionedTransaction(message, list(signers))

    signature = await rpc.send_transaction(transaction)
    logging.info("Submitted transaction %s, waiting for confirmation", signature)

    error = await rpc.confirm_transaction(signature)
    if error is not None:
        raise TransactionError(f"Transaction {signature} failed: {error}")
    return str(signature)


async def create_load_ata_instructions(
    rpc: LightRpc,
    ata: Pubkey,
    owner: Pubkey,
    mint: Pubkey,
    payer: Pubkey,
    *,
    wrap_spl: bool = True,
    token_program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> List[List[Instruction]]:
    """
    Instruction batches that move every balance ``owner`` holds for ``mint`` into ``ata``.

    Each batch fits in one transaction and the batches must land in order.
    The first one creates ``ata`` if needed and, with ``wrap_spl``, wraps the
    owner's SPL associated account. Every batch decompresses at most
    :data:`MAX_INPUTS_PER_DECOMPRESS` cold accounts under its own compute
    unit limit. Returns an empty list when there is nothing to load.
    """
    cold = [
        account
        for account in await rpc.get_compressed_token_accounts_by_owner(owner, mint)
        if account.amount > 0
    ]

    spl_balance = 0
    spl_ata = get_spl_associated_token_address(mint, owner, token_program_id)
    if wrap_spl:
        spl_balance = await rpc.get_token_account_balance(spl_ata)

    if not cold and not spl_balance:
        return []

    setup = [create_ata_interface_idempotent_instruction(payer, ata, owner, mint)]
    if spl_balance:
        logging.info("Wrapping %d base units from %s into %s", spl_balance, spl_ata, ata)
        setup.append(
            create_wrap_instruction(
                payer,
                owner,
                mint,
                spl_ata,
                ata,
                spl_balance,
                token_program_id=token_program_id,
            )
        )
    if not cold:
        return [setup]

    batches: List[List[Instruction]] = []
    for start in range(0, len(cold), MAX_INPUTS_PER_DECOMPRESS):
        chunk = cold[start:start + MAX_INPUTS_PER_DECOMPRESS]
        proof = await rpc.get_validity_proof([account.hash for account in chunk])
        logging.info("Decompressing %d cold accounts into %s", len(chunk), ata)
        batch = [set_compute_unit_limit(LOAD_COMPUTE_UNIT_LIMIT)]
        if not batches:
            batch.extend(setup)
        batch.append(create_decompress_instruction(payer, owner, mint, ata, chunk, proof))
        batches.append(batch)
    return batches


async def send_after_load(
    rpc: LightRpc,
    load_batches: Sequence[Sequence[Instruction]],
    instructions: Sequence[Instruction],
    signers: Sequence[Keypair],
) -> str:
    """
    Submit all load batches but the last on their own, then the last one
    together with ``instructions``. Returns the final signature.
    """
    *earlier, last = load_batches or [[]]
    for batch in earlier:
        await send_and_confirm_transaction(rpc, batch, signers)
    return await send_and_confirm_transaction(rpc, [*last, *instructions], signers)


async def get_or_create_ata_interface(
    rpc: LightRpc,
    payer: Keypair,
    mint: Pubkey,
    owner: Pubkey,
) -> AccountInterface:
    """
    Return the c-Token ATA of ``owner``, creating it when it does not exist yet.

    An existing account is returned as-is without submitting a transaction.
    Cold balances are only loaded when ``owner`` is the payer, since loading
    needs the owner's signature.
    """
    ata = get_associated_token_address_interface(mint, owner)
    info = await rpc.get_account_info(ata)
    if info is not None:
        if info.owner != CTOKEN_PROGRAM_ID:
            raise TransactionError(f"{ata} exists but is owned by {info.owner}")
        logging.info("Associated token account %s already exists", ata)
        return AccountInterface(address=ata, owner=owner, mint=mint, created=False)

    load_batches: List[List[Instruction]] = []
    if owner == payer.pubkey():
        load_batches = await create_load_ata_instructions(rpc, ata, owner, mint, payer.pubkey())
    if load_batches:
        signature = await send_after_load(rpc, load_batches, [], [payer])
    else:
        create_ix = create_ata_interface_idempotent_instruction(payer.pubkey(), ata, owner, mint)
        signature = await send_and_confirm_transaction(rpc, [create_ix], [payer])
    logging.info("Created associated token account %s", ata)
    return AccountInterface(
        address=ata, owner=owner, mint=mint, created=True, signature=signature
    )


def _signers(payer: Keypair, owner: Keypair) -> List[Keypair]:
    if owner.pubkey() == payer.pubkey():
        return [payer]
    return [payer, owner]


async def transfer_interface(
    rpc: LightRpc,
    payer: Keypair,
    source: Pubkey,
    mint: Pubkey,
    destination: Pubkey,
    owner: Keypair,
    amount: int,
) -> str:
    """
    Transfer ``amount`` base units from ``source`` to ``destination``, loading cold balances first.
    """
    transfer_ix = create_transfer_interface_instruction(
        source, destination, owner.pubkey(), amount
    )
    load_batches = await create_load_ata_instructions(
        rpc, source, owner.pubkey(), mint, payer.pubkey()
    )
    return await send_after_load(rpc, load_batches, [transfer_ix], _signers(payer, owner))


async def unwrap(
    rpc: LightRpc,
    payer: Keypair,
    owner: Keypair,
    mint: Pubkey,
    destination: Pubkey,
    amount: int,
    *,
    token_program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> str:
    """
    Convert ``amount`` c-Tokens of ``owner`` into SPL tokens held by ``destination``.
    """
    source = get_associated_token_address_interface(mint, owner.pubkey())
    unwrap_ix = create_unwrap_instruction(
        payer.pubkey(),
        owner.pubkey(),
        mint,
        source,
        destination,
        amount,
        token_program_id=token_program_id,
    )

    instructions: List[Instruction] = []
    if destination == get_spl_associated_token_address(mint, owner.pubkey(), token_program_id):
        instructions.append(
            create_ata_interface_idempotent_instruction(
                payer.pubkey(), destination, owner.pubkey(), mint, token_program_id
            )
        )
    instructions.append(unwrap_ix)
    load_batches = await create_load_ata_instructions(
        rpc,
        source,
        owner.pubkey(),
        mint,
        payer.pubkey(),
        wrap_spl=False,
        token_program_id=token_program_id,
    )
    return await send_after_load(rpc, load_batches, instructions, _signers(payer, owner))


class TokenClient:
    """
    Binds the c-Token actions to one remote client and one paying keypair.
    """

    def __init__(self, rpc: LightRpc, payer: Keypair) -> None:
        self.rpc = rpc
        self.payer = payer

    @property
    def payer_pubkey(self) -> Pubkey:
        return self.payer.pubkey()

    def get_associated_token_address_interface(self, mint: Pubkey, owner: Pubkey) -> Pubkey:
        return get_associated_token_address_interface(mint, owner)

    def get_spl_associated_token_address(self, mint: Pubkey, owner: Pubkey) -> Pubkey:
        return get_spl_associated_token_address(mint, owner)

    async def get_or_create_ata_interface(self, mint: Pubkey, owner: Pubkey) -> AccountInterface:
        return await get_or_create_ata_interface(self.rpc, self.payer, mint, owner)

    async def transfer_interface(
        self,
        source: Pubkey,
        mint: Pubkey,
        destination: Pubkey,
        amount: int,
    ) -> str:
        return await transfer_interface(
            self.rpc, self.payer, source, mint, destination, self.payer, amount
        )

    async def unwrap(self, mint: Pubkey, destination: Pubkey, amount: int) -> str:
        return await unwrap(self.rpc, self.payer, self.payer, mint, destination, amount)

    def create_ata_interface_idempotent_instruction(
        self,
        ata: Pubkey,
        owner: Pubkey,
        mint: Pubkey,
    ) -> Instruction:
        return create_ata_interface_idempotent_instruction(self.payer_pubkey, ata, owner, mint)

    def create_transfer_interface_instruction(
        self,
        source: Pubkey,
        destination: Pubkey,
        amount: int,
    ) -> Instruction:
        return create_transfer_interface_instruction(
            source, destination, self.payer_pubkey, amount
        )

    async def create_load_ata_instructions(
        self,
        ata: Pubkey,
        owner: Pubkey,
        mint: Pubkey,
    ) -> List[List[Instruction]]:
        return await create_load_ata_instructions(self.rpc, ata, owner, mint, self.payer_pubkey)

    async def send_and_confirm_transaction(self, instructions: Sequence[Instruction]) -> str:
        return await send_and_confirm_transaction(self.rpc, instructions, [self.payer])

    async def send_after_load(
        self,
        load_batches: Sequence[Sequence[Instruction]],
        instructions: Sequence[Instruction],
    ) -> str:
        return await send_after_load(self.rpc, load_batches, instructions, [self.payer])

    async def close(self) -> None:
        await self.rpc.close()
