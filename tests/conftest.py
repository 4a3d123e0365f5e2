"""
Shared fixtures and in-memory doubles for the remote client and token client.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest
from solders.account import Account
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from light_payments.core.client import AccountInterface
from light_payments.core.instructions import (
    create_ata_interface_idempotent_instruction,
    create_transfer_interface_instruction,
)
from light_payments.core.programs import (
    CTOKEN_PROGRAM_ID,
    get_associated_token_address_interface,
    get_spl_associated_token_address,
)
from light_payments.core.rpc import CompressedTokenAccount, ValidityProof

TRANSFER_SIGNATURE = "5" * 87


class FakeRpc:
    """Records submissions and serves canned account / indexer state."""

    def __init__(self) -> None:
        self.accounts: Dict[Pubkey, Account] = {}
        self.token_balances: Dict[Pubkey, int] = {}
        self.compressed: List[CompressedTokenAccount] = []
        self.proof: Optional[ValidityProof] = None
        self.confirm_error: Optional[Any] = None
        self.sent: List[VersionedTransaction] = []
        self.proof_requests: List[List[str]] = []
        self.closed = False

    async def get_account_info(self, pubkey: Pubkey) -> Optional[Account]:
        return self.accounts.get(pubkey)

    async def get_latest_blockhash(self) -> Hash:
        return Hash.new_unique()

    async def get_token_account_balance(self, pubkey: Pubkey) -> int:
        return self.token_balances.get(pubkey, 0)

    async def send_transaction(self, transaction: VersionedTransaction) -> Signature:
        self.sent.append(transaction)
        # the account-creating instruction makes the account visible
        for ix in transaction.message.instructions:
            keys = transaction.message.account_keys
            if keys[ix.program_id_index] == CTOKEN_PROGRAM_ID and bytes(ix.data)[:1] == b"\x66":
                ata = keys[ix.accounts[3]]
                self.accounts[ata] = Account(0, b"", CTOKEN_PROGRAM_ID)
        return transaction.signatures[0]

    async def confirm_transaction(self, signature: Signature) -> Optional[Any]:
        return self.confirm_error

    async def get_compressed_token_accounts_by_owner(
        self,
        owner: Pubkey,
        mint: Optional[Pubkey] = None,
    ) -> List[CompressedTokenAccount]:
        return [
            account
            for account in self.compressed
            if account.owner == owner and (mint is None or account.mint == mint)
        ]

    async def get_validity_proof(self, hashes: Sequence[str]) -> ValidityProof:
        self.proof_requests.append(list(hashes))
        if self.proof is not None:
            return self.proof
        return ValidityProof(compressed_proof=bytes(128), root_indices=[0] * len(hashes))

    async def close(self) -> None:
        self.closed = True


class FakeTokenClient:
    """
    Recording stand-in for :class:`light_payments.core.client.TokenClient`.

    Account creation is idempotent: the first call for a ``(mint, owner)``
    pair creates the account, later calls return the same address.
    """

    def __init__(self, payer: Optional[Keypair] = None) -> None:
        self.payer = payer or Keypair()
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.created: Dict[Tuple[Pubkey, Pubkey], Pubkey] = {}
        self.load_batches: List[List[Instruction]] = []
        self.closed = False

    @property
    def payer_pubkey(self) -> Pubkey:
        return self.payer.pubkey()

    def names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def get_associated_token_address_interface(self, mint: Pubkey, owner: Pubkey) -> Pubkey:
        return get_associated_token_address_interface(mint, owner)

    def get_spl_associated_token_address(self, mint: Pubkey, owner: Pubkey) -> Pubkey:
        return get_spl_associated_token_address(mint, owner)

    async def get_or_create_ata_interface(self, mint: Pubkey, owner: Pubkey) -> AccountInterface:
        self.calls.append(("get_or_create_ata_interface", (mint, owner)))
        key = (mint, owner)
        created = key not in self.created
        if created:
            self.created[key] = get_associated_token_address_interface(mint, owner)
        return AccountInterface(address=self.created[key], owner=owner, mint=mint, created=created)

    async def transfer_interface(
        self,
        source: Pubkey,
        mint: Pubkey,
        destination: Pubkey,
        amount: int,
    ) -> str:
        self.calls.append(("transfer_interface", (source, mint, destination, amount)))
        return TRANSFER_SIGNATURE

    async def unwrap(self, mint: Pubkey, destination: Pubkey, amount: int) -> str:
        self.calls.append(("unwrap", (mint, destination, amount)))
        return TRANSFER_SIGNATURE

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
        return create_transfer_interface_instruction(source, destination, self.payer_pubkey, amount)

    async def create_load_ata_instructions(
        self,
        ata: Pubkey,
        owner: Pubkey,
        mint: Pubkey,
    ) -> List[List[Instruction]]:
        self.calls.append(("create_load_ata_instructions", (ata, owner, mint)))
        return [list(batch) for batch in self.load_batches]

    async def send_and_confirm_transaction(self, instructions: Sequence[Instruction]) -> str:
        self.calls.append(("send_and_confirm_transaction", (list(instructions),)))
        return TRANSFER_SIGNATURE

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def payer() -> Keypair:
    return Keypair()


@pytest.fixture
def mint() -> Pubkey:
    return Keypair().pubkey()


@pytest.fixture
def recipient() -> Pubkey:
    return Keypair().pubkey()


@pytest.fixture
def fake_rpc() -> FakeRpc:
    return FakeRpc()


@pytest.fixture
def fake_client(payer) -> FakeTokenClient:
    return FakeTokenClient(payer)


@pytest.fixture
def base_env(mint, recipient) -> Dict[str, str]:
    return {
        "LIGHT_PAYMENTS_MINT": str(mint),
        "LIGHT_PAYMENTS_RECIPIENT": str(recipient),
        "LIGHT_PAYMENTS_AMOUNT": "1000000",
        "HELIUS_API_KEY": "test-key",
    }
