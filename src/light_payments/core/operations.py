"""
The payment actions, one handler per :class:`Operation`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

from solders.instruction import Instruction

from .client import TokenClient
from .config import ConfigError, PaymentRequest

__all__ = [
    "CreateAccountOperation",
    "CreateAccountViaInstructionsOperation",
    "EXIT_CONFIG_ERROR",
    "EXIT_OK",
    "EXIT_OPERATION_ERROR",
    "EXPLORER_BASE_URL",
    "Operation",
    "OperationError",
    "OperationResult",
    "PaymentOperation",
    "PaymentOutcome",
    "ResultKind",
    "TransferOperation",
    "TransferViaInstructionsOperation",
    "UnwrapOperation",
    "explorer_url",
    "get_operation",
]

EXPLORER_BASE_URL = "https://explorer.solana.com"

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_OPERATION_ERROR = 2


class Operation(str, Enum):
    CREATE_ACCOUNT = "create-account"
    TRANSFER = "transfer"
    UNWRAP = "unwrap"
    TRANSFER_VIA_INSTRUCTIONS = "transfer-instructions"
    CREATE_ACCOUNT_VIA_INSTRUCTIONS = "create-account-instructions"


class ResultKind(str, Enum):
    ADDRESS = "address"
    TRANSACTION = "tx"


class OperationError(Exception):
    """Raised (or returned) when a payment action fails after validation."""

    def __init__(self, operation: Operation, cause: BaseException) -> None:
        super().__init__(f"{operation.value} failed: {cause}")
        self.operation = operation
        self.cause = cause


def explorer_url(kind: ResultKind, value: str, cluster: str = "devnet") -> str:
    return f"{EXPLORER_BASE_URL}/{kind.value}/{value}?cluster={cluster}"


@dataclass(frozen=True)
class OperationResult:
    operation: Operation
    kind: ResultKind
    value: str
    cluster: str = "devnet"

    @property
    def explorer_url(self) -> str:
        return explorer_url(self.kind, self.value, self.cluster)


@dataclass(frozen=True)
class PaymentOutcome:
    """
    Either the result of a payment action or the error that stopped it.

    ``operation`` is ``None`` when the requested action name was not recognised.
    """

    operation: Optional[Operation]
    result: Optional[OperationResult] = None
    error: Optional[Union[ConfigError, OperationError]] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def exit_code(self) -> int:
        if self.error is None:
            return EXIT_OK
        if isinstance(self.error, ConfigError):
            return EXIT_CONFIG_ERROR
        return EXIT_OPERATION_ERROR


class PaymentOperation(ABC):
    """
    Base class for the payment actions.

    Subclasses declare which configured values they need and perform exactly
    one externally visible call in :meth:`execute`.
    """

    operation: Operation
    requires_recipient: bool = True
    requires_amount: bool = False

    @abstractmethod
    async def execute(
        self,
        client: TokenClient,
        request: PaymentRequest,
        *,
        cluster: str = "devnet",
    ) -> OperationResult:
        ...

    def _transaction(self, signature: str, cluster: str) -> OperationResult:
        return OperationResult(self.operation, ResultKind.TRANSACTION, signature, cluster)


async def _submit_after_load(
    client: TokenClient,
    load_batches: Sequence[Sequence[Instruction]],
    instructions: Sequence[Instruction],
) -> str:
    *earlier, last = load_batches or [[]]
    for batch in earlier:
        await client.send_and_confirm_transaction(batch)
    return await client.send_and_confirm_transaction([*last, *instructions])


class CreateAccountOperation(PaymentOperation):
    operation = Operation.CREATE_ACCOUNT

    async def execute(
        self,
        client: TokenClient,
        request: PaymentRequest,
        *,
        cluster: str = "devnet",
    ) -> OperationResult:
        account = await client.get_or_create_ata_interface(request.mint, request.recipient)
        return OperationResult(self.operation, ResultKind.ADDRESS, str(account.address), cluster)


class TransferOperation(PaymentOperation):
    operation = Operation.TRANSFER
    requires_amount = True

    async def execute(
        self,
        client: TokenClient,
        request: PaymentRequest,
        *,
        cluster: str = "devnet",
    ) -> OperationResult:
        source = client.get_associated_token_address_interface(request.mint, client.payer_pubkey)
        destination = client.get_associated_token_address_interface(
            request.mint, request.recipient
        )
        logging.info(
            "Transferring %d base units from %s to %s", request.amount, source, destination
        )
        signature = await client.transfer_interface(
            source, request.mint, destination, request.amount
        )
        return self._transaction(signature, cluster)


class UnwrapOperation(PaymentOperation):
    operation = Operation.UNWRAP
    requires_recipient = False
    requires_amount = True

    async def execute(
        self,
        client: TokenClient,
        request: PaymentRequest,
        *,
        cluster: str = "devnet",
    ) -> OperationResult:
        spl_ata = client.get_spl_associated_token_address(request.mint, client.payer_pubkey)
        logging.info("Unwrapping %d base units into %s", request.amount, spl_ata)
        signature = await client.unwrap(request.mint, spl_ata, request.amount)
        return self._transaction(signature, cluster)


class TransferViaInstructionsOperation(PaymentOperation):
    operation = Operation.TRANSFER_VIA_INSTRUCTIONS
    requires_amount = True

    async def execute(
        self,
        client: TokenClient,
        request: PaymentRequest,
        *,
        cluster: str = "devnet",
    ) -> OperationResult:
        source = client.get_associated_token_address_interface(request.mint, client.payer_pubkey)
        destination = client.get_associated_token_address_interface(
            request.mint, request.recipient
        )
        load_batches = await client.create_load_ata_instructions(
            source, client.payer_pubkey, request.mint
        )
        transfer_ix = client.create_transfer_interface_instruction(
            source, destination, request.amount
        )
        signature = await _submit_after_load(client, load_batches, [transfer_ix])
        return self._transaction(signature, cluster)


class CreateAccountViaInstructionsOperation(PaymentOperation):
    operation = Operation.CREATE_ACCOUNT_VIA_INSTRUCTIONS

    async def execute(
        self,
        client: TokenClient,
        request: PaymentRequest,
        *,
        cluster: str = "devnet",
    ) -> OperationResult:
        ata = client.get_associated_token_address_interface(request.mint, request.recipient)
        load_batches: List[List[Instruction]] = []
        # loading needs the owner's signature
        if request.recipient == client.payer_pubkey:
            load_batches = await client.create_load_ata_instructions(
                ata, request.recipient, request.mint
            )
        if load_batches:
            signature = await _submit_after_load(client, load_batches, [])
        else:
            create_ix = client.create_ata_interface_idempotent_instruction(
                ata, request.recipient, request.mint
            )
            signature = await client.send_and_confirm_transaction([create_ix])
        return self._transaction(signature, cluster)


_OPERATIONS: Dict[Operation, PaymentOperation] = {
    handler.operation: handler
    for handler in (
        CreateAccountOperation(),
        TransferOperation(),
        UnwrapOperation(),
        TransferViaInstructionsOperation(),
        CreateAccountViaInstructionsOperation(),
    )
}


def get_operation(operation: Union[Operation, str]) -> PaymentOperation:
    try:
        return _OPERATIONS[Operation(operation)]
    except ValueError as exc:
        choices = ", ".join(op.value for op in Operation)
        raise ConfigError(f"Unknown operation '{operation}' (expected one of: {choices})") from exc
