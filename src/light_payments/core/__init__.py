"""
Core primitives for configuring and executing c-Token payment actions.
"""

from .client import (
    AccountInterface,
    TokenClient,
    TransactionError,
    create_load_ata_instructions,
    get_or_create_ata_interface,
    send_after_load,
    send_and_confirm_transaction,
    transfer_interface,
    unwrap,
)
from .config import (
    ConfigError,
    PaymentConfig,
    PaymentParameters,
    PaymentRequest,
    PlaceholderError,
    load_payment_config,
)
from .environment import PaymentEnvironment, build_environment, load_env_file
from .operations import (
    Operation,
    OperationError,
    OperationResult,
    PaymentOutcome,
    get_operation,
)
from .programs import (
    CTOKEN_PROGRAM_ID,
    get_associated_token_address_interface,
    get_spl_associated_token_address,
)
from .rpc import LightRpc, RpcError, create_rpc
from .wallet import WalletError, load_keypair

__all__ = [
    "AccountInterface",
    "CTOKEN_PROGRAM_ID",
    "ConfigError",
    "LightRpc",
    "Operation",
    "OperationError",
    "OperationResult",
    "PaymentConfig",
    "PaymentEnvironment",
    "PaymentOutcome",
    "PaymentParameters",
    "PaymentRequest",
    "PlaceholderError",
    "RpcError",
    "TokenClient",
    "TransactionError",
    "WalletError",
    "build_environment",
    "create_load_ata_instructions",
    "create_rpc",
    "get_associated_token_address_interface",
    "get_operation",
    "get_or_create_ata_interface",
    "get_spl_associated_token_address",
    "load_env_file",
    "load_keypair",
    "load_payment_config",
    "send_after_load",
    "send_and_confirm_transaction",
    "transfer_interface",
    "unwrap",
]
