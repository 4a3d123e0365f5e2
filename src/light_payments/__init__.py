"""
Public facade for the c-Token payment actions package.

The most useful pieces are re-exported so integrators can
``from light_payments import ...`` without navigating the package.
"""

from .api import create_token_client, run_payment, send_payment
from .core import (
    AccountInterface,
    ConfigError,
    LightRpc,
    Operation,
    OperationError,
    OperationResult,
    PaymentConfig,
    PaymentEnvironment,
    PaymentOutcome,
    PaymentParameters,
    PaymentRequest,
    PlaceholderError,
    RpcError,
    TokenClient,
    TransactionError,
    WalletError,
    build_environment,
    create_rpc,
    get_associated_token_address_interface,
    get_spl_associated_token_address,
    load_env_file,
    load_keypair,
    load_payment_config,
)

__all__ = (
    "AccountInterface",
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
    "create_rpc",
    "create_token_client",
    "get_associated_token_address_interface",
    "get_spl_associated_token_address",
    "load_env_file",
    "load_keypair",
    "load_payment_config",
    "run_payment",
    "send_payment",
)
