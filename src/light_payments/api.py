"""
Public, high-level helpers for running one c-Token payment action.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Mapping, Optional, Union

from .core.client import TokenClient
from .core.config import (
    ConfigError,
    PaymentConfig,
    PaymentParameters,
    load_payment_config,
)
from .core.operations import Operation, OperationError, PaymentOutcome, get_operation
from .core.rpc import create_rpc
from .core.wallet import load_keypair

__all__ = [
    "create_token_client",
    "run_payment",
    "send_payment",
]


def create_token_client(config: PaymentConfig) -> TokenClient:
    """
    Load the payer keypair and open the remote client described by ``config``.
    """
    payer = load_keypair(config.keypair_path)
    rpc = create_rpc(config.endpoint, timeout=config.timeout_seconds)
    logging.info("Using payer %s on %s", payer.pubkey(), config.cluster)
    return TokenClient(rpc, payer)


async def run_payment(
    operation: Union[Operation, str],
    *,
    config: Optional[PaymentConfig] = None,
    client: Optional[TokenClient] = None,
    env_file: Optional[str] = ".env",
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
    parameters: Optional[PaymentParameters] = None,
    mint: Optional[str] = None,
    recipient: Optional[str] = None,
    amount: Optional[int | str] = None,
    keypair_path: Optional[str] = None,
    rpc_url: Optional[str] = None,
    api_key: Optional[str] = None,
    cluster: Optional[str] = None,
    timeout_seconds: Optional[int | str] = None,
) -> PaymentOutcome:
    """
    Validate the configuration, then perform ``operation`` exactly once.

    Failures are returned on the :class:`PaymentOutcome` rather than raised.
    Nothing is read from disk or the network until the configuration has
    passed validation. A ``client`` passed in by the caller is left open.
    """
    if config is not None:
        extras = (
            overrides,
            base,
            parameters,
            mint,
            recipient,
            amount,
            keypair_path,
            rpc_url,
            api_key,
            cluster,
            timeout_seconds,
        )
        if any(item is not None and item != {} for item in extras):
            raise ValueError(
                "Provide either a pre-built PaymentConfig or individual parameters, not both."
            )

    handler = None
    try:
        handler = get_operation(operation)
        cfg = config or load_payment_config(
            env_file=env_file,
            overrides=overrides,
            base=base,
            parameters=parameters,
            mint=mint,
            recipient=recipient,
            amount=amount,
            keypair_path=keypair_path,
            rpc_url=rpc_url,
            api_key=api_key,
            cluster=cluster,
            timeout_seconds=timeout_seconds,
        )
        request = cfg.resolve(
            requires_recipient=handler.requires_recipient,
            requires_amount=handler.requires_amount,
        )
    except ConfigError as exc:
        logging.error("Invalid configuration: %s", exc)
        return PaymentOutcome(handler.operation if handler else None, error=exc)

    owns_client = client is None
    try:
        if client is None:
            client = create_token_client(cfg)
        result = await handler.execute(client, request, cluster=cfg.cluster)
    except Exception as exc:  # noqa: BLE001
        error = OperationError(handler.operation, exc)
        logging.error("%s", error)
        return PaymentOutcome(handler.operation, error=error)
    finally:
        if owns_client and client is not None:
            await client.close()

    logging.info("%s finished: %s", handler.operation.value, result.value)
    return PaymentOutcome(handler.operation, result=result)


def send_payment(operation: Union[Operation, str], **kwargs) -> PaymentOutcome:
    """
    Synchronous wrapper around :func:`run_payment` for scripts.
    """
    return asyncio.run(run_payment(operation, **kwargs))
