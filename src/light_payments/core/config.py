"""
Configuration objects and helpers for c-Token payment actions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from solders.pubkey import Pubkey

from .environment import build_environment

__all__ = [
    "ConfigError",
    "DEFAULT_KEYPAIR_PATH",
    "PLACEHOLDER_MINT",
    "PLACEHOLDER_RECIPIENT",
    "PaymentConfig",
    "PaymentParameters",
    "PaymentRequest",
    "PlaceholderError",
    "load_payment_config",
]

PLACEHOLDER_MINT = "your-mint-pubkey"
PLACEHOLDER_RECIPIENT = "your-recipient-pubkey"

DEFAULT_KEYPAIR_PATH = "~/.config/solana/id.json"
DEFAULT_AMOUNT = 1_000_000
DEFAULT_CLUSTER = "devnet"
DEVNET_RPC_TEMPLATE = "https://devnet.helius-rpc.com?api-key={api_key}"

MAX_AMOUNT = 2**64

_PARAMETER_TO_ENV_KEY = {
    "mint": "LIGHT_PAYMENTS_MINT",
    "recipient": "LIGHT_PAYMENTS_RECIPIENT",
    "amount": "LIGHT_PAYMENTS_AMOUNT",
    "keypair_path": "LIGHT_PAYMENTS_KEYPAIR_PATH",
    "rpc_url": "LIGHT_PAYMENTS_RPC_URL",
    "api_key": "HELIUS_API_KEY",
    "cluster": "LIGHT_PAYMENTS_CLUSTER",
    "timeout_seconds": "LIGHT_PAYMENTS_TIMEOUT_SECONDS",
}


class ConfigError(Exception):
    """Raised when the supplied configuration is invalid."""


class PlaceholderError(ConfigError):
    """Raised when a documented placeholder value was never replaced."""


@dataclass(frozen=True)
class PaymentParameters:
    """
    Explicit parameter bundle for constructing :class:`PaymentConfig`.

    Callers can either instantiate this helper or pass the individual keyword
    arguments directly to :func:`load_payment_config`.
    """

    mint: Optional[str] = None
    recipient: Optional[str] = None
    amount: Optional[int | str] = None
    keypair_path: Optional[str] = None
    rpc_url: Optional[str] = None
    api_key: Optional[str] = None
    cluster: Optional[str] = None
    timeout_seconds: Optional[int | str] = None

    def as_overrides(self) -> Dict[str, str]:
        overrides: Dict[str, str] = {}
        for field_name, env_key in _PARAMETER_TO_ENV_KEY.items():
            value = getattr(self, field_name)
            if value is None:
                continue
            overrides[env_key] = str(value)
        return overrides


def _collect_parameter_overrides(
    parameters: Optional[PaymentParameters],
    explicit: Mapping[str, Any],
) -> Dict[str, str]:
    overrides: Dict[str, str] = {}
    if parameters is not None:
        overrides.update(parameters.as_overrides())

    for key, value in explicit.items():
        if value is None:
            continue
        try:
            env_key = _PARAMETER_TO_ENV_KEY[key]
        except KeyError as exc:
            raise TypeError(f"Unknown payment parameter '{key}'") from exc
        overrides[env_key] = str(value)
    return overrides


def _parse_int(raw: str, field_name: str) -> int:
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{field_name} must be an integer, got '{raw}'") from exc


def _parse_pubkey(raw: str, field_name: str) -> Pubkey:
    try:
        return Pubkey.from_string(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{field_name} is not a valid base58 public key: '{raw}'") from exc


@dataclass(frozen=True)
class PaymentRequest:
    """
    Validated inputs for a single payment action.
    """

    mint: Pubkey
    recipient: Optional[Pubkey]
    amount: Optional[int]


@dataclass(frozen=True)
class PaymentConfig:
    mint: str
    recipient: str
    amount: int
    keypair_path: str = DEFAULT_KEYPAIR_PATH
    rpc_url: Optional[str] = None
    api_key: Optional[str] = None
    cluster: str = DEFAULT_CLUSTER
    timeout_seconds: int = 30

    @property
    def endpoint(self) -> str:
        if self.rpc_url:
            return self.rpc_url
        if not self.api_key:
            raise ConfigError("Set HELIUS_API_KEY or LIGHT_PAYMENTS_RPC_URL")
        return DEVNET_RPC_TEMPLATE.format(api_key=self.api_key)

    def check_placeholders(self, *, requires_recipient: bool) -> None:
        if requires_recipient:
            if self.mint == PLACEHOLDER_MINT or self.recipient == PLACEHOLDER_RECIPIENT:
                raise PlaceholderError("Configure mint and recipient")
        elif self.mint == PLACEHOLDER_MINT:
            raise PlaceholderError("Configure mint")

    def resolve(
        self,
        *,
        requires_recipient: bool,
        requires_amount: bool,
    ) -> PaymentRequest:
        """
        Validate the configuration for one operation and return the typed request.

        Placeholders are checked first so that nothing else (including
        credential or network access) happens for an unedited configuration.
        """
        self.check_placeholders(requires_recipient=requires_recipient)

        mint = _parse_pubkey(self.mint, "LIGHT_PAYMENTS_MINT")
        recipient = None
        if requires_recipient:
            recipient = _parse_pubkey(self.recipient, "LIGHT_PAYMENTS_RECIPIENT")

        amount = None
        if requires_amount:
            if self.amount <= 0:
                raise ConfigError("Payment amount must be greater than zero")
            if self.amount >= MAX_AMOUNT:
                raise ConfigError("Payment amount must fit in an unsigned 64-bit integer")
            amount = self.amount

        if not (self.rpc_url or self.api_key):
            raise ConfigError("Set HELIUS_API_KEY or LIGHT_PAYMENTS_RPC_URL")
        return PaymentRequest(mint=mint, recipient=recipient, amount=amount)

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> "PaymentConfig":
        mint = values.get("LIGHT_PAYMENTS_MINT", PLACEHOLDER_MINT).strip()
        recipient = values.get("LIGHT_PAYMENTS_RECIPIENT", PLACEHOLDER_RECIPIENT).strip()
        amount = _parse_int(
            values.get("LIGHT_PAYMENTS_AMOUNT", str(DEFAULT_AMOUNT)),
            "LIGHT_PAYMENTS_AMOUNT",
        )
        timeout_seconds = _parse_int(
            values.get("LIGHT_PAYMENTS_TIMEOUT_SECONDS", "30"),
            "LIGHT_PAYMENTS_TIMEOUT_SECONDS",
        )
        if timeout_seconds <= 0:
            raise ConfigError("LIGHT_PAYMENTS_TIMEOUT_SECONDS must be positive")

        rpc_url = values.get("LIGHT_PAYMENTS_RPC_URL") or None
        api_key = values.get("HELIUS_API_KEY") or None

        return cls(
            mint=mint,
            recipient=recipient,
            amount=amount,
            keypair_path=values.get("LIGHT_PAYMENTS_KEYPAIR_PATH", DEFAULT_KEYPAIR_PATH),
            rpc_url=rpc_url.rstrip("/") if rpc_url else None,
            api_key=api_key,
            cluster=values.get("LIGHT_PAYMENTS_CLUSTER", DEFAULT_CLUSTER),
            timeout_seconds=timeout_seconds,
        )

    @classmethod
    def from_env(
        cls,
        *,
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
    ) -> "PaymentConfig":
        parameter_overrides = _collect_parameter_overrides(
            parameters,
            {
                "mint": mint,
                "recipient": recipient,
                "amount": amount,
                "keypair_path": keypair_path,
                "rpc_url": rpc_url,
                "api_key": api_key,
                "cluster": cluster,
                "timeout_seconds": timeout_seconds,
            },
        )
        merged_overrides = dict(overrides or {})
        merged_overrides.update(parameter_overrides)

        environment = build_environment(
            env_file=env_file,
            base=base,
            overrides=merged_overrides,
        )
        for key in ("LIGHT_PAYMENTS_MINT", "LIGHT_PAYMENTS_RECIPIENT", "LIGHT_PAYMENTS_AMOUNT"):
            source = environment.source_of(key)
            if source is not None:
                logging.debug("%s taken from %s", key, source)
        return cls.from_mapping(environment.variables)


def load_payment_config(
    *,
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
) -> PaymentConfig:
    """
    Convenience wrapper that mirrors :meth:`PaymentConfig.from_env`.
    """
    return PaymentConfig.from_env(
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
