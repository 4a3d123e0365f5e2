"""
Remote client for a ZK-compression enabled Solana endpoint.

Standard Solana methods go through :class:`solana.rpc.async_api.AsyncClient`;
the compression indexer methods (``getCompressedTokenAccountsByOwner``,
``getValidityProof``) are plain JSON-RPC posts to the same endpoint.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.types import TxOpts
from solders.account import Account
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

__all__ = [
    "CompressedTokenAccount",
    "LightRpc",
    "RpcError",
    "ValidityProof",
    "create_rpc",
]


class RpcError(Exception):
    """Raised when the compression indexer returns an error or an unusable body."""


def _optional_pubkey(value: Optional[str]) -> Optional[Pubkey]:
    return Pubkey.from_string(value) if value else None


@dataclass(frozen=True)
class CompressedTokenAccount:
    """A cold (compressed) token balance as reported by the indexer."""

    hash: str
    tree: Pubkey
    leaf_index: int
    owner: Pubkey
    mint: Pubkey
    amount: int
    delegate: Optional[Pubkey] = None
    queue: Optional[Pubkey] = None

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "CompressedTokenAccount":
        try:
            account = item["account"]
            token_data = item["tokenData"]
            return cls(
                hash=account["hash"],
                tree=Pubkey.from_string(account["tree"]),
                leaf_index=int(account["leafIndex"]),
                owner=Pubkey.from_string(token_data["owner"]),
                mint=Pubkey.from_string(token_data["mint"]),
                amount=int(token_data["amount"]),
                delegate=_optional_pubkey(token_data.get("delegate")),
                queue=_optional_pubkey(account.get("queue")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise RpcError(f"Malformed compressed token account: {item!r}") from exc


@dataclass(frozen=True)
class ValidityProof:
    """
    Proof that a set of compressed accounts exists, produced by the remote prover.

    ``compressed_proof`` is ``None`` when every account can be proven by index.
    """

    compressed_proof: Optional[bytes]
    root_indices: List[int]
    merkle_trees: List[Pubkey] = field(default_factory=list)
    queues: List[Pubkey] = field(default_factory=list)
    prove_by_index: List[bool] = field(default_factory=list)

    @classmethod
    def from_value(cls, value: Dict[str, Any]) -> "ValidityProof":
        try:
            proof = value.get("compressedProof")
            compressed_proof = None
            if proof:
                compressed_proof = bytes(proof["a"]) + bytes(proof["b"]) + bytes(proof["c"])
                if len(compressed_proof) != 128:
                    raise ValueError("compressed proof must be 128 bytes")

            root_indices: List[int] = []
            prove_by_index: List[bool] = []
            for entry in value.get("rootIndices", []):
                if isinstance(entry, dict):
                    root_indices.append(int(entry.get("rootIndex", 0)))
                    prove_by_index.append(bool(entry.get("proveByIndex", False)))
                else:
                    root_indices.append(int(entry))
                    prove_by_index.append(False)

            return cls(
                compressed_proof=compressed_proof,
                root_indices=root_indices,
                merkle_trees=[Pubkey.from_string(t) for t in value.get("merkleTrees", [])],
                queues=[Pubkey.from_string(q) for q in value.get("nullifierQueues", [])],
                prove_by_index=prove_by_index,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise RpcError(f"Malformed validity proof: {value!r}") from exc


class LightRpc:
    """
    Handle to one endpoint serving both Solana RPC and the compression indexer.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        commitment: Commitment = Confirmed,
        timeout: float = 30,
        connection: Optional[AsyncClient] = None,
        http: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.endpoint = endpoint
        self.commitment = commitment
        self.connection = connection or AsyncClient(
            endpoint, commitment=commitment, timeout=timeout
        )
        self.http = http or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._request_id = 0

    async def __aenter__(self) -> "LightRpc":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.connection.close()
        await self.http.aclose()

    async def _call(self, method: str, params: Dict[str, Any]) -> Any:
        self._request_id += 1
        body = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }
        logging.debug("Calling indexer method %s", method)
        try:
            response = await self.http.post(self.endpoint, json=body)
        except httpx.HTTPError as exc:
            raise RpcError(f"{method} request failed: {exc}") from exc

        if response.status_code >= 400:
            raise RpcError(
                f"Indexer responded with {response.status_code} to {method}: {response.text}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise RpcError(f"Failed to parse JSON from indexer for {method}: {response.text}") from exc

        if not isinstance(payload, dict):
            raise RpcError(f"Unexpected JSON-RPC body for {method}: {payload!r}")
        if payload.get("error"):
            raise RpcError(f"{method} failed: {payload['error']}")
        return payload.get("result")

    async def get_account_info(self, pubkey: Pubkey) -> Optional[Account]:
        response = await self.connection.get_account_info(pubkey)
        return response.value

    async def get_latest_blockhash(self) -> Hash:
        response = await self.connection.get_latest_blockhash()
        return response.value.blockhash

    async def get_token_account_balance(self, pubkey: Pubkey) -> int:
        if await self.get_account_info(pubkey) is None:
            return 0
        response = await self.connection.get_token_account_balance(pubkey)
        return int(response.value.amount)

    async def send_transaction(self, transaction: VersionedTransaction) -> Signature:
        response = await self.connection.send_transaction(
            transaction,
            opts=TxOpts(preflight_commitment=self.commitment),
        )
        return response.value

    async def confirm_transaction(self, signature: Signature) -> Optional[Any]:
        """
        Wait for ``signature`` to reach the configured commitment.

        Returns the on-chain error, or ``None`` when the transaction succeeded.
        """
        response = await self.connection.confirm_transaction(
            signature, commitment=self.commitment
        )
        status = response.value[0] if response.value else None
        return status.err if status is not None else None

    async def get_compressed_token_accounts_by_owner(
        self,
        owner: Pubkey,
        mint: Optional[Pubkey] = None,
    ) -> List[CompressedTokenAccount]:
        accounts: List[CompressedTokenAccount] = []
        cursor: Optional[str] = None
        while True:
            params: Dict[str, Any] = {"owner": str(owner)}
            if mint is not None:
                params["mint"] = str(mint)
            if cursor:
                params["cursor"] = cursor

            result = await self._call("getCompressedTokenAccountsByOwner", params)
            value = (result or {}).get("value") or {}
            accounts.extend(
                CompressedTokenAccount.from_item(item) for item in value.get("items", [])
            )
            cursor = value.get("cursor")
            if not cursor:
                return accounts

    async def get_validity_proof(self, hashes: Sequence[str]) -> ValidityProof:
        result = await self._call(
            "getValidityProof",
            {"hashes": list(hashes), "newAddressesWithTrees": []},
        )
        value = (result or {}).get("value")
        if value is None:
            raise RpcError("getValidityProof returned no value")
        return ValidityProof.from_value(value)


def create_rpc(endpoint: str, *, timeout: float = 30) -> LightRpc:
    return LightRpc(endpoint, timeout=timeout)
