"""Aptos fullnode client: balances and the transaction lifecycle.

Flow used by the swap loop:
1. get_balance        GET  /accounts/{addr}/balance/{asset_type}
2. build_transaction  GET  /accounts/{addr} + /estimate_gas_price
3. sign               POST /transactions/encode_submission, then ed25519
4. submit             POST /transactions
5. wait_for_confirmation  poll GET /transactions/by_hash/{hash}

Transactions are submitted as JSON requests so no BCS encoding is needed
client-side; the node returns the signing message for the request.
"""

from __future__ import annotations

import time
from typing import Any

import httpx

from swaploop.clients.base import APIError, BaseClient
from swaploop.signer.keys import SigningKey
from swaploop.utils.retry import PollTimeout, poll_until

MAINNET_URL = "https://fullnode.mainnet.aptoslabs.com/v1"


class TransactionError(Exception):
    """Build, sign, submit or confirmation failed."""

    def __init__(self, message: str, tx_hash: str = ""):
        super().__init__(message)
        self.tx_hash = tx_hash


class AptosClient:
    """Aptos node REST API: balances, JSON transaction submission."""

    def __init__(
        self,
        node_url: str = MAINNET_URL,
        max_gas_amount: int = 20_000,
        txn_ttl_seconds: int = 60,
        confirmation_timeout: float = 60.0,
        poll_interval: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.max_gas_amount = max_gas_amount
        self.txn_ttl_seconds = txn_ttl_seconds
        self.confirmation_timeout = confirmation_timeout
        self.poll_interval = poll_interval
        self._client = BaseClient(
            base_url=node_url,
            rate_limit=5.0,
            timeout=15.0,
            provider_name="aptos",
            transport=transport,
        )

    async def get_balance(self, account: str, asset_type: str) -> int:
        """Balance of a coin type or fungible asset, in smallest units."""
        result = await self._client.get(f"/accounts/{account}/balance/{asset_type}")
        return int(result)

    async def get_sequence_number(self, account: str) -> int:
        result = await self._client.get(f"/accounts/{account}")
        return int(result["sequence_number"])

    async def estimate_gas_price(self) -> int:
        result = await self._client.get("/estimate_gas_price")
        return int(result["gas_estimate"])

    async def build_transaction(self, sender: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Build an unsigned JSON transaction request for `payload`."""
        try:
            sequence_number = await self.get_sequence_number(sender)
            gas_unit_price = await self.estimate_gas_price()
        except (APIError, KeyError, ValueError) as e:
            raise TransactionError(f"build failed: {e}") from e

        return {
            "sender": sender,
            "sequence_number": str(sequence_number),
            "max_gas_amount": str(self.max_gas_amount),
            "gas_unit_price": str(gas_unit_price),
            "expiration_timestamp_secs": str(int(time.time()) + self.txn_ttl_seconds),
            "payload": payload,
        }

    async def sign(self, transaction: dict[str, Any], signer: SigningKey) -> dict[str, Any]:
        """Attach an ed25519 signature to a transaction request."""
        try:
            signing_message = await self._client.post(
                "/transactions/encode_submission", json_data=transaction
            )
            message = bytes.fromhex(str(signing_message).removeprefix("0x"))
        except (APIError, ValueError) as e:
            raise TransactionError(f"sign failed: {e}") from e

        signature = signer.sign(message)
        return {
            **transaction,
            "signature": {
                "type": "ed25519_signature",
                "public_key": signer.public_key_hex,
                "signature": "0x" + signature.hex(),
            },
        }

    async def submit(self, signed_transaction: dict[str, Any]) -> dict[str, Any]:
        """Submit a signed transaction. Returns the pending transaction ({"hash": ...})."""
        try:
            result = await self._client.post("/transactions", json_data=signed_transaction)
        except APIError as e:
            raise TransactionError(f"submit failed: {e}") from e
        if not result or not result.get("hash"):
            raise TransactionError("submit returned no transaction hash")
        return result

    async def get_transaction(self, tx_hash: str) -> dict[str, Any] | None:
        """Transaction by hash, or None while the node does not know it yet."""
        return await self._client.get(f"/transactions/by_hash/{tx_hash}", allow_missing=True)

    async def wait_for_confirmation(self, tx_hash: str) -> dict[str, Any]:
        """Wait until the transaction is committed.

        Raises:
            TransactionError: committed with success=false, or not committed
                before the confirmation timeout.
        """
        try:
            tx = await poll_until(
                lambda: self.get_transaction(tx_hash),
                done=_is_committed,
                timeout=self.confirmation_timeout,
                interval=self.poll_interval,
            )
        except PollTimeout:
            raise TransactionError(
                f"not confirmed after {self.confirmation_timeout:.0f}s", tx_hash=tx_hash
            ) from None
        except APIError as e:
            raise TransactionError(f"confirmation failed: {e}", tx_hash=tx_hash) from e

        if not tx.get("success", False):
            raise TransactionError(
                f"transaction failed on-chain: {tx.get('vm_status', 'unknown')}",
                tx_hash=tx_hash,
            )
        return tx

    async def close(self) -> None:
        await self._client.close()


def _is_committed(tx: dict[str, Any] | None) -> bool:
    return tx is not None and tx.get("type") != "pending_transaction"
