"""Tapp Exchange client: stable-pool swap quotes and swap payloads.

Used by the swap loop to price each attempt and to build the entry
function payload that the Aptos client signs and submits.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from swaploop.clients.base import APIError, BaseClient

TAPP_API_URL = "https://api.tapp.exchange/api/v1"


class QuoteError(Exception):
    """The exchange returned no quote or an error payload."""


@dataclass(frozen=True)
class Quote:
    amount_in: int
    amount_out: int


class TappClient:
    """Tapp API: swap estimates; local payload construction."""

    def __init__(
        self,
        api_url: str = TAPP_API_URL,
        swap_function: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.swap_function = swap_function
        self._client = BaseClient(
            base_url=api_url,
            rate_limit=5.0,
            timeout=10.0,
            provider_name="tapp",
            transport=transport,
        )

    async def get_quote(
        self,
        pool_id: str,
        amount_in: int,
        pair: tuple[int, int],
        a2b: bool,
    ) -> Quote:
        """Estimate the output for swapping `amount_in` of pair[0] into pair[1].

        Args:
            pool_id: Pool address
            amount_in: Input amount in smallest units
            pair: (token_in_index, token_out_index) within the pool
            a2b: True when swapping the pool's first token into its second

        Raises:
            QuoteError: no result, an error member, or an unusable amount.
        """
        try:
            response = await self._client.rpc(
                "public/swap_estimate",
                {
                    "poolId": pool_id,
                    "amount": amount_in,
                    "pair": list(pair),
                    "a2b": a2b,
                    "field": "input",
                },
            )
        except APIError as e:
            raise QuoteError(f"quote request failed: {e}") from e

        if not response:
            raise QuoteError("empty quote response")
        if response.get("error"):
            raise QuoteError(f"quote error: {_error_message(response['error'])}")

        result = response.get("result")
        if not result:
            raise QuoteError("quote response has no result")
        if result.get("error"):
            raise QuoteError(f"quote error: {_error_message(result['error'])}")

        try:
            amount_out = int(result["amount"])
        except (KeyError, TypeError, ValueError):
            raise QuoteError(f"quote has no usable amount: {result!r}"[:300]) from None
        if amount_out < 0:
            raise QuoteError(f"quote amount is negative: {amount_out}")

        return Quote(amount_in=amount_in, amount_out=amount_out)

    def build_swap_payload(
        self,
        pool_id: str,
        token_in: int,
        token_out: int,
        amount_in: int,
        min_amount_out: int,
    ) -> dict[str, Any]:
        """Entry function payload for a stable-pool swap."""
        return {
            "type": "entry_function_payload",
            "function": self.swap_function,
            "type_arguments": [],
            "arguments": [
                pool_id,
                token_in,
                token_out,
                str(amount_in),
                str(min_amount_out),
            ],
        }

    async def close(self) -> None:
        await self._client.close()


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error)
