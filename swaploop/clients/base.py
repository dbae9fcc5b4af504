"""Shared HTTP layer for the Aptos node and Tapp API clients.

Provides:
- Token-bucket rate limiting per provider
- Retry with exponential backoff on 429/5xx/transport errors, honouring
  Retry-After on 429
- Aptos-style error bodies ({"message", "error_code"}) surfaced on APIError
- `allow_missing` GETs: 404 -> None, for lookups where "not found yet" is normal
- A JSON-RPC 2.0 call helper for the Tapp endpoint
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

import httpx


@dataclass
class RateLimiter:
    """Simple token-bucket rate limiter."""

    max_per_second: float
    _tokens: float = field(init=False)
    _last_refill: float = field(init=False)

    def __post_init__(self) -> None:
        self._tokens = self.max_per_second
        self._last_refill = time.monotonic()

    def acquire(self) -> float:
        """Take a token. Returns seconds to wait first (0 if one is available)."""
        now = time.monotonic()
        self._tokens = min(
            self.max_per_second,
            self._tokens + (now - self._last_refill) * self.max_per_second,
        )
        self._last_refill = now

        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return 0.0
        return (1.0 - self._tokens) / self.max_per_second


class APIError(Exception):
    """Request to the node or exchange API failed.

    `error_code` carries the node's machine-readable code when the body has
    one (e.g. "transaction_not_found", "invalid_transaction_update").
    `retry_after` is set from the Retry-After header on 429.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        provider: str = "",
        retryable: bool = False,
        error_code: str = "",
        retry_after: float | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider
        self.retryable = retryable
        self.error_code = error_code
        self.retry_after = retry_after


def _error_details(response: httpx.Response) -> tuple[str, str]:
    """(message, error_code) from an error body, falling back to raw text."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200], ""
    if isinstance(body, dict):
        message = body.get("message") or body.get("error") or response.text[:200]
        return str(message)[:200], str(body.get("error_code") or "")
    return response.text[:200], ""


def _retry_after(response: httpx.Response) -> float | None:
    try:
        return float(response.headers["retry-after"])
    except (KeyError, ValueError):
        return None


class BaseClient:
    """JSON-over-HTTP client with rate limiting and retry.

    Usage:
        node = BaseClient("https://fullnode.mainnet.aptoslabs.com/v1", provider_name="aptos")
        account = await node.get("/accounts/0x1")
        tx = await node.get(f"/transactions/by_hash/{h}", allow_missing=True)  # None on 404
    """

    def __init__(
        self,
        base_url: str = "",
        rate_limit: float = 10.0,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        backoff_max: float = 30.0,
        backoff_multiplier: float = 2.0,
        provider_name: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.provider_name = provider_name
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.backoff_multiplier = backoff_multiplier
        self._rate_limiter = RateLimiter(max_per_second=rate_limit)
        self._rpc_id = 0
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def get(self, path: str, allow_missing: bool = False) -> Any:
        """GET `path`. With allow_missing, a 404 returns None instead of raising."""
        return await self._request("GET", path, allow_missing=allow_missing)

    async def post(self, path: str, json_data: Any = None) -> Any:
        return await self._request("POST", path, json_data=json_data)

    async def rpc(self, method: str, params: dict[str, Any]) -> Any:
        """JSON-RPC 2.0 call against the base URL. Returns the raw response body.

        Error members are left for the caller to interpret.
        """
        self._rpc_id += 1
        return await self.post(
            "",
            json_data={"jsonrpc": "2.0", "id": self._rpc_id, "method": method, "params": params},
        )

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Any = None,
        allow_missing: bool = False,
    ) -> Any:
        last_error: APIError | None = None
        delay = self.backoff_base

        for attempt in range(self.max_retries + 1):
            wait = self._rate_limiter.acquire()
            if wait > 0:
                await asyncio.sleep(wait)

            try:
                response = await self._client.request(method, path, json=json_data)
                if allow_missing and response.status_code == 404:
                    return None
                self._raise_for_status(response)
                return response.json()
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                last_error = APIError(
                    f"Connection error to {self.provider_name}: {e}",
                    provider=self.provider_name,
                    retryable=True,
                )
            except APIError as e:
                last_error = e
                if not e.retryable:
                    raise

            if attempt < self.max_retries:
                pause = last_error.retry_after if last_error.retry_after is not None else delay
                await asyncio.sleep(min(pause, self.backoff_max))
                delay *= self.backoff_multiplier

        raise last_error or APIError(f"Request failed after {self.max_retries} retries")

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return

        if status == 429:
            raise APIError(
                f"Rate limited by {self.provider_name}",
                status_code=429,
                provider=self.provider_name,
                retryable=True,
                retry_after=_retry_after(response),
            )

        message, error_code = _error_details(response)
        kind = "Server error" if status >= 500 else "Client error"
        code = f" {error_code}" if error_code else ""
        raise APIError(
            f"{kind} from {self.provider_name}: {status}{code} - {message}",
            status_code=status,
            provider=self.provider_name,
            retryable=status >= 500,
            error_code=error_code,
        )
