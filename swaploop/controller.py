"""Swap Loop Controller.

Alternates swaps between asset A (APT) and asset B (kAPT) in one Tapp
stable pool until the target number of attempts is reached.

Per attempt:
1. Resolve direction (asset A below threshold -> force B->A for this attempt)
2. Compute amount in (A->B keeps a reserve; B->A sells the full balance)
3. Quote, then bound the output by slippage
4. Build -> sign -> submit -> wait for confirmation
5. Record the outcome; direction flips to the opposite of the one used
6. Sleep before the next attempt

Every per-attempt error is recorded as a failure and the loop moves on.
Nothing is retried within an attempt.
"""

from __future__ import annotations

import asyncio
import logging
import math
from decimal import Decimal
from typing import Any, Awaitable, Callable, Protocol

from swaploop.clients.tapp import Quote
from swaploop.config import SwapConfig
from swaploop.notifier import Notifier
from swaploop.signer.keys import SigningKey
from swaploop.state import AttemptOutcome, OutcomeKind, RunState, SwapDirection

log = logging.getLogger("swaploop.controller")

MAX_ERROR_CHARS = 500


class ChainClient(Protocol):
    async def get_balance(self, account: str, asset_type: str) -> int: ...
    async def build_transaction(self, sender: str, payload: dict[str, Any]) -> dict[str, Any]: ...
    async def sign(self, transaction: dict[str, Any], signer: SigningKey) -> dict[str, Any]: ...
    async def submit(self, signed_transaction: dict[str, Any]) -> dict[str, Any]: ...
    async def wait_for_confirmation(self, tx_hash: str) -> dict[str, Any]: ...


class ExchangeClient(Protocol):
    async def get_quote(
        self, pool_id: str, amount_in: int, pair: tuple[int, int], a2b: bool
    ) -> Quote: ...
    def build_swap_payload(
        self, pool_id: str, token_in: int, token_out: int, amount_in: int, min_amount_out: int
    ) -> dict[str, Any]: ...


def compute_min_amount_out(amount_out: int, slippage: Decimal) -> int:
    """floor(amount_out * (1 - slippage)), in exact decimal arithmetic."""
    return math.floor(Decimal(amount_out) * (Decimal(1) - Decimal(slippage)))


def short_address(address: str) -> str:
    return f"{address[:8]}..."


class SwapLoopController:
    """Owns RunState and drives the chain, exchange and notifier."""

    def __init__(
        self,
        config: SwapConfig,
        chain: ChainClient,
        exchange: ExchangeClient,
        signer: SigningKey,
        notifier: Notifier,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config
        self.chain = chain
        self.exchange = exchange
        self.signer = signer
        self.notifier = notifier
        self._sleep = sleep
        self.account = signer.address

    # ── Balance reads ────────────────────────────────────────────────

    async def read_balance(self, asset_type: str) -> int:
        """Balance in smallest units. A failed read counts as zero."""
        try:
            return await self.chain.get_balance(self.account, asset_type)
        except Exception as e:
            log.warning("Balance read failed for %s; treating as 0: %s", short_address(asset_type), e)
            return 0

    # ── Attempt steps ────────────────────────────────────────────────

    async def resolve_direction(self, state: RunState) -> tuple[SwapDirection, int]:
        """Direction for this attempt, plus the asset-A balance it was based on."""
        balance_a = await self.read_balance(self.config.asset_a_type)
        balance_dec = self.config.to_decimal(balance_a)

        if balance_dec < self.config.min_threshold:
            log.info(
                "[direction] asset A balance %.4f < %s; forcing B -> A",
                balance_dec, self.config.min_threshold,
            )
            return SwapDirection.B_TO_A, balance_a

        log.info(
            "[direction] asset A balance %.4f >= %s; keeping %s",
            balance_dec, self.config.min_threshold, state.current_direction.value,
        )
        return state.current_direction, balance_a

    async def compute_amount_in(self, direction: SwapDirection, balance_a: int) -> int:
        if direction is SwapDirection.A_TO_B:
            amount_in = max(0, balance_a - self.config.reserve_units)
            log.info(
                "[amount] A -> B: balance %.4f, keeping %s, swapping %.4f",
                self.config.to_decimal(balance_a), self.config.reserve,
                self.config.to_decimal(amount_in),
            )
            return amount_in

        amount_in = await self.read_balance(self.config.asset_b_type)
        log.info("[amount] B -> A: swapping full balance %.4f", self.config.to_decimal(amount_in))
        return amount_in

    def token_pair(self, direction: SwapDirection) -> tuple[int, int]:
        a, b = self.config.token_index_a, self.config.token_index_b
        return (a, b) if direction is SwapDirection.A_TO_B else (b, a)

    async def run_attempt(self, state: RunState) -> AttemptOutcome:
        direction, balance_a = await self.resolve_direction(state)
        amount_in = await self.compute_amount_in(direction, balance_a)

        if amount_in <= 0:
            return AttemptOutcome.skipped(direction, "swappable amount is zero")

        token_in, token_out = self.token_pair(direction)
        min_amount_out: int | None = None
        try:
            quote = await self.exchange.get_quote(
                self.config.pool_id, amount_in, (token_in, token_out), direction.a2b
            )
            min_amount_out = compute_min_amount_out(quote.amount_out, self.config.slippage)

            payload = self.exchange.build_swap_payload(
                self.config.pool_id, token_in, token_out, amount_in, min_amount_out
            )
            transaction = await self.chain.build_transaction(self.account, payload)
            signed = await self.chain.sign(transaction, self.signer)
            pending = await self.chain.submit(signed)
            tx_hash = pending["hash"]
            await self.chain.wait_for_confirmation(tx_hash)
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"[:MAX_ERROR_CHARS]
            return AttemptOutcome.failure(direction, reason, amount_in, min_amount_out)

        return AttemptOutcome.success(direction, tx_hash, amount_in, min_amount_out)

    # ── Loop ─────────────────────────────────────────────────────────

    async def run(self) -> RunState:
        target = self.config.batch_size
        state = RunState()

        log.info("--- Auto swap starting: %s, target %d attempts ---", short_address(self.account), target)
        await self.notifier.notify(f"🔄 Auto swap started. Target: {target} attempts")

        while state.attempts_total < target:
            outcome = await self.run_attempt(state)
            state.record(outcome)
            self._log_outcome(state, outcome)

            if state.attempts_total < target:
                log.info("💤 Waiting %ss", self.config.loop_interval_seconds)
                await self._sleep(self.config.loop_interval_seconds)

        summary = state.summary(target)
        await self.notifier.notify(summary)
        log.info("\n%s", summary)
        log.info("--- Auto swap finished ---")
        return state

    def _log_outcome(self, state: RunState, outcome: AttemptOutcome) -> None:
        n = state.attempts_total
        if outcome.kind is OutcomeKind.SUCCESS:
            log.info(
                "✅ attempt %d (%s) succeeded (#%d). TX: %s...",
                n, outcome.direction.value, state.success_count, outcome.tx_hash[:10],
            )
        elif outcome.kind is OutcomeKind.FAILURE:
            log.error(
                "❌ attempt %d (%s) failed (#%d): %s",
                n, outcome.direction.value, state.failure_count, outcome.reason,
            )
        else:
            log.info("attempt %d (%s) skipped: %s", n, outcome.direction.value, outcome.reason)
