"""Run state for the swap loop.

RunState lives in memory for one invocation only. Nothing is written to
disk; the final summary is delivered through the notifier.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class SwapDirection(str, Enum):
    """Which asset is being sold this attempt."""

    A_TO_B = "A_TO_B"
    B_TO_A = "B_TO_A"

    def opposite(self) -> "SwapDirection":
        return SwapDirection.B_TO_A if self is SwapDirection.A_TO_B else SwapDirection.A_TO_B

    @property
    def a2b(self) -> bool:
        return self is SwapDirection.A_TO_B


class OutcomeKind(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    SKIPPED = "SKIPPED"


class AttemptOutcome(BaseModel):
    """Result of a single attempt."""

    kind: OutcomeKind
    direction: SwapDirection
    amount_in: int = 0
    min_amount_out: int | None = None
    tx_hash: str = ""
    reason: str = ""

    @classmethod
    def success(
        cls, direction: SwapDirection, tx_hash: str, amount_in: int, min_amount_out: int
    ) -> "AttemptOutcome":
        return cls(
            kind=OutcomeKind.SUCCESS,
            direction=direction,
            tx_hash=tx_hash,
            amount_in=amount_in,
            min_amount_out=min_amount_out,
        )

    @classmethod
    def failure(
        cls,
        direction: SwapDirection,
        reason: str,
        amount_in: int = 0,
        min_amount_out: int | None = None,
    ) -> "AttemptOutcome":
        return cls(
            kind=OutcomeKind.FAILURE,
            direction=direction,
            reason=reason,
            amount_in=amount_in,
            min_amount_out=min_amount_out,
        )

    @classmethod
    def skipped(cls, direction: SwapDirection, reason: str) -> "AttemptOutcome":
        return cls(kind=OutcomeKind.SKIPPED, direction=direction, reason=reason)


class RunState(BaseModel):
    """Counters and direction for one run."""

    attempts_total: int = 0
    success_count: int = 0
    failure_count: int = 0
    skipped_count: int = 0
    current_direction: SwapDirection = SwapDirection.A_TO_B
    outcomes: list[AttemptOutcome] = Field(default_factory=list)

    def record(self, outcome: AttemptOutcome) -> None:
        """Count the outcome and flip to the opposite of the direction used."""
        self.attempts_total += 1
        if outcome.kind is OutcomeKind.SUCCESS:
            self.success_count += 1
        elif outcome.kind is OutcomeKind.FAILURE:
            self.failure_count += 1
        else:
            self.skipped_count += 1
        self.current_direction = outcome.direction.opposite()
        self.outcomes.append(outcome)

    def summary(self, target: int) -> str:
        return (
            f"📊 Swap run complete (target: {target} attempts)\n"
            f"  - Attempts: {self.attempts_total}\n"
            f"  - Successes: {self.success_count}\n"
            f"  - Failures: {self.failure_count}\n"
            f"  - Skipped: {self.skipped_count}"
        )
