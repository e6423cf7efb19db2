"""Risk-extraction controller — guardian gate and rolling daily budget.

The guardian may move value out of the pool without burning shares:
``claim`` pays it to an address, ``penalize`` just records the loss.
Both lower the share price for every holder, so both are bounded:

    daily_cap = total_balance * max_daily_penalty_promilles // 1000

The cap is recomputed against the balance at the time of each call.
Spending is tracked per UTC day index (``now // 86400``); the counter
resets the first time a call lands in a new day.

Check order: guardian → balance sufficiency → daily cap.
"""

from __future__ import annotations

from stakepool.errors import DailyCapExceeded, InsufficientBalance, NotGuardian
from stakepool.models.pool import PenaltyWindow, PoolState
from stakepool.units import DAY_SECONDS, PROMILLE_SCALE


def day_index(now: int) -> int:
    return now // DAY_SECONDS


class RiskController:
    def __init__(self, state: PoolState) -> None:
        self._state = state

    def require_guardian(self, caller: str) -> None:
        if caller != self._state.roles.guardian:
            raise NotGuardian(f"{caller} is not the guardian")

    def daily_cap(self) -> int:
        s = self._state
        return s.total_balance * s.params.max_daily_penalty_promilles // PROMILLE_SCALE

    def current_window(self, now: int) -> PenaltyWindow:
        """The window in effect at ``now``, reset if the day has rolled over."""
        window = self._state.penalty_window
        day = day_index(now)
        if window.day_seq != day:
            return PenaltyWindow(day_seq=day, spent=0)
        return window

    def remaining_budget(self, now: int) -> int:
        return max(0, self.daily_cap() - self.current_window(now).spent)

    def check_extraction(self, amount: int, now: int) -> PenaltyWindow:
        """Validate an extraction and return the window to commit on success.

        Does not mutate state; a rejected call leaves even the day
        rollover uncommitted.
        """
        s = self._state
        if amount > s.total_balance:
            raise InsufficientBalance(
                f"Extraction of {amount} exceeds pool balance {s.total_balance}"
            )
        window = self.current_window(now)
        cap = self.daily_cap()
        if window.spent + amount > cap:
            raise DailyCapExceeded(
                f"Extraction of {amount} would bring today's total to "
                f"{window.spent + amount}, above the daily cap of {cap}"
            )
        return PenaltyWindow(day_seq=window.day_seq, spent=window.spent + amount)

    def apply_extraction(self, amount: int, window: PenaltyWindow) -> None:
        self._state.total_balance -= amount
        self._state.penalty_window = window
