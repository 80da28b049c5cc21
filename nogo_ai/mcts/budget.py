"""
Per-turn simulation budget for MCTS.

The controller decides how long a turn may search:

- Fixed mode runs ``iterations`` simulations.
- Time-managed mode spends ``remaining_time / divisor`` seconds, where the
  divisor is ``basic_const`` or, with the enhanced schedule,
  ``basic_const + max(enhanced_peak - 2 * turn, 0)``; the enhanced divisor
  shrinks by two per turn until it settles at ``basic_const``. Both are
  multiplied by ``time_bonus``.

It also owns the early-stop margin and the simulations-per-second estimate
the time-scaled margin is based on.
"""
from __future__ import annotations
from typing import Callable, Optional
import time

from nogo_ai.core.actions import Action, NO_ACTION
from nogo_ai.mcts.config import MCTSConfig
from nogo_ai.mcts.node import TreeNode


class BudgetController:
    """Clock and simulation budget of one agent across a game."""

    def __init__(self, config: MCTSConfig, clock: Callable[[], float] = time.perf_counter):
        self.config = config
        self.clock = clock
        self.remaining_time = config.initial_time
        self.thinking_time = 0.0
        self.sims_per_second = 0.0
        self._turn_start: Optional[float] = None

    def reset(self) -> None:
        """Restore the full game clock for a new game."""
        self.remaining_time = self.config.initial_time

    def begin_turn(self) -> None:
        """Start the wall clock of the current turn."""
        self._turn_start = self.clock()

    def elapsed(self) -> float:
        """Seconds spent since ``begin_turn``."""
        if self._turn_start is None:
            return 0.0
        return self.clock() - self._turn_start

    def plan(self, turn: int) -> float:
        """
        Compute the thinking time of a turn.

        Args:
            turn: Number of turns this agent already played in the game

        Returns:
            Thinking time in seconds
        """
        divisor = self.config.basic_const
        if self.config.enhanced_peak:
            divisor += max(self.config.enhanced_peak - 2 * turn, 0)
        self.thinking_time = self.remaining_time / divisor * self.config.time_bonus
        return self.thinking_time

    @property
    def time_limit(self) -> Optional[float]:
        """Thinking time if the clock drives the search, else None."""
        return self.thinking_time if self.config.use_time_management else None

    @property
    def iteration_limit(self) -> Optional[int]:
        """Simulation count if it drives the search, else None."""
        return None if self.config.use_time_management else self.config.iterations

    def record_rate(self, simulations: int, seconds: float) -> float:
        """
        Remember how fast this turn simulated.

        Time-managed turns cap ``seconds`` at the thinking time, so the cycle
        that overran the budget does not count against the rate. Nothing is
        recorded for a loop that took no measurable time.

        Args:
            simulations: Cycles completed by the search loop
            seconds: Time the search loop ran for

        Returns:
            The current simulations-per-second estimate
        """
        if self.config.use_time_management:
            seconds = min(seconds, self.thinking_time)
        if seconds > 0:
            self.sims_per_second = simulations / seconds
        return self.sims_per_second

    def end_turn(self) -> float:
        """Charge the time spent this turn to the game clock and return it."""
        spent = self.elapsed()
        self.remaining_time -= spent
        self._turn_start = None
        return spent

    def early_margin(self) -> Optional[float]:
        """
        Visit lead the most visited move needs to end the search early.

        Returns None while a time-scaled margin cannot be computed yet because
        no simulation rate has been measured.
        """
        width = self.config.parallel_width
        if self.config.early_coefficient == 0:
            return self.config.early_threshold * width
        if self.sims_per_second <= 0:
            return None
        remaining = max(self.thinking_time - self.elapsed(), 0.0)
        return remaining * self.sims_per_second * self.config.early_coefficient * width

    def early_stop_move(self, root: TreeNode) -> Action:
        """
        Get the decisive move at the root, if there is one.

        Returns:
            The most visited move if its lead over the runner-up reaches the
            margin, else NO_ACTION
        """
        if not self.config.early_stop:
            return NO_ACTION
        margin = self.early_margin()
        if margin is None:
            return NO_ACTION
        (most_move, most), (_, second) = root.top_two_by_visits()
        if most_move and most - margin >= second:
            return most_move
        return NO_ACTION
