"""
Random playouts for the simulation phase of MCTS.

A rollout plays uniformly random legal placements for both sides, starting
from a copy of the given board, until the side to move is stuck. That side
loses. The outcome is reported from the fixed perspective of the searching
side: ``win_weight`` for a win, 0 for a loss.

Rollouts never touch shared state, so several of them can run at once on
independent board copies. ``LeafParallelRollout`` uses this to run a fixed
number of rollouts per expansion on a thread pool.
"""
from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor, wait
from typing import List, Optional
import logging
import queue

import numpy as np

from nogo_ai.core.board import Board
from nogo_ai.core.constants import PieceType

logger = logging.getLogger(__name__)


class RolloutEngine:
    """Plays random games to the end from the point of view of one side."""

    def __init__(self, perspective: PieceType, win_weight: int = 2):
        self.perspective = perspective
        self.win_weight = win_weight

    def rollout(self, board: Board, rng: np.random.Generator) -> int:
        """
        Play a random game to completion.

        The empty points are shuffled once. The last candidate is tried; a
        legal placement removes it and restarts the scan, an illegal one is
        swapped towards the front. The game is over when a full scan finds
        nothing legal for the side to move.

        Args:
            board: Starting position (not modified)
            rng: Random generator owned by the caller's thread

        Returns:
            ``win_weight`` if the perspective side wins, else 0
        """
        board = board.copy()
        points = rng.permutation(board.empty_points()).tolist()
        n = len(points)
        i = 0
        while n:
            if board.place(points[n - 1]).is_legal:
                n -= 1
                i = 0
            elif i < n:
                points[i], points[n - 1] = points[n - 1], points[i]
                i += 1
            else:
                n = 0

        winner = board.who_take_turns.opponent()
        return self.win_weight if winner == self.perspective else 0

    __call__ = rollout


class SequentialRollout:
    """Runs a single rollout per expansion on the calling thread."""

    width = 1

    def __init__(self, engine: RolloutEngine, seed: Optional[int] = None):
        self.engine = engine
        self.rng = np.random.default_rng(seed)

    def run(self, board: Board) -> int:
        return self.engine(board, self.rng)

    def close(self) -> None:
        pass


class LeafParallelRollout:
    """
    Runs ``width`` rollouts per expansion on a pool of worker threads.

    Each worker gets its own board copy and its own random generator. Outcomes
    are pushed to a single queue and only read after every worker has been
    joined, so the tree is never updated with a partial batch.
    """

    def __init__(self, engine: RolloutEngine, width: int, seed: Optional[int] = None):
        if width < 1:
            raise ValueError("width must be positive")
        self.engine = engine
        self.width = width
        seeds = np.random.SeedSequence(seed).spawn(width)
        self._rngs: List[np.random.Generator] = [np.random.default_rng(s) for s in seeds]
        self._results: queue.Queue = queue.Queue()
        self._executor = ThreadPoolExecutor(max_workers=width, thread_name_prefix="leaf_rollout")
        logger.debug("Leaf-parallel rollouts enabled with %d workers", width)

    def _worker(self, board: Board, rng: np.random.Generator) -> None:
        self._results.put(self.engine(board, rng))

    def run(self, board: Board) -> int:
        """
        Run one batch of rollouts and sum their outcomes.

        Args:
            board: Position to roll out from (not modified)

        Returns:
            Sum of the ``width`` outcomes
        """
        copies = [board.copy() for _ in range(self.width)]
        futures = [self._executor.submit(self._worker, copy, rng)
                   for copy, rng in zip(copies, self._rngs)]
        wait(futures)

        total = 0
        while True:
            try:
                total += self._results.get_nowait()
            except queue.Empty:
                break

        # Re-raise the first worker failure, if any
        for future in futures:
            future.result()
        return total

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> 'LeafParallelRollout':
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def make_rollout_runner(engine: RolloutEngine, leaf_parallel: int = 0, seed: Optional[int] = None):
    """
    Create the rollout runner for a configuration.

    Args:
        engine: Rollout engine to run
        leaf_parallel: Number of concurrent rollouts (0 = sequential)
        seed: Seed for the random generators

    Returns:
        SequentialRollout or LeafParallelRollout
    """
    if leaf_parallel > 0:
        return LeafParallelRollout(engine, leaf_parallel, seed)
    return SequentialRollout(engine, seed)
