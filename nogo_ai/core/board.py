"""
Board representation and rules for NoGo.

NoGo is played on a Go board, but capturing is forbidden: a stone may not be
placed where it would remove the last liberty of an opponent group, nor where
its own group would be left without liberties. Players alternate, black first,
and the side that has no legal placement on its turn loses.

The board is stored as a flat numpy array indexed by point number
(``point = y * size + x``).
"""
from __future__ import annotations
from functools import lru_cache
from typing import List, Optional, Tuple

import numpy as np

from nogo_ai.core.constants import (
    PieceType, MoveResult, PIECE_SYMBOLS, BOARD_SIZE, MIN_BOARD_SIZE
)


@lru_cache(maxsize=None)
def neighbor_table(size: int) -> Tuple[Tuple[int, ...], ...]:
    """
    Get the orthogonal neighbors of every point on a board of the given size.

    Args:
        size: Side length of the board

    Returns:
        Tuple indexed by point, each entry a tuple of neighboring points
    """
    table = []
    for point in range(size * size):
        y, x = divmod(point, size)
        adjacent = []
        if y > 0:
            adjacent.append(point - size)
        if y < size - 1:
            adjacent.append(point + size)
        if x > 0:
            adjacent.append(point - 1)
        if x < size - 1:
            adjacent.append(point + 1)
        table.append(tuple(adjacent))
    return tuple(table)


class Board:
    """
    A NoGo board together with the side to move.

    Boards have value semantics for the search: callers explore hypothetical
    futures on ``copy()`` and compare boards with ``==`` to recognise moves.
    """

    def __init__(self, size: int = BOARD_SIZE):
        if size < MIN_BOARD_SIZE:
            raise ValueError(f"board size must be at least {MIN_BOARD_SIZE}")
        self.size = size
        self.grid = np.zeros(size * size, dtype=np.int8)
        self.who_take_turns = PieceType.BLACK
        self._neighbors = neighbor_table(size)

    @property
    def num_points(self) -> int:
        return self.size * self.size

    def __getitem__(self, point: int) -> PieceType:
        return PieceType(int(self.grid[point]))

    def copy(self) -> Board:
        """Create an independent copy of the board."""
        clone = Board.__new__(Board)
        clone.size = self.size
        clone.grid = self.grid.copy()
        clone.who_take_turns = self.who_take_turns
        clone._neighbors = self._neighbors
        return clone

    def _has_liberty(self, start: int) -> bool:
        """Check whether the group containing ``start`` touches an empty point."""
        grid = self.grid
        color = grid[start]
        seen = {start}
        stack = [start]
        while stack:
            point = stack.pop()
            for adjacent in self._neighbors[point]:
                content = grid[adjacent]
                if content == PieceType.EMPTY:
                    return True
                if content == color and adjacent not in seen:
                    seen.add(adjacent)
                    stack.append(adjacent)
        return False

    def check(self, point: int, who: Optional[PieceType] = None) -> MoveResult:
        """
        Test a placement without changing the board.

        Args:
            point: Point to place on
            who: Side placing the stone (defaults to the side to move)

        Returns:
            MoveResult describing whether the placement is legal
        """
        if who is None:
            who = self.who_take_turns
        if who != self.who_take_turns:
            return MoveResult.ILLEGAL_TURN
        if not 0 <= point < self.num_points:
            return MoveResult.ILLEGAL_OUT_OF_RANGE
        if self.grid[point] != PieceType.EMPTY:
            return MoveResult.ILLEGAL_NOT_EMPTY

        opponent = who.opponent()
        self.grid[point] = who
        try:
            for adjacent in self._neighbors[point]:
                if self.grid[adjacent] == opponent and not self._has_liberty(adjacent):
                    return MoveResult.ILLEGAL_TAKE
            if not self._has_liberty(point):
                return MoveResult.ILLEGAL_SUICIDE
            return MoveResult.LEGAL
        finally:
            self.grid[point] = PieceType.EMPTY

    def place(self, point: int, who: Optional[PieceType] = None) -> MoveResult:
        """
        Place a stone and pass the turn to the opponent if the placement is legal.

        Args:
            point: Point to place on
            who: Side placing the stone (defaults to the side to move)

        Returns:
            MoveResult; the board is unchanged unless it is LEGAL
        """
        if who is None:
            who = self.who_take_turns
        result = self.check(point, who)
        if result.is_legal:
            self.grid[point] = who
            self.who_take_turns = who.opponent()
        return result

    def empty_points(self) -> List[int]:
        return np.flatnonzero(self.grid == PieceType.EMPTY).tolist()

    def legal_moves(self, who: Optional[PieceType] = None) -> List[int]:
        """Get every point where ``who`` may legally place, in point order."""
        return [p for p in self.empty_points() if self.check(p, who).is_legal]

    def has_legal_move(self, who: Optional[PieceType] = None) -> bool:
        return any(self.check(p, who).is_legal for p in self.empty_points())

    def count(self, who: PieceType) -> int:
        return int(np.count_nonzero(self.grid == who))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Board):
            return NotImplemented
        return (self.size == other.size
                and self.who_take_turns == other.who_take_turns
                and np.array_equal(self.grid, other.grid))

    __hash__ = None

    def __str__(self) -> str:
        header = "  " + " ".join(chr(ord("A") + x) for x in range(self.size))
        rows = [header]
        for y in range(self.size):
            cells = (PIECE_SYMBOLS[PieceType(int(c))]
                     for c in self.grid[y * self.size:(y + 1) * self.size])
            rows.append(f"{y + 1:<2}" + " ".join(cells))
        rows.append(f"{PIECE_SYMBOLS[self.who_take_turns]} to move")
        return "\n".join(rows)

    def __repr__(self) -> str:
        return (f"Board(size={self.size}, to_move={self.who_take_turns.name}, "
                f"black={self.count(PieceType.BLACK)}, white={self.count(PieceType.WHITE)})")
