"""
Actions for the NoGo game.

The only kind of action in NoGo is placing a stone. Actions are immutable and
hashable so they can key the children of a search tree node. ``NO_ACTION`` is
the distinguished empty action returned when a side has no legal placement.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import List

from nogo_ai.core.board import Board
from nogo_ai.core.constants import PieceType, MoveResult, BOARD_SIZE


@dataclass(frozen=True, order=True)
class Action:
    """A placement of a stone of colour ``who`` on ``point``."""
    point: int = -1
    who: PieceType = PieceType.EMPTY

    def apply(self, board: Board) -> MoveResult:
        """
        Apply the placement to a board.

        Args:
            board: Board to modify

        Returns:
            MoveResult; the board only changes on a LEGAL result
        """
        if not self:
            return MoveResult.ILLEGAL_OUT_OF_RANGE
        return board.place(self.point, self.who)

    def check(self, board: Board) -> MoveResult:
        """Test the placement without modifying the board."""
        if not self:
            return MoveResult.ILLEGAL_OUT_OF_RANGE
        return board.check(self.point, self.who)

    def __bool__(self) -> bool:
        return self.point >= 0 and self.who != PieceType.EMPTY

    def __str__(self) -> str:
        if not self:
            return "??"
        return f"{self.who.name[0]}{self.point}"


NO_ACTION = Action()


def move_space(who: PieceType, size: int = BOARD_SIZE) -> List[Action]:
    """
    Get every placement for one side, in point order.

    Args:
        who: Side placing the stones
        size: Side length of the board

    Returns:
        List of actions, one per board point
    """
    return [Action(point, who) for point in range(size * size)]
