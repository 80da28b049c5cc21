"""
Constants for the NoGo game.

This module defines the game constants used throughout the NoGo implementation,
including piece types, placement results and board limits.
"""
from enum import Enum, IntEnum, auto
from typing import Dict, Final


class PieceType(IntEnum):
    """Enum representing the content of a board point (and the two sides)."""
    EMPTY = 0
    BLACK = 1
    WHITE = 2

    def opponent(self) -> 'PieceType':
        """Get the opposing side. EMPTY has no opponent."""
        if self is PieceType.BLACK:
            return PieceType.WHITE
        if self is PieceType.WHITE:
            return PieceType.BLACK
        raise ValueError("EMPTY has no opponent")

    @classmethod
    def from_role(cls, role: str) -> 'PieceType':
        """
        Parse a role string.

        Args:
            role: "black" or "white"

        Returns:
            The matching PieceType

        Raises:
            ValueError: if the role is neither black nor white
        """
        try:
            return ROLE_NAMES[role]
        except KeyError:
            raise ValueError(f"invalid role: {role}") from None


class MoveResult(Enum):
    """Enum representing the outcome of a placement attempt."""
    LEGAL = auto()
    ILLEGAL_TURN = auto()          # Not this side's turn
    ILLEGAL_OUT_OF_RANGE = auto()
    ILLEGAL_NOT_EMPTY = auto()
    ILLEGAL_SUICIDE = auto()       # Own group left without liberties
    ILLEGAL_TAKE = auto()          # Opponent group would be captured

    @property
    def is_legal(self) -> bool:
        return self is MoveResult.LEGAL

    @property
    def is_rule_violation(self) -> bool:
        """True for every illegal result other than playing out of turn."""
        return self not in (MoveResult.LEGAL, MoveResult.ILLEGAL_TURN)


ROLE_NAMES: Final[Dict[str, PieceType]] = {
    "black": PieceType.BLACK,
    "white": PieceType.WHITE,
}

# Symbols for terminal display
PIECE_SYMBOLS: Final[Dict[PieceType, str]] = {
    PieceType.EMPTY: ".",
    PieceType.BLACK: "X",
    PieceType.WHITE: "O",
}

# Standard board
BOARD_SIZE: Final[int] = 9
MIN_BOARD_SIZE: Final[int] = 2

# Characters forbidden in agent names
FORBIDDEN_NAME_CHARS: Final[str] = "[]():; "
