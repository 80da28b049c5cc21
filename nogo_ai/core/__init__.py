"""
NoGo AI Core Package

This package contains the core game logic for NoGo, including:
- Board representation and placement rules
- Player actions and move spaces
- Constants and enums

All core components can be imported directly from this package.
"""

# Board
from nogo_ai.core.board import Board, neighbor_table

# Actions
from nogo_ai.core.actions import Action, NO_ACTION, move_space

# Constants
from nogo_ai.core.constants import (
    PieceType, MoveResult,
    BOARD_SIZE, MIN_BOARD_SIZE, ROLE_NAMES, PIECE_SYMBOLS,
    FORBIDDEN_NAME_CHARS
)

__all__ = [
    # Board
    'Board', 'neighbor_table',

    # Actions
    'Action', 'NO_ACTION', 'move_space',

    # Constants
    'PieceType', 'MoveResult',
    'BOARD_SIZE', 'MIN_BOARD_SIZE', 'ROLE_NAMES', 'PIECE_SYMBOLS',
    'FORBIDDEN_NAME_CHARS'
]
