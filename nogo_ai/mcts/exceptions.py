"""
Errors raised by the MCTS search core.

Configuration and desynchronization errors are unrecoverable: an agent that
raises them must not keep playing. A missing or duplicated child is a
programming error in the caller. Running out of legal moves, reaching a
terminal root or failing to recognise the opponent's move are ordinary game
states and never raise.
"""


class MCTSError(Exception):
    """Base class for all search errors."""


class ConfigurationError(MCTSError, ValueError):
    """Invalid agent or search configuration (bad role, name or parameter)."""


class DesynchronizationError(MCTSError, RuntimeError):
    """The search tree root is not the side that is about to move."""


class ChildNotFoundError(MCTSError, KeyError):
    """A child was requested for a move that has not been expanded."""


class DuplicateChildError(MCTSError, ValueError):
    """A child was inserted for a move that already has one."""
