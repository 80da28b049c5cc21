"""
NoGo AI - A Monte Carlo Tree Search framework for the board game NoGo.

This package provides an implementation of the NoGo rules, along with
players that choose moves at random, greedily, or by Monte Carlo Tree Search
with tree reuse across turns, time management and leaf-parallel rollouts.
"""

__version__ = "0.1.0"
__author__ = "NoGo AI Team"

# Make key components available at package level
from nogo_ai.core.board import Board
from nogo_ai.core.actions import Action, NO_ACTION
from nogo_ai.core.constants import PieceType, MoveResult
from nogo_ai.mcts.agent import Player

# Version info as a tuple for programmatic access
VERSION_INFO = tuple(map(int, __version__.split('.')))
