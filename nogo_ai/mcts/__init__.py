"""
Monte Carlo Tree Search (MCTS) implementation for NoGo.

This package provides a complete MCTS player that keeps its search tree
across turns. Each simulation cycle works by:

1. Selection: Starting from the root node, descend by UCB score, seen from the
   searching side, until a move without a child is chosen.
2. Expansion: Create the child for that move.
3. Simulation: Play one random game (or several at once with leaf
   parallelization) from the new child.
4. Backpropagation: Add the outcome to every node on the path.

The number of cycles per move is either fixed or derived from the remaining
game clock, and can be cut short once one move has a decisive visit lead.
"""

from nogo_ai.mcts.node import TreeNode, SearchTree
from nogo_ai.mcts.agent import Player, Strategy
from nogo_ai.mcts.budget import BudgetController
from nogo_ai.mcts.rollout import (
    RolloutEngine,
    SequentialRollout,
    LeafParallelRollout,
    make_rollout_runner
)
from nogo_ai.mcts.search import (
    selection,
    run_simulations,
    search_move,
    is_unstable,
    get_principal_variation,
    get_action_statistics
)
from nogo_ai.mcts.config import MCTSConfig, parse_args_string
from nogo_ai.mcts.exceptions import (
    MCTSError,
    ConfigurationError,
    DesynchronizationError,
    ChildNotFoundError,
    DuplicateChildError
)

__all__ = [
    'Player',
    'Strategy',
    'TreeNode',
    'SearchTree',
    'BudgetController',
    'RolloutEngine',
    'SequentialRollout',
    'LeafParallelRollout',
    'make_rollout_runner',
    'selection',
    'run_simulations',
    'search_move',
    'is_unstable',
    'get_principal_variation',
    'get_action_statistics',
    'MCTSConfig',
    'parse_args_string',
    'MCTSError',
    'ConfigurationError',
    'DesynchronizationError',
    'ChildNotFoundError',
    'DuplicateChildError'
]
