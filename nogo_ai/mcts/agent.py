"""
Players for NoGo.

This module provides the Player class, a ready-to-use agent configured from a
flat ``key=value`` argument string, e.g.::

    Player("name=mcts role=black search=MCTS C=1.44 fix_sim=1000 p_leaf=4")

The ``search`` key selects the strategy: uniformly random placements, a
greedy two-ply player, or Monte Carlo Tree Search. The MCTS strategy keeps its
search tree across turns: at the start of each turn it works out which move
the opponent played, moves the root along it, searches, and moves the root
along its own choice.
"""
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

import numpy as np

from nogo_ai.core.actions import Action, NO_ACTION, move_space
from nogo_ai.core.board import Board
from nogo_ai.core.constants import PieceType, FORBIDDEN_NAME_CHARS
from nogo_ai.mcts.budget import BudgetController
from nogo_ai.mcts.config import MCTSConfig, ARG_KEYS, parse_args_string
from nogo_ai.mcts.exceptions import ConfigurationError, DesynchronizationError
from nogo_ai.mcts.node import SearchTree, TreeNode
from nogo_ai.mcts.rollout import RolloutEngine, make_rollout_runner
from nogo_ai.mcts.search import (
    search_move, get_action_statistics, get_principal_variation
)

logger = logging.getLogger(__name__)


class Strategy(Enum):
    """Move selection strategies a Player can use."""
    RANDOM = "random"
    GREEDY = "greedy"
    MCTS = "mcts"

    @classmethod
    def from_name(cls, name: str) -> 'Strategy':
        try:
            return cls(name.lower())
        except ValueError:
            raise ConfigurationError(f"invalid search: {name}") from None


class Player:
    """
    A NoGo player for either side.

    Construction fails with ConfigurationError if the name contains any of
    ``[]():;`` or a space, or if the role is not black or white.
    """

    def __init__(
        self,
        args: str = "",
        config: Optional[MCTSConfig] = None,
        verbose: bool = False
    ):
        """
        Initialize a player.

        Args:
            args: Whitespace separated ``key=value`` arguments
            config: MCTS configuration (default: derived from ``args``)
            verbose: Whether to print a summary of every search
        """
        self.meta: Dict[str, str] = parse_args_string(
            "name=unknown role=unknown search=random " + args)
        if any(c in self.name for c in FORBIDDEN_NAME_CHARS):
            raise ConfigurationError(f"invalid name: {self.name}")
        try:
            self.who = PieceType.from_role(self.role)
        except ValueError:
            raise ConfigurationError(f"invalid role: {self.role}") from None
        self.oppo = self.who.opponent()
        self.strategy = Strategy.from_name(self.meta["search"])
        self.verbose = verbose

        self._strategies: Dict[Strategy, Callable[[Board], Action]] = {
            Strategy.RANDOM: self._random_take_action,
            Strategy.GREEDY: self._greedy_take_action,
            Strategy.MCTS: self._mcts_take_action,
        }

        self.tree = SearchTree(self.who)
        self.last_board: Optional[Board] = None
        self.turn = 0
        self.rollouts = None
        self.budget: Optional[BudgetController] = None
        self._configure(config or MCTSConfig.from_meta(self.meta))

        # Statistics from the most recent search
        self.last_stats: Dict[str, Any] = {}
        self.last_root: Optional[TreeNode] = None
        self.action_history: List[Tuple[Action, Dict[str, Any]]] = []

    def _configure(self, config: MCTSConfig) -> None:
        self.config = config
        self.rng = np.random.default_rng(config.seed)
        if self.rollouts is not None:
            self.rollouts.close()
        engine = RolloutEngine(self.who, config.win_weight)
        self.rollouts = make_rollout_runner(engine, config.leaf_parallel, config.seed)
        remaining = config.initial_time if self.budget is None else self.budget.remaining_time
        self.budget = BudgetController(config)
        self.budget.remaining_time = remaining

    def get_property(self, key: str) -> str:
        return self.meta[key]

    def notify(self, msg: str) -> None:
        """
        Update one ``key=value`` argument.

        Search parameters take effect from the next turn.
        """
        key = msg.split("=", 1)[0]
        self.meta[key] = msg.split("=", 1)[-1]
        if key in ARG_KEYS:
            self._configure(MCTSConfig.from_meta(self.meta))

    @property
    def name(self) -> str:
        return self.get_property("name")

    @property
    def role(self) -> str:
        return self.get_property("role")

    def open_episode(self, flag: str = "") -> None:
        """Start a new game: the next turn begins from a fresh tree."""
        self.turn = 0

    def close_episode(self, flag: str = "") -> None:
        logger.debug("%s closed episode after %d turns, remaining time %.2f",
                     self.name, self.turn, self.budget.remaining_time)

    def close(self) -> None:
        """Release the rollout worker threads."""
        self.rollouts.close()

    def __enter__(self) -> 'Player':
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def take_action(self, state: Board) -> Action:
        """
        Select a placement for the current position.

        Args:
            state: Current board, with this player to move

        Returns:
            Selected action, or NO_ACTION if no placement is legal
        """
        if state.who_take_turns != self.who:
            raise ValueError(f"Not {self.role}'s turn")
        return self._strategies[self.strategy](state)

    def _random_take_action(self, state: Board) -> Action:
        for point in self.rng.permutation(state.num_points).tolist():
            action = Action(point, self.who)
            if action.check(state).is_legal:
                return action
        return NO_ACTION

    def _greedy_take_action(self, state: Board) -> Action:
        """Pick the placement that leaves the opponent the fewest legal replies."""
        best_action = NO_ACTION
        fewest_replies = None
        for point in self.rng.permutation(state.num_points).tolist():
            after = state.copy()
            if not after.place(point, self.who).is_legal:
                continue
            replies = len(after.legal_moves(self.oppo))
            if fewest_replies is None or replies < fewest_replies:
                best_action = Action(point, self.who)
                fewest_replies = replies
                if replies == 0:
                    break
        return best_action

    def _reset_game(self) -> None:
        logger.info("%s: game reset, remaining time: %.2f", self.name, self.budget.remaining_time)
        self.tree.reset(self.who)
        self.turn = 0
        self.budget.reset()

    def _handle_opponent_turn(self, state: Board) -> bool:
        """
        Move the tree root along the opponent's last move.

        The move is recovered by replaying every opponent placement on the
        board this player left behind. If none reproduces ``state`` a new
        game has started and the tree is reset.

        Returns:
            True if the opponent's move was found
        """
        if self.last_board is not None and self.last_board.size == state.size:
            for move in move_space(self.oppo, state.size):
                after = self.last_board.copy()
                if move.apply(after).is_legal and after == state:
                    self.tree.advance(move)
                    return True
        self._reset_game()
        return False

    def _mcts_take_action(self, state: Board) -> Action:
        self.budget.begin_turn()
        if self.turn:
            self._handle_opponent_turn(state)
        else:
            self._reset_game()
        thinking_time = self.budget.plan(self.turn)
        self.turn += 1

        root = self.tree.root
        if root.role != self.who:
            raise DesynchronizationError(
                f"search tree root is {root.role.name} but {self.who.name} is to move\n{state}")

        move, stats = search_move(state, self.tree, self.who, self.config, self.rollouts, self.budget)
        self.last_root = root

        after = state.copy()
        if move:
            self.tree.advance(move)
            if not move.apply(after).is_legal:
                raise DesynchronizationError(f"search chose illegal move {move}\n{state}")
        self.last_board = after

        stats["time_elapsed"] = self.budget.end_turn()
        stats["iterations_per_second"] = stats["iterations"] / max(0.001, stats["time_elapsed"])
        stats["remaining_time"] = self.budget.remaining_time
        self.last_stats = stats
        self.action_history.append((move, stats))

        if self.verbose:
            self._print_search_info(move, stats)
        logger.debug("%s: turn %d, move %s, thinking time %.3f",
                     self.name, self.turn, move, thinking_time)
        return move

    def _print_search_info(self, action: Action, stats: Dict[str, Any]) -> None:
        """
        Print information about the search.

        Args:
            action: Selected action
            stats: Search statistics
        """
        print(f"\n{self.name} selected: {action}")
        print(f"Iterations: {stats['iterations']} ({stats['rollouts']} rollouts)")
        print(f"Time: {stats['time_elapsed']:.3f}s ({stats['iterations_per_second']:.1f} it/s)")
        print(f"Nodes: {stats['node_count']}")
        if stats["early_stop"]:
            print("Stopped early")

        # Print top actions by visit count
        actions = sorted(self.get_action_statistics().items(),
                         key=lambda x: x[1]["visits"], reverse=True)
        if actions:
            print("\nTop actions:")
        for i, (action_str, info) in enumerate(actions[:5]):
            print(f"{i+1}. {action_str} - {info['visits']} visits, {info['value']:.3f} value")

    def get_last_statistics(self) -> Dict[str, Any]:
        return self.last_stats

    def get_principal_variation(self) -> List[Tuple[Action, float]]:
        """
        Get the principal variation (most visited path) from the last search.

        Returns:
            List of (action, value) pairs representing the principal variation
        """
        if self.last_root is None:
            return []
        return get_principal_variation(self.last_root)

    def get_action_statistics(self) -> Dict[str, Dict[str, float]]:
        """
        Get statistics for all actions from the last search.

        Returns:
            Dictionary mapping action strings to statistics
        """
        if self.last_root is None:
            return {}
        return get_action_statistics(self.last_root, self.who, self.config)

    def reset_statistics(self) -> None:
        """Reset all statistics."""
        self.last_stats = {}
        self.action_history = []
        self.last_root = None

    def __str__(self) -> str:
        if self.strategy is Strategy.MCTS:
            return f"{self.name} ({self.role}, MCTS, {self.config.iterations} iterations)"
        return f"{self.name} ({self.role}, {self.strategy.value})"
