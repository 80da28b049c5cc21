"""
Monte Carlo Tree Search nodes and the search tree.

This module defines the TreeNode class, one vertex of the search tree, and
the SearchTree that owns the current root. Nodes do not store game states or
parent links: the board is replayed along the path during descent, and
backpropagation happens on the way back up the recursion.

All outcomes are accumulated from a single fixed perspective, the side the
agent plays for, whatever side moves at the node.
"""
from __future__ import annotations
from typing import Dict, Iterator, Optional, Tuple
import math

from nogo_ai.core.actions import Action, NO_ACTION
from nogo_ai.core.constants import PieceType
from nogo_ai.mcts.exceptions import ChildNotFoundError, DuplicateChildError

# Default scoring constants, see MCTSConfig
TERMINAL_SCALE = 200.0
UNEXPLORED_SCORE = 999.0
WIN_WEIGHT = 2


class TreeNode:
    """
    A node in the Monte Carlo search tree.

    ``role`` is the side to move from this node; ``move`` is the action that
    led here from the parent (``NO_ACTION`` at a fresh root). Each node owns
    its children exclusively, keyed by move.
    """

    def __init__(self, role: PieceType, move: Action = NO_ACTION):
        self.role = role
        self.move = move

        # Node statistics
        self.visit_count = 0
        self.outcome_accumulator = 0
        self.is_terminal_leaf = False
        self.terminal_value = 0  # +1 proven win, -1 proven loss, for the fixed perspective
        self.children: Dict[Action, TreeNode] = {}

    def has_child(self, move: Action) -> bool:
        return move in self.children

    def child(self, move: Action) -> TreeNode:
        """
        Get the child reached by ``move``.

        Raises:
            ChildNotFoundError: if the move has not been expanded
        """
        try:
            return self.children[move]
        except KeyError:
            raise ChildNotFoundError(f"no child for move {move}") from None

    def new_child(self, role: PieceType, move: Action) -> TreeNode:
        """
        Insert a fresh child for ``move``.

        Args:
            role: Side to move from the child
            move: Action leading to the child

        Returns:
            The new child

        Raises:
            DuplicateChildError: if the move already has a child
        """
        if move in self.children:
            raise DuplicateChildError(f"move {move} already has a child")
        child = TreeNode(role, move)
        self.children[move] = child
        return child

    def record_visit(self, result: float, parallel_width: int = 1) -> None:
        """
        Backpropagate the summed outcome of one simulation cycle.

        Args:
            result: Sum of the rollout outcomes of the cycle
            parallel_width: Number of rollouts the cycle ran
        """
        self.outcome_accumulator += result
        self.visit_count += max(1, parallel_width)

    def mark_terminal(self, won: bool, win_weight: int, parallel_width: int = 1) -> None:
        """
        Flag the node as a proven end of game and record the visit.

        The accumulator is overwritten so that every visit through the node,
        including those of earlier rollouts, counts as the proven outcome.
        """
        self.is_terminal_leaf = True
        self.terminal_value = 1 if won else -1
        self.visit_count += max(1, parallel_width)
        self.outcome_accumulator = self.visit_count * win_weight if won else 0

    @property
    def mean_outcome(self) -> float:
        if self.visit_count == 0:
            return 0.0
        return self.outcome_accumulator / self.visit_count

    def ucb_score(
        self,
        move: Action,
        perspective_role: PieceType,
        exploration_constant: float,
        terminal_scale: float = TERMINAL_SCALE,
        unexplored_score: float = UNEXPLORED_SCORE,
        win_weight: float = WIN_WEIGHT,
    ) -> float:
        """
        Score a move from this node for tree descent.

        Values are always seen from ``perspective_role``: when the opponent
        moves at this node the exploitation term is negated, so the opponent
        picks what is worst for the perspective side.

        An unexpanded move scores ``unexplored_score`` when the perspective
        side moves here, so all of its moves are tried first, and 0 when the
        opponent moves, so untried opponent replies are assumed harmless until
        the explored ones look bad.

        A proven terminal child scores its outcome times ``terminal_scale``
        and its visits, on top of the largest score a visited non-terminal
        sibling can reach (``win_weight`` plus the exploration term of a
        single visit). A proven win therefore beats every visited sibling and
        a proven loss loses to every one, whatever the exploration constant.

        Args:
            move: Move to score
            perspective_role: Side the search plays for
            exploration_constant: UCB exploration constant C
            win_weight: Largest mean outcome a child can have

        Returns:
            Selection score
        """
        sign = 1 if self.role == perspective_role else -1
        child = self.children.get(move)
        if child is None or child.visit_count == 0:
            return unexplored_score if sign > 0 else 0.0

        log_visits = math.log(max(1, self.visit_count))
        if child.is_terminal_leaf:
            ceiling = win_weight + exploration_constant * math.sqrt(log_visits)
            return sign * child.terminal_value * (terminal_scale * child.visit_count + ceiling)

        exploitation = sign * child.outcome_accumulator / child.visit_count
        exploration = math.sqrt(log_visits / child.visit_count)
        return exploitation + exploration_constant * exploration

    def best_child_by_visits(self) -> Action:
        """
        Get the most visited move (the robust child).

        Ties go to the child expanded first. Returns NO_ACTION without children.
        """
        if not self.children:
            return NO_ACTION
        return max(self.children.values(), key=lambda c: c.visit_count).move

    def highest_winrate_child(self) -> Action:
        """Get the move with the best mean outcome. Returns NO_ACTION without children."""
        if not self.children:
            return NO_ACTION
        return max(self.children.values(), key=lambda c: c.mean_outcome).move

    def top_two_by_visits(self) -> Tuple[Tuple[Action, int], Tuple[Action, int]]:
        """Get the two most visited children as ``(move, visits)`` pairs."""
        most = (NO_ACTION, 0)
        second = (NO_ACTION, 0)
        for move, child in self.children.items():
            if child.visit_count > most[1]:
                second = most
                most = (move, child.visit_count)
            elif child.visit_count > second[1]:
                second = (move, child.visit_count)
        return most, second

    def iter_children(self) -> Iterator[Tuple[Action, TreeNode]]:
        return iter(self.children.items())

    def __repr__(self) -> str:
        return (f"TreeNode(role={self.role.name}, move={self.move}, "
                f"visits={self.visit_count}, outcome={self.outcome_accumulator}, "
                f"children={len(self.children)}, terminal={self.is_terminal_leaf})")


class SearchTree:
    """
    Owner of the current root node.

    Advancing the root keeps the chosen subtree with all of its statistics
    and drops every sibling subtree.
    """

    def __init__(self, role: PieceType):
        self._root = TreeNode(role)

    @property
    def root(self) -> TreeNode:
        return self._root

    def advance(self, move: Action) -> TreeNode:
        """
        Make the child reached by ``move`` the new root.

        The child is created first if the search never expanded it.

        Args:
            move: Committed move

        Returns:
            The new root
        """
        if not self._root.has_child(move):
            self._root.new_child(self._root.role.opponent(), move)
        self._root = self._root.child(move)
        return self._root

    def reset(self, role: PieceType) -> TreeNode:
        """Discard the whole tree and start from a fresh root."""
        self._root = TreeNode(role)
        return self._root

    def node_count(self, node: Optional[TreeNode] = None) -> int:
        """Count the nodes below (and including) ``node``, default the root."""
        node = node or self._root
        return 1 + sum(self.node_count(child) for child in node.children.values())
