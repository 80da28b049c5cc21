"""
Monte Carlo Tree Search (MCTS) algorithm for NoGo.

This module implements the search loop with the four standard phases:
1. Selection: Descend from the root by UCB score
2. Expansion: Create one new child per simulation
3. Simulation: Run one rollout (or a leaf-parallel batch) from the new child
4. Backpropagation: Update statistics on the way back up the recursion

On top of the loop sit the early-stop check and the stability refinement
that spends extra bursts while the most visited move and the best win rate
disagree.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple
import logging

from nogo_ai.core.actions import Action, NO_ACTION
from nogo_ai.core.board import Board
from nogo_ai.core.constants import PieceType
from nogo_ai.mcts.budget import BudgetController
from nogo_ai.mcts.config import MCTSConfig
from nogo_ai.mcts.node import TreeNode, SearchTree

logger = logging.getLogger(__name__)


def selection(
    board: Board,
    node: TreeNode,
    perspective: PieceType,
    config: MCTSConfig,
    rollouts,
) -> Tuple[Action, float]:
    """
    Run one simulation cycle below ``node``.

    ``board`` must be the position of ``node`` and is advanced in place along
    the descent, so callers pass a copy.

    Args:
        board: Position at ``node`` (modified)
        node: Node to descend from
        perspective: Side the search plays for
        config: MCTS configuration parameters
        rollouts: Rollout runner with ``width`` and ``run(board)``

    Returns:
        Tuple of (move chosen at ``node``, summed outcome of the cycle)
    """
    width = rollouts.width

    best_move = NO_ACTION
    best_score = float("-inf")
    for point in board.empty_points():
        if not board.check(point, node.role).is_legal:
            continue
        move = Action(point, node.role)
        score = node.ucb_score(
            move, perspective, config.exploration_weight,
            config.terminal_scale, config.unexplored_score, config.win_weight,
        )
        if score > best_score:
            best_move = move
            best_score = score

    # The side to move is stuck: a proven end of game
    if not best_move:
        won = node.role != perspective
        node.mark_terminal(won, config.win_weight, width)
        return NO_ACTION, config.win_weight * width if won else 0

    best_move.apply(board)
    if node.has_child(best_move):
        _, result = selection(board, node.child(best_move), perspective, config, rollouts)
        node.record_visit(result, width)
    else:
        child = node.new_child(node.role.opponent(), best_move)
        result = rollouts.run(board)
        child.record_visit(result, width)
        node.record_visit(result, width)

    return best_move, result


def run_simulations(
    state: Board,
    tree: SearchTree,
    perspective: PieceType,
    config: MCTSConfig,
    rollouts,
    budget: BudgetController,
    time_limit: Optional[float] = None,
    iteration_limit: Optional[int] = None,
    check_early: bool = False,
) -> Tuple[int, Action]:
    """
    Run simulation cycles from the root until a limit is reached.

    The clock is only checked between cycles, so a turn can overrun its time
    limit by at most one cycle.

    Args:
        state: Position at the root (not modified)
        tree: Search tree to grow
        perspective: Side the search plays for
        config: MCTS configuration parameters
        rollouts: Rollout runner
        budget: Budget controller holding the turn clock
        time_limit: Seconds this call may simulate for, or None
        iteration_limit: Number of cycles, or None
        check_early: Check for a decisive move after every cycle

    Returns:
        Tuple of (completed cycles, early-stop move or NO_ACTION)
    """
    start = budget.clock()
    iterations = 0
    while iteration_limit is None or iterations < iteration_limit:
        if time_limit is not None and budget.clock() - start >= time_limit:
            break
        if tree.root.is_terminal_leaf:
            break
        selection(state.copy(), tree.root, perspective, config, rollouts)
        iterations += 1
        if check_early:
            decisive = budget.early_stop_move(tree.root)
            if decisive:
                return iterations, decisive
    return iterations, NO_ACTION


def is_unstable(root: TreeNode) -> bool:
    """Check whether the most visited move differs from the best win rate."""
    move = root.best_child_by_visits()
    return bool(move) and root.highest_winrate_child() != move


def search_move(
    state: Board,
    tree: SearchTree,
    perspective: PieceType,
    config: MCTSConfig,
    rollouts,
    budget: BudgetController,
) -> Tuple[Action, Dict[str, Any]]:
    """
    Search the current root and choose a move.

    The turn clock must have been started and planned on ``budget``.

    Args:
        state: Current position, the position of ``tree.root``
        tree: Search tree rooted at ``state``
        perspective: Side the search plays for
        config: MCTS configuration parameters
        rollouts: Rollout runner
        budget: Budget controller

    Returns:
        Tuple of (most visited move or NO_ACTION, search statistics)
    """
    stats: Dict[str, Any] = {
        "iterations": 0,
        "unstable_bursts": 0,
        "early_stop": False,
        "thinking_time": budget.thinking_time,
    }
    root = tree.root

    # A move may already be decisive thanks to the reused subtree
    decisive = budget.early_stop_move(root)
    if decisive:
        stats["early_stop"] = True
    else:
        start = budget.clock()
        iterations, decisive = run_simulations(
            state, tree, perspective, config, rollouts, budget,
            time_limit=budget.time_limit,
            iteration_limit=budget.iteration_limit,
            check_early=config.early_stop,
        )
        stats["iterations"] = iterations
        stats["early_stop"] = bool(decisive)
        rate = budget.record_rate(iterations, budget.clock() - start)
        logger.debug("rollout count: %d, avg count per second: %.1f",
                     iterations * rollouts.width, rate)

    # Spend extra half-budget bursts while the choice is unstable
    for _ in range(config.unstable_retries):
        if not is_unstable(root):
            break
        if config.use_time_management:
            burst_time, burst_count = budget.thinking_time / 2, None
        else:
            burst_time, burst_count = None, max(1, config.iterations // 2)
        iterations, _ = run_simulations(
            state, tree, perspective, config, rollouts, budget,
            time_limit=burst_time, iteration_limit=burst_count,
        )
        stats["iterations"] += iterations
        stats["unstable_bursts"] += 1

    move = root.best_child_by_visits()
    stats["rollouts"] = stats["iterations"] * rollouts.width
    stats["root_visits"] = root.visit_count
    stats["node_count"] = tree.node_count()
    return move, stats


def get_principal_variation(root: TreeNode, max_depth: int = 10) -> List[Tuple[Action, float]]:
    """
    Get the principal variation (most visited path) from the root.

    This is useful for analysis and debugging.

    Args:
        root: Root node of the MCTS tree
        max_depth: Maximum depth to explore

    Returns:
        List of (action, mean outcome) pairs representing the principal variation
    """
    result = []
    current = root
    while current.children and len(result) < max_depth:
        move = current.best_child_by_visits()
        current = current.child(move)
        result.append((move, current.mean_outcome))
    return result


def get_action_statistics(
    root: TreeNode,
    perspective: PieceType,
    config: MCTSConfig,
) -> Dict[str, Dict[str, float]]:
    """
    Get statistics for all actions from the root.

    This is useful for analysis and debugging.

    Args:
        root: Root node of the MCTS tree
        perspective: Side the search plays for
        config: MCTS configuration parameters

    Returns:
        Dictionary mapping action strings to statistics
    """
    result = {}
    for move, child in root.iter_children():
        result[str(move)] = {
            "visits": child.visit_count,
            "reward": child.outcome_accumulator,
            "value": child.mean_outcome,
            "terminal": child.is_terminal_leaf,
            "ucb": root.ucb_score(
                move, perspective, config.exploration_weight,
                config.terminal_scale, config.unexplored_score, config.win_weight,
            ),
        }
    return result
