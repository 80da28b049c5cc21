#!/usr/bin/env python
"""
Tests for the MCTS search loop, the budget controller and leaf-parallel rollouts.
"""
import unittest
from unittest import mock

import numpy as np

from nogo_ai.core.actions import Action, NO_ACTION
from nogo_ai.core.board import Board
from nogo_ai.core.constants import PieceType
from nogo_ai.mcts.budget import BudgetController
from nogo_ai.mcts.config import MCTSConfig
from nogo_ai.mcts.node import TreeNode, SearchTree
from nogo_ai.mcts.rollout import (
    RolloutEngine, SequentialRollout, LeafParallelRollout, make_rollout_runner
)
from nogo_ai.mcts.search import (
    selection, run_simulations, is_unstable, search_move,
    get_principal_variation, get_action_statistics
)
from test_board import make_board

BLACK = PieceType.BLACK
WHITE = PieceType.WHITE


class FixedRollout:
    """Rollout runner that always reports the same summed outcome."""

    def __init__(self, value, width=1, clock=None, step=0.0):
        self.value = value
        self.width = width
        self.clock = clock
        self.step = step
        self.calls = 0

    def run(self, board):
        self.calls += 1
        if self.clock is not None:
            self.clock.now += self.step
        return self.value

    def close(self):
        pass


class FakeClock:
    """Manually advanced clock."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def forced_win_board():
    """2x2 board where black wins only by playing point 3."""
    return make_board(2, black=[0])


class TestSelection(unittest.TestCase):
    """Test case for single simulation cycles."""

    def setUp(self):
        self.config = MCTSConfig()

    def test_expands_one_child_per_cycle(self):
        tree = SearchTree(BLACK)
        rollouts = FixedRollout(2)
        move, result = selection(Board(3), tree.root, BLACK, self.config, rollouts)
        self.assertEqual(move, Action(0, BLACK))
        self.assertEqual(result, 2)
        self.assertEqual(len(tree.root.children), 1)
        self.assertEqual(tree.root.visit_count, 1)
        self.assertEqual(tree.root.outcome_accumulator, 2)
        self.assertEqual(rollouts.calls, 1)

    def test_advances_board_copy(self):
        board = Board(3)
        selection(board, TreeNode(BLACK), BLACK, self.config, FixedRollout(0))
        self.assertEqual(board[0], BLACK)
        self.assertEqual(board.who_take_turns, WHITE)

    def test_stuck_opponent_is_proven_win(self):
        board = make_board(2, black=[0, 3], to_move=WHITE)
        node = TreeNode(WHITE)
        rollouts = FixedRollout(0)
        move, result = selection(board, node, BLACK, self.config, rollouts)
        self.assertEqual(move, NO_ACTION)
        self.assertEqual(result, 2)
        self.assertTrue(node.is_terminal_leaf)
        self.assertEqual(node.terminal_value, 1)
        self.assertEqual(rollouts.calls, 0)

    def test_stuck_self_is_proven_loss(self):
        board = make_board(2, white=[0, 3], to_move=BLACK)
        node = TreeNode(BLACK)
        move, result = selection(board, node, BLACK, self.config, FixedRollout(2))
        self.assertEqual(move, NO_ACTION)
        self.assertEqual(result, 0)
        self.assertEqual(node.terminal_value, -1)
        self.assertEqual(node.outcome_accumulator, 0)


class TestRunSimulations(unittest.TestCase):
    """Test case for the simulation loop."""

    def setUp(self):
        self.config = MCTSConfig(seed=3)
        self.budget = BudgetController(self.config)

    def test_visit_conservation(self):
        tree = SearchTree(BLACK)
        rollouts = SequentialRollout(RolloutEngine(BLACK), seed=3)
        iterations, decisive = run_simulations(
            Board(3), tree, BLACK, self.config, rollouts, self.budget, iteration_limit=50)
        self.assertEqual(iterations, 50)
        self.assertEqual(decisive, NO_ACTION)
        self.assertEqual(tree.root.visit_count, 50)
        self.assertEqual(sum(c.visit_count for c in tree.root.children.values()), 50)

    def test_visit_conservation_with_width(self):
        tree = SearchTree(BLACK)
        rollouts = FixedRollout(4, width=4)
        run_simulations(Board(3), tree, BLACK, self.config, rollouts, self.budget,
                        iteration_limit=30)
        self.assertEqual(tree.root.visit_count, 120)
        self.assertEqual(sum(c.visit_count for c in tree.root.children.values()), 120)

    def test_state_not_modified(self):
        board = Board(3)
        run_simulations(board, SearchTree(BLACK), BLACK, self.config, FixedRollout(0),
                        self.budget, iteration_limit=20)
        self.assertEqual(board, Board(3))

    def test_terminal_root_stops(self):
        tree = SearchTree(WHITE)
        board = make_board(2, black=[0, 3], to_move=WHITE)
        iterations, _ = run_simulations(board, tree, BLACK, self.config, FixedRollout(0),
                                        self.budget, iteration_limit=10)
        self.assertEqual(iterations, 1)
        self.assertTrue(tree.root.is_terminal_leaf)
        self.assertEqual(tree.root.visit_count, 1)
        self.assertEqual(tree.root.outcome_accumulator, 2)

    def test_finds_forced_win(self):
        tree = SearchTree(BLACK)
        run_simulations(forced_win_board(), tree, BLACK, self.config, FixedRollout(0),
                        self.budget, iteration_limit=20)
        self.assertEqual(tree.root.best_child_by_visits(), Action(3, BLACK))
        winner = tree.root.child(Action(3, BLACK))
        self.assertTrue(winner.is_terminal_leaf)
        self.assertEqual(winner.outcome_accumulator, 2 * winner.visit_count)

    def test_early_stop(self):
        config = MCTSConfig(early_stop=True, early_threshold=3)
        budget = BudgetController(config)
        tree = SearchTree(BLACK)
        iterations, decisive = run_simulations(
            forced_win_board(), tree, BLACK, config, FixedRollout(0), budget,
            iteration_limit=100, check_early=True)
        self.assertEqual(decisive, Action(3, BLACK))
        self.assertEqual(iterations, 9)
        (_, most), (_, second) = tree.root.top_two_by_visits()
        self.assertGreaterEqual(most - 3, second)

    def test_time_limit(self):
        clock = FakeClock()
        budget = BudgetController(self.config, clock=clock)
        rollouts = FixedRollout(0, clock=clock, step=0.25)
        iterations, _ = run_simulations(Board(3), SearchTree(BLACK), BLACK, self.config,
                                        rollouts, budget, time_limit=1.0)
        self.assertEqual(iterations, 4)
        # Overrun is bounded by one cycle
        self.assertLessEqual(clock.now, 1.0 + 0.25)


class TestBudgetController(unittest.TestCase):
    """Test case for thinking time and early-stop margins."""

    def test_basic_schedule(self):
        budget = BudgetController(MCTSConfig(use_time_management=True, initial_time=300))
        self.assertAlmostEqual(budget.plan(0), 10.0)
        self.assertAlmostEqual(budget.plan(20), 10.0)
        self.assertAlmostEqual(budget.time_limit, 10.0)
        self.assertIsNone(budget.iteration_limit)

    def test_enhanced_schedule(self):
        config = MCTSConfig(use_time_management=True, initial_time=300, enhanced_peak=15)
        budget = BudgetController(config)
        self.assertAlmostEqual(budget.plan(0), 300 / 45)
        self.assertAlmostEqual(budget.plan(5), 300 / 35)
        self.assertAlmostEqual(budget.plan(10), 300 / 30)
        self.assertAlmostEqual(budget.plan(40), 300 / 30)

    def test_time_bonus(self):
        config = MCTSConfig(use_time_management=True, initial_time=300, time_bonus=2.0)
        self.assertAlmostEqual(BudgetController(config).plan(0), 20.0)

    def test_fixed_mode_limits(self):
        budget = BudgetController(MCTSConfig(iterations=77))
        budget.plan(0)
        self.assertIsNone(budget.time_limit)
        self.assertEqual(budget.iteration_limit, 77)

    def test_end_turn_charges_clock(self):
        clock = FakeClock()
        budget = BudgetController(MCTSConfig(initial_time=10.0), clock=clock)
        budget.begin_turn()
        clock.now += 1.5
        self.assertAlmostEqual(budget.end_turn(), 1.5)
        self.assertAlmostEqual(budget.remaining_time, 8.5)
        self.assertEqual(budget.elapsed(), 0.0)
        budget.reset()
        self.assertAlmostEqual(budget.remaining_time, 10.0)

    def test_record_rate(self):
        budget = BudgetController(MCTSConfig())
        self.assertAlmostEqual(budget.record_rate(100, 2.0), 50.0)
        # No measurable time keeps the previous estimate
        self.assertAlmostEqual(budget.record_rate(100, 0.0), 50.0)

        timed = BudgetController(MCTSConfig(use_time_management=True, initial_time=30))
        timed.plan(0)
        self.assertAlmostEqual(timed.record_rate(100, 1.25), 100.0)
        self.assertAlmostEqual(timed.record_rate(30, 0.1), 300.0)

    def test_early_stop_records_achieved_rate(self):
        clock = FakeClock()
        config = MCTSConfig(use_time_management=True, initial_time=30,
                            early_stop=True, early_threshold=3)
        budget = BudgetController(config, clock=clock)
        budget.begin_turn()
        self.assertAlmostEqual(budget.plan(0), 1.0)

        rollouts = FixedRollout(0, clock=clock, step=0.01)
        move, stats = search_move(forced_win_board(), SearchTree(BLACK), BLACK, config,
                                  rollouts, budget)
        self.assertEqual(move, Action(3, BLACK))
        self.assertTrue(stats["early_stop"])
        self.assertEqual(stats["iterations"], 9)
        # Five expansions ran a rollout; the rest descended into the proven win
        self.assertEqual(rollouts.calls, 5)
        self.assertAlmostEqual(budget.sims_per_second, 9 / 0.05)

    def test_fixed_margin(self):
        budget = BudgetController(MCTSConfig(early_stop=True, early_threshold=10, leaf_parallel=4))
        self.assertEqual(budget.early_margin(), 40)

    def test_time_scaled_margin(self):
        config = MCTSConfig(early_coefficient=0.5, leaf_parallel=2)
        self.assertTrue(config.early_stop)
        budget = BudgetController(config, clock=FakeClock())
        # No rate measured yet
        self.assertIsNone(budget.early_margin())
        self.assertEqual(budget.early_stop_move(TreeNode(BLACK)), NO_ACTION)

        budget.thinking_time = 2.0
        budget.sims_per_second = 100.0
        self.assertAlmostEqual(budget.early_margin(), 2.0 * 100.0 * 0.5 * 2)

    def test_early_stop_disabled(self):
        root = TreeNode(BLACK)
        root.new_child(WHITE, Action(0, BLACK)).record_visit(0, 100000)
        budget = BudgetController(MCTSConfig())
        self.assertEqual(budget.early_stop_move(root), NO_ACTION)

    def test_early_stop_move(self):
        root = TreeNode(BLACK)
        root.new_child(WHITE, Action(0, BLACK)).record_visit(0, 12)
        root.new_child(WHITE, Action(1, BLACK)).record_visit(0, 2)
        budget = BudgetController(MCTSConfig(early_stop=True, early_threshold=10))
        self.assertEqual(budget.early_stop_move(root), Action(0, BLACK))
        root.child(Action(1, BLACK)).record_visit(0, 1)
        self.assertEqual(budget.early_stop_move(root), NO_ACTION)


class TestSearchMove(unittest.TestCase):
    """Test case for move selection with refinement."""

    def test_is_unstable(self):
        root = TreeNode(BLACK)
        self.assertFalse(is_unstable(root))
        root.new_child(WHITE, Action(0, BLACK)).record_visit(0, 5)
        self.assertFalse(is_unstable(root))
        root.new_child(WHITE, Action(1, BLACK)).record_visit(2, 1)
        self.assertTrue(is_unstable(root))

    def test_fixed_search(self):
        config = MCTSConfig(iterations=20)
        tree = SearchTree(BLACK)
        move, stats = search_move(forced_win_board(), tree, BLACK, config, FixedRollout(0),
                                  BudgetController(config))
        self.assertEqual(move, Action(3, BLACK))
        self.assertEqual(stats["iterations"], 20)
        self.assertEqual(stats["rollouts"], 20)
        self.assertEqual(stats["root_visits"], 20)
        self.assertFalse(stats["early_stop"])

    def test_unstable_bursts(self):
        config = MCTSConfig(iterations=1, unstable_retries=2)
        tree = SearchTree(BLACK)
        root = tree.root
        root.new_child(WHITE, Action(1, BLACK)).record_visit(0, 10)
        root.new_child(WHITE, Action(2, BLACK)).record_visit(2, 1)
        root.record_visit(2, 11)

        move, stats = search_move(forced_win_board(), tree, BLACK, config, FixedRollout(0),
                                  BudgetController(config))
        self.assertEqual(stats["unstable_bursts"], 2)
        self.assertEqual(stats["iterations"], 3)
        self.assertEqual(move, Action(1, BLACK))
        self.assertTrue(is_unstable(root))

    def test_reused_subtree_can_stop_immediately(self):
        config = MCTSConfig(early_stop=True, early_threshold=5)
        tree = SearchTree(BLACK)
        tree.root.new_child(WHITE, Action(3, BLACK)).record_visit(20, 10)
        rollouts = FixedRollout(0)
        move, stats = search_move(forced_win_board(), tree, BLACK, config, rollouts,
                                  BudgetController(config))
        self.assertEqual(move, Action(3, BLACK))
        self.assertTrue(stats["early_stop"])
        self.assertEqual(stats["iterations"], 0)
        self.assertEqual(rollouts.calls, 0)

    def test_no_legal_move(self):
        config = MCTSConfig(iterations=10)
        tree = SearchTree(WHITE)
        board = make_board(2, black=[0, 3], to_move=WHITE)
        move, stats = search_move(board, tree, WHITE, config, FixedRollout(0),
                                  BudgetController(config))
        self.assertEqual(move, NO_ACTION)
        self.assertEqual(stats["iterations"], 1)

    def test_analysis_helpers(self):
        config = MCTSConfig()
        tree = SearchTree(BLACK)
        run_simulations(forced_win_board(), tree, BLACK, config, FixedRollout(0),
                        BudgetController(config), iteration_limit=20)
        pv = get_principal_variation(tree.root)
        self.assertEqual(pv[0][0], Action(3, BLACK))
        self.assertAlmostEqual(pv[0][1], 2.0)

        stats = get_action_statistics(tree.root, BLACK, config)
        self.assertEqual(len(stats), 3)
        self.assertTrue(stats[str(Action(3, BLACK))]["terminal"])
        self.assertEqual(sum(s["visits"] for s in stats.values()), 20)


class TestLeafParallelRollout(unittest.TestCase):
    """Test case for batched rollouts on worker threads."""

    @staticmethod
    def draw_engine(board, rng):
        return int(rng.integers(0, 3))

    def test_sum_of_worker_outcomes(self):
        seeds = np.random.SeedSequence(7).spawn(4)
        expected = sum(int(np.random.default_rng(s).integers(0, 3)) for s in seeds)
        with LeafParallelRollout(self.draw_engine, 4, seed=7) as rollouts:
            self.assertEqual(rollouts.run(Board(3)), expected)

    def test_backpropagates_batch_once(self):
        seeds = np.random.SeedSequence(11).spawn(4)
        expected = sum(int(np.random.default_rng(s).integers(0, 3)) for s in seeds)

        tree = SearchTree(BLACK)
        config = MCTSConfig(leaf_parallel=4)
        with LeafParallelRollout(self.draw_engine, 4, seed=11) as rollouts, \
                mock.patch.object(TreeNode, "record_visit", autospec=True,
                                  side_effect=TreeNode.record_visit) as record:
            run_simulations(Board(3), tree, BLACK, config, rollouts,
                            BudgetController(config), iteration_limit=1)

        child = tree.root.child(Action(0, BLACK))
        record.assert_has_calls([
            mock.call(child, expected, 4),
            mock.call(tree.root, expected, 4),
        ])
        self.assertEqual(record.call_count, 2)
        self.assertEqual(tree.root.visit_count, 4)
        self.assertEqual(tree.root.outcome_accumulator, expected)

    def test_real_rollouts(self):
        engine = RolloutEngine(BLACK)
        with LeafParallelRollout(engine, 3, seed=1) as rollouts:
            board = Board(4)
            total = rollouts.run(board)
            self.assertIn(total, (0, 2, 4, 6))
            self.assertEqual(board, Board(4))

    def test_worker_errors_propagate(self):
        def failing_engine(board, rng):
            raise RuntimeError("rollout failed")

        with LeafParallelRollout(failing_engine, 2) as rollouts:
            with self.assertRaises(RuntimeError):
                rollouts.run(Board(3))

    def test_make_rollout_runner(self):
        engine = RolloutEngine(BLACK)
        self.assertIsInstance(make_rollout_runner(engine), SequentialRollout)
        runner = make_rollout_runner(engine, leaf_parallel=2, seed=0)
        self.assertIsInstance(runner, LeafParallelRollout)
        self.assertEqual(runner.width, 2)
        runner.close()
        with self.assertRaises(ValueError):
            LeafParallelRollout(engine, 0)


if __name__ == "__main__":
    unittest.main()
