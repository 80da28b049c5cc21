#!/usr/bin/env python
"""
Arena for NoGo players.

Plays a series of games between two players configured by argument strings
and reports how often each side won.

Example usage:
    # MCTS as black against a random white player
    nogo-play --black "name=mcts search=MCTS fix_sim=200" --white "name=rand search=random"

    # Time-managed MCTS with four leaf-parallel rollouts, 10 games on 7x7
    nogo-play --black "search=MCTS enhanced_f=15 init_time=60 p_leaf=4" --games 10 --size 7
"""
import argparse
import logging
import time
from typing import Any, Dict, List, Optional

from tqdm import tqdm

from nogo_ai.core.board import Board
from nogo_ai.core.constants import PieceType, BOARD_SIZE
from nogo_ai.mcts.agent import Player

logger = logging.getLogger(__name__)


def play_game(
    black: Player,
    white: Player,
    size: int = BOARD_SIZE,
    display: bool = False
) -> Dict[str, Any]:
    """
    Play one game between two players.

    The side that returns NO_ACTION, or an illegal action, loses.

    Args:
        black: Player moving first
        white: Player moving second
        size: Side length of the board
        display: Whether to print the board after every move

    Returns:
        Dictionary with the winner, the moves played and the duration
    """
    board = Board(size)
    players = {PieceType.BLACK: black, PieceType.WHITE: white}
    moves: List[str] = []
    start_time = time.time()

    black.open_episode()
    white.open_episode()
    while True:
        mover = board.who_take_turns
        action = players[mover].take_action(board)
        if not action or not action.apply(board).is_legal:
            if action:
                logger.warning("%s played illegal move %s", players[mover].name, action)
            winner = mover.opponent()
            break
        moves.append(str(action))
        if display:
            print(f"\n{players[mover].name} plays {action}\n{board}")
    black.close_episode()
    white.close_episode()

    return {
        "winner": winner,
        "moves": moves,
        "time": time.time() - start_time,
    }


def run_arena(
    black_args: str,
    white_args: str,
    games: int = 1,
    size: int = BOARD_SIZE,
    display: bool = False,
    verbose: bool = False
) -> Dict[str, Any]:
    """
    Play a series of games with fixed colours.

    Args:
        black_args: Argument string of the black player
        white_args: Argument string of the white player
        games: Number of games
        size: Side length of the board
        display: Whether to print every position
        verbose: Whether MCTS players print their search summaries

    Returns:
        Dictionary of arena statistics
    """
    wins = {PieceType.BLACK: 0, PieceType.WHITE: 0}
    lengths = []
    with Player(f"name=black {black_args} role=black", verbose=verbose) as black, \
            Player(f"name=white {white_args} role=white", verbose=verbose) as white:
        for _ in tqdm(range(games), desc="Games", disable=games < 2):
            result = play_game(black, white, size=size, display=display)
            wins[result["winner"]] += 1
            lengths.append(len(result["moves"]))

    return {
        "black": str(black),
        "white": str(white),
        "black_wins": wins[PieceType.BLACK],
        "white_wins": wins[PieceType.WHITE],
        "average_length": sum(lengths) / max(1, len(lengths)),
    }


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments for the arena."""
    parser = argparse.ArgumentParser(description="Play NoGo games between two players")
    parser.add_argument("--black", type=str, default="search=MCTS",
                        help="Argument string of the black player")
    parser.add_argument("--white", type=str, default="search=random",
                        help="Argument string of the white player")
    parser.add_argument("--games", type=int, default=1,
                        help="Number of games to play")
    parser.add_argument("--size", type=int, default=BOARD_SIZE,
                        help="Side length of the board")
    parser.add_argument("--display", action="store_true",
                        help="Print the board after every move")
    parser.add_argument("--verbose", action="store_true",
                        help="Print MCTS search summaries")
    parser.add_argument("--log-level", type=str, default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level,
                        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    stats = run_arena(args.black, args.white, games=args.games, size=args.size,
                      display=args.display, verbose=args.verbose)

    print(f"\nBlack: {stats['black']} - {stats['black_wins']} wins")
    print(f"White: {stats['white']} - {stats['white_wins']} wins")
    print(f"Average game length: {stats['average_length']:.1f} moves")


if __name__ == "__main__":
    main()
