import argparse
import os
import random

import numpy as np
import matplotlib.pyplot as plt
from loguru import logger
from tqdm import tqdm

from afterstate import evaluate, is_terminal, select_best
from display import format_step
from game_env import Game2x2Env
from td_learner import TDConfig, TDLearner
from value_table import ValueTable


class TDTrainer:
    """Runs TD(0) self-play on the 2x2 board and keeps per-episode statistics."""
    def __init__(self, config=None, seed=None, strict=False, trace=False, pause=False):
        """
        Initialize the trainer.

        Args:
            config: TDConfig for the learner
            seed: Seed of the tile-insertion rng (None for a time-based seed)
            strict: Use a fixed-size value table that rejects ranks >= 6
            trace: Log every step of every episode at DEBUG level
            pause: Wait for Enter between episodes
        """
        self.config = config or TDConfig()
        self.table = ValueTable(strict=strict)
        self.learner = TDLearner(
            table=self.table,
            config=self.config,
            rng=random.Random(seed),
            on_step=self._trace_step if trace else None,
        )
        if trace:
            logger.enable("td_learner")
        self.pause = pause
        self.scores = []
        self.steps = []
        self.max_tiles = []

    def train(self, num_episodes=1000, eval_interval=100):
        """
        Train the value table.

        Args:
            num_episodes: Number of episodes to run (None or 0 to run until interrupted)
            eval_interval: Interval of the statistics summary

        Returns:
            The trained ValueTable
        """
        num_episodes = num_episodes or None
        logger.info(f"Starting training: episodes={num_episodes or 'unbounded'} {self.config}")

        progress = tqdm(total=num_episodes, disable=self.learner.on_step is not None)
        for result in self.learner.train(num_episodes):
            self.scores.append(result.score)
            self.steps.append(result.steps)
            self.max_tiles.append(result.max_tile)
            progress.update(1)

            if result.episode % eval_interval == 0:
                window = self.scores[-eval_interval:]
                logger.info(
                    f"Episode {result.episode}, Avg Score: {np.mean(window):.2f}, "
                    f"Max Score: {np.max(window)}, Avg Steps: {np.mean(self.steps[-eval_interval:]):.2f}, "
                    f"Max Tile: {np.max(self.max_tiles[-eval_interval:])}"
                )
            if self.pause:
                input()
        progress.close()
        return self.table

    def _trace_step(self, learner, candidates, action):
        logger.debug("\n" + format_step(learner, candidates, action))


def evaluate_agent(table, num_games=100, seed=None):
    """
    Play greedy games without learning.

    Args:
        table: ValueTable guiding the greedy policy
        num_games: Number of games to play
        seed: Seed of the environment rng

    Returns:
        (scores, max_tiles) lists
    """
    env = Game2x2Env(seed=seed)
    scores = []
    max_tiles = []

    for _ in range(num_games):
        env.reset()
        done = False
        while not done:
            candidates = evaluate(env.board, table)
            if is_terminal(candidates):
                break
            _, _, done, _ = env.step(select_best(candidates))
        scores.append(env.score)
        max_tiles.append((1 << env.board.max_rank()) & ~1)

    return scores, max_tiles


def moving_average(values, window):
    if window <= 1:
        return list(values)
    return [float(np.mean(values[max(0, i - window + 1):i + 1])) for i in range(len(values))]


def plot_learning_curves(scores, path, window=100):
    """Save the per-episode scores and their moving average to `path`."""
    plt.figure(figsize=(10, 5))
    plt.plot(scores, alpha=0.35, label="Score")
    plt.plot(moving_average(scores, window), label=f"Score (MA{window})")
    plt.xlabel("Episode")
    plt.ylabel("Score")
    plt.title("TD(0) Learning Scores")
    plt.legend()
    plt.tight_layout()
    out_dir = os.path.dirname(path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    plt.savefig(path)
    plt.close()


def setup_logging(level="INFO"):
    logger.remove()
    logger.add(lambda msg: tqdm.write(msg, end=""), level=level, format="{message}", colorize=False)


def build_parser():
    parser = argparse.ArgumentParser(description='Train a 2x2 2048 afterstate value function with TD(0)')
    parser.add_argument('--episodes', type=int, default=1000,
                        help='Number of training episodes (0 runs until interrupted)')
    parser.add_argument('--alpha', type=float, default=0.01, help='Learning rate')
    parser.add_argument('--backward', action='store_true',
                        help='Replay each finished episode in reverse instead of updating online')
    parser.add_argument('--isomorphic', type=int, default=8,
                        help='Number of symmetric variants sharing each update (1-8)')
    parser.add_argument('--seed', type=int, default=None, help='Random seed')
    parser.add_argument('--trace', action='store_true', help='Show every step and TD update')
    parser.add_argument('--pause', action='store_true', help='Wait for Enter between episodes')
    parser.add_argument('--strict', action='store_true',
                        help='Fail on ranks beyond the fixed 6^4 value table instead of growing it')
    parser.add_argument('--eval-interval', type=int, default=100, help='Episodes between statistics summaries')
    parser.add_argument('--eval-games', type=int, default=0, help='Greedy evaluation games after training')
    parser.add_argument('--plot', type=str, default=None, help='Save the learning curve to this path')
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not 1 <= args.isomorphic <= 8:
        parser.error('--isomorphic must be between 1 and 8')
    if args.alpha <= 0:
        parser.error('--alpha must be positive')
    if args.eval_interval <= 0:
        parser.error('--eval-interval must be positive')

    setup_logging("DEBUG" if args.trace else "INFO")

    config = TDConfig(alpha=args.alpha, forward=not args.backward, backward=args.backward,
                      isomorphic=args.isomorphic)
    trainer = TDTrainer(config=config, seed=args.seed, strict=args.strict,
                        trace=args.trace, pause=args.pause)
    try:
        table = trainer.train(num_episodes=args.episodes, eval_interval=args.eval_interval)
    except KeyboardInterrupt:
        logger.info(f"Interrupted after {len(trainer.scores)} episodes")
        table = trainer.table

    if args.plot and trainer.scores:
        plot_learning_curves(trainer.scores, args.plot)
        logger.info(f"Learning curve saved to {args.plot}")

    if args.eval_games > 0:
        scores, max_tiles = evaluate_agent(table, num_games=args.eval_games, seed=args.seed)
        logger.info(f"Greedy evaluation over {args.eval_games} games: "
                    f"Avg Score: {np.mean(scores):.2f}, Max Tile: {np.max(max_tiles)}")
    return trainer


if __name__ == "__main__":
    main()
