import random
from collections import namedtuple
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from afterstate import evaluate, is_terminal, select_best
from board import ILLEGAL, Board
from value_table import ValueTable

logger.disable(__name__)

EpisodeResult = namedtuple("EpisodeResult", ["episode", "steps", "score", "max_tile"])


@dataclass
class TDConfig:
    alpha: float = 0.01
    forward: bool = True
    backward: bool = False
    isomorphic: int = 8
    decimal: int = 4  # rounding used in trace lines only

    def __post_init__(self):
        if self.forward and self.backward:
            raise ValueError("forward and backward TD updates are mutually exclusive")
        if not 1 <= self.isomorphic <= 8:
            raise ValueError(f"isomorphic must be in [1, 8], got {self.isomorphic}")
        if self.alpha <= 0:
            raise ValueError(f"alpha must be positive, got {self.alpha}")


class Phase(Enum):
    IDLE = "idle"
    PLAYING = "playing"
    TERMINAL = "terminal"


def _norm(value, decimal):
    return f"{round(value, decimal):g}"


class TDLearner:
    """
    TD(0) afterstate learner for the 2x2 game.

    Each step scores the four directions of the current before-state with
    reward + V(afterstate), plays the greedy one and corrects V of the previous
    afterstate toward that score (forward mode). In backward mode the whole
    episode is replayed in reverse once it ends instead. Every update is shared
    with the distinct symmetric variants of the updated afterstate.
    """
    def __init__(self, table=None, config=None, rng=None, on_step=None):
        """
        Initialize the learner.

        Args:
            table: ValueTable to train (a fresh one if None)
            config: TDConfig (defaults if None)
            rng: random.Random used for tile insertion
            on_step: Optional callback(learner, candidates, action) run after each evaluation
        """
        self.table = table if table is not None else ValueTable()
        self.config = config or TDConfig()
        self.rng = rng or random.Random()
        self.on_step = on_step

        self.phase = Phase.IDLE
        self.episode = 0
        self.board = Board()
        self.history = []  # before-states and afterstates, alternating
        self.actions = []
        self.score = 0

    def train_isomorphic(self, board, delta):
        """
        Add the same delta to every distinct symmetric variant of a board.

        Returns:
            Number of distinct variants updated
        """
        trained = set()
        for i in range(self.config.isomorphic):
            iso = board.copy()
            iso.isomorphic(i)
            if int(iso) not in trained:
                trained.add(int(iso))
                self.table.add(iso, delta)
        return len(trained)

    def begin_episode(self):
        self.episode += 1
        self.board = Board()
        self.history = []
        self.actions = []
        self.score = 0
        self.phase = Phase.PLAYING
        logger.debug(f"episode #{self.episode}:")
        self._spawn()

    def step(self):
        """
        Play one greedy move from the current before-state.

        Returns:
            True while the episode goes on, False once it reached the terminal state
        """
        assert self.phase == Phase.PLAYING, f"cannot step a learner in phase {self.phase.value}"

        candidates = evaluate(self.board, self.table)
        x = select_best(candidates)
        if self.on_step is not None:
            self.on_step(self, candidates, x)

        if self.config.forward:
            self._forward_update(candidates[x])

        if is_terminal(candidates):
            self.phase = Phase.TERMINAL
            return False

        self.board = candidates[x].afterstate.copy()
        self.history.append(self.board.copy())
        self.actions.append(x)
        self.score += candidates[x].reward
        self._spawn()
        return True

    def end_episode(self):
        """Finish a terminal episode, run the backward replay if enabled and return to idle."""
        assert self.phase == Phase.TERMINAL, f"cannot end an episode in phase {self.phase.value}"
        result = EpisodeResult(self.episode, len(self.actions), self.score, (1 << self.board.max_rank()) & ~1)
        if self.config.backward:
            self._backward_replay()
        self.history = []
        self.actions = []
        self.phase = Phase.IDLE
        return result

    def run_episode(self):
        self.begin_episode()
        while self.step():
            pass
        return self.end_episode()

    def train(self, num_episodes=None):
        """
        Run episodes back to back, yielding an EpisodeResult at each episode boundary.

        Args:
            num_episodes: Number of episodes to run, or None to run forever
        """
        count = 0
        while num_episodes is None or count < num_episodes:
            yield self.run_episode()
            count += 1

    def _spawn(self):
        self.board.next(self.rng)
        self.history.append(self.board.copy())

    def _forward_update(self, best):
        if len(self.history) < 2:
            logger.debug("TD(0): n/a")
            return

        alpha, decimal = self.config.alpha, self.config.decimal
        prior = self.history[-2]
        exact = best.value if best.reward != ILLEGAL else 0.0
        reward = best.reward if best.reward != ILLEGAL else 0
        value = self.table.get(prior)
        delta = alpha * (exact - value)

        logger.debug(
            f"TD(0): V({prior.name()}) = {_norm(value, decimal)} + {alpha} * "
            f"({reward} + {_norm(exact - reward, decimal)} - {_norm(value, decimal)}) = "
            f"{_norm(value + delta, decimal)}"
        )
        self.train_isomorphic(prior, delta)

    def _backward_replay(self):
        alpha, decimal = self.config.alpha, self.config.decimal
        history = list(self.history)
        actions = list(self.actions)
        history.pop()  # terminal before-state

        reward = 0
        exact = 0.0
        while history:
            afterstate = history.pop()
            value = self.table.get(afterstate)
            delta = alpha * (exact - value)

            logger.debug(
                f"TD(0): V({afterstate.name()}) = {_norm(value, decimal)} + {alpha} * "
                f"({reward} + {_norm(exact - reward, decimal)} - {_norm(value, decimal)}) = "
                f"{_norm(value + delta, decimal)}"
            )
            self.train_isomorphic(afterstate, delta)

            before = history.pop()
            reward = before.copy().move(actions.pop())
            exact = self.table.get(afterstate) + reward


def run_episode(config=None, table=None, rng=None):
    """
    Play and learn from a single episode.

    Returns:
        Dict with the number of moves played and the total merge score
    """
    learner = TDLearner(table=table, config=config, rng=rng)
    result = learner.run_episode()
    return {"steps": result.steps, "total_score": result.score}
