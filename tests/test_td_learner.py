import random

import numpy as np
import pytest
from loguru import logger

from afterstate import evaluate, is_terminal, select_best
from board import Board
from helpers import ScriptedRng
from td_learner import Phase, TDConfig, TDLearner, run_episode
from value_table import ValueTable

CORNERS = [0x1000, 0x0100, 0x0010, 0x0001]


def test_config_defaults():
    config = TDConfig()
    assert config.alpha == 0.01
    assert config.forward and not config.backward
    assert config.isomorphic == 8


@pytest.mark.parametrize("kwargs", [
    {"forward": True, "backward": True},
    {"isomorphic": 0},
    {"isomorphic": 9},
    {"alpha": 0.0},
])
def test_config_rejects_invalid_values(kwargs):
    with pytest.raises(ValueError):
        TDConfig(**kwargs)


def test_phases():
    learner = TDLearner(rng=random.Random(1))
    assert learner.phase == Phase.IDLE
    learner.begin_episode()
    assert learner.phase == Phase.PLAYING
    while learner.step():
        assert learner.phase == Phase.PLAYING
    assert learner.phase == Phase.TERMINAL
    learner.end_episode()
    assert learner.phase == Phase.IDLE


def test_step_requires_running_episode():
    learner = TDLearner()
    with pytest.raises(AssertionError):
        learner.step()


def test_first_step_has_no_update():
    learner = TDLearner(rng=ScriptedRng(cells=[0, 0]))
    learner.begin_episode()
    assert learner.step()
    assert not np.any(learner.table.weights)
    assert [int(b) for b in learner.history] == [0x1000, 0x0100, 0x1100]
    assert learner.actions == [1]


def test_forward_update_shared_across_variants():
    learner = TDLearner(rng=ScriptedRng(cells=[0, 0]))
    learner.begin_episode()
    learner.step()
    # b1 = 0x1100: best move merges for +4 into an unseen afterstate, so target = 4
    learner.step()
    for value in CORNERS:
        assert learner.table.get(Board(value)) == pytest.approx(0.01 * 4)
    assert np.count_nonzero(learner.table.weights) == 4
    assert learner.actions == [1, 1]
    assert learner.score == 4


def test_forward_update_without_sharing():
    learner = TDLearner(config=TDConfig(isomorphic=1), rng=ScriptedRng(cells=[0, 0]))
    learner.begin_episode()
    learner.step()
    learner.step()
    assert learner.table.get(Board(0x0100)) == pytest.approx(0.04)
    assert learner.table.get(Board(0x1000)) == 0.0


def test_forward_update_matches_alpha_times_target():
    learner = TDLearner(config=TDConfig(alpha=0.1), rng=random.Random(7))
    learner.begin_episode()
    learner.step()
    prior = learner.history[-2]
    candidates = evaluate(learner.board, learner.table)
    target = 0.0 if is_terminal(candidates) else candidates[select_best(candidates)].value
    learner.step()
    for i in range(8):
        iso = prior.copy()
        iso.isomorphic(i)
        assert learner.table.get(iso) == pytest.approx(0.1 * target)


def test_terminal_step_targets_zero():
    learner = TDLearner()
    learner.table.set(Board(0x1230), 5.0)
    learner.history = [Board(0x1203), Board(0x1230), Board(0x1234)]
    learner.actions = [1]
    learner.board = Board(0x1234)
    learner.phase = Phase.PLAYING

    assert not learner.step()
    assert learner.phase == Phase.TERMINAL
    assert learner.table.get(Board(0x1230)) == pytest.approx(4.95)
    assert len(learner.history) == 3


def test_train_isomorphic_dedupes_variants():
    learner = TDLearner()
    assert learner.train_isomorphic(Board(0x1234), 1.0) == 7
    assert learner.table.get(Board(0x1234)) == 1.0
    assert learner.train_isomorphic(Board(0x1111), 1.0) == 1
    assert learner.table.get(Board(0x1111)) == 1.0


def test_backward_replay():
    config = TDConfig(forward=False, backward=True)
    learner = TDLearner(config=config)
    learner.history = [Board(0x1100), Board(0x2000), Board(0x2020), Board(0x3000), Board(0x3001)]
    learner.actions = [3, 0]
    learner.board = Board(0x3001)
    learner.score = 12
    learner.phase = Phase.TERMINAL

    result = learner.end_episode()

    assert result.steps == 2
    assert result.score == 12
    assert result.max_tile == 8
    # terminal afterstate moves toward 0, the one before toward V(0x3000) + 8
    assert learner.table.get(Board(0x3000)) == 0.0
    for value in [0x2000, 0x0200, 0x0020, 0x0002]:
        assert learner.table.get(Board(value)) == pytest.approx(0.08)
    assert learner.phase == Phase.IDLE
    assert learner.history == []


def test_backward_replay_reads_value_after_update():
    config = TDConfig(forward=False, backward=True, isomorphic=1)
    learner = TDLearner(config=config)
    learner.table.set(Board(0x3000), 10.0)
    learner.history = [Board(0x1100), Board(0x2000), Board(0x2020), Board(0x3000), Board(0x3001)]
    learner.actions = [3, 0]
    learner.board = Board(0x3001)
    learner.phase = Phase.TERMINAL

    learner.end_episode()

    assert learner.table.get(Board(0x3000)) == pytest.approx(9.9)
    # 0.01 * (9.9 + 8), not 0.01 * (10 + 8)
    assert learner.table.get(Board(0x2000)) == pytest.approx(0.179)


def test_no_learning_when_both_modes_disabled():
    learner = TDLearner(config=TDConfig(forward=False), rng=random.Random(3))
    learner.run_episode()
    assert not np.any(learner.table.weights)


def test_run_episode_result():
    learner = TDLearner(rng=random.Random(11))
    result = learner.run_episode()
    assert result.episode == 1
    assert result.steps >= 1
    assert result.score % 4 == 0
    assert result.max_tile >= 2
    assert learner.history == [] and learner.actions == []


def test_train_yields_each_episode():
    learner = TDLearner(rng=random.Random(5))
    results = list(learner.train(5))
    assert [r.episode for r in results] == [1, 2, 3, 4, 5]
    assert np.any(learner.table.weights)


def test_backward_training_learns():
    learner = TDLearner(config=TDConfig(forward=False, backward=True), rng=random.Random(5))
    for _ in learner.train(5):
        pass
    assert np.any(learner.table.weights)


def test_run_episode_function():
    table = ValueTable()
    result = run_episode(TDConfig(), table=table, rng=random.Random(2))
    assert set(result) == {"steps", "total_score"}
    assert result["steps"] >= 1


def test_trace_lines():
    messages = []
    handler = logger.add(messages.append, format="{message}", level="DEBUG")
    logger.enable("td_learner")
    try:
        learner = TDLearner(rng=ScriptedRng(cells=[0, 0]))
        learner.begin_episode()
        learner.step()
        learner.step()
    finally:
        logger.remove(handler)
        logger.disable("td_learner")
    text = "".join(messages)
    assert "episode #1:" in text
    assert "TD(0): n/a" in text
    assert "TD(0): V(0100) = 0 + 0.01 * (4 + 0 - 0) = 0.04" in text


def test_learner_logging_is_quiet_by_default():
    messages = []
    handler = logger.add(messages.append, format="{message}", level="DEBUG")
    try:
        run_episode(TDConfig(), rng=random.Random(4))
    finally:
        logger.remove(handler)
    assert messages == []
