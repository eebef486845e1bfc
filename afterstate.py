from collections import namedtuple

from board import ILLEGAL

# One scored direction: merge reward (or ILLEGAL), resulting afterstate, reward + V(afterstate)
Candidate = namedtuple("Candidate", ["reward", "afterstate", "value"])


def evaluate(state, table):
    """
    Score every direction from a before-state with one-ply lookahead.

    Args:
        state: The before-state (Board), left untouched
        table: ValueTable used to estimate afterstate values

    Returns:
        List of 4 Candidates indexed by opcode; illegal moves score -inf
    """
    candidates = []
    for op in range(4):
        afterstate = state.copy()
        reward = afterstate.move(op)
        if reward != ILLEGAL:
            value = reward + table.get(afterstate)
        else:
            value = float("-inf")
        candidates.append(Candidate(reward, afterstate, value))
    return candidates


def select_best(candidates):
    """Return the opcode of the strictly greatest legal candidate, the lowest opcode on ties (0 if none is legal)."""
    best = 0
    for op, candidate in enumerate(candidates):
        if candidate.reward != ILLEGAL and candidate.value > candidates[best].value:
            best = op
    return best


def is_terminal(candidates):
    return all(c.reward == ILLEGAL for c in candidates)
