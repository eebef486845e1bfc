from board import ILLEGAL

OPNAMES = ["^", ">", "v", "<"]


def format_board(board):
    """Return the 4 text lines of a boxed board."""
    return str(board).splitlines()


def _tag(line, tag):
    # Overwrite the end of a border line, keeping its final corner
    return line[:len(line) - len(tag) - 1] + tag + line[-1]


def format_history(history, actions):
    """
    Lay out every board of an episode side by side.

    Afterstates (odd positions) get their name on the bottom border and the
    reward of the move that produced them on the top border.

    Args:
        history: Alternating before-states and afterstates
        actions: Opcodes played, one per afterstate

    Returns:
        List of 4 lines
    """
    buff = ["+", "|", "|", "+"]
    for i, board in enumerate(history):
        for k, line in enumerate(format_board(board)):
            buff[k] += line[1:]
        if i % 2:
            buff[3] = _tag(buff[3], f"[{board.name()}]")
            reward = history[i - 1].copy().move(actions[i // 2])
            buff[0] = _tag(buff[0], f"(+{reward})")
    return buff


def format_actions(buff, candidates, action, decimal=4):
    """
    Append one column per direction: reward + estimated afterstate value,
    ' *' on the chosen move and 'n/a' when the move is illegal.
    """
    lines = []
    for op, (line, candidate) in enumerate(zip(buff, candidates)):
        text = f"{line} {OPNAMES[op]}: "
        if candidate.reward != ILLEGAL:
            estimate = candidate.value - candidate.reward
            text += f"{candidate.reward} + {round(estimate, decimal):g}"
            if op == action:
                text += " *"
        else:
            text += "n/a"
        lines.append(text)
    return lines


def format_step(learner, candidates, action):
    """Render the current episode and the scored directions of its latest before-state."""
    buff = format_history(learner.history, learner.actions)
    return "\n".join(format_actions(buff, candidates, action, learner.config.decimal))
