import random
import numpy as np
import gym
from gym import spaces
import matplotlib.pyplot as plt

from board import ACTIONS, ILLEGAL, Board

# Color mapping for rendering, keyed by tile value
COLOR_MAP = {
    0: "#cdc1b4", 2: "#eee4da", 4: "#ede0c8", 8: "#f2b179",
    16: "#f59563", 32: "#f67c5f", 64: "#f65e3b", 128: "#edcf72",
}
TEXT_COLOR = {
    2: "#776e65", 4: "#776e65",  # Dark text for light tiles
    8: "#f9f6f2", 16: "#f9f6f2", 32: "#f9f6f2", 64: "#f9f6f2", 128: "#f9f6f2",
}


class Game2x2Env(gym.Env):
    """gym environment over the 2x2 board; observations are the 2x2 rank grid."""
    def __init__(self, seed=None):
        super(Game2x2Env, self).__init__()

        self.size = 2
        self.board = Board()
        self.score = 0
        self.rng = random.Random(seed)

        # Action space: 0: up, 1: right, 2: down, 3: left
        self.action_space = spaces.Discrete(4)
        self.observation_space = spaces.Box(low=0, high=15, shape=(self.size, self.size), dtype=np.int64)
        self.actions = ACTIONS

        self.afterstate = None  # state after move, before new tile

        self.reset()

    def reset(self, seed=None):
        """Empty the board and insert the first tile."""
        if seed is not None:
            self.rng = random.Random(seed)
        self.board = Board()
        self.score = 0
        self.afterstate = None
        self.board.next(self.rng)
        return self.board.tile.copy()

    def step(self, action):
        """
        Execute one action.

        Returns:
            observation (np.array): The new rank grid.
            reward (int): Merge reward of the move (0 if the move was illegal).
            done (bool): Whether no direction is legal anymore.
            info (dict): Auxiliary information including the afterstate.
        """
        assert self.action_space.contains(action), f"Invalid action: {action}"

        reward = self.board.move(action)
        moved = reward != ILLEGAL

        if moved:
            self.score += reward
            self.afterstate = self.board.copy()
            self.board.next(self.rng)
        else:
            reward = 0
            self.afterstate = None

        done = self.is_game_over()
        return self.board.tile.copy(), reward, done, {"afterstate": self.afterstate}

    def is_move_legal(self, action):
        return self.board.copy().move(action) != ILLEGAL

    def is_game_over(self):
        return not any(self.is_move_legal(a) for a in range(4))

    def render(self, mode="human", action=None):
        """
        Draw the board with Matplotlib.

        Returns:
            The matplotlib figure
        """
        fig, ax = plt.subplots(figsize=(2, 2))
        ax.set_xticks([])
        ax.set_yticks([])
        ax.set_xlim(-0.5, self.size - 0.5)
        ax.set_ylim(-0.5, self.size - 0.5)

        for i in range(self.size):
            for j in range(self.size):
                value = (1 << int(self.board[i, j])) & ~1
                color = COLOR_MAP.get(value, "#3c3a32")
                text_color = TEXT_COLOR.get(value, "white")
                rect = plt.Rectangle((j - 0.5, i - 0.5), 1, 1, facecolor=color, edgecolor="black")
                ax.add_patch(rect)
                if value != 0:
                    ax.text(j, i, str(value), ha='center', va='center',
                            fontsize=16, fontweight='bold', color=text_color)

        title = f"score: {self.score}"
        if action is not None:
            title += f" | action: {self.actions[action]}"
        ax.set_title(title)
        ax.invert_yaxis()  # (0,0) top-left
        if mode == "human":
            plt.show()
        return fig
