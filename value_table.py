import numpy as np


class ValueTable:
    """
    Lookup table of afterstate values for the 2x2 board.

    Each of the 4 cell ranks is a digit in base `base` (most significant first),
    so the default base 6 gives 6^4 = 1296 entries, all starting at 0.0.
    """
    def __init__(self, base=6, strict=False):
        """
        Initialize the table.

        Args:
            base: Number of distinct ranks indexed per cell
            strict: Raise IndexError for ranks >= base instead of growing the table
        """
        self.base = base
        self.strict = strict
        self.weights = np.zeros(base ** 4, dtype=np.float64)

    def __len__(self):
        return len(self.weights)

    def index(self, board):
        """
        Compute the flat index of a board.

        Raises:
            IndexError: if a rank does not fit the current base
        """
        index = 0
        for rank in board.ranks():
            if rank >= self.base:
                raise IndexError(f"rank {rank} out of range for base {self.base} (board {board.name()})")
            index = index * self.base + rank
        return index

    def get(self, board):
        if not self.strict and board.max_rank() >= self.base:
            return 0.0
        return float(self.weights[self.index(board)])

    def set(self, board, value):
        self._reserve(board)
        self.weights[self.index(board)] = value

    def add(self, board, delta):
        """Increment the entry of `board` by `delta` and return the new value."""
        self._reserve(board)
        i = self.index(board)
        self.weights[i] += delta
        return float(self.weights[i])

    def _reserve(self, board):
        rank = board.max_rank()
        if rank >= self.base and not self.strict:
            self._grow(rank + 1)

    def _grow(self, base):
        # Re-lay the existing entries as a 4-d block inside the larger table
        old = self.base
        grown = np.zeros((base,) * 4, dtype=np.float64)
        grown[:old, :old, :old, :old] = self.weights.reshape((old,) * 4)
        self.weights = grown.reshape(-1)
        self.base = base
