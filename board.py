import random
import numpy as np

ILLEGAL = -1

# Opcodes: 0: up, 1: right, 2: down, 3: left
ACTIONS = ["up", "right", "down", "left"]


class Board:
    """
    A 2x2 tile grid of ranks. Rank 0 is an empty cell, rank r > 0 is the tile 2^r.

    The canonical form is a 16-bit integer holding one nibble per cell in
    row-major order; int(board) returns it and equality/hashing go through it.
    """
    def __init__(self, value=0):
        """
        Create a board.

        Args:
            value: Packed encoding, another Board to copy, or a 2x2 array-like of ranks
        """
        self.tile = np.zeros((2, 2), dtype=np.int64)
        if isinstance(value, Board):
            self.tile = value.tile.copy()
        elif isinstance(value, (int, np.integer)):
            self.assign(int(value))
        else:
            self.tile = np.array(value, dtype=np.int64).reshape(2, 2)

    def __int__(self):
        t = self.tile
        return int((t[0, 0] << 12) | (t[0, 1] << 8) | (t[1, 0] << 4) | t[1, 1])

    def __eq__(self, other):
        if isinstance(other, Board):
            return int(self) == int(other)
        if isinstance(other, (int, np.integer)):
            return int(self) == int(other)
        return NotImplemented

    def __hash__(self):
        return int(self)

    def __getitem__(self, key):
        return self.tile[key]

    def __repr__(self):
        return f"Board(0x{self.name()})"

    def __str__(self):
        lines = ["+------+"]
        for row in self.tile:
            lines.append("|%3u%3u|" % tuple((1 << int(r)) & ~1 for r in row))
        lines.append("+------+")
        return "\n".join(lines)

    def assign(self, value):
        """Overwrite the cells from a packed encoding."""
        self.tile[0, 0] = (value >> 12) & 15
        self.tile[0, 1] = (value >> 8) & 15
        self.tile[1, 0] = (value >> 4) & 15
        self.tile[1, 1] = value & 15
        return self

    def copy(self):
        return Board(self)

    def ranks(self):
        return [int(r) for r in self.tile.flatten()]

    def max_rank(self):
        return int(self.tile.max())

    def empty_cells(self):
        return [pos for pos in range(4) if self.tile[pos // 2, pos % 2] == 0]

    def move(self, opcode):
        """
        Apply a move in place.

        Args:
            opcode: 0 up, 1 right, 2 down, 3 left

        Returns:
            The merge reward, or ILLEGAL if the board did not change
        """
        if opcode == 0:
            return self.up()
        if opcode == 1:
            return self.right()
        if opcode == 2:
            return self.down()
        if opcode == 3:
            return self.left()
        return ILLEGAL

    def left(self):
        before = int(self)
        score = 0
        for row in self.tile:
            if row[0] == 0:
                row[0] = row[1]
                row[1] = 0
            elif row[0] == row[1]:
                row[0] += 1
                row[1] = 0
                score += (1 << int(row[0])) & ~1
        return score if int(self) != before else ILLEGAL

    def right(self):
        self.mirror()
        score = self.left()
        self.mirror()
        return score

    def up(self):
        self.rotate(1)
        score = self.right()
        self.rotate(-1)
        return score

    def down(self):
        self.rotate(1)
        score = self.left()
        self.rotate(-1)
        return score

    def transpose(self):
        """Swap the two off-diagonal cells."""
        self.tile = self.tile.T.copy()

    def mirror(self):
        """Swap the two cells within each row."""
        self.tile = np.fliplr(self.tile).copy()

    def flip(self):
        """Swap the two rows."""
        self.tile = np.flipud(self.tile).copy()

    def rotate(self, r=1):
        """Rotate clockwise by r quarter turns (negative r turns counter-clockwise)."""
        r = r % 4
        if r == 1:
            self.transpose()
            self.mirror()
        elif r == 2:
            self.mirror()
            self.flip()
        elif r == 3:
            self.transpose()
            self.flip()

    def isomorphic(self, i):
        """Transform in place into the i-th symmetric variant, i taken modulo 8."""
        iso = i % 8
        if iso > 4:
            self.mirror()
        self.rotate(iso)

    def next(self, rng=None):
        """
        Insert a random tile into an empty cell: rank 1 with probability 0.9, else rank 2.
        Does nothing when the board is full.

        Args:
            rng: random.Random-like source (defaults to the random module)
        """
        rng = rng or random
        space = self.empty_cells()
        if not space:
            return
        pos = rng.choice(space)
        self.tile[pos // 2, pos % 2] = 1 if rng.random() < 0.9 else 2

    def name(self):
        return "%04x" % int(self)


def new_board():
    return Board()


def encode(board):
    return int(board)


def decode(value):
    return Board(value)
