
class ScriptedRng:
    """Tile-insertion rng that places tiles at scripted cells, always rank 1 unless told otherwise."""
    def __init__(self, cells=None, roll=0.0):
        self.cells = list(cells or [])
        self.roll = roll

    def choice(self, seq):
        if self.cells:
            pos = self.cells.pop(0)
            assert pos in seq, f"cell {pos} is not empty"
            return pos
        return seq[0]

    def random(self):
        return self.roll
