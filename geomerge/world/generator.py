from __future__ import annotations

from geomerge.world.cells import CellCoordinate, cell_key
from geomerge.world.luck import LuckFn, hash01

# Upper bounds of the value draw, paired with the token they produce.
VALUE_BUCKETS: tuple[tuple[float, int], ...] = (
    (0.25, 1),
    (0.5, 2),
    (0.75, 4),
)
TOP_VALUE = 8


class Generator:
    """Initial cell contents as a pure function of the coordinate.

    `luck` maps a string key to [0, 1) and must be stateless. It is fixed for the
    lifetime of the generator so every cell keeps the same history.
    """

    def __init__(self, luck: LuckFn | None = None, *, spawn_probability: float = 0.1) -> None:
        self._luck: LuckFn = luck if luck is not None else hash01
        self.spawn_probability = spawn_probability

    def generate(self, cell: CellCoordinate) -> int | None:
        k = cell_key(cell)
        if self._luck(f"{k}|spawn") >= self.spawn_probability:
            return None
        return value_for_draw(self._luck(f"{k}|value"))


def value_for_draw(r: float) -> int:
    for upper, value in VALUE_BUCKETS:
        if r < upper:
            return value
    return TOP_VALUE
