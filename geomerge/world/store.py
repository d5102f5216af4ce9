from __future__ import annotations

from collections.abc import Mapping

from geomerge.world.cells import CellCoordinate, cell_key
from geomerge.world.generator import Generator


class WorldStore:
    """Sparse overlay of player-modified cells over the generator.

    An overlay entry exists only for cells an interaction changed. A stored
    `None` means "emptied by the player" and shadows the generator.
    """

    def __init__(self, generator: Generator, overlay: Mapping[str, int | None] | None = None) -> None:
        self.generator = generator
        self._overlay: dict[str, int | None] = dict(overlay or {})

    def read(self, cell: CellCoordinate) -> int | None:
        k = cell_key(cell)
        if k in self._overlay:
            return self._overlay[k]
        return self.generator.generate(cell)

    def write(self, cell: CellCoordinate, value: int | None) -> None:
        self._overlay[cell_key(cell)] = value

    def is_modified(self, cell: CellCoordinate) -> bool:
        return cell_key(cell) in self._overlay

    @property
    def overlay(self) -> dict[str, int | None]:
        return dict(self._overlay)

    def clear(self) -> None:
        self._overlay.clear()

    def __len__(self) -> int:
        return len(self._overlay)
