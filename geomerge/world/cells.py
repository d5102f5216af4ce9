from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict, StrictInt

from geomerge.config import DistanceMetric


class CellCoordinate(BaseModel):
    """Integer grid index of a map cell.

    `i` follows latitude (north is +1), `j` follows longitude (east is +1).
    """

    model_config = ConfigDict(frozen=True)

    i: StrictInt
    j: StrictInt

    @property
    def key(self) -> str:
        return cell_key(self)

    def offset(self, di: int, dj: int) -> CellCoordinate:
        return CellCoordinate(i=self.i + di, j=self.j + dj)


def cell_key(c: CellCoordinate) -> str:
    return f"{c.i}:{c.j}"


def parse_cell_key(key: str) -> CellCoordinate:
    """Inverse of `cell_key`. Raises ValueError for anything it could not have produced."""

    i_raw, sep, j_raw = key.partition(":")
    if not sep:
        raise ValueError(f"Invalid cell key: {key!r}")

    # int() accepts "+3", " 3" and "3_0"; cell_key never emits those.
    for part in (i_raw, j_raw):
        digits = part[1:] if part.startswith("-") else part
        if not digits.isdigit() or not digits.isascii():
            raise ValueError(f"Invalid cell key: {key!r}")
        if len(digits) > 1 and digits.startswith("0"):
            raise ValueError(f"Invalid cell key: {key!r}")
        if part == "-0":
            raise ValueError(f"Invalid cell key: {key!r}")

    return CellCoordinate(i=int(i_raw), j=int(j_raw))


def lat_lng_to_cell(lat: float, lng: float, *, tile_degrees: float) -> CellCoordinate:
    return CellCoordinate(i=math.floor(lat / tile_degrees), j=math.floor(lng / tile_degrees))


def cell_bounds(c: CellCoordinate, *, tile_degrees: float) -> tuple[tuple[float, float], tuple[float, float]]:
    """((south, west), (north, east)) in degrees."""

    south = c.i * tile_degrees
    west = c.j * tile_degrees
    north = (c.i + 1) * tile_degrees
    east = (c.j + 1) * tile_degrees
    return (south, west), (north, east)


def cell_center(c: CellCoordinate, *, tile_degrees: float) -> tuple[float, float]:
    (south, west), (north, east) = cell_bounds(c, tile_degrees=tile_degrees)
    return (south + north) / 2, (west + east) / 2


def within_range(a: CellCoordinate, b: CellCoordinate, radius: int, *, metric: DistanceMetric) -> bool:
    """Whether `b` is at most `radius` grid steps from `a`.

    Compared in integers so arbitrarily distant cells are simply out of range.
    """

    di = abs(a.i - b.i)
    dj = abs(a.j - b.j)
    if metric == DistanceMetric.chebyshev:
        return max(di, dj) <= radius
    return di * di + dj * dj <= radius * radius
