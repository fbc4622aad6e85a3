from __future__ import annotations

from typing import Iterator, List

import numpy as np
from PIL import Image

from juliaset.errors import AssemblyError
from juliaset.kernel import Color, PixelCoordinate


class OutputGrid:
    """
    Fixed-size width x height color grid. The buffer is allocated up front and
    every cell is owned by exactly one unit of work, so writers never contend
    for the same memory. Each write is counted to catch a cell written twice
    or never written.
    """

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self._buf = np.zeros((height, width, 3), dtype=np.uint8)
        self._writes = np.zeros((height, width), dtype=np.uint32)

    @property
    def shape(self):
        return self.width, self.height

    def coordinates(self) -> Iterator[PixelCoordinate]:
        for y in range(self.height):
            for x in range(self.width):
                yield PixelCoordinate(x, y)

    def write(self, coord: PixelCoordinate, color: Color) -> None:
        x, y = coord
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise AssemblyError(f"Pixel ({x},{y}) outside {self.width}x{self.height} grid")
        if self._writes[y, x]:
            raise AssemblyError(f"Pixel ({x},{y}) written more than once")
        self._writes[y, x] += 1
        self._buf[y, x] = color

    def read(self, coord: PixelCoordinate) -> Color:
        x, y = coord
        r, g, b = self._buf[y, x]
        return int(r), int(g), int(b)

    def missing(self) -> List[PixelCoordinate]:
        ys, xs = np.nonzero(self._writes == 0)
        return [PixelCoordinate(int(x), int(y)) for y, x in zip(ys, xs)]

    def is_complete(self) -> bool:
        return bool(np.all(self._writes == 1))

    def write_counts(self) -> np.ndarray:
        return self._writes.copy()


def assemble(grid: OutputGrid) -> np.ndarray:
    """
    Return the finished image as a (height, width, 3) uint8 array: rows are y,
    columns are x, channels RGB. Raises AssemblyError if any cell is unwritten.
    """
    if not grid.is_complete():
        missing = grid.missing()
        raise AssemblyError(
            f"Grid incomplete: {len(missing)} of {grid.width * grid.height} cells unwritten "
            f"(first at {tuple(missing[0]) if missing else None})"
        )
    return grid._buf.copy()


def assemble_bytes(grid: OutputGrid) -> bytes:
    # y outer, x inner, RGB interleaved
    return assemble(grid).tobytes(order="C")


def to_image(pixels: np.ndarray) -> Image.Image:
    return Image.fromarray(pixels)
