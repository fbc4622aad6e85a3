from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import NamedTuple, Tuple

ESCAPE_RADIUS = 2.0

Color = Tuple[int, int, int]
INTERIOR: Color = (0, 0, 0)


class ComplexSample(NamedTuple):
    """A point of the complex plane as a pair of 64-bit floats."""

    re: float
    im: float

    def __add__(self, other: "ComplexSample") -> "ComplexSample":
        return ComplexSample(self.re + other.re, self.im + other.im)

    def __mul__(self, other: "ComplexSample") -> "ComplexSample":
        return ComplexSample(
            self.re * other.re - self.im * other.im,
            self.re * other.im + self.im * other.re,
        )

    def norm(self) -> float:
        return math.hypot(self.re, self.im)


class PixelCoordinate(NamedTuple):
    x: int
    y: int


JULIA_C = ComplexSample(0.353343, 0.5133225)


@dataclass(frozen=True)
class RenderConfig:
    """Read-only parameters shared by every unit of work of one render."""

    width: int
    height: int
    capture_width: int
    capture_height: int
    max_iterations: int
    scale: float
    zoom: float = 1.0
    c: ComplexSample = field(default=JULIA_C)

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def pixel_count(self) -> int:
        return self.width * self.height


def map_pixel(coord: PixelCoordinate, cfg: RenderConfig) -> ComplexSample:
    """
    Map a pixel to its sample point. Zoom shrinks the capture window before
    centering; the shrunk size is truncated to whole pixels.
    """
    c_w = int(cfg.capture_width / cfg.zoom)
    c_h = int(cfg.capture_height / cfg.zoom)
    cx = (coord.x - 0.5 * c_w) * cfg.scale / cfg.width
    cy = (coord.y - 0.5 * c_h) * cfg.scale / cfg.height
    return ComplexSample(cx, cy)


def escape_time(z0: ComplexSample, c: ComplexSample, max_iterations: int) -> int:
    z = z0
    n = 0
    while z.norm() <= ESCAPE_RADIUS and n < max_iterations:
        z = z * z + c
        n += 1
    return n


def _channel(value: float) -> int:
    # int() truncates toward zero
    return min(255, max(0, int(value)))


def color_for(n: int, max_iterations: int) -> Color:
    """
    Returns an (R, G, B) tuple for iteration count n out of max_iterations.
    Points that never escaped are black; escaped points use t = n/max with
    exponents 0.2, 0.4 and 0.9 for red, green and (inverted) blue.
    """
    if n == max_iterations:
        return INTERIOR

    t = n / max_iterations
    return (
        _channel(t ** 0.2 * 255.0),
        _channel(t ** 0.4 * 255.0),
        _channel((1.0 - t ** 0.9) * 255.0),
    )


def render_pixel(coord: PixelCoordinate, cfg: RenderConfig) -> Color:
    z0 = map_pixel(coord, cfg)
    n = escape_time(z0, cfg.c, cfg.max_iterations)
    return color_for(n, cfg.max_iterations)
