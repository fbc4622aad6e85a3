from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np
from PIL import Image

from juliaset.config import validate_render_config
from juliaset.dispatch import Progress, Strategy, StrategyConfig, choose_dispatcher
from juliaset.grid import OutputGrid, assemble, to_image
from juliaset.kernel import RenderConfig
from juliaset.util.logging_setup import get_logger

BENCH_SIZES: Tuple[Tuple[int, int], ...] = ((100, 100), (20, 20), (30, 30))

def _ensure_dir(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)

def render_grid(
    cfg: RenderConfig,
    strategy: Optional[StrategyConfig] = None,
    *,
    progress: Optional[Progress] = None,
    log_queue=None,
    log_level: int = logging.INFO,
) -> OutputGrid:
    """Validate, allocate the grid and fill every cell with the chosen strategy."""
    logger = get_logger()
    validate_render_config(cfg)
    strategy = strategy or StrategyConfig()
    dispatcher = choose_dispatcher(strategy, log_queue=log_queue, log_level=log_level)

    grid = OutputGrid(cfg.width, cfg.height)
    logger.info("Render start size=%sx%s capture=%sx%s iter=%s scale=%s zoom=%s %s",
                cfg.width, cfg.height, cfg.capture_width, cfg.capture_height,
                cfg.max_iterations, cfg.scale, cfg.zoom, dispatcher.describe())
    start = time.perf_counter()
    dispatcher.dispatch(cfg, grid, progress=progress)
    logger.info("Render done in %.3fs", time.perf_counter() - start)
    return grid

def render(
    cfg: RenderConfig,
    strategy: Optional[StrategyConfig] = None,
    *,
    progress: Optional[Progress] = None,
    log_queue=None,
    log_level: int = logging.INFO,
) -> np.ndarray:
    grid = render_grid(cfg, strategy, progress=progress, log_queue=log_queue, log_level=log_level)
    return assemble(grid)

def save_image(pixels: np.ndarray, path: str, *, resize: Optional[Tuple[int, int]] = None) -> str:
    img = to_image(pixels)
    if resize is not None and resize != img.size:
        img = img.resize(resize, Image.LANCZOS)
    _ensure_dir(path)
    img.save(path, format="PNG", optimize=True)
    get_logger().info("Image written: %s (%sx%s)", path, img.size[0], img.size[1])
    return path

def run_benchmark(
    strategies: Iterable[StrategyConfig],
    *,
    sizes: Iterable[Tuple[int, int]] = BENCH_SIZES,
    max_iterations: int = 300,
    scale: float = 3.5,
) -> List[Dict[str, Any]]:
    logger = get_logger()
    sizes = list(sizes)
    out = []
    for strategy in strategies:
        start = time.perf_counter()
        for w, h in sizes:
            cfg = RenderConfig(width=w, height=h, capture_width=w, capture_height=h,
                               max_iterations=max_iterations, scale=scale)
            render(cfg, strategy)
        elapsed = time.perf_counter() - start
        kind = strategy.kind.value if isinstance(strategy.kind, Strategy) else str(strategy.kind)
        logger.info("Bench strategy=%s workers=%s elapsed=%.3fs", kind, strategy.workers, elapsed)
        out.append({"strategy": kind, "workers": strategy.workers, "elapsed": elapsed})
    return out
