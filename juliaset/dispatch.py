from __future__ import annotations

import asyncio
import enum
import logging
import os
import threading
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from functools import partial
from itertools import islice
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from juliaset.errors import ComputeFailure, ConfigurationError, JuliaError
from juliaset.grid import OutputGrid
from juliaset.kernel import Color, PixelCoordinate, RenderConfig, render_pixel
from juliaset.util.logging_setup import configure_worker_logging, get_logger

Progress = Callable[[int], None]
UnitResult = Tuple[PixelCoordinate, Color]

_G = {}


class Strategy(enum.Enum):
    POOL = "pool"
    TASK = "task"
    COOPERATIVE = "cooperative"


@dataclass(frozen=True)
class StrategyConfig:
    """Concurrency strategy selector plus its tuning knobs."""

    kind: Strategy = Strategy.POOL
    workers: Optional[int] = None
    executor: str = "process"
    niceness: int = 0
    chunk_size: Optional[int] = None


def _compute(coord: PixelCoordinate, cfg: RenderConfig) -> Color:
    try:
        return render_pixel(coord, cfg)
    except Exception as e:
        raise ComputeFailure(f"Pixel ({coord.x},{coord.y}) failed: {e!r}", pixel=coord, cause=e) from e


def _init_worker(cfg: RenderConfig, log_queue, log_level: int, niceness: int) -> None:
    _G["cfg"] = cfg
    configure_worker_logging(log_queue, level=log_level)
    if niceness > 0 and hasattr(os, "nice"):
        os.nice(niceness)


def _render_units(units: List[PixelCoordinate], cfg: Optional[RenderConfig] = None) -> List[UnitResult]:
    cfg = cfg if cfg is not None else _G["cfg"]
    results = [(coord, _compute(coord, cfg)) for coord in units]
    if units and units[0].y % 50 == 0 and units[0].x == 0:
        get_logger().debug("Rendered row %s/%s", units[0].y, cfg.height)
    return results


def _chunks(coords: Iterable[PixelCoordinate], size: int) -> Iterator[List[PixelCoordinate]]:
    it = iter(coords)
    while True:
        chunk = list(islice(it, size))
        if not chunk:
            return
        yield chunk


class Dispatcher:
    """Computes every cell of an OutputGrid. Subclasses choose how the work runs."""

    name = "base"

    def dispatch(self, cfg: RenderConfig, grid: OutputGrid, *, progress: Optional[Progress] = None) -> None:
        raise NotImplementedError

    def describe(self) -> dict:
        return {"strategy": self.name}


class PoolDispatcher(Dispatcher):
    """
    Bounded worker pool. Pixel units are queued in row-sized chunks and
    consumed by a fixed number of workers; results are written back by the
    submitting thread as chunks complete. The first failing chunk cancels
    everything still queued.
    """

    name = Strategy.POOL.value

    def __init__(
        self,
        workers: Optional[int] = None,
        *,
        executor: str = "process",
        niceness: int = 0,
        chunk_size: Optional[int] = None,
        log_queue=None,
        log_level: int = logging.INFO,
    ):
        if workers is not None and workers <= 0:
            raise ConfigurationError(f"Pool size must be positive, got {workers}")
        if executor not in ("process", "thread"):
            raise ConfigurationError(f"Unknown pool executor: {executor}")
        if niceness and executor == "thread":
            raise ConfigurationError("niceness applies to process workers only")
        self.workers = workers or os.cpu_count() or 1
        self.executor = executor
        self.niceness = niceness
        self.chunk_size = chunk_size
        self.log_queue = log_queue
        self.log_level = log_level

    def describe(self) -> dict:
        info = {"strategy": self.name, "workers": self.workers, "executor": self.executor}
        if self.executor == "process":
            info["niceness"] = self.niceness
        return info

    def _make_executor(self, cfg: RenderConfig) -> Tuple[Executor, Callable]:
        if self.executor == "thread":
            pool = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="julia")
            return pool, partial(_render_units, cfg=cfg)
        pool = ProcessPoolExecutor(
            max_workers=self.workers,
            initializer=_init_worker,
            initargs=(cfg, self.log_queue, self.log_level, self.niceness),
        )
        return pool, _render_units

    def dispatch(self, cfg: RenderConfig, grid: OutputGrid, *, progress: Optional[Progress] = None) -> None:
        logger = get_logger()
        chunk_size = self.chunk_size or grid.width
        pool, fn = self._make_executor(cfg)
        logger.info("Pool dispatch workers=%s executor=%s units=%s chunk=%s",
                    self.workers, self.executor, grid.width * grid.height, chunk_size)
        try:
            futures = [pool.submit(fn, chunk) for chunk in _chunks(grid.coordinates(), chunk_size)]
            for fut in as_completed(futures):
                try:
                    results = fut.result()
                except ComputeFailure as e:
                    if e.cause is not None and e.__cause__ is not e.cause:
                        raise e from e.cause
                    raise
                except JuliaError:
                    raise
                except Exception as e:
                    raise ComputeFailure(f"Worker failed: {e!r}") from e
                for coord, color in results:
                    grid.write(coord, color)
                if progress is not None:
                    progress(len(results))
        except BaseException:
            logger.error("Pool dispatch aborted, cancelling outstanding work")
            pool.shutdown(wait=False, cancel_futures=True)
            raise
        pool.shutdown(wait=True)


class TaskDispatcher(Dispatcher):
    """
    One thread per pixel, joined before returning. There is no back-pressure:
    very large canvases spawn a very large number of threads.
    """

    name = Strategy.TASK.value

    def dispatch(self, cfg: RenderConfig, grid: OutputGrid, *, progress: Optional[Progress] = None) -> None:
        logger = get_logger()
        abort = threading.Event()
        failures: List[BaseException] = []

        def unit(coord: PixelCoordinate) -> None:
            if abort.is_set():
                return
            try:
                grid.write(coord, _compute(coord, cfg))
            except Exception as e:
                failures.append(e)
                abort.set()
                return
            if progress is not None:
                progress(1)

        logger.info("Task dispatch units=%s", grid.width * grid.height)
        threads = []
        for coord in grid.coordinates():
            if abort.is_set():
                break
            t = threading.Thread(target=unit, args=(coord,), name=f"pixel-{coord.x}-{coord.y}", daemon=True)
            try:
                t.start()
            except RuntimeError as e:
                failure = ComputeFailure(f"Cannot start thread for pixel ({coord.x},{coord.y}): {e}",
                                         pixel=coord, cause=e)
                failure.__cause__ = e
                failures.append(failure)
                abort.set()
                break
            threads.append(t)
        for t in threads:
            t.join()

        if failures:
            logger.error("Task dispatch aborted after %s failure(s)", len(failures))
            raise failures[0]


class CooperativeDispatcher(Dispatcher):
    """One asyncio task per pixel on a single event loop."""

    name = Strategy.COOPERATIVE.value

    async def _run(self, cfg: RenderConfig, grid: OutputGrid, progress: Optional[Progress]) -> None:
        failed = []

        # units never suspend, so each one runs to completion in scheduling
        # order; the flag stops every unit queued behind a failure
        async def unit(coord: PixelCoordinate) -> None:
            if failed:
                return
            try:
                grid.write(coord, _compute(coord, cfg))
            except Exception:
                failed.append(coord)
                raise
            if progress is not None:
                progress(1)

        tasks = [asyncio.ensure_future(unit(coord)) for coord in grid.coordinates()]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for t in tasks:
                t.cancel()
            raise

    def dispatch(self, cfg: RenderConfig, grid: OutputGrid, *, progress: Optional[Progress] = None) -> None:
        get_logger().info("Cooperative dispatch units=%s", grid.width * grid.height)
        asyncio.run(self._run(cfg, grid, progress))


def choose_dispatcher(strategy: StrategyConfig, *, log_queue=None, log_level: int = logging.INFO) -> Dispatcher:
    kind = strategy.kind
    if not isinstance(kind, Strategy):
        try:
            kind = Strategy(str(kind).lower())
        except ValueError as e:
            raise ConfigurationError(f"strategy must be one of: {', '.join(s.value for s in Strategy)}") from e

    if kind is Strategy.POOL:
        return PoolDispatcher(
            strategy.workers,
            executor=strategy.executor,
            niceness=strategy.niceness,
            chunk_size=strategy.chunk_size,
            log_queue=log_queue,
            log_level=log_level,
        )
    if kind is Strategy.TASK:
        return TaskDispatcher()
    return CooperativeDispatcher()
