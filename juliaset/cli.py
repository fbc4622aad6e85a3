from __future__ import annotations

import argparse
import logging
from typing import Any, Dict, Optional

from tqdm import tqdm

from juliaset.config import build_render_config, build_strategy, load_config, normalise_config, parse_size
from juliaset.dispatch import Strategy, StrategyConfig, choose_dispatcher
from juliaset.errors import ConfigurationError, JuliaError
from juliaset.pipeline import render, run_benchmark, save_image
from juliaset.util.logging_setup import configure_logging, get_logger, start_log_listener
from juliaset.util.manifest import build_manifest, manifest_path_for, write_manifest

def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="juliaset", description="Parallel escape-time Julia set renderer.")
    p.add_argument("--config", type=str, default=None, help="Path to config JSON. Command-line values override it.")
    p.add_argument("--log-level", type=str, default="INFO", choices=["DEBUG","INFO","WARNING","ERROR"], help="Log level.")
    p.add_argument("--log-file", type=str, default="", help="Log file path (rotating). Empty disables file logging.")
    sub = p.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("render", help="Render one image to a PNG file.")
    r.add_argument("size", nargs="?", default=None, help="Output canvas as WIDTHxHEIGHT.")
    r.add_argument("capture", nargs="?", default=None, help="Capture resolution as WIDTHxHEIGHT.")
    r.add_argument("iterations", nargs="?", type=int, default=None, help="Iteration budget per pixel.")
    r.add_argument("scale", nargs="?", type=float, default=None, help="Width of the sampled window in the complex plane.")
    r.add_argument("--zoom", type=float, default=None, help="Divides the capture size (default 1.0).")
    r.add_argument("--strategy", type=str, default=None, choices=[s.value for s in Strategy], help="Concurrency strategy.")
    r.add_argument("--workers", type=int, default=None, help="Pool size for the pool strategy (default: CPU count).")
    r.add_argument("--executor", type=str, default=None, choices=["process", "thread"], help="Pool backend.")
    r.add_argument("--niceness", type=int, default=None, help="Lower pool worker priority by this nice increment.")
    r.add_argument("--chunk-size", dest="chunk_size", type=int, default=None, help="Pixels per pool work item (default: one row).")
    r.add_argument("--output", type=str, default=None, help="PNG path (default julia.png).")
    r.add_argument("--resize", type=str, default=None, help="Resample the image to WIDTHxHEIGHT (Lanczos) before saving.")
    r.add_argument("--progress", action="store_true", help="Show a progress bar.")
    r.add_argument("--no-manifest", action="store_true", help="Do not write the JSON run manifest next to the image.")

    b = sub.add_parser("bench", help="Time the benchmark sizes under each strategy.")
    b.add_argument("--workers", type=int, default=None, help="Pool size for the pool strategy.")
    b.add_argument("--executor", type=str, default="process", choices=["process", "thread"], help="Pool backend.")

    return p

def _apply_overrides(cfg: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    if args.size:
        cfg["width"], cfg["height"] = parse_size(args.size)
    if args.capture:
        cfg["capture_width"], cfg["capture_height"] = parse_size(args.capture)
    if args.iterations is not None:
        cfg["max_iter"] = args.iterations
    if args.scale is not None:
        cfg["scale"] = args.scale
    for key in ("zoom", "strategy", "workers", "executor", "niceness", "chunk_size", "output", "resize"):
        value = getattr(args, key)
        if value is not None:
            cfg[key] = value
    return cfg

def _render(args: argparse.Namespace, *, queue, log_level: int) -> int:
    logger = get_logger()
    cfg = normalise_config(_apply_overrides(load_config(args.config), args))
    rc = build_render_config(cfg)
    strategy = build_strategy(cfg)

    if args.progress:
        with tqdm(total=rc.pixel_count, unit="px", desc="julia") as bar:
            pixels = render(rc, strategy, progress=bar.update, log_queue=queue, log_level=log_level)
    else:
        pixels = render(rc, strategy, log_queue=queue, log_level=log_level)

    path = save_image(pixels, cfg["output"], resize=cfg["resize"])
    if not args.no_manifest:
        dispatcher = choose_dispatcher(strategy).describe()
        manifest_path = manifest_path_for(path)
        write_manifest(manifest_path, build_manifest(config=cfg, dispatcher=dispatcher))
        logger.info("Run manifest written: %s", manifest_path)
    return 0

def _bench(args: argparse.Namespace) -> int:
    strategies = [
        StrategyConfig(kind=Strategy.POOL, workers=args.workers, executor=args.executor),
        StrategyConfig(kind=Strategy.TASK),
        StrategyConfig(kind=Strategy.COOPERATIVE),
    ]
    for row in run_benchmark(strategies):
        print(f"{row['strategy']:<12} {row['elapsed']:.3f}s")
    return 0

def main(argv: Optional[list] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    log_file = args.log_file if args.log_file and args.log_file.strip() else None
    queue, listener = start_log_listener(configure_logging(level=log_level, log_file=log_file))

    logger = get_logger()

    try:
        if args.cmd == "render":
            return _render(args, queue=queue, log_level=log_level)
        if args.cmd == "bench":
            return _bench(args)
        raise RuntimeError("Unknown command.")
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 2
    except JuliaError as e:
        logger.error("Render failed: %s", e)
        return 1
    finally:
        listener.stop()
