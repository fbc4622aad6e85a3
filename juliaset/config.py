import json
import numbers
from typing import Any, Dict, Optional, Tuple

from juliaset.dispatch import Strategy, StrategyConfig
from juliaset.errors import ConfigurationError
from juliaset.kernel import RenderConfig

STRATEGIES = tuple(s.value for s in Strategy)
EXECUTORS = ("process", "thread")

DEFAULTS: Dict[str, Any] = {
    "width": 800,
    "height": 800,
    "capture_width": 800,
    "capture_height": 800,
    "max_iter": 300,
    "scale": 3.5,
    "zoom": 1.0,
    "strategy": "pool",
    "workers": None,
    "executor": "process",
    "niceness": 0,
    "chunk_size": None,
    "output": "julia.png",
    "resize": None,
}

def parse_size(token: str) -> Tuple[int, int]:
    """Parse a ``WxH`` token such as ``1920x1080``."""
    parts = str(token).lower().split("x")
    if len(parts) != 2:
        raise ConfigurationError(f"Size must look like WIDTHxHEIGHT, got {token!r}")
    try:
        w, h = int(parts[0]), int(parts[1])
    except ValueError as e:
        raise ConfigurationError(f"Size must contain two integers, got {token!r}") from e
    return w, h

def load_config(config_path: Optional[str]) -> Dict[str, Any]:
    if config_path:
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                cfg = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read config {config_path}: {e}") from e
        if not isinstance(cfg, dict):
            raise ConfigurationError("Config JSON must be an object.")
        out = dict(DEFAULTS)
        out.update(cfg)
        return out
    return dict(DEFAULTS)

def _positive_int(cfg: Dict[str, Any], key: str) -> int:
    raw = cfg[key]
    if isinstance(raw, str) and raw.strip().lstrip("+-").isdigit():
        value = int(raw)
    elif isinstance(raw, bool) or not isinstance(raw, numbers.Integral):
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}")
    else:
        value = int(raw)
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive, got {value}")
    return value

def _positive_float(cfg: Dict[str, Any], key: str) -> float:
    if isinstance(cfg[key], bool):
        raise ConfigurationError(f"{key} must be a number, got {cfg[key]!r}")
    try:
        value = float(cfg[key])
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{key} must be a number, got {cfg[key]!r}") from e
    if not value > 0:
        raise ConfigurationError(f"{key} must be positive, got {value}")
    return value

def normalise_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    required = ["width", "height", "capture_width", "capture_height", "max_iter", "scale"]
    for r in required:
        if cfg.get(r) is None:
            raise ConfigurationError(f"Missing config field: {r}")

    out = dict(cfg)
    for key in ("width", "height", "capture_width", "capture_height", "max_iter"):
        out[key] = _positive_int(cfg, key)
    out["scale"] = _positive_float(cfg, "scale")
    out["zoom"] = _positive_float({"zoom": cfg.get("zoom", 1.0)}, "zoom")

    strategy = str(cfg.get("strategy", "pool")).lower()
    if strategy not in STRATEGIES:
        raise ConfigurationError(f"strategy must be one of: {', '.join(STRATEGIES)}")
    out["strategy"] = strategy

    executor = str(cfg.get("executor", "process")).lower()
    if executor not in EXECUTORS:
        raise ConfigurationError(f"executor must be one of: {', '.join(EXECUTORS)}")
    out["executor"] = executor

    workers = cfg.get("workers")
    out["workers"] = None if workers is None else _positive_int({"workers": workers}, "workers")
    chunk_size = cfg.get("chunk_size")
    out["chunk_size"] = None if chunk_size is None else _positive_int({"chunk_size": chunk_size}, "chunk_size")
    try:
        out["niceness"] = int(cfg.get("niceness", 0) or 0)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"niceness must be an integer, got {cfg.get('niceness')!r}") from e
    if out["niceness"] < 0:
        raise ConfigurationError("niceness must be >= 0")
    if out["niceness"] and executor == "thread":
        raise ConfigurationError("niceness applies to process workers only; use executor=process")

    out["output"] = str(cfg.get("output", "julia.png"))
    resize = cfg.get("resize")
    if resize is not None:
        w, h = parse_size(resize) if isinstance(resize, str) else (int(resize[0]), int(resize[1]))
        if w <= 0 or h <= 0:
            raise ConfigurationError("resize dimensions must be positive.")
        out["resize"] = (w, h)
    return out

def build_render_config(cfg: Dict[str, Any]) -> RenderConfig:
    cfg = normalise_config(cfg)
    return RenderConfig(
        width=cfg["width"],
        height=cfg["height"],
        capture_width=cfg["capture_width"],
        capture_height=cfg["capture_height"],
        max_iterations=cfg["max_iter"],
        scale=cfg["scale"],
        zoom=cfg["zoom"],
    )

def validate_render_config(rc: RenderConfig) -> RenderConfig:
    """Check a directly constructed RenderConfig with the same rules as file config."""
    for key in ("width", "height", "capture_width", "capture_height", "max_iterations"):
        value = getattr(rc, key)
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise ConfigurationError(f"{key} must be an integer, got {value!r}")
    for key in ("scale", "zoom"):
        value = getattr(rc, key)
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise ConfigurationError(f"{key} must be a number, got {value!r}")
    normalise_config({
        "width": rc.width,
        "height": rc.height,
        "capture_width": rc.capture_width,
        "capture_height": rc.capture_height,
        "max_iter": rc.max_iterations,
        "scale": rc.scale,
        "zoom": rc.zoom,
    })
    return rc

def build_strategy(cfg: Dict[str, Any]) -> StrategyConfig:
    cfg = normalise_config(cfg)
    return StrategyConfig(
        kind=Strategy(cfg["strategy"]),
        workers=cfg["workers"],
        executor=cfg["executor"],
        niceness=cfg["niceness"],
        chunk_size=cfg["chunk_size"],
    )
