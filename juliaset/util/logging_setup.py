import logging
import logging.handlers
import multiprocessing as mp
from typing import Optional, Tuple

_LOGGER_NAME = "juliaset"
_LOG_FILE_BYTES = 5 * 1024 * 1024

def get_logger() -> logging.Logger:
    return logging.getLogger(_LOGGER_NAME)

def _take_over(level: int) -> logging.Logger:
    logger = get_logger()
    logger.setLevel(level)
    logger.propagate = False
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    return logger

def _attach(logger: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s.%(msecs)03dZ %(processName)s/%(threadName)s %(levelname)s %(name)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    ))
    logger.addHandler(handler)

def configure_logging(*, level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """Console logging, plus a rotating file when log_file is given."""
    logger = _take_over(level)
    _attach(logger, logging.StreamHandler(), level)
    if log_file:
        _attach(logger, logging.handlers.RotatingFileHandler(
            log_file, maxBytes=_LOG_FILE_BYTES, backupCount=3, encoding="utf-8"), level)
    return logger

def start_log_listener(logger: logging.Logger) -> Tuple[mp.Queue, logging.handlers.QueueListener]:
    """Drain records sent by pool workers into the parent's handlers."""
    queue = mp.Queue(-1)
    listener = logging.handlers.QueueListener(queue, *logger.handlers, respect_handler_level=True)
    listener.start()
    return queue, listener

def configure_worker_logging(queue, *, level: int = logging.INFO) -> None:
    if queue is None:
        return
    _take_over(level).addHandler(logging.handlers.QueueHandler(queue))
