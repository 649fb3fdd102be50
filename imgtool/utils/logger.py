import inspect
import json
import logging
import sys
import time
from contextlib import suppress
from functools import wraps
from typing import Any, Dict, Optional

from tqdm import tqdm

LOGGER_NAME = "imgtool"


class JsonFormatter(logging.Formatter):
    """
    A custom formatter that outputs logs in JSON format.
    """

    def format(self, record):
        log_record = {
            # Ensure fixed 3-digit milliseconds
            "timestamp": f"{self.formatTime(record, self.datefmt)}.{int(record.msecs):03d}",
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        if hasattr(record, "kv_pairs"):
            log_record.update(record.kv_pairs)
        return json.dumps(log_record, ensure_ascii=False, default=str)


class KVFormatter(logging.Formatter):
    """
    A custom formatter that outputs logs in Key-Value pair format.
    Example: [Event=StageStart][Stage=RESIZED] Message
    """

    def format(self, record):
        kv_string = ""
        kv_pairs = getattr(record, "kv_pairs", None)
        if kv_pairs:
            kv_string = "".join([f"[{k}={v}]" for k, v in kv_pairs.items()])
        ts = self.formatTime(record, self.datefmt)
        return f"{ts}.{int(record.msecs):03d} - {record.levelname} - {kv_string} {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """A logging handler that writes via tqdm.write to stderr to avoid breaking progress bars."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=sys.stderr)
        except Exception:  # pragma: no cover (best-effort logging)
            self.handleError(record)


def verbosity_to_level(verbosity: int) -> int:
    """Map the ``-v`` count onto a logging level."""
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def setup_logging(
    verbosity: int = 0,
    log_json: bool = False,
    log_kv: bool = False,
    log_file: Optional[str] = None,
):
    """
    Sets up the logging configuration.

    Args:
        verbosity (int): 0 shows warnings and errors, 1 adds info, 2+ adds debug.
        log_json (bool): If True, logs will be output in JSON format.
        log_kv (bool): If True, logs will be output in Key-Value pair format.
        log_file (str): Optional path that receives a copy of every record.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        # Logger is already set up, return it
        return logger

    level = verbosity_to_level(verbosity)
    logger.setLevel(level)

    datefmt = "%Y-%m-%d %H:%M:%S"
    if log_json:
        formatter: logging.Formatter = JsonFormatter(datefmt=datefmt)
    elif log_kv:
        formatter = KVFormatter(datefmt=datefmt)
    else:
        fmt = "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s"
        formatter = logging.Formatter(fmt=fmt, datefmt=datefmt)

    console_handler = TqdmLoggingHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    # Pillow logs decoder chatter at DEBUG; keep it out unless asked for
    if verbosity < 3:
        logging.getLogger("PIL").setLevel(logging.WARNING)

    return logger


def shutdown_logging() -> None:
    """Flush and close the handlers installed by ``setup_logging``."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        with suppress(Exception):
            handler.flush()
        with suppress(Exception):
            handler.close()
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


class KVLogger(logging.Logger):
    """
    A custom logger that provides methods for logging with KV pairs.
    """

    def _log_kv(
        self, level, msg, kv_pairs: Optional[Dict[str, Any]] = None, *args, **kwargs
    ):
        if kv_pairs is None:
            kv_pairs = {}
        kwargs["extra"] = {"kv_pairs": kv_pairs}
        kwargs.setdefault("stacklevel", 3)
        self.log(level, msg, *args, **kwargs)

    def kv_debug(self, msg, kv_pairs: Optional[Dict[str, Any]] = None, *args, **kwargs):
        self._log_kv(logging.DEBUG, msg, kv_pairs, *args, **kwargs)

    def kv_info(self, msg, kv_pairs: Optional[Dict[str, Any]] = None, *args, **kwargs):
        self._log_kv(logging.INFO, msg, kv_pairs, *args, **kwargs)

    def kv_warning(
        self, msg, kv_pairs: Optional[Dict[str, Any]] = None, *args, **kwargs
    ):
        self._log_kv(logging.WARNING, msg, kv_pairs, *args, **kwargs)

    def kv_error(self, msg, kv_pairs: Optional[Dict[str, Any]] = None, *args, **kwargs):
        self._log_kv(logging.ERROR, msg, kv_pairs, *args, **kwargs)


def time_log(logger_instance: logging.Logger):
    """A decorator to log execution time at debug level.

    Uses time.monotonic() for reliable duration measurement.
    """

    def decorator(func):
        log_target_name = func.__name__

        def _resolve_name(args):
            if args and not inspect.isclass(args[0]) and hasattr(args[0], func.__name__):
                return f"{args[0].__class__.__name__}.{func.__name__}"
            return log_target_name

        @wraps(func)
        def wrapper(*args, **kwargs):
            log_name = _resolve_name(args)
            start_time = time.monotonic()
            logger_instance.debug(f"--- Starting: {log_name} ---")
            try:
                return func(*args, **kwargs)
            finally:
                duration = time.monotonic() - start_time
                if isinstance(logger_instance, KVLogger):
                    logger_instance.kv_debug(
                        f"--- Finished: {log_name}. Duration: {duration:.3f} seconds ---",
                        kv_pairs={
                            "Event": "Finish",
                            "Function": log_name,
                            "Duration": f"{duration:.3f}s",
                        },
                    )
                else:
                    logger_instance.debug(
                        f"--- Finished: {log_name}. Duration: {duration:.3f} seconds ---"
                    )

        return wrapper

    return decorator


def get_logger() -> KVLogger:
    """
    Returns the 'imgtool' logger instance.
    Handlers are installed separately by ``setup_logging``.
    """
    logging.setLoggerClass(KVLogger)
    return logging.getLogger(LOGGER_NAME)  # type: ignore[return-value]


# Set the logger class to KVLogger at the module level
logging.setLoggerClass(KVLogger)
logger = get_logger()
