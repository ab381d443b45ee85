# log.py
import sys
import time
import logging
from contextlib import contextmanager
from pathlib import Path

from colorama import Fore, Style, init as colorama_init

LOGGER_NAME = "clermontyping"

_LEVEL_COLORS = {
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.RED,
}


class ColorFormatter(logging.Formatter):
    """Plain message on the console, colored for warnings and errors."""

    def format(self, record):
        msg = super().format(record)
        color = _LEVEL_COLORS.get(record.levelno)
        return f"{color}{msg}{Style.RESET_ALL}" if color else msg


def init_logging(outdir: Path, verbose: bool = False) -> logging.Logger:
    """Console + <outdir>/run.log. The log file is appended to across runs."""
    outdir.mkdir(parents=True, exist_ok=True)
    log_file = outdir / "run.log"

    # line-buffer stdout so messages appear immediately
    if hasattr(sys.stdout, "reconfigure"):
        try:
            sys.stdout.reconfigure(line_buffering=True)
        except (AttributeError, ValueError):
            pass
    colorama_init()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    for h in list(logger.handlers):
        h.close()
    logger.handlers.clear()
    logger.propagate = False

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)
    ch.setFormatter(ColorFormatter("%(message)s"))

    fh = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    logger.addHandler(ch)
    logger.addHandler(fh)
    logger.debug(f"Log file: {log_file}")
    return logger


def close_logging(logger: logging.Logger) -> None:
    for h in list(logger.handlers):
        h.close()
        logger.removeHandler(h)


@contextmanager
def step(logger: logging.Logger, label: str):
    logger.info(f"{label} ...")
    t0 = time.time()
    try:
        yield
    finally:
        dt = time.time() - t0
        logger.info(f"{label} done ({dt:.1f}s)")
