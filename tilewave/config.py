"""
Shared settings and helpers for tilewave.

Holds the project-wide constants (tile size, default map size, preview
window sizing, bundled data paths) together with the logging setup used by
every entry point, a timing context manager and a memory probe.

Importing this module has no side effects: pygame is not initialised and no
log files are created until setup_logging() is called, so the generator can
run headless.
"""

import os
import logging
import sys
import time
from datetime import datetime, timedelta
from pathlib import Path
import shutil

import psutil

# ============================================================================
# CONSTANTS
# ============================================================================

# Default map in tiles, and the pixel size of one tile
TILE_SIZE = 32
MAP_WIDTH = 64
MAP_HEIGHT = 64

# Preview window
HUD_HEIGHT = 48  # control bar under the map
FPS = 60

# Bundled data
DATA_DIR = Path(__file__).parent / "data"
DEFAULT_RULES_PATH = DATA_DIR / "rules" / "default.rules"

APP_LOGGER_NAME = 'tilewave'
LOG_FORMAT = '[%(asctime)s] - [%(name)s] - [%(levelname)s] - %(message)s'

# Session logs older than this are moved to old_log_dump/
LOG_MAX_AGE = timedelta(days=1)


# ============================================================================
# LOGGING
# ============================================================================

def setup_logging(log_root, level=logging.DEBUG):
    """
    Configure the root logger for one tilewave session.

    Logs go to stdout and to ``<log_root>/log_dump/tilewave_<timestamp>.log``.
    Files from earlier sessions older than LOG_MAX_AGE are moved to
    ``<log_root>/old_log_dump/`` first.

    Args:
        log_root (Path): Folder that receives log_dump/ and old_log_dump/
        level (int): Root logger level

    Returns:
        logging.Logger: The application logger
    """
    log_root = Path(log_root)
    session_dir = log_root / "log_dump"
    archive_dir = log_root / "old_log_dump"
    for folder in (session_dir, archive_dir):
        folder.mkdir(parents=True, exist_ok=True)

    _archive_old_logs(session_dir, archive_dir)

    log_path = session_dir / f"tilewave_{datetime.now():%Y%m%d_%H%M%S}.log"
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=[
            logging.FileHandler(log_path, encoding='utf-8'),
            logging.StreamHandler(sys.stdout),
        ],
    )

    logger = logging.getLogger(APP_LOGGER_NAME)
    logger.info(f"Logging to {log_path}")
    return logger


def _archive_old_logs(session_dir, archive_dir):
    """Move *.log files last written before now - LOG_MAX_AGE into archive_dir."""
    cutoff = (datetime.now() - LOG_MAX_AGE).timestamp()

    stale = [path for path in session_dir.glob("*.log") if path.stat().st_mtime < cutoff]
    for path in stale:
        shutil.move(str(path), str(archive_dir / path.name))

    if stale:
        logging.getLogger(APP_LOGGER_NAME).debug(f"Archived {len(stale)} old log file(s)")


def get_logger(name=None):
    """
    Logger for a module, usually called as ``get_logger(__name__)``.
    Without a name the application logger is returned.
    """
    return logging.getLogger(name or APP_LOGGER_NAME)


def get_map_logger():
    """Logger for the generator, separate so collapse chatter can be filtered by name."""
    return logging.getLogger(f'{APP_LOGGER_NAME}.MapGeneration')


# ============================================================================
# DIAGNOSTICS
# ============================================================================

class PerformanceTimer:
    """
    Times a block and logs how long it took.

        with PerformanceTimer(logger, "WFC generation") as timer:
            tile_map.generate()
        timer.elapsed  # seconds

    Completion is logged at INFO, a block left through an exception at
    WARNING. Exceptions are never suppressed.
    """

    def __init__(self, logger, operation_name):
        self.logger = logger
        self.operation_name = operation_name
        self._started = None
        self.elapsed = None

    def __enter__(self):
        self.logger.debug(f"Starting: {self.operation_name}")
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.elapsed = time.perf_counter() - self._started
        if exc_type is None:
            self.logger.info(f"Completed: {self.operation_name} in {self.elapsed:.3f}s")
        else:
            self.logger.warning(f"Aborted: {self.operation_name} after {self.elapsed:.3f}s ({exc_type.__name__})")
        return False


def log_memory_usage(logger, label="Memory usage"):
    """Log the resident set size of this process at DEBUG level."""
    rss_mb = psutil.Process(os.getpid()).memory_info().rss / (1024 * 1024)
    logger.debug(f"{label}: {rss_mb:.1f} MB")
