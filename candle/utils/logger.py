"""
Centralized logging configuration for the candle auction engine.

Every subsystem (auction, ledger, entropy, reward, cli) logs under the
`candle` logger. The console handler is attached on first use; level and
the optional log file follow the EngineSettings passed to `configure`, so
CANDLE_LOG_LEVEL and CANDLE_LOG_DIR take effect at any point after import.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

import colorlog

from candle.core.config import EngineSettings

LOG_FILE_NAME = "candle.log"

_DATEFMT = "%Y-%m-%d %H:%M:%S"


class CandleLogger:
    """Centralized logger for engine components"""

    _console: Optional[logging.Handler] = None
    _file: Optional[logging.FileHandler] = None

    @classmethod
    def _root(cls) -> logging.Logger:
        root_logger = logging.getLogger("candle")
        if cls._console is None:
            cls._console = colorlog.StreamHandler(sys.stderr)
            cls._console.setFormatter(colorlog.ColoredFormatter(
                "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s",
                datefmt=_DATEFMT,
                log_colors={
                    "DEBUG": "cyan",
                    "INFO": "green",
                    "WARNING": "yellow",
                    "ERROR": "red",
                    "CRITICAL": "red,bg_white",
                },
            ))
            root_logger.addHandler(cls._console)
            root_logger.setLevel(logging.INFO)
        return root_logger

    @classmethod
    def _set_log_dir(cls, root_logger: logging.Logger, log_dir: Optional[Path]) -> None:
        target = Path(log_dir) / LOG_FILE_NAME if log_dir is not None else None
        if cls._file is not None:
            if target is not None and cls._file.baseFilename == os.path.abspath(target):
                return
            root_logger.removeHandler(cls._file)
            cls._file.close()
            cls._file = None

        if target is None:
            return
        target.parent.mkdir(exist_ok=True, parents=True)
        cls._file = logging.FileHandler(target)
        cls._file.setFormatter(logging.Formatter(
            "%(asctime)s [%(name)s] %(levelname)-8s %(message)s",
            datefmt=_DATEFMT,
        ))
        root_logger.addHandler(cls._file)

    @classmethod
    def configure(cls, settings: EngineSettings, level: Optional[int] = None) -> Optional[Path]:
        """
        Apply engine settings to the candle loggers.

        Args:
            settings: Source of log_level and log_dir (None = console only)
            level: Overrides settings.log_level when given

        Returns:
            Path of the active log file, or None
        """
        root_logger = cls._root()
        cls._set_log_dir(root_logger, settings.log_dir)

        effective = settings.log_level if level is None else level
        root_logger.setLevel(effective)
        for handler in root_logger.handlers:
            handler.setLevel(effective)

        return Path(cls._file.baseFilename) if cls._file is not None else None

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Get a logger for a specific subsystem.

        Args:
            name: Subsystem name (e.g., 'auction', 'ledger', 'entropy')

        Returns:
            Logger instance
        """
        cls._root()
        return logging.getLogger(f"candle.{name}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific subsystem"""
    return CandleLogger.get_logger(name)


def setup_logging(settings: Optional[EngineSettings] = None, level: Optional[int] = None):
    """Setup logging from engine settings (defaults when None)"""
    return CandleLogger.configure(settings or EngineSettings(), level=level)
