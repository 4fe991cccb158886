"""Logging setup for the private player.

Log records go to a rotating file in the XDG data directory and, for
warnings and above, to stderr. Modules log track ids at DEBUG only, since
display names may be private.
"""

# ============================================================================
# Standard Library Imports (alphabetical)
# ============================================================================
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

# ============================================================================
# Third-Party Imports (alphabetical, with version requirements)
# ============================================================================
# None

# ============================================================================
# Local Imports (grouped by package, alphabetical)
# ============================================================================
# None

ROOT_LOGGER_NAME = "privateplayer"
DEBUG_ENV_VAR = "PRIVATEPLAYER_DEBUG"
LOG_FILE_NAME = "privateplayer.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


class LinuxLogger:
    """
    Process-wide logger with file and console output.

    Supports:
    - File logging to the XDG data directory
    - Console output for warnings and errors
    - Environment variable control (PRIVATEPLAYER_DEBUG)
    """

    _instance: Optional["LinuxLogger"] = None
    _initialized: bool = False

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize the logger.

        Args:
            log_dir: Directory for log files (defaults to XDG data dir)
        """
        self.logger = logging.getLogger(ROOT_LOGGER_NAME)
        if LinuxLogger._initialized:
            return

        self.logger.setLevel(
            logging.DEBUG if os.getenv(DEBUG_ENV_VAR) else logging.INFO
        )
        LinuxLogger._instance = self
        LinuxLogger._initialized = True

        # Prevent duplicate handlers when the root logger was set up elsewhere
        if self.logger.handlers:
            return

        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        if log_dir is None:
            xdg_data = os.getenv("XDG_DATA_HOME", Path.home() / ".local" / "share")
            log_dir = Path(xdg_data) / ROOT_LOGGER_NAME / "logs"

        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_dir / LOG_FILE_NAME,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
            )
        except OSError as e:
            # Read-only home (sandboxes, CI): console output only
            self.logger.warning("File logging disabled: %s", e)
            return
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        self.logger.addHandler(file_handler)

    @classmethod
    def get_logger(cls, name: str = ROOT_LOGGER_NAME) -> logging.Logger:
        """
        Get a logger instance.

        Module names such as ``privateplayer.session`` become children of the
        application logger so one handler setup covers all of them.

        Args:
            name: Logger name (creates child logger)

        Returns:
            Logger instance
        """
        if cls._instance is None:
            cls()

        root = cls._instance.logger
        if name == ROOT_LOGGER_NAME:
            return root
        prefix = ROOT_LOGGER_NAME + "."
        if name.startswith(prefix):
            name = name[len(prefix):]
        return root.getChild(name)

    @classmethod
    def set_level(cls, level: int) -> None:
        """
        Set logging level for the application logger.

        Args:
            level: Logging level (logging.DEBUG, logging.INFO, etc.)
        """
        if cls._instance is None:
            cls()
        cls._instance.logger.setLevel(level)


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Get a logger instance."""
    return LinuxLogger.get_logger(name)
