"""Centralized exception logger for deployment runs.

Appends every command failure and fatal error, with its context, as a JSON
record next to the deployment log so scheduled runs leave a trail even when
their console output is lost.
"""

import json
import os
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any

ERROR_LOG_NAME = "compose-autodeploy-errors.log"


class ExceptionLogger:
    """Centralized exception logging facility.

    Logs exceptions with full context to a single append-only file.
    """

    _instance: Optional["ExceptionLogger"] = None
    log_file_path: Optional[Path] = None

    def __init__(self, log_file_path: Path):
        """Initialize exception logger with specific log file path.

        Args:
            log_file_path: Path to the log file for writing exceptions
        """
        self.log_file_path = log_file_path

    @classmethod
    def initialize(cls, log_dir: Path) -> "ExceptionLogger":
        """Initialize the global exception logger (idempotent singleton).

        WARNING: This is a singleton. If already initialized, returns the existing
        instance rather than creating a new one. Tests should manually reset
        cls._instance = None if they need fresh instances.

        Args:
            log_dir: Directory holding the deployment log

        Returns:
            Initialized ExceptionLogger instance (singleton)
        """
        if cls._instance is not None:
            return cls._instance

        log_dir.mkdir(parents=True, exist_ok=True)
        log_file_path = log_dir / ERROR_LOG_NAME
        log_file_path.touch()

        instance = cls(log_file_path)
        cls._instance = instance
        return instance

    @classmethod
    def get_instance(cls) -> Optional["ExceptionLogger"]:
        """Get the current exception logger instance.

        Returns:
            Current ExceptionLogger instance or None if not initialized
        """
        return cls._instance

    def log_exception(
        self,
        exception: BaseException,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Log an exception with full context.

        Args:
            exception: The exception to log
            context: Additional context data to include in log (optional)
        """
        if not self.log_file_path:
            return

        log_entry = {
            "timestamp": datetime.now().isoformat(),
            "pid": os.getpid(),
            "exception_type": type(exception).__name__,
            "exception_message": str(exception),
            "stack_trace": traceback.format_exc(),
            "context": context or {},
        }

        with open(self.log_file_path, "a") as f:
            f.write(json.dumps(log_entry, indent=2, default=str))
            f.write("\n---\n")
