"""User-facing progress messages for deployment runs.

Info and success lines go to stdout, errors to stderr. Under cron both streams
are redirected into the deployment log, so prefixes keep the lines greppable.
"""

import logging
from typing import Optional

from rich.console import Console

logger = logging.getLogger(__name__)


class Reporter:
    """Prints prefixed progress lines and mirrors them to the logging module at debug level."""

    def __init__(
        self,
        console: Optional[Console] = None,
        error_console: Optional[Console] = None,
    ):
        self.console = console or Console(soft_wrap=True)
        self.error_console = error_console or Console(stderr=True, soft_wrap=True)

    def info(self, message: str) -> None:
        logger.debug(message)
        self.console.print(f"[INFO] {message}", markup=False, highlight=False)

    def success(self, message: str) -> None:
        logger.debug(message)
        self.console.print(f"✅ {message}", style="green", markup=False, highlight=False)

    def warning(self, message: str) -> None:
        logger.debug(message)
        self.console.print(f"⚠️  {message}", style="yellow", markup=False, highlight=False)

    def error(self, message: str) -> None:
        logger.debug(message)
        self.error_console.print(
            f"❌ [ERROR] {message}", style="red", markup=False, highlight=False
        )
