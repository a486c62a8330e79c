"""
Logging handler that bridges Python's standard logging module with the shellboot TUI.

Every module logs through ``logging.getLogger(__name__)``; records under the
``shellboot`` logger are rendered by the Rich-based ``tui`` print functions so
startup messages look the same whether they come from a log call or a direct
status print.
"""

# --- Imports ---
import logging
import traceback
from typing import Any, Callable, Dict, Optional, Union

from . import tui


ROOT_LOGGER_NAME = "shellboot"


# --- TuiLogHandler Class ---
class TuiLogHandler(logging.Handler):
    """
    A ``logging.Handler`` that directs records to TUI print functions.

    Records are routed to the matching ``tui.tui_print_*`` function by level.
    Exception information attached to a record is rendered below the message
    as a traceback block.
    """

    def __init__(self, tui_module: Any = tui, level: int = logging.NOTSET) -> None:
        """
        Initializes the TuiLogHandler.

        Args:
            tui_module: The TUI module which provides ``tui_print_*`` functions.
            level: Minimum level handled by this handler.
        """
        super().__init__(level=level)
        self.tui: Any = tui_module
        self._level_to_func: Dict[int, Callable[..., None]] = {
            logging.DEBUG: self.tui.tui_print_debug,
            logging.INFO: self.tui.tui_print_info,
            logging.WARNING: self.tui.tui_print_warning,
            logging.ERROR: self.tui.tui_print_error,
            logging.CRITICAL: self.tui.tui_print_error,
        }

    def _func_for(self, levelno: int) -> Callable[..., None]:
        # Custom levels fall back to the closest standard level below them
        for level in (logging.CRITICAL, logging.ERROR, logging.WARNING, logging.INFO):
            if levelno >= level:
                return self._level_to_func[level]
        return self._level_to_func[logging.DEBUG]

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
            self._func_for(record.levelno)(message)

            if record.exc_info:
                exc_text = "".join(traceback.format_exception(*record.exc_info))
                if exc_text.strip() and exc_text.strip() != "NoneType: None":
                    self.tui.tui_print_error(
                        f"\n--- Traceback ---:\n{exc_text.strip()}\n-------------------"
                    )
        except Exception:
            self.handleError(record)


def _coerce_level(level: Union[int, str, None]) -> int:
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    numeric: Optional[Any] = logging.getLevelName(str(level).upper())
    if isinstance(numeric, int):
        return numeric
    tui.tui_print_warning(f"(Invalid log level '{level}'. Falling back to INFO.)")
    return logging.INFO


def configure_logging(level: Union[int, str, None] = None) -> logging.Logger:
    """
    Installs the TUI handler on the ``shellboot`` logger exactly once.

    Args:
        level: Level as int or name ("DEBUG", "info", ...). Defaults to INFO.

    Returns:
        logging.Logger: The configured package logger.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    if not any(isinstance(h, TuiLogHandler) for h in logger.handlers):
        logger.addHandler(TuiLogHandler())
    logger.setLevel(_coerce_level(level))
    logger.propagate = False
    return logger
