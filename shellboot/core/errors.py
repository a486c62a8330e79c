# ==== SHELLBOOT ERROR TYPES ==== #
"""
Exception hierarchy shared by the startup steps.

Fatal conditions (bad configuration, unreachable required resources) surface
as `StartupAborted` from `run_startup`; everything else is best-effort and
only logged by the step that hit it.
"""

from typing import Optional


class ShellbootError(Exception):
    """Base class for all shellboot errors."""


# ==== CONFIGURATION ==== #

class ConfigError(ShellbootError):
    """
    Raised when the configuration cannot be loaded or validated.

    Attributes:
        reason (str): One of `SOURCE_UNREACHABLE`, `MISSING_KEY`, `INVALID_VALUE`.
        key (Optional[str]): The offending configuration key, when known.
    """

    SOURCE_UNREACHABLE = "source_unreachable"
    MISSING_KEY = "missing_key"
    INVALID_VALUE = "invalid_value"

    def __init__(self, reason: str, message: str, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.reason: str = reason
        self.key: Optional[str] = key


class ResourceUnavailable(ShellbootError):
    """Helper scripts are missing locally and cannot be fetched remotely."""

    def __init__(self, missing: list, message: str) -> None:
        super().__init__(message)
        self.missing: list = list(missing)


# ==== DEFERRED INITIALIZATION ==== #

class DeferredAlreadyScheduled(ShellbootError):
    """A deferred block is still running; only one may be outstanding."""


class BlockAlreadyRun(ShellbootError):
    """A `DeferredBlock` was executed a second time."""


# ==== STARTUP ==== #

class StartupAborted(ShellbootError):
    """
    Startup stopped before the deferred work was scheduled.

    Attributes:
        exit_code (int): Process exit code the CLI should use.
        cause (Optional[BaseException]): The underlying error.
    """

    def __init__(self, message: str, exit_code: int = 1, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.exit_code: int = exit_code
        self.cause: Optional[BaseException] = cause
