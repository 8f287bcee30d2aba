"""
Unified error handling for the cluster operator.

Every failure raised by provisioners, the reconciler and the CLI derives from
OperatorError, carries an ErrorKind for programmatic classification, and keeps
the underlying provider exception as its ``__cause__``.

Exit Codes:
- 0: Success
- 3: Cluster inconsistent (manual remediation required)
- 10: Configuration error
- 11: Provider error (cloud or control-plane API failure)
- 12: Validation error
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum, StrEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    INCONSISTENT = 3
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    VALIDATION_ERROR = 12
    UNKNOWN_ERROR = 127


class ErrorKind(StrEnum):
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    NOT_REUSABLE = "not_reusable"
    DEPENDENCY_UNRESOLVED = "dependency_unresolved"
    PROVIDER = "provider"
    INCONSISTENT = "inconsistent"
    CONFIG = "config"
    VALIDATION = "validation"


class OperatorError(Exception):
    """Base exception for operator errors with exit code support."""

    kind: ErrorKind = ErrorKind.PROVIDER
    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ProviderError(OperatorError):
    """Raised when a provider call fails for any reason not classified below."""

    kind = ErrorKind.PROVIDER
    exit_code = ExitCode.PROVIDER_ERROR


class ResourceNotFoundError(ProviderError):
    """A name-based lookup found no matching resource."""

    kind = ErrorKind.NOT_FOUND


class AlreadyExistsError(ProviderError):
    """A creation call collided with an existing resource of the same name."""

    kind = ErrorKind.ALREADY_EXISTS


class NotReusableError(OperatorError):
    """Raised by resource kinds that cannot be deduplicated by name."""

    kind = ErrorKind.NOT_REUSABLE


class DependencyUnresolvedError(OperatorError):
    """A stage needs an output that no earlier stage produced."""

    kind = ErrorKind.DEPENDENCY_UNRESOLVED


class InconsistentClusterError(OperatorError):
    """Instances were created while their prerequisites could not be verified."""

    kind = ErrorKind.INCONSISTENT
    exit_code = ExitCode.INCONSISTENT


class ConfigurationError(OperatorError):
    """Raised for configuration-related errors."""

    kind = ErrorKind.CONFIG
    exit_code = ExitCode.CONFIG_ERROR


class ValidationError(OperatorError):
    """Raised for invalid cluster specifications."""

    kind = ErrorKind.VALIDATION
    exit_code = ExitCode.VALIDATION_ERROR


class MalformedKeyError(ValidationError):
    """A DNS name does not have the expected number of labels."""


def is_not_found(error: BaseException | None) -> bool:
    return isinstance(error, OperatorError) and error.kind == ErrorKind.NOT_FOUND


def is_already_exists(error: BaseException | None) -> bool:
    return isinstance(error, OperatorError) and error.kind == ErrorKind.ALREADY_EXISTS


def require(value: str | None, what: str, *, stage: str) -> str:
    """Return ``value`` or raise DependencyUnresolvedError when it is empty."""
    if not value:
        raise DependencyUnresolvedError(
            f"{stage} requires {what}, which no earlier stage produced",
            details={"stage": stage, "dependency": what},
        )
    return value


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI entry points that provides unified error handling.

    Args:
        show_traceback: If True, show full traceback for unexpected errors
        log_errors: If True, log errors to structlog

    Exit codes:
        - OperatorError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except OperatorError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        error_kind=str(e.kind),
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130  # Standard exit code for SIGINT
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: OperatorError) -> str:
    """Format an error message for display to users, including its cause chain."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    cause = error.__cause__
    while cause is not None:
        msg = f"{msg}: {cause}"
        cause = cause.__cause__
    return msg
