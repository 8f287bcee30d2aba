"""Core modules for the cluster operator - centralized definitions and utilities."""

from clusteroperator.core.errors import (
    AlreadyExistsError,
    ConfigurationError,
    DependencyUnresolvedError,
    ErrorKind,
    ExitCode,
    InconsistentClusterError,
    MalformedKeyError,
    NotReusableError,
    OperatorError,
    ProviderError,
    ResourceNotFoundError,
    ValidationError,
    format_error_message,
    is_already_exists,
    is_not_found,
    main_with_error_handling,
    require,
)

__all__ = [
    "ExitCode",
    "ErrorKind",
    "OperatorError",
    "ProviderError",
    "ResourceNotFoundError",
    "AlreadyExistsError",
    "NotReusableError",
    "DependencyUnresolvedError",
    "InconsistentClusterError",
    "ConfigurationError",
    "ValidationError",
    "MalformedKeyError",
    "is_not_found",
    "is_already_exists",
    "require",
    "main_with_error_handling",
    "format_error_message",
]
