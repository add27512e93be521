"""
Mun CLI Error Hierarchy

Base error and specific error types for every command of the driver.
Errors carry metadata for structured logging. None of them is retried:
each one ends the current command with a non-zero exit status.
"""

from typing import Any, Dict, Optional


class MunError(RuntimeError):
    """
    Base error for the Mun command-line driver. Carries metadata for structured logging.

    Attributes:
        category: Error category for classification (e.g., "manifest", "invocation")
        metadata: Additional context for logging and debugging
    """

    category: str = "runtime"

    def __init__(
        self,
        message: str,
        *,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.metadata = metadata or {}


# Usage Errors
class UsageError(MunError):
    """Raised when a command-line value is outside its accepted set."""

    category = "usage"


# Manifest Errors
class ManifestError(MunError):
    """Raised when the project manifest cannot be resolved."""

    category = "manifest"


# Configuration Errors
class ConfigurationError(MunError):
    """Raised when compile or environment configuration is invalid."""

    category = "config"


# Compile Errors
class CompileError(MunError):
    """Raised when the compiler could not be launched."""

    category = "compile"


# Runtime Errors
class RuntimeLaunchError(MunError):
    """Raised when the execution runtime cannot be constructed or started."""

    category = "runtime"


# Invocation Errors
class InvocationError(MunError):
    """Raised when invoking an entry point fails."""

    category = "invocation"


class EntryPointNotFoundError(InvocationError):
    """Raised when the requested entry point does not exist in the library."""

    category = "invocation"


class UnsupportedReturnTypeError(InvocationError):
    """
    Raised when an entry point returns a type that cannot be decoded.

    Attributes:
        type_name: Fully-qualified name of the offending return type
    """

    category = "invocation"

    def __init__(
        self,
        message: str,
        *,
        type_name: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, metadata=metadata)
        self.type_name = type_name


# Scaffolding Errors
class ScaffoldError(MunError):
    """Raised when a new project cannot be created."""

    category = "scaffold"


# Language Server Errors
class LanguageServerError(MunError):
    """Raised when the language server cannot be started."""

    category = "language_server"
