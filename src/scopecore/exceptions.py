"""Unified exception hierarchy for scopecore.

All errors raised by the rule engine inherit from ScopeCoreError. This module provides:
- Base exception hierarchy with stable error codes
- ErrorRegistry for protocol mapping
- HTTP status mapping for the request-handling collaborator

Usage:
    from scopecore.exceptions import (
        ScopeCoreError,
        StoreUnavailableError,
        UnknownScopeError,
        get_http_status_code,
    )

Callers may define thin subclasses for integration-specific errors:
    @register_error("MY_STORE_ERROR")
    class MyStoreError(StoreUnavailableError):
        code = "MY_STORE_ERROR"
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar, cast

__all__ = [
    # Base hierarchy
    "ScopeCoreError",
    "ConfigurationError",
    "InvalidRuleError",
    "InvalidRequestError",
    "UnknownScopeError",
    "StoreUnavailableError",
    "DuplicateRuleError",
    "PartialCascadeFailure",
    # Registry
    "ErrorRegistry",
    "error_registry",
    "register_error",
    # Protocol helpers
    "get_http_status_code",
]

logger = logging.getLogger(__name__)


# ---- Exception Hierarchy ----------------------------------------------------


class ScopeCoreError(Exception):
    """Base exception for the permission rule engine.

    Attributes:
        code: Stable error code string for protocol mapping (e.g. "UNKNOWN_SCOPE").
        message: Human-readable error description.
        details: Additional context as keyword arguments.
    """

    code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(self, message: str | None = None, code: str | None = None, **kwargs: Any) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = kwargs
        super().__init__(self.message)


class ConfigurationError(ScopeCoreError):
    """Invalid or missing configuration."""

    code: str = "CONFIGURATION_ERROR"


class InvalidRuleError(ScopeCoreError):
    """Rule text cannot be built from the given parts (e.g. empty tool)."""

    code: str = "INVALID_RULE"


class InvalidRequestError(ScopeCoreError):
    """Request arguments are unusable (e.g. an empty id list)."""

    code: str = "INVALID_REQUEST"


class UnknownScopeError(ScopeCoreError):
    """Malformed scope identifier or unknown area name.

    Always raised before any store I/O is attempted.
    """

    code: str = "UNKNOWN_SCOPE"


class StoreUnavailableError(ScopeCoreError):
    """Reading or writing a scope document failed."""

    code: str = "STORE_UNAVAILABLE"


class DuplicateRuleError(ScopeCoreError):
    """Identical canonical rule text already exists at the target scope."""

    code: str = "DUPLICATE_RULE"


class PartialCascadeFailure(ScopeCoreError):
    """One or more descendant writes failed after the origin write succeeded.

    Not raised by the cascade engine itself; callers that prefer exceptions
    over inspecting ``CascadeResult.failures`` can opt in via
    ``CascadeResult.raise_for_failures()``.
    """

    code: str = "PARTIAL_CASCADE_FAILURE"
    message: str = "Cascade applied partially; run reconcile to repair drift"


# ---- Error Registry for Protocol Mapping ------------------------------------

_E = TypeVar("_E", bound=type[ScopeCoreError])


class ErrorRegistry:
    """Registry for mapping internal errors to external protocol codes."""

    def __init__(self) -> None:
        self._errors: dict[str, type[ScopeCoreError]] = {}

    def register(self, code: str, error_cls: type[ScopeCoreError]) -> None:
        self._errors[code] = error_cls

    def get(self, code: str) -> type[ScopeCoreError] | None:
        return self._errors.get(code)

    def all(self) -> dict[str, type[ScopeCoreError]]:
        return dict(self._errors)


error_registry = ErrorRegistry()


def register_error(code: str) -> Callable[[_E], _E]:
    """Decorator to register a custom error type.

    Usage:
        @register_error("MY_CUSTOM_ERROR")
        class MyCustomError(ScopeCoreError):
            code = "MY_CUSTOM_ERROR"
    """

    def decorator(cls: _E) -> _E:
        error_registry.register(code, cls)
        return cls

    return cast(Callable[[_E], _E], decorator)


# Register base errors
error_registry.register("INTERNAL_ERROR", ScopeCoreError)
error_registry.register("CONFIGURATION_ERROR", ConfigurationError)
error_registry.register("INVALID_RULE", InvalidRuleError)
error_registry.register("INVALID_REQUEST", InvalidRequestError)
error_registry.register("UNKNOWN_SCOPE", UnknownScopeError)
error_registry.register("STORE_UNAVAILABLE", StoreUnavailableError)
error_registry.register("DUPLICATE_RULE", DuplicateRuleError)
error_registry.register("PARTIAL_CASCADE_FAILURE", PartialCascadeFailure)


# ---- HTTP Status Mapping ----------------------------------------------------

_ERROR_TO_STATUS: dict[str, int] = {
    "CONFIGURATION_ERROR": 500,
    "INVALID_RULE": 400,
    "INVALID_REQUEST": 400,
    "UNKNOWN_SCOPE": 400,
    "STORE_UNAVAILABLE": 503,
    "DUPLICATE_RULE": 409,
    "PARTIAL_CASCADE_FAILURE": 207,
}


def get_http_status_code(error: ScopeCoreError) -> int:
    """Map a ScopeCoreError to the status code the HTTP collaborator should return.

    Unknown codes (including custom registered errors without a mapping)
    fall back to 500.
    """
    status = _ERROR_TO_STATUS.get(error.code)
    if status is None:
        # Subclasses with custom codes inherit their parent's mapping
        for cls in type(error).__mro__:
            parent_code = getattr(cls, "code", None)
            if parent_code in _ERROR_TO_STATUS:
                return _ERROR_TO_STATUS[parent_code]
        logger.debug("No HTTP status mapping for error code %s", error.code)
        return 500
    return status
