"""
Domain exceptions.

Typed exceptions for explicit error handling.
The HTTP layer maps them to status codes; the core never retries.
"""

from __future__ import annotations

from typing import Optional


# ═══════════════════════════════════════════════════════════
# BASE EXCEPTION
# ═══════════════════════════════════════════════════════════


class DomainError(Exception):
    """
    Base exception for all domain errors.

    All domain-specific exceptions inherit from this.
    Allows catching all domain errors with single except clause.
    """

    pass


# ═══════════════════════════════════════════════════════════
# CALLER ERRORS (4xx)
# ═══════════════════════════════════════════════════════════


class InvalidArgumentError(DomainError):
    """
    Caller supplied an invalid argument.

    Raised when:
    - Validation context misses currentDay or mealType
    - foodIds is empty or longer than the batch limit
    - A restriction payload has the wrong shape

    Example:
        >>> raise InvalidArgumentError("food_ids", "Maximum 50 foods per batch")
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class NotFoundError(DomainError):
    """
    Resource not found.

    Raised when:
    - Client, food item or meal log does not exist
    - Resource belongs to another organization

    Example:
        >>> raise NotFoundError("client", "client_123")
    """

    def __init__(self, resource: str, resource_id: str) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found: {resource_id}")


class AuthorizationError(DomainError):
    """
    Authorization failed.

    Raised when:
    - A non admin/owner role asks to clear the whole validation cache

    Example:
        >>> raise AuthorizationError("Role 'dietitian' cannot clear the cache")
    """

    pass


class ConflictError(DomainError):
    """
    Concurrent modification detected.

    Raised when:
    - A meal log keeps changing under score_meal after all reread attempts

    Example:
        >>> raise ConflictError("Meal log ml_1 changed during scoring")
    """

    pass


# ═══════════════════════════════════════════════════════════
# COLLABORATOR ERRORS
# ═══════════════════════════════════════════════════════════


class DependencyError(DomainError):
    """
    A collaborating store is unreachable or failed.

    Store adapters translate driver exceptions into this type.
    Never retried inside the core.

    Example:
        >>> raise DependencyError("meal_log_store", "connection refused")
    """

    def __init__(self, dependency: str, detail: Optional[str] = None) -> None:
        self.dependency = dependency
        self.detail = detail
        message = f"{dependency} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


# ═══════════════════════════════════════════════════════════
# INTERNAL ERRORS
# ═══════════════════════════════════════════════════════════


class InconsistentStateError(DomainError):
    """
    Stored data violates a model invariant.

    Raised when:
    - A stored restriction has zero or several targets
    - A kind-specific field is missing for its kind

    Never surfaces to callers: the offending rule is logged and
    treated as non-matching.
    """

    pass
