"""
Persons API — Custom Exception Hierarchy
==========================================

What:  Application-specific exceptions for request-time and startup failures.
Why:   Targeted handling with the right HTTP status code (request time) or a
       clean abort of process startup (bootstrap time), without leaking
       internal details to API consumers.
How:   Each exception carries a message and an optional context dict.
       Request-time errors are turned into JSON responses by the global
       handlers registered in main.py. Startup errors propagate out of the
       lifespan so the ASGI server never starts serving.

Exception Hierarchy:
    PersonsApiError (base)
    ├── NotFoundError        → 404 Not Found
    ├── DatabaseError        → 500 Internal Server Error
    ├── ConfigurationError   → startup abort (missing/invalid settings)
    └── MigrationError       → startup abort (schema could not be migrated)
"""

from typing import Any, Dict, Optional


class PersonsApiError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class NotFoundError(PersonsApiError):
    """
    Raised when a requested resource does not exist.

    When:    PUT/DELETE /persons/{id} with an id that has no row.
    HTTP:    404 Not Found

    SQLAlchemy returns None for missing rows; the service layer converts
    that into this exception so routes stay free of status-code logic.
    """

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource.lower()} was not found."
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found."
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource_id = resource_id


class DatabaseError(PersonsApiError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    Security Note:
        The message returned to the client is always generic. Driver and SQL
        details stay in the server logs.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ConfigurationError(PersonsApiError):
    """
    Raised when a required setting is missing or unusable.

    When:    Startup, before the engine is created or migrations run.
    Effect:  Fatal. It is never retried.
    """

    def __init__(
        self,
        message: str = "Configuration validation failed",
        setting: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if setting:
            ctx["setting"] = setting
        super().__init__(message=message, context=ctx)
        self.setting = setting


class MigrationError(PersonsApiError):
    """
    Raised when the startup migration could not be applied.

    When:    The retry budget is exhausted, or the migrator reported a failure
             that retrying cannot fix (bad URL, broken revision scripts).
    Effect:  Fatal. Propagates out of the lifespan and aborts startup.

    Attributes:
        attempts:  How many times the migration was attempted
        cause:     The error from the last attempt, if any
    """

    def __init__(
        self,
        attempts: int,
        cause: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"Database migration failed after {attempts} attempt(s)"
        if cause is not None:
            message = f"{message}: {cause}"
        ctx = context or {}
        ctx["attempts"] = attempts
        if cause is not None:
            ctx["error_type"] = type(cause).__name__
        super().__init__(message=message, context=ctx)
        self.attempts = attempts
        self.cause = cause
