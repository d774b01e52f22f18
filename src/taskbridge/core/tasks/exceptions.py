"""
Exceptions for taskbridge.

Exception Hierarchy:
    TaskBridgeError (base)
    ├── ConfigurationError (missing credentials/settings for a backend)
    ├── BackendNotImplementedError (capability a backend does not support)
    ├── TransportError (non-2xx response or network failure)
    ├── TaskValidationError (references to unknown entities, invalid state)
    └── TaskNotFoundError (mutation of an unknown task)

Single-entity lookups never raise for a missing entity; they return None.

Example:
    >>> try:
    ...     raise TransportError("jira", 503, "Service Unavailable")
    ... except TransportError as e:
    ...     print(e)
    [jira] HTTP 503: Service Unavailable
"""


class TaskBridgeError(Exception):
    """
    Base exception for all taskbridge errors.

    Attributes:
        message: Human-readable error message
        context: Additional keyword context (ids, urls, ...)
    """

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class BackendError(TaskBridgeError):
    """Base for errors attributable to one backend."""

    def __init__(self, backend: str, message: str, **context: object) -> None:
        super().__init__(message, backend=backend, **context)
        self.backend = backend

    def __str__(self) -> str:
        return f"[{self.backend}] {self.message}"


class ConfigurationError(BackendError):
    """
    Raised on first use of a backend whose configuration is incomplete.

    Never raised at construction time; raised again on every call until
    the configuration is fixed.
    """

    def __init__(self, backend: str, message: str, missing: list[str] | None = None) -> None:
        super().__init__(backend, message, missing=missing or [])
        self.missing = missing or []


class BackendNotImplementedError(BackendError, NotImplementedError):
    """Raised for an operation outside a backend's declared capability set."""

    def __init__(self, backend: str, operation: str) -> None:
        super().__init__(
            backend,
            f"Operation '{operation}' is not supported by the {backend} backend",
            operation=operation,
        )
        self.operation = operation


class TransportError(BackendError):
    """
    A remote call failed.

    ``status_code`` is the HTTP status of a non-2xx response, or None when
    the request never produced a response (connection error, timeout,
    GraphQL-level error).
    """

    def __init__(
        self,
        backend: str,
        status_code: int | None,
        detail: str,
        **context: object,
    ) -> None:
        prefix = f"HTTP {status_code}: " if status_code is not None else ""
        super().__init__(backend, f"{prefix}{detail}", status_code=status_code, **context)
        self.status_code = status_code
        self.detail = detail


class TaskValidationError(TaskBridgeError, ValueError):
    """Raised when a caller references a nonexistent entity or breaks an invariant."""


class TaskNotFoundError(TaskBridgeError, LookupError):
    """Raised when a mutation targets a task id that does not exist."""

    def __init__(self, task_id: str, backend: str | None = None) -> None:
        where = f" in {backend}" if backend else ""
        super().__init__(f"Task {task_id} not found{where}", task_id=task_id, backend=backend)
        self.task_id = task_id


__all__ = [
    "TaskBridgeError",
    "BackendError",
    "ConfigurationError",
    "BackendNotImplementedError",
    "TransportError",
    "TaskValidationError",
    "TaskNotFoundError",
]
