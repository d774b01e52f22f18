"""
Canonical task model and backend interfaces.

This package provides the provider-agnostic Task model, its vocabularies
(status, priority, type), the exception hierarchy, and the TaskBackend
protocol every backend implements. Concrete backends register themselves
by name when :mod:`taskbridge.core.tasks.registry` is imported.
"""

from .backend import (
    TaskBackend,
    get_backend_class,
    is_backend_available,
    list_backends,
    register_backend,
)
from .exceptions import (
    BackendError,
    BackendNotImplementedError,
    ConfigurationError,
    TaskBridgeError,
    TaskNotFoundError,
    TaskValidationError,
    TransportError,
)
from .models import (
    Checklist,
    ChecklistItem,
    Comment,
    CreateTaskInput,
    Task,
    TaskFilter,
    TaskPriority,
    TaskStatus,
    TaskType,
    UpdateTaskInput,
)

__all__ = [
    # Models
    "Task",
    "TaskStatus",
    "TaskPriority",
    "TaskType",
    "Comment",
    "Checklist",
    "ChecklistItem",
    "CreateTaskInput",
    "UpdateTaskInput",
    "TaskFilter",
    # Errors
    "TaskBridgeError",
    "BackendError",
    "ConfigurationError",
    "BackendNotImplementedError",
    "TransportError",
    "TaskValidationError",
    "TaskNotFoundError",
    # Backend protocol and registration
    "TaskBackend",
    "register_backend",
    "get_backend_class",
    "list_backends",
    "is_backend_available",
]
