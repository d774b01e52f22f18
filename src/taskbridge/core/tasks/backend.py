"""
Task backend protocol and registration.

This module defines the TaskBackend protocol that every backend (local
store, GitHub, Jira, ...) must implement, and the decorator that makes a
backend class discoverable by name.
"""

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from .models import CreateTaskInput, Task, TaskFilter, UpdateTaskInput


@runtime_checkable
class TaskBackend(Protocol):
    """
    Protocol for task backend implementations.

    Backends are responsible for:
    - Translating their native resources into canonical Task objects
    - Applying filters server-side where possible, documenting the rest
    - Raising BackendNotImplementedError for operations they cannot perform

    All operations are coroutines; callers await them one at a time.
    """

    @property
    def backend_name(self) -> str:
        """
        Get the name of this backend.

        Returns:
            Backend name (e.g., 'local', 'github')
        """
        ...

    async def get_tasks(self, filter: TaskFilter | None = None) -> list[Task]:
        """
        List tasks, optionally filtered.

        Args:
            filter: Criteria; each backend documents which fields it honors

        Returns:
            Tasks in the backend's native listing order
        """
        ...

    async def get_task_by_id(self, task_id: str) -> Task | None:
        """
        Get a specific task by ID.

        Args:
            task_id: Backend-specific task identifier

        Returns:
            Task if found and accessible, None otherwise
        """
        ...

    async def create_task(self, input: CreateTaskInput) -> Task:
        """
        Create a task.

        Returns:
            The task as reconstructed from the backend's response. Fields the
            backend cannot store are left at their defaults.
        """
        ...

    async def update_task(self, input: UpdateTaskInput) -> Task:
        """
        Apply the explicitly set fields of input to an existing task.

        Returns:
            The updated task
        """
        ...

    async def delete_task(self, task_id: str) -> bool:
        """
        Delete a task (or close it, where the backend documents that).

        Returns:
            True if a task was deleted/closed, False if it did not exist
        """
        ...

    async def add_comment(self, task_id: str, content: str) -> Task:
        """
        Append a comment to a task.

        Returns:
            The task after the comment was added
        """
        ...


# Backend registry
_backends: dict[str, type] = {}


def register_backend(name: str) -> Callable[[type], type]:
    """
    Decorator to register a task backend implementation.

    Usage:
        @register_backend('github')
        class GitHubBackend(RemoteBackend):
            ...

    Args:
        name: Backend name (e.g., 'github', 'azure-devops')

    Returns:
        Decorator function
    """

    def decorator(backend_class: type) -> type:
        _backends[name] = backend_class
        return backend_class

    return decorator


def get_backend_class(name: str) -> type | None:
    """
    Look up a registered backend class.

    Args:
        name: Backend name

    Returns:
        The registered class, or None if no backend has that name
    """
    return _backends.get(name)


def list_backends() -> list[str]:
    """
    List all registered backend names.

    Returns:
        List of backend names
    """
    return list(_backends.keys())


def is_backend_available(name: str) -> bool:
    """
    Check if a backend is available.

    Args:
        name: Backend name to check

    Returns:
        True if backend is registered
    """
    return name in _backends
