"""
taskbridge - one task interface over many project trackers.

Exposes a canonical Task model backed interchangeably by a local SQLite
store or by GitHub, Jira, Trello, Asana, Azure DevOps and Monday.com.
"""

__version__ = "0.4.0"

# Re-export core models for convenience
from taskbridge.core.tasks.models import Task, TaskPriority, TaskStatus, TaskType

__all__ = ["Task", "TaskStatus", "TaskPriority", "TaskType", "__version__"]
