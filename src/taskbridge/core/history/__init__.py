"""Field-level change history for local tasks."""

from .models import AuditLogEntry

__all__ = ["AuditLogEntry"]
