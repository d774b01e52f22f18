"""Sprints and releases for local tasks."""

from .models import Release, ReleaseStatus, Sprint, SprintStatus

__all__ = ["Release", "ReleaseStatus", "Sprint", "SprintStatus"]
