"""Wiki pages and discussion threads."""

from .models import Discussion, DiscussionMessage, DiscussionStatus, WikiPage

__all__ = ["Discussion", "DiscussionMessage", "DiscussionStatus", "WikiPage"]
