"""
Project wiki and discussion threads.

Wiki pages are addressed by slug. Discussion messages are append-only;
a thread's status can change but its messages never do.
"""

from __future__ import annotations

import logging
import uuid

from taskbridge.core.history.trail import DEFAULT_ACTOR
from taskbridge.core.store.database import LocalStore
from taskbridge.core.tasks.exceptions import TaskValidationError
from taskbridge.core.tasks.models import utc_now_iso

from .models import Discussion, DiscussionMessage, DiscussionStatus, WikiPage

logger = logging.getLogger(__name__)


class KnowledgeService:
    """
    Wiki and discussion operations over the LocalStore.

    Example:
        >>> knowledge = KnowledgeService(store)
        >>> knowledge.create_page("onboarding", "Onboarding", "Read the README first.")
        >>> knowledge.search_pages("readme")[0].slug
        'onboarding'
    """

    def __init__(self, store: LocalStore, actor: str = DEFAULT_ACTOR) -> None:
        self.store = store
        self.actor = actor

    # ---- wiki ----

    def create_page(
        self, slug: str, title: str, content: str, tags: list[str] | None = None
    ) -> WikiPage:
        """
        Create a wiki page.

        Raises:
            TaskValidationError: If the slug is taken or slug/title is empty
        """
        if not slug.strip() or not title.strip():
            raise TaskValidationError("Slug and title required for a wiki page")
        if self.store.get_wiki_page_by_slug(slug) is not None:
            raise TaskValidationError(f"Page '{slug}' already exists. Use update.", slug=slug)

        page = WikiPage(
            id=str(uuid.uuid4()),
            slug=slug,
            title=title,
            content=content,
            tags=list(tags or []),
            last_updated=utc_now_iso(),
        )
        self.store.save_wiki_page(page)
        logger.info("Created wiki page %s", slug)
        return page

    def update_page(
        self,
        slug: str,
        title: str | None = None,
        content: str | None = None,
        tags: list[str] | None = None,
    ) -> WikiPage:
        """
        Change the given fields of a page.

        Raises:
            TaskValidationError: If no page has the slug
        """
        page = self.store.get_wiki_page_by_slug(slug)
        if page is None:
            raise TaskValidationError(f"Page '{slug}' not found", slug=slug)

        if title is not None:
            page.title = title
        if content is not None:
            page.content = content
        if tags is not None:
            page.tags = list(tags)
        page.last_updated = utc_now_iso()
        self.store.save_wiki_page(page)
        return page

    def get_page(self, slug: str) -> WikiPage | None:
        return self.store.get_wiki_page_by_slug(slug)

    def list_pages(self) -> list[WikiPage]:
        return self.store.get_wiki_pages()

    def search_pages(self, query: str) -> list[WikiPage]:
        """Pages whose title or content contains query, case-insensitively."""
        if not query.strip():
            raise TaskValidationError("Query is required for search")
        return self.store.search_wiki_pages(query)

    # ---- discussions ----

    def _message(self, content: str, author: str | None) -> DiscussionMessage:
        return DiscussionMessage(
            id=str(uuid.uuid4()),
            author=author or self.actor,
            content=content,
            timestamp=utc_now_iso(),
        )

    def start_discussion(
        self,
        title: str,
        message: str,
        author: str | None = None,
        tags: list[str] | None = None,
    ) -> Discussion:
        """Open a thread with its first message."""
        if not title.strip() or not message.strip():
            raise TaskValidationError("Title and message required to start a discussion")

        now = utc_now_iso()
        discussion = Discussion(
            id=str(uuid.uuid4()),
            title=title,
            status=DiscussionStatus.OPEN,
            messages=[self._message(message, author)],
            tags=list(tags or []),
            created_at=now,
            updated_at=now,
        )
        self.store.save_discussion(discussion)
        logger.info("Started discussion %s", discussion.id)
        return discussion

    def _require_discussion(self, discussion_id: str) -> Discussion:
        discussion = self.store.get_discussion_by_id(discussion_id)
        if discussion is None:
            raise TaskValidationError(
                f"Discussion {discussion_id} not found", discussion_id=discussion_id
            )
        return discussion

    def reply(self, discussion_id: str, content: str, author: str | None = None) -> Discussion:
        """Append a message to a thread."""
        if not content.strip():
            raise TaskValidationError("Content required for reply", discussion_id=discussion_id)
        discussion = self._require_discussion(discussion_id)
        discussion.messages.append(self._message(content, author))
        discussion.updated_at = utc_now_iso()
        self.store.save_discussion(discussion)
        return discussion

    def set_status(self, discussion_id: str, status: DiscussionStatus | str) -> Discussion:
        """Change a thread's status (open, resolved, closed)."""
        try:
            new_status = DiscussionStatus(status)
        except ValueError as e:
            raise TaskValidationError(f"Invalid discussion status: {status}") from e
        discussion = self._require_discussion(discussion_id)
        discussion.status = new_status
        discussion.updated_at = utc_now_iso()
        self.store.save_discussion(discussion)
        return discussion

    def get_discussion(self, discussion_id: str) -> Discussion | None:
        return self.store.get_discussion_by_id(discussion_id)

    def list_discussions(self) -> list[Discussion]:
        return self.store.get_discussions()
