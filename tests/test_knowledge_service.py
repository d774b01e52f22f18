"""
Tests for the wiki and discussions.
"""

import pytest

from taskbridge.core.knowledge.models import DiscussionStatus
from taskbridge.core.knowledge.service import KnowledgeService
from taskbridge.core.tasks.exceptions import TaskValidationError


@pytest.fixture
def knowledge(store):
    return KnowledgeService(store, actor="tester")


class TestWiki:
    def test_create_and_get(self, knowledge):
        page = knowledge.create_page("setup", "Setup", "Install deps", tags=["onboarding"])

        loaded = knowledge.get_page("setup")
        assert loaded == page
        assert loaded.last_updated

    def test_duplicate_slug_rejected(self, knowledge):
        knowledge.create_page("setup", "Setup", "x")
        with pytest.raises(TaskValidationError, match="already exists"):
            knowledge.create_page("setup", "Other", "y")

    def test_update_changes_given_fields(self, knowledge):
        knowledge.create_page("setup", "Setup", "old", tags=["a"])

        page = knowledge.update_page("setup", content="new")

        assert page.content == "new"
        assert page.title == "Setup"
        assert knowledge.get_page("setup").content == "new"
        assert len(knowledge.list_pages()) == 1

    def test_update_unknown(self, knowledge):
        with pytest.raises(TaskValidationError):
            knowledge.update_page("ghost", title="x")

    def test_search(self, knowledge):
        knowledge.create_page("deploy", "Deploying", "Run the release script")
        knowledge.create_page("style", "Style guide", "Use black")
        assert [p.slug for p in knowledge.search_pages("RELEASE")] == ["deploy"]

    def test_empty_search_rejected(self, knowledge):
        with pytest.raises(TaskValidationError):
            knowledge.search_pages(" ")

    def test_get_missing_page(self, knowledge):
        assert knowledge.get_page("nope") is None


class TestDiscussions:
    def test_start_and_reply(self, knowledge):
        discussion = knowledge.start_discussion("API naming", "snake or camel?", tags=["api"])

        assert discussion.status == DiscussionStatus.OPEN
        assert discussion.messages[0].author == "tester"

        updated = knowledge.reply(discussion.id, "camel on the wire", author="sam")

        assert [m.content for m in updated.messages] == ["snake or camel?", "camel on the wire"]
        assert updated.messages[1].author == "sam"
        assert len(knowledge.get_discussion(discussion.id).messages) == 2

    def test_set_status(self, knowledge):
        discussion = knowledge.start_discussion("Topic", "Hello")
        assert knowledge.set_status(discussion.id, "resolved").status == DiscussionStatus.RESOLVED

    def test_invalid_status(self, knowledge):
        discussion = knowledge.start_discussion("Topic", "Hello")
        with pytest.raises(TaskValidationError):
            knowledge.set_status(discussion.id, "archived-forever")

    def test_reply_unknown(self, knowledge):
        with pytest.raises(TaskValidationError):
            knowledge.reply("ghost", "hi")

    def test_empty_reply_rejected(self, knowledge):
        discussion = knowledge.start_discussion("Topic", "Hello")
        with pytest.raises(TaskValidationError):
            knowledge.reply(discussion.id, "")

    def test_list_discussions(self, knowledge):
        knowledge.start_discussion("One", "a")
        knowledge.start_discussion("Two", "b")
        assert [d.title for d in knowledge.list_discussions()] == ["One", "Two"]
