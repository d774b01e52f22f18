"""
Tests for the Azure DevOps backend.
"""

import base64

import httpx
import pytest

from taskbridge.core.tasks.azure_devops import (
    MAX_BATCH,
    AzureDevOpsBackend,
    map_priority,
    map_state,
    priority_number,
)
from taskbridge.core.tasks.exceptions import BackendNotImplementedError
from taskbridge.core.tasks.models import (
    CreateTaskInput,
    TaskFilter,
    TaskPriority,
    TaskStatus,
    TaskType,
    UpdateTaskInput,
)


def work_item(item_id=101, **fields):
    data = {
        "System.Title": "Build pipeline",
        "System.Description": "<p>CI</p>",
        "System.State": "Active",
        "Microsoft.VSTS.Common.Priority": 2,
        "System.WorkItemType": "User Story",
        "System.Tags": "ci; infra",
        "System.AssignedTo": {"displayName": "Sam"},
        "System.CreatedDate": "2024-01-01T00:00:00Z",
        "System.ChangedDate": "2024-01-05T00:00:00Z",
    }
    data.update(fields)
    return {
        "id": item_id,
        "fields": data,
        "_links": {"html": {"href": f"https://dev.azure.com/org/proj/_workitems/edit/{item_id}"}},
    }


@pytest.fixture
def azure_config(config_factory):
    return config_factory(
        **{
            "azure-devops": {
                "credentials": {"token": "pat"},
                "settings": {"organization": "org", "project": "proj"},
            }
        }
    )


def make_backend(config, client_factory, handler):
    client, recorder = client_factory(handler)
    return AzureDevOpsBackend(config, client=client), recorder


class TestHelpers:
    def test_map_state(self):
        assert map_state("New") == TaskStatus.TODO
        assert map_state("Active") == TaskStatus.IN_PROGRESS
        assert map_state("Resolved") == TaskStatus.REVIEW
        assert map_state("Closed") == TaskStatus.DONE
        assert map_state("Design") == "Design"

    def test_priority_numbers(self):
        assert map_priority(1) == TaskPriority.URGENT
        assert map_priority(4) == TaskPriority.LOW
        assert map_priority(None) == TaskPriority.MEDIUM
        assert priority_number("high") == 2
        assert priority_number("P0") is None


class TestGetTasks:
    @pytest.mark.asyncio
    async def test_wiql_then_batch(self, azure_config, client_factory):
        def handler(request):
            if request.url.path.endswith("/wiql"):
                return httpx.Response(200, json={"workItems": [{"id": 101}, {"id": 102}]})
            return httpx.Response(
                200, json={"value": [work_item(101), work_item(102, **{"System.State": "Closed"})]}
            )

        backend, recorder = make_backend(azure_config, client_factory, handler)

        tasks = await backend.get_tasks()

        assert [t.id for t in tasks] == ["101", "102"]
        first = tasks[0]
        assert first.status == TaskStatus.IN_PROGRESS
        assert first.priority == TaskPriority.HIGH
        assert first.type == TaskType.STORY
        assert first.tags == ["ci", "infra"]
        assert first.assignee == "Sam"
        assert first.url.endswith("/edit/101")
        assert tasks[1].status == TaskStatus.DONE

        wiql, batch = recorder.requests
        assert wiql.method == "POST"
        assert wiql.url.path == "/org/proj/_apis/wit/wiql"
        assert wiql.url.params["api-version"] == "6.0"
        assert batch.url.params["ids"] == "101,102"
        expected = base64.b64encode(b":pat").decode()
        assert wiql.headers["Authorization"] == f"Basic {expected}"

    @pytest.mark.asyncio
    async def test_batch_capped(self, azure_config, client_factory):
        def handler(request):
            if request.url.path.endswith("/wiql"):
                return httpx.Response(200, json={"workItems": [{"id": i} for i in range(80)]})
            return httpx.Response(200, json={"value": []})

        backend, recorder = make_backend(azure_config, client_factory, handler)
        await backend.get_tasks()
        assert len(recorder.last.url.params["ids"].split(",")) == MAX_BATCH

    @pytest.mark.asyncio
    async def test_no_results_skips_batch(self, azure_config, client_factory):
        backend, recorder = make_backend(
            azure_config, client_factory, lambda request: httpx.Response(200, json={"workItems": []})
        )
        assert await backend.get_tasks(TaskFilter(status="done")) == []
        assert len(recorder) == 1


class TestCreate:
    @pytest.mark.asyncio
    async def test_json_patch_document(self, azure_config, client_factory):
        backend, recorder = make_backend(
            azure_config,
            client_factory,
            lambda request: httpx.Response(200, json=work_item(200, **{"System.State": "New"})),
        )

        task = await backend.create_task(
            CreateTaskInput(title="Flaky test", type="bug", priority="urgent", tags=["ci", "qa"])
        )

        assert task.id == "200"
        request = recorder.last
        assert request.url.path.endswith("/workitems/$Bug")
        assert request.headers["Content-Type"] == "application/json-patch+json"
        patch = recorder.json()
        assert {"op": "add", "path": "/fields/System.Title", "value": "Flaky test"} in patch
        assert {
            "op": "add",
            "path": "/fields/Microsoft.VSTS.Common.Priority",
            "value": 1,
        } in patch
        assert {"op": "add", "path": "/fields/System.Tags", "value": "ci; qa"} in patch


class TestCapabilities:
    @pytest.mark.asyncio
    async def test_only_list_and_create(self, azure_config):
        backend = AzureDevOpsBackend(azure_config)
        for call in (
            backend.get_task_by_id("1"),
            backend.update_task(UpdateTaskInput(id="1", title="x")),
            backend.delete_task("1"),
            backend.add_comment("1", "hi"),
        ):
            with pytest.raises(BackendNotImplementedError):
                await call
