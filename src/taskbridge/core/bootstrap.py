"""
Process-wide wiring.

``create_workspace`` opens the local store once, runs the legacy import
if one is pending, and builds the audit trail, backend registry and
services on top of it. Consumers receive the Workspace instead of
creating their own connections.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import httpx

from taskbridge.core.config.loader import ConfigManager
from taskbridge.core.history.trail import AuditTrail
from taskbridge.core.knowledge.service import KnowledgeService
from taskbridge.core.planning.service import PlanningService
from taskbridge.core.store.database import LocalStore
from taskbridge.core.store.migration import LEGACY_FILENAME, LegacyMigrator, MigrationState
from taskbridge.core.tasks.registry import BackendRegistry
from taskbridge.core.tasks.service import TaskService

logger = logging.getLogger(__name__)

DB_FILENAME = "taskbridge.sqlite"


@dataclass
class Workspace:
    """Everything one process needs to serve task operations."""

    config: ConfigManager
    data_dir: Path
    store: LocalStore
    migrator: LegacyMigrator
    audit: AuditTrail
    registry: BackendRegistry
    tasks: TaskService
    planning: PlanningService
    knowledge: KnowledgeService

    async def aclose(self) -> None:
        """Close backend HTTP clients and the store connection."""
        await self.registry.aclose()
        self.store.close()


def create_workspace(
    config: ConfigManager | None = None,
    data_dir: Path | None = None,
    client: httpx.AsyncClient | None = None,
    migrate: bool = True,
) -> Workspace:
    """
    Build a Workspace.

    Args:
        config: Configuration; loaded from the user/project files when None
        data_dir: Directory for the SQLite file and the legacy db.json;
            defaults to the configured data directory
        client: HTTP client shared by remote backends (tests inject one)
        migrate: Import a pending legacy db.json before returning

    Returns:
        A ready Workspace
    """
    config = config or ConfigManager()
    data_dir = Path(data_dir) if data_dir is not None else config.data_dir
    data_dir.mkdir(parents=True, exist_ok=True)

    store = LocalStore(data_dir / DB_FILENAME)
    migrator = LegacyMigrator(store, data_dir / LEGACY_FILENAME)
    if migrate and migrator.state == MigrationState.NOT_MIGRATED:
        state = migrator.migrate()
        if state == MigrationState.FAILED:
            logger.warning("Legacy import failed; %s left in place", migrator.legacy_path)

    actor = config.actor
    audit = AuditTrail(store, actor=actor)
    registry = BackendRegistry(config, store, audit=audit, actor=actor, client=client)

    return Workspace(
        config=config,
        data_dir=data_dir,
        store=store,
        migrator=migrator,
        audit=audit,
        registry=registry,
        tasks=TaskService(store, audit),
        planning=PlanningService(store, audit),
        knowledge=KnowledgeService(store, actor=actor),
    )
