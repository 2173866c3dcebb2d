"""
Process wiring for the generation subsystem.

Builds store, catalog, commands, executor, poller and maintenance tasks
from settings, and starts/stops the background parts together. Used by
the API lifespan and by scripts/run_worker.py.
"""

from typing import List, Optional
from dataclasses import dataclass, field
from pathlib import Path

from modules.generation.config import GenerationConfig
from modules.generation.jobs import GenerationCommands, GenerationExecutor, JobPoller
from modules.generation.rendering.service import DocumentRenderService
from modules.generation.storage.job_storage import IGenerationStore
from modules.generation.storage.postgres_store import PostgresGenerationStore
from modules.generation.templates.catalog import ITemplateCatalog, InMemoryTemplateCatalog
from modules.generation.templates.postgres_catalog import PostgresTemplateCatalog
from modules.maintenance import (
    DocumentCleanupScheduler,
    IPartitionBackend,
    PartitionMaintenanceScheduler,
    PeriodicTask,
    PostgresPartitionBackend,
)
from shared.utils.config import Settings, get_settings
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


def build_catalog(settings: Settings) -> ITemplateCatalog:
    if settings.TEMPLATE_CATALOG == "directory":
        return InMemoryTemplateCatalog.from_directory(Path(settings.TEMPLATE_CATALOG_DIR))
    return PostgresTemplateCatalog()


@dataclass
class GenerationRuntime:
    """Everything one process needs to accept and execute generation jobs."""
    settings: Settings
    config: GenerationConfig
    store: IGenerationStore
    catalog: ITemplateCatalog
    commands: GenerationCommands
    executor: GenerationExecutor
    poller: JobPoller
    cleanup: DocumentCleanupScheduler
    partitions: Optional[PartitionMaintenanceScheduler] = None
    tasks: List[PeriodicTask] = field(default_factory=list)

    async def start(self, run_poller: bool = True) -> None:
        """Run partition maintenance once, then start the background tasks."""
        if self.partitions is not None:
            await self.partitions.run()

        for task in self.tasks:
            task.start()
        if run_poller:
            self.poller.start()
        logger.info("Generation runtime started")

    async def stop(self, timeout: Optional[float] = 30.0) -> None:
        await self.poller.stop(timeout)
        for task in self.tasks:
            await task.stop()
        logger.info("Generation runtime stopped")


def build_runtime(
    settings: Optional[Settings] = None,
    store: Optional[IGenerationStore] = None,
    catalog: Optional[ITemplateCatalog] = None,
    partition_backend: Optional[IPartitionBackend] = None,
) -> GenerationRuntime:
    """
    Assemble the runtime.

    Args:
        settings: Application settings (cached settings when omitted)
        store: Generation store (PostgreSQL when omitted)
        catalog: Template catalog (per TEMPLATE_CATALOG when omitted)
        partition_backend: Partition backend (PostgreSQL when omitted)
    """
    settings = settings or get_settings()
    config = GenerationConfig.from_settings(settings)
    store = store or PostgresGenerationStore()
    catalog = catalog or build_catalog(settings)

    render_service = DocumentRenderService(catalog, config)
    executor = GenerationExecutor(store, catalog, render_service, config)
    poller = JobPoller(store, executor, config)
    cleanup = DocumentCleanupScheduler(store, config)

    partitions = None
    tasks = [
        PeriodicTask("cleanup", settings.CLEANUP_INTERVAL_SECONDS, cleanup.run, run_at_start=False),
        PeriodicTask("batch-reconcile", settings.BATCH_RECONCILE_INTERVAL_SECONDS, cleanup.reconcile_batches),
    ]
    if settings.PARTITIONS_ENABLED:
        partitions = PartitionMaintenanceScheduler.from_settings(
            settings,
            partition_backend or PostgresPartitionBackend(),
        )
        # First run happens in start()
        tasks.append(
            PeriodicTask(
                "partition-maintenance",
                settings.PARTITIONS_MAINTENANCE_INTERVAL_SECONDS,
                partitions.run,
                run_at_start=False,
            )
        )

    return GenerationRuntime(
        settings=settings,
        config=config,
        store=store,
        catalog=catalog,
        commands=GenerationCommands(store, catalog, config),
        executor=executor,
        poller=poller,
        cleanup=cleanup,
        partitions=partitions,
        tasks=tasks,
    )
