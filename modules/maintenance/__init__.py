"""
Storage maintenance: partition retention, row cleanup and batch reconciliation.
"""

from modules.maintenance.partitions import (
    PARTITIONED_TABLES,
    IPartitionBackend,
    PostgresPartitionBackend,
    InMemoryPartitionBackend,
    PartitionMaintenanceScheduler,
    PartitionMaintenanceResult,
    partition_name,
)
from modules.maintenance.cleanup import DocumentCleanupScheduler
from modules.maintenance.periodic import PeriodicTask

__all__ = [
    "PARTITIONED_TABLES",
    "IPartitionBackend",
    "PostgresPartitionBackend",
    "InMemoryPartitionBackend",
    "PartitionMaintenanceScheduler",
    "PartitionMaintenanceResult",
    "partition_name",
    "DocumentCleanupScheduler",
    "PeriodicTask",
]
