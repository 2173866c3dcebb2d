"""
Tests for monthly partition maintenance.
"""

from datetime import date

import pytest

from modules.maintenance import (
    InMemoryPartitionBackend,
    PartitionMaintenanceScheduler,
    partition_name,
)
from modules.maintenance.partitions import is_partition_of

TODAY = date(2026, 10, 19)


def test_partition_name():
    assert partition_name("documents", date(2027, 1, 1)) == "documents_2027_01"
    assert is_partition_of("documents", "documents_2027_01")
    assert not is_partition_of("documents", "documents_default")
    assert not is_partition_of("generation_items", "generation_items_2026_1")


@pytest.mark.asyncio
async def test_creates_current_and_future_months():
    backend = InMemoryPartitionBackend()
    scheduler = PartitionMaintenanceScheduler(backend, retention_months=3, future_months=2, tables=["documents"])

    result = await scheduler.run(TODAY)

    assert result.created == ["documents_2026_10", "documents_2026_11", "documents_2026_12"]
    assert backend.bounds["documents_2026_12"] == (date(2026, 12, 1), date(2027, 1, 1))
    assert result.errors == []


@pytest.mark.asyncio
async def test_second_run_is_a_noop():
    backend = InMemoryPartitionBackend()
    scheduler = PartitionMaintenanceScheduler(backend)

    first = await scheduler.run(TODAY)
    second = await scheduler.run(TODAY)

    assert len(first.created) == 3 * 7
    assert second.created == []
    assert second.dropped == []
    assert not second.changed


@pytest.mark.asyncio
async def test_drops_partitions_older_than_retention():
    backend = InMemoryPartitionBackend({
        "generation_requests": [
            "generation_requests_2025_12",
            "generation_requests_2026_06",
            "generation_requests_2026_07",
            "generation_requests_2026_08",
            "generation_requests_default",
        ],
    })
    scheduler = PartitionMaintenanceScheduler(backend, retention_months=3, future_months=0, tables=["generation_requests"])

    result = await scheduler.run(TODAY)

    assert result.dropped == ["generation_requests_2025_12", "generation_requests_2026_06"]
    assert "generation_requests_2026_07" in backend.partitions["generation_requests"]
    assert "generation_requests_default" in backend.partitions["generation_requests"]


class FlakyBackend(InMemoryPartitionBackend):
    """Fails on chosen partition names."""

    def __init__(self, failing, existing=None):
        super().__init__(existing)
        self.failing = set(failing)

    async def create_partition(self, table, name, start, end):
        if name in self.failing:
            raise RuntimeError("permission denied")
        return await super().create_partition(table, name, start, end)

    async def drop_partition(self, name):
        if name in self.failing:
            raise RuntimeError("lock timeout")
        return await super().drop_partition(name)


@pytest.mark.asyncio
async def test_one_failure_does_not_stop_the_run():
    backend = FlakyBackend(
        failing=["documents_2026_11", "documents_2026_01"],
        existing={"documents": ["documents_2026_01", "documents_2026_02"]},
    )
    scheduler = PartitionMaintenanceScheduler(backend, retention_months=3, future_months=2)

    result = await scheduler.run(TODAY)

    assert "documents_2026_12" in result.created
    assert "documents_2026_11" not in result.created
    assert result.dropped == ["documents_2026_02"]
    assert len(result.errors) == 2
    assert any("permission denied" in e for e in result.errors)
    assert len([n for n in result.created if n.startswith("generation_items_")]) == 3


def test_negative_windows_are_rejected():
    with pytest.raises(ValueError):
        PartitionMaintenanceScheduler(InMemoryPartitionBackend(), retention_months=-1)
