"""
Partition maintenance for the time-partitioned generation tables.

Retention is enforced by dropping whole monthly partitions instead of
deleting rows. Each run makes sure the current month and the next
future_months months exist, and drops every partition whose month is
older than retention_months. Runs are idempotent and safe to overlap.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Sequence, Set, AsyncContextManager
from dataclasses import dataclass, field
from datetime import date
import re

from dateutil.relativedelta import relativedelta
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.connection import get_session
from shared.utils.logger import log_error, setup_logger

logger = setup_logger(__name__)

PARTITIONED_TABLES = ("documents", "generation_requests", "generation_items")

IDENTIFIER_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")


def month_start(day: date) -> date:
    return day.replace(day=1)


def partition_name(table: str, month: date) -> str:
    """{table}_{yyyy_MM}"""
    return f"{table}_{month.year:04d}_{month.month:02d}"


def is_partition_of(table: str, name: str) -> bool:
    return re.fullmatch(rf"{re.escape(table)}_\d{{4}}_\d{{2}}", name) is not None


def _check_identifier(name: str) -> str:
    if not IDENTIFIER_PATTERN.match(name):
        raise ValueError(f"Invalid table identifier: {name!r}")
    return name


# ==============================================================================
# BACKENDS
# ==============================================================================

class IPartitionBackend(ABC):
    """DDL operations partition maintenance needs."""

    @abstractmethod
    async def list_partitions(self, table: str) -> List[str]:
        """Names of the existing monthly partitions of a table."""
        pass

    @abstractmethod
    async def create_partition(self, table: str, name: str, start: date, end: date) -> bool:
        """
        Create a partition covering [start, end).

        Returns:
            False if it already existed
        """
        pass

    @abstractmethod
    async def drop_partition(self, name: str) -> bool:
        """
        Drop a partition.

        Returns:
            False if it no longer existed
        """
        pass


class PostgresPartitionBackend(IPartitionBackend):
    """Declarative range partitions in PostgreSQL."""

    def __init__(self, session_factory: Callable[[], AsyncContextManager[AsyncSession]] = get_session):
        self._session = session_factory

    async def _exists(self, session: AsyncSession, name: str) -> bool:
        result = await session.execute(
            text(
                "SELECT EXISTS (SELECT 1 FROM pg_tables "
                "WHERE schemaname = current_schema() AND tablename = :name)"
            ),
            {"name": name},
        )
        return bool(result.scalar())

    async def list_partitions(self, table: str) -> List[str]:
        async with self._session() as session:
            result = await session.execute(
                text(
                    "SELECT tablename FROM pg_tables "
                    "WHERE schemaname = current_schema() AND tablename LIKE :pattern "
                    "ORDER BY tablename"
                ),
                {"pattern": f"{table}\\_%"},
            )
            return [name for name in result.scalars().all() if is_partition_of(table, name)]

    async def create_partition(self, table: str, name: str, start: date, end: date) -> bool:
        _check_identifier(table)
        _check_identifier(name)
        async with self._session() as session:
            if await self._exists(session, name):
                return False
            # DDL takes no bind parameters
            await session.execute(
                text(
                    f"CREATE TABLE IF NOT EXISTS {name} PARTITION OF {table} "
                    f"FOR VALUES FROM ('{start.isoformat()}') TO ('{end.isoformat()}')"
                )
            )
            return True

    async def drop_partition(self, name: str) -> bool:
        _check_identifier(name)
        async with self._session() as session:
            if not await self._exists(session, name):
                return False
            await session.execute(text(f"DROP TABLE IF EXISTS {name}"))
            return True


class InMemoryPartitionBackend(IPartitionBackend):
    """Partition bookkeeping without a database, for tests and local runs."""

    def __init__(self, existing: Optional[Dict[str, Sequence[str]]] = None):
        self.partitions: Dict[str, Set[str]] = {t: set(names) for t, names in (existing or {}).items()}
        self.bounds: Dict[str, tuple] = {}
        self.create_calls: List[str] = []
        self.drop_calls: List[str] = []

    async def list_partitions(self, table: str) -> List[str]:
        return sorted(n for n in self.partitions.get(table, set()) if is_partition_of(table, n))

    async def create_partition(self, table: str, name: str, start: date, end: date) -> bool:
        names = self.partitions.setdefault(table, set())
        if name in names:
            return False
        names.add(name)
        self.bounds[name] = (start, end)
        self.create_calls.append(name)
        return True

    async def drop_partition(self, name: str) -> bool:
        for names in self.partitions.values():
            if name in names:
                names.discard(name)
                self.bounds.pop(name, None)
                self.drop_calls.append(name)
                return True
        return False


# ==============================================================================
# SCHEDULER
# ==============================================================================

@dataclass
class PartitionMaintenanceResult:
    """What one maintenance run changed."""
    created: List[str] = field(default_factory=list)
    dropped: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.created or self.dropped)


class PartitionMaintenanceScheduler:
    """
    Creates upcoming monthly partitions and drops expired ones.

    A failure on one partition is logged and recorded; the run continues
    with the remaining partitions and tables.
    """

    def __init__(
        self,
        backend: IPartitionBackend,
        retention_months: int = 3,
        future_months: int = 6,
        tables: Sequence[str] = PARTITIONED_TABLES,
    ):
        if retention_months < 0 or future_months < 0:
            raise ValueError("retention_months and future_months must not be negative")
        self.backend = backend
        self.retention_months = retention_months
        self.future_months = future_months
        self.tables = tuple(tables)

    @classmethod
    def from_settings(cls, settings, backend: IPartitionBackend) -> "PartitionMaintenanceScheduler":
        return cls(
            backend,
            retention_months=settings.PARTITIONS_RETENTION_MONTHS,
            future_months=settings.PARTITIONS_FUTURE_MONTHS,
        )

    async def run(self, today: Optional[date] = None) -> PartitionMaintenanceResult:
        """
        Run maintenance for every table.

        Args:
            today: Reference day (defaults to today)
        """
        current = month_start(today or date.today())
        logger.info(
            f"Starting partition maintenance (retention: {self.retention_months} months, "
            f"future: {self.future_months} months)"
        )

        result = PartitionMaintenanceResult()
        for table in self.tables:
            await self._create_upcoming(table, current, result)
            await self._drop_expired(table, current, result)

        logger.info(
            f"Partition maintenance completed: {len(result.created)} created, "
            f"{len(result.dropped)} dropped, {len(result.errors)} errors"
        )
        return result

    async def _create_upcoming(self, table: str, current: date, result: PartitionMaintenanceResult) -> None:
        created = 0
        for offset in range(self.future_months + 1):
            month = current + relativedelta(months=offset)
            name = partition_name(table, month)
            try:
                if await self.backend.create_partition(table, name, month, month + relativedelta(months=1)):
                    created += 1
                    result.created.append(name)
                    logger.info(f"Created partition: {name}")
            except Exception as e:
                log_error(logger, e, f"Failed to create partition {name}")
                result.errors.append(f"{name}: {e}")

        if not created:
            logger.debug(f"No new partitions needed for table {table}")

    async def _drop_expired(self, table: str, current: date, result: PartitionMaintenanceResult) -> None:
        cutoff = partition_name(table, current - relativedelta(months=self.retention_months))
        try:
            existing = await self.backend.list_partitions(table)
        except Exception as e:
            log_error(logger, e, f"Failed to list partitions of {table}")
            result.errors.append(f"{table}: {e}")
            return

        # Zero-padded names sort chronologically
        for name in sorted(n for n in existing if n < cutoff):
            try:
                if await self.backend.drop_partition(name):
                    result.dropped.append(name)
                    logger.info(f"Dropped old partition: {name} (older than {self.retention_months} months)")
            except Exception as e:
                log_error(logger, e, f"Failed to drop partition {name}")
                result.errors.append(f"{name}: {e}")
