"""
PostgreSQL generation store.

Claims use SELECT ... FOR UPDATE SKIP LOCKED inside the claiming UPDATE,
so concurrent workers never block on, or double-claim, the same row.
Completion and cancellation both lock the request row before touching
items, and both are conditional on the current status; the rows-affected
count decides who won a race.
"""

from typing import Any, Callable, Dict, List, Optional, AsyncContextManager
from datetime import datetime, timedelta
import uuid

from sqlalchemy import select, update, insert, delete, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from modules.generation.core.interfaces import (
    GenerationRequest,
    GenerationItem,
    GenerationBatch,
    Document,
    RequestStatus,
    ItemStatus,
    JobKind,
    CANCELLED_ITEM_MESSAGE,
    truncate_error,
)
from modules.generation.storage.job_storage import IGenerationStore, utcnow
from src.database.connection import get_session
from src.database.models.generation import (
    GenerationBatchRecord,
    GenerationRequestRecord,
    GenerationItemRecord,
    DocumentRecord,
)
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

requests_table = GenerationRequestRecord.__table__
items_table = GenerationItemRecord.__table__
documents_table = DocumentRecord.__table__
batches_table = GenerationBatchRecord.__table__

OPEN_STATUSES = (RequestStatus.PENDING.value, RequestStatus.IN_PROGRESS.value)
OPEN_ITEM_STATUSES = (ItemStatus.PENDING.value, ItemStatus.IN_PROGRESS.value)
TERMINAL_STATUSES = (RequestStatus.COMPLETED.value, RequestStatus.FAILED.value, RequestStatus.CANCELLED.value)


# ==============================================================================
# ROW DECODING
# ==============================================================================

def request_from_row(row: Any) -> GenerationRequest:
    m = row._mapping
    return GenerationRequest(
        id=m["id"],
        tenant_id=m["tenant_id"],
        job_kind=JobKind(m["job_kind"]),
        status=RequestStatus(m["status"]),
        total_count=m["total_count"],
        completed_count=m["completed_count"],
        failed_count=m["failed_count"],
        claimed_by=m["claimed_by"],
        claimed_at=m["claimed_at"],
        batch_id=m["batch_id"],
        correlation_id=m["correlation_id"],
        error_message=m["error_message"],
        created_at=m["created_at"],
        started_at=m["started_at"],
        completed_at=m["completed_at"],
        expires_at=m["expires_at"],
    )


def item_from_row(row: Any) -> GenerationItem:
    m = row._mapping
    return GenerationItem(
        id=m["id"],
        request_id=m["request_id"],
        template_id=m["template_id"],
        data=m["data"] or {},
        variant_id=m["variant_id"],
        version_id=m["version_id"],
        environment_id=m["environment_id"],
        variant_attributes=m["variant_attributes"],
        filename=m["filename"],
        correlation_id=m["correlation_id"],
        status=ItemStatus(m["status"]),
        document_id=m["document_id"],
        error_message=m["error_message"],
        created_at=m["created_at"],
        started_at=m["started_at"],
        completed_at=m["completed_at"],
    )


def document_from_row(row: Any) -> Document:
    m = row._mapping
    return Document(
        id=m["id"],
        tenant_id=m["tenant_id"],
        filename=m["filename"],
        content=bytes(m["content"]),
        content_type=m["content_type"],
        template_id=m["template_id"],
        variant_id=m["variant_id"],
        version_id=m["version_id"],
        correlation_id=m["correlation_id"],
        created_at=m["created_at"],
    )


def batch_from_row(row: Any) -> GenerationBatch:
    m = row._mapping
    return GenerationBatch(
        id=m["id"],
        tenant_id=m["tenant_id"],
        total_count=m["total_count"],
        completed_count=m["completed_count"],
        failed_count=m["failed_count"],
        created_at=m["created_at"],
        completed_at=m["completed_at"],
    )


# ==============================================================================
# STORE
# ==============================================================================

class PostgresGenerationStore(IGenerationStore):
    """
    Generation store backed by the partitioned PostgreSQL tables.

    Each public method runs in its own transaction.
    """

    def __init__(self, session_factory: Callable[[], AsyncContextManager[AsyncSession]] = get_session):
        self._session = session_factory

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_requests(
        self,
        requests: List[GenerationRequest],
        batch: Optional[GenerationBatch] = None,
    ) -> None:
        async with self._session() as session:
            if batch is not None:
                await session.execute(
                    insert(batches_table).values(
                        id=batch.id,
                        tenant_id=batch.tenant_id,
                        total_count=batch.total_count,
                        completed_count=0,
                        failed_count=0,
                    )
                )

            for request in requests:
                await session.execute(
                    insert(requests_table).values(
                        id=request.id,
                        tenant_id=request.tenant_id,
                        job_kind=request.job_kind.value,
                        status=RequestStatus.PENDING.value,
                        total_count=len(request.items),
                        completed_count=0,
                        failed_count=0,
                        batch_id=request.batch_id,
                        correlation_id=request.correlation_id,
                    )
                )
                if request.items:
                    await session.execute(
                        insert(items_table),
                        [self._item_values(item) for item in request.items],
                    )

        logger.info(
            f"Stored {len(requests)} generation request(s) "
            f"({sum(len(r.items) for r in requests)} items){' in batch ' + str(batch.id) if batch else ''}"
        )

    @staticmethod
    def _item_values(item: GenerationItem) -> Dict[str, Any]:
        values = {
            "id": item.id,
            "request_id": item.request_id,
            "template_id": item.template_id,
            "variant_id": item.variant_id,
            "version_id": item.version_id,
            "environment_id": item.environment_id,
            "variant_attributes": item.variant_attributes,
            "data": item.data,
            "filename": item.filename,
            "correlation_id": item.correlation_id,
            "status": ItemStatus.PENDING.value,
        }
        if item.created_at is not None:
            values["created_at"] = item.created_at
        return values

    # ------------------------------------------------------------------
    # Claiming
    # ------------------------------------------------------------------

    async def claim_pending_requests(self, instance_id: str, limit: int = 1) -> List[GenerationRequest]:
        candidates = (
            select(requests_table.c.id, requests_table.c.created_at)
            .where(requests_table.c.status == RequestStatus.PENDING.value)
            .order_by(requests_table.c.created_at)
            .limit(limit)
            .with_for_update(skip_locked=True)
            .cte("candidates")
        )
        stmt = (
            update(requests_table)
            .where(
                requests_table.c.id == candidates.c.id,
                requests_table.c.created_at == candidates.c.created_at,
            )
            .values(
                status=RequestStatus.IN_PROGRESS.value,
                claimed_by=instance_id,
                claimed_at=func.now(),
                started_at=func.now(),
            )
            .returning(*requests_table.c)
        )

        async with self._session() as session:
            result = await session.execute(stmt)
            claimed = [request_from_row(row) for row in result.all()]

        claimed.sort(key=lambda r: r.created_at)
        return claimed

    async def claim_next_item(self, request_id: uuid.UUID) -> Optional[GenerationItem]:
        candidate = (
            select(items_table.c.id, items_table.c.created_at)
            .where(
                items_table.c.request_id == request_id,
                items_table.c.status == ItemStatus.PENDING.value,
            )
            .order_by(items_table.c.created_at, items_table.c.id)
            .limit(1)
            .with_for_update(skip_locked=True)
            .cte("next_item")
        )
        stmt = (
            update(items_table)
            .where(
                items_table.c.id == candidate.c.id,
                items_table.c.created_at == candidate.c.created_at,
            )
            .values(status=ItemStatus.IN_PROGRESS.value, started_at=func.now())
            .returning(*items_table.c)
        )

        async with self._session() as session:
            row = (await session.execute(stmt)).first()
        return item_from_row(row) if row is not None else None

    # ------------------------------------------------------------------
    # Progress and terminal transitions
    # ------------------------------------------------------------------

    async def _count_item_outcome(
        self,
        session: AsyncSession,
        request_id: uuid.UUID,
        item_id: uuid.UUID,
        counter: str,
        item_values: Dict[str, Any],
    ) -> bool:
        # Request row first: same lock order as cancellation
        counted = await session.execute(
            update(requests_table)
            .where(
                requests_table.c.id == request_id,
                requests_table.c.status == RequestStatus.IN_PROGRESS.value,
            )
            .values({counter: requests_table.c[counter] + 1})
        )
        if counted.rowcount == 0:
            return False

        updated = await session.execute(
            update(items_table)
            .where(
                items_table.c.id == item_id,
                items_table.c.request_id == request_id,
                items_table.c.status == ItemStatus.IN_PROGRESS.value,
            )
            .values(completed_at=func.now(), **item_values)
        )
        return updated.rowcount > 0

    async def complete_item(self, request_id: uuid.UUID, item_id: uuid.UUID, document: Document) -> bool:
        async with self._session() as session:
            applied = await self._count_item_outcome(
                session,
                request_id,
                item_id,
                "completed_count",
                {"status": ItemStatus.COMPLETED.value, "document_id": document.id},
            )
            if not applied:
                await session.rollback()
                return False

            await session.execute(
                insert(documents_table).values(
                    id=document.id,
                    tenant_id=document.tenant_id,
                    filename=document.filename,
                    content_type=document.content_type,
                    size_bytes=document.size_bytes,
                    content=document.content,
                    template_id=document.template_id,
                    variant_id=document.variant_id,
                    version_id=document.version_id,
                    correlation_id=document.correlation_id,
                )
            )
            return True

    async def fail_item(self, request_id: uuid.UUID, item_id: uuid.UUID, error_message: str) -> bool:
        async with self._session() as session:
            applied = await self._count_item_outcome(
                session,
                request_id,
                item_id,
                "failed_count",
                {"status": ItemStatus.FAILED.value, "error_message": truncate_error(error_message)},
            )
            if not applied:
                await session.rollback()
            return applied

    async def finalize_request(self, request_id: uuid.UUID, retention_days: int) -> bool:
        now = utcnow()
        async with self._session() as session:
            result = await session.execute(
                update(requests_table)
                .where(
                    requests_table.c.id == request_id,
                    requests_table.c.status == RequestStatus.IN_PROGRESS.value,
                )
                .values(
                    status=RequestStatus.COMPLETED.value,
                    completed_at=now,
                    expires_at=now + timedelta(days=retention_days),
                )
            )
            return result.rowcount > 0

    async def mark_request_failed(self, request_id: uuid.UUID, error_message: str, retention_days: int) -> bool:
        now = utcnow()
        async with self._session() as session:
            result = await session.execute(
                update(requests_table)
                .where(
                    requests_table.c.id == request_id,
                    requests_table.c.status.in_(OPEN_STATUSES),
                )
                .values(
                    status=RequestStatus.FAILED.value,
                    error_message=truncate_error(error_message),
                    completed_at=now,
                    expires_at=now + timedelta(days=retention_days),
                )
            )
            return result.rowcount > 0

    async def cancel_request(self, tenant_id: str, request_id: uuid.UUID, retention_days: int) -> bool:
        now = utcnow()
        async with self._session() as session:
            cancelled = await session.execute(
                update(requests_table)
                .where(
                    requests_table.c.id == request_id,
                    requests_table.c.tenant_id == tenant_id,
                    requests_table.c.status.in_(OPEN_STATUSES),
                )
                .values(
                    status=RequestStatus.CANCELLED.value,
                    completed_at=now,
                    expires_at=now + timedelta(days=retention_days),
                )
            )
            if cancelled.rowcount == 0:
                return False

            flipped = await session.execute(
                update(items_table)
                .where(
                    items_table.c.request_id == request_id,
                    items_table.c.status.in_(OPEN_ITEM_STATUSES),
                )
                .values(
                    status=ItemStatus.FAILED.value,
                    error_message=CANCELLED_ITEM_MESSAGE,
                    completed_at=now,
                )
            )
            if flipped.rowcount:
                await session.execute(
                    update(requests_table)
                    .where(requests_table.c.id == request_id)
                    .values(failed_count=requests_table.c.failed_count + flipped.rowcount)
                )
            return True

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    async def _refresh_batch(self, session: AsyncSession, batch_id: uuid.UUID) -> Optional[GenerationBatch]:
        totals = (
            await session.execute(
                select(
                    func.coalesce(func.sum(requests_table.c.completed_count), 0),
                    func.coalesce(func.sum(requests_table.c.failed_count), 0),
                    func.count().filter(requests_table.c.status.in_(OPEN_STATUSES)),
                    func.count(),
                ).where(requests_table.c.batch_id == batch_id)
            )
        ).one()
        completed, failed, open_count, member_count = totals

        values: Dict[str, Any] = {"completed_count": completed, "failed_count": failed}
        result = await session.execute(
            update(batches_table)
            .where(batches_table.c.id == batch_id)
            .values(**values)
            .returning(*batches_table.c)
        )
        row = result.first()
        if row is None:
            return None

        if open_count == 0 and member_count > 0:
            # completed_at is written once; later refreshes only update counts
            stamped = await session.execute(
                update(batches_table)
                .where(batches_table.c.id == batch_id, batches_table.c.completed_at.is_(None))
                .values(completed_at=func.now())
                .returning(*batches_table.c)
            )
            stamped_row = stamped.first()
            if stamped_row is not None:
                logger.info(f"Batch {batch_id} completed: {completed} completed, {failed} failed")
                row = stamped_row

        return batch_from_row(row)

    async def refresh_batch(self, batch_id: uuid.UUID) -> Optional[GenerationBatch]:
        async with self._session() as session:
            return await self._refresh_batch(session, batch_id)

    async def reconcile_batches(self) -> int:
        async with self._session() as session:
            batch_ids = (
                await session.execute(
                    select(batches_table.c.id).where(batches_table.c.completed_at.is_(None))
                )
            ).scalars().all()
            for batch_id in batch_ids:
                await self._refresh_batch(session, batch_id)
        return len(batch_ids)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_request(
        self,
        tenant_id: str,
        request_id: uuid.UUID,
        include_items: bool = True,
    ) -> Optional[GenerationRequest]:
        async with self._session() as session:
            row = (
                await session.execute(
                    select(requests_table).where(
                        requests_table.c.id == request_id,
                        requests_table.c.tenant_id == tenant_id,
                    )
                )
            ).first()
            if row is None:
                return None

            request = request_from_row(row)
            if include_items:
                item_rows = (
                    await session.execute(
                        select(items_table)
                        .where(items_table.c.request_id == request_id)
                        .order_by(items_table.c.created_at, items_table.c.id)
                    )
                ).all()
                request.items = [item_from_row(r) for r in item_rows]
            return request

    async def list_requests(
        self,
        tenant_id: str,
        status: Optional[RequestStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[GenerationRequest]:
        stmt = select(requests_table).where(requests_table.c.tenant_id == tenant_id)
        if status is not None:
            stmt = stmt.where(requests_table.c.status == status.value)
        stmt = stmt.order_by(requests_table.c.created_at.desc()).limit(limit).offset(offset)

        async with self._session() as session:
            rows = (await session.execute(stmt)).all()
        return [request_from_row(r) for r in rows]

    async def get_batch(self, tenant_id: str, batch_id: uuid.UUID) -> Optional[GenerationBatch]:
        async with self._session() as session:
            row = (
                await session.execute(
                    select(batches_table).where(
                        batches_table.c.id == batch_id,
                        batches_table.c.tenant_id == tenant_id,
                    )
                )
            ).first()
        return batch_from_row(row) if row is not None else None

    async def get_document(self, tenant_id: str, document_id: uuid.UUID) -> Optional[Document]:
        async with self._session() as session:
            row = (
                await session.execute(
                    select(documents_table).where(
                        documents_table.c.id == document_id,
                        documents_table.c.tenant_id == tenant_id,
                    )
                )
            ).first()
        return document_from_row(row) if row is not None else None

    async def delete_document(self, tenant_id: str, document_id: uuid.UUID) -> bool:
        async with self._session() as session:
            result = await session.execute(
                delete(documents_table).where(
                    documents_table.c.id == document_id,
                    documents_table.c.tenant_id == tenant_id,
                )
            )
            return result.rowcount > 0

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    async def delete_expired_requests(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        expired = and_(
            requests_table.c.expires_at.is_not(None),
            requests_table.c.expires_at < now,
            requests_table.c.status.in_(TERMINAL_STATUSES),
        )
        async with self._session() as session:
            await session.execute(
                delete(items_table).where(
                    items_table.c.request_id.in_(select(requests_table.c.id).where(expired))
                )
            )
            result = await session.execute(delete(requests_table).where(expired))
            return result.rowcount

    async def delete_documents_created_before(self, cutoff: datetime) -> int:
        async with self._session() as session:
            result = await session.execute(delete(documents_table).where(documents_table.c.created_at < cutoff))
            return result.rowcount
