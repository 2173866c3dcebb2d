"""
Generation job storage abstraction.

Every state transition is a conditional update: a write only applies
when the row is still in the expected state, and the boolean result
tells the caller whether it won. The PostgreSQL store is the production
backend; the in-memory store follows the same contract for tests and
local runs.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, List, Tuple
from datetime import datetime, timedelta, timezone
import asyncio
import copy
import uuid

from modules.generation.core.interfaces import (
    GenerationRequest,
    GenerationItem,
    GenerationBatch,
    Document,
    RequestStatus,
    ItemStatus,
    CANCELLED_ITEM_MESSAGE,
    truncate_error,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IGenerationStore(ABC):
    """
    Abstract interface for generation request/item/document storage.

    Allows swapping storage backends without changing executor code.
    """

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_requests(
        self,
        requests: List[GenerationRequest],
        batch: Optional[GenerationBatch] = None,
    ) -> None:
        """
        Persist requests (with their items) and the optional batch atomically.

        Nothing is visible to pollers until the whole submission is stored.
        """
        pass

    # ------------------------------------------------------------------
    # Claiming
    # ------------------------------------------------------------------

    @abstractmethod
    async def claim_pending_requests(self, instance_id: str, limit: int = 1) -> List[GenerationRequest]:
        """
        Atomically claim up to `limit` of the oldest PENDING requests.

        Claimed requests move to IN_PROGRESS with claimed_by, claimed_at and
        started_at set. Rows locked by a concurrent claim are skipped.

        Returns:
            Claimed requests (without items); empty when nothing is claimable
        """
        pass

    @abstractmethod
    async def claim_next_item(self, request_id: uuid.UUID) -> Optional[GenerationItem]:
        """Atomically move the oldest PENDING item of a request to IN_PROGRESS and return it."""
        pass

    # ------------------------------------------------------------------
    # Progress and terminal transitions
    # ------------------------------------------------------------------

    @abstractmethod
    async def complete_item(self, request_id: uuid.UUID, item_id: uuid.UUID, document: Document) -> bool:
        """
        Store the document, link it to the item and count the success.

        Applies only while both the request and the item are IN_PROGRESS;
        otherwise nothing is written (the document is discarded).
        """
        pass

    @abstractmethod
    async def fail_item(self, request_id: uuid.UUID, item_id: uuid.UUID, error_message: str) -> bool:
        """Record an item failure and count it; same preconditions as complete_item."""
        pass

    @abstractmethod
    async def finalize_request(self, request_id: uuid.UUID, retention_days: int) -> bool:
        """IN_PROGRESS -> COMPLETED with completed_at and expires_at = now + retention."""
        pass

    @abstractmethod
    async def mark_request_failed(self, request_id: uuid.UUID, error_message: str, retention_days: int) -> bool:
        """PENDING/IN_PROGRESS -> FAILED with the captured error."""
        pass

    @abstractmethod
    async def cancel_request(self, tenant_id: str, request_id: uuid.UUID, retention_days: int) -> bool:
        """
        PENDING/IN_PROGRESS -> CANCELLED.

        Non-terminal items become FAILED with the cancellation message in the
        same transaction and are added to failed_count.

        Returns:
            False when the request is missing, owned by another tenant or
            already terminal
        """
        pass

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    @abstractmethod
    async def refresh_batch(self, batch_id: uuid.UUID) -> Optional[GenerationBatch]:
        """
        Recompute a batch's counts from its requests and stamp completed_at
        once no member request is PENDING or IN_PROGRESS. completed_at is
        written at most once.
        """
        pass

    @abstractmethod
    async def reconcile_batches(self) -> int:
        """Refresh every unfinished batch. Returns the number refreshed."""
        pass

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_request(
        self,
        tenant_id: str,
        request_id: uuid.UUID,
        include_items: bool = True,
    ) -> Optional[GenerationRequest]:
        pass

    @abstractmethod
    async def list_requests(
        self,
        tenant_id: str,
        status: Optional[RequestStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[GenerationRequest]:
        """Requests of a tenant, newest first."""
        pass

    @abstractmethod
    async def get_batch(self, tenant_id: str, batch_id: uuid.UUID) -> Optional[GenerationBatch]:
        pass

    @abstractmethod
    async def get_document(self, tenant_id: str, document_id: uuid.UUID) -> Optional[Document]:
        pass

    @abstractmethod
    async def delete_document(self, tenant_id: str, document_id: uuid.UUID) -> bool:
        pass

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    @abstractmethod
    async def delete_expired_requests(self, now: Optional[datetime] = None) -> int:
        """Delete terminal requests whose expires_at has passed, with their items."""
        pass

    @abstractmethod
    async def delete_documents_created_before(self, cutoff: datetime) -> int:
        """Delete documents older than the cutoff, whatever their request's state."""
        pass


class InMemoryGenerationStore(IGenerationStore):
    """
    In-memory generation store.

    One asyncio lock serializes every operation, which gives each method
    the atomicity of a single database transaction. Records handed out
    are copies.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._requests: Dict[uuid.UUID, GenerationRequest] = {}
        self._items: Dict[uuid.UUID, List[GenerationItem]] = {}
        self._batches: Dict[uuid.UUID, GenerationBatch] = {}
        self._documents: Dict[uuid.UUID, Document] = {}
        self._sequence = 0

    def _next_timestamp(self) -> datetime:
        # Strictly increasing so oldest-first ordering is stable within one test
        self._sequence += 1
        return utcnow() + timedelta(microseconds=self._sequence)

    def _find_item(self, request_id: uuid.UUID, item_id: uuid.UUID) -> Optional[GenerationItem]:
        for item in self._items.get(request_id, []):
            if item.id == item_id:
                return item
        return None

    def _request_copy(self, request: GenerationRequest, include_items: bool) -> GenerationRequest:
        result = copy.copy(request)
        result.items = copy.deepcopy(self._items.get(request.id, [])) if include_items else []
        return result

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_requests(
        self,
        requests: List[GenerationRequest],
        batch: Optional[GenerationBatch] = None,
    ) -> None:
        async with self._lock:
            if batch is not None:
                stored_batch = copy.deepcopy(batch)
                stored_batch.created_at = stored_batch.created_at or self._next_timestamp()
                self._batches[batch.id] = stored_batch

            for request in requests:
                stored = copy.deepcopy(request)
                stored.created_at = stored.created_at or self._next_timestamp()
                items = stored.items
                stored.items = []
                for item in items:
                    item.created_at = item.created_at or self._next_timestamp()
                stored.total_count = len(items)
                self._requests[stored.id] = stored
                self._items[stored.id] = items

    # ------------------------------------------------------------------
    # Claiming
    # ------------------------------------------------------------------

    async def claim_pending_requests(self, instance_id: str, limit: int = 1) -> List[GenerationRequest]:
        async with self._lock:
            pending = sorted(
                (r for r in self._requests.values() if r.status == RequestStatus.PENDING),
                key=lambda r: r.created_at,
            )[:limit]

            now = utcnow()
            claimed = []
            for request in pending:
                request.status = RequestStatus.IN_PROGRESS
                request.claimed_by = instance_id
                request.claimed_at = now
                request.started_at = now
                claimed.append(self._request_copy(request, include_items=False))
            return claimed

    async def claim_next_item(self, request_id: uuid.UUID) -> Optional[GenerationItem]:
        async with self._lock:
            pending = [i for i in self._items.get(request_id, []) if i.status == ItemStatus.PENDING]
            if not pending:
                return None
            item = min(pending, key=lambda i: i.created_at)
            item.status = ItemStatus.IN_PROGRESS
            item.started_at = utcnow()
            return copy.deepcopy(item)

    # ------------------------------------------------------------------
    # Progress and terminal transitions
    # ------------------------------------------------------------------

    def _claimable_pair(
        self,
        request_id: uuid.UUID,
        item_id: uuid.UUID,
    ) -> Tuple[Optional[GenerationRequest], Optional[GenerationItem]]:
        request = self._requests.get(request_id)
        item = self._find_item(request_id, item_id)
        if request is None or request.status != RequestStatus.IN_PROGRESS:
            return None, None
        if item is None or item.status != ItemStatus.IN_PROGRESS:
            return None, None
        return request, item

    async def complete_item(self, request_id: uuid.UUID, item_id: uuid.UUID, document: Document) -> bool:
        async with self._lock:
            request, item = self._claimable_pair(request_id, item_id)
            if request is None:
                return False

            stored = copy.copy(document)
            stored.created_at = stored.created_at or utcnow()
            self._documents[stored.id] = stored

            item.status = ItemStatus.COMPLETED
            item.document_id = stored.id
            item.completed_at = utcnow()
            request.completed_count += 1
            return True

    async def fail_item(self, request_id: uuid.UUID, item_id: uuid.UUID, error_message: str) -> bool:
        async with self._lock:
            request, item = self._claimable_pair(request_id, item_id)
            if request is None:
                return False

            item.status = ItemStatus.FAILED
            item.error_message = truncate_error(error_message)
            item.completed_at = utcnow()
            request.failed_count += 1
            return True

    async def finalize_request(self, request_id: uuid.UUID, retention_days: int) -> bool:
        async with self._lock:
            request = self._requests.get(request_id)
            if request is None or request.status != RequestStatus.IN_PROGRESS:
                return False
            now = utcnow()
            request.status = RequestStatus.COMPLETED
            request.completed_at = now
            request.expires_at = now + timedelta(days=retention_days)
            return True

    async def mark_request_failed(self, request_id: uuid.UUID, error_message: str, retention_days: int) -> bool:
        async with self._lock:
            request = self._requests.get(request_id)
            if request is None or not request.status.is_cancellable:
                return False
            now = utcnow()
            request.status = RequestStatus.FAILED
            request.error_message = truncate_error(error_message)
            request.completed_at = now
            request.expires_at = now + timedelta(days=retention_days)
            return True

    async def cancel_request(self, tenant_id: str, request_id: uuid.UUID, retention_days: int) -> bool:
        async with self._lock:
            request = self._requests.get(request_id)
            if request is None or request.tenant_id != tenant_id or not request.status.is_cancellable:
                return False

            now = utcnow()
            request.status = RequestStatus.CANCELLED
            request.completed_at = now
            request.expires_at = now + timedelta(days=retention_days)

            flipped = 0
            for item in self._items.get(request_id, []):
                if not item.status.is_terminal:
                    item.status = ItemStatus.FAILED
                    item.error_message = CANCELLED_ITEM_MESSAGE
                    item.completed_at = now
                    flipped += 1
            request.failed_count += flipped
            return True

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def _refresh_batch_locked(self, batch: GenerationBatch) -> GenerationBatch:
        members = [r for r in self._requests.values() if r.batch_id == batch.id]
        batch.completed_count = sum(r.completed_count for r in members)
        batch.failed_count = sum(r.failed_count for r in members)
        if batch.completed_at is None and members and all(r.status.is_terminal for r in members):
            batch.completed_at = utcnow()
        return copy.copy(batch)

    async def refresh_batch(self, batch_id: uuid.UUID) -> Optional[GenerationBatch]:
        async with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None:
                return None
            return self._refresh_batch_locked(batch)

    async def reconcile_batches(self) -> int:
        async with self._lock:
            unfinished = [b for b in self._batches.values() if b.completed_at is None]
            for batch in unfinished:
                self._refresh_batch_locked(batch)
            return len(unfinished)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_request(
        self,
        tenant_id: str,
        request_id: uuid.UUID,
        include_items: bool = True,
    ) -> Optional[GenerationRequest]:
        async with self._lock:
            request = self._requests.get(request_id)
            if request is None or request.tenant_id != tenant_id:
                return None
            return self._request_copy(request, include_items)

    async def list_requests(
        self,
        tenant_id: str,
        status: Optional[RequestStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[GenerationRequest]:
        async with self._lock:
            requests = [
                r for r in self._requests.values()
                if r.tenant_id == tenant_id and (status is None or r.status == status)
            ]
            requests.sort(key=lambda r: r.created_at, reverse=True)
            return [self._request_copy(r, include_items=False) for r in requests[offset:offset + limit]]

    async def get_batch(self, tenant_id: str, batch_id: uuid.UUID) -> Optional[GenerationBatch]:
        async with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None or batch.tenant_id != tenant_id:
                return None
            return copy.copy(batch)

    async def get_document(self, tenant_id: str, document_id: uuid.UUID) -> Optional[Document]:
        async with self._lock:
            document = self._documents.get(document_id)
            if document is None or document.tenant_id != tenant_id:
                return None
            return copy.copy(document)

    async def delete_document(self, tenant_id: str, document_id: uuid.UUID) -> bool:
        async with self._lock:
            document = self._documents.get(document_id)
            if document is None or document.tenant_id != tenant_id:
                return False
            del self._documents[document_id]
            return True

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    async def delete_expired_requests(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        async with self._lock:
            expired = [
                r.id for r in self._requests.values()
                if r.status.is_terminal and r.expires_at is not None and r.expires_at < now
            ]
            for request_id in expired:
                del self._requests[request_id]
                self._items.pop(request_id, None)
            return len(expired)

    async def delete_documents_created_before(self, cutoff: datetime) -> int:
        async with self._lock:
            old = [d.id for d in self._documents.values() if d.created_at is not None and d.created_at < cutoff]
            for document_id in old:
                del self._documents[document_id]
            return len(old)
