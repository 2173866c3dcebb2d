"""
Generation API endpoints.

Submissions return 202 with the created request ids; documents are
produced asynchronously by the job poller.
"""

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse
from typing import Optional
import uuid

from modules.generation.core.interfaces import RequestStatus
from modules.generation.jobs.commands import GenerationCommands, Submission
from src.api.v1.models.requests import GenerateDocumentRequest, GenerateBatchRequest
from src.api.v1.models.responses import SubmissionResponse, CancelResponse, JobListResponse, ErrorResponse
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

router = APIRouter(
    prefix="/tenants/{tenant_id}/generation",
    tags=["generation"],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)


def get_commands(request: Request) -> GenerationCommands:
    """Dependency returning the commands of the process runtime."""
    return request.app.state.runtime.commands


def _submission_response(submission: Submission) -> SubmissionResponse:
    return SubmissionResponse(**submission.to_dict())


# ==============================================================================
# SUBMISSION
# ==============================================================================

@router.post("/documents", response_model=SubmissionResponse, status_code=status.HTTP_202_ACCEPTED)
async def generate_document(
    tenant_id: str,
    body: GenerateDocumentRequest,
    commands: GenerationCommands = Depends(get_commands),
):
    """Queue generation of a single document."""
    request = await commands.submit_document(tenant_id, body.to_input())
    return _submission_response(Submission(requests=[request]))


@router.post("/batches", response_model=SubmissionResponse, status_code=status.HTTP_202_ACCEPTED)
async def generate_batch(
    tenant_id: str,
    body: GenerateBatchRequest,
    commands: GenerationCommands = Depends(get_commands),
):
    """
    Queue a batch of documents.

    The whole batch is rejected when any item is invalid.
    """
    submission = await commands.submit_batch(
        tenant_id,
        [item.to_input() for item in body.items],
        chunk_size=body.chunk_size,
    )
    return _submission_response(submission)


# ==============================================================================
# JOBS
# ==============================================================================

@router.get("/jobs", response_model=JobListResponse)
async def list_jobs(
    tenant_id: str,
    job_status: Optional[RequestStatus] = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    commands: GenerationCommands = Depends(get_commands),
):
    jobs = await commands.list_jobs(tenant_id, status=job_status, limit=limit, offset=offset)
    return JobListResponse(jobs=[job.to_dict() for job in jobs], limit=limit, offset=offset)


@router.get("/jobs/{request_id}")
async def get_job(
    tenant_id: str,
    request_id: uuid.UUID,
    commands: GenerationCommands = Depends(get_commands),
):
    """Job status with per-item outcomes."""
    job = await commands.get_job(tenant_id, request_id)
    return job.to_dict(include_items=True)


@router.post("/jobs/{request_id}/cancel", response_model=CancelResponse)
async def cancel_job(
    tenant_id: str,
    request_id: uuid.UUID,
    commands: GenerationCommands = Depends(get_commands),
):
    cancelled = await commands.cancel(tenant_id, request_id)
    return CancelResponse(request_id=str(request_id), cancelled=cancelled)


@router.get("/batches/{batch_id}")
async def get_batch(
    tenant_id: str,
    batch_id: uuid.UUID,
    commands: GenerationCommands = Depends(get_commands),
):
    batch = await commands.get_batch(tenant_id, batch_id)
    return batch.to_dict()


# ==============================================================================
# DOCUMENTS
# ==============================================================================

@router.get("/documents/{document_id}", responses={200: {"content": {"application/pdf": {}}}})
async def download_document(
    tenant_id: str,
    document_id: uuid.UUID,
    commands: GenerationCommands = Depends(get_commands),
):
    """Download a generated document."""
    document = await commands.get_document(tenant_id, document_id)
    if document is None:
        return _not_found(f"Document {document_id} not found")

    return Response(
        content=document.content,
        media_type=document.content_type,
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )


@router.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    tenant_id: str,
    document_id: uuid.UUID,
    commands: GenerationCommands = Depends(get_commands),
):
    if not await commands.delete_document(tenant_id, document_id):
        return _not_found(f"Document {document_id} not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _not_found(message: str) -> Response:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=ErrorResponse(error="not_found", message=message).model_dump(mode="json"),
    )
