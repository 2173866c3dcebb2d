"""
API response models.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone


class ErrorResponse(BaseModel):
    """
    Standard error response.
    """

    error: str = Field(..., description="Error code")
    message: str = Field(..., description="Human-readable error message")
    errors: List[str] = Field(default_factory=list, description="Individual validation errors")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "validation_failed",
                "message": "Generation request rejected",
                "errors": ["Item 1: exactly one of versionId or environmentId must be set"],
                "timestamp": "2026-01-20T10:30:00Z",
            }
        }
    )


class SubmissionResponse(BaseModel):
    """Accepted generation submission."""

    request_ids: List[str] = Field(..., description="Created generation requests")
    batch_id: Optional[str] = Field(default=None, description="Batch grouping the requests, when split")
    total_count: int = Field(..., description="Number of documents to generate")
    status: str = Field(default="PENDING")


class CancelResponse(BaseModel):
    """Cancellation outcome."""

    request_id: str
    cancelled: bool = Field(..., description="False when the job had already finished")


class JobListResponse(BaseModel):
    """Page of generation jobs."""

    jobs: List[Dict[str, Any]]
    limit: int
    offset: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    instance_id: str
    polling: bool
    in_flight_jobs: int
