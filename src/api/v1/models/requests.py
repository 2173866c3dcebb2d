"""
API request models.

Pydantic models for validating incoming generation requests. Reference
rules (exactly one of version / environment, known templates, ...) are
checked by the generation commands so every problem is reported at once.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any

from modules.generation.jobs.commands import GenerationItemInput


class VariantSelection(BaseModel):
    """Attributes used to select a variant when no variant_id is given."""

    required: Dict[str, str] = Field(default_factory=dict, description="Attributes a variant must match")
    optional: Dict[str, str] = Field(default_factory=dict, description="Preferred attributes (scoring only)")


class GenerationItemRequest(BaseModel):
    """
    One document to generate.

    Set exactly one of version_id and environment_id.
    """

    template_id: str = Field(..., min_length=1, max_length=100, description="Template ID")
    variant_id: Optional[str] = Field(default=None, description="Variant ID (selected from variant_attributes when omitted)")
    version_id: Optional[int] = Field(default=None, ge=1, description="Explicit template version")
    environment_id: Optional[str] = Field(default=None, description="Environment whose active version is used")
    variant_attributes: Optional[VariantSelection] = Field(default=None, description="Variant selection attributes")
    data: Dict[str, Any] = Field(default_factory=dict, description="Input data for the template")
    filename: Optional[str] = Field(default=None, max_length=255, description="Output filename")
    correlation_id: Optional[str] = Field(default=None, max_length=255, description="Caller reference")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "template_id": "invoice",
                "environment_id": "production",
                "variant_attributes": {"required": {"language": "en"}},
                "data": {"customer": {"name": "Acme"}, "items": [{"name": "Widget", "price": 10}]},
                "filename": "invoice-0001.pdf",
                "correlation_id": "order-0001",
            }
        }
    )

    def to_input(self) -> GenerationItemInput:
        return GenerationItemInput(
            template_id=self.template_id,
            data=self.data,
            variant_id=self.variant_id,
            version_id=self.version_id,
            environment_id=self.environment_id,
            variant_attributes=self.variant_attributes.model_dump() if self.variant_attributes else None,
            filename=self.filename,
            correlation_id=self.correlation_id,
        )


class GenerateDocumentRequest(GenerationItemRequest):
    """Single document generation request."""
    pass


class GenerateBatchRequest(BaseModel):
    """Batch generation request."""

    items: List[GenerationItemRequest] = Field(default_factory=list, description="Documents to generate")
    chunk_size: Optional[int] = Field(
        default=None,
        ge=0,
        description="Items per request; the batch is split when smaller than the item count (0 = never split)",
    )
