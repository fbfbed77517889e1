"""Document Schemas — request/response models for sequential document endpoints.

Invariants:
    - DocumentCreate.data must be a JSON object (payload is opaque to the service)
    - Responses expose the code, partition and sequence exactly as committed

Design Decisions:
    - from_attributes on responses: ORM Document objects validate directly
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class DocumentCreate(BaseModel):
    """Document creation — any JSON object."""
    data: dict[str, Any]


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    date_prefix: str
    sequence_number: int
    data: dict[str, Any]
    created_at: datetime


class DocumentListResponse(BaseModel):
    documents: list[DocumentResponse]
    pagination: dict[str, int]


class AllocatedCodeResponse(BaseModel):
    code: str
    sequence: int


class SequenceReportResponse(BaseModel):
    """Outcome of a concurrent allocation run."""
    message: str
    count: int
    failed_calls: int
    is_contiguous: bool
    documents: list[AllocatedCodeResponse]
