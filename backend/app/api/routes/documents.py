"""Document Routes — create, list, fetch, and the concurrent allocation run.

Invariants:
    - Every document is created through SequenceAllocator.allocate (single entry point)
    - Routes never contain locking or numbering logic

Design Decisions:
    - race-condition run is POST: it commits real documents
    - count upper bound enforced by the harness (settings-driven), surfaced as 400
"""

import logging

from fastapi import APIRouter, Depends, Query, status

from app.api.dependencies import get_race_harness, get_sequence_allocator
from app.schemas.documents import (
    AllocatedCodeResponse, DocumentCreate, DocumentListResponse,
    DocumentResponse, SequenceReportResponse,
)
from app.services.race_harness import RaceHarness
from app.services.sequence_allocator import SequenceAllocator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/documents", tags=["documents"])


@router.post(
    "", response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_document(
    body: DocumentCreate,
    allocator: SequenceAllocator = Depends(get_sequence_allocator),
):
    """Create a document with the next code of today's partition."""
    document = await allocator.allocate(body.data)
    return DocumentResponse.model_validate(document)


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    allocator: SequenceAllocator = Depends(get_sequence_allocator),
):
    """List documents, newest first."""
    documents = await allocator.list_documents(limit=limit, offset=offset)
    return DocumentListResponse(
        documents=[DocumentResponse.model_validate(d) for d in documents],
        pagination={"limit": limit, "offset": offset},
    )


@router.post("/race-condition", response_model=SequenceReportResponse)
async def race_condition(
    count: int = Query(5, ge=1),
    harness: RaceHarness = Depends(get_race_harness),
):
    """Allocate `count` documents simultaneously and report their numbers."""
    report = await harness.prove_sequence_allocation(count)
    return SequenceReportResponse(
        message=f"Created {len(report.documents)} documents simultaneously",
        count=report.count,
        failed_calls=report.failed_calls,
        is_contiguous=report.is_contiguous,
        documents=[
            AllocatedCodeResponse(code=d.code, sequence=d.sequence)
            for d in report.documents
        ],
    )


@router.get("/{code}", response_model=DocumentResponse)
async def get_document(
    code: str,
    allocator: SequenceAllocator = Depends(get_sequence_allocator),
):
    """Fetch a document by its public code."""
    document = await allocator.get_by_code(code)
    return DocumentResponse.model_validate(document)
