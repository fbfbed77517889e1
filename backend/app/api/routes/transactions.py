"""Transaction Routes — two-account transfer.

Invariants:
    - Request validated (amount > 0, distinct owners) before the service is called
    - Response is the committed before/after of both accounts

Design Decisions:
    - Thin handler: lock ordering and atomicity live in LedgerMutator.transfer
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends

from app.api.dependencies import get_ledger_mutator
from app.core.domain_types import OwnerId
from app.schemas.ledger import TransferRequest, TransferResultResponse
from app.services.ledger_mutator import LedgerMutator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/transactions", tags=["transactions"])


@router.post("/transfer", response_model=TransferResultResponse)
async def transfer(
    body: TransferRequest,
    ledger: LedgerMutator = Depends(get_ledger_mutator),
):
    """Move money between two accounts atomically."""
    result = await ledger.transfer(
        OwnerId(body.from_owner_id), OwnerId(body.to_owner_id), body.amount,
    )
    return TransferResultResponse(**asdict(result))
