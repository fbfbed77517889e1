"""Account Routes — balance read and row-locked adjustment.

Invariants:
    - Adjustments go through LedgerMutator.apply_safe only

Design Decisions:
    - Accounts are provisioned externally: no create/delete endpoints
"""

import logging

from fastapi import APIRouter, Depends

from app.api.dependencies import get_ledger_mutator
from app.core.domain_types import OwnerId
from app.schemas.ledger import (
    AccountBalanceResponse, AdjustBalanceRequest, BalanceResultResponse,
)
from app.services.ledger_mutator import LedgerMutator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/accounts", tags=["accounts"])


@router.get("/{owner_id}", response_model=AccountBalanceResponse)
async def get_account(
    owner_id: int,
    ledger: LedgerMutator = Depends(get_ledger_mutator),
):
    balance = await ledger.get_balance(OwnerId(owner_id))
    return AccountBalanceResponse(owner_id=owner_id, balance=balance)


@router.post("/{owner_id}/adjust", response_model=BalanceResultResponse)
async def adjust_balance(
    owner_id: int,
    body: AdjustBalanceRequest,
    ledger: LedgerMutator = Depends(get_ledger_mutator),
):
    """Apply a signed delta under a row lock."""
    result = await ledger.apply_safe(OwnerId(owner_id), body.delta)
    return BalanceResultResponse(
        owner_id=result.owner_id,
        previous_balance=result.previous_balance,
        amount=result.amount,
        new_balance=result.new_balance,
        method=result.method.value,
    )
