"""Ledger Schemas — Pydantic models with field-level validation for balance endpoints.

Invariants:
    - Money fields are Decimal with at most 2 decimal places (matches NUMERIC(18, 2))
    - TransferRequest.amount > 0 and from_owner_id != to_owner_id, checked before any store call
    - Money serializes as a decimal string: JSON numbers would round through float

Design Decisions:
    - model_validator for the cross-field rule: Pydantic reports it as a 400 like any field error
"""

from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

class TransferRequest(BaseModel):
    from_owner_id: int = Field(ge=1)
    to_owner_id: int = Field(ge=1)
    amount: Decimal = Field(gt=0, max_digits=18, decimal_places=2)

    @model_validator(mode="after")
    def check_distinct_accounts(self) -> "TransferRequest":
        if self.from_owner_id == self.to_owner_id:
            raise ValueError("Cannot transfer to the same account")
        return self


class AdjustBalanceRequest(BaseModel):
    """Signed delta applied through the row-locked path."""
    delta: Decimal = Field(max_digits=18, decimal_places=2)


class AccountBalanceResponse(BaseModel):
    owner_id: int
    balance: Decimal


class BalanceResultResponse(BaseModel):
    owner_id: int
    previous_balance: Decimal
    amount: Decimal
    new_balance: Decimal
    method: str


class TransferResultResponse(BaseModel):
    from_owner_id: int
    to_owner_id: int
    amount: Decimal
    from_previous_balance: Decimal
    from_new_balance: Decimal
    to_previous_balance: Decimal
    to_new_balance: Decimal
