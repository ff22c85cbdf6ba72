'''

'''
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..database.db_enums import DebtStatus

# --- 1. API Input Models ---

class DebtorsRequest(BaseModel):
    """
    Validates the request body for finding which students cannot cover a class.
    """
    student_ids: list[UUID]
    hours: Decimal = Field(gt=0, max_digits=10, decimal_places=2)


# --- 2. API Output Models ---

class DebtRead(BaseModel):
    """
    A single debt row, with its lifecycle status derived from the payment
    link and the restored flag.
    """
    id: UUID
    student_id: UUID
    class_session_id: UUID
    hours: Decimal
    rate: Decimal
    payment_id: Optional[UUID] = None
    restored: bool = False

    @computed_field
    @property
    def status(self) -> DebtStatus:
        if self.payment_id is None:
            return DebtStatus.UNPAID
        if self.restored:
            return DebtStatus.RESTORED
        return DebtStatus.PAID

    @computed_field
    @property
    def amount(self) -> Decimal:
        return self.hours * self.rate

    model_config = ConfigDict(from_attributes=True)

class DebtTotals(BaseModel):
    hours: Decimal = Decimal('0')
    amount: Decimal = Decimal('0')

class StudentSummaryRead(BaseModel):
    """The student's balance together with what they still owe."""
    id: UUID
    first_name: str
    last_name: str
    hour_balance: Decimal
    is_active: bool
    debts: DebtTotals

class DebtorRead(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    hour_balance: Decimal

    model_config = ConfigDict(from_attributes=True)
