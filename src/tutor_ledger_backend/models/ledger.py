'''
Ledger primitives: the planned debt and balance mutations produced by the
debt calculation engine and consumed by the reconciliation applier.
'''
from decimal import Decimal
from typing import Optional, Literal, Annotated, Union
from uuid import UUID

from pydantic import BaseModel, Field

from ..database.db_enums import DebtActionType, BalanceActionType

# --- 1. Debt Actions ---

class CreateDebt(BaseModel):
    """A new debt must be recorded for the student in this class session."""
    action: Literal[DebtActionType.CREATE.value] = DebtActionType.CREATE.value
    hours: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    rate: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)

class UpdateDebt(BaseModel):
    """An existing unpaid debt changes magnitude. A missing rate keeps the stored one."""
    action: Literal[DebtActionType.UPDATE.value] = DebtActionType.UPDATE.value
    id: UUID
    hours: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    rate: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)

class RemoveDebt(BaseModel):
    """An existing unpaid debt is no longer justified and is deleted."""
    action: Literal[DebtActionType.REMOVE.value] = DebtActionType.REMOVE.value
    id: UUID

class KeepDebt(BaseModel):
    """
    An existing paid debt is preserved. `restore` flags the row as restored,
    which happens when the attendance behind it is taken back.
    """
    action: Literal[DebtActionType.KEEP.value] = DebtActionType.KEEP.value
    id: UUID
    restore: bool = True

class NoDebt(BaseModel):
    action: Literal[DebtActionType.NONE.value] = DebtActionType.NONE.value

DebtAction = Annotated[
    Union[CreateDebt, UpdateDebt, RemoveDebt, KeepDebt, NoDebt],
    Field(discriminator='action')
]

# --- 2. Balance Actions ---

class IncrementBalance(BaseModel):
    action: Literal[BalanceActionType.INCREMENT.value] = BalanceActionType.INCREMENT.value
    amount: Decimal = Field(ge=0, max_digits=10, decimal_places=2)

class DecrementBalance(BaseModel):
    action: Literal[BalanceActionType.DECREMENT.value] = BalanceActionType.DECREMENT.value
    amount: Decimal = Field(ge=0, max_digits=10, decimal_places=2)

class SetBalance(BaseModel):
    action: Literal[BalanceActionType.SET.value] = BalanceActionType.SET.value
    amount: Decimal = Field(ge=0, max_digits=10, decimal_places=2)

class NoBalanceChange(BaseModel):
    action: Literal[BalanceActionType.NONE.value] = BalanceActionType.NONE.value

BalanceAction = Annotated[
    Union[IncrementBalance, DecrementBalance, SetBalance, NoBalanceChange],
    Field(discriminator='action')
]

# --- 3. Calculated Debt ---

class CalculatedDebt(BaseModel):
    """
    The planned outcome for one student: what happens to their debt record
    and what happens to their hour balance.
    """
    student_id: UUID
    student_full_name: str = ""
    debt: DebtAction = Field(default_factory=NoDebt)
    balance_action: BalanceAction = Field(default_factory=NoBalanceChange)

    def signature(self) -> tuple:
        """
        Identity of the planned mutation, ignoring presentation fields and
        the operator-chosen rate. Decimals compare by value, so 2.5 and 2.50
        give the same signature.
        """
        return (
            self.student_id,
            self.debt.action,
            getattr(self.debt, 'id', None),
            getattr(self.debt, 'hours', None),
            self.balance_action.action,
            getattr(self.balance_action, 'amount', None),
        )

class DebtCalculationRequest(BaseModel):
    """
    Validates the request body for previewing the debts a roster change produces.
    """
    student_ids: list[UUID]
    hours: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    class_session_id: Optional[UUID] = None
