'''

'''
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .ledger import CalculatedDebt
from .student import DebtRead

# --- 1. API Input Models (for POST/PUT) ---

class ClassSessionCreate(BaseModel):
    """
    Validates the request body for creating a class session.
    `debts` is the plan the client previewed; when present it must match
    the server calculation and only its rates are used.
    """
    student_ids: list[UUID] = []
    teacher_id: UUID
    teacher_hour_rate_id: UUID
    date: datetime
    hours: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    debts: Optional[list[CalculatedDebt]] = None

class ClassSessionUpdate(BaseModel):
    """
    Validates the request body for updating a class session.
    `old_student_ids` and `old_hours` are the state the client edited from;
    when present they must still match the stored session.
    """
    student_ids: list[UUID] = []
    teacher_id: UUID
    teacher_hour_rate_id: UUID
    date: datetime
    hours: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    old_student_ids: Optional[list[UUID]] = None
    old_hours: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
    debts: Optional[list[CalculatedDebt]] = None

class ClassSessionAddStudent(BaseModel):
    student_id: UUID


# --- 2. API Output Models (for GET) ---

class ClassSessionRead(BaseModel):
    id: UUID
    date: datetime
    hours: Decimal
    teacher_id: Optional[UUID] = None
    teacher_hour_rate_id: UUID
    teacher_payment_id: Optional[UUID] = None
    is_active: bool
    student_ids: list[UUID]
    debts: list[DebtRead]
