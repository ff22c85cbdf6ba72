'''

'''
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..database.db_enums import PaymentMethodType

# --- 1. API Input Models ---

class PaymentCreate(BaseModel):
    """
    Validates the request body for a prepaid hour purchase.
    """
    student_id: UUID
    date: datetime
    hours: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    value: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    payment_method: PaymentMethodType

class DebtPaymentCreate(BaseModel):
    """
    Validates the request body for settling every unpaid debt of a student.
    """
    student_id: UUID
    date: datetime
    payment_method: PaymentMethodType


# --- 2. API Output Models ---

class PaymentRead(BaseModel):
    id: UUID
    student_id: UUID
    date: datetime
    value: Decimal
    hours: Decimal
    payment_method: PaymentMethodType

    model_config = ConfigDict(from_attributes=True)
