'''

'''
from typing import Annotated
from uuid import UUID
from decimal import Decimal

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..database.engine import get_db_session
from ..database import models as db_models
from ..models import student as student_models
from ..common.logger import log


class StudentService:
    """
    Read-side of the student ledger: balances, debt totals and debtors.
    """
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    async def _get_student_internal(self, student_id: UUID) -> db_models.Students:
        stmt = select(db_models.Students).options(
            selectinload(db_models.Students.debts)
        ).filter(db_models.Students.id == student_id).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        student = result.scalars().first()
        if not student:
            log.warning(f"Tried to fetch non-existent student id: {student_id}")
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found.")
        return student

    async def get_student_summary(self, student_id: UUID) -> student_models.StudentSummaryRead:
        """
        Returns the student's hour balance and the totals of their unpaid
        debts (hours, and hours times rate).
        """
        log.info(f"Fetching ledger summary for student {student_id}.")
        student = await self._get_student_internal(student_id)

        unpaid = [debt for debt in student.debts if debt.payment_id is None]
        totals = student_models.DebtTotals(
            hours=sum((debt.hours for debt in unpaid), Decimal('0')),
            amount=sum((debt.hours * debt.rate for debt in unpaid), Decimal('0'))
        )
        return student_models.StudentSummaryRead(
            id=student.id,
            first_name=student.first_name,
            last_name=student.last_name,
            hour_balance=student.hour_balance,
            is_active=student.is_active,
            debts=totals
        )

    async def get_student_debts(self, student_id: UUID) -> list[student_models.DebtRead]:
        """Returns every debt row of the student, oldest first."""
        await self._get_student_internal(student_id)
        stmt = select(db_models.StudentDebts).filter(
            db_models.StudentDebts.student_id == student_id
        ).order_by(db_models.StudentDebts.created_at)
        result = await self.db.execute(stmt)
        return [student_models.DebtRead.model_validate(debt) for debt in result.scalars().all()]

    async def get_debtor_students(self, data: student_models.DebtorsRequest) -> list[student_models.DebtorRead]:
        """
        Returns the students, among the given ones, whose balance cannot
        cover a class of the given length.
        """
        log.info(f"Looking for debtors among {len(data.student_ids)} students for {data.hours}h.")
        if not data.student_ids:
            return []
        stmt = select(db_models.Students).filter(
            db_models.Students.id.in_(data.student_ids),
            db_models.Students.hour_balance < data.hours
        ).order_by(db_models.Students.last_name, db_models.Students.first_name)
        result = await self.db.execute(stmt)
        return [student_models.DebtorRead.model_validate(student) for student in result.scalars().all()]
