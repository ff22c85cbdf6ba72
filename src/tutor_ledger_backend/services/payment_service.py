'''

'''
from typing import Annotated

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.engine import get_db_session
from ..database import models as db_models
from ..models import payment as payment_models
from ..common.logger import log


class PaymentService:
    """
    Student payments: prepaid hour purchases and debt settlement.
    """
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    async def _get_student_for_update(self, student_id) -> db_models.Students:
        stmt = select(db_models.Students).filter(
            db_models.Students.id == student_id
        ).with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        student = result.scalars().first()
        if not student:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found.")
        return student

    async def get_student_payments(self, student_id) -> list[payment_models.PaymentRead]:
        """
        Lists every payment of the student, newest first. Debt settlements
        and hour purchases are returned alike.
        """
        log.info(f"Fetching payments of student {student_id}.")
        try:
            student = await self.db.get(db_models.Students, student_id)
            if not student:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found.")

            stmt = select(db_models.Payments).filter(
                db_models.Payments.student_id == student_id
            ).order_by(db_models.Payments.date.desc())
            result = await self.db.execute(stmt)
            return [payment_models.PaymentRead.model_validate(payment) for payment in result.scalars().all()]

        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in get_student_payments for student {student_id}: {e}", exc_info=True)
            raise

    async def create_payment(self, data: payment_models.PaymentCreate) -> payment_models.PaymentRead:
        """
        Records a purchase of hours and credits them to the student's balance.
        """
        log.info(f"Recording payment of {data.hours}h for student {data.student_id}.")
        try:
            student = await self._get_student_for_update(data.student_id)

            new_payment = db_models.Payments(
                student_id=student.id,
                date=data.date,
                value=data.value,
                hours=data.hours,
                payment_method=data.payment_method.value
            )
            self.db.add(new_payment)
            student.hour_balance = student.hour_balance + data.hours
            await self.db.flush()

            return payment_models.PaymentRead.model_validate(new_payment)

        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in create_payment for student {data.student_id}: {e}", exc_info=True)
            raise

    async def pay_debts(self, data: payment_models.DebtPaymentCreate) -> list[payment_models.PaymentRead]:
        """
        Settles every unpaid debt of the student. Each debt gets its own
        payment worth hours times rate, and is linked to it. The balance is
        not touched: the hours were already consumed by the class.
        """
        log.info(f"Settling unpaid debts of student {data.student_id}.")
        try:
            student = await self._get_student_for_update(data.student_id)

            stmt = select(db_models.StudentDebts).filter(
                db_models.StudentDebts.student_id == student.id,
                db_models.StudentDebts.payment_id.is_(None)
            ).order_by(db_models.StudentDebts.created_at).with_for_update()
            result = await self.db.execute(stmt)
            unpaid_debts = list(result.scalars().all())

            if not unpaid_debts:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="This student has no debts."
                )

            payments = []
            for debt in unpaid_debts:
                payment = db_models.Payments(
                    student_id=student.id,
                    date=data.date,
                    value=debt.hours * debt.rate,
                    hours=debt.hours,
                    payment_method=data.payment_method.value
                )
                self.db.add(payment)
                await self.db.flush()
                debt.payment_id = payment.id
                payments.append(payment)

            await self.db.flush()
            log.info(f"Settled {len(payments)} debts of student {data.student_id}.")
            return [payment_models.PaymentRead.model_validate(payment) for payment in payments]

        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in pay_debts for student {data.student_id}: {e}", exc_info=True)
            raise
