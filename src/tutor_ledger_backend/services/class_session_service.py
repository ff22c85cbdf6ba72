'''
Class session lifecycle: create, update, delete and roster additions,
each reconciling student balances and debts inside the request transaction.
'''
from typing import Optional, Annotated, Sequence
from uuid import UUID
from decimal import Decimal

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..database.engine import get_db_session
from ..database import models as db_models
from ..models import class_session as class_session_models
from ..models import student as student_models
from ..models.ledger import CalculatedDebt
from ..core import ledger
from ..common.logger import log
from .debt_service import DebtCalculationService, ReconciliationService


class ClassSessionService:
    """
    Orchestrates the class session operations. Gathers current and desired
    rosters, asks DebtCalculationService for the plan and hands it to
    ReconciliationService.
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        debt_calculation_service: Annotated[DebtCalculationService, Depends(DebtCalculationService)],
        reconciliation_service: Annotated[ReconciliationService, Depends(ReconciliationService)]
    ):
        self.db = db
        self.debt_calculation_service = debt_calculation_service
        self.reconciliation_service = reconciliation_service

    # --- 1. Internal Helpers ---

    async def _validate_teacher_and_rate(self, teacher_id: UUID, teacher_hour_rate_id: UUID) -> None:
        teacher = await self.db.get(db_models.Teachers, teacher_id)
        if not teacher:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher not found.")
        rate = await self.db.get(db_models.TeacherHourRates, teacher_hour_rate_id)
        if not rate:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher hour rate not found.")

    def _format_for_api(self, class_session: db_models.ClassSessions) -> class_session_models.ClassSessionRead:
        return class_session_models.ClassSessionRead(
            id=class_session.id,
            date=class_session.date,
            hours=class_session.hours,
            teacher_id=class_session.teacher_id,
            teacher_hour_rate_id=class_session.teacher_hour_rate_id,
            teacher_payment_id=class_session.teacher_payment_id,
            is_active=class_session.is_active,
            student_ids=[css.student_id for css in class_session.class_session_students],
            debts=[student_models.DebtRead.model_validate(debt) for debt in class_session.debts]
        )

    async def _reconcile_roster(
        self,
        class_session: db_models.ClassSessions,
        student_ids: Sequence[UUID],
        hours: Decimal,
        submitted_debts: Optional[list[CalculatedDebt]]
    ) -> None:
        """
        Computes the plan against the stored roster, then moves the roster
        and the duration to the desired state and applies the plan.
        """
        student_ids = list(dict.fromkeys(student_ids))
        current_ids = [css.student_id for css in class_session.class_session_students]

        calculated = await self.debt_calculation_service.calculate_debt_for_session(
            class_session, student_ids, hours
        )
        calculated = self.debt_calculation_service.verify_submitted_debts(submitted_debts, calculated)

        diff = ledger.diff_rosters(student_ids, current_ids)
        removed = set(diff.removed)
        for css in list(class_session.class_session_students):
            if css.student_id in removed:
                class_session.class_session_students.remove(css)
        for student_id in diff.added:
            class_session.class_session_students.append(
                db_models.ClassSessionStudents(student_id=student_id)
            )
        class_session.hours = hours

        await self.reconciliation_service.apply(class_session.id, calculated)
        await self.db.flush()

    def _ensure_active(self, class_session: db_models.ClassSessions) -> None:
        if not class_session.is_active:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="This class session was deleted and only kept for its payment history."
            )

    # --- 2. Read Methods ---

    async def get_class_session_orm(self, class_session_id: UUID) -> db_models.ClassSessions:
        """
        Fetches a class session with roster and debts reloaded from the
        database, so rows written earlier in the request are visible.
        """
        stmt = select(db_models.ClassSessions).options(
            selectinload(db_models.ClassSessions.class_session_students),
            selectinload(db_models.ClassSessions.debts)
        ).filter(
            db_models.ClassSessions.id == class_session_id
        ).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        class_session = result.scalars().first()
        if not class_session:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class session not found.")
        return class_session

    async def get_class_session_for_api(self, class_session_id: UUID) -> class_session_models.ClassSessionRead:
        log.info(f"Fetching class session {class_session_id} for API.")
        class_session = await self.get_class_session_orm(class_session_id)
        return self._format_for_api(class_session)

    # --- 3. Write Methods ---

    async def create_class_session(
        self,
        data: class_session_models.ClassSessionCreate
    ) -> class_session_models.ClassSessionRead:
        """
        Creates a class session with its roster and charges every student
        for its duration.
        """
        log.info(f"Creating class session on {data.date} ({data.hours}h) with {len(data.student_ids)} students.")
        try:
            await self._validate_teacher_and_rate(data.teacher_id, data.teacher_hour_rate_id)

            student_ids = list(dict.fromkeys(data.student_ids))
            calculated = await self.debt_calculation_service.calculate_debt(student_ids, data.hours)
            calculated = self.debt_calculation_service.verify_submitted_debts(data.debts, calculated)

            class_session = db_models.ClassSessions(
                date=data.date,
                hours=data.hours,
                teacher_id=data.teacher_id,
                teacher_hour_rate_id=data.teacher_hour_rate_id,
                is_active=True,
                class_session_students=[
                    db_models.ClassSessionStudents(student_id=student_id) for student_id in student_ids
                ]
            )
            self.db.add(class_session)
            await self.db.flush()

            await self.reconciliation_service.apply(class_session.id, calculated)
            log.info(f"Created class session {class_session.id}.")
            return await self.get_class_session_for_api(class_session.id)

        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in create_class_session: {e}", exc_info=True)
            raise

    async def update_class_session(
        self,
        class_session_id: UUID,
        data: class_session_models.ClassSessionUpdate
    ) -> class_session_models.ClassSessionRead:
        """
        Updates the scalar fields of a class session and reconciles the
        roster and duration change.
        """
        log.info(f"Updating class session {class_session_id}.")
        try:
            class_session = await self.debt_calculation_service.get_class_session_for_ledger(class_session_id)
            self._ensure_active(class_session)

            current_ids = {css.student_id for css in class_session.class_session_students}
            if data.old_student_ids is not None and set(data.old_student_ids) != current_ids:
                log.warning(f"Stale roster submitted for class session {class_session_id}.")
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="The class session roster changed since it was loaded. Reload and try again."
                )
            if data.old_hours is not None and data.old_hours != class_session.hours:
                log.warning(f"Stale hours submitted for class session {class_session_id}.")
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="The class session hours changed since they were loaded. Reload and try again."
                )

            await self._validate_teacher_and_rate(data.teacher_id, data.teacher_hour_rate_id)
            class_session.date = data.date
            class_session.teacher_id = data.teacher_id
            class_session.teacher_hour_rate_id = data.teacher_hour_rate_id

            await self._reconcile_roster(class_session, data.student_ids, data.hours, data.debts)
            return await self.get_class_session_for_api(class_session_id)

        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in update_class_session for {class_session_id}: {e}", exc_info=True)
            raise

    async def add_student(self, class_session_id: UUID, student_id: UUID) -> class_session_models.ClassSessionRead:
        """Adds one student to the roster, charging them for the session."""
        log.info(f"Adding student {student_id} to class session {class_session_id}.")
        try:
            class_session = await self.debt_calculation_service.get_class_session_for_ledger(class_session_id)
            self._ensure_active(class_session)

            current_ids = [css.student_id for css in class_session.class_session_students]
            if student_id in current_ids:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="The student is already enrolled in this class session."
                )

            await self._reconcile_roster(class_session, [*current_ids, student_id], class_session.hours, None)
            return await self.get_class_session_for_api(class_session_id)

        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in add_student for class session {class_session_id}: {e}", exc_info=True)
            raise

    async def delete_class_session(self, class_session_id: UUID) -> None:
        """
        Gives every enrolled student their hours back and removes unpaid
        debts. A session with payment history is only deactivated, with its
        teacher unlinked and its roster cleared; otherwise it is deleted.
        """
        log.info(f"Deleting class session {class_session_id}.")
        try:
            class_session = await self.debt_calculation_service.get_class_session_for_ledger(class_session_id)

            calculated = await self.debt_calculation_service.calculate_removal_for_session(class_session)
            await self.reconciliation_service.apply(class_session.id, calculated)

            class_session = await self.get_class_session_orm(class_session_id)
            has_payment_history = any(debt.payment_id is not None for debt in class_session.debts)

            if has_payment_history:
                for debt in list(class_session.debts):
                    if debt.payment_id is None:
                        class_session.debts.remove(debt)
                class_session.class_session_students.clear()
                class_session.is_active = False
                class_session.teacher_id = None
                await self.db.flush()
                log.info(f"Class session {class_session_id} has paid debts; deactivated instead of deleted.")
            else:
                await self.db.delete(class_session)
                await self.db.flush()
                log.info(f"Class session {class_session_id} deleted.")

        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in delete_class_session for {class_session_id}: {e}", exc_info=True)
            raise
