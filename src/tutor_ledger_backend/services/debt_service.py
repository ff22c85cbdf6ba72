'''
Services around the debt calculation engine:
1- DebtCalculationService: loads canonical state and produces the plan.
2- ReconciliationService: applies a plan to balances and debt rows.
'''
from collections import Counter
from decimal import Decimal
from typing import Optional, Annotated, Iterable, Sequence
from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import DebtActionType, BalanceActionType
from ..models.ledger import CalculatedDebt
from ..core import ledger
from ..common.config import settings
from ..common.exceptions import (
    LedgerError,
    NegativeBalanceError,
    PaidDebtMutationError,
    DebtOwnershipError,
    UnpaidDebtKeepError,
)
from ..common.logger import log


# --- Service 1: Debt Calculation ---

class DebtCalculationService:
    """
    Reads the current balances, rosters and debts, and hands them to the
    pure engine in `core.ledger`. Performs no writes.
    """
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    # --- 1. Internal Fetchers ---

    async def get_students_by_ids(self, student_ids: Iterable[UUID]) -> dict[UUID, db_models.Students]:
        """
        Fetches the given students keyed by ID.
        Raises 404 if any of them does not exist.
        """
        wanted = set(student_ids)
        if not wanted:
            return {}
        stmt = select(db_models.Students).filter(
            db_models.Students.id.in_(wanted)
        ).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        students = {student.id: student for student in result.scalars().all()}

        missing = wanted - students.keys()
        if missing:
            log.warning(f"Debt calculation referenced unknown students: {missing}")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Student(s) not found: {', '.join(sorted(map(str, missing)))}"
            )
        return students

    async def get_class_session_for_ledger(self, class_session_id: UUID) -> db_models.ClassSessions:
        """
        Fetches a class session with its roster and its debts eager-loaded.
        Raises 404 if it does not exist.
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
            log.warning(f"Tried to fetch non-existent class session id: {class_session_id}")
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class session not found.")
        return class_session

    # --- 2. Calculation ---

    async def calculate_debt(
        self,
        student_ids: Sequence[UUID],
        hours: Decimal,
        class_session_id: Optional[UUID] = None
    ) -> list[CalculatedDebt]:
        """
        Computes the per-student debt and balance actions for a roster.
        Without a class_session_id the roster is treated as a new session.
        """
        log.info(f"Calculating debts for {len(student_ids)} students, {hours}h, class session {class_session_id}.")
        if class_session_id is None:
            students = await self.get_students_by_ids(student_ids)
            return ledger.calculate_new_session_debts(
                [students[student_id] for student_id in student_ids], hours
            )

        class_session = await self.get_class_session_for_ledger(class_session_id)
        return await self.calculate_debt_for_session(class_session, student_ids, hours)

    async def calculate_debt_for_session(
        self,
        class_session: db_models.ClassSessions,
        student_ids: Sequence[UUID],
        hours: Decimal
    ) -> list[CalculatedDebt]:
        """Case of an existing, already loaded class session."""
        current_ids = [css.student_id for css in class_session.class_session_students]
        students = await self.get_students_by_ids([*current_ids, *student_ids])
        return ledger.calculate_session_debts(class_session, students, student_ids, hours)

    async def calculate_removal_for_session(
        self,
        class_session: db_models.ClassSessions
    ) -> list[CalculatedDebt]:
        """Plan for taking back every current attendance of a class session."""
        current_ids = [css.student_id for css in class_session.class_session_students]
        students = await self.get_students_by_ids(current_ids)
        result = []
        for student_id in current_ids:
            result += ledger.calculate_removal_debts(
                students[student_id],
                class_session.hours,
                [debt for debt in class_session.debts if debt.student_id == student_id]
            )
        return result

    def verify_submitted_debts(
        self,
        submitted: Optional[list[CalculatedDebt]],
        calculated: list[CalculatedDebt]
    ) -> list[CalculatedDebt]:
        """
        Compares client-submitted debts against the server calculation.
        The server plan is always the one applied; from the submission only
        the operator-chosen rates are taken. Raises 400 on any mismatch.
        """
        if submitted is None:
            return calculated

        if Counter(d.signature() for d in submitted) != Counter(d.signature() for d in calculated):
            log.warning("Submitted debts do not match the server-side calculation.")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Submitted debts do not match the current balances and debts. Recalculate and try again."
            )

        rates = {
            (d.student_id, d.debt.action, getattr(d.debt, 'id', None)): d.debt.rate
            for d in submitted
            if d.debt.action in (DebtActionType.CREATE.value, DebtActionType.UPDATE.value)
        }
        merged = []
        for entry in calculated:
            rate = rates.get((entry.student_id, entry.debt.action, getattr(entry.debt, 'id', None)))
            if rate is not None:
                entry = entry.model_copy(update={'debt': entry.debt.model_copy(update={'rate': rate})})
            merged.append(entry)
        return merged


# --- Service 2: Reconciliation ---

class ReconciliationService:
    """
    Applies calculated debts. Every write goes through the request's
    session, so the whole plan commits or rolls back together.
    """
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    async def _lock_students(self, student_ids: set[UUID]) -> dict[UUID, db_models.Students]:
        stmt = select(db_models.Students).filter(
            db_models.Students.id.in_(student_ids)
        ).with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        students = {student.id: student for student in result.scalars().all()}

        missing = student_ids - students.keys()
        if missing:
            log.error(f"Reconciliation aborted, students vanished: {missing}")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Student(s) not found: {', '.join(sorted(map(str, missing)))}"
            )
        return students

    async def _lock_debts(self, debt_ids: set[UUID]) -> dict[UUID, db_models.StudentDebts]:
        if not debt_ids:
            return {}
        stmt = select(db_models.StudentDebts).filter(
            db_models.StudentDebts.id.in_(debt_ids)
        ).with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        debts = {debt.id: debt for debt in result.scalars().all()}

        missing = debt_ids - debts.keys()
        if missing:
            log.error(f"Reconciliation aborted, debts vanished: {missing}")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Debt(s) not found: {', '.join(sorted(map(str, missing)))}"
            )
        return debts

    @staticmethod
    def _apply_balance_action(student: db_models.Students, balance_action) -> None:
        if balance_action.action == BalanceActionType.INCREMENT.value:
            student.hour_balance = student.hour_balance + balance_action.amount
        elif balance_action.action == BalanceActionType.DECREMENT.value:
            student.hour_balance = student.hour_balance - balance_action.amount
        elif balance_action.action == BalanceActionType.SET.value:
            student.hour_balance = balance_action.amount

    @staticmethod
    def _owned_debt(
        debts: dict[UUID, db_models.StudentDebts],
        entry: CalculatedDebt,
        class_session_id: UUID
    ) -> db_models.StudentDebts:
        debt = debts[entry.debt.id]
        if debt.student_id != entry.student_id or debt.class_session_id != class_session_id:
            raise DebtOwnershipError(
                f"Debt {debt.id} does not belong to student {entry.student_id} in class session {class_session_id}."
            )
        return debt

    async def _apply_debt_action(
        self,
        entry: CalculatedDebt,
        class_session_id: UUID,
        debts: dict[UUID, db_models.StudentDebts]
    ) -> None:
        action = entry.debt
        if action.action == DebtActionType.CREATE.value:
            self.db.add(db_models.StudentDebts(
                student_id=entry.student_id,
                class_session_id=class_session_id,
                hours=action.hours,
                rate=action.rate if action.rate is not None else settings.DEFAULT_DEBT_RATE,
                restored=False
            ))

        elif action.action == DebtActionType.UPDATE.value:
            debt = self._owned_debt(debts, entry, class_session_id)
            if debt.is_paid:
                raise PaidDebtMutationError(f"Debt {debt.id} is paid and cannot be updated.")
            debt.hours = action.hours
            if action.rate is not None:
                debt.rate = action.rate

        elif action.action == DebtActionType.REMOVE.value:
            debt = self._owned_debt(debts, entry, class_session_id)
            if debt.is_paid:
                raise PaidDebtMutationError(f"Debt {debt.id} is paid and cannot be removed.")
            await self.db.delete(debt)

        elif action.action == DebtActionType.KEEP.value:
            debt = self._owned_debt(debts, entry, class_session_id)
            if not debt.is_paid:
                raise UnpaidDebtKeepError(f"Debt {debt.id} is unpaid and cannot be kept.")
            if action.restore:
                debt.restored = True

    async def apply(self, class_session_id: UUID, calculated_debts: list[CalculatedDebt]) -> None:
        """
        Applies each entry's balance action, then its debt action, and
        flushes once. Any violation raises and leaves the rollback to the
        request transaction.
        """
        if not calculated_debts:
            return
        log.info(f"Applying {len(calculated_debts)} calculated debts to class session {class_session_id}.")

        students = await self._lock_students({entry.student_id for entry in calculated_debts})
        debts = await self._lock_debts({
            entry.debt.id for entry in calculated_debts if hasattr(entry.debt, 'id')
        })

        try:
            for entry in calculated_debts:
                self._apply_balance_action(students[entry.student_id], entry.balance_action)
                await self._apply_debt_action(entry, class_session_id, debts)

            for student in students.values():
                if student.hour_balance < 0:
                    raise NegativeBalanceError(
                        f"Student {student.id} would end with a negative balance ({student.hour_balance})."
                    )

            await self.db.flush()

        except PaidDebtMutationError as e:
            log.warning(f"Reconciliation rejected: {e}")
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
        except LedgerError as e:
            log.warning(f"Reconciliation rejected: {e}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        except IntegrityError as e:
            log.error(f"Integrity error while reconciling class session {class_session_id}: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="The reconciliation conflicts with existing data. Nothing was applied."
            )
        except SQLAlchemyError as e:
            log.error(f"Database error while reconciling class session {class_session_id}: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="The reconciliation could not be saved. Nothing was applied, please retry."
            )
