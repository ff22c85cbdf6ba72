import pytest
from uuid import UUID
from decimal import Decimal
from datetime import datetime, timezone
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

# --- Import models, services, and Pydantic models ---
from src.tutor_ledger_backend.database import models as db_models
from src.tutor_ledger_backend.database.db_enums import PaymentMethodType, DebtStatus, DebtActionType
from src.tutor_ledger_backend.services.class_session_service import ClassSessionService
from src.tutor_ledger_backend.services.debt_service import DebtCalculationService
from src.tutor_ledger_backend.services.student_service import StudentService
from src.tutor_ledger_backend.services.payment_service import PaymentService
from src.tutor_ledger_backend.models import class_session as class_session_models
from src.tutor_ledger_backend.models import payment as payment_models
from src.tutor_ledger_backend.models.ledger import CreateDebt

# --- Import Test Constants ---
from tests.constants import (
    TEST_TEACHER_ID,
    TEST_HOUR_RATE_ID,
    TEST_STUDENT_EMPTY_ID,
    TEST_STUDENT_RICH_ID,
    TEST_STUDENT_LOW_ID,
    TEST_DEBT_RATE,
    TEST_UNKNOWN_ID,
)

SESSION_DATE = datetime(2026, 3, 2, 16, 0, tzinfo=timezone.utc)


def create_data(student_ids: list[UUID], hours: str = '2', debts=None) -> class_session_models.ClassSessionCreate:
    return class_session_models.ClassSessionCreate(
        student_ids=student_ids,
        teacher_id=TEST_TEACHER_ID,
        teacher_hour_rate_id=TEST_HOUR_RATE_ID,
        date=SESSION_DATE,
        hours=Decimal(hours),
        debts=debts
    )

def update_data(student_ids: list[UUID], hours: str, **kwargs) -> class_session_models.ClassSessionUpdate:
    return class_session_models.ClassSessionUpdate(
        student_ids=student_ids,
        teacher_id=TEST_TEACHER_ID,
        teacher_hour_rate_id=TEST_HOUR_RATE_ID,
        date=SESSION_DATE,
        hours=Decimal(hours),
        **kwargs
    )


@pytest.mark.anyio
class TestClassSessionServiceCreate:

    async def test_create_charges_every_student(
        self,
        class_session_service: ClassSessionService,
        student_empty_orm: db_models.Students,
        student_rich_orm: db_models.Students
    ):
        """A 2h session: the empty student owes 2h, the rich one pays from balance."""
        print("\n--- Testing create_class_session with two students ---")
        result = await class_session_service.create_class_session(
            create_data([TEST_STUDENT_EMPTY_ID, TEST_STUDENT_RICH_ID])
        )

        assert isinstance(result, class_session_models.ClassSessionRead)
        assert set(result.student_ids) == {TEST_STUDENT_EMPTY_ID, TEST_STUDENT_RICH_ID}
        assert result.is_active is True
        assert len(result.debts) == 1

        debt = result.debts[0]
        assert debt.student_id == TEST_STUDENT_EMPTY_ID
        assert debt.hours == Decimal('2')
        assert debt.status == DebtStatus.UNPAID

        assert student_empty_orm.hour_balance == Decimal('0')
        assert student_rich_orm.hour_balance == Decimal('3')
        print(f"--- Created class session {result.id} ---")

    async def test_create_with_previewed_debts_uses_their_rates(
        self,
        class_session_service: ClassSessionService,
        debt_calculation_service: DebtCalculationService
    ):
        student_ids = [TEST_STUDENT_EMPTY_ID, TEST_STUDENT_LOW_ID]
        preview = await debt_calculation_service.calculate_debt(student_ids, Decimal('2'))
        for entry in preview:
            if entry.debt.action == DebtActionType.CREATE.value:
                entry.debt.rate = TEST_DEBT_RATE

        result = await class_session_service.create_class_session(create_data(student_ids, debts=preview))

        assert len(result.debts) == 2
        assert all(debt.rate == TEST_DEBT_RATE for debt in result.debts)
        hours_by_student = {debt.student_id: debt.hours for debt in result.debts}
        assert hours_by_student[TEST_STUDENT_EMPTY_ID] == Decimal('2')
        assert hours_by_student[TEST_STUDENT_LOW_ID] == Decimal('1.5')

    async def test_create_rejects_outdated_preview(
        self,
        class_session_service: ClassSessionService,
        debt_calculation_service: DebtCalculationService
    ):
        """A preview computed for different hours no longer matches."""
        preview = await debt_calculation_service.calculate_debt([TEST_STUDENT_EMPTY_ID], Decimal('1'))

        with pytest.raises(HTTPException) as e:
            await class_session_service.create_class_session(
                create_data([TEST_STUDENT_EMPTY_ID], hours='2', debts=preview)
            )
        assert e.value.status_code == 400

    async def test_create_unknown_student(self, class_session_service: ClassSessionService):
        with pytest.raises(HTTPException) as e:
            await class_session_service.create_class_session(create_data([TEST_UNKNOWN_ID]))
        assert e.value.status_code == 404

    async def test_create_unknown_teacher(self, class_session_service: ClassSessionService):
        data = create_data([TEST_STUDENT_RICH_ID])
        data.teacher_id = TEST_UNKNOWN_ID
        with pytest.raises(HTTPException) as e:
            await class_session_service.create_class_session(data)
        assert e.value.status_code == 404

    async def test_create_rejects_mismatched_submitted_debt(
        self,
        class_session_service: ClassSessionService,
        debt_calculation_service: DebtCalculationService
    ):
        preview = await debt_calculation_service.calculate_debt([TEST_STUDENT_EMPTY_ID], Decimal('2'))
        preview[0].debt = CreateDebt(hours=Decimal('1'))

        with pytest.raises(HTTPException) as e:
            await class_session_service.create_class_session(
                create_data([TEST_STUDENT_EMPTY_ID], debts=preview)
            )
        assert e.value.status_code == 400


@pytest.mark.anyio
class TestClassSessionServiceUpdate:

    async def test_update_roster_and_hours(
        self,
        class_session_service: ClassSessionService,
        student_empty_orm: db_models.Students,
        student_rich_orm: db_models.Students,
        student_low_orm: db_models.Students
    ):
        """
        Roster [empty, rich] 2h -> [empty, low] 3h:
        rich gets 2h back, low is charged 3h, empty's debt grows to 3h.
        """
        print("\n--- Testing update_class_session with roster and duration change ---")
        created = await class_session_service.create_class_session(
            create_data([TEST_STUDENT_EMPTY_ID, TEST_STUDENT_RICH_ID])
        )

        result = await class_session_service.update_class_session(
            created.id,
            update_data(
                [TEST_STUDENT_EMPTY_ID, TEST_STUDENT_LOW_ID],
                hours='3',
                old_student_ids=[TEST_STUDENT_EMPTY_ID, TEST_STUDENT_RICH_ID],
                old_hours=Decimal('2')
            )
        )

        assert set(result.student_ids) == {TEST_STUDENT_EMPTY_ID, TEST_STUDENT_LOW_ID}
        assert result.hours == Decimal('3')
        hours_by_student = {debt.student_id: debt.hours for debt in result.debts}
        assert hours_by_student == {
            TEST_STUDENT_EMPTY_ID: Decimal('3'),
            TEST_STUDENT_LOW_ID: Decimal('2.5'),
        }

        assert student_rich_orm.hour_balance == Decimal('5')
        assert student_low_orm.hour_balance == Decimal('0')
        assert student_empty_orm.hour_balance == Decimal('0')

    async def test_update_shorter_session_clears_debt(
        self,
        class_session_service: ClassSessionService,
        student_low_orm: db_models.Students
    ):
        """Low student: 0.5h balance, 2h session -> 1.5h owed. Shrinking to 0.5h clears it."""
        created = await class_session_service.create_class_session(create_data([TEST_STUDENT_LOW_ID]))

        result = await class_session_service.update_class_session(
            created.id, update_data([TEST_STUDENT_LOW_ID], hours='0.5')
        )

        assert result.debts == []
        assert student_low_orm.hour_balance == Decimal('0')

    async def test_update_after_payment_then_lengthen_and_shorten(
        self,
        class_session_service: ClassSessionService,
        payment_service: PaymentService,
        student_service: StudentService,
        student_empty_orm: db_models.Students
    ):
        """
        2h session, debt paid, lengthened to 3h then back to 2h: the extra
        hour's debt disappears and no hours are credited twice.
        """
        print("\n--- Testing paid debt followed by duration changes ---")
        created = await class_session_service.create_class_session(create_data([TEST_STUDENT_EMPTY_ID]))
        await payment_service.pay_debts(payment_models.DebtPaymentCreate(
            student_id=TEST_STUDENT_EMPTY_ID,
            date=SESSION_DATE,
            payment_method=PaymentMethodType.CASH
        ))

        await class_session_service.update_class_session(
            created.id, update_data([TEST_STUDENT_EMPTY_ID], hours='3')
        )
        debts = await student_service.get_student_debts(TEST_STUDENT_EMPTY_ID)
        assert sorted((d.status, d.hours) for d in debts) == [
            (DebtStatus.PAID, Decimal('2')),
            (DebtStatus.UNPAID, Decimal('1')),
        ]
        assert student_empty_orm.hour_balance == Decimal('0')

        await class_session_service.update_class_session(
            created.id, update_data([TEST_STUDENT_EMPTY_ID], hours='4')
        )
        debts = await student_service.get_student_debts(TEST_STUDENT_EMPTY_ID)
        assert sorted((d.status, d.hours) for d in debts) == [
            (DebtStatus.PAID, Decimal('2')),
            (DebtStatus.UNPAID, Decimal('2')),
        ]

        await class_session_service.update_class_session(
            created.id, update_data([TEST_STUDENT_EMPTY_ID], hours='2')
        )
        debts = await student_service.get_student_debts(TEST_STUDENT_EMPTY_ID)
        assert [(d.status, d.hours) for d in debts] == [(DebtStatus.PAID, Decimal('2'))]
        assert student_empty_orm.hour_balance == Decimal('0')

    async def test_update_rejects_stale_roster(
        self,
        class_session_service: ClassSessionService,
        student_rich_orm: db_models.Students
    ):
        created = await class_session_service.create_class_session(create_data([TEST_STUDENT_RICH_ID]))

        with pytest.raises(HTTPException) as e:
            await class_session_service.update_class_session(
                created.id,
                update_data([TEST_STUDENT_RICH_ID], hours='3', old_student_ids=[TEST_STUDENT_EMPTY_ID])
            )
        assert e.value.status_code == 409
        assert student_rich_orm.hour_balance == Decimal('3')

    async def test_update_rejects_stale_hours(self, class_session_service: ClassSessionService):
        created = await class_session_service.create_class_session(create_data([TEST_STUDENT_RICH_ID]))

        with pytest.raises(HTTPException) as e:
            await class_session_service.update_class_session(
                created.id,
                update_data([TEST_STUDENT_RICH_ID], hours='3', old_hours=Decimal('1'))
            )
        assert e.value.status_code == 409

    async def test_update_not_found(self, class_session_service: ClassSessionService):
        with pytest.raises(HTTPException) as e:
            await class_session_service.update_class_session(
                TEST_UNKNOWN_ID, update_data([TEST_STUDENT_RICH_ID], hours='1')
            )
        assert e.value.status_code == 404


@pytest.mark.anyio
class TestClassSessionServiceAddStudent:

    async def test_add_student_charges_them(
        self,
        class_session_service: ClassSessionService,
        student_low_orm: db_models.Students
    ):
        created = await class_session_service.create_class_session(create_data([TEST_STUDENT_RICH_ID]))

        result = await class_session_service.add_student(created.id, TEST_STUDENT_LOW_ID)

        assert set(result.student_ids) == {TEST_STUDENT_RICH_ID, TEST_STUDENT_LOW_ID}
        [debt] = result.debts
        assert debt.student_id == TEST_STUDENT_LOW_ID
        assert debt.hours == Decimal('1.5')
        assert student_low_orm.hour_balance == Decimal('0')

    async def test_add_student_already_enrolled(self, class_session_service: ClassSessionService):
        created = await class_session_service.create_class_session(create_data([TEST_STUDENT_RICH_ID]))

        with pytest.raises(HTTPException) as e:
            await class_session_service.add_student(created.id, TEST_STUDENT_RICH_ID)
        assert e.value.status_code == 400


@pytest.mark.anyio
class TestClassSessionServiceDelete:

    async def test_delete_without_payments_removes_session(
        self,
        class_session_service: ClassSessionService,
        student_service: StudentService,
        student_empty_orm: db_models.Students,
        student_rich_orm: db_models.Students
    ):
        created = await class_session_service.create_class_session(
            create_data([TEST_STUDENT_EMPTY_ID, TEST_STUDENT_RICH_ID])
        )

        await class_session_service.delete_class_session(created.id)

        with pytest.raises(HTTPException) as e:
            await class_session_service.get_class_session_for_api(created.id)
        assert e.value.status_code == 404

        assert student_rich_orm.hour_balance == Decimal('5')
        assert student_empty_orm.hour_balance == Decimal('0')
        assert await student_service.get_student_debts(TEST_STUDENT_EMPTY_ID) == []

    async def test_delete_with_paid_debt_deactivates(
        self,
        db_session: AsyncSession,
        class_session_service: ClassSessionService,
        payment_service: PaymentService,
        student_empty_orm: db_models.Students,
        student_rich_orm: db_models.Students
    ):
        """
        One student paid their debt, the other had none: the session is
        kept inactive, both get the session hours back, the paid debt stays.
        """
        print("\n--- Testing delete_class_session with payment history ---")
        created = await class_session_service.create_class_session(
            create_data([TEST_STUDENT_EMPTY_ID, TEST_STUDENT_RICH_ID])
        )
        await payment_service.pay_debts(payment_models.DebtPaymentCreate(
            student_id=TEST_STUDENT_EMPTY_ID,
            date=SESSION_DATE,
            payment_method=PaymentMethodType.CASH
        ))

        await class_session_service.delete_class_session(created.id)

        result = await class_session_service.get_class_session_for_api(created.id)
        assert result.is_active is False
        assert result.teacher_id is None
        assert result.student_ids == []
        [debt] = result.debts
        assert debt.student_id == TEST_STUDENT_EMPTY_ID
        assert debt.payment_id is not None
        assert debt.status == DebtStatus.RESTORED

        assert student_rich_orm.hour_balance == Decimal('5')
        assert student_empty_orm.hour_balance == Decimal('2')

    async def test_inactive_session_cannot_be_updated(
        self,
        class_session_service: ClassSessionService,
        payment_service: PaymentService
    ):
        created = await class_session_service.create_class_session(create_data([TEST_STUDENT_EMPTY_ID]))
        await payment_service.pay_debts(payment_models.DebtPaymentCreate(
            student_id=TEST_STUDENT_EMPTY_ID,
            date=SESSION_DATE,
            payment_method=PaymentMethodType.TRANSFER
        ))
        await class_session_service.delete_class_session(created.id)

        with pytest.raises(HTTPException) as e:
            await class_session_service.update_class_session(
                created.id, update_data([TEST_STUDENT_EMPTY_ID], hours='1')
            )
        assert e.value.status_code == 409

    async def test_delete_not_found(self, class_session_service: ClassSessionService):
        with pytest.raises(HTTPException) as e:
            await class_session_service.delete_class_session(TEST_UNKNOWN_ID)
        assert e.value.status_code == 404
