'''
The debt calculation engine.

Pure functions over already-loaded rows: given a class session's current
state and the desired roster/duration, they return the list of
`CalculatedDebt` entries describing, per student, what must happen to the
hour balance and to the debt record. Nothing here touches the database, so
the same inputs always produce the same plan.
'''
from decimal import Decimal
from typing import Iterable, Mapping, NamedTuple, Optional, Sequence
from uuid import UUID

from ..database import models as db_models
from ..models.ledger import (
    CalculatedDebt,
    CreateDebt,
    UpdateDebt,
    RemoveDebt,
    KeepDebt,
    NoDebt,
    IncrementBalance,
    DecrementBalance,
    SetBalance,
    NoBalanceChange,
)

ZERO = Decimal('0')


class ClassifiedDebts(NamedTuple):
    restored: list[db_models.StudentDebts]
    paid: list[db_models.StudentDebts]
    unpaid: list[db_models.StudentDebts]


class RosterDiff(NamedTuple):
    added: list[UUID]
    removed: list[UUID]
    untouched: list[UUID]


def classify_debts(
    debts: Iterable[db_models.StudentDebts],
    class_session_id: Optional[UUID] = None
) -> ClassifiedDebts:
    """
    Splits debts into restored (paid and flagged), paid (not yet restored)
    and unpaid buckets, optionally keeping only those of one class session.
    """
    restored, paid, unpaid = [], [], []
    for debt in debts:
        if class_session_id is not None and debt.class_session_id != class_session_id:
            continue
        if debt.payment_id is None:
            unpaid.append(debt)
        elif debt.restored:
            restored.append(debt)
        else:
            paid.append(debt)
    return ClassifiedDebts(restored=restored, paid=paid, unpaid=unpaid)


def diff_rosters(new_ids: Sequence[UUID], old_ids: Sequence[UUID]) -> RosterDiff:
    """
    Three-way partition of the union of both rosters. Order follows first
    appearance (old roster first), and duplicates are collapsed.
    """
    old_set = set(old_ids)
    new_set = set(new_ids)
    added, removed, untouched = [], [], []
    for student_id in dict.fromkeys([*old_ids, *new_ids]):
        if student_id not in old_set:
            added.append(student_id)
        elif student_id not in new_set:
            removed.append(student_id)
        else:
            untouched.append(student_id)
    return RosterDiff(added=added, removed=removed, untouched=untouched)


def _entry(student: db_models.Students, debt, balance_action) -> CalculatedDebt:
    return CalculatedDebt(
        student_id=student.id,
        student_full_name=student.full_name,
        debt=debt,
        balance_action=balance_action
    )


def charge_student(student: db_models.Students, hours: Decimal) -> CalculatedDebt:
    """
    Charges a full attendance against the balance. Whatever the balance
    cannot cover becomes a new debt and the balance is emptied.
    """
    balance = student.hour_balance or ZERO
    if hours > balance:
        return _entry(student, CreateDebt(hours=hours - balance), SetBalance(amount=ZERO))
    return _entry(student, NoDebt(), DecrementBalance(amount=hours))


def calculate_new_session_debts(
    students: Iterable[db_models.Students],
    hours: Decimal
) -> list[CalculatedDebt]:
    """Plan for a brand-new class session: every student is charged in full."""
    seen = set()
    result = []
    for student in students:
        if student.id in seen:
            continue
        seen.add(student.id)
        result.append(charge_student(student, hours))
    return result


def calculate_removal_debts(
    student: db_models.Students,
    session_hours: Decimal,
    debts: Iterable[db_models.StudentDebts],
    restore: bool = True
) -> list[CalculatedDebt]:
    """
    Plan for a student whose attendance to a class session is taken back.

    Paid debts are kept (and flagged restored), unpaid ones are removed. The
    balance gets back the part of the session that was not owed, that is
    the session hours minus the unpaid debt hours; it rides on the first
    entry so it is credited once.
    """
    classified = classify_debts(debts)
    owed = sum((debt.hours for debt in classified.unpaid), ZERO)
    returned_hours = max(session_hours - owed, ZERO)

    debt_actions = [KeepDebt(id=debt.id, restore=restore) for debt in classified.paid]
    debt_actions += [RemoveDebt(id=debt.id) for debt in classified.unpaid]
    if not debt_actions:
        debt_actions = [NoDebt()]

    result = []
    for index, debt_action in enumerate(debt_actions):
        if index == 0 and returned_hours > ZERO:
            balance_action = IncrementBalance(amount=returned_hours)
        else:
            balance_action = NoBalanceChange()
        result.append(_entry(student, debt_action, balance_action))
    return result


def _recalculate_untouched(
    student: db_models.Students,
    old_hours: Decimal,
    new_hours: Decimal,
    debts: Iterable[db_models.StudentDebts]
) -> list[CalculatedDebt]:
    if new_hours == old_hours:
        return []

    classified = classify_debts(debts)
    balance = student.hour_balance or ZERO
    keeps = [KeepDebt(id=debt.id, restore=False) for debt in classified.paid]

    # 1. An unpaid debt carries the shortfall across the edit; paid debts ride along untouched
    if classified.unpaid:
        result = [_entry(student, keep, NoBalanceChange()) for keep in keeps]
        first, *rest = classified.unpaid
        owed = sum((debt.hours for debt in classified.unpaid), ZERO)
        hours_surplus = old_hours - owed
        new_balance = balance + hours_surplus - new_hours
        if new_balance >= ZERO:
            result.append(_entry(student, RemoveDebt(id=first.id), SetBalance(amount=new_balance)))
        else:
            result.append(_entry(student, UpdateDebt(id=first.id, hours=-new_balance), SetBalance(amount=ZERO)))
        result += [_entry(student, RemoveDebt(id=debt.id), NoBalanceChange()) for debt in rest]
        return result

    # 2. Only paid debts: they stay untouched and the balance absorbs the change
    if keeps:
        first, *rest = keeps
        others = [_entry(student, keep, NoBalanceChange()) for keep in rest]
        new_balance = balance + old_hours - new_hours
        if new_hours < old_hours:
            return [_entry(student, first, IncrementBalance(amount=old_hours - new_hours)), *others]
        if new_balance >= ZERO:
            return [_entry(student, first, DecrementBalance(amount=new_hours - old_hours)), *others]
        return [
            _entry(student, first, NoBalanceChange()),
            *others,
            _entry(student, CreateDebt(hours=-new_balance), SetBalance(amount=ZERO)),
        ]

    # 3. No debt at all
    return [charge_student(student, new_hours)]


def calculate_session_debts(
    class_session: db_models.ClassSessions,
    students_by_id: Mapping[UUID, db_models.Students],
    student_ids: Sequence[UUID],
    hours: Decimal
) -> list[CalculatedDebt]:
    """
    Plan for an existing class session whose roster and/or duration changes.

    `class_session` must have its roster and debts loaded, and
    `students_by_id` must hold every student of the old and new rosters.
    """
    current_ids = [css.student_id for css in class_session.class_session_students]
    diff = diff_rosters(student_ids, current_ids)
    old_hours = class_session.hours

    debts_by_student: dict[UUID, list[db_models.StudentDebts]] = {}
    for debt in class_session.debts:
        debts_by_student.setdefault(debt.student_id, []).append(debt)

    result = []
    for student_id in diff.added:
        result.append(charge_student(students_by_id[student_id], hours))

    for student_id in diff.removed:
        result += calculate_removal_debts(
            students_by_id[student_id],
            old_hours,
            debts_by_student.get(student_id, [])
        )

    for student_id in diff.untouched:
        result += _recalculate_untouched(
            students_by_id[student_id],
            old_hours,
            hours,
            debts_by_student.get(student_id, [])
        )
    return result
