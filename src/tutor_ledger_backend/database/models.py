from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKeyConstraint, Index, Numeric, PrimaryKeyConstraint, Text, Uuid, text, true, false
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
import datetime
import decimal
import uuid

payment_method_enum = Enum('CASH', 'TRANSFER', name='payment_method_type')


class Base(DeclarativeBase):
    pass


class Teachers(Base):
    __tablename__ = 'teachers'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='teachers_pkey'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name: Mapped[str] = mapped_column(Text)
    last_name: Mapped[str] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true())

    class_sessions: Mapped[list['ClassSessions']] = relationship('ClassSessions', back_populates='teacher')
    teacher_payments: Mapped[list['TeacherPayments']] = relationship('TeacherPayments', back_populates='teacher')

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class TeacherHourRates(Base):
    __tablename__ = 'teacher_hour_rates'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='teacher_hour_rates_pkey'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    description: Mapped[str] = mapped_column(Text)
    rate: Mapped[decimal.Decimal] = mapped_column(Numeric(10, 2))

    class_sessions: Mapped[list['ClassSessions']] = relationship('ClassSessions', back_populates='teacher_hour_rate')


class TeacherPayments(Base):
    __tablename__ = 'teacher_payments'
    __table_args__ = (
        ForeignKeyConstraint(['teacher_id'], ['teachers.id'], ondelete='CASCADE', name='teacher_payments_teacher_id_fkey'),
        PrimaryKeyConstraint('id', name='teacher_payments_pkey'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    teacher_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    date: Mapped[datetime.datetime] = mapped_column(DateTime(True))
    value: Mapped[decimal.Decimal] = mapped_column(Numeric(10, 2))
    payment_method: Mapped[str] = mapped_column(payment_method_enum)

    teacher: Mapped['Teachers'] = relationship('Teachers', back_populates='teacher_payments')
    class_sessions: Mapped[list['ClassSessions']] = relationship('ClassSessions', back_populates='teacher_payment')


class Students(Base):
    __tablename__ = 'students'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='students_pkey'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name: Mapped[str] = mapped_column(Text)
    last_name: Mapped[str] = mapped_column(Text)
    hour_balance: Mapped[decimal.Decimal] = mapped_column(Numeric(10, 2), default=decimal.Decimal('0'), server_default=text('0'))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true())

    class_session_students: Mapped[list['ClassSessionStudents']] = relationship(
        'ClassSessionStudents',
        back_populates='student'
    )
    debts: Mapped[list['StudentDebts']] = relationship(
        'StudentDebts',
        back_populates='student'
    )
    payments: Mapped[list['Payments']] = relationship(
        'Payments',
        back_populates='student'
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Payments(Base):
    __tablename__ = 'payments'
    __table_args__ = (
        ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE', name='payments_student_id_fkey'),
        PrimaryKeyConstraint('id', name='payments_pkey'),
        Index('idx_payments_student_id', 'student_id'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    date: Mapped[datetime.datetime] = mapped_column(DateTime(True))
    value: Mapped[decimal.Decimal] = mapped_column(Numeric(10, 2))
    hours: Mapped[decimal.Decimal] = mapped_column(Numeric(10, 2))
    payment_method: Mapped[str] = mapped_column(payment_method_enum)

    student: Mapped['Students'] = relationship('Students', back_populates='payments')
    debts: Mapped[list['StudentDebts']] = relationship('StudentDebts', back_populates='payment')


class ClassSessions(Base):
    __tablename__ = 'class_sessions'
    __table_args__ = (
        ForeignKeyConstraint(['teacher_id'], ['teachers.id'], ondelete='SET NULL', name='class_sessions_teacher_id_fkey'),
        ForeignKeyConstraint(['teacher_hour_rate_id'], ['teacher_hour_rates.id'], name='class_sessions_teacher_hour_rate_id_fkey'),
        ForeignKeyConstraint(['teacher_payment_id'], ['teacher_payments.id'], ondelete='SET NULL', name='class_sessions_teacher_payment_id_fkey'),
        PrimaryKeyConstraint('id', name='class_sessions_pkey'),
        Index('idx_class_sessions_date', 'date'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    date: Mapped[datetime.datetime] = mapped_column(DateTime(True))
    hours: Mapped[decimal.Decimal] = mapped_column(Numeric(10, 2))
    teacher_hour_rate_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    teacher_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    teacher_payment_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true())

    teacher: Mapped[Optional['Teachers']] = relationship('Teachers', back_populates='class_sessions')
    teacher_hour_rate: Mapped['TeacherHourRates'] = relationship('TeacherHourRates', back_populates='class_sessions')
    teacher_payment: Mapped[Optional['TeacherPayments']] = relationship('TeacherPayments', back_populates='class_sessions')
    class_session_students: Mapped[list['ClassSessionStudents']] = relationship(
        'ClassSessionStudents',
        back_populates='class_session',
        cascade='all, delete-orphan'
    )
    debts: Mapped[list['StudentDebts']] = relationship(
        'StudentDebts',
        back_populates='class_session',
        cascade='all, delete-orphan'
    )


class ClassSessionStudents(Base):
    __tablename__ = 'class_session_students'
    __table_args__ = (
        ForeignKeyConstraint(['class_session_id'], ['class_sessions.id'], ondelete='CASCADE', name='class_session_students_class_session_id_fkey'),
        ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE', name='class_session_students_student_id_fkey'),
        PrimaryKeyConstraint('class_session_id', 'student_id', name='class_session_students_pkey'),
    )

    class_session_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)

    class_session: Mapped['ClassSessions'] = relationship('ClassSessions', back_populates='class_session_students')
    student: Mapped['Students'] = relationship('Students', back_populates='class_session_students')


class StudentDebts(Base):
    __tablename__ = 'student_debts'
    __table_args__ = (
        ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE', name='student_debts_student_id_fkey'),
        ForeignKeyConstraint(['class_session_id'], ['class_sessions.id'], name='student_debts_class_session_id_fkey'),
        ForeignKeyConstraint(['payment_id'], ['payments.id'], name='student_debts_payment_id_fkey'),
        PrimaryKeyConstraint('id', name='student_debts_pkey'),
        Index('idx_student_debts_student_session', 'student_id', 'class_session_id'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    class_session_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    hours: Mapped[decimal.Decimal] = mapped_column(Numeric(10, 2))
    rate: Mapped[decimal.Decimal] = mapped_column(Numeric(10, 2), default=decimal.Decimal('0'), server_default=text('0'))
    payment_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    restored: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())
    created_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True), default=lambda: datetime.datetime.now(datetime.timezone.utc))

    student: Mapped['Students'] = relationship('Students', back_populates='debts')
    class_session: Mapped['ClassSessions'] = relationship('ClassSessions', back_populates='debts')
    payment: Mapped[Optional['Payments']] = relationship('Payments', back_populates='debts')

    @property
    def is_paid(self) -> bool:
        return self.payment_id is not None
