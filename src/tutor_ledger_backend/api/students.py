'''
API endpoints for the student ledger.
'''
from typing import Annotated
from uuid import UUID
from fastapi import APIRouter, Depends

from ..models import student as student_models
from ..models import ledger as ledger_models
from ..services.student_service import StudentService
from ..services.debt_service import DebtCalculationService

class StudentsAPI:
    """
    A class to encapsulate endpoints for Students.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/students",
            tags=["Students"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
            "/calculate-debts",
            self.calculate_debts,
            methods=["POST"],
            response_model=list[ledger_models.CalculatedDebt])
        self.router.add_api_route(
            "/debtors",
            self.list_debtors,
            methods=["POST"],
            response_model=list[student_models.DebtorRead])
        self.router.add_api_route(
            "/{student_id}",
            self.get_student,
            methods=["GET"],
            response_model=student_models.StudentSummaryRead)
        self.router.add_api_route(
            "/{student_id}/debts",
            self.list_student_debts,
            methods=["GET"],
            response_model=list[student_models.DebtRead])

    async def calculate_debts(
        self,
        request_data: ledger_models.DebtCalculationRequest,
        debt_calculation_service: Annotated[DebtCalculationService, Depends(DebtCalculationService)]
    ) -> list[ledger_models.CalculatedDebt]:
        """
        Previews the debt and balance actions a roster/duration would produce.
        Nothing is written.
        """
        return await debt_calculation_service.calculate_debt(
            request_data.student_ids,
            request_data.hours,
            request_data.class_session_id
        )

    async def list_debtors(
        self,
        request_data: student_models.DebtorsRequest,
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> list[student_models.DebtorRead]:
        return await student_service.get_debtor_students(request_data)

    async def get_student(
        self,
        student_id: UUID,
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> student_models.StudentSummaryRead:
        """
        Retrieves a student's balance and unpaid debt totals.
        """
        return await student_service.get_student_summary(student_id)

    async def list_student_debts(
        self,
        student_id: UUID,
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> list[student_models.DebtRead]:
        return await student_service.get_student_debts(student_id)


# Instantiate the class and export its router
students_api = StudentsAPI()
router = students_api.router
