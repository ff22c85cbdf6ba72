'''
API endpoints for student payments.
'''
from typing import Annotated
from uuid import UUID
from fastapi import APIRouter, Depends, status, Query

from ..models import payment as payment_models
from ..services.payment_service import PaymentService

class PaymentsAPI:
    """
    A class to encapsulate endpoints for Payments.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/payments",
            tags=["Payments"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
            "/",
            self.list_student_payments,
            methods=["GET"],
            response_model=list[payment_models.PaymentRead])
        self.router.add_api_route(
            "/",
            self.create_payment,
            methods=["POST"],
            status_code=status.HTTP_201_CREATED,
            response_model=payment_models.PaymentRead)
        self.router.add_api_route(
            "/debts",
            self.pay_debts,
            methods=["POST"],
            status_code=status.HTTP_201_CREATED,
            response_model=list[payment_models.PaymentRead])

    async def list_student_payments(
        self,
        payment_service: Annotated[PaymentService, Depends(PaymentService)],
        student_id: Annotated[UUID, Query(description="Student whose payments are listed")]
    ) -> list[payment_models.PaymentRead]:
        """
        Retrieves the payments of a student, newest first.
        """
        return await payment_service.get_student_payments(student_id)

    async def create_payment(
        self,
        payment_data: payment_models.PaymentCreate,
        payment_service: Annotated[PaymentService, Depends(PaymentService)]
    ) -> payment_models.PaymentRead:
        """
        Records a purchase of hours for a student.
        """
        return await payment_service.create_payment(payment_data)

    async def pay_debts(
        self,
        payment_data: payment_models.DebtPaymentCreate,
        payment_service: Annotated[PaymentService, Depends(PaymentService)]
    ) -> list[payment_models.PaymentRead]:
        """
        Settles all unpaid debts of a student, one payment per debt.
        """
        return await payment_service.pay_debts(payment_data)


# Instantiate the class and export its router
payments_api = PaymentsAPI()
router = payments_api.router
