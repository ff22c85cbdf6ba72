'''
API endpoints for managing Class Sessions.
'''
from typing import Annotated
from uuid import UUID
from fastapi import APIRouter, Depends, status

from ..models import class_session as class_session_models
from ..services.class_session_service import ClassSessionService

class ClassSessionsAPI:
    """
    A class to encapsulate endpoints for Class Sessions.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/class-sessions",
            tags=["Class Sessions"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
            "/",
            self.create_class_session,
            methods=["POST"],
            status_code=status.HTTP_201_CREATED,
            response_model=class_session_models.ClassSessionRead)
        self.router.add_api_route(
            "/{class_session_id}",
            self.get_class_session,
            methods=["GET"],
            response_model=class_session_models.ClassSessionRead)
        self.router.add_api_route(
            "/{class_session_id}",
            self.update_class_session,
            methods=["PUT"],
            response_model=class_session_models.ClassSessionRead)
        self.router.add_api_route(
            "/{class_session_id}",
            self.delete_class_session,
            methods=["DELETE"])
        self.router.add_api_route(
            "/{class_session_id}/students",
            self.add_student,
            methods=["POST"],
            response_model=class_session_models.ClassSessionRead)

    async def create_class_session(
        self,
        class_session_data: class_session_models.ClassSessionCreate,
        class_session_service: Annotated[ClassSessionService, Depends(ClassSessionService)]
    ) -> class_session_models.ClassSessionRead:
        """
        Creates a class session and charges its students.
        """
        return await class_session_service.create_class_session(class_session_data)

    async def get_class_session(
        self,
        class_session_id: UUID,
        class_session_service: Annotated[ClassSessionService, Depends(ClassSessionService)]
    ) -> class_session_models.ClassSessionRead:
        return await class_session_service.get_class_session_for_api(class_session_id)

    async def update_class_session(
        self,
        class_session_id: UUID,
        update_data: class_session_models.ClassSessionUpdate,
        class_session_service: Annotated[ClassSessionService, Depends(ClassSessionService)]
    ) -> class_session_models.ClassSessionRead:
        """
        Updates a class session, reconciling balances and debts of every
        student whose attendance changed.
        """
        return await class_session_service.update_class_session(class_session_id, update_data)

    async def delete_class_session(
        self,
        class_session_id: UUID,
        class_session_service: Annotated[ClassSessionService, Depends(ClassSessionService)]
    ):
        """
        Deletes a class session, restoring its students' hours.
        Sessions with paid debts are deactivated instead.
        """
        await class_session_service.delete_class_session(class_session_id)
        return {"message": "Class session deleted successfully."}

    async def add_student(
        self,
        class_session_id: UUID,
        data: class_session_models.ClassSessionAddStudent,
        class_session_service: Annotated[ClassSessionService, Depends(ClassSessionService)]
    ) -> class_session_models.ClassSessionRead:
        return await class_session_service.add_student(class_session_id, data.student_id)


# Instantiate the class and export its router
class_sessions_api = ClassSessionsAPI()
router = class_sessions_api.router
