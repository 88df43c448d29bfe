"""
api/routes/applications.py
--------------------------
TTN application endpoints, scoped to the caller's organisation.

GET    /api/applications        List applications
POST   /api/applications        Create (admin / manager)
PUT    /api/applications/{id}   Rename / describe (admin / manager)
DELETE /api/applications/{id}   Delete, detaching its devices (admin only)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lorasim.core.exceptions import ResourceNotFoundError
from lorasim.db.session import get_db
from lorasim.dependencies import get_auth_context, require_admin, require_editor
from lorasim.schemas.application import ApplicationCreate, ApplicationRead, ApplicationUpdate
from lorasim.schemas.auth import AuthContext
from lorasim.services.application_service import ApplicationService

router = APIRouter(prefix="/api/applications", tags=["Applications"])

_NOT_FOUND = HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")


@router.get("", response_model=list[ApplicationRead], summary="List applications")
async def list_applications(
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> list[ApplicationRead]:
    rows = await ApplicationService.list_applications(db, auth.organization_id)
    return [ApplicationRead.model_validate(r) for r in rows]


@router.post(
    "",
    response_model=ApplicationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create an application",
)
async def create_application(
    body: ApplicationCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(require_editor)],
) -> ApplicationRead:
    try:
        row = await ApplicationService.create_application(db, auth.organization_id, body)
    except ResourceNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return ApplicationRead.model_validate(row)


@router.put("/{application_id}", response_model=ApplicationRead, summary="Update an application")
async def update_application(
    application_id: str,
    body: ApplicationUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(require_editor)],
) -> ApplicationRead:
    row = await ApplicationService.update_application(
        db, auth.organization_id, application_id, body
    )
    if row is None:
        raise _NOT_FOUND
    return ApplicationRead.model_validate(row)


@router.delete("/{application_id}", summary="Delete an application (admin only)")
async def delete_application(
    application_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(require_admin)],
) -> dict:
    if not await ApplicationService.delete_application(db, auth.organization_id, application_id):
        raise _NOT_FOUND
    return {"success": True}
