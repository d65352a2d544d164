# This project was developed with assistance from AI tools.
"""Customer application routes: drafts, attachments, checkout, timeline."""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from tasheel_db import get_db
from tasheel_db.enums import UserRole

from ..middleware.auth import CurrentUser, require_roles
from ..schemas.application import (
    ApplicationResponse,
    AttachmentCreate,
    AttachmentResponse,
    DraftCreate,
    EventResponse,
)
from ..schemas.checkout import CheckoutSubmission, FormResult
from ..services import application as app_service
from ..services.application import ApplicationClosedError
from ..services.catalog import get_service_by_slug
from ..services.checkout import CheckoutError, submit_checkout
from ._forms import form_error, read_form_fields

router = APIRouter()

_APPLICANT_ROLES = (UserRole.ADMIN, UserRole.CUSTOMER)


@router.post(
    "/drafts",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(*_APPLICANT_ROLES))],
)
async def create_draft(
    body: DraftCreate,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> ApplicationResponse:
    """Start a draft for a catalog service. Files are attached to it afterwards."""
    service = await get_service_by_slug(session, body.service_slug)
    if service is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    application = await app_service.create_draft_application(session, user, service.slug)
    return ApplicationResponse.model_validate(application)


@router.post(
    "/checkout",
    response_model=FormResult,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(*_APPLICANT_ROLES))],
)
async def checkout(
    request: Request,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
):
    """Checkout form: price the order, submit the application, issue an invoice.

    Any field the catalog entry declares beyond the standard checkout fields
    is kept as service-specific data on the application.
    """
    submission = CheckoutSubmission.from_form(await read_form_fields(request))
    try:
        result = await submit_checkout(session, user, submission)
    except CheckoutError as exc:
        return form_error(exc)
    return FormResult(
        type="success",
        message=(
            f"Order {result.order_number} submitted. "
            f"Invoice {result.invoice_number} is ready for payment."
        ),
        application_id=result.application_id,
        invoice_id=result.invoice_id,
        invoice_number=result.invoice_number,
        order_number=result.order_number,
        amount=result.amount,
    )


@router.get(
    "/{application_id}",
    response_model=ApplicationResponse,
    dependencies=[Depends(require_roles(*_APPLICANT_ROLES))],
)
async def get_application(
    application_id: int,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> ApplicationResponse:
    application = await app_service.get_application(session, user, application_id)
    if application is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return ApplicationResponse.model_validate(application)


@router.post(
    "/{application_id}/attachments",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(*_APPLICANT_ROLES))],
)
async def add_attachment(
    application_id: int,
    body: AttachmentCreate,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> AttachmentResponse:
    """Record an uploaded file against the application. The file itself is stored elsewhere."""
    try:
        attachment = await app_service.add_attachment(
            session,
            user,
            application_id,
            file_name=body.file_name,
            storage_path=body.storage_path,
            file_size=body.file_size,
            content_type=body.content_type,
        )
    except ApplicationClosedError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if attachment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return AttachmentResponse.model_validate(attachment)


@router.get(
    "/{application_id}/events",
    response_model=list[EventResponse],
    dependencies=[Depends(require_roles(*_APPLICANT_ROLES))],
)
async def list_events(
    application_id: int,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> list[EventResponse]:
    events = await app_service.list_events(session, user, application_id)
    if events is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return [EventResponse.model_validate(e) for e in events]
