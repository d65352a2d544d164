# This project was developed with assistance from AI tools.
"""Admin endpoints for quotes, invoices and application status."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from tasheel_db import get_db
from tasheel_db.enums import UserRole

from ..middleware.auth import CurrentUser, require_roles
from ..schemas.admin import (
    InvoiceAmountOverride,
    InvoiceCreate,
    InvoiceResponse,
    QuoteCreate,
    StatusUpdate,
    StatusUpdateResponse,
)
from ..services.application import (
    ApplicationClosedError,
    InvalidTransitionError,
    transition_status,
)
from ..services.notifications import Notifier, get_notifier
from ..services.quotes import (
    InvoiceNotOpenError,
    create_invoice,
    create_quote,
    get_application_for_admin,
    override_invoice_amount,
)

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_roles(UserRole.ADMIN))])


@router.post("/quotes", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def post_quote(
    body: QuoteCreate,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> InvoiceResponse:
    """Price a request: issue a quote invoice and move the application to quote_sent."""
    try:
        invoice = await create_quote(
            session,
            notifier,
            body.application_id,
            body.amount,
            notes=body.notes,
            actor=user.user_id,
        )
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if invoice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return InvoiceResponse.model_validate(invoice)


@router.post("/invoices", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def post_invoice(
    body: InvoiceCreate,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> InvoiceResponse:
    try:
        invoice = await create_invoice(
            session,
            body.application_id,
            body.amount,
            due_date=body.due_date,
            notes=body.notes,
            actor=user.user_id,
        )
    except ApplicationClosedError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if invoice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return InvoiceResponse.model_validate(invoice)


@router.patch("/invoices/{invoice_id}/amount", response_model=InvoiceResponse)
async def patch_invoice_amount(
    invoice_id: int,
    body: InvoiceAmountOverride,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> InvoiceResponse:
    """Correct an unpaid invoice's amount. Recorded on the application timeline."""
    try:
        invoice = await override_invoice_amount(
            session, invoice_id, body.amount, reason=body.reason, actor=user.user_id
        )
    except InvoiceNotOpenError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if invoice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return InvoiceResponse.model_validate(invoice)


@router.patch("/applications/{application_id}/status", response_model=StatusUpdateResponse)
async def patch_application_status(
    application_id: int,
    body: StatusUpdate,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> StatusUpdateResponse:
    """Move an application along the status graph and email the customer."""
    application = await get_application_for_admin(session, application_id)
    if application is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")

    previous = application.status
    try:
        await transition_status(
            session, application, body.status, actor=user.user_id, notes=body.notes
        )
    except InvalidTransitionError as exc:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    await session.commit()

    try:
        await notifier.status_changed(application, body.status)
    except Exception:
        logger.exception(
            "Status notification failed (order=%s status=%s)",
            application.order_number,
            body.status.value,
        )
    return StatusUpdateResponse(id=application_id, previous_status=previous, status=body.status)
