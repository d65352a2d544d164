# This project was developed with assistance from AI tools.
"""Payment routes: hosted session creation, gateway webhook, placeholder completion."""

import logging
import time

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from tasheel_db import get_db
from tasheel_db.enums import InvoiceStatus, UserRole

from ..core.config import Settings, get_settings
from ..middleware.auth import CurrentUser, require_roles
from ..schemas.payment import (
    CreateSessionRequest,
    CreateSessionResponse,
    PlaceholderCompleteRequest,
    WebhookResponse,
)
from ..services.gateways import get_gateway
from ..services.notifications import Notifier, get_notifier
from ..services.payment_session import (
    PaymentRequestError,
    create_payment_session,
    get_gateway_client,
)
from ..services.quotes import get_invoice
from ..services.webhook import (
    WebhookError,
    apply_settlement,
    authenticate_webhook,
    parse_callback,
    process_payment_webhook,
)

logger = logging.getLogger(__name__)

router = APIRouter()

_PAYER_ROLES = (UserRole.ADMIN, UserRole.CUSTOMER)


@router.post(
    "/create-session",
    response_model=CreateSessionResponse,
    dependencies=[Depends(require_roles(*_PAYER_ROLES))],
)
async def create_session(
    body: CreateSessionRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    client: httpx.AsyncClient = Depends(get_gateway_client),
    config: Settings = Depends(get_settings),
) -> CreateSessionResponse:
    """Open a hosted payment page for one of the caller's invoices."""
    invoice = await get_invoice(session, body.invoice_id, user)
    if invoice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    try:
        result = await create_payment_session(
            session,
            client,
            invoice,
            amount=body.amount,
            currency=body.currency,
            order_number=body.order_number,
            config=config,
        )
    except PaymentRequestError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return CreateSessionResponse(
        success=True,
        payment_url=result.payment_url,
        session_id=result.session_id,
        placeholder=result.placeholder,
    )


@router.post("/webhook", response_model=WebhookResponse)
async def payment_webhook(
    request: Request,
    session: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    config: Settings = Depends(get_settings),
) -> WebhookResponse:
    """Gateway callback. The signature is checked over the exact bytes received."""
    raw_body = await request.body()
    gateway = get_gateway(config.PAYMENT_GATEWAY_TYPE, mode=config.PAYMENT_GATEWAY_MODE)
    try:
        authenticate_webhook(
            gateway,
            request.headers,
            raw_body,
            secret=config.PAYMENT_GATEWAY_WEBHOOK_SECRET,
            hardened=config.is_hardened,
        )
        callback = parse_callback(gateway, raw_body)
        outcome = await process_payment_webhook(session, notifier, gateway, callback)
    except WebhookError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return WebhookResponse(
        success=True, status=outcome.status.value, duplicate=outcome.duplicate
    )


@router.post(
    "/test-complete",
    response_model=WebhookResponse,
    dependencies=[Depends(require_roles(*_PAYER_ROLES))],
)
async def complete_placeholder_payment(
    body: PlaceholderCompleteRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    config: Settings = Depends(get_settings),
) -> WebhookResponse:
    """Settle an invoice without a gateway. Placeholder mode, non-production only."""
    if config.is_hardened or not config.payment_placeholder_mode:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Test completion is only available in placeholder payment mode",
        )
    invoice = await get_invoice(session, body.invoice_id, user)
    if invoice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    if invoice.status == InvoiceStatus.PAID:
        return WebhookResponse(success=True, status="paid", duplicate=True)
    if invoice.status == InvoiceStatus.CANCELLED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Invoice {invoice.invoice_number} is cancelled",
        )

    transaction_id = body.transaction_id or f"TEST-{int(time.time() * 1000)}-{invoice.id}"
    logger.warning(
        "Placeholder completion of invoice %s by %s", invoice.invoice_number, user.user_id
    )
    outcome = await apply_settlement(
        session,
        notifier,
        invoice,
        gateway="test",
        transaction_id=transaction_id,
        amount=invoice.amount,
        raw={"source": "test-complete", "user_id": user.user_id},
        actor=user.user_id,
    )
    return WebhookResponse(
        success=True, status=outcome.status.value, duplicate=outcome.duplicate
    )
