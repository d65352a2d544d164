# This project was developed with assistance from AI tools.
"""Application lifecycle service.

Owns the status graph for service requests and the append-only event trail.
Status changes go through ``transition_status``, which performs a
compare-and-update on the current status so two concurrent actors (an admin
and a payment webhook, say) cannot both move the same application.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value
from tasheel_db import Application, ApplicationAttachment, ApplicationEvent
from tasheel_db.enums import ApplicationStatus

from ..schemas.auth import UserContext
from ..services.scope import apply_data_scope

logger = logging.getLogger(__name__)


class InvalidTransitionError(ValueError):
    """Raised when an application status transition is not allowed."""

    pass


class ApplicationClosedError(ValueError):
    """Raised when a closed application receives new attachments."""

    pass


_TERMINAL_STATUSES = ApplicationStatus.terminal_statuses()


def check_transition(current: ApplicationStatus, new_status: ApplicationStatus) -> None:
    """Raise InvalidTransitionError unless ``current -> new_status`` is an edge of the graph."""
    allowed = ApplicationStatus.valid_transitions().get(current, frozenset())
    if new_status not in allowed:
        raise InvalidTransitionError(
            f"Cannot transition from '{current.value}' to '{new_status.value}'. "
            f"Allowed: {sorted(s.value for s in allowed) if allowed else 'none (terminal status)'}."
        )


async def get_application(
    session: AsyncSession,
    user: UserContext,
    application_id: int,
) -> Application | None:
    """Return a single application if visible to the current user.

    Returns None (which the route maps to 404) for out-of-scope applications
    rather than 403, to avoid leaking existence of resources.
    """
    stmt = (
        select(Application)
        .options(selectinload(Application.attachments))
        .where(Application.id == application_id)
    )
    stmt = apply_data_scope(stmt, user.data_scope)
    result = await session.execute(stmt)
    return result.unique().scalar_one_or_none()


async def get_application_by_order_number(
    session: AsyncSession,
    order_number: str,
) -> Application | None:
    """Public tracking lookup. Loads the event timeline eagerly."""
    stmt = (
        select(Application)
        .options(selectinload(Application.events))
        .where(Application.order_number == order_number)
    )
    result = await session.execute(stmt)
    return result.unique().scalar_one_or_none()


async def list_events(
    session: AsyncSession,
    user: UserContext,
    application_id: int,
) -> list[ApplicationEvent] | None:
    """Return the event trail oldest-first, or None if the application is out of scope."""
    app = await get_application(session, user, application_id)
    if app is None:
        return None
    stmt = (
        select(ApplicationEvent)
        .where(ApplicationEvent.application_id == application_id)
        .order_by(ApplicationEvent.created_at, ApplicationEvent.id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


def record_event(
    session: AsyncSession,
    application: Application,
    event_type: str,
    *,
    actor: str | None = None,
    notes: str | None = None,
    data: dict | None = None,
) -> ApplicationEvent:
    """Append an event row and bump ``last_event_at``. Caller commits."""
    event = ApplicationEvent(
        application_id=application.id,
        event_type=event_type,
        actor=actor,
        notes=notes,
        data=data,
    )
    session.add(event)
    application.last_event_at = datetime.now(UTC)
    return event


async def transition_status(
    session: AsyncSession,
    application: Application,
    new_status: ApplicationStatus,
    *,
    actor: str | None = None,
    notes: str | None = None,
    data: dict | None = None,
) -> Application:
    """Move ``application`` to ``new_status`` and record a ``status_changed`` event.

    The UPDATE is conditioned on the status the caller observed; if another
    writer got there first, zero rows match and InvalidTransitionError is
    raised. Caller commits.
    """
    current = application.status or ApplicationStatus.DRAFT
    check_transition(current, new_status)

    stmt = (
        update(Application)
        .where(Application.id == application.id, Application.status == current)
        .values(status=new_status)
        .returning(Application.id)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.scalar_one_or_none() is None:
        raise InvalidTransitionError(
            f"Application {application.id} is no longer in status '{current.value}'."
        )
    set_committed_value(application, "status", new_status)

    record_event(
        session,
        application,
        "status_changed",
        actor=actor,
        notes=notes,
        data={"from": current.value, "to": new_status.value, **(data or {})},
    )
    logger.info(
        "Application %s status %s -> %s (actor=%s)",
        application.id,
        current.value,
        new_status.value,
        actor,
    )
    return application


async def create_draft_application(
    session: AsyncSession,
    user: UserContext,
    service_slug: str,
) -> Application:
    """Create the draft a customer's first upload attaches to."""
    application = Application(
        service_slug=service_slug,
        customer_id=user.customer_id,
        status=ApplicationStatus.DRAFT,
        applicant_email=user.email or None,
        customer_name=user.name or None,
        payload={},
        attachments=[],
    )
    session.add(application)
    await session.flush()
    record_event(session, application, "draft_created", actor=user.user_id)
    await session.commit()
    await session.refresh(application, attribute_names=["created_at", "updated_at"])
    return application


async def add_attachment(
    session: AsyncSession,
    user: UserContext,
    application_id: int,
    *,
    file_name: str,
    storage_path: str,
    file_size: int | None = None,
    content_type: str | None = None,
) -> ApplicationAttachment | None:
    """Record metadata for an already-stored file.

    Returns None if the application is not found or not accessible.
    Raises ApplicationClosedError for terminal applications.
    """
    app = await get_application(session, user, application_id)
    if app is None:
        return None
    if app.status in _TERMINAL_STATUSES:
        raise ApplicationClosedError(
            f"Application {application_id} is {app.status.value}; attachments are closed."
        )

    attachment = ApplicationAttachment(
        application_id=app.id,
        file_name=file_name,
        storage_path=storage_path,
        file_size=file_size,
        content_type=content_type,
    )
    session.add(attachment)
    await session.commit()
    await session.refresh(attachment)
    return attachment


async def list_attachments(
    session: AsyncSession,
    application_id: int,
) -> list[ApplicationAttachment]:
    """Attachments for an application, oldest first.

    Does NOT enforce data scope -- caller must check access to the application first.
    """
    stmt = (
        select(ApplicationAttachment)
        .where(ApplicationAttachment.application_id == application_id)
        .order_by(ApplicationAttachment.id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
