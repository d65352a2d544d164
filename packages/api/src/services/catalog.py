# This project was developed with assistance from AI tools.
"""Catalog lookups. Only the price/slug/form fields the order lifecycle reads."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from tasheel_db import Service


async def get_service_by_slug(session: AsyncSession, slug: str) -> Service | None:
    """Return the active catalog entry for ``slug``, or None."""
    stmt = select(Service).where(Service.slug == slug, Service.is_active.is_(True))
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


def service_form_field_names(service: Service) -> list[str]:
    """Names of the service-specific form fields declared on the catalog entry.

    ``form_fields`` is either a list of names or a list of ``{"name": ...}`` dicts.
    """
    names = []
    for field in service.form_fields or []:
        if isinstance(field, dict):
            name = field.get("name")
        else:
            name = field
        if name:
            names.append(str(name))
    return names
