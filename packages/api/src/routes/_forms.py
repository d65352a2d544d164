# This project was developed with assistance from AI tools.
"""Shared helpers for the form-posting endpoints.

Checkout and quote-request forms answer with a ``{type, message, ...}``
envelope for both outcomes so the website can render one result banner.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from ..schemas.checkout import FormResult
from ..services.checkout import CheckoutError, InvoiceIssueError, MissingFieldsError


async def read_form_fields(request: Request) -> dict[str, str]:
    """Text fields of a urlencoded or multipart form. File parts are ignored."""
    form = await request.form()
    return {
        key: value.strip()
        for key, value in form.multi_items()
        if not isinstance(value, UploadFile)
    }


def form_error(exc: CheckoutError) -> JSONResponse:
    result = FormResult(type="error", message=exc.message)
    if isinstance(exc, MissingFieldsError):
        result.missing_fields = exc.fields
    elif isinstance(exc, InvoiceIssueError):
        result.application_id = exc.application_id
        result.order_number = exc.order_number
    return JSONResponse(
        status_code=exc.status_code,
        content=result.model_dump(by_alias=True, exclude_none=True, mode="json"),
    )
