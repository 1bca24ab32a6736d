"""Shared FastAPI plumbing: error responses, request identity and schema base."""

from datetime import datetime

import structlog
from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ProteanException, ValidationError
from protean.utils.globals import current_domain
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from identity.account.account import Account
from shared.config import Settings
from shared.exceptions import NotAuthenticated, PermissionDenied, first_message

logger = structlog.get_logger(__name__)


class CamelModel(BaseModel):
    """Schemas speak camelCase on the wire and snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def status_for(exc: ProteanException) -> tuple[int, str]:
    """HTTP status and error code for a domain exception."""
    status_code = getattr(exc, "status_code", None)
    code = getattr(exc, "code", None)
    if status_code is not None:
        return status_code, code or "checkout_error"
    if isinstance(exc, ValidationError):
        return 400, code or "validation_error"
    if isinstance(exc, ObjectNotFoundError):
        return 404, code or "not_found"
    if isinstance(exc, InvalidOperationError):
        return 409, code or "invalid_operation"
    return 500, code or "internal_error"


def error_body(exc: ProteanException, code: str) -> dict:
    messages = getattr(exc, "messages", None)
    return {
        "error": {
            "code": code,
            "message": first_message(exc),
            "details": messages if isinstance(messages, dict) else {},
        }
    }


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ProteanException)
    async def handle_domain_error(request: Request, exc: ProteanException):
        status_code, code = status_for(exc)
        if status_code >= 500:
            logger.error("Request failed", path=request.url.path, code=code, error=first_message(exc))
        else:
            logger.info("Request rejected", path=request.url.path, code=code, error=first_message(exc))
        return JSONResponse(status_code=status_code, content=error_body(exc, code))


class MaintenanceRequest(CamelModel):
    as_of: datetime | None = None


class MaintenanceResponse(CamelModel):
    status: str = "ok"
    processed: int = 0


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def current_account(x_account_id: str | None = Header(default=None)) -> Account:
    if not x_account_id:
        raise NotAuthenticated({"account": ["X-Account-Id header is required"]})
    try:
        return current_domain.repository_for(Account).get(x_account_id)
    except ObjectNotFoundError:
        raise NotAuthenticated({"account": ["Unknown account"]}) from None


def admin_account(account: Account = Depends(current_account)) -> Account:
    if not account.is_admin:
        raise PermissionDenied({"account": ["Administrator access required"]})
    return account
