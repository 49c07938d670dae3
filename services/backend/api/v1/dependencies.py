"""Shared router dependencies and domain-error translation"""
from contextlib import contextmanager

from fastapi import Depends, HTTPException, Request
from pydantic import ValidationError

from application.device_inventory import DeviceInventory
from application.editor_sessions import EditorSession, EditorSessionRegistry
from application.report_service import ReportService
from domain.exceptions import (
    ConfirmationRequiredError,
    DeviceNotFoundError,
    EditorSessionNotFoundError,
    ExtractionBusyError,
    ExtractionError,
    ExtractionUnavailableError,
    IncompleteEquipmentError,
    InvalidFieldError,
    InvalidImageGroupingError,
    ItemNotFoundError,
    MediaUploadError,
    QServiceError,
    RateLimitExhaustedError,
    RemoteSyncError,
    ReportNotFoundError,
)

# Most specific classes first
STATUS_CODES = [
    (ReportNotFoundError, 404),
    (EditorSessionNotFoundError, 404),
    (DeviceNotFoundError, 404),
    (ItemNotFoundError, 404),
    (ExtractionBusyError, 409),
    (IncompleteEquipmentError, 422),
    (InvalidImageGroupingError, 422),
    (InvalidFieldError, 422),
    (ConfirmationRequiredError, 428),
    (RateLimitExhaustedError, 429),
    (ExtractionUnavailableError, 503),
    (ExtractionError, 502),
    (MediaUploadError, 502),
    (RemoteSyncError, 502),
]


def http_error(error: QServiceError) -> HTTPException:
    status_code = next((code for cls, code in STATUS_CODES if isinstance(error, cls)), 400)

    if isinstance(error, IncompleteEquipmentError):
        detail = {"message": str(error), "devices": error.device_numbers, "scope": error.scope}
    elif isinstance(error, ConfirmationRequiredError):
        detail = {"message": str(error), "action": error.action, "prompt": error.prompt}
    else:
        detail = str(error)
    return HTTPException(status_code=status_code, detail=detail)


@contextmanager
def domain_errors():
    """Raise domain failures as HTTPException"""
    try:
        yield
    except QServiceError as e:
        raise http_error(e) from e
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False, include_input=False),
        ) from e
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


def get_report_service(request: Request) -> ReportService:
    return request.app.state.report_service


def get_session_registry(request: Request) -> EditorSessionRegistry:
    return request.app.state.editor_sessions


def get_device_inventory(request: Request) -> DeviceInventory:
    return request.app.state.device_inventory


def get_editor_session(
    session_id: str,
    registry: EditorSessionRegistry = Depends(get_session_registry),
) -> EditorSession:
    with domain_errors():
        return registry.get(session_id)
