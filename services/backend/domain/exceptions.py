"""Domain errors raised by the application layer and mapped to HTTP by the routers"""
from typing import List


class QServiceError(Exception):
    """Base class for all expected failures"""


class ReportNotFoundError(QServiceError):
    def __init__(self, report_id: str):
        super().__init__(f"Report not found: {report_id}")
        self.report_id = report_id


class EditorSessionNotFoundError(QServiceError):
    def __init__(self, session_id: str):
        super().__init__(f"Editor session not found: {session_id}")
        self.session_id = session_id


class DeviceNotFoundError(QServiceError):
    def __init__(self, device_id: str):
        super().__init__(f"Device not found: {device_id}")
        self.device_id = device_id


class ItemNotFoundError(QServiceError):
    """Contact, room, equipment entry or image missing from the edit buffer"""

    def __init__(self, kind: str, key):
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key


class InvalidFieldError(QServiceError):
    """Unknown, read-only or missing field in an edit request"""


class IncompleteEquipmentError(QServiceError):
    """Drying cannot be closed while devices lack end date, end counter or hours"""

    def __init__(self, device_numbers: List[str], scope: str = ""):
        self.device_numbers = device_numbers
        self.scope = scope
        listing = ", ".join(f"#{number}" for number in device_numbers)
        where = f" in '{scope}'" if scope else ""
        super().__init__(
            f"Please record end data (end date, end counter, hours) for all devices{where}. "
            f"Missing for: {listing}"
        )


class ConfirmationRequiredError(QServiceError):
    def __init__(self, action: str, prompt: str):
        super().__init__(prompt)
        self.action = action
        self.prompt = prompt


class InvalidImageGroupingError(QServiceError):
    pass


class RemoteSyncError(QServiceError):
    pass


class MediaUploadError(QServiceError):
    pass


class ExtractionError(QServiceError):
    pass


class ExtractionUnavailableError(ExtractionError):
    """No AI credentials configured"""


class ExtractionBusyError(ExtractionError):
    """An analysis is already running for this editor"""


class RateLimitExhaustedError(ExtractionError):
    """Every candidate model answered with a quota/rate-limit error"""
