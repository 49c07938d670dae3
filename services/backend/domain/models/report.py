"""Report model - one water-damage case and its nested records"""
import datetime as dt
import re
from enum import Enum
from typing import List, Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator


class ReportStatus(str, Enum):
    INTAKE = "Schadenaufnahme"
    LEAK_DETECTION = "Leckortung"
    DRYING = "Trocknung"
    REMEDIATION = "Instandsetzung"
    CLOSED = "Abgeschlossen"


# Ordered working stages; CLOSED is terminal and only left through reactivation
STATUS_STAGES = [
    ReportStatus.INTAKE,
    ReportStatus.LEAK_DETECTION,
    ReportStatus.DRYING,
    ReportStatus.REMEDIATION,
]


class ContactRole(str, Enum):
    RESIDENT = "Mieter"
    OWNER = "Eigentümer"
    CARETAKER = "Hauswart"
    MANAGEMENT = "Verwaltung"
    CONTRACTOR = "Handwerker"
    OTHER = "Sonstiges"


class ImageCategory(str, Enum):
    DAMAGE_PHOTOS = "Schadenfotos"
    PLANS = "Pläne"
    OTHER = "Sonstiges"


# Tokens an upstream tool may emit instead of leaving a value empty
PLACEHOLDER_TOKENS = {
    "string",
    "unset",
    "undefined",
    "null",
    "none",
    "n/a",
    "na",
    "2026xxxx",
    "+41 xx xxx xx xx",
}

_ZIP_RE = re.compile(r"\b\d{4,5}\b")


def clean_text(value: str) -> str:
    stripped = value.strip()
    if stripped.lower() in PLACEHOLDER_TOKENS:
        return ""
    return stripped


def new_item_id() -> str:
    return uuid4().hex


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def generated_identifier() -> str:
    """Token used when a new report has neither id nor project title"""
    return f"TMP-{int(dt.datetime.now().timestamp() * 1000)}"


def join_address(street: str, zip_code: str, city: str) -> str:
    """Display string "Street 1, 8000 City"; empty parts are left out"""
    locality = " ".join(part for part in (zip_code.strip(), city.strip()) if part)
    return ", ".join(part for part in (street.strip(), locality) if part)


def parse_address(address: str) -> Tuple[str, str, str]:
    """Split a display address back into (street, zip, city)"""
    if not address:
        return "", "", ""

    match = _ZIP_RE.search(address)
    if not match:
        return address.strip(), "", ""

    street = address[:match.start()].strip().rstrip(",").strip()
    city = address[match.end():].strip().lstrip(",").strip()
    return street, match.group(0), city


def equipment_group_key(apartment: str, room: str) -> str:
    return f"{apartment} - {room}" if apartment else room


class _Document(BaseModel):
    """Shared cleanup: absent text is always "", never None or a placeholder"""

    @field_validator("*", mode="before")
    @classmethod
    def _normalize_text(cls, value, info: ValidationInfo):
        field = cls.model_fields.get(info.field_name)
        if value is None and field is not None and field.annotation is str:
            return ""
        if isinstance(value, str):
            return clean_text(value)
        return value


class Contact(_Document):
    name: str = ""
    role: ContactRole = ContactRole.RESIDENT
    apartment: str = ""
    phone: str = ""

    @field_validator("role", mode="before")
    @classmethod
    def _blank_role(cls, value):
        if value in ("", None):
            return ContactRole.RESIDENT
        return value


def default_contacts() -> List[Contact]:
    return [Contact() for _ in range(4)]


class Room(_Document):
    id: str = Field(default_factory=new_item_id)
    name: str
    apartment: str = ""
    description: str = ""

    @property
    def label(self) -> str:
        return f"{self.apartment} - {self.name}" if self.apartment else self.name


class EquipmentEntry(_Document):
    id: str = Field(default_factory=new_item_id)
    device_number: str
    apartment: str = ""
    room: str = ""
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    counter_start: Optional[float] = None
    counter_end: Optional[float] = None
    hours: Optional[float] = None

    @field_validator("counter_start", "counter_end", "hours", mode="before")
    @classmethod
    def _parse_reading(cls, value):
        if isinstance(value, str):
            value = value.strip().replace(",", ".")
            return value or None
        return value

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _blank_date(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def group_key(self) -> str:
        return equipment_group_key(self.apartment, self.room)

    @property
    def consumption(self) -> Optional[float]:
        """kWh between the two counter readings; None until both exist"""
        if self.counter_start is None or self.counter_end is None:
            return None
        return round(self.counter_end - self.counter_start, 2)

    @property
    def duration_days(self) -> Optional[int]:
        if self.start_date is None or self.end_date is None:
            return None
        return abs((self.end_date - self.start_date).days)

    @property
    def missing_end_data(self) -> bool:
        return self.end_date is None or self.counter_end is None or self.hours is None


class ReportImage(_Document):
    id: str = Field(default_factory=new_item_id)
    name: str = ""
    url: Optional[str] = None
    storage_path: Optional[str] = None
    content_type: str = ""
    date: dt.datetime = Field(default_factory=utc_now)
    room_id: Optional[str] = None
    category: Optional[str] = None
    description: str = ""
    include_in_report: bool = True
    uploading: bool = False
    error: bool = False

    @field_validator("room_id", "category", mode="before")
    @classmethod
    def _blank_grouping(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _single_grouping(self):
        if self.room_id and self.category:
            raise ValueError("an image belongs to a room or to a category, not both")
        return self

    @property
    def is_document(self) -> bool:
        return self.content_type == "application/pdf" or self.name.lower().endswith(".pdf")


class Report(_Document):
    id: Optional[str] = None
    project_title: str = ""
    client: str = ""
    client_source: str = ""
    property_type: str = ""
    assigned_to: str = ""
    location_details: str = ""

    address: str = ""
    street: str = ""
    zip: str = ""
    city: str = ""

    damage_type: str = ""
    type: str = ""
    damage_category: str = ""
    status: ReportStatus = ReportStatus.INTAKE

    description: str = ""
    notes: str = ""
    cause: str = ""
    findings: str = ""
    measures: str = ""

    # Order / billing data as delivered by the client
    order_number: str = ""
    project_number: str = ""
    damage_number: str = ""
    external_ref: str = ""
    insurance: str = ""
    manager: str = ""
    service_type: str = ""
    billing_owner: str = ""
    billing_street: str = ""
    billing_zip_city: str = ""
    billing_email: str = ""
    billing_note: str = ""

    date: Optional[dt.date] = Field(default_factory=dt.date.today)
    drying_started: Optional[dt.date] = None
    drying_ended: Optional[dt.date] = None

    contacts: List[Contact] = Field(default_factory=default_contacts)
    rooms: List[Room] = Field(default_factory=list)
    equipment: List[EquipmentEntry] = Field(default_factory=list)
    images: List[ReportImage] = Field(default_factory=list)
    image_count: int = 0

    @field_validator("id", mode="before")
    @classmethod
    def _blank_id(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("date", "drying_started", "drying_ended", mode="before")
    @classmethod
    def _blank_date(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def room_by_id(self, room_id: str) -> Optional[Room]:
        return next((room for room in self.rooms if room.id == room_id), None)
