"""
Report editor - the single mutable edit buffer of one report

Every change to a report while it is being edited goes through this class.
Listeners (the auto-save controller) are notified after each mutation.
"""
import datetime as dt
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import structlog

from domain.exceptions import (
    ConfirmationRequiredError,
    IncompleteEquipmentError,
    InvalidFieldError,
    InvalidImageGroupingError,
    ItemNotFoundError,
)
from domain.models import (
    Contact,
    EquipmentEntry,
    Report,
    ReportImage,
    ReportStatus,
    Room,
)
from domain.models.report import equipment_group_key, join_address, parse_address

logger = structlog.get_logger()

# Scalar fields a client may set directly; collections and identity have
# their own operations
READ_ONLY_FIELDS = {"id", "address", "type", "image_count", "contacts", "rooms", "equipment", "images"}
EDITABLE_FIELDS = set(Report.model_fields) - READ_ONLY_FIELDS
# Image metadata a client may change; file references and upload state are
# written by the upload path only
EDITABLE_IMAGE_FIELDS = {"name", "description", "room_id", "category", "include_in_report"}
UPLOAD_STATE_FIELDS = {"url", "storage_path", "content_type", "uploading", "error"}

CLOSE_PROMPT = "Do you really want to close this project and move it to the archive?"
REACTIVATE_PROMPT = "Reactivate this project? Status will be set to 'Instandsetzung'."


class EditorView(str, Enum):
    NEW = "new-report"
    DETAILS = "details"


def normalize_report(report: Report) -> Report:
    """Derived fields: display address, damage-type alias, image count"""
    return report.model_copy(
        update={
            "address": join_address(report.street, report.zip, report.city),
            "type": report.damage_type,
            "image_count": len(report.images),
        },
        deep=True,
    )


class ReportEditor:
    def __init__(
        self,
        initial: Optional[Report] = None,
        identifier_factory: Optional[Callable[[Report], str]] = None,
        today: Callable[[], dt.date] = dt.date.today,
    ):
        self._identifier_factory = identifier_factory
        self._today = today
        self._listeners: List[Callable[[], Any]] = []

        if initial is None:
            self._buffer = Report()
            self.view = EditorView.NEW
        else:
            self._buffer = self._seed(initial)
            self.view = EditorView.DETAILS

    @staticmethod
    def _seed(report: Report) -> Report:
        buffer = report.model_copy(deep=True)
        if not (buffer.street or buffer.zip or buffer.city) and buffer.address:
            buffer.street, buffer.zip, buffer.city = parse_address(buffer.address)
        if not buffer.damage_type and buffer.type:
            buffer.damage_type = buffer.type
        return buffer

    # ------------------------------------------------------------------
    # Buffer access

    @property
    def report(self) -> Report:
        return self._buffer

    @property
    def report_id(self) -> Optional[str]:
        return self._buffer.id

    def subscribe(self, listener: Callable[[], Any]) -> None:
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in self._listeners:
            listener()

    def snapshot(self) -> Report:
        """Normalized deep copy, safe to hand to a background save"""
        return normalize_report(self._buffer)

    def ensure_identifier(self) -> Report:
        """Assign the report id on first save; the id never changes afterwards"""
        if self._buffer.id is None and self._identifier_factory is not None:
            self._buffer.id = self._identifier_factory(self._buffer)
            logger.info("report_identifier_assigned", report_id=self._buffer.id)
        return self.snapshot()

    def _replace(self, **changes) -> None:
        data = self._buffer.model_dump()
        data.update(changes)
        self._buffer = Report.model_validate(data)
        self._changed()

    # ------------------------------------------------------------------
    # Scalar fields

    def update_fields(self, **changes) -> Report:
        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            raise InvalidFieldError(f"Fields cannot be set directly: {', '.join(unknown)}")
        if self._buffer.status == ReportStatus.CLOSED and changes:
            raise InvalidFieldError("Closed reports are read-only; reactivate first")

        if "status" in changes:
            self._check_status_change(ReportStatus(changes["status"]))

        self._replace(**changes)
        return self._buffer

    def _check_status_change(self, status: ReportStatus) -> None:
        current = self._buffer.status
        if status == current:
            return
        if status == ReportStatus.CLOSED:
            raise InvalidFieldError("Use close_project to close a report")

    # ------------------------------------------------------------------
    # Contacts

    def add_contact(self, contact: Optional[Contact] = None) -> Contact:
        contact = contact or Contact()
        self._buffer.contacts.append(contact)
        self._changed()
        return contact

    def _contact_index(self, index: int) -> int:
        if not 0 <= index < len(self._buffer.contacts):
            raise ItemNotFoundError("Contact", index)
        return index

    def update_contact(self, index: int, **changes) -> Contact:
        index = self._contact_index(index)
        current = self._buffer.contacts[index]
        contact = Contact.model_validate({**current.model_dump(), **changes})
        self._buffer.contacts[index] = contact
        self._changed()
        return contact

    def remove_contact(self, index: int) -> None:
        index = self._contact_index(index)
        del self._buffer.contacts[index]
        self._changed()

    # ------------------------------------------------------------------
    # Rooms

    def add_room(self, name: str, apartment: str = "", description: str = "") -> Room:
        if not name.strip():
            raise InvalidFieldError("Room name is required")
        room = Room(name=name, apartment=apartment, description=description)
        self._buffer.rooms.append(room)
        self._changed()
        return room

    def _room(self, room_id: str) -> Room:
        room = self._buffer.room_by_id(room_id)
        if room is None:
            raise ItemNotFoundError("Room", room_id)
        return room

    def update_room(self, room_id: str, **changes) -> Room:
        current = self._room(room_id)
        changes.pop("id", None)
        room = Room.model_validate({**current.model_dump(), **changes})
        self._buffer.rooms = [room if r.id == room_id else r for r in self._buffer.rooms]
        self._changed()
        return room

    def remove_room(self, room_id: str) -> None:
        room = self._room(room_id)
        self._buffer.rooms = [r for r in self._buffer.rooms if r.id != room_id]
        # Photos stay in the report, grouped under the former room label
        for image in self._buffer.images:
            if image.room_id == room_id:
                image.room_id = None
                image.category = room.label
        self._changed()

    # ------------------------------------------------------------------
    # Equipment

    def add_equipment(
        self,
        device_number: str,
        room: str,
        apartment: str = "",
        start_date: Optional[dt.date] = None,
        counter_start: Optional[Any] = None,
    ) -> EquipmentEntry:
        if not device_number.strip() or not room.strip():
            raise InvalidFieldError("Device number and room are required")

        entry = EquipmentEntry(
            device_number=device_number,
            room=room,
            apartment=apartment,
            start_date=start_date or self._today(),
            counter_start=counter_start,
        )
        self._buffer.equipment.append(entry)
        self._changed()
        return entry

    def _equipment(self, entry_id: str) -> EquipmentEntry:
        entry = next((e for e in self._buffer.equipment if e.id == entry_id), None)
        if entry is None:
            raise ItemNotFoundError("Equipment entry", entry_id)
        return entry

    def update_equipment(self, entry_id: str, **changes) -> EquipmentEntry:
        current = self._equipment(entry_id)
        changes.pop("id", None)
        entry = EquipmentEntry.model_validate({**current.model_dump(), **changes})
        self._buffer.equipment = [entry if e.id == entry_id else e for e in self._buffer.equipment]
        self._changed()
        return entry

    def remove_equipment(self, entry_id: str) -> None:
        self._equipment(entry_id)
        self._buffer.equipment = [e for e in self._buffer.equipment if e.id != entry_id]
        self._changed()

    # ------------------------------------------------------------------
    # Images and documents

    def _check_grouping(self, image: ReportImage) -> None:
        if image.room_id and self._buffer.room_by_id(image.room_id) is None:
            raise InvalidImageGroupingError(f"Unknown room: {image.room_id}")

    def add_image(self, image: ReportImage) -> ReportImage:
        self._check_grouping(image)
        self._buffer.images.append(image)
        self._changed()
        return image

    def image(self, image_id: str) -> ReportImage:
        image = next((i for i in self._buffer.images if i.id == image_id), None)
        if image is None:
            raise ItemNotFoundError("Image", image_id)
        return image

    def update_image(self, image_id: str, **changes) -> ReportImage:
        unknown = sorted(set(changes) - EDITABLE_IMAGE_FIELDS)
        if unknown:
            raise InvalidFieldError(f"Image fields cannot be set directly: {', '.join(unknown)}")
        return self._apply_image(image_id, changes)

    def record_upload(self, image_id: str, **state) -> ReportImage:
        """Store the result of an upload (file reference, type, progress flags)"""
        unknown = sorted(set(state) - UPLOAD_STATE_FIELDS)
        if unknown:
            raise InvalidFieldError(f"Not upload state: {', '.join(unknown)}")
        return self._apply_image(image_id, state)

    def _apply_image(self, image_id: str, changes: Dict[str, Any]) -> ReportImage:
        current = self.image(image_id)
        data = current.model_dump()
        # Assigning one grouping key clears the other
        if changes.get("room_id"):
            data["category"] = None
        if changes.get("category"):
            data["room_id"] = None
        data.update(changes)
        try:
            image = ReportImage.model_validate(data)
        except ValueError as e:
            raise InvalidImageGroupingError(str(e)) from e
        self._check_grouping(image)
        self._buffer.images = [image if i.id == image_id else i for i in self._buffer.images]
        self._changed()
        return image

    def remove_image(self, image_id: str) -> None:
        self.image(image_id)
        self._buffer.images = [i for i in self._buffer.images if i.id != image_id]
        self._changed()

    # ------------------------------------------------------------------
    # Drying cycle

    def start_drying(self) -> Report:
        self._buffer.drying_started = self._today()
        self._buffer.status = ReportStatus.DRYING
        self._changed()
        logger.info("drying_started", report_id=self._buffer.id)
        return self._buffer

    def end_drying(self) -> Report:
        incomplete = [e.device_number for e in self._buffer.equipment if e.missing_end_data]
        if incomplete:
            raise IncompleteEquipmentError(incomplete)

        self._buffer.drying_ended = self._today()
        self._changed()
        logger.info("drying_ended", report_id=self._buffer.id, devices=len(self._buffer.equipment))
        return self._buffer

    def check_drying_group(self, apartment: str, room: str) -> List[EquipmentEntry]:
        """Validate the devices of one unit/room group without stamping anything"""
        group = equipment_group_key(apartment.strip(), room.strip())
        entries = [e for e in self._buffer.equipment if e.group_key == group]
        incomplete = [e.device_number for e in entries if e.missing_end_data]
        if incomplete:
            raise IncompleteEquipmentError(incomplete, scope=group)
        return entries

    # ------------------------------------------------------------------
    # Lifecycle

    def close_project(self, confirmed: bool = False) -> Report:
        if not confirmed:
            raise ConfirmationRequiredError("close", CLOSE_PROMPT)
        self._buffer.status = ReportStatus.CLOSED
        self._changed()
        return self._buffer

    def reactivate(self, confirmed: bool = False) -> Report:
        if not confirmed:
            raise ConfirmationRequiredError("reactivate", REACTIVATE_PROMPT)
        self._buffer.status = ReportStatus.REMEDIATION
        self._changed()
        return self._buffer

    def submit(self) -> Report:
        """Normalize the buffer for an explicit save and switch to the details view"""
        self.ensure_identifier()
        self._buffer = normalize_report(self._buffer)
        self.view = EditorView.DETAILS
        return self.snapshot()

    def apply_import(self, fields: Dict[str, Any], contacts: Optional[List[Contact]] = None) -> Report:
        """Merge imported values; only non-empty values overwrite the buffer"""
        changes = {
            name: value
            for name, value in fields.items()
            if name in EDITABLE_FIELDS and name != "status" and value not in ("", None)
        }
        if contacts is not None:
            changes["contacts"] = [c.model_dump() for c in contacts]
        self._replace(**changes)
        logger.info("import_applied", report_id=self._buffer.id, fields=sorted(changes))
        return self._buffer
