"""Domain models for the Q-Service damage desk"""
from .report import (
    Contact,
    ContactRole,
    EquipmentEntry,
    ImageCategory,
    Report,
    ReportImage,
    ReportStatus,
    Room,
)
from .damage_report_row import DamageReportRow
from .device import Device
from .extraction import ExtractionResult, ExtractionSuccess, ExtractionParseError

__all__ = [
    "Contact",
    "ContactRole",
    "EquipmentEntry",
    "ImageCategory",
    "Report",
    "ReportImage",
    "ReportStatus",
    "Room",
    "DamageReportRow",
    "Device",
    "ExtractionResult",
    "ExtractionSuccess",
    "ExtractionParseError",
]
