"""Report model: cleanup rules and derived equipment figures"""
import datetime as dt

import pytest
from pydantic import ValidationError

from domain.models import Contact, ContactRole, DamageReportRow, EquipmentEntry, Report, ReportImage, ReportStatus
from domain.models.report import join_address, parse_address


def test_new_report_defaults():
    report = Report()

    assert report.id is None
    assert report.status == ReportStatus.INTAKE
    assert len(report.contacts) == 4
    assert report.date == dt.date.today()


@pytest.mark.parametrize("value", ["unset", "string", " undefined ", "N/A", None])
def test_placeholders_become_empty(value):
    report = Report(client=value, project_title=value)

    assert report.client == ""
    assert report.project_title == ""


def test_blank_contact_role_defaults_to_resident():
    assert Contact(role="").role == ContactRole.RESIDENT


def test_consumption_from_readings():
    entry = EquipmentEntry(device_number="3", counter_start=100, counter_end=137.5)

    assert entry.consumption == 37.5


def test_consumption_not_available_until_both_readings():
    assert EquipmentEntry(device_number="3", counter_start=100).consumption is None
    assert EquipmentEntry(device_number="3", counter_end=100).consumption is None


def test_readings_accept_decimal_comma_and_blank():
    entry = EquipmentEntry(device_number="3", counter_start="12,5", counter_end="", hours=" ")

    assert entry.counter_start == 12.5
    assert entry.counter_end is None
    assert entry.hours is None


def test_duration_needs_both_dates():
    entry = EquipmentEntry(device_number="3", start_date=dt.date(2026, 1, 1))
    assert entry.duration_days is None

    entry = EquipmentEntry(device_number="3", start_date=dt.date(2026, 1, 1), end_date=dt.date(2026, 1, 8))
    assert entry.duration_days == 7


def test_missing_end_data():
    complete = EquipmentEntry(device_number="1", end_date=dt.date.today(), counter_end=10, hours=24)
    assert complete.missing_end_data is False
    assert EquipmentEntry(device_number="2", end_date=dt.date.today(), counter_end=10).missing_end_data is True


def test_image_cannot_have_room_and_category():
    with pytest.raises(ValidationError):
        ReportImage(name="a.jpg", room_id="r1", category="Schadenfotos")


def test_blank_grouping_is_none():
    image = ReportImage(name="a.jpg", room_id="", category="Pläne")

    assert image.room_id is None
    assert image.category == "Pläne"


def test_join_and_parse_address():
    assert join_address("Zollstrasse 42", "8005", "Zürich") == "Zollstrasse 42, 8005 Zürich"
    assert join_address("", "8005", "") == "8005"
    assert parse_address("Zollstrasse 42, 8005 Zürich") == ("Zollstrasse 42", "8005", "Zürich")
    assert parse_address("Hinterhof") == ("Hinterhof", "", "")


def test_remote_row_mapping():
    report = Report(
        id="P-1",
        project_title="P-1",
        client="Halter AG",
        address="Zollstrasse 42, 8005 Zürich",
        status=ReportStatus.DRYING,
        drying_started=dt.date(2026, 2, 1),
    )

    row = DamageReportRow.from_report(report)

    assert row.id == "P-1"
    assert row.status == "Trocknung"
    assert row.assigned_to is None
    assert row.drying_started == dt.date(2026, 2, 1)
    assert Report.model_validate(row.report_data) == report


def test_timestamps_are_timezone_aware():
    row = DamageReportRow.from_report(Report(id="P-1"))

    assert ReportImage().date.tzinfo is not None
    assert row.updated_at.utcoffset() == dt.timedelta(0)
