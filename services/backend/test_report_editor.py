"""Report editor: mutations, drying cycle and lifecycle transitions"""
import datetime as dt

import pytest

from application.report_editor import EditorView, ReportEditor
from domain.exceptions import (
    ConfirmationRequiredError,
    IncompleteEquipmentError,
    InvalidFieldError,
    InvalidImageGroupingError,
    ItemNotFoundError,
)
from domain.models import Contact, ContactRole, ImageCategory, Report, ReportImage, ReportStatus

TODAY = dt.date(2026, 3, 14)


@pytest.fixture
def editor() -> ReportEditor:
    return ReportEditor(today=lambda: TODAY)


def test_new_editor_starts_empty(editor):
    assert editor.view == EditorView.NEW
    assert editor.report_id is None
    assert len(editor.report.contacts) == 4


def test_listeners_are_notified(editor):
    calls = []
    editor.subscribe(lambda: calls.append(1))

    editor.update_fields(client="Halter AG")
    editor.add_room("Bad")

    assert len(calls) == 2


def test_update_fields_rejects_read_only(editor):
    with pytest.raises(InvalidFieldError):
        editor.update_fields(id="X-1")
    with pytest.raises(InvalidFieldError):
        editor.update_fields(unknown_field="x")


def test_status_cannot_be_closed_directly(editor):
    editor.update_fields(status="Leckortung")
    assert editor.report.status == ReportStatus.LEAK_DETECTION

    with pytest.raises(InvalidFieldError):
        editor.update_fields(status="Abgeschlossen")


def test_contacts(editor):
    contact = editor.add_contact()
    assert contact.role == ContactRole.RESIDENT
    assert len(editor.report.contacts) == 5

    editor.update_contact(4, name="Beat Huber", role="Hauswart")
    assert editor.report.contacts[4].role == ContactRole.CARETAKER

    editor.remove_contact(4)
    assert len(editor.report.contacts) == 4

    with pytest.raises(ItemNotFoundError):
        editor.remove_contact(10)


def test_room_requires_name(editor):
    with pytest.raises(InvalidFieldError):
        editor.add_room("  ")


def test_removing_room_keeps_its_photos(editor):
    room = editor.add_room("Küche", apartment="1. OG")
    image = editor.add_image(ReportImage(name="k.jpg", room_id=room.id))

    editor.remove_room(room.id)

    kept = editor.image(image.id)
    assert kept.room_id is None
    assert kept.category == "1. OG - Küche"


def test_image_grouping(editor):
    room = editor.add_room("Bad")
    image = editor.add_image(ReportImage(name="a.jpg", category=ImageCategory.DAMAGE_PHOTOS.value))

    moved = editor.update_image(image.id, room_id=room.id)
    assert moved.room_id == room.id
    assert moved.category is None

    moved = editor.update_image(image.id, category=ImageCategory.PLANS.value)
    assert moved.room_id is None

    with pytest.raises(InvalidImageGroupingError):
        editor.add_image(ReportImage(name="b.jpg", room_id="missing"))


def test_image_file_reference_is_not_client_editable(editor):
    image = editor.add_image(ReportImage(name="a.jpg", storage_path="P-1/a.jpg"))

    with pytest.raises(InvalidFieldError):
        editor.update_image(image.id, storage_path="../../../etc/passwd", uploading=True)

    assert editor.image(image.id).storage_path == "P-1/a.jpg"
    assert editor.update_image(image.id, description="Riss").description == "Riss"

    stored = editor.record_upload(image.id, url="http://x/b.jpg", storage_path="P-1/b.jpg", error=False)
    assert stored.storage_path == "P-1/b.jpg"


def test_equipment_requires_number_and_room(editor):
    with pytest.raises(InvalidFieldError):
        editor.add_equipment("", "Bad")

    entry = editor.add_equipment("12", "Bad", counter_start="100")
    assert entry.start_date == TODAY
    assert entry.counter_start == 100


def test_start_drying(editor):
    editor.start_drying()

    assert editor.report.drying_started == TODAY
    assert editor.report.status == ReportStatus.DRYING


def test_end_drying_names_incomplete_devices(editor):
    first = editor.add_equipment("12", "Bad", counter_start=100)
    editor.add_equipment("13", "Küche", counter_start=50)
    editor.update_equipment(first.id, end_date=TODAY, counter_end=137.5, hours=48)

    with pytest.raises(IncompleteEquipmentError) as exc:
        editor.end_drying()

    assert exc.value.device_numbers == ["13"]
    assert "#13" in str(exc.value)
    assert "#12" not in str(exc.value)
    assert editor.report.drying_ended is None


def test_end_drying_stamps_today_when_complete(editor):
    entry = editor.add_equipment("12", "Bad", counter_start=100)
    editor.update_equipment(entry.id, end_date=TODAY, counter_end=137.5, hours=48)

    editor.end_drying()

    assert editor.report.drying_ended == TODAY
    assert editor.report.equipment[0].consumption == 37.5


def test_check_drying_group_only_checks_that_group(editor):
    done = editor.add_equipment("1", "Bad", apartment="EG")
    editor.update_equipment(done.id, end_date=TODAY, counter_end=10, hours=5)
    editor.add_equipment("2", "Küche", apartment="EG")

    assert [e.device_number for e in editor.check_drying_group("EG", "Bad")] == ["1"]

    with pytest.raises(IncompleteEquipmentError) as exc:
        editor.check_drying_group("EG", "Küche")
    assert exc.value.scope == "EG - Küche"


def test_close_and_reactivate_need_confirmation(editor):
    editor.update_fields(status="Trocknung")

    with pytest.raises(ConfirmationRequiredError):
        editor.close_project()
    assert editor.report.status == ReportStatus.DRYING

    editor.close_project(confirmed=True)
    assert editor.report.status == ReportStatus.CLOSED
    with pytest.raises(InvalidFieldError):
        editor.update_fields(client="Halter AG")
    with pytest.raises(InvalidFieldError):
        editor.update_fields(status="Trocknung")

    with pytest.raises(ConfirmationRequiredError):
        editor.reactivate()

    editor.reactivate(confirmed=True)
    assert editor.report.status == ReportStatus.REMEDIATION


def test_submit_normalizes_buffer():
    editor = ReportEditor(identifier_factory=lambda report: report.project_title or "TMP-1")
    editor.update_fields(project_title="P-2026-01-1000", street="Zollstrasse 42", zip="8005", city="Zürich",
                         damage_type="Wasserschaden")
    editor.add_image(ReportImage(name="a.jpg"))

    report = editor.submit()

    assert report.id == "P-2026-01-1000"
    assert report.address == "Zollstrasse 42, 8005 Zürich"
    assert report.type == "Wasserschaden"
    assert report.image_count == 1
    assert editor.view == EditorView.DETAILS


def test_identifier_is_immutable_once_assigned():
    editor = ReportEditor(identifier_factory=lambda report: report.project_title)
    editor.update_fields(project_title="P-1")
    editor.ensure_identifier()

    editor.update_fields(project_title="P-2")
    editor.ensure_identifier()

    assert editor.report_id == "P-1"


def test_seeding_parses_legacy_address():
    stored = Report(id="P-1", address="Zollstrasse 42, 8005 Zürich", type="Leitungsbruch")

    editor = ReportEditor(stored)

    assert editor.view == EditorView.DETAILS
    assert (editor.report.street, editor.report.zip, editor.report.city) == ("Zollstrasse 42", "8005", "Zürich")
    assert editor.report.damage_type == "Leitungsbruch"


def test_apply_import_only_overwrites_with_values(editor):
    editor.update_fields(client="Alt AG", city="Bern")

    editor.apply_import(
        {"client": "Neu AG", "city": "", "project_title": "P-9"},
        [Contact(name="Max Muster")],
    )

    assert editor.report.client == "Neu AG"
    assert editor.report.city == "Bern"
    assert editor.report.project_title == "P-9"
    assert [c.name for c in editor.report.contacts] == ["Max Muster"]
