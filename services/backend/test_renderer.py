"""Report document: section selection, equipment summary and PDF output"""
import datetime as dt
import io

from pypdf import PdfReader

from application.report_renderer import (
    document_filename,
    qualifying_rooms,
    report_title,
    summary_rows,
)
from domain.models import EquipmentEntry, ImageCategory, Report, ReportImage, Room


def sample_report() -> Report:
    bath = Room(name="Bad", apartment="2. OG")
    kitchen = Room(name="Küche", apartment="1. OG")
    hall = Room(name="Korridor", apartment="1. OG", description="Parkett aufgequollen")
    empty = Room(name="Estrich")
    return Report(
        id="P-2026-01-1000",
        project_title="P-2026-01-1000",
        client="Halter AG",
        street="Zollstrasse 42",
        zip="8005",
        city="Zürich",
        description="Leitungsbruch in der Küche",
        rooms=[bath, kitchen, hall, empty],
        images=[
            ReportImage(name="bad.jpg", room_id=bath.id),
            ReportImage(name="kueche.jpg", room_id=kitchen.id),
            ReportImage(name="estrich.jpg", room_id=empty.id, include_in_report=False),
            ReportImage(name="alt.jpg", category="Bad"),
        ],
        equipment=[
            EquipmentEntry(device_number="1", room="Bad", counter_start=100, counter_end=137.5, hours=48,
                           start_date=dt.date(2026, 1, 1), end_date=dt.date(2026, 1, 3)),
            EquipmentEntry(device_number="2", room="Küche", counter_start=10, counter_end=22.5, hours=30),
            EquipmentEntry(device_number="3", room="Küche", counter_start=5),
        ],
    )


def test_title_depends_on_category():
    assert report_title(Report(damage_category="Leckortung")) == "Leckortungsbericht"
    assert report_title(Report(damage_category="Trocknung")) == "Trocknungsbericht"
    assert report_title(Report()) == "Schadensbericht"


def test_filename_uses_safe_id():
    assert document_filename(Report(id="P 1/2")) == "Schadensbericht_P_1_2.pdf"


def test_rooms_without_content_are_omitted_and_sorted():
    rooms = qualifying_rooms(sample_report())

    assert [(r.apartment, r.name) for r in rooms] == [("1. OG", "Korridor"), ("1. OG", "Küche"), ("2. OG", "Bad")]


def test_summary_only_lists_complete_readings():
    rows, total_hours, total_kwh = summary_rows(sample_report())

    assert [e.device_number for e in rows] == ["1", "2"]
    assert total_hours == 78
    assert total_kwh == 50


async def test_render_writes_pdf(renderer, media, png_bytes):
    report = sample_report()
    stored = await media.upload(report.id, "bad.png", png_bytes, "image/png")
    report.images[0].storage_path = stored.storage_path
    report.images.append(
        ReportImage(name="ursache.png", category=ImageCategory.DAMAGE_PHOTOS.value, storage_path=stored.storage_path)
    )

    document = await renderer.render(report, cause="Defekte Kaltwasserleitung")

    assert document.filename == "Schadensbericht_P-2026-01-1000.pdf"
    assert document.path.exists()
    assert document.content.startswith(b"%PDF")

    text = "\n".join(page.extract_text() for page in PdfReader(io.BytesIO(document.content)).pages)
    assert "Schadensbericht" in text
    assert "Defekte Kaltwasserleitung" in text
    assert "Seite 1 von" in text


async def test_generated_title_is_not_printed(renderer):
    document = await renderer.render(Report(id="TMP-1700000000000", project_title="TMP-1700000000000"))

    text = PdfReader(io.BytesIO(document.content)).pages[0].extract_text()
    assert "Projekt: TMP-" not in text
