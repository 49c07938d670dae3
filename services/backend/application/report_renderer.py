"""
Report document renderer (reportlab platypus)

Builds the printable A4 damage report from a finalized report: header,
metadata, description, cause with photos, one section per qualifying room,
plans and the equipment consumption summary.
"""
import asyncio
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple
from xml.sax.saxutils import escape

import structlog
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from reportlab.platypus.flowables import Flowable

from domain.exceptions import MediaUploadError
from domain.models import EquipmentEntry, ImageCategory, Report, ReportImage, Room
from infrastructure.media import MediaStorage, safe_name

logger = structlog.get_logger()

NOT_AVAILABLE = "noch nicht verfügbar"
MISSING_IMAGE = "[ BILD NICHT VERFÜGBAR ]"
MARGIN = 20 * mm
CONTENT_WIDTH = A4[0] - 2 * MARGIN
THUMB_WIDTH = CONTENT_WIDTH / 2 - 4 * mm
THUMB_HEIGHT = 65 * mm


@dataclass
class CompanyInfo:
    name: str
    address: str
    web: str
    phone: str

    @property
    def footer_line(self) -> str:
        return " | ".join(part for part in (self.name, self.address, self.web, self.phone) if part)


@dataclass
class RenderedDocument:
    filename: str
    path: Path
    content: bytes


def report_title(report: Report) -> str:
    if report.damage_category == "Leckortung":
        return "Leckortungsbericht"
    if report.damage_category == "Trocknung":
        return "Trocknungsbericht"
    return "Schadensbericht"


def document_filename(report: Report) -> str:
    return f"Schadensbericht_{safe_name(report.id or 'Neu')}.pdf"


def _format_number(value: Optional[float]) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _format_date(value) -> str:
    return value.strftime("%d.%m.%Y") if value else NOT_AVAILABLE


def _markup(text: str) -> str:
    return escape(text).replace("\n", "<br/>")


def _printable(image: ReportImage) -> bool:
    return image.include_in_report and not image.is_document and not image.error


def room_images(report: Report, room: Room) -> List[ReportImage]:
    """Included photos of a room; legacy entries are matched by room name"""
    return [
        image
        for image in report.images
        if _printable(image)
        and (image.room_id == room.id or (image.room_id is None and image.category in (room.name, room.label)))
    ]


def category_images(report: Report, category: ImageCategory) -> List[ReportImage]:
    return [image for image in report.images if _printable(image) and image.category == category.value]


def qualifying_rooms(report: Report) -> List[Room]:
    """Rooms with an included photo or description text, ordered by unit then name"""
    rooms = [room for room in report.rooms if room_images(report, room) or room.description.strip()]
    return sorted(rooms, key=lambda room: (room.apartment.lower(), room.name.lower()))


def summary_rows(report: Report) -> Tuple[List[EquipmentEntry], float, float]:
    """Devices with both counter readings, plus totals of hours and kWh"""
    rows = [e for e in report.equipment if e.counter_start is not None and e.counter_end is not None]
    total_hours = round(sum(e.hours or 0 for e in rows), 2)
    total_kwh = round(sum(e.consumption or 0 for e in rows), 2)
    return rows, total_hours, total_kwh


class NumberedCanvas(canvas.Canvas):
    """Draws the company footer and "Seite n von m" once the page count is known"""

    footer_line = ""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(total)
            super().showPage()
        super().save()

    def _draw_footer(self, total: int) -> None:
        width, _ = A4
        self.setFont("Helvetica", 8)
        self.setFillColor(colors.grey)
        self.drawCentredString(width / 2, 10 * mm, self.footer_line)
        self.drawRightString(width - MARGIN, 6 * mm, f"Seite {self._pageNumber} von {total}")


class ReportDocumentRenderer:
    def __init__(self, output_dir: str, company: CompanyInfo, media: MediaStorage):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.company = company
        self.media = media
        self.styles = self._build_styles()

    @staticmethod
    def _build_styles():
        styles = getSampleStyleSheet()
        styles.add(ParagraphStyle(name="QSTitle", parent=styles["Title"], alignment=TA_LEFT, fontSize=20))
        styles.add(ParagraphStyle(name="QSSection", parent=styles["Heading2"], textColor=colors.HexColor("#1e3a8a")))
        styles.add(ParagraphStyle(name="QSApartment", parent=styles["Heading3"], textColor=colors.HexColor("#334155")))
        styles.add(ParagraphStyle(name="QSRoom", parent=styles["Heading4"]))
        styles.add(ParagraphStyle(name="QSSmall", parent=styles["Normal"], fontSize=8, textColor=colors.grey))
        styles.add(ParagraphStyle(name="QSMissing", parent=styles["Normal"], fontSize=8, alignment=TA_CENTER,
                                  textColor=colors.HexColor("#ef4444")))
        return styles

    async def render(self, report: Report, cause: str = "") -> RenderedDocument:
        images = await self._load_images(report)
        document = await asyncio.to_thread(self._write, report, cause, images)
        logger.info("report_document_rendered", report_id=report.id, path=str(document.path), size=len(document.content))
        return document

    def _write(self, report: Report, cause: str, images: Dict[str, bytes]) -> RenderedDocument:
        story = self.build_story(report, cause, images)

        buf = io.BytesIO()
        doc = SimpleDocTemplate(
            buf,
            pagesize=A4,
            leftMargin=MARGIN,
            rightMargin=MARGIN,
            topMargin=MARGIN,
            bottomMargin=MARGIN,
            title=report_title(report),
            author=self.company.name,
        )
        footer_canvas = type("FooterCanvas", (NumberedCanvas,), {"footer_line": self.company.footer_line})
        doc.build(story, canvasmaker=footer_canvas)

        content = buf.getvalue()
        filename = document_filename(report)
        path = self.output_dir / filename
        path.write_bytes(content)
        return RenderedDocument(filename=filename, path=path, content=content)

    async def _load_images(self, report: Report) -> Dict[str, bytes]:
        loaded: Dict[str, bytes] = {}
        for image in report.images:
            if not _printable(image) or not image.storage_path:
                continue
            try:
                loaded[image.id] = await self.media.download(image.storage_path)
            except MediaUploadError as e:
                logger.warning("report_image_unavailable", image_id=image.id, error=str(e))
        return loaded

    # ------------------------------------------------------------------
    # Story

    def build_story(self, report: Report, cause: str, images: Dict[str, bytes]) -> List[Flowable]:
        styles = self.styles
        story: List[Flowable] = []

        story.append(Paragraph(self.company.name, styles["QSSmall"]))
        story.append(Spacer(1, 6))
        story.append(Paragraph(report_title(report), styles["QSTitle"]))
        subtitle = " ".join(part for part in (report.street, report.zip, report.city) if part)
        if report.damage_type:
            subtitle = f"{subtitle} - {report.damage_type}".strip(" -")
        if subtitle:
            story.append(Paragraph(_markup(subtitle), styles["Normal"]))
        if report.project_title and not report.project_title.startswith("TMP-"):
            story.append(Paragraph(_markup(f"Projekt: {report.project_title}"), styles["Normal"]))
        story.append(Spacer(1, 12))

        story.append(self._metadata_table(report))
        story.append(Spacer(1, 12))

        if report.description:
            story.append(Paragraph("Schadenbeschreibung", styles["QSSection"]))
            story.append(Paragraph(_markup(report.description), styles["Normal"]))
            story.append(Spacer(1, 12))

        cause_text = cause.strip() or report.cause
        cause_photos = category_images(report, ImageCategory.DAMAGE_PHOTOS)
        if cause_text or cause_photos:
            story.append(Paragraph("Schadenursache", styles["QSSection"]))
            if cause_text:
                story.append(Paragraph(_markup(cause_text), styles["Normal"]))
                story.append(Spacer(1, 6))
            if cause_photos:
                story.append(self._image_grid(cause_photos, images))
            story.append(Spacer(1, 12))

        rooms = qualifying_rooms(report)
        if rooms:
            story.append(Paragraph("Raumdokumentation", styles["QSSection"]))
            current_apartment = None
            for room in rooms:
                if room.apartment and room.apartment != current_apartment:
                    story.append(Paragraph(_markup(room.apartment), styles["QSApartment"]))
                current_apartment = room.apartment
                story.append(Paragraph(_markup(room.name), styles["QSRoom"]))
                if room.description:
                    story.append(Paragraph(_markup(room.description), styles["Normal"]))
                photos = room_images(report, room)
                if photos:
                    story.append(self._image_grid(photos, images))
                story.append(Spacer(1, 8))

        plans = category_images(report, ImageCategory.PLANS)
        if plans:
            story.append(Paragraph("Pläne &amp; Grundrisse", styles["QSSection"]))
            story.append(self._image_grid(plans, images))
            story.append(Spacer(1, 12))

        summary = self._equipment_table(report)
        if summary is not None:
            story.append(Paragraph("Trocknungsgeräte - Verbrauch", styles["QSSection"]))
            story.append(summary)

        return story

    def _metadata_table(self, report: Report) -> Table:
        rows = [
            ("Projekt-Nr.", report.project_number),
            ("Auftrags-Nr.", report.order_number),
            ("Schaden-Nr.", report.damage_number),
            ("Externe Ref.", report.external_ref),
            ("Datum", report.date.strftime("%d.%m.%Y") if report.date else ""),
            ("Auftraggeber", report.client),
            ("Adresse", report.address),
            ("Lage", report.location_details),
            ("Versicherung", report.insurance),
            ("Schadenart", report.damage_type),
            ("Status", report.status.value),
        ]
        data = [[label, Paragraph(_markup(value), self.styles["Normal"])] for label, value in rows if value]
        table = Table(data, colWidths=[40 * mm, CONTENT_WIDTH - 40 * mm])
        table.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
            ("LEFTPADDING", (0, 0), (-1, -1), 0),
            ("LINEBELOW", (0, 0), (-1, -1), 0.25, colors.lightgrey),
        ]))
        return table

    def _thumbnail(self, image: ReportImage, images: Dict[str, bytes]) -> List[Flowable]:
        cell: List[Flowable] = []
        content = images.get(image.id)
        flowable = None
        if content:
            try:
                width, height = ImageReader(io.BytesIO(content)).getSize()
                scale = min(THUMB_WIDTH / width, THUMB_HEIGHT / height)
                flowable = Image(io.BytesIO(content), width=width * scale, height=height * scale)
            except (OSError, ValueError) as e:
                logger.warning("report_image_unreadable", image_id=image.id, error=str(e))

        cell.append(flowable or Paragraph(MISSING_IMAGE, self.styles["QSMissing"]))
        if image.description:
            cell.append(Paragraph(_markup(image.description), self.styles["QSSmall"]))
        return cell

    def _image_grid(self, photos: Sequence[ReportImage], images: Dict[str, bytes]) -> Table:
        cells = [self._thumbnail(image, images) for image in photos]
        rows = [cells[i:i + 2] for i in range(0, len(cells), 2)]
        if len(rows[-1]) == 1:
            rows[-1].append("")
        table = Table(rows, colWidths=[CONTENT_WIDTH / 2, CONTENT_WIDTH / 2])
        table.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("ALIGN", (0, 0), (-1, -1), "CENTER"),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
        ]))
        return table

    def _equipment_table(self, report: Report) -> Optional[Table]:
        rows, total_hours, total_kwh = summary_rows(report)
        if not rows:
            return None

        data = [["Gerät", "Raum", "Start", "Ende", "Tage", "Zähler Start", "Zähler Ende", "kWh", "Std."]]
        for entry in rows:
            data.append([
                f"#{entry.device_number}",
                Paragraph(_markup(entry.group_key), self.styles["QSSmall"]),
                _format_date(entry.start_date),
                _format_date(entry.end_date),
                NOT_AVAILABLE if entry.duration_days is None else str(entry.duration_days),
                _format_number(entry.counter_start),
                _format_number(entry.counter_end),
                _format_number(entry.consumption),
                _format_number(entry.hours),
            ])
        data.append(["Total", "", "", "", "", "", "", _format_number(total_kwh), _format_number(total_hours)])

        widths = [16 * mm, 32 * mm, 18 * mm, 18 * mm, 12 * mm, 20 * mm, 20 * mm, 17 * mm, 17 * mm]
        table = Table(data, colWidths=widths, repeatRows=1)
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 7),
            ("ALIGN", (4, 0), (-1, -1), "RIGHT"),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
            ("LINEABOVE", (0, -1), (-1, -1), 1, colors.black),
        ]))
        return table
