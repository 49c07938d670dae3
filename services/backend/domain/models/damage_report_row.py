"""Remote row shape of the reports table (flat columns + embedded report)"""
from typing import Optional, Dict, Any
import datetime as dt
from sqlmodel import SQLModel, Field, Column
from sqlalchemy import JSON, DateTime

from .report import Report, utc_now


class DamageReportRow(SQLModel, table=True):
    __tablename__ = "damage_reports"

    id: str = Field(primary_key=True)
    project_title: Optional[str] = Field(default=None, index=True)
    client: Optional[str] = None
    address: Optional[str] = None
    status: Optional[str] = Field(default=None, index=True)
    assigned_to: Optional[str] = None
    date: Optional[dt.date] = None
    drying_started: Optional[dt.date] = None

    # Full report as written by the app; the flat columns are for filtering only
    report_data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    created_at: dt.datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: dt.datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))

    @classmethod
    def from_report(cls, report: Report) -> "DamageReportRow":
        return cls(
            id=report.id,
            project_title=report.project_title or None,
            client=report.client or None,
            address=report.address or None,
            status=report.status.value,
            assigned_to=report.assigned_to or None,
            date=report.date,
            drying_started=report.drying_started,
            report_data=report.model_dump(mode="json"),
            updated_at=utc_now(),
        )

    def apply(self, other: "DamageReportRow") -> None:
        """Copy every column except id/created_at from a freshly mapped row"""
        for key in (
            "project_title",
            "client",
            "address",
            "status",
            "assigned_to",
            "date",
            "drying_started",
            "report_data",
            "updated_at",
        ):
            setattr(self, key, getattr(other, key))
