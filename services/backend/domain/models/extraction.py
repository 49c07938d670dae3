"""Extraction schemas - the JSON object the AI collaborator is asked to return"""
from typing import Annotated, Any, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Group(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> str:
        if value is None or isinstance(value, (dict, list)):
            return ""
        return str(value)


class ProjectData(_Group):
    interne_id: str = ""
    externe_ref: str = ""
    auftrags_nr: str = ""


class AssignmentData(_Group):
    firma: str = ""
    sachbearbeiter: str = ""
    leistungsart: str = ""


class BillingData(_Group):
    eigentuemer: str = ""
    strasse: str = ""
    plz_ort: str = ""
    email_rechnung: str = ""
    vermerk: str = ""


class DamageLocation(_Group):
    strasse_nr: str = ""
    plz_ort: str = ""
    etage_wohnung: str = ""


class ExtractedContact(_Group):
    name: str = ""
    rolle: str = ""
    telefon: str = ""
    wohnung: str = ""


class ExtractionResult(BaseModel):
    """Loosely-typed AI answer; unknown keys are dropped, broken groups become empty"""

    model_config = ConfigDict(extra="ignore")

    projekt_daten: ProjectData = Field(default_factory=ProjectData)
    auftrag_verwaltung: AssignmentData = Field(default_factory=AssignmentData)
    rechnungs_details: BillingData = Field(default_factory=BillingData)
    schadenort: DamageLocation = Field(default_factory=DamageLocation)
    kontakte: List[ExtractedContact] = Field(default_factory=list)
    gap_analysis: List[str] = Field(default_factory=list)

    @field_validator(
        "projekt_daten", "auftrag_verwaltung", "rechnungs_details", "schadenort",
        mode="before",
    )
    @classmethod
    def _group_or_empty(cls, value: Any):
        return value if isinstance(value, dict) else {}

    @field_validator("kontakte", mode="before")
    @classmethod
    def _contacts_or_empty(cls, value: Any):
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    @field_validator("gap_analysis", mode="before")
    @classmethod
    def _gaps_or_empty(cls, value: Any):
        if isinstance(value, str):
            return [value] if value.strip() else []
        if not isinstance(value, list):
            return []
        return [str(item) for item in value if item not in (None, "")]


class ExtractionSuccess(BaseModel):
    kind: Literal["success"] = "success"
    model: str = ""
    data: ExtractionResult


class ExtractionParseError(BaseModel):
    """The collaborator answered, but not with a JSON object"""

    kind: Literal["parse_error"] = "parse_error"
    model: str = ""
    error: str
    raw: str = ""
    data: ExtractionResult = Field(default_factory=ExtractionResult)


ExtractionOutcome = Annotated[
    Union[ExtractionSuccess, ExtractionParseError],
    Field(discriminator="kind"),
]
