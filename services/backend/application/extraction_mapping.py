"""
AI extraction: instruction prompt, response parsing and mapping onto a report

The collaborator is asked to follow the prompt rules, but nothing it returns
is trusted. Responses are parsed into a tagged result and the same rules
(no placeholders, owner/address cut-off, closed role list, phone format)
are applied again deterministically before the user sees the preview.
"""
import json
import re
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from domain.models import Contact, ContactRole, ExtractionParseError, ExtractionResult, ExtractionSuccess
from domain.models.report import PLACEHOLDER_TOKENS, clean_text, parse_address

EXTRACTION_INSTRUCTIONS = """Du bist der Assistent der Q-Service Wasserschaden-App.
Lies den folgenden Auftragstext (E-Mail, PDF oder Notiz) und fülle die Felder der Erfassungsmaske.

1. ADRESS-TRENNUNG BEIM EIGENTÜMER
   - 'eigentuemer' enthält NUR den Namen der Person oder Firma.
   - Sobald 'Strasse', 'Str.', eine Hausnummer, eine PLZ oder ein Ort folgt, endet das Feld sofort.
   - Strasse und Nummer gehören in 'strasse', PLZ und Ort in 'plz_ort'.
     Stehen Adressdaten im Text, bleiben diese Felder nie leer.

2. ROLLEN (nur diese Kürzel)
   - 'Mieter': Bewohner der betroffenen Wohnung
   - 'Eig.': Eigentümer der Liegenschaft
   - 'HW': Hauswart / Hausmeister
   - 'Verw.': Liegenschaftsverwaltung
   - 'Handw.': externe Firmen und Techniker; Absender mit Firmen-Signatur sind immer 'Handw.', nie 'Mieter'
   - 'Sonst.': wenn keine Zuordnung möglich ist

3. KONTAKTE
   - Eine Karte pro Person, Name und Firma sauber getrennt.
   - Telefonnummern im Format +41 XX XXX XX XX.

4. KEINE PLATZHALTER
   - Unbekannte Werte sind ein leerer String "". Gib niemals "string", "unset", "n/a" oder Vorlagentext zurück.

5. LÜCKEN
   - 'gap_analysis' listet in kurzen Sätzen die Pflichtangaben, die im Text fehlen.

BEISPIEL
   "Eigentümer: Avadis Anlagestiftung Zollstrasse 42 8005 Zürich"
   -> eigentuemer: "Avadis Anlagestiftung", strasse: "Zollstrasse 42", plz_ort: "8005 Zürich"

AUSGABE: genau ein JSON-Objekt, ohne Markdown, in dieser Form:
{
  "projekt_daten": {"interne_id": "", "externe_ref": "", "auftrags_nr": ""},
  "auftrag_verwaltung": {"firma": "", "sachbearbeiter": "", "leistungsart": ""},
  "rechnungs_details": {"eigentuemer": "", "strasse": "", "plz_ort": "", "email_rechnung": "", "vermerk": ""},
  "schadenort": {"strasse_nr": "", "plz_ort": "", "etage_wohnung": ""},
  "kontakte": [{"name": "", "rolle": "", "telefon": "", "wohnung": ""}],
  "gap_analysis": []
}"""

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_STREET_TOKEN_RE = re.compile(r"(strasse|straße|str\.|weg|gasse|platz|allee|quai)$", re.IGNORECASE)
_ZIP_TOKEN_RE = re.compile(r"^\d{4,5}$")
_HOUSE_NUMBER_RE = re.compile(r"^\d{1,3}[a-zA-Z]?$")
# Leading words of street names that carry no suffix (Via Cantonale, Im Hof, Rue du Lac)
_STREET_PREFIXES = {
    "via", "viale", "piazza", "corso", "vicolo", "rue", "route", "rte", "chemin", "ch.", "avenue", "av.",
    "place", "im", "am", "an", "auf", "in", "zum", "zur", "hinter", "unter", "ob", "obere", "untere",
}
_TEMPLATE_ECHO_RE = re.compile(r"\bx{2,}\b|^\s*\S+(\s*\|\s*\S+){2,}\s*$", re.IGNORECASE)

ROLE_ALIASES = {
    "mieter": ContactRole.RESIDENT,
    "bewohner": ContactRole.RESIDENT,
    "eig.": ContactRole.OWNER,
    "eig": ContactRole.OWNER,
    "eigentümer": ContactRole.OWNER,
    "eigentuemer": ContactRole.OWNER,
    "hw": ContactRole.CARETAKER,
    "hauswart": ContactRole.CARETAKER,
    "abwart": ContactRole.CARETAKER,
    "hausmeister": ContactRole.CARETAKER,
    "verw.": ContactRole.MANAGEMENT,
    "verw": ContactRole.MANAGEMENT,
    "verwaltung": ContactRole.MANAGEMENT,
    "handw.": ContactRole.CONTRACTOR,
    "handw": ContactRole.CONTRACTOR,
    "handwerker": ContactRole.CONTRACTOR,
    "techniker": ContactRole.CONTRACTOR,
    "sonst.": ContactRole.OTHER,
    "sonst": ContactRole.OTHER,
    "sonstiges": ContactRole.OTHER,
}

MIN_CONTACT_SLOTS = 4


def strip_code_fences(raw: str) -> str:
    return _FENCE_RE.sub("", raw.strip()).strip()


def parse_extraction_response(raw: str, model: str = ""):
    """Tagged result: ExtractionSuccess, or ExtractionParseError with empty data"""
    text = strip_code_fences(raw or "")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        return ExtractionParseError(model=model, error=f"invalid JSON: {e.msg}", raw=text)

    if not isinstance(payload, dict):
        return ExtractionParseError(model=model, error="response is not a JSON object", raw=text)

    try:
        return ExtractionSuccess(model=model, data=ExtractionResult.model_validate(payload))
    except ValidationError as e:
        return ExtractionParseError(model=model, error=str(e), raw=text)


def scrub(value: str) -> str:
    """Empty string for placeholders and echoed template text"""
    value = clean_text(value or "")
    if value.lower() in PLACEHOLDER_TOKENS or _TEMPLATE_ECHO_RE.search(value):
        return ""
    return value


def _numbered_street_start(tokens: List[str], zip_index: int) -> Optional[int]:
    """Index of the first word of "<street words> <house number>" right before the zip"""
    number = zip_index - 1
    if number < 1 or not _HOUSE_NUMBER_RE.match(tokens[number]):
        return None

    start = number - 1
    while start > 0 and (tokens[start - 1].lower() in _STREET_PREFIXES or tokens[start - 1][:1].islower()):
        start -= 1
    return start


def split_owner_address(owner: str) -> Tuple[str, str, str]:
    """
    Cut an owner string at the first address-like token

    "Avadis Anlagestiftung Zollstrasse 42 8005 Zürich"
    -> ("Avadis Anlagestiftung", "Zollstrasse 42", "8005 Zürich")
    """
    tokens = owner.split()
    bare = [token.strip(",;") for token in tokens]
    cut = next(
        (i for i, token in enumerate(bare) if _STREET_TOKEN_RE.search(token) or _ZIP_TOKEN_RE.match(token)),
        None,
    )
    if cut is not None and _ZIP_TOKEN_RE.match(bare[cut]):
        street_start = _numbered_street_start(bare, cut)
        if street_start is not None:
            cut = street_start

    if cut is None:
        return owner.strip(), "", ""

    name = " ".join(tokens[:cut]).strip(" ,;")
    rest = tokens[cut:]
    zip_index = next((i for i, t in enumerate(rest) if _ZIP_TOKEN_RE.match(t.strip(",;"))), None)
    if zip_index is None:
        return name, " ".join(rest).strip(" ,;"), ""

    street = " ".join(rest[:zip_index]).strip(" ,;")
    zip_city = " ".join(rest[zip_index:]).strip(" ,;")
    return name, street, zip_city


def normalize_role(raw: str) -> ContactRole:
    return ROLE_ALIASES.get((raw or "").strip().lower(), ContactRole.OTHER)


def format_swiss_phone(raw: str) -> str:
    """+41 XX XXX XX XX for Swiss numbers; anything else is returned trimmed"""
    value = (raw or "").strip()
    digits = re.sub(r"\D", "", value)
    if digits.startswith("0041"):
        digits = digits[2:]
    elif digits.startswith("0") and len(digits) == 10:
        digits = "41" + digits[1:]

    if digits.startswith("41") and len(digits) == 11:
        n = digits[2:]
        return f"+41 {n[:2]} {n[2:5]} {n[5:7]} {n[7:]}"
    return value


def clean_extraction(result: ExtractionResult) -> ExtractionResult:
    """Apply the prompt rules to whatever the collaborator returned"""
    data = result.model_copy(deep=True)

    for group in (data.projekt_daten, data.auftrag_verwaltung, data.rechnungs_details, data.schadenort):
        for name in type(group).model_fields:
            setattr(group, name, scrub(getattr(group, name)))

    billing = data.rechnungs_details
    owner, street, zip_city = split_owner_address(billing.eigentuemer)
    billing.eigentuemer = owner
    billing.strasse = billing.strasse or street
    billing.plz_ort = billing.plz_ort or zip_city

    location = data.schadenort
    if not location.strasse_nr and not location.plz_ort:
        location.strasse_nr = billing.strasse
        location.plz_ort = billing.plz_ort

    contacts = []
    for contact in data.kontakte:
        contact.name = scrub(contact.name)
        contact.telefon = format_swiss_phone(scrub(contact.telefon))
        contact.wohnung = scrub(contact.wohnung)
        contact.rolle = normalize_role(scrub(contact.rolle)).value
        if contact.name or contact.telefon:
            contacts.append(contact)
    data.kontakte = contacts

    data.gap_analysis = [gap for gap in (scrub(g) for g in data.gap_analysis) if gap]
    return data


def to_report_changes(result: ExtractionResult) -> Tuple[Dict[str, Any], List[Contact]]:
    """Report field values and contact list for ReportEditor.apply_import"""
    project = result.projekt_daten
    assignment = result.auftrag_verwaltung
    billing = result.rechnungs_details
    location = result.schadenort

    # "8005 Zürich" -> zip, city
    _, zip_code, city = parse_address(location.plz_ort)
    if not zip_code:
        city = location.plz_ort

    fields = {
        "project_title": project.interne_id,
        "external_ref": project.externe_ref,
        "order_number": project.auftrags_nr,
        "client": assignment.firma or billing.eigentuemer,
        "manager": assignment.sachbearbeiter,
        "service_type": assignment.leistungsart,
        "damage_type": assignment.leistungsart,
        "billing_owner": billing.eigentuemer,
        "billing_street": billing.strasse,
        "billing_zip_city": billing.plz_ort,
        "billing_email": billing.email_rechnung,
        "billing_note": billing.vermerk,
        "street": location.strasse_nr,
        "zip": zip_code,
        "city": city,
        "location_details": location.etage_wohnung,
    }

    contacts = [
        Contact(
            name=c.name,
            role=normalize_role(c.rolle),
            phone=c.telefon,
            apartment=c.wohnung,
        )
        for c in result.kontakte
    ]
    while len(contacts) < MIN_CONTACT_SLOTS:
        contacts.append(Contact())

    return fields, contacts
