from __future__ import annotations

import io
from collections.abc import Iterable

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from app.registry.modules.stakeholders.models import Stakeholder

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

EXPORT_COLUMNS: tuple[tuple[str, str], ...] = (
    ("provincia", "Provincia"),
    ("nombre", "Nombre"),
    ("organizacion_principal", "Organización principal"),
    ("otras_organizaciones", "Otras organizaciones"),
    ("persona_contacto", "Persona de contacto"),
    ("email", "Email"),
    ("telefono", "Teléfono"),
    ("website", "Website"),
    ("linkedin", "LinkedIn"),
    ("nivel_influencia", "Nivel de influencia"),
    ("nivel_interes", "Nivel de interés"),
    ("objetivos_generales", "Objetivos generales"),
    ("intereses_expectativas", "Intereses y expectativas"),
    ("recursos", "Recursos"),
    ("expectativas_comunicacion", "Expectativas de comunicación"),
    ("relaciones", "Relaciones"),
    ("riesgos_conflictos", "Riesgos y conflictos"),
    ("tags", "Etiquetas"),
)

_MAX_COLUMN_WIDTH = 60


def _sheet_text(value) -> str:
    # Control characters (e.g. \x0b from pasted Word text) are rejected by openpyxl.
    return ILLEGAL_CHARACTERS_RE.sub("", str(value or ""))


def stakeholder_row(stakeholder: Stakeholder) -> list[str]:
    contact = stakeholder.datos_contacto or {}
    values = {
        "provincia": stakeholder.provincia.nombre if stakeholder.provincia else "",
        "tags": ", ".join(t.name for t in sorted(stakeholder.tags, key=lambda t: t.name.lower())),
    }
    row = []
    for key, _header in EXPORT_COLUMNS:
        if key in values:
            value = values[key]
        elif hasattr(Stakeholder, key):
            value = getattr(stakeholder, key)
        else:
            value = contact.get(key)
        row.append(_sheet_text(value))
    return row


def build_stakeholders_workbook(stakeholders: Iterable[Stakeholder]) -> bytes:
    """One sheet, bold header row, one row per stakeholder. Returns the .xlsx bytes."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Stakeholders"

    ws.append([header for _key, header in EXPORT_COLUMNS])
    for cell in ws[1]:
        cell.font = Font(bold=True)
    ws.freeze_panes = "A2"

    widths = [len(header) for _key, header in EXPORT_COLUMNS]
    for stakeholder in stakeholders:
        row = stakeholder_row(stakeholder)
        ws.append(row)
        # Stored text only: "=..." must not become a live formula.
        for cell in ws[ws.max_row]:
            cell.data_type = "s"
        for i, value in enumerate(row):
            widths[i] = max(widths[i], len(str(value)))

    for i, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = min(width + 2, _MAX_COLUMN_WIDTH)

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()
