"""Exportación del historial diario a Excel formateado."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.styles import Alignment, Border, Font, Side

from diet_tracker.metrics import DaySummary

_DIA_SEMANA: tuple[str, ...] = ("lun", "mar", "mie", "jue", "vie", "sab", "dom")

HISTORY_COLUMNS = ["date", "am_kg", "pm_kg", "kcal", "meals"]

_HEADER_MAP: dict[str, str] = {
    "weekday": "Día",
    "date": "Fecha",
    "am_kg": "Peso mañana (kg)",
    "pm_kg": "Peso noche (kg)",
    "kcal": "Calorías (kcal)",
    "meals": "Comidas",
}

_WIDTHS: tuple[tuple[str, int], ...] = (
    ("Día", 6),
    ("Fecha", 12),
    ("Peso mañana (kg)", 14),
    ("Peso noche (kg)", 14),
    ("Calorías (kcal)", 12),
    ("Comidas", 48),
)

_NUMBER_FORMATS: dict[str, str] = {
    "Fecha": "dd/mm/yyyy",
    "Peso mañana (kg)": "0.0",
    "Peso noche (kg)": "0.0",
    "Calorías (kcal)": "#,##0",
}


@dataclass(frozen=True)
class ExcelLayout:
    """Layout/formatting configuration for the history sheet."""

    sheet_name: str = "Historial"


def history_frame(days: Sequence[DaySummary]) -> pd.DataFrame:
    """One row per day, newest first, with both slots and the meal list."""
    rows = [
        {
            "date": d.day,
            "am_kg": d.am.kilograms if d.am else None,
            "pm_kg": d.pm.kilograms if d.pm else None,
            "kcal": d.total_kilocalories,
            "meals": "\n".join(_meal_label(m.note, m.kilocalories) for m in d.meals),
        }
        for d in days
    ]
    return pd.DataFrame(rows, columns=HISTORY_COLUMNS)


def _meal_label(note: str, kcal: int | None) -> str:
    return note if kcal is None else f"{note} ({kcal} kcal)"


def _weekday_label(day: object) -> str:
    """Etiqueta de 3 letras para la fecha (vacío si no hay fecha)."""
    if day is None or (isinstance(day, float) and pd.isna(day)):
        return ""
    weekday = getattr(day, "weekday", None)
    if weekday is None:
        return ""
    return _DIA_SEMANA[weekday()]


def write_history_xlsx(
    days: Sequence[DaySummary], out_path: Path, layout: ExcelLayout
) -> None:
    """Write the day-grouped history to a formatted XLSX file.

    Args:
        days: Output of ``group_by_day``.
        out_path: Output path for the XLSX file.
        layout: Excel layout parameters.
    """
    out_path.parent.mkdir(parents=True, exist_ok=True)

    export_df = history_frame(days)
    export_df.insert(0, "weekday", export_df["date"].map(_weekday_label))
    export_df = export_df.rename(columns=_HEADER_MAP)

    with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
        export_df.to_excel(writer, index=False, sheet_name=layout.sheet_name)
        ws = writer.book[layout.sheet_name]
        _format_sheet(ws)


def _style_header_row(ws: Any) -> None:
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    header_font = Font(bold=True)
    center = Alignment(horizontal="center", vertical="center", wrap_text=True)
    for cell in ws[1]:
        cell.font = header_font
        cell.alignment = center
        cell.border = border


def _style_body_rows(ws: Any) -> None:
    """Borde en todas las celdas; comidas alineadas a la izquierda."""
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    center = Alignment(horizontal="center", vertical="center", wrap_text=True)
    left = Alignment(horizontal="left", vertical="top", wrap_text=True)
    meals_idx = _get_header_col_index(ws).get("Comidas")
    for row in ws.iter_rows(min_row=2):
        for cell in row:
            cell.alignment = left if cell.column == meals_idx else center
            cell.border = border


def _get_header_col_index(ws: Any) -> dict[str, int]:
    """Devuelve mapa nombre de cabecera -> índice de columna (1-based)."""
    headers = [str(cell.value) for cell in ws[1]]
    return {name: idx + 1 for idx, name in enumerate(headers)}


def _apply_column_widths(ws: Any, col_index: dict[str, int]) -> None:
    for header, width in _WIDTHS:
        idx = col_index.get(header)
        if idx is not None:
            letter = ws.cell(row=1, column=idx).column_letter
            ws.column_dimensions[letter].width = width


def _apply_number_formats(ws: Any, col_index: dict[str, int]) -> None:
    for row in ws.iter_rows(min_row=2):
        for header, fmt in _NUMBER_FORMATS.items():
            idx = col_index.get(header)
            if idx is not None:
                row[idx - 1].number_format = fmt


def _format_sheet(ws: Any) -> None:
    """Apply borders, widths and number formats to a worksheet.

    Args:
        ws: openpyxl worksheet.
    """
    _style_header_row(ws)
    _style_body_rows(ws)
    col_index = _get_header_col_index(ws)
    _apply_column_widths(ws, col_index)
    _apply_number_formats(ws, col_index)
