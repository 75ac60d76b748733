from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from .models import Recommendation


HEADERS: list[str] = [
    "AnimalId",
    "CandidateId",
    "Confidence",
    "InbreedingCoefficient",
    "Risk",
    "Reason",
    "UpdatedAt",
]


def _gain_header(trait: str) -> str:
    return f"Gain_{' '.join(trait.split())}"


def _required_headers(recommendations: list[Recommendation]) -> list[str]:
    """
    Fixed columns, then one Gain_<trait> column per goal trait seen.
    """
    headers = list(HEADERS)
    for rec in recommendations:
        for gain in rec.expected_outcome.genetic_gain:
            h = _gain_header(gain.trait)
            if h not in headers:
                headers.append(h)
    return headers


def _get_or_create_sheet(wb: Workbook, sheet_name: str) -> Worksheet:
    if sheet_name in wb.sheetnames:
        return wb[sheet_name]
    return wb.create_sheet(title=sheet_name)


def _read_headers(ws: Worksheet) -> list[str]:
    if ws.max_row < 1:
        return []
    out: list[str] = []
    for cell in ws[1]:
        v = cell.value
        out.append(str(v) if v is not None else "")
    while out and out[-1] == "":
        out.pop()
    return out


def _write_headers(ws: Worksheet, headers: list[str]) -> None:
    for col_idx, h in enumerate(headers, start=1):
        ws.cell(row=1, column=col_idx, value=h)


def _ensure_headers(ws: Worksheet, required: list[str]) -> list[str]:
    """
    Keep headers consistent across runs. New columns are appended and
    existing rows backfilled (0 for gains, "" otherwise).
    """
    existing = _read_headers(ws)

    if not existing:
        _write_headers(ws, required)
        return required

    new_cols = [h for h in required if h not in set(existing)]
    if not new_cols:
        return existing

    updated = existing + new_cols
    _write_headers(ws, updated)

    for r in range(2, ws.max_row + 1):
        for c in range(len(existing) + 1, len(updated) + 1):
            ws.cell(row=r, column=c, value=0 if updated[c - 1].startswith("Gain_") else "")

    return updated


def _cell_str(v: Any) -> str:
    return "" if v is None else str(v).strip()


def _row_values(rec: Recommendation, updated_at: str) -> dict[str, Any]:
    outcome = rec.expected_outcome
    row: dict[str, Any] = {
        "AnimalId": rec.animal_id,
        "CandidateId": rec.candidate_id,
        "Confidence": round(rec.confidence_score, 4),
        "InbreedingCoefficient": round(outcome.inbreeding_coefficient, 6),
        "Risk": outcome.risk,
        "Reason": rec.reason,
        "UpdatedAt": updated_at,
    }
    for gain in outcome.genetic_gain:
        row[_gain_header(gain.trait)] = round(gain.improvement, 2)
    return row


def upsert_recommendations(
    *,
    xlsx_path: Path,
    recommendations: list[Recommendation],
    sheet_name: str = "Recommendations",
    updated_at: Optional[str] = None,
) -> int:
    """
    UPSERT one row per recommendation into the Excel table.

    Behavior:
      - If file doesn't exist: create with headers.
      - Stable key: (AnimalId, CandidateId). A matching row is overwritten;
        extra duplicates of that key are deleted (keep first).
      - No match: append a new row.
      - New goal traits add Gain_<trait> columns, old rows backfilled with 0.

    Returns the number of rows written.
    """
    xlsx_path = Path(xlsx_path)
    existed = xlsx_path.exists()
    updated_at = updated_at or datetime.now(timezone.utc).replace(microsecond=0).isoformat()

    wb = load_workbook(xlsx_path) if existed else Workbook()
    ws = _get_or_create_sheet(wb, sheet_name)

    # Remove default "Sheet" if it's empty and we're creating a new named sheet
    if not existed and "Sheet" in wb.sheetnames and sheet_name != "Sheet":
        default_ws = wb["Sheet"]
        if default_ws.max_row == 1 and default_ws.max_column == 1 and default_ws["A1"].value is None:
            wb.remove(default_ws)

    headers = _ensure_headers(ws, _required_headers(recommendations))
    header_to_col = {h: i + 1 for i, h in enumerate(headers)}
    col_animal = header_to_col["AnimalId"]
    col_candidate = header_to_col["CandidateId"]

    written = 0
    for rec in recommendations:
        row_data = _row_values(rec, updated_at)
        for h in headers:
            if h not in row_data:
                row_data[h] = 0 if h.startswith("Gain_") else ""

        matches = [
            r for r in range(2, ws.max_row + 1)
            if _cell_str(ws.cell(row=r, column=col_animal).value) == rec.animal_id
            and _cell_str(ws.cell(row=r, column=col_candidate).value) == rec.candidate_id
        ]

        if matches:
            target_row = matches[0]
            # Delete extra duplicates (bottom to top to preserve indices)
            for r in sorted(matches[1:], reverse=True):
                ws.delete_rows(r, 1)
        else:
            target_row = ws.max_row + 1 if ws.max_row >= 1 else 2

        for h, v in row_data.items():
            col = header_to_col.get(h)
            if col is not None:
                ws.cell(row=target_row, column=col, value=v)
        written += 1

    wb.save(xlsx_path)
    return written
