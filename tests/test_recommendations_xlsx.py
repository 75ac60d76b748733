from __future__ import annotations

from pathlib import Path

from openpyxl import load_workbook

from herdline.models import ExpectedOutcome, GeneticGain, Recommendation
from herdline.recommendations_xlsx import upsert_recommendations


def _read_rows(path: Path, sheet: str) -> list[dict[str, object]]:
    wb = load_workbook(path)
    ws = wb[sheet]
    headers = [c.value for c in ws[1]]
    out = []
    for r in range(2, ws.max_row + 1):
        out.append({headers[i]: ws.cell(row=r, column=i + 1).value for i in range(len(headers))})
    return out


def _rec(candidate: str, confidence: float, gains: list[GeneticGain] | None = None) -> Recommendation:
    return Recommendation(
        animal_id="DOE-1",
        candidate_id=candidate,
        confidence_score=confidence,
        reason="no common ancestors",
        expected_outcome=ExpectedOutcome(inbreeding_coefficient=0.0, risk="low", genetic_gain=gains or []),
    )


def test_upsert_by_animal_and_candidate(tmp_path: Path) -> None:
    xlsx = tmp_path / "recs.xlsx"

    upsert_recommendations(xlsx_path=xlsx, recommendations=[_rec("BUCK-1", 0.8), _rec("BUCK-2", 0.5)])
    rows1 = _read_rows(xlsx, "Recommendations")
    assert [r["CandidateId"] for r in rows1] == ["BUCK-1", "BUCK-2"]
    assert load_workbook(xlsx).sheetnames == ["Recommendations"]

    # Same key, changed values => overwrite, not append
    upsert_recommendations(xlsx_path=xlsx, recommendations=[_rec("BUCK-1", 0.65)])
    rows2 = _read_rows(xlsx, "Recommendations")
    assert len(rows2) == 2
    assert rows2[0]["Confidence"] == 0.65


def test_new_goal_trait_adds_column_and_backfills(tmp_path: Path) -> None:
    xlsx = tmp_path / "recs.xlsx"
    upsert_recommendations(xlsx_path=xlsx, recommendations=[_rec("BUCK-1", 0.8)], sheet_name="Goats")

    gain = GeneticGain(trait="milk_yield_genetics", value=900.0, improvement=12.5)
    upsert_recommendations(xlsx_path=xlsx, recommendations=[_rec("BUCK-2", 0.7, [gain])], sheet_name="Goats")

    rows = _read_rows(xlsx, "Goats")
    assert rows[0]["Gain_milk_yield_genetics"] == 0
    assert rows[1]["Gain_milk_yield_genetics"] == 12.5


def test_upsert_removes_duplicates(tmp_path: Path) -> None:
    xlsx = tmp_path / "recs.xlsx"
    upsert_recommendations(xlsx_path=xlsx, recommendations=[_rec("BUCK-1", 0.8)])

    # Force a duplicate row (simulating a hand-edited sheet)
    wb = load_workbook(xlsx)
    ws = wb["Recommendations"]
    ws.append([c.value for c in ws[2]])
    wb.save(xlsx)
    assert len(_read_rows(xlsx, "Recommendations")) == 2

    upsert_recommendations(xlsx_path=xlsx, recommendations=[_rec("BUCK-1", 0.9)])
    rows = _read_rows(xlsx, "Recommendations")
    assert len(rows) == 1
    assert rows[0]["Confidence"] == 0.9
