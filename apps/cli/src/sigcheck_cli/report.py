from __future__ import annotations
"""Rendering and export of matrix results for the CLI."""

import json
import pathlib
from typing import List

from sigcheck.matrix import MatrixResult
from sigcheck.outcomes import OutcomeStatus


def format_case_lines(result: MatrixResult) -> List[str]:
    lines: List[str] = []
    for r in result.results:
        line = f"{r.outcome.status.value:<4} {r.case.case_id}"
        if r.outcome.reason:
            line += f": {r.outcome.reason}"
        lines.append(line)
    return lines


def format_summary(result: MatrixResult) -> List[str]:
    lines = [f"Module: {result.module}"]
    for mech, rows in result.by_mechanism().items():
        counts = {s: 0 for s in OutcomeStatus}
        for r in rows:
            counts[r.outcome.status] += 1
        lines.append(
            f"  {mech:<12} pass={counts[OutcomeStatus.PASS]} "
            f"fail={counts[OutcomeStatus.FAIL]} skip={counts[OutcomeStatus.SKIP]}"
        )
    totals = result.counts()
    lines.append(
        f"Total: {len(result.results)} cases, {totals['PASS']} passed, "
        f"{totals['FAIL']} failed, {totals['SKIP']} skipped"
    )
    return lines


def export_json(result: MatrixResult, export_path: str | None) -> pathlib.Path | None:
    if not export_path:
        return None
    # Normalize Windows-style separators on POSIX if users pass e.g. "results\file.json"
    if "\\" in export_path and ":" not in export_path:
        export_path = export_path.replace("\\", "/")
    path = pathlib.Path(export_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, indent=2)
    return path
