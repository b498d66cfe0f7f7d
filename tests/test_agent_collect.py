from __future__ import annotations

from pathlib import Path

from gsd.agent_collect import report_results, verify_outputs


def test_verify_outputs_probes_existence(tmp_path: Path) -> None:
    present = tmp_path / "STACK.md"
    present.write_text("x", encoding="utf-8")
    missing = tmp_path / "nested" / "dir" / "TESTING.md"

    results = verify_outputs([present, missing])
    assert [(v.path, v.exists) for v in results] == [(str(present), True), (str(missing), False)]


def test_report_results_lines_and_summary(tmp_path: Path) -> None:
    (tmp_path / "a.md").write_text("x", encoding="utf-8")
    report = report_results(verify_outputs([tmp_path / "a.md", tmp_path / "b.md"]))

    assert (report.total, report.found, report.missing) == (2, 1, 1)
    lines = report.report.splitlines()
    assert lines[0] == f"  OK       {tmp_path / 'a.md'}"
    assert lines[1] == f"  MISSING  {tmp_path / 'b.md'}"
    assert lines[-1] == "1/2 expected files found"


def test_report_results_empty() -> None:
    report = report_results([])
    assert report.total == 0
    assert report.report == "0/0 expected files found"
