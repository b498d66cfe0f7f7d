from __future__ import annotations

from pathlib import Path

import yaml

from gsd.models import KeyLinkSpec, UatTest, VerificationSummary
from gsd.verify_work import (
    build_uat_content, build_verification_content, check_artifact_exists,
    check_artifact_substantive, check_artifact_wired, check_key_link,
    extract_testable_deliveries, read_report_frontmatter, verify_phase, verify_plan,
)


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _module(n: int, extra: str = "") -> str:
    lines = [f"def helper_{i}(value):\n    return value + {i}\n" for i in range(n)]
    return "\n".join(lines) + extra


def test_check_artifact_exists(tmp_path: Path) -> None:
    target = _write(tmp_path / "a.py", "x")
    assert check_artifact_exists(target).data == {"exists": True, "path": str(target)}
    assert check_artifact_exists(tmp_path / "b.py").data["exists"] is False


def test_short_file_is_stub(tmp_path: Path) -> None:
    path = _write(tmp_path / "short.py", "a = 1\nb = 2\nc = 3\n")
    check = check_artifact_substantive(path, min_lines=10).data
    assert check.status == "STUB"
    assert check.lines == 3


def test_stub_marker_beats_length(tmp_path: Path) -> None:
    path = _write(tmp_path / "todo.py", _module(25, "# TODO: finish\n"))
    check = check_artifact_substantive(path, min_lines=10).data
    assert check.lines >= 50
    assert check.has_stubs
    assert check.status == "STUB"


def test_missing_export_is_partial(tmp_path: Path) -> None:
    path = _write(tmp_path / "mod.py", _module(25))
    check = check_artifact_substantive(path, min_lines=10, exports=["helper_3", "read_state"]).data
    assert check.status == "PARTIAL"
    assert check.missing_exports == ["read_state"]


def test_missing_contains_is_partial(tmp_path: Path) -> None:
    path = _write(tmp_path / "mod.py", _module(25))
    check = check_artifact_substantive(path, contains="write_text_atomic").data
    assert check.status == "PARTIAL"
    assert check.missing_contains is True


def test_substantive_with_js_and_python_exports(tmp_path: Path) -> None:
    js = _write(tmp_path / "mod.js", "\n".join(f"const v{i} = {i};" for i in range(12))
                + "\nexport function readState() {}\nexport { v1, v2 };\n")
    assert check_artifact_substantive(js, exports=["readState", "v2"]).data.status == "SUBSTANTIVE"

    py = _write(tmp_path / "mod.py", _module(6, "class Store:\n    pass\n\nLIMIT: int = 3\n"))
    assert check_artifact_substantive(py, exports=["helper_0", "Store", "LIMIT"]).data.status == "SUBSTANTIVE"


def test_not_implemented_and_bare_return_are_stubs(tmp_path: Path) -> None:
    body = _module(10)
    raising = _write(tmp_path / "r.py", body + "def later():\n    raise NotImplementedError\n")
    assert check_artifact_substantive(raising).data.status == "STUB"
    bare = _write(tmp_path / "b.py", body + "def nothing():\n    return\n")
    assert check_artifact_substantive(bare).data.status == "STUB"


def test_substantive_read_failure(tmp_path: Path) -> None:
    result = check_artifact_substantive(tmp_path / "missing.py")
    assert not result.success
    assert result.error.startswith("Failed to check artifact substantiveness")


def test_check_artifact_wired(tmp_path: Path) -> None:
    _write(tmp_path / "src" / "state_read.py", _module(10))
    _write(tmp_path / "src" / "cli.py", "from .state_read import read_state\n")
    _write(tmp_path / "src" / "orphan.py", _module(10))
    _write(tmp_path / "workflows" / "status.md", "Reads the planning state first\n")

    wired = check_artifact_wired("src/state_read.py", tmp_path).data
    assert wired.wired is True
    assert wired.imported_by == [str(tmp_path / "src" / "cli.py")]

    assert check_artifact_wired("src/orphan.py", tmp_path).data.wired is False
    assert check_artifact_wired("workflows/gsd-plan.md", tmp_path).data.imported_by == ["entry-point"]


def test_js_require_counts_as_wired(tmp_path: Path) -> None:
    _write(tmp_path / "src" / "agent-spawn.js", "export function spawnAgent() {}\n")
    _write(tmp_path / "scripts" / "run.js", "import { spawnAgent } from '../src/agent-spawn.js';\n")
    assert check_artifact_wired("src/agent-spawn.js", tmp_path).data.wired is True


def test_check_key_link(tmp_path: Path) -> None:
    _write(tmp_path / "src" / "cli.py", "from .state_read import read_state\n")
    assert check_key_link(KeyLinkSpec("src/cli.py", "src/state_read.py", "import", r"from \.state_read"), tmp_path).data
    assert check_key_link(KeyLinkSpec("src/cli.py", "src/state_read.py", "import"), tmp_path).data
    assert not check_key_link(KeyLinkSpec("src/cli.py", "src/other.py", "import"), tmp_path).data
    assert not check_key_link(KeyLinkSpec("src/missing.py", "x.py", "import"), tmp_path).data


PLAN = """---
phase: 03-state
plan: 1
must_haves:
  truths:
    - "Position can be read back"
  artifacts:
    - path: src/state_read.py
      exports: [helper_1]
    - path: src/missing.py
  key_links:
    - from: src/cli.py
      to: src/state_read.py
      via: import
      pattern: "state_read"
---
"""


def test_verify_phase(tmp_path: Path) -> None:
    _write(tmp_path / "src" / "state_read.py", _module(10))
    _write(tmp_path / "src" / "cli.py", "from .state_read import helper_1\n")
    phase_dir = tmp_path / ".planning" / "phases" / "03-state"
    _write(phase_dir / "03-01-PLAN.md", PLAN)
    _write(phase_dir / "03-02-PLAN.md", "---\nplan: 2\n---\n")

    plan = verify_plan(phase_dir / "03-01-PLAN.md", tmp_path).data
    assert plan.plan_id == "03-01"
    assert [t.status for t in plan.truths] == ["skipped"]
    present, missing = plan.artifacts
    assert (present.exists, present.substantive, present.wired, present.status) == (True, "SUBSTANTIVE", True, "pass")
    assert (missing.exists, missing.substantive, missing.status) == (False, None, "fail")
    assert plan.key_links[0].found and plan.key_links[0].status == "pass"

    result = verify_phase(phase_dir, tmp_path).data
    assert [p.plan_id for p in result["plans"]] == ["03-01", "03-02"]
    assert result["summary"] == VerificationSummary(total_checks=4, passed=2, failed=1, skipped=1)


def test_verify_phase_missing_dir(tmp_path: Path) -> None:
    assert not verify_phase(tmp_path / "nope", tmp_path).success


SUMMARY = """# Phase 3 Plan 1: State Summary

## Accomplishments
- STATE.md position parsing
- Roadmap row updates

## Task Commits

1. **Add state reader** - `abc123` (feat)
2. **Add state writer** - `def456` (feat)

## Files Created/Modified
- `src/state_read.py` - Parsers (created)
- `src/state_write.py` - Writers (created)

---
*Done*
"""


def test_extract_testable_deliveries() -> None:
    deliveries = extract_testable_deliveries(SUMMARY)
    assert [(d.type, d.name) for d in deliveries] == [
        ("accomplishment", "STATE.md position parsing"),
        ("accomplishment", "Roadmap row updates"),
        ("task", "Add state reader"),
        ("task", "Add state writer"),
        ("file", "src/state_read.py"),
        ("file", "src/state_write.py"),
    ]
    assert deliveries[4].detail == "Parsers (created)"
    assert extract_testable_deliveries("") == []


def test_verification_report(tmp_path: Path) -> None:
    _write(tmp_path / "src" / "state_read.py", _module(10))
    _write(tmp_path / "src" / "cli.py", "from .state_read import helper_1\n")
    plan_path = _write(tmp_path / "03-01-PLAN.md", PLAN)
    plan = verify_plan(plan_path, tmp_path).data
    summary = VerificationSummary.from_plans([plan])

    content = build_verification_content("03-state", "State", [plan], "2026-02-05", summary)
    assert "# Phase 3: State - Verification" in content
    assert '- [ ] "Position can be read back"' in content
    assert "| src/state_read.py | Yes | SUBSTANTIVE | Yes | PASS |" in content
    assert "| src/missing.py | No | - | No | FAIL |" in content
    assert "| src/cli.py | src/state_read.py | import | Yes | PASS |" in content

    meta = yaml.safe_load(content.split("---")[1])
    assert meta["status"] == "fail"
    assert (meta["total"], meta["passed"], meta["failed"]) == (4, 2, 1)

    report = _write(tmp_path / "03-VERIFICATION.md", content)
    assert read_report_frontmatter(report).data["created"] == "2026-02-05"


def test_uat_report(tmp_path: Path) -> None:
    tests = [
        UatTest(name="Status command", expected="Shows phase", result="pass"),
        UatTest(name="Plan command", expected="Writes plans", result="fail", issue="Hangs"),
        UatTest(name="Verify command", expected="Writes report", result="pending"),
    ]
    content = build_uat_content("03-state", "State", tests, "in-progress", "2026-02-05", "2026-02-06")
    assert "### Test 2: Plan command" in content
    assert "- **Issue:** Hangs\n- **Severity:** unknown" in content

    meta = read_report_frontmatter(_write(tmp_path / "03-UAT.md", content)).data
    assert meta["status"] == "in-progress"
    assert (meta["total"], meta["passed"], meta["failed"], meta["pending"]) == (3, 1, 1, 1)
    assert meta["updated"] == "2026-02-06"


def test_report_frontmatter_failures(tmp_path: Path) -> None:
    assert not read_report_frontmatter(tmp_path / "03-UAT.md").success
    bad = tmp_path / "03-UAT.md"
    bad.write_bytes(b"---\nstatus: caf\xe9\n---\n")
    assert read_report_frontmatter(bad).error.startswith("Failed to read report")


def test_undecodable_plan_fails_phase(tmp_path: Path) -> None:
    phase_dir = tmp_path / ".planning" / "phases" / "03-state"
    phase_dir.mkdir(parents=True)
    (phase_dir / "03-01-PLAN.md").write_bytes(b"---\nphase: caf\xe9\n---\n")
    result = verify_phase(phase_dir, tmp_path)
    assert not result.success
    assert result.error.startswith("Failed to read plan file")
