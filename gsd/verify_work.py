#!/usr/bin/env python3
"""
Cline GSD Work Verification

Checks a phase's built artifacts against the must_haves declared in its
PLAN.md files, at three levels:

1. exists       - the file is there
2. substantive  - enough non-empty lines, no stub markers, required
                  exports and substrings present
3. wired        - some other file under src/, scripts/ or workflows/
                  references it

Also extracts testable deliveries from SUMMARY.md and renders
VERIFICATION.md / UAT.md reports.
"""
from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import List, Optional, Sequence

from .config import load_frontmatter_doc
from .frontmatter import parse_must_haves
from .models import (
    ArtifactCheck, ArtifactSpec, Delivery, KeyLinkCheck, KeyLinkSpec,
    PlanVerification, Result, SubstantiveCheck, TruthCheck, UatTest,
    VerificationSummary, WiredCheck,
)
from .utils import PathLike, describe_os_error

logger = logging.getLogger("gsd")

DEFAULT_MIN_LINES = 10
WIRING_SEARCH_DIRS = ("src", "scripts", "workflows")

STUB_PATTERNS = [
    re.compile(r"TODO", re.I),
    re.compile(r"FIXME", re.I),
    re.compile(r"placeholder", re.I),
    re.compile(r"coming soon", re.I),
    re.compile(r"lorem ipsum", re.I),
    re.compile(r"throw new Error\(['\"]not implemented", re.I),
    re.compile(r"raise NotImplementedError"),
    re.compile(r"^\s*return\s*;?\s*$", re.M),
]


def has_stub_markers(content: str) -> bool:
    return any(p.search(content) for p in STUB_PATTERNS)


def export_regex(name: str) -> re.Pattern:
    """JavaScript export forms plus Python top-level def/class/assignment."""
    n = re.escape(name)
    return re.compile(
        rf"export\s+(?:function|const|let|class|async\s+function)\s+{n}\b"
        rf"|export\s*\{{[^}}]*\b{n}\b[^}}]*\}}"
        rf"|^(?:async\s+)?def\s+{n}\s*\("
        rf"|^class\s+{n}\b"
        rf"|^{n}\s*(?::[^=\n]*)?=",
        re.M,
    )


# =============================================================================
# Artifact checks
# =============================================================================

def check_artifact_exists(path: PathLike) -> Result:
    return Result.ok({"exists": Path(path).exists(), "path": str(path)})


def classify_content(
    content: str,
    min_lines: Optional[int] = None,
    exports: Optional[Sequence[str]] = None,
    contains: Optional[str] = None,
) -> SubstantiveCheck:
    """STUB beats PARTIAL beats SUBSTANTIVE."""
    min_lines = DEFAULT_MIN_LINES if min_lines is None else min_lines
    lines = sum(1 for line in content.split("\n") if line.strip())
    stubs = has_stub_markers(content)
    missing_exports = [name for name in (exports or []) if not export_regex(name).search(content)]
    missing_contains = bool(contains) and contains not in content

    if lines < min_lines or stubs:
        status = "STUB"
    elif missing_exports or missing_contains:
        status = "PARTIAL"
    else:
        status = "SUBSTANTIVE"

    return SubstantiveCheck(
        status=status,
        lines=lines,
        has_stubs=stubs,
        missing_exports=missing_exports,
        missing_contains=missing_contains,
    )


def check_artifact_substantive(
    path: PathLike,
    min_lines: Optional[int] = None,
    exports: Optional[Sequence[str]] = None,
    contains: Optional[str] = None,
) -> Result:
    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        return Result.fail(f"Failed to check artifact substantiveness: {describe_os_error(e, path)}")
    except UnicodeDecodeError as e:
        return Result.fail(f"Failed to check artifact substantiveness: {path}: {e}")
    return Result.ok(classify_content(content, min_lines, exports, contains))


def _reference_regex(stem: str) -> re.Pattern:
    s = re.escape(stem)
    return re.compile(
        rf"(?:import|require).*['\"].*{s}(?:\.js)?['\"]"
        rf"|from\s+['\"].*{s}(?:\.js)?['\"]"
        rf"|^\s*from\s+[\w.]*\b{s}\b\s+import\b"
        rf"|^\s*import\s+[\w.]*\b{s}\b",
        re.M,
    )


def _iter_files(root: Path):
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in sorted(filenames):
            yield Path(dirpath) / name


def check_artifact_wired(path: PathLike, project_root: PathLike = ".") -> Result:
    """Find files under the search roots that import or mention the artifact.

    Markdown artifacts are workflow entry points and always count as wired.
    """
    artifact = Path(path)
    if artifact.name.endswith(".md"):
        return Result.ok(WiredCheck(wired=True, imported_by=["entry-point"]))

    stem = artifact.stem
    reference = _reference_regex(stem)
    mention = re.compile(re.escape(stem))
    target = artifact.resolve() if artifact.is_absolute() else (Path(project_root) / artifact).resolve()

    imported_by: List[str] = []
    for dirname in WIRING_SEARCH_DIRS:
        search_root = Path(project_root) / dirname
        if not search_root.is_dir():
            continue
        for candidate in _iter_files(search_root):
            if candidate.resolve() == target:
                continue
            try:
                text = candidate.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            if reference.search(text) or (candidate.suffix == ".md" and mention.search(text)):
                imported_by.append(str(candidate))

    return Result.ok(WiredCheck(wired=bool(imported_by), imported_by=imported_by))


def check_key_link(link: KeyLinkSpec, project_root: PathLike = ".") -> Result:
    """The ``from`` file must match the link's pattern (or mention ``to``)."""
    source = Path(project_root) / link.from_path
    try:
        text = source.read_text(encoding="utf-8")
    except FileNotFoundError:
        return Result.ok(False)
    except (OSError, UnicodeDecodeError) as e:
        return Result.fail(f"Failed to check key link from {link.from_path}: {e}")

    if link.pattern:
        try:
            return Result.ok(re.search(link.pattern, text) is not None)
        except re.error:
            return Result.ok(link.pattern in text)
    if link.to:
        return Result.ok(Path(link.to).stem in text)
    return Result.ok(False)


# =============================================================================
# Plan / phase verification
# =============================================================================

def plan_id_from_path(plan_path: PathLike) -> str:
    name = Path(plan_path).name
    for suffix in ("-PLAN.md", ".md"):
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


def _verify_artifact(spec: ArtifactSpec, project_root: Path) -> ArtifactCheck:
    path = project_root / spec.path
    exists = check_artifact_exists(path).data["exists"]
    substantive = None
    wired = False
    if exists:
        sub = check_artifact_substantive(path, spec.min_lines, spec.exports, spec.contains)
        substantive = sub.data.status if sub.success else None
        wired_result = check_artifact_wired(spec.path, project_root)
        wired = wired_result.success and wired_result.data.wired
    passed = exists and substantive == "SUBSTANTIVE" and wired
    return ArtifactCheck(
        path=spec.path,
        exists=exists,
        substantive=substantive,
        wired=wired,
        status="pass" if passed else "fail",
    )


def verify_plan(plan_path: PathLike, project_root: PathLike = ".") -> Result:
    """Run every must-have check declared by one PLAN.md.

    Truths are free text and are reported as skipped; they need a human
    or an agent to judge.
    """
    project_root = Path(project_root)
    try:
        content = Path(plan_path).read_text(encoding="utf-8")
    except OSError as e:
        return Result.fail(f"Failed to read plan file: {describe_os_error(e, plan_path)}")
    except UnicodeDecodeError as e:
        return Result.fail(f"Failed to read plan file: {plan_path}: {e}")

    verification = PlanVerification(plan_id=plan_id_from_path(plan_path))
    must_haves = parse_must_haves(content)
    if must_haves is None:
        logger.debug(f"No must_haves in {plan_path}")
        return Result.ok(verification)

    verification.truths = [TruthCheck(text=t, status="skipped") for t in must_haves.truths]
    verification.artifacts = [_verify_artifact(a, project_root) for a in must_haves.artifacts]
    for link in must_haves.key_links:
        found = check_key_link(link, project_root)
        ok = found.success and found.data
        verification.key_links.append(KeyLinkCheck(
            from_path=link.from_path,
            to=link.to or "",
            via=link.via or "",
            found=ok,
            status="pass" if ok else "fail",
        ))
    return Result.ok(verification)


def verify_phase(phase_dir: PathLike, project_root: PathLike = ".") -> Result:
    """Verify every ``*PLAN.md`` in a phase directory.

    Returns:
        Result with data {"plans": [PlanVerification], "summary": VerificationSummary}
    """
    phase_dir = Path(phase_dir)
    if not phase_dir.is_dir():
        return Result.fail(f"Phase directory not found: {phase_dir}")

    plans: List[PlanVerification] = []
    for plan_path in sorted(phase_dir.glob("*PLAN.md")):
        result = verify_plan(plan_path, project_root)
        if not result.success:
            return result
        plans.append(result.data)

    summary = VerificationSummary.from_plans(plans)
    logger.info(f"Verified {len(plans)} plan(s): {summary.passed}/{summary.total_checks} checks passed")
    return Result.ok({"plans": plans, "summary": summary})


# =============================================================================
# SUMMARY.md deliveries
# =============================================================================

def _section_body(content: str, heading: str) -> Optional[str]:
    match = re.search(rf"## {re.escape(heading)}[ \t]*\n([\s\S]*?)(?=\n## |\n---|\Z)", content)
    return match.group(1) if match else None


def extract_testable_deliveries(summary_content: str) -> List[Delivery]:
    """Accomplishment bullets, task-commit names and created/modified files."""
    if not summary_content:
        return []
    deliveries: List[Delivery] = []

    body = _section_body(summary_content, "Accomplishments")
    if body:
        for line in body.split("\n"):
            m = re.match(r"^\s*-\s+(.+)", line)
            if m:
                text = m.group(1).strip()
                deliveries.append(Delivery(name=text, type="accomplishment", detail=text))

    # 1. **Task Name** - `abc123` (feat)
    body = _section_body(summary_content, "Task Commits")
    if body:
        for line in body.split("\n"):
            m = re.match(r"^\d+\.\s+\*\*(.+?)\*\*", line)
            if m:
                deliveries.append(Delivery(name=m.group(1).strip(), type="task", detail=line.strip()))

    # - `path/to/file` - purpose
    body = _section_body(summary_content, "Files Created/Modified")
    if body:
        for line in body.split("\n"):
            m = re.match(r"^\s*-\s+`([^`]+)`\s*-\s*(.+)", line)
            if m:
                deliveries.append(Delivery(name=m.group(1).strip(), type="file", detail=m.group(2).strip()))

    return deliveries


# =============================================================================
# Report formatters
# =============================================================================

def _display_phase_num(phase: str) -> str:
    head = phase.split("-")[0]
    return str(int(head)) if head.isdigit() and int(head) else phase


def build_verification_content(
    phase: str,
    phase_name: str,
    plans: Sequence[PlanVerification],
    created: str,
    summary: VerificationSummary,
) -> str:
    """Render VERIFICATION.md."""
    status = "fail" if summary.failed > 0 else "pass"
    out = [
        "---",
        f"status: {status}",
        f"phase: {phase}",
        f"created: {created}",
        f"total: {summary.total_checks}",
        f"passed: {summary.passed}",
        f"failed: {summary.failed}",
        "---",
        "",
        f"# Phase {_display_phase_num(phase)}: {phase_name} - Verification",
        "",
        "## Summary",
        "",
        f"{summary.passed}/{summary.total_checks} checks passed "
        f"({summary.failed} failed, {summary.skipped} skipped)",
    ]

    for plan in plans:
        out += ["", f"## Plan {plan.plan_id}"]
        if plan.truths:
            out += ["", "### Truths"]
            for truth in plan.truths:
                box = "[x]" if truth.status == "pass" else "[ ]"
                out.append(f'- {box} "{truth.text}"')
        if plan.artifacts:
            out += [
                "",
                "### Artifacts",
                "| Path | Exists | Substantive | Wired | Status |",
                "|------|--------|-------------|-------|--------|",
            ]
            for a in plan.artifacts:
                out.append(
                    f"| {a.path} | {'Yes' if a.exists else 'No'} | {a.substantive or '-'} "
                    f"| {'Yes' if a.wired else 'No'} | {'PASS' if a.status == 'pass' else 'FAIL'} |"
                )
        if plan.key_links:
            out += [
                "",
                "### Key Links",
                "| From | To | Via | Found | Status |",
                "|------|----|----|-------|--------|",
            ]
            for link in plan.key_links:
                out.append(
                    f"| {link.from_path} | {link.to} | {link.via} | {'Yes' if link.found else 'No'} "
                    f"| {'PASS' if link.status == 'pass' else 'FAIL'} |"
                )

    return "\n".join(out) + "\n"


def build_uat_content(
    phase: str,
    phase_name: str,
    tests: Sequence[UatTest],
    status: str,
    created: str,
    updated: str,
) -> str:
    """Render UAT.md. ``status`` is pending, in-progress, passed, failed or diagnosed."""
    counts = {r: sum(1 for t in tests if t.result == r) for r in ("pass", "fail", "skipped", "pending")}
    out = [
        "---",
        f"status: {status}",
        f"phase: {phase}",
        f"created: {created}",
        f"updated: {updated}",
        f"total: {len(tests)}",
        f"passed: {counts['pass']}",
        f"failed: {counts['fail']}",
        f"skipped: {counts['skipped']}",
        f"pending: {counts['pending']}",
        "---",
        "",
        f"# Phase {_display_phase_num(phase)}: {phase_name} - UAT",
        "",
        "## Test Results",
    ]
    for i, test in enumerate(tests, 1):
        out += [
            "",
            f"### Test {i}: {test.name}",
            f"- **Expected:** {test.expected}",
            f"- **Result:** {test.result}",
        ]
        if test.issue:
            out.append(f"- **Issue:** {test.issue}")
            out.append(f"- **Severity:** {test.severity or 'unknown'}")
    return "\n".join(out) + "\n"


def read_report_frontmatter(path: PathLike) -> Result:
    """Read the frontmatter of a VERIFICATION.md or UAT.md back as a dict."""
    path = Path(path)
    if not path.is_file():
        return Result.fail(f"Report not found: {path}")
    try:
        metadata, _body = load_frontmatter_doc(path)
    except (OSError, UnicodeDecodeError) as e:
        return Result.fail(f"Failed to read report: {path}: {e}")
    if not metadata:
        return Result.fail(f"No frontmatter found in {path}")
    # YAML turns bare dates into date objects
    return Result.ok({k: v.isoformat() if hasattr(v, "isoformat") else v for k, v in metadata.items()})
