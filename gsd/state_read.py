#!/usr/bin/env python3
"""
Cline GSD State Readers

Pure parsers for the markdown planning documents (no I/O) and thin
file-reading wrappers returning Result.

Pure parsers: parse_sections, parse_state_position, parse_roadmap_progress,
              parse_plan_frontmatter
File readers: read_state, read_roadmap, read_plan_frontmatter
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import (
    PhaseProgress, Result, RoadmapDocument, RoadmapProgress,
    StateDocument, StatePosition,
)
from .utils import PathLike, describe_os_error

PREAMBLE_KEY = "_preamble"

FRONTMATTER_RE = re.compile(r"^---\r?\n([\s\S]*?)\r?\n---")

PLAN_SCALAR_FIELDS = ("phase", "plan", "type", "wave", "autonomous")
PLAN_ARRAY_FIELDS = ("depends_on", "files_modified")

PHASE_LINE_RE = re.compile(r"^Phase:[ \t]*(\d+)[ \t]+of[ \t]+(\d+)(?:[ \t]*\((.+?)\))?", re.M)
PLAN_LINE_RE = re.compile(r"^Plan:[ \t]*(\d+)[ \t]+of[ \t]+(\d+)", re.M)
STATUS_LINE_RE = re.compile(r"^Status:[ \t]*(.+)$", re.M)
ACTIVITY_LINE_RE = re.compile(r"^Last activity:[ \t]*(.+)$", re.M)
PROGRESS_LINE_RE = re.compile(r"^Progress:[ \t]*\[.*?\][ \t]*(\d+)%", re.M)

# | 1. Installation & Foundation | 3/3 | Complete | 2026-02-05 |
ROADMAP_ROW_RE = re.compile(
    r"\|[ \t]*(\d+)\.[ \t]*(.+?)[ \t]*\|[ \t]*(\d+)/(\d+)[ \t]*\|"
    r"[ \t]*(\w[\w \t]*?)[ \t]*\|[ \t]*(.*?)[ \t]*\|"
)


def heading_regex(level: int) -> re.Pattern:
    """Headings of exactly ``level`` hashes (### does not match level 2)."""
    return re.compile(rf"^{'#' * level}(?!#)[ \t]+(.+)$", re.M)


def parse_sections(content: str, level: int = 2) -> Dict[str, str]:
    """Split markdown into {heading name: trimmed body}.

    Text before the first heading is stored under ``_preamble`` when
    non-empty. Deeper headings stay inside their parent's body.
    """
    sections: Dict[str, str] = {}
    matches = list(heading_regex(level).finditer(content))

    if not matches:
        trimmed = content.strip()
        if trimmed:
            sections[PREAMBLE_KEY] = trimmed
        return sections

    preamble = content[:matches[0].start()].strip()
    if preamble:
        sections[PREAMBLE_KEY] = preamble

    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(content)
        sections[match.group(1).strip()] = content[match.end():end].strip()

    return sections


def parse_state_position(content: str) -> Optional[StatePosition]:
    """Parse the Current Position block of STATE.md.

    Expected lines::

        Phase: 3 of 8 (State Management)
        Plan: 0 of 3 in current phase
        Status: Ready to plan
        Last activity: 2026-02-05 - Phase 2 complete, verified
        Progress: [###.......] 25%

    Returns None when the Phase line is absent.
    """
    phase = PHASE_LINE_RE.search(content)
    if not phase:
        return None

    plan = PLAN_LINE_RE.search(content)
    status = STATUS_LINE_RE.search(content)
    activity = ACTIVITY_LINE_RE.search(content)
    progress = PROGRESS_LINE_RE.search(content)

    return StatePosition(
        phase_num=int(phase.group(1)),
        total_phases=int(phase.group(2)),
        phase_name=phase.group(3).strip() if phase.group(3) else None,
        plan_num=int(plan.group(1)) if plan else 0,
        total_plans=int(plan.group(2)) if plan else 0,
        status=status.group(1).strip() if status else None,
        last_activity=activity.group(1).strip() if activity else None,
        progress_pct=int(progress.group(1)) if progress else 0,
    )


def parse_roadmap_progress(content: str) -> RoadmapProgress:
    """Collect every progress-table row; rows of any other shape are skipped."""
    phases: List[PhaseProgress] = []
    total_plans = 0
    completed_plans = 0

    for match in ROADMAP_ROW_RE.finditer(content):
        completed = int(match.group(3))
        total = int(match.group(4))
        date = match.group(6).strip()
        phases.append(PhaseProgress(
            number=int(match.group(1)),
            name=match.group(2).strip(),
            completed_plans=completed,
            total_plans=total,
            status=match.group(5).strip(),
            completed_date=date if date and date != "-" else None,
        ))
        total_plans += total
        completed_plans += completed

    return RoadmapProgress(phases=phases, total_plans=total_plans, completed_plans=completed_plans)


def _strip_quotes(value: str) -> str:
    return re.sub(r"^[\"']|[\"']$", "", value.strip())


def _typed_scalar(raw: str) -> Any:
    if raw == "true":
        return True
    if raw == "false":
        return False
    if re.fullmatch(r"\d+", raw):
        return int(raw)
    return raw


def parse_inline_list(raw: str) -> List[str]:
    """Parse ``[a, "b"]``; an empty bracket pair gives []."""
    inner = raw.strip()[1:-1].strip()
    if not inner:
        return []
    return [_strip_quotes(item) for item in inner.split(",")]


def parse_plan_frontmatter(content: str) -> Optional[Dict[str, Any]]:
    """Parse the top-level fields of a PLAN.md frontmatter block.

    must_haves is not handled here; see frontmatter.parse_must_haves.
    """
    fm_match = FRONTMATTER_RE.match(content)
    if not fm_match:
        return None

    fm_text = fm_match.group(1)
    lines = fm_text.splitlines()
    result: Dict[str, Any] = {}

    for field in PLAN_SCALAR_FIELDS:
        m = re.search(rf"^{field}:[ \t]*(.+)$", fm_text, re.M)
        if m:
            result[field] = _typed_scalar(m.group(1).strip())

    for field in PLAN_ARRAY_FIELDS:
        m = re.search(rf"^{field}:[ \t]*(.*)$", fm_text, re.M)
        if not m:
            continue
        raw = m.group(1).strip()
        if raw.startswith("["):
            result[field] = parse_inline_list(raw)
        elif raw:
            result[field] = [_strip_quotes(raw)]
        else:
            # Multi-line "- item" entries until the next top-level key
            items = []
            start = next(i for i, line in enumerate(lines) if line.startswith(f"{field}:"))
            for line in lines[start + 1:]:
                item = re.match(r"^\s+-\s+(.+)", line)
                if item:
                    items.append(_strip_quotes(item.group(1)))
                elif re.match(r"^\S", line):
                    break
            result[field] = items

    return result


# =============================================================================
# File readers
# =============================================================================

def read_state(planning_dir: PathLike) -> Result:
    """Read and parse STATE.md."""
    path = Path(planning_dir) / "STATE.md"
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        return Result.fail(f"Failed to read STATE.md: {describe_os_error(e, path)}")
    except UnicodeDecodeError as e:
        return Result.fail(f"Failed to read STATE.md: {path}: {e}")
    sections = parse_sections(raw)
    position = parse_state_position(sections.get("Current Position", raw))
    return Result.ok(StateDocument(raw=raw, sections=sections, position=position))


def read_roadmap(planning_dir: PathLike) -> Result:
    """Read and parse ROADMAP.md."""
    path = Path(planning_dir) / "ROADMAP.md"
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        return Result.fail(f"Failed to read ROADMAP.md: {describe_os_error(e, path)}")
    except UnicodeDecodeError as e:
        return Result.fail(f"Failed to read ROADMAP.md: {path}: {e}")
    return Result.ok(RoadmapDocument(raw=raw, progress=parse_roadmap_progress(raw)))


def read_plan_frontmatter(plan_path: PathLike) -> Result:
    """Read a PLAN.md file and parse its frontmatter."""
    try:
        raw = Path(plan_path).read_text(encoding="utf-8")
    except OSError as e:
        return Result.fail(f"Failed to read plan file: {describe_os_error(e, plan_path)}")
    except UnicodeDecodeError as e:
        return Result.fail(f"Failed to read plan file: {plan_path}: {e}")
    frontmatter = parse_plan_frontmatter(raw)
    if frontmatter is None:
        return Result.fail("No frontmatter found in plan file")
    return Result.ok(frontmatter)
