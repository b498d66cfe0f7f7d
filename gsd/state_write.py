#!/usr/bin/env python3
"""
Cline GSD State Writers

Read-modify-write updates for STATE.md and ROADMAP.md. Every function
re-reads the file, changes exactly one region, and writes the whole file
back. If the target region cannot be found nothing is written.

There is no locking: concurrent writers to the same document race and the
last write wins.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Callable, Optional

from .models import PositionUpdate, Result
from .state_init import render_progress_bar
from .utils import PathLike, describe_os_error, pad_phase, write_text_atomic

logger = logging.getLogger("gsd")


class TargetNotFound(ValueError):
    """The heading, row or line a write was aimed at does not exist."""


def _rewrite(path: Path, label: str, transform: Callable[[str], str]) -> Result:
    try:
        content = path.read_text(encoding="utf-8")
        updated = transform(content)
    except TargetNotFound as e:
        return Result.fail(str(e))
    except OSError as e:
        return Result.fail(f"Failed to update {label}: {describe_os_error(e, path)}")
    except UnicodeDecodeError as e:
        return Result.fail(f"Failed to update {label}: {path}: {e}")

    if updated != content:
        try:
            write_text_atomic(path, updated)
        except OSError as e:
            return Result.fail(f"Failed to update {label}: {describe_os_error(e, path)}")
    logger.debug(f"Updated {path}")
    return Result.ok({"updated": True})


def replace_section(content: str, section_name: str, new_content: str, level: int = 2) -> str:
    """Replace the body under one heading; everything else is kept verbatim.

    Raises:
        TargetNotFound: if no heading with that exact name exists
    """
    hashes = "#" * level
    heading = re.compile(rf"^{hashes}[ \t]+{re.escape(section_name)}[ \t]*\r?\n", re.M)
    match = heading.search(content)
    if not match:
        raise TargetNotFound(f'Section "{hashes} {section_name}" not found')

    body_start = match.end()
    next_heading = re.compile(rf"^{hashes}(?!#)[ \t]", re.M).search(content, body_start)
    body_end = next_heading.start() if next_heading else len(content)

    after = content[body_end:]
    tail = "\n\n" if after else "\n"
    return content[:body_start] + "\n" + new_content.strip() + tail + after


def update_state_section(planning_dir: PathLike, section_name: str, new_content: str) -> Result:
    """Replace one ## section of STATE.md."""
    path = Path(planning_dir) / "STATE.md"

    def transform(content: str) -> str:
        try:
            return replace_section(content, section_name, new_content)
        except TargetNotFound as e:
            raise TargetNotFound(f"{e} in STATE.md") from None

    return _rewrite(path, "STATE.md section", transform)


POSITION_LINES = {
    "Phase": re.compile(r"^Phase:[ \t]*\d+[ \t]+of[ \t]+\d+.*$", re.M),
    "Plan": re.compile(r"^Plan:[ \t]*\d+[ \t]+of[ \t]+\d+.*$", re.M),
    "Status": re.compile(r"^Status:[ \t]*.+$", re.M),
    "Last activity": re.compile(r"^Last activity:[ \t]*.+$", re.M),
    "Progress": re.compile(r"^Progress:[ \t]*\[.*?\][ \t]*\d+%[ \t]*$", re.M),
}
CURRENT_FOCUS_RE = re.compile(r"^\*\*Current focus:\*\*[ \t]*.+$", re.M)


def apply_position(content: str, position: PositionUpdate) -> str:
    """Rewrite the five Current Position lines and the optional focus line."""
    missing = [name for name, regex in POSITION_LINES.items() if not regex.search(content)]
    if missing:
        raise TargetNotFound(f"Position lines not found in STATE.md: {', '.join(missing)}")

    if position.phase_name:
        phase_line = f"Phase: {position.phase_num} of {position.total_phases} ({position.phase_name})"
    else:
        phase_line = f"Phase: {position.phase_num} of {position.total_phases}"

    replacements = {
        "Phase": phase_line,
        "Plan": f"Plan: {position.plan_num} of {position.total_plans} in current phase",
        "Status": f"Status: {position.status}",
        "Last activity": f"Last activity: {position.last_activity}",
        "Progress": f"Progress: {render_progress_bar(position.completed_plans, position.total_plans_global)}",
    }
    for name, regex in POSITION_LINES.items():
        # Callable replacement so backslashes in user text are not treated as escapes
        content = regex.sub(lambda _m, line=replacements[name]: line, content, count=1)

    if position.phase_name:
        focus = f"**Current focus:** Phase {position.phase_num} - {position.phase_name}"
        content = CURRENT_FOCUS_RE.sub(lambda _m: focus, content, count=1)
    return content


def update_state_position(planning_dir: PathLike, position: PositionUpdate) -> Result:
    """Update the Current Position block of STATE.md."""
    path = Path(planning_dir) / "STATE.md"
    return _rewrite(path, "STATE.md position", lambda content: apply_position(content, position))


def roadmap_row_regex(phase_num: int) -> re.Pattern:
    # | N. Phase Name | X/Y | Status | Date |
    return re.compile(
        rf"^(\|[ \t]*{phase_num}\.[ \t]*.+?[ \t]*\|)[ \t]*\d+/\d+[ \t]*\|"
        r"[ \t]*\w[\w \t]*?[ \t]*\|[ \t]*.*?[ \t]*\|",
        re.M,
    )


def apply_roadmap_progress(
    content: str,
    phase_num: int,
    completed_plans: int,
    total_plans: int,
    status: str,
    completed_date: Optional[str] = None,
) -> str:
    match = roadmap_row_regex(phase_num).search(content)
    if not match:
        raise TargetNotFound(f"Phase {phase_num} row not found in ROADMAP.md progress table")
    # Name cell (group 1) is preserved verbatim
    row = f"{match.group(1)} {completed_plans}/{total_plans} | {status} | {completed_date or '-'} |"
    return content[:match.start()] + row + content[match.end():]


def update_roadmap_progress(
    planning_dir: PathLike,
    phase_num: int,
    completed_plans: int,
    total_plans: int,
    status: str,
    completed_date: Optional[str] = None,
) -> Result:
    """Update one phase row of the ROADMAP.md progress table."""
    path = Path(planning_dir) / "ROADMAP.md"
    return _rewrite(
        path,
        "ROADMAP.md progress",
        lambda content: apply_roadmap_progress(
            content, phase_num, completed_plans, total_plans, status, completed_date
        ),
    )


def apply_plan_checkbox(content: str, phase_num: int, plan_num: int, checked: bool) -> str:
    plan_id = f"{pad_phase(phase_num)}-{pad_phase(plan_num)}"
    checkbox = re.compile(
        rf"^(\s*- \[)[ xX](\]\s+{re.escape(plan_id)}(?:-PLAN\.md|\b).*)$",
        re.M,
    )
    match = checkbox.search(content)
    if not match:
        raise TargetNotFound(f"Plan checkbox for {plan_id} not found in ROADMAP.md")
    mark = "x" if checked else " "
    return content[:match.start()] + f"{match.group(1)}{mark}{match.group(2)}" + content[match.end():]


def update_plan_checkbox(planning_dir: PathLike, phase_num: int, plan_num: int, checked: bool) -> Result:
    """Tick or untick the ``- [ ] NN-MM-PLAN.md`` line in ROADMAP.md."""
    path = Path(planning_dir) / "ROADMAP.md"
    return _rewrite(
        path,
        "plan checkbox",
        lambda content: apply_plan_checkbox(content, phase_num, plan_num, checked),
    )
