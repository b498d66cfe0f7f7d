#!/usr/bin/env python3
"""
Cline GSD State Initialization

Creates the .planning/ tree and fills in the starting documents:
STATE.md, config.json, PROJECT.md, REQUIREMENTS.md and ROADMAP.md.
Existing files are never overwritten.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from .config import CONFIG_FILENAME, default_config
from .models import Result
from .utils import (
    PathLike, describe_os_error, pad_phase, save_json_atomic, slugify,
    today_iso, write_text_atomic,
)

logger = logging.getLogger("gsd")

PLANNING_DIRNAME = ".planning"
PROGRESS_BAR_WIDTH = 10


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def render_progress_bar(completed_plans: int, total_plans: int) -> str:
    """Render e.g. ``[███░░░░░░░] 30%``. Zero total renders 0%."""
    pct = _round_half_up(completed_plans / total_plans * 100) if total_plans > 0 else 0
    filled = min(PROGRESS_BAR_WIDTH, max(0, _round_half_up(pct / 10)))
    return f"[{'█' * filled}{'░' * (PROGRESS_BAR_WIDTH - filled)}] {pct}%"


def ensure_planning_dir(project_root: PathLike) -> Result:
    """Create .planning/ and .planning/phases/.

    codebase/, research/ and the like are created later by the commands
    that need them.
    """
    planning_dir = Path(project_root) / PLANNING_DIRNAME
    try:
        (planning_dir / "phases").mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return Result.fail(f"Failed to create .planning/ directory: {describe_os_error(e, planning_dir)}")
    return Result.ok({"planning_dir": str(planning_dir)})


def ensure_phase_dir(planning_dir: PathLike, phase_num: int, phase_name: str) -> Result:
    """Create .planning/phases/NN-slug/."""
    dir_name = f"{pad_phase(phase_num)}-{slugify(phase_name)}"
    phase_dir = Path(planning_dir) / "phases" / dir_name
    try:
        phase_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return Result.fail(f"Failed to create phase directory: {describe_os_error(e, phase_dir)}")
    return Result.ok({"phase_dir": str(phase_dir), "dir_name": dir_name})


# =============================================================================
# Templates
# =============================================================================

def state_template(core_value: str, total_phases: int, current_phase: int, date: str) -> str:
    return f"""# Project State

## Project Reference

See: .planning/PROJECT.md (updated {date})

**Core value:** {core_value}
**Current focus:** Phase {current_phase} of {total_phases}

## Current Position

Phase: {current_phase} of {total_phases}
Plan: 0 of 0 in current phase
Status: Initializing
Last activity: {date} - Project initialized

Progress: {render_progress_bar(0, 0)}

## Performance Metrics

**Velocity:**
- Total plans completed: 0
- Average duration: -
- Total execution time: 0 min

**By Phase:**

| Phase | Plans | Total | Avg/Plan |
|-------|-------|-------|----------|

**Recent Trend:**
- No data yet

*Updated after each plan completion*

## Accumulated Context

### Decisions

Decisions are logged in PROJECT.md Key Decisions table.
Recent decisions affecting current work:

(none yet)

### Pending Todos

None yet.

### Blockers/Concerns

None yet.

## Session Continuity

Last session: {date}
Stopped at: Project initialized
Resume file: None
"""


def project_template(project_name: str, core_value: str, date: str) -> str:
    return f"""# {project_name}

## What This Is

(Describe the project in 2-3 sentences)

## Core Value

{core_value}

## Requirements

### Validated

(Requirements confirmed during questioning)

### Active

(Requirements being worked on)

### Out of Scope

(Explicitly excluded features)

## Context

(Why this project exists, key background)

## Constraints

(Technical, business, or timeline constraints)

## Key Decisions

| Decision | Rationale | Outcome |
|----------|-----------|---------|

---
*Last updated: {date}*
"""


def requirements_template(project_name: str, core_value: str, date: str) -> str:
    return f"""# Requirements: {project_name}

**Defined:** {date}
**Core Value:** {core_value}

## v1 Requirements

(Requirements for initial release)

## Out of Scope

| Feature | Reason |
|---------|--------|

## Traceability

| Requirement | Phase | Status |
|-------------|-------|--------|

---
*Requirements defined: {date}*
"""


def roadmap_template(project_name: str, total_phases: int, date: str) -> str:
    order = " -> ".join(str(i) for i in range(1, total_phases + 1))
    return f"""# Roadmap: {project_name}

## Overview

(High-level project roadmap description)

## Phases

(List phases with checkmarks)

## Phase Details

(Detailed phase breakdowns will be added during planning)

## Progress

**Execution Order:**
Phases execute in numeric order: {order}

| Phase | Plans Complete | Status | Completed |
|-------|----------------|--------|-----------|

---
*Roadmap created: {date}*
*Last updated: {date}*
"""


def init_project_files(
    planning_dir: PathLike,
    project_name: str,
    core_value: str,
    total_phases: int = 1,
    current_phase: int = 1,
    date: Optional[str] = None,
) -> Result:
    """Write the starting documents that don't exist yet.

    Returns:
        Result with data {"created": [...], "skipped": [...]} (file names)
    """
    planning_dir = Path(planning_dir)
    date = date or today_iso()

    documents = [
        ("STATE.md", lambda: state_template(core_value, total_phases, current_phase, date)),
        (CONFIG_FILENAME, None),
        ("PROJECT.md", lambda: project_template(project_name, core_value, date)),
        ("REQUIREMENTS.md", lambda: requirements_template(project_name, core_value, date)),
        ("ROADMAP.md", lambda: roadmap_template(project_name, total_phases, date)),
    ]

    created: List[str] = []
    skipped: List[str] = []
    try:
        for filename, render in documents:
            path = planning_dir / filename
            if path.exists():
                skipped.append(filename)
                continue
            if render is None:
                save_json_atomic(path, default_config())
            else:
                write_text_atomic(path, render())
            created.append(filename)
    except OSError as e:
        return Result.fail(f"Failed to initialize project files: {describe_os_error(e, planning_dir)}")

    logger.info(f"Initialized {planning_dir}: created {len(created)}, skipped {len(skipped)}")
    return Result.ok({"created": created, "skipped": skipped})
