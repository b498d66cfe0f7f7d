#!/usr/bin/env python3
"""
Cline GSD Project Initialization

Renders a fully populated PROJECT.md from gathered project context.
Unlike the skeleton written by state_init, every section is filled in.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from .models import ProjectInfo, Result
from .utils import PathLike, describe_os_error, today_iso, write_text_atomic

logger = logging.getLogger("gsd")


def _bullets(items: List[str], fallback: str) -> str:
    return "\n".join(f"- {item}" for item in items) or fallback


def render_project_md(project: ProjectInfo) -> str:
    date = project.date or today_iso()
    decisions = "\n".join(
        f"| {d.get('decision', '')} | {d.get('rationale', '')} | {d.get('outcome', '')} |"
        for d in project.key_decisions
    )

    return f"""# {project.name}

## What This Is

{project.description}

## Core Value

{project.core_value}

## Requirements

### Validated

{_bullets(project.validated, "(Requirements confirmed during questioning)")}

### Active

{_bullets(project.active, "(Requirements being worked on)")}

### Out of Scope

{_bullets(project.out_of_scope, "(Explicitly excluded features)")}

## Context

{project.context}

## Constraints

{_bullets(project.constraints, "(No constraints specified)")}

## Key Decisions

| Decision | Rationale | Outcome |
|----------|-----------|---------|
{decisions}

---
*Last updated: {date}*
"""


def write_project_md(planning_dir: PathLike, project: ProjectInfo) -> Result:
    """Write PROJECT.md, replacing any existing file."""
    path = Path(planning_dir) / "PROJECT.md"
    try:
        write_text_atomic(path, render_project_md(project))
    except OSError as e:
        return Result.fail(f"Failed to write PROJECT.md: {describe_os_error(e, path)}")
    logger.info(f"Wrote {path}")
    return Result.ok({"path": str(path)})
