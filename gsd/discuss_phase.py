#!/usr/bin/env python3
"""
Cline GSD Discuss-Phase Helpers

Pulls a phase's goal, requirements and success criteria out of ROADMAP.md,
and defines the CONTEXT.md layout that the discuss step writes and the
planning agents read.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional

from .config import load_frontmatter_doc
from .models import PhaseDetails, Result
from .state_init import ensure_phase_dir
from .state_read import read_roadmap
from .utils import PathLike, pad_phase

CONTEXT_SECTIONS = ["Decisions", "Claude's Discretion", "Deferred Ideas"]

CONTEXT_TEMPLATE = """# Phase {N}: {Name} - Context

**Discussed:** {date}

## Decisions
{user decisions listed as bullet points}

## Claude's Discretion
{areas where Claude can decide freely}

## Deferred Ideas
{ideas explicitly deferred to later phases}
"""

NEXT_PHASE_RE = re.compile(r"^### Phase \d+:", re.M)
GOAL_RE = re.compile(r"\*\*Goal\*\*:[ \t]*(.+)")
REQUIREMENTS_RE = re.compile(r"\*\*Requirements\*\*:[ \t]*(.+)")
CRITERIA_HEADER_RE = re.compile(r"\*\*Success Criteria\*\*[^:\n]*:")
NUMBERED_RE = re.compile(r"^\d+\.\s+")


def extract_phase_section(raw: str, phase_num: int) -> Optional[tuple]:
    """Return (phase name, section body) for ``### Phase N: Name``, or None."""
    header = re.search(rf"^### Phase {phase_num}:[ \t]*(.+)$", raw, re.M)
    if not header:
        return None
    after = raw[header.end():]
    next_match = NEXT_PHASE_RE.search(after)
    body = after[:next_match.start()] if next_match else after
    return header.group(1).strip(), body.strip()


def _success_criteria(section: str) -> List[str]:
    header = CRITERIA_HEADER_RE.search(section)
    if not header:
        return []
    criteria: List[str] = []
    for line in section[header.end():].split("\n"):
        trimmed = line.strip()
        if NUMBERED_RE.match(trimmed):
            criteria.append(NUMBERED_RE.sub("", trimmed).strip())
        elif (not trimmed or trimmed.startswith("**")) and criteria:
            break
    return criteria


def parse_phase_details(raw: str, phase_num: int) -> Optional[PhaseDetails]:
    found = extract_phase_section(raw, phase_num)
    if found is None:
        return None
    name, section = found

    goal_match = GOAL_RE.search(section)
    goal = goal_match.group(1).strip() if goal_match else ""
    req_match = REQUIREMENTS_RE.search(section)
    requirements = req_match.group(1).strip() if req_match else ""
    criteria = _success_criteria(section)

    details = [f"**Goal**: {goal}"]
    if requirements:
        details.append(f"**Requirements**: {requirements}")
    if criteria:
        numbered = "\n".join(f"  {i}. {c}" for i, c in enumerate(criteria, 1))
        details.append(f"**Success Criteria**:\n{numbered}")

    return PhaseDetails(
        name=name,
        goal=goal,
        details="\n".join(details),
        requirements=requirements,
        success_criteria=criteria,
    )


def get_phase_details(planning_dir: PathLike, phase_num: int) -> Result:
    """Read ROADMAP.md and extract the ``### Phase N:`` block."""
    roadmap = read_roadmap(planning_dir)
    if not roadmap.success:
        return Result.fail(roadmap.error)
    details = parse_phase_details(roadmap.data.raw, phase_num)
    if details is None:
        return Result.fail(f"Phase {phase_num} not found in ROADMAP.md")
    return Result.ok(details)


def get_context_template_sections() -> Result:
    return Result.ok({"sections": list(CONTEXT_SECTIONS), "template": CONTEXT_TEMPLATE})


def get_or_create_phase_dir(planning_dir: PathLike, phase_num: int, phase_name: str) -> Result:
    return ensure_phase_dir(planning_dir, phase_num, phase_name)


def load_phase_context(phase_dir: PathLike, phase_num: int) -> Optional[str]:
    """Body of NN-CONTEXT.md with any frontmatter stripped, or None if absent/empty."""
    path = Path(phase_dir) / f"{pad_phase(phase_num)}-CONTEXT.md"
    if not path.is_file():
        return None
    _meta, body = load_frontmatter_doc(path)
    return body.strip() or None
