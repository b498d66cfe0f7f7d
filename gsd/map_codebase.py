#!/usr/bin/env python3
"""
Cline GSD Codebase Mapping

Runs four mapper agents in parallel, one per focus area. Each writes its
documents straight into .planning/codebase/; afterwards the seven expected
files are checked and reported.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .agent_collect import report_results, verify_outputs
from .agent_spawn import run_agents
from .models import AgentTask, MapperPrompt, MappingReport, Result
from .utils import PathLike, describe_os_error, log_step, write_live

logger = logging.getLogger("gsd")

# focus -> documents that mapper owns
FOCUS_AREAS: Dict[str, List[str]] = {
    "tech": ["STACK.md", "INTEGRATIONS.md"],
    "arch": ["ARCHITECTURE.md", "STRUCTURE.md"],
    "quality": ["CONVENTIONS.md", "TESTING.md"],
    "concerns": ["CONCERNS.md"],
}


def owned_files(focus_areas: Dict[str, List[str]]) -> List[str]:
    """Flatten a focus-area table; raises ValueError if two areas share a file."""
    files = [f for names in focus_areas.values() for f in names]
    shared = sorted({f for f in files if files.count(f) > 1})
    if shared:
        raise ValueError(f"Mapper focus areas share output files: {', '.join(shared)}")
    return files


_all_files = owned_files(FOCUS_AREAS)

MAPPER_AGENT_DEFINITION = "agents/gsd-codebase-mapper.md"
DEFAULT_MAPPING_TIMEOUT = 300  # seconds

MAPPER_PREFIX = "[mapper] "


def get_expected_output_files(planning_dir: PathLike) -> Result:
    """All seven document paths under ``<planning_dir>/codebase/``."""
    codebase = Path(planning_dir) / "codebase"
    return Result.ok([str(codebase / name) for name in _all_files])


def build_mapper_prompts(cwd: PathLike) -> Result:
    """One prompt per focus area, with output paths relative to ``cwd``."""
    prompts = []
    for focus, files in FOCUS_AREAS.items():
        outputs = "\n".join(f"- {os.path.join('.planning', 'codebase', f)}" for f in files)
        prompt = (
            "You are a codebase mapper agent.\n\n"
            f"Read the agent definition at {MAPPER_AGENT_DEFINITION} and follow the "
            f'instructions for the "{focus}" focus area.\n\n'
            f"Your focus area: {focus}\n"
            "Write your output documents to:\n"
            f"{outputs}\n\n"
            "After writing, output a brief confirmation with file paths and line counts."
        )
        prompts.append(MapperPrompt(
            focus=focus,
            prompt=prompt,
            output_file=os.path.join(".planning", "codebase", f".mapper-{focus}-done.txt"),
        ))
    return Result.ok(prompts)


async def run_mapping(
    project_root: PathLike,
    timeout: float = DEFAULT_MAPPING_TIMEOUT,
    parallel: bool = True,
    agent_cmd: Optional[Sequence[str]] = None,
) -> Result:
    """Spawn the mappers, wait under a shared timeout, then verify outputs.

    Succeeds when at least one of the seven documents was produced; the
    report lists exactly which ones are missing.
    """
    try:
        return await _run_mapping_inner(Path(project_root), timeout, parallel, agent_cmd)
    except (OSError, ValueError) as e:
        log_step(f"Mapping error: {e}", prefix=MAPPER_PREFIX, level=logging.ERROR)
        return Result.fail(f"Pipeline error: {e}")


async def _run_mapping_inner(
    project_root: Path,
    timeout: float,
    parallel: bool,
    agent_cmd: Optional[Sequence[str]],
) -> Result:
    planning_dir = project_root / ".planning"
    try:
        (planning_dir / "codebase").mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return Result.fail(f"Failed to create codebase directory: {describe_os_error(e, planning_dir)}")

    prompts = build_mapper_prompts(project_root).data
    tasks = [
        AgentTask(prompt=p.prompt, output_file=p.output_file, timeout=timeout, cwd=str(project_root))
        for p in prompts
    ]

    mode = "parallel" if parallel else "sequential"
    log_step(f"Spawning {len(tasks)} mapper agents ({mode}, timeout {timeout}s)", prefix=MAPPER_PREFIX)
    agents = await run_agents(tasks, timeout=timeout, parallel=parallel, agent_cmd=agent_cmd)

    for prompt, agent in zip(prompts, agents):
        if agent.success:
            log_step(f"{prompt.focus}: done", prefix=MAPPER_PREFIX)
        else:
            log_step(f"{prompt.focus}: {agent.error}", prefix=MAPPER_PREFIX, level=logging.WARNING)

    verifications = verify_outputs(get_expected_output_files(planning_dir).data)
    report = report_results(verifications)
    write_live(report.report, prefix=MAPPER_PREFIX)

    data = MappingReport(
        report=report.report,
        total=report.total,
        found=report.found,
        missing=report.missing,
        verifications=verifications,
        agents=agents,
    )
    if report.found == 0:
        return Result.fail("No codebase documents were produced", data=data)
    return Result.ok(data)
