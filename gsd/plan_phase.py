#!/usr/bin/env python3
"""
Cline GSD Phase Planning Pipeline

Runs research -> plan -> check as three sequential agents for one phase:

  Init -> [Research?] -> Planning -> [Checking?] -> Done

Research and checking are switched by ``workflow.research`` and
``workflow.plan_check`` and may fail without stopping the run. Planning
always runs; if its marker file is not produced the run fails and the
partial stage records are returned for diagnosis.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from .agent_collect import verify_outputs
from .agent_spawn import spawn_agent, wait_for_agents
from .config import read_planning_config
from .discuss_phase import load_phase_context, parse_phase_details
from .models import PipelineResult, Result, StageRecord, StagePrompt
from .state_init import ensure_phase_dir
from .utils import PathLike, log_step, pad_phase, read_text

logger = logging.getLogger("gsd")

DEFAULT_PLANNING_TIMEOUT = 600  # seconds, per agent

# Advisory only: the model actually used is whatever the agent CLI is configured with
MODEL_RECOMMENDATIONS: Dict[str, Dict[str, str]] = {
    "quality": {"researcher": "sonnet", "planner": "opus", "checker": "sonnet"},
    "balanced": {"researcher": "haiku", "planner": "sonnet", "checker": "haiku"},
    "budget": {"researcher": "haiku", "planner": "sonnet", "checker": "haiku"},
}


# =============================================================================
# Prompt builders
# =============================================================================

def get_expected_plan_files(phase_dir: PathLike, padded_phase: str) -> Dict[str, str]:
    phase_dir = Path(phase_dir)
    return {
        "research": str(phase_dir / f"{padded_phase}-RESEARCH.md"),
        "plans": str(phase_dir / f"{padded_phase}-PLANS-DONE.md"),
        "check": str(phase_dir / f"{padded_phase}-CHECK.md"),
    }


def build_research_prompt(
    phase_num: int,
    phase_name: str,
    phase_details: str,
    context_content: Optional[str],
    phase_dir: PathLike,
) -> Result:
    output_file = get_expected_plan_files(phase_dir, pad_phase(phase_num))["research"]
    if context_content:
        context_section = f"<user_decisions>\n{context_content}\n</user_decisions>"
    else:
        context_section = "No CONTEXT.md exists for this phase. Research broadly."

    prompt = f"""You are a phase researcher agent.

Read the agent definition at agents/gsd-phase-researcher.md and follow its instructions.

Phase {phase_num}: {phase_name}

<phase_details>
{phase_details}
</phase_details>

{context_section}

Write your research output to: {output_file}"""
    return Result.ok(StagePrompt(prompt=prompt, output_file=output_file))


def build_planner_prompt(
    phase_num: int,
    phase_name: str,
    phase_details: str,
    context_content: Optional[str],
    research_content: Optional[str],
    phase_dir: PathLike,
) -> Result:
    output_file = get_expected_plan_files(phase_dir, pad_phase(phase_num))["plans"]
    if context_content:
        context_section = f"<user_decisions>\n{context_content}\n</user_decisions>"
    else:
        context_section = "No CONTEXT.md exists for this phase."
    research_section = f"<research>\n{research_content}\n</research>" if research_content else ""

    prompt = f"""You are a phase planner agent.

Read the agent definition at agents/gsd-planner.md and follow its instructions.

Phase {phase_num}: {phase_name}

<phase_details>
{phase_details}
</phase_details>

{context_section}

{research_section}

Create PLAN.md files in: {phase_dir}
When finished, write a brief confirmation to: {output_file}"""
    return Result.ok(StagePrompt(prompt=prompt, output_file=output_file))


def build_checker_prompt(
    phase_num: int,
    phase_name: str,
    context_content: Optional[str],
    phase_dir: PathLike,
) -> Result:
    output_file = get_expected_plan_files(phase_dir, pad_phase(phase_num))["check"]
    if context_content:
        context_section = f"<context_md>\n{context_content}\n</context_md>"
    else:
        context_section = "No CONTEXT.md exists for this phase."

    prompt = f"""You are a plan checker agent.

Read the agent definition at agents/gsd-plan-checker.md and follow its instructions.

Phase {phase_num}: {phase_name}

{context_section}

Read all PLAN.md files in: {phase_dir}
Write your review to: {output_file}"""
    return Result.ok(StagePrompt(prompt=prompt, output_file=output_file))


# =============================================================================
# Pipeline
# =============================================================================

async def _run_stage(
    stage: StagePrompt,
    project_root: Path,
    timeout: float,
    agent_cmd: Optional[Sequence[str]],
) -> bool:
    """Run one agent and report whether its expected file appeared.

    The prompt already names the output file, so it is not passed to the
    spawner (which would append a second "Write your output to" line).
    """
    handle = await spawn_agent(stage.prompt, timeout=timeout, cwd=str(project_root), agent_cmd=agent_cmd)
    (result,) = await wait_for_agents([handle], timeout=timeout)
    if not result.success:
        logger.debug(f"Agent for {stage.output_file} ended with: {result.error}")
    (verification,) = verify_outputs([stage.output_file])
    return verification.exists


def _workflow_flag(config: Dict[str, Any], name: str) -> bool:
    workflow = config.get("workflow")
    return isinstance(workflow, dict) and workflow.get(name) is True


async def run_planning_pipeline(
    project_root: PathLike,
    phase_num: int,
    phase_name: str,
    timeout: float = DEFAULT_PLANNING_TIMEOUT,
    config: Optional[Dict[str, Any]] = None,
    phase_details: Optional[str] = None,
    context_content: Optional[str] = None,
    agent_cmd: Optional[Sequence[str]] = None,
) -> Result:
    """Run the research/plan/check pipeline for one phase.

    Args:
        project_root: Directory containing .planning/
        phase_num: Phase number
        phase_name: Phase display name (slugified for the phase directory)
        timeout: Seconds allowed per agent
        config: Pre-loaded config; read from config.json when None
        phase_details: Phase text for the prompts; taken from ROADMAP.md when None
        context_content: CONTEXT.md body; loaded from the phase directory when None
        agent_cmd: Agent command prefix override

    Returns:
        Result whose data is the PipelineResult (also on planning failure)
    """
    result = PipelineResult()
    try:
        return await _run_planning_inner(
            result, Path(project_root), phase_num, phase_name, timeout,
            config, phase_details, context_content, agent_cmd,
        )
    except (OSError, ValueError) as e:
        log_step(f"Pipeline error: {e}", level=logging.ERROR)
        return Result.fail(f"Pipeline error: {e}", data=result)


async def _run_planning_inner(
    result: PipelineResult,
    project_root: Path,
    phase_num: int,
    phase_name: str,
    timeout: float,
    config: Optional[Dict[str, Any]],
    phase_details: Optional[str],
    context_content: Optional[str],
    agent_cmd: Optional[Sequence[str]],
) -> Result:
    planning_dir = project_root / ".planning"

    if config is None:
        config_result = read_planning_config(planning_dir)
        if not config_result.success:
            return Result.fail(f"Failed to read config: {config_result.error}")
        config = config_result.data

    profile = config.get("model_profile") or "quality"
    models = MODEL_RECOMMENDATIONS.get(profile, MODEL_RECOMMENDATIONS["quality"])

    dir_result = ensure_phase_dir(planning_dir, phase_num, phase_name)
    if not dir_result.success:
        return Result.fail(dir_result.error)
    phase_dir = Path(dir_result.data["phase_dir"])

    if phase_details is None:
        parsed = parse_phase_details(read_text(planning_dir / "ROADMAP.md"), phase_num)
        phase_details = parsed.details if parsed else ""
    if context_content is None:
        context_content = load_phase_context(phase_dir, phase_num)

    research_content: Optional[str] = None

    # Step 1: research (optional)
    if _workflow_flag(config, "research"):
        log_step(f"Research step (model_profile suggests: {models['researcher']})")
        result.research.ran = True
        stage = build_research_prompt(phase_num, phase_name, phase_details, context_content, phase_dir).data
        if await _run_stage(stage, project_root, timeout, agent_cmd):
            result.research.success = True
            result.research.file = stage.output_file
            try:
                research_content = Path(stage.output_file).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                log_step("Could not read research output, continuing without it", level=logging.WARNING)
        else:
            log_step("Research agent did not produce output, continuing to planning", level=logging.WARNING)
    else:
        log_step("Research step skipped (workflow.research is false)")

    # Step 2: planning (mandatory)
    log_step(f"Planning step (model_profile suggests: {models['planner']})")
    stage = build_planner_prompt(
        phase_num, phase_name, phase_details, context_content, research_content, phase_dir
    ).data
    if not await _run_stage(stage, project_root, timeout, agent_cmd):
        log_step("Planner agent did not produce output", level=logging.ERROR)
        return Result.fail("Planner agent did not produce output", data=result)
    result.planning = StageRecord(ran=True, success=True, file=stage.output_file)

    # Step 3: checking (optional, advisory)
    if _workflow_flag(config, "plan_check"):
        log_step(f"Checking step (model_profile suggests: {models['checker']})")
        result.checking.ran = True
        stage = build_checker_prompt(phase_num, phase_name, context_content, phase_dir).data
        if await _run_stage(stage, project_root, timeout, agent_cmd):
            result.checking.success = True
            result.checking.file = stage.output_file
        else:
            log_step("Checker agent did not produce output (non-fatal)", level=logging.WARNING)
    else:
        log_step("Checking step skipped (workflow.plan_check is false)")

    return Result.ok(result)
