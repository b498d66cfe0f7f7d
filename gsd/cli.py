#!/usr/bin/env python3
"""
Cline GSD Command Line

Usage:
    gsd init --name "My App" --core-value "Ship it" --phases 5
    gsd map [--sequential] [--timeout 300]
    gsd plan 3 --name "State Management"
    gsd status
    gsd verify 3
    gsd install --source workflows/gsd

Watch pipeline progress with ``--live-log .planning/live.log`` and
``tail -f`` in another terminal.
"""
from __future__ import annotations

import argparse
import asyncio
import inspect
import logging
import shlex
from pathlib import Path
from typing import Optional

from . import __version__
from .installer import install
from .map_codebase import DEFAULT_MAPPING_TIMEOUT, run_mapping
from .plan_phase import DEFAULT_PLANNING_TIMEOUT, run_planning_pipeline
from .state_init import PLANNING_DIRNAME, ensure_planning_dir, init_project_files
from .state_read import read_roadmap, read_state
from .utils import pad_phase, set_live_log, today_iso, write_live, write_text_atomic
from .verify_work import build_verification_content, verify_phase

logger = logging.getLogger("gsd")

EXIT_OK = 0
EXIT_ERROR = 1


def _agent_cmd(args: argparse.Namespace) -> Optional[list]:
    return shlex.split(args.agent_cmd) if args.agent_cmd else None


def _find_phase_dir(planning_dir: Path, phase_num: int) -> Optional[Path]:
    matches = sorted((planning_dir / "phases").glob(f"{pad_phase(phase_num)}-*"))
    return matches[0] if matches else None


# =============================================================================
# Commands
# =============================================================================

def cmd_init(args: argparse.Namespace) -> int:
    result = ensure_planning_dir(args.project_root)
    if not result.success:
        logger.error(result.error)
        return EXIT_ERROR
    result = init_project_files(
        result.data["planning_dir"],
        project_name=args.name,
        core_value=args.core_value,
        total_phases=args.phases,
        current_phase=args.current_phase,
    )
    if not result.success:
        logger.error(result.error)
        return EXIT_ERROR
    for name in result.data["created"]:
        print(f"  created  {name}")
    for name in result.data["skipped"]:
        print(f"  exists   {name}")
    return EXIT_OK


async def cmd_map(args: argparse.Namespace) -> int:
    result = await run_mapping(
        args.project_root,
        timeout=args.timeout,
        parallel=not args.sequential,
        agent_cmd=_agent_cmd(args),
    )
    if result.data is not None:
        print(result.data.report)
    if not result.success:
        logger.error(result.error)
        return EXIT_ERROR
    return EXIT_OK


async def cmd_plan(args: argparse.Namespace) -> int:
    result = await run_planning_pipeline(
        args.project_root,
        args.phase,
        args.name,
        timeout=args.timeout,
        agent_cmd=_agent_cmd(args),
    )
    if result.data is not None:
        for stage, record in result.data.to_dict().items():
            state = "skipped" if not record["ran"] else ("ok" if record["success"] else "failed")
            print(f"  {stage:<9} {state:<8} {record['file'] or ''}")
    if not result.success:
        logger.error(result.error)
        return EXIT_ERROR
    return EXIT_OK


def cmd_status(args: argparse.Namespace) -> int:
    planning_dir = Path(args.project_root) / PLANNING_DIRNAME
    state = read_state(planning_dir)
    if not state.success:
        logger.error(state.error)
        return EXIT_ERROR

    pos = state.data.position
    if pos is None:
        print("No current position recorded in STATE.md")
    else:
        name = f" ({pos.phase_name})" if pos.phase_name else ""
        print(f"Phase {pos.phase_num} of {pos.total_phases}{name}")
        print(f"Plan {pos.plan_num} of {pos.total_plans}")
        print(f"Status: {pos.status or '-'}")
        print(f"Progress: {pos.progress_pct}%")

    roadmap = read_roadmap(planning_dir)
    if roadmap.success and roadmap.data.progress.phases:
        print()
        for phase in roadmap.data.progress.phases:
            done = phase.completed_date or "-"
            print(f"  {phase.number:>2}. {phase.name:<32} {phase.completed_plans}/{phase.total_plans}  {phase.status}  {done}")
    return EXIT_OK


def cmd_verify(args: argparse.Namespace) -> int:
    planning_dir = Path(args.project_root) / PLANNING_DIRNAME
    phase_dir = _find_phase_dir(planning_dir, args.phase)
    if phase_dir is None:
        logger.error(f"No directory for phase {args.phase} under {planning_dir / 'phases'}")
        return EXIT_ERROR

    result = verify_phase(phase_dir, args.project_root)
    if not result.success:
        logger.error(result.error)
        return EXIT_ERROR

    summary = result.data["summary"]
    content = build_verification_content(
        phase=phase_dir.name,
        phase_name=args.name or phase_dir.name.split("-", 1)[-1].replace("-", " ").title(),
        plans=result.data["plans"],
        created=today_iso(),
        summary=summary,
    )
    out_path = phase_dir / f"{pad_phase(args.phase)}-VERIFICATION.md"
    write_text_atomic(out_path, content)
    print(f"{summary.passed}/{summary.total_checks} checks passed -> {out_path}")
    return EXIT_OK if summary.failed == 0 else EXIT_ERROR


def cmd_install(args: argparse.Namespace) -> int:
    result = install(args.source, dest_dir=args.dest)
    if not result.success:
        logger.error(result.error)
        return EXIT_ERROR
    print(f"Installed {result.data['files_installed']} workflow(s) to {result.data['location']}")
    return EXIT_OK


# =============================================================================
# Entry point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="gsd", description="Cline GSD planning and agent orchestration")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    ap.add_argument("--project-root", default=".", help="Project directory containing .planning/")
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    ap.add_argument("--live-log", type=Path, help="Mirror pipeline progress to this file")
    ap.add_argument("--agent-cmd", help='Agent command prefix (default: "cline -y")')
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init", help="Create .planning/ and the starting documents")
    p.add_argument("--name", required=True, help="Project name")
    p.add_argument("--core-value", required=True, help="One-line core value statement")
    p.add_argument("--phases", type=int, default=1, help="Total number of phases")
    p.add_argument("--current-phase", type=int, default=1)

    p = sub.add_parser("map", help="Run the parallel codebase mappers")
    p.add_argument("--timeout", type=float, default=DEFAULT_MAPPING_TIMEOUT, help="Seconds (shared)")
    p.add_argument("--sequential", action="store_true", help="Run mappers one at a time")

    p = sub.add_parser("plan", help="Run research -> plan -> check for a phase")
    p.add_argument("phase", type=int)
    p.add_argument("--name", required=True, help="Phase name")
    p.add_argument("--timeout", type=float, default=DEFAULT_PLANNING_TIMEOUT, help="Seconds per agent")

    sub.add_parser("status", help="Show current position and roadmap progress")

    p = sub.add_parser("verify", help="Check a phase's must-haves and write VERIFICATION.md")
    p.add_argument("phase", type=int)
    p.add_argument("--name", help="Phase display name for the report")

    p = sub.add_parser("install", help="Install workflow files into the Cline commands directory")
    p.add_argument("--source", required=True, type=Path, help="Directory of workflow .md files")
    p.add_argument("--dest", type=Path, help="Override destination (default: $CLINE_DIR/commands/gsd)")
    return ap


COMMANDS = {
    "init": cmd_init,
    "map": cmd_map,
    "plan": cmd_plan,
    "status": cmd_status,
    "verify": cmd_verify,
    "install": cmd_install,
}


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if args.verbose:
        logger.setLevel(logging.DEBUG)

    handler = COMMANDS[args.command]
    live_log_file = None
    if args.live_log:
        args.live_log.parent.mkdir(parents=True, exist_ok=True)
        live_log_file = open(args.live_log, "a", encoding="utf-8")
        set_live_log(live_log_file)
        write_live("=" * 60)
        write_live(f"GSD {args.command.upper()}")
        write_live("=" * 60)

    try:
        if inspect.iscoroutinefunction(handler):
            return asyncio.run(handler(args))
        return handler(args)
    finally:
        if live_log_file:
            write_live("=" * 60)
            write_live("FINISHED")
            write_live("=" * 60)
            live_log_file.close()
            set_live_log(None)


if __name__ == "__main__":
    raise SystemExit(main())
