from __future__ import annotations

from pathlib import Path

from gsd.discuss_phase import (
    get_context_template_sections, get_or_create_phase_dir, get_phase_details, load_phase_context,
)


def test_get_phase_details(planning_dir: Path) -> None:
    details = get_phase_details(planning_dir, 2).data
    assert details.name == "Agent Infrastructure"
    assert details.goal == "Agents can be spawned in parallel"
    assert details.requirements == "AGT-01"
    assert details.success_criteria == [
        "Four agents run at once", "Timeouts kill stragglers", "Outputs are verified",
    ]
    assert details.details == (
        "**Goal**: Agents can be spawned in parallel\n"
        "**Requirements**: AGT-01\n"
        "**Success Criteria**:\n"
        "  1. Four agents run at once\n"
        "  2. Timeouts kill stragglers\n"
        "  3. Outputs are verified"
    )


def test_phase_section_stops_at_next_phase(planning_dir: Path) -> None:
    details = get_phase_details(planning_dir, 1).data
    assert details.success_criteria == ["Install completes on a clean machine", "Version file is written"]


def test_unknown_phase(planning_dir: Path) -> None:
    result = get_phase_details(planning_dir, 7)
    assert result.error == "Phase 7 not found in ROADMAP.md"


def test_context_template() -> None:
    data = get_context_template_sections().data
    assert data["sections"] == ["Decisions", "Claude's Discretion", "Deferred Ideas"]
    for section in data["sections"]:
        assert f"## {section}" in data["template"]


def test_load_phase_context(planning_dir: Path) -> None:
    phase_dir = Path(get_or_create_phase_dir(planning_dir, 2, "Agent Infrastructure").data["phase_dir"])
    assert load_phase_context(phase_dir, 2) is None

    (phase_dir / "02-CONTEXT.md").write_text(
        "---\nphase: 2\n---\n\n## Decisions\n- Use asyncio\n", encoding="utf-8"
    )
    assert load_phase_context(phase_dir, 2) == "## Decisions\n- Use asyncio"
