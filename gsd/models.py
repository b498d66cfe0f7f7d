#!/usr/bin/env python3
"""
Cline GSD Data Models

Data classes shared by the agent pool, the pipelines, the planning-state
readers/writers and the artifact verifier.
"""
from __future__ import annotations

import dataclasses
from typing import Any, Dict, List, Optional


@dataclasses.dataclass(frozen=True)
class Result:
    """Outcome of a public operation: success flag plus data or error text."""
    success: bool
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "Result":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, data: Any = None) -> "Result":
        return cls(success=False, data=data, error=error)


# =============================================================================
# Agents
# =============================================================================

@dataclasses.dataclass
class AgentTask:
    """One agent invocation: prompt plus where the agent should write."""
    prompt: str
    output_file: Optional[str] = None
    timeout: Optional[float] = None  # seconds
    cwd: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class AgentResult:
    """Terminal record of one agent's execution."""
    pid: Optional[int]
    exit_code: int  # -1 on spawn error or forced termination
    success: bool
    output_file: Optional[str] = None
    error: Optional[str] = None
    timed_out: bool = False

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "pid": self.pid,
            "exit_code": self.exit_code,
            "success": self.success,
            "output_file": self.output_file,
        }
        if self.error:
            d["error"] = self.error
        if self.timed_out:
            d["timed_out"] = True
        return d


@dataclasses.dataclass(frozen=True)
class OutputVerification:
    path: str
    exists: bool


@dataclasses.dataclass(frozen=True)
class OutputReport:
    total: int
    found: int
    missing: int
    report: str


# =============================================================================
# Pipelines
# =============================================================================

@dataclasses.dataclass
class StageRecord:
    """Whether a pipeline stage ran, whether its output appeared, and where."""
    ran: bool = False
    success: bool = False
    file: Optional[str] = None


@dataclasses.dataclass
class PipelineResult:
    research: StageRecord = dataclasses.field(default_factory=StageRecord)
    planning: StageRecord = dataclasses.field(default_factory=lambda: StageRecord(ran=True))
    checking: StageRecord = dataclasses.field(default_factory=StageRecord)

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


@dataclasses.dataclass(frozen=True)
class MapperPrompt:
    focus: str
    prompt: str
    output_file: str


@dataclasses.dataclass
class MappingReport:
    report: str
    total: int
    found: int
    missing: int
    verifications: List[OutputVerification]
    agents: List[AgentResult] = dataclasses.field(default_factory=list)


@dataclasses.dataclass(frozen=True)
class StagePrompt:
    prompt: str
    output_file: str


@dataclasses.dataclass(frozen=True)
class PhaseDetails:
    name: str
    goal: str
    details: str
    requirements: str
    success_criteria: List[str]


# =============================================================================
# Planning state documents
# =============================================================================

@dataclasses.dataclass(frozen=True)
class StatePosition:
    """Parsed "Current Position" block of STATE.md."""
    phase_num: int
    total_phases: int
    phase_name: Optional[str]
    plan_num: int
    total_plans: int
    status: Optional[str]
    last_activity: Optional[str]
    progress_pct: int


@dataclasses.dataclass(frozen=True)
class PositionUpdate:
    """New values for the STATE.md position lines."""
    phase_num: int
    total_phases: int
    plan_num: int
    total_plans: int
    status: str
    last_activity: str
    completed_plans: int
    total_plans_global: int
    phase_name: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class PhaseProgress:
    number: int
    name: str
    completed_plans: int
    total_plans: int
    status: str
    completed_date: Optional[str]


@dataclasses.dataclass(frozen=True)
class RoadmapProgress:
    phases: List[PhaseProgress]
    total_plans: int
    completed_plans: int


@dataclasses.dataclass
class StateDocument:
    raw: str
    sections: Dict[str, str]
    position: Optional[StatePosition]


@dataclasses.dataclass
class RoadmapDocument:
    raw: str
    progress: RoadmapProgress


# =============================================================================
# Must-haves and verification
# =============================================================================

@dataclasses.dataclass
class ArtifactSpec:
    path: str
    provides: Optional[str] = None
    exports: Optional[List[str]] = None
    min_lines: Optional[int] = None
    contains: Optional[str] = None


@dataclasses.dataclass
class KeyLinkSpec:
    from_path: str
    to: Optional[str] = None
    via: Optional[str] = None
    pattern: Optional[str] = None


@dataclasses.dataclass
class MustHaves:
    truths: List[str] = dataclasses.field(default_factory=list)
    artifacts: List[ArtifactSpec] = dataclasses.field(default_factory=list)
    key_links: List[KeyLinkSpec] = dataclasses.field(default_factory=list)


@dataclasses.dataclass(frozen=True)
class SubstantiveCheck:
    status: str  # SUBSTANTIVE, STUB, PARTIAL
    lines: int
    has_stubs: bool
    missing_exports: List[str]
    missing_contains: bool


@dataclasses.dataclass(frozen=True)
class WiredCheck:
    wired: bool
    imported_by: List[str]


@dataclasses.dataclass(frozen=True)
class TruthCheck:
    text: str
    status: str  # pass, fail, skipped


@dataclasses.dataclass(frozen=True)
class ArtifactCheck:
    path: str
    exists: bool
    substantive: Optional[str]  # SUBSTANTIVE/STUB/PARTIAL, None if not checked
    wired: bool
    status: str  # pass, fail


@dataclasses.dataclass(frozen=True)
class KeyLinkCheck:
    from_path: str
    to: str
    via: str
    found: bool
    status: str


@dataclasses.dataclass
class PlanVerification:
    plan_id: str
    truths: List[TruthCheck] = dataclasses.field(default_factory=list)
    artifacts: List[ArtifactCheck] = dataclasses.field(default_factory=list)
    key_links: List[KeyLinkCheck] = dataclasses.field(default_factory=list)


@dataclasses.dataclass(frozen=True)
class VerificationSummary:
    total_checks: int
    passed: int
    failed: int
    skipped: int

    @classmethod
    def from_plans(cls, plans: List[PlanVerification]) -> "VerificationSummary":
        statuses = [
            check.status
            for plan in plans
            for check in (*plan.truths, *plan.artifacts, *plan.key_links)
        ]
        return cls(
            total_checks=len(statuses),
            passed=statuses.count("pass"),
            failed=statuses.count("fail"),
            skipped=statuses.count("skipped"),
        )


@dataclasses.dataclass(frozen=True)
class UatTest:
    name: str
    expected: str
    result: str  # pass, fail, skipped, pending
    issue: Optional[str] = None
    severity: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class Delivery:
    name: str
    type: str  # accomplishment, task, file
    detail: str


@dataclasses.dataclass
class ProjectInfo:
    """Gathered project context for PROJECT.md."""
    name: str
    description: str
    core_value: str
    context: str = ""
    constraints: List[str] = dataclasses.field(default_factory=list)
    validated: List[str] = dataclasses.field(default_factory=list)
    active: List[str] = dataclasses.field(default_factory=list)
    out_of_scope: List[str] = dataclasses.field(default_factory=list)
    key_decisions: List[Dict[str, str]] = dataclasses.field(default_factory=list)
    date: Optional[str] = None
