from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Callable, List

import pytest

FAKE_AGENT = r'''
import json, os, re, sys, time

cfg = json.loads(sys.argv[1])
prompt = sys.argv[-1]

if cfg.get("log"):
    with open(cfg["log"], "a", encoding="utf-8") as f:
        f.write(prompt.splitlines()[0] + "\n")

time.sleep(cfg.get("sleep", 0))

if not any(marker in prompt for marker in cfg.get("skip", [])):
    paths = re.findall(r"(?:output to|confirmation to|review to):[ \t]*(\S+)", prompt)
    paths += re.findall(r"^- (\S+\.md)$", prompt, re.M)
    for path in paths:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        if "content_hex" in cfg:
            data = bytes.fromhex(cfg["content_hex"])
        else:
            data = cfg.get("content", "done\n").encode("utf-8")
        with open(path, "wb") as f:
            f.write(data)

sys.stdout.write("agent finished\n")
sys.exit(cfg.get("exit_code", 0))
'''


@pytest.fixture
def fake_agent(tmp_path: Path) -> Callable[..., List[str]]:
    """Build an agent command that writes every output path its prompt names.

    Options: skip (prompt substrings that suppress writing), sleep (seconds),
    exit_code, content, content_hex (raw bytes instead of content),
    log (file collecting each prompt's first line).
    """
    script = tmp_path / "fake_agent.py"
    script.write_text(FAKE_AGENT, encoding="utf-8")

    def make(**options) -> List[str]:
        return [sys.executable, str(script), json.dumps(options)]

    return make


@pytest.fixture
def sleeper() -> List[str]:
    return [sys.executable, "-c", "import time; time.sleep(30)"]


STATE_MD = """# Project State

## Project Reference

See: .planning/PROJECT.md (updated 2026-02-01)

**Core value:** Ship reliable plans
**Current focus:** Phase 2 - Agent Infrastructure

## Current Position

Phase: 2 of 4 (Agent Infrastructure)
Plan: 1 of 3 in current phase
Status: In progress
Last activity: 2026-02-03 - Completed 02-01-PLAN.md

Progress: [███░░░░░░░] 25%

## Accumulated Context

### Decisions

- Use atomic writes

### Blockers/Concerns

None yet.

## Session Continuity

Last session: 2026-02-03
Stopped at: Completed 02-01-PLAN.md
Resume file: None
"""

ROADMAP_MD = """# Roadmap: Demo

## Phases

- [x] **Phase 1: Installation & Foundation**
- [ ] **Phase 2: Agent Infrastructure**

## Phase Details

### Phase 1: Installation & Foundation
**Goal**: Users can install the tool with one command
**Requirements**: INST-01, INST-02
**Success Criteria** (what must be TRUE):
  1. Install completes on a clean machine
  2. Version file is written

Plans:
- [x] 01-01-PLAN.md - Installer core
- [x] 01-02-PLAN.md - Platform detection

### Phase 2: Agent Infrastructure
**Goal**: Agents can be spawned in parallel
**Requirements**: AGT-01
**Success Criteria** (what must be TRUE):
  1. Four agents run at once
  2. Timeouts kill stragglers
  3. Outputs are verified

Plans:
- [x] 02-01-PLAN.md - Spawn helpers
- [ ] 02-02-PLAN.md - Collection
- [ ] 02-03-PLAN.md - Timeouts

## Progress

| Phase | Plans Complete | Status | Completed |
|-------|----------------|--------|-----------|
| 1. Installation & Foundation | 2/2 | Complete | 2026-02-01 |
| 2. Agent Infrastructure | 1/3 | In progress | - |
| 3. State Management | 0/3 | Not started | - |
| 4. Verification | 0/2 | Not started | - |
"""


@pytest.fixture
def planning_dir(tmp_path: Path) -> Path:
    planning = tmp_path / "project" / ".planning"
    (planning / "phases").mkdir(parents=True)
    (planning / "STATE.md").write_text(STATE_MD, encoding="utf-8")
    (planning / "ROADMAP.md").write_text(ROADMAP_MD, encoding="utf-8")
    return planning
