#!/usr/bin/env python3
"""
Cline GSD Must-Have Parsing

Parses the ``must_haves`` block of a PLAN.md frontmatter::

    must_haves:
      truths:
        - "User can see progress"
      artifacts:
        - path: src/state.py
          provides: "State parsing"
          exports: [read_state, write_state]
          min_lines: 40
      key_links:
        - from: src/cli.py
          to: src/state.py
          via: import
          pattern: "from .state import"

The block is read line by line by a small state machine. Each line is
classified into a token, and ``TRANSITIONS`` maps (state, token kind) to a
handler returning the next state. Pairs missing from the table leave the
state unchanged.
"""
from __future__ import annotations

import dataclasses
import re
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from .models import ArtifactSpec, KeyLinkSpec, MustHaves
from .state_read import FRONTMATTER_RE, parse_inline_list


class State(Enum):
    NONE = "section:none"
    TRUTHS = "section:truths"
    ARTIFACTS_AWAITING_PATH = "section:artifacts:awaiting-path"
    ARTIFACT_OBJECT = "section:artifacts:in-object"
    KEY_LINKS_AWAITING_FROM = "section:key_links:awaiting-from"
    KEY_LINK_OBJECT = "section:key_links:in-object"
    DONE = "done"


class Token(Enum):
    BLANK = "blank"
    COMMENT = "comment"
    TOP_LEVEL = "top-level"        # dedent to column 0 ends the block
    SECTION = "section"            # "  truths:" (exactly two spaces)
    OBJECT_START = "object-start"  # "    - path: x"
    FIELD = "field"                # "      provides: x"
    ITEM = "item"                  # "    - x"
    OTHER = "other"


@dataclasses.dataclass(frozen=True)
class Line:
    kind: Token
    key: str = ""
    value: str = ""


SECTION_RE = re.compile(r"^  (\w+):\s*(.*)$")
OBJECT_START_RE = re.compile(r"^\s+-\s+(\w+):\s*(.*)$")
ITEM_RE = re.compile(r"^\s+-\s+(.*)$")
FIELD_RE = re.compile(r"^\s{3,}(\w+):\s*(.*)$")

SECTION_STATES = {
    "truths": State.TRUTHS,
    "artifacts": State.ARTIFACTS_AWAITING_PATH,
    "key_links": State.KEY_LINKS_AWAITING_FROM,
}

LIST_FIELDS = {"exports"}


def classify(line: str) -> Line:
    if not line.strip():
        return Line(Token.BLANK)
    if line.lstrip().startswith("#"):
        return Line(Token.COMMENT)
    if not line[0].isspace():
        return Line(Token.TOP_LEVEL)
    m = SECTION_RE.match(line)
    if m:
        return Line(Token.SECTION, m.group(1), m.group(2).strip())
    m = OBJECT_START_RE.match(line)
    if m:
        return Line(Token.OBJECT_START, m.group(1), m.group(2).strip())
    m = ITEM_RE.match(line)
    if m:
        return Line(Token.ITEM, value=m.group(1).strip())
    m = FIELD_RE.match(line)
    if m:
        return Line(Token.FIELD, m.group(1), m.group(2).strip())
    return Line(Token.OTHER)


def unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


class MustHaveParser:
    """Mutable parse context driven by the transition table."""

    def __init__(self) -> None:
        self.result = MustHaves()
        self.state = State.NONE
        self.current: Optional[Dict[str, object]] = None
        self.list_field: Optional[str] = None

    def feed(self, raw_line: str) -> None:
        line = classify(raw_line)
        handler = TRANSITIONS.get((self.state, line.kind))
        if handler is not None:
            self.state = handler(self, line)

    def finish(self) -> MustHaves:
        self.commit()
        self.state = State.DONE
        return self.result

    def commit(self) -> None:
        """Move the in-progress object into its list if it has its key field."""
        obj, self.current, self.list_field = self.current, None, None
        if obj is None:
            return
        if self.state == State.ARTIFACT_OBJECT and obj.get("path"):
            min_lines = obj.get("min_lines")
            self.result.artifacts.append(ArtifactSpec(
                path=str(obj["path"]),
                provides=obj.get("provides"),
                exports=obj.get("exports"),
                min_lines=int(min_lines) if isinstance(min_lines, str) and min_lines.isdigit() else None,
                contains=obj.get("contains"),
            ))
        elif self.state == State.KEY_LINK_OBJECT and obj.get("from"):
            self.result.key_links.append(KeyLinkSpec(
                from_path=str(obj["from"]),
                to=obj.get("to"),
                via=obj.get("via"),
                pattern=obj.get("pattern"),
            ))

    def set_field(self, key: str, value: str) -> None:
        if key in LIST_FIELDS:
            if value.startswith("["):
                self.current[key] = parse_inline_list(value)
                self.list_field = None
            elif value:
                self.current[key] = [unquote(value)]
                self.list_field = None
            else:
                self.current[key] = []
                self.list_field = key
        else:
            self.current[key] = unquote(value)
            self.list_field = None


# =============================================================================
# Transition handlers: (parser, line) -> next state
# =============================================================================

def enter_section(p: MustHaveParser, line: Line) -> State:
    p.commit()
    state = SECTION_STATES.get(line.key, State.NONE)
    if state == State.TRUTHS and line.value.startswith("["):
        p.result.truths.extend(t for t in parse_inline_list(line.value) if t)
    return state


def end_block(p: MustHaveParser, line: Line) -> State:
    p.commit()
    return State.DONE


def add_truth(p: MustHaveParser, line: Line) -> State:
    text = f"{line.key}: {line.value}" if line.kind == Token.OBJECT_START else line.value
    text = unquote(text)
    if text:
        p.result.truths.append(text)
    return State.TRUTHS


def start_object(object_state: State) -> Callable[[MustHaveParser, Line], State]:
    def handler(p: MustHaveParser, line: Line) -> State:
        p.commit()
        p.state = object_state
        p.current = {}
        p.set_field(line.key, line.value)
        return object_state
    return handler


def object_field(p: MustHaveParser, line: Line) -> State:
    p.set_field(line.key, line.value)
    return p.state


def object_list_item(p: MustHaveParser, line: Line) -> State:
    if p.list_field:
        p.current[p.list_field].append(unquote(line.value))
    return p.state


TRANSITIONS: Dict[Tuple[State, Token], Callable[[MustHaveParser, Line], State]] = {}

for _state in State:
    if _state != State.DONE:
        TRANSITIONS[(_state, Token.SECTION)] = enter_section
        TRANSITIONS[(_state, Token.TOP_LEVEL)] = end_block

TRANSITIONS.update({
    (State.TRUTHS, Token.ITEM): add_truth,
    (State.TRUTHS, Token.OBJECT_START): add_truth,
    (State.ARTIFACTS_AWAITING_PATH, Token.OBJECT_START): start_object(State.ARTIFACT_OBJECT),
    (State.ARTIFACT_OBJECT, Token.OBJECT_START): start_object(State.ARTIFACT_OBJECT),
    (State.ARTIFACT_OBJECT, Token.FIELD): object_field,
    (State.ARTIFACT_OBJECT, Token.ITEM): object_list_item,
    (State.KEY_LINKS_AWAITING_FROM, Token.OBJECT_START): start_object(State.KEY_LINK_OBJECT),
    (State.KEY_LINK_OBJECT, Token.OBJECT_START): start_object(State.KEY_LINK_OBJECT),
    (State.KEY_LINK_OBJECT, Token.FIELD): object_field,
})


def parse_must_haves(content: str) -> Optional[MustHaves]:
    """Parse must_haves from PLAN.md content.

    Returns None if there is no frontmatter or no ``must_haves:`` key.
    """
    fm_match = FRONTMATTER_RE.match(content)
    if not fm_match:
        return None

    lines: List[str] = fm_match.group(1).splitlines()
    start = next((i for i, line in enumerate(lines) if re.match(r"^must_haves:\s*$", line)), None)
    if start is None:
        return None

    parser = MustHaveParser()
    for raw_line in lines[start + 1:]:
        parser.feed(raw_line)
        if parser.state == State.DONE:
            return parser.result
    return parser.finish()
