#!/usr/bin/env python3
"""
Cline GSD Configuration Loading

Functions for loading the planning config and frontmatter documents.
"""
from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .models import Result
from .utils import PathLike, describe_os_error, read_text, save_json_atomic

logger = logging.getLogger("gsd")

CONFIG_FILENAME = "config.json"

DEFAULT_CONFIG: Dict[str, Any] = {
    "mode": "yolo",                  # yolo | interactive
    "depth": "comprehensive",        # quick | standard | comprehensive
    "workflow": {
        "research": True,
        "plan_check": True,
        "verifier": True,
    },
    "planning": {
        "max_tasks_per_plan": 8,
        "require_verification": True,
        "require_tests": False,
    },
    "parallelization": True,
    "commit_docs": True,
    "model_profile": "quality",      # quality | balanced | budget
    "gates": {
        "plan_review": False,
        "checkpoint_approval": True,
    },
    "safety": {
        "backup_before_execute": False,
        "dry_run_first": False,
    },
}


def default_config() -> Dict[str, Any]:
    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Merge overrides onto base. Top level is shallow; nested groups merge key by key."""
    merged = copy.deepcopy(base)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            group = dict(merged[key])
            group.update(value)
            merged[key] = group
        else:
            merged[key] = value
    return merged


def read_planning_config(planning_dir: PathLike) -> Result:
    """Read config.json merged onto defaults. A missing file yields the defaults."""
    config_path = Path(planning_dir) / CONFIG_FILENAME
    try:
        loaded = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Result.ok(default_config())
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return Result.fail(f"Failed to read config.json: {e}")
    except OSError as e:
        return Result.fail(f"Failed to read config.json: {describe_os_error(e, config_path)}")

    if not isinstance(loaded, dict):
        return Result.fail("Failed to read config.json: top level must be an object")
    return Result.ok(merge_config(DEFAULT_CONFIG, loaded))


def write_config_json(planning_dir: PathLike, preferences: Optional[Dict[str, Any]] = None) -> Result:
    """Write config.json with user preferences merged onto the full defaults."""
    config_path = Path(planning_dir) / CONFIG_FILENAME
    try:
        save_json_atomic(config_path, merge_config(DEFAULT_CONFIG, preferences))
    except OSError as e:
        return Result.fail(f"Failed to write config.json: {describe_os_error(e, config_path)}")
    return Result.ok({"path": str(config_path)})


def load_frontmatter_doc(path: Path) -> Tuple[Dict[str, Any], str]:
    """Load document with YAML frontmatter. Returns (metadata, body)."""
    if not path.exists():
        return {}, ""

    content = read_text(path)
    if not content.startswith("---"):
        return {}, content

    parts = content.split("---", 2)
    if len(parts) < 3:
        return {}, content

    try:
        frontmatter = yaml.safe_load(parts[1]) or {}
    except yaml.YAMLError as e:
        logger.warning(f"YAML parse error in {path}: {e}")
        return {}, content
    if not isinstance(frontmatter, dict):
        logger.warning(f"Frontmatter in {path} is not a mapping, ignoring it")
        return {}, content
    return frontmatter, parts[2].strip()
