from __future__ import annotations

import json
from pathlib import Path

from gsd.config import (
    DEFAULT_CONFIG, load_frontmatter_doc, merge_config, read_planning_config, write_config_json,
)


def test_missing_config_yields_defaults(tmp_path: Path) -> None:
    result = read_planning_config(tmp_path)
    assert result.success
    assert result.data == DEFAULT_CONFIG
    assert result.data is not DEFAULT_CONFIG


def test_partial_config_is_merged(tmp_path: Path) -> None:
    (tmp_path / "config.json").write_text(
        json.dumps({"mode": "interactive", "workflow": {"research": False}}), encoding="utf-8"
    )
    config = read_planning_config(tmp_path).data
    assert config["mode"] == "interactive"
    assert config["workflow"] == {"research": False, "plan_check": True, "verifier": True}
    assert config["depth"] == "comprehensive"


def test_invalid_json_fails(tmp_path: Path) -> None:
    (tmp_path / "config.json").write_text("{not json", encoding="utf-8")
    result = read_planning_config(tmp_path)
    assert not result.success
    assert result.error.startswith("Failed to read config.json")


def test_non_mapping_override_replaces_group() -> None:
    merged = merge_config(DEFAULT_CONFIG, {"gates": None, "extra": 1})
    assert merged["gates"] is None
    assert merged["extra"] == 1
    assert DEFAULT_CONFIG["gates"] == {"plan_review": False, "checkpoint_approval": True}


def test_write_config_json(tmp_path: Path) -> None:
    result = write_config_json(tmp_path, {"model_profile": "budget", "safety": {"dry_run_first": True}})
    written = json.loads(Path(result.data["path"]).read_text(encoding="utf-8"))
    assert written["model_profile"] == "budget"
    assert written["safety"] == {"backup_before_execute": False, "dry_run_first": True}
    assert written["parallelization"] is True


def test_load_frontmatter_doc(tmp_path: Path) -> None:
    doc = tmp_path / "03-CONTEXT.md"
    doc.write_text("---\nphase: 3\ntags: [a, b]\n---\n\n# Context\n", encoding="utf-8")
    meta, body = load_frontmatter_doc(doc)
    assert meta == {"phase": 3, "tags": ["a", "b"]}
    assert body == "# Context"


def test_load_frontmatter_doc_malformed(tmp_path: Path) -> None:
    doc = tmp_path / "bad.md"
    text = "---\nkey: [unclosed\n---\nbody\n"
    doc.write_text(text, encoding="utf-8")
    assert load_frontmatter_doc(doc) == ({}, text)
    assert load_frontmatter_doc(tmp_path / "missing.md") == ({}, "")


def test_undecodable_config_fails(tmp_path: Path) -> None:
    (tmp_path / "config.json").write_bytes(b'{"mode": "caf\xe9"}')
    result = read_planning_config(tmp_path)
    assert not result.success
    assert result.error.startswith("Failed to read config.json")
