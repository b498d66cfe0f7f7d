from __future__ import annotations

from pathlib import Path

import pytest

from gsd.installer import InstallTransaction, get_commands_dir, install, rollback


@pytest.fixture
def workflows(tmp_path: Path) -> Path:
    src = tmp_path / "workflows"
    src.mkdir()
    (src / "gsd-plan-phase.md").write_text("# Plan\n", encoding="utf-8")
    (src / "gsd-map-codebase.md").write_text("# Map\n", encoding="utf-8")
    (src / "notes.txt").write_text("not a workflow\n", encoding="utf-8")
    return src


def test_commands_dir_honours_cline_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLINE_DIR", str(tmp_path / "cline"))
    assert get_commands_dir() == tmp_path / "cline" / "commands" / "gsd"


def test_install_copies_markdown_and_version(
    workflows: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("CLINE_DIR", str(tmp_path / "cline"))
    result = install(workflows, version="9.9.9")

    dest = tmp_path / "cline" / "commands" / "gsd"
    assert result.success
    assert result.data == {"files_installed": 2, "location": str(dest)}
    assert sorted(p.name for p in dest.iterdir()) == ["VERSION", "gsd-map-codebase.md", "gsd-plan-phase.md"]
    assert (dest / "VERSION").read_text(encoding="utf-8") == "9.9.9"


def test_reinstall_removes_stale_files(workflows: Path, tmp_path: Path) -> None:
    dest = tmp_path / "dest"
    dest.mkdir()
    (dest / "gsd-old.md").write_text("stale\n", encoding="utf-8")

    assert install(workflows, dest_dir=dest).success
    assert not (dest / "gsd-old.md").exists()


def test_failed_install_rolls_back(tmp_path: Path) -> None:
    dest = tmp_path / "dest"
    result = install(tmp_path / "no-such-dir", dest_dir=dest)
    assert not result.success
    assert "no-such-dir" in result.error
    assert not dest.exists()


def test_rollback_removes_newest_first(tmp_path: Path) -> None:
    txn = InstallTransaction()
    folder = tmp_path / "a"
    folder.mkdir()
    txn.track(folder)
    inner = folder / "b.md"
    inner.write_text("x", encoding="utf-8")
    txn.track(inner)
    txn.track(tmp_path / "never-created")

    assert rollback(txn) == []
    assert not folder.exists()
    assert txn.created == []
