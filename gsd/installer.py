#!/usr/bin/env python3
"""
Cline GSD Installer

Copies workflow markdown files into the user's Cline commands directory
(``$CLINE_DIR/commands/gsd`` or ``~/.cline/commands/gsd``). Every path the
install creates is recorded on an InstallTransaction so a failed install
can be rolled back completely.
"""
from __future__ import annotations

import dataclasses
import logging
import os
import shutil
from pathlib import Path
from typing import List, Optional

from . import __version__
from .models import Result
from .utils import PathLike, describe_os_error, write_text_atomic

logger = logging.getLogger("gsd")


def get_cline_config_dir() -> Path:
    override = os.environ.get("CLINE_DIR")
    if override:
        return Path(override)
    return Path.home() / ".cline"


def get_commands_dir() -> Path:
    return get_cline_config_dir() / "commands" / "gsd"


@dataclasses.dataclass
class InstallTransaction:
    """Paths created by one install, in creation order."""
    created: List[Path] = dataclasses.field(default_factory=list)

    def track(self, path: Path) -> None:
        self.created.append(path)


def rollback(txn: InstallTransaction) -> List[str]:
    """Remove everything the transaction created, newest first.

    Returns the paths that could not be removed.
    """
    leftovers: List[str] = []
    for path in reversed(txn.created):
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            elif path.exists() or path.is_symlink():
                path.unlink()
        except OSError as e:
            logger.warning(f"Rollback could not remove {path}: {e}")
            leftovers.append(str(path))
    txn.created.clear()
    return leftovers


def copy_workflows(src_dir: PathLike, dest_dir: PathLike, txn: InstallTransaction) -> int:
    """Copy every ``*.md`` in src_dir to dest_dir. Returns the file count."""
    src_dir = Path(src_dir)
    dest_dir = Path(dest_dir)
    if not dest_dir.exists():
        dest_dir.mkdir(parents=True)
        txn.track(dest_dir)

    count = 0
    for src in sorted(src_dir.iterdir()):
        if src.suffix != ".md" or not src.is_file():
            continue
        dest = dest_dir / src.name
        shutil.copyfile(src, dest)
        txn.track(dest)
        logger.debug(f"Copied: {src.name}")
        count += 1
    return count


def write_version(dest_dir: PathLike, version: str, txn: InstallTransaction) -> None:
    path = Path(dest_dir) / "VERSION"
    write_text_atomic(path, version)
    txn.track(path)


def install(
    src_dir: PathLike,
    dest_dir: Optional[PathLike] = None,
    version: str = __version__,
) -> Result:
    """Clean install of the workflow files.

    An existing installation is removed first. On any failure the partial
    install is rolled back.

    Returns:
        Result with data {"files_installed": int, "location": str}
    """
    dest = Path(dest_dir) if dest_dir else get_commands_dir()
    txn = InstallTransaction()
    try:
        if dest.exists():
            logger.info(f"Removing existing installation at {dest}")
            shutil.rmtree(dest)
        count = copy_workflows(src_dir, dest, txn)
        write_version(dest, version, txn)
    except OSError as e:
        rollback(txn)
        return Result.fail(describe_os_error(e, dest))

    logger.info(f"Installed {count} workflow(s) to {dest}")
    return Result.ok({"files_installed": count, "location": str(dest)})
