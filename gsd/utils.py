#!/usr/bin/env python3
"""
Cline GSD Utilities

Common helpers for file I/O, live logging, naming, and platform detection.
"""
from __future__ import annotations

import datetime as dt
import json
import os
import re
import sys
import tempfile
from pathlib import Path
from typing import Any, IO, Optional, Union

import logging

logger = logging.getLogger("gsd")

PathLike = Union[str, Path]

# Global live log file handle (set by the CLI)
_live_log: Optional[IO[str]] = None


def set_live_log(log_file: Optional[IO[str]]) -> None:
    """Set the global live log file handle."""
    global _live_log
    _live_log = log_file


def write_live(msg: str, prefix: str = "") -> None:
    """Write to live log file for real-time monitoring via tail -f."""
    if _live_log:
        ts = dt.datetime.now().strftime("%H:%M:%S")
        line = f"[{ts}] {prefix}{msg}\n" if prefix else f"[{ts}] {msg}\n"
        _live_log.write(line)
        _live_log.flush()


def log_step(msg: str, prefix: str = "[pipeline] ", level: int = logging.INFO) -> None:
    """Log a pipeline progress line and mirror it to the live log."""
    logger.log(level, f"{prefix}{msg}")
    write_live(msg, prefix=prefix)


def get_platform() -> str:
    """Return 'mac', 'windows', 'linux' or 'unknown'."""
    if sys.platform == "darwin":
        return "mac"
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform.startswith("linux"):
        return "linux"
    return "unknown"


def today_iso() -> str:
    """Return today's date as YYYY-MM-DD."""
    return dt.date.today().isoformat()


def read_text(path: Path) -> str:
    """Read text from file, return empty string if file doesn't exist."""
    return path.read_text(encoding="utf-8") if path.exists() else ""


def write_text_atomic(path: Path, text: str) -> None:
    """Atomic write: write to temp file, fsync, then rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except Exception:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def save_json_atomic(path: Path, obj: Any) -> None:
    """Save object as JSON with atomic write."""
    write_text_atomic(path, json.dumps(obj, indent=2, ensure_ascii=False) + "\n")


def pad_phase(num: int) -> str:
    """Zero-pad a phase or plan number to 2 digits."""
    return str(num).zfill(2)


def slugify(name: str) -> str:
    """Lowercase, collapse non-alphanumerics to hyphens, trim hyphens."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def describe_os_error(e: OSError, fallback_path: Optional[PathLike] = None) -> str:
    """Render an OSError, with a friendlier message for permission failures."""
    if isinstance(e, PermissionError):
        return f"Permission denied: {e.filename or fallback_path}"
    if e.strerror and e.filename:
        return f"{e.strerror}: {e.filename}"
    return str(e)
