#!/usr/bin/env python3
"""
Cline GSD Output Collection

Checks which of an agent batch's expected files exist and renders a
plain-text report.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Sequence

from .models import OutputReport, OutputVerification
from .utils import PathLike


def verify_outputs(paths: Iterable[PathLike]) -> List[OutputVerification]:
    """Probe each path for existence. Missing parents just mean exists=False."""
    return [OutputVerification(path=str(p), exists=Path(p).exists()) for p in paths]


def report_results(verifications: Sequence[OutputVerification]) -> OutputReport:
    """Render one OK/MISSING line per path plus a found/total summary."""
    total = len(verifications)
    found = sum(1 for v in verifications if v.exists)
    lines = [f"  {'OK' if v.exists else 'MISSING':<8} {v.path}" for v in verifications]
    lines.append(f"{found}/{total} expected files found")
    return OutputReport(
        total=total,
        found=found,
        missing=total - found,
        report="\n".join(lines),
    )
