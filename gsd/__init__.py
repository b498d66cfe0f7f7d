"""Cline GSD: agent orchestration and planning-state engine."""

__version__ = "0.4.0"
