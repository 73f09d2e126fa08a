"""Heuristic repository analyzers."""

from __future__ import annotations

from .metrics import MetricsAnalyzer, analyze_code_metrics, assess_readme
from .rules import ContentRule, DependencyRule, PathRule

__all__ = [
    "ContentRule",
    "DependencyRule",
    "MetricsAnalyzer",
    "PathRule",
    "analyze_code_metrics",
    "assess_readme",
]
