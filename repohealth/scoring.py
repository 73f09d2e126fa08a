"""Fixed-weight scoring of code metrics."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Tuple

from .models import CategoryScore, CodeMetrics, Scores

CATEGORY_WEIGHTS: Dict[str, Decimal] = {
    "code_quality": Decimal("0.20"),
    "security": Decimal("0.20"),
    "maintainability": Decimal("0.20"),
    "documentation": Decimal("0.15"),
    "test_coverage": Decimal("0.15"),
    "dependencies": Decimal("0.10"),
}

README_POINTS: Dict[str, int] = {
    "missing": 0,
    "minimal": 10,
    "basic": 25,
    "good": 40,
    "excellent": 50,
}


class _Category:
    """Accumulates adjustments on top of a base and records each as a factor."""

    def __init__(self, base: int) -> None:
        self.value = base
        self.factors: List[str] = []

    def adjust(self, delta: int, reason: str) -> None:
        self.value += delta
        sign = "+" if delta >= 0 else "-"
        self.factors.append(f"{sign}{abs(delta)}: {reason}")

    def result(self) -> CategoryScore:
        return CategoryScore(score=_clamp(self.value), factors=list(self.factors))


def score(metrics: CodeMetrics) -> Scores:
    """Return category and overall scores; identical metrics yield identical scores."""
    code_quality = _Category(50)
    if metrics.has_typescript:
        code_quality.adjust(20, "TypeScript")
    if metrics.strict_mode:
        code_quality.adjust(10, "Strict mode")
    if metrics.has_linting:
        code_quality.adjust(10, "Linting")
    if metrics.has_prettier:
        code_quality.adjust(5, "Prettier")
    if metrics.code_patterns.has_error_handling:
        code_quality.adjust(5, "Error handling")

    documentation = _Category(30)
    documentation.adjust(
        README_POINTS.get(metrics.readme_quality, 0), f"README {metrics.readme_quality}"
    )
    if metrics.has_changelog:
        documentation.adjust(10, "CHANGELOG")
    if not metrics.has_license:
        documentation.adjust(-15, "No LICENSE")

    security = _Category(70)
    if metrics.has_security_config:
        security.adjust(15, "Security config")
    if metrics.exposed_secrets:
        security.adjust(-30, "Secrets exposed")
    if metrics.vulnerable_patterns:
        security.adjust(-15, "Deprecated deps")

    maintainability = _Category(50)
    if metrics.has_ci:
        maintainability.adjust(25, metrics.ci_provider or "CI")
    if metrics.has_typescript:
        maintainability.adjust(15, "Types")
    if metrics.has_linting:
        maintainability.adjust(10, "Linting")

    test_coverage = _Category(20)
    if metrics.has_tests:
        test_coverage.adjust(50, "Tests exist")
    if metrics.has_ci:
        test_coverage.adjust(10, "CI")

    dependencies = _Category(80)
    if metrics.vulnerable_patterns:
        dependencies.adjust(-20, "Deprecated")
    if metrics.dependency_count > 50:
        dependencies.adjust(-10, "Heavy")

    breakdown: Dict[str, CategoryScore] = {
        "code_quality": code_quality.result(),
        "documentation": documentation.result(),
        "security": security.result(),
        "maintainability": maintainability.result(),
        "test_coverage": test_coverage.result(),
        "dependencies": dependencies.result(),
    }
    overall, overall_factors = weighted_overall(
        {name: entry.score for name, entry in breakdown.items()}
    )
    breakdown["overall"] = CategoryScore(score=overall, factors=overall_factors)

    return Scores(
        overall=overall,
        code_quality=breakdown["code_quality"].score,
        documentation=breakdown["documentation"].score,
        security=breakdown["security"].score,
        maintainability=breakdown["maintainability"].score,
        test_coverage=breakdown["test_coverage"].score,
        dependencies=breakdown["dependencies"].score,
        breakdown=breakdown,
    )


def weighted_overall(category_scores: Dict[str, int]) -> Tuple[int, List[str]]:
    """Round half up the weighted sum; exact because weights are decimal."""
    total = Decimal(0)
    factors: List[str] = []
    for name, weight in CATEGORY_WEIGHTS.items():
        contribution = weight * category_scores[name]
        total += contribution
        factors.append(f"+{contribution.normalize():f}: {name} {category_scores[name]} x {weight}")
    overall = int(total.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return overall, factors


def _clamp(value: int) -> int:
    return max(0, min(100, value))


__all__ = ["CATEGORY_WEIGHTS", "README_POINTS", "score", "weighted_overall"]
