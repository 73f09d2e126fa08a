"""Deterministic automation and refactor suggestions derived from metrics."""

from __future__ import annotations

from typing import List, Optional

from .models import CodeMetrics, Suggestion

MAX_SUGGESTIONS = 5


def generate_automations(
    metrics: CodeMetrics, primary_language: Optional[str] = None
) -> List[Suggestion]:
    """Return at most five issue/workflow suggestions, most urgent first."""
    automations: List[Suggestion] = []

    def _add(**kwargs) -> None:
        automations.append(Suggestion(id=f"auto-{len(automations) + 1}", **kwargs))

    if not metrics.has_ci:
        _add(
            kind="workflow",
            title="Add CI/CD Pipeline",
            description="Set up automated testing on push/PR",
            body="Add a GitHub Actions workflow that installs dependencies and runs the test suite.",
            labels=["ci", "automation"],
            priority="high",
            category="DevOps",
            effort="30 min",
            files=[".github/workflows/ci.yml"],
        )
    if metrics.exposed_secrets:
        _add(
            kind="issue",
            title="Remove Exposed Secrets",
            description=f"{len(metrics.exposed_secrets)} potential secret(s) detected",
            body=f"Files: {', '.join(metrics.exposed_secrets)}",
            labels=["security", "critical"],
            priority="high",
            category="Security",
            effort="1 hour",
        )
    if not metrics.has_security_config:
        _add(
            kind="workflow",
            title="Add Dependabot",
            description="Automated dependency updates",
            body="Configure Dependabot for security updates",
            labels=["security"],
            priority="medium",
            category="Security",
            effort="15 min",
            files=[".github/dependabot.yml"],
        )
    if not metrics.has_tests:
        framework = "pytest" if primary_language == "Python" else "Vitest or Jest"
        _add(
            kind="issue",
            title="Add Tests",
            description="Set up testing framework",
            body=f"Add {framework} for unit testing",
            labels=["testing"],
            priority="high",
            category="Testing",
            effort="2 hours",
        )
    if not metrics.has_env_example:
        _add(
            kind="issue",
            title="Add .env.example",
            description="Document environment variables",
            body="Create .env.example file",
            labels=["documentation"],
            priority="medium",
            category="Documentation",
            effort="15 min",
        )
    return automations[:MAX_SUGGESTIONS]


def generate_refactors(
    metrics: CodeMetrics, primary_language: Optional[str] = None
) -> List[Suggestion]:
    """Return at most five refactor suggestions."""
    refactors: List[Suggestion] = []

    def _add(**kwargs) -> None:
        refactors.append(
            Suggestion(id=f"ref-{len(refactors) + 1}", kind="refactor", **kwargs)
        )

    python = primary_language == "Python"
    if metrics.has_typescript and not metrics.strict_mode:
        _add(
            title="Enable TypeScript strict mode",
            description="Better type safety with strict: true",
            impact="high",
            effort="medium",
            category="Type Safety",
            files=["tsconfig.json"],
        )
    if not metrics.has_linting:
        _add(
            title="Add Ruff" if python else "Add ESLint",
            description="Enforce code style and catch errors",
            impact="medium",
            effort="low",
            category="Code Quality",
            files=["pyproject.toml" if python else "eslint.config.js"],
        )
    if not metrics.has_tests:
        _add(
            title="Add testing",
            description="Set up pytest for unit testing" if python else "Set up Vitest for unit testing",
            impact="high",
            effort="medium",
            category="Testing",
            files=["tests/conftest.py" if python else "vitest.config.ts"],
        )
    if not metrics.code_patterns.has_error_handling:
        _add(
            title="Add error handling",
            description="Implement try/except patterns" if python else "Implement try/catch patterns",
            impact="high",
            effort="medium",
            category="Reliability",
            files=["src/errors.py" if python else "src/lib/errors.ts"],
        )
    if not metrics.code_patterns.has_validation:
        _add(
            title="Add input validation",
            description="Use pydantic for input validation" if python else "Use Zod for type validation",
            impact="high",
            effort="low",
            category="Security",
            files=["src/schemas.py" if python else "src/lib/validations.ts"],
        )
    if metrics.large_files:
        _add(
            title="Split large files",
            description=f"{len(metrics.large_files)} file(s) exceed 10KB",
            impact="medium",
            effort="high",
            category="Maintainability",
            files=list(metrics.large_files[:3]),
        )
    return refactors[:MAX_SUGGESTIONS]


__all__ = ["MAX_SUGGESTIONS", "generate_automations", "generate_refactors"]
