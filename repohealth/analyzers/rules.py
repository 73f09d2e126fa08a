"""Rule tables for heuristic path and content detection."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Pattern, Tuple

TEST = "test"
CI = "ci"
SECURITY_CONFIG = "security_config"
ENV_EXAMPLE = "env_example"
ENV_FILE = "env_file"
CHANGELOG = "changelog"
CONTRIBUTING = "contributing"
LICENSE = "license"
LINT_CONFIG = "lint_config"
FORMAT_CONFIG = "format_config"
HUSKY = "husky"
TYPESCRIPT = "typescript"
README = "readme"

ERROR_HANDLING = "error_handling"
LOGGING = "logging"
VALIDATION = "validation"


@dataclass(frozen=True)
class PathRule:
    """Maps a path pattern to a finding; `label` names the tool when relevant."""

    finding: str
    pattern: Pattern[str]
    label: Optional[str] = None

    def matches(self, path: str) -> bool:
        return self.pattern.search(path) is not None


@dataclass(frozen=True)
class ContentRule:
    """Maps a content pattern to a code-pattern finding."""

    finding: str
    pattern: Pattern[str]

    def matches(self, content: str) -> bool:
        return self.pattern.search(content) is not None


@dataclass(frozen=True)
class DependencyRule:
    """Flags a deprecated dependency mentioned in a package manifest."""

    pattern: Pattern[str]
    message: str


DEFAULT_PATH_RULES: Tuple[PathRule, ...] = (
    PathRule(TEST, re.compile(r"\.(test|spec)\.(js|ts|jsx|tsx)$|__tests__|_test\.(go|py)$")),
    PathRule(TEST, re.compile(r"(^|/)test_[^/]+\.py$")),
    PathRule(CI, re.compile(r"\.github/workflows"), label="GitHub Actions"),
    PathRule(CI, re.compile(r"\.gitlab-ci\.yml$"), label="GitLab CI"),
    PathRule(CI, re.compile(r"Jenkinsfile$"), label="Jenkins"),
    PathRule(SECURITY_CONFIG, re.compile(r"dependabot\.yml|\.snyk$")),
    PathRule(ENV_EXAMPLE, re.compile(r"\.env\.example$")),
    PathRule(ENV_FILE, re.compile(r"\.env$")),
    PathRule(CHANGELOG, re.compile(r"changelog\.md$", re.IGNORECASE)),
    PathRule(CONTRIBUTING, re.compile(r"contributing\.md$", re.IGNORECASE)),
    PathRule(LICENSE, re.compile(r"^license", re.IGNORECASE)),
    PathRule(LINT_CONFIG, re.compile(r"\.eslintrc|eslint\.config|biome\.json")),
    PathRule(FORMAT_CONFIG, re.compile(r"\.prettierrc")),
    PathRule(HUSKY, re.compile(r"\.husky/"), label="Husky"),
    PathRule(TYPESCRIPT, re.compile(r"\.tsx?$")),
    PathRule(README, re.compile(r"readme\.md$", re.IGNORECASE)),
)

DEFAULT_CONTENT_RULES: Tuple[ContentRule, ...] = (
    ContentRule(ERROR_HANDLING, re.compile(r"try\s*\{|\.catch\(|^\s*try:\s*$", re.MULTILINE)),
    ContentRule(LOGGING, re.compile(r"console\.|logger\.|winston|pino|logging\.")),
    ContentRule(VALIDATION, re.compile(r"zod|yup|joi|validator|pydantic")),
)

DEFAULT_DEPENDENCY_RULES: Tuple[DependencyRule, ...] = (
    DependencyRule(re.compile(r'"moment"'), "moment.js → date-fns"),
    DependencyRule(re.compile(r'"request"'), "request → axios"),
)

# Permissive on purpose: low-entropy placeholder values also match.
SECRET_PATTERN = re.compile(
    r"""(?:API_KEY|SECRET|PASSWORD|TOKEN)\s*=\s*['"]?[A-Za-z0-9+/=_-]{8,}""",
    re.IGNORECASE,
)

TEMPLATE_SUFFIXES = (".example", ".sample", ".template")


__all__ = [
    "ContentRule",
    "DEFAULT_CONTENT_RULES",
    "DEFAULT_DEPENDENCY_RULES",
    "DEFAULT_PATH_RULES",
    "DependencyRule",
    "PathRule",
    "SECRET_PATTERN",
    "TEMPLATE_SUFFIXES",
]
