"""Heuristic code metrics derived from the file tree and fetched file contents."""

from __future__ import annotations

import json
import re
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from . import rules as r
from ..logging import get_logger
from ..models import CodeMetrics, CodePatterns, FileTreeNode
from ..tree import flatten_paths

_README_KEYS = ("README.md", "readme.md", "Readme.md")

logger = get_logger("analyzers.metrics")


class MetricsAnalyzer:
    """Scans paths and a bounded set of contents against pluggable rule tables."""

    def __init__(
        self,
        *,
        path_rules: Sequence[r.PathRule] = r.DEFAULT_PATH_RULES,
        content_rules: Sequence[r.ContentRule] = r.DEFAULT_CONTENT_RULES,
        dependency_rules: Sequence[r.DependencyRule] = r.DEFAULT_DEPENDENCY_RULES,
        large_file_threshold: int = 10_000,
    ) -> None:
        self.path_rules = tuple(path_rules)
        self.content_rules = tuple(content_rules)
        self.dependency_rules = tuple(dependency_rules)
        self.large_file_threshold = large_file_threshold

    def analyze(
        self, tree: Iterable[FileTreeNode], file_contents: Mapping[str, str]
    ) -> CodeMetrics:
        paths = flatten_paths(tree)
        matches = self._match_paths(paths)

        ci_provider = self._first_label(r.CI, paths)
        has_linting = bool(matches[r.LINT_CONFIG])
        has_prettier = bool(matches[r.FORMAT_CONFIG])

        package = _load_json(file_contents.get("package.json"), "package.json")
        dependencies = _as_mapping(package.get("dependencies")) if package else {}
        dev_dependencies = _as_mapping(package.get("devDependencies")) if package else {}
        if package:
            has_linting = has_linting or "eslint" in dev_dependencies or "biome" in dev_dependencies
            has_prettier = has_prettier or "prettier" in dev_dependencies

        strict_mode = False
        ts_config = _load_json(file_contents.get("tsconfig.json"), "tsconfig.json")
        if ts_config:
            compiler_options = _as_mapping(ts_config.get("compilerOptions"))
            strict_mode = compiler_options.get("strict") is True

        readme = next((file_contents[key] for key in _README_KEYS if key in file_contents), "")

        exposed_secrets: List[str] = []
        large_files: List[str] = []
        patterns_found: set[str] = set()
        for path, content in file_contents.items():
            if len(content) > self.large_file_threshold:
                large_files.append(path)
            if not path.endswith(r.TEMPLATE_SUFFIXES) and r.SECRET_PATTERN.search(content):
                exposed_secrets.append(path)
            for rule in self.content_rules:
                if rule.finding not in patterns_found and rule.matches(content):
                    patterns_found.add(rule.finding)

        vulnerable: List[str] = []
        raw_package = file_contents.get("package.json")
        if raw_package:
            vulnerable = [
                rule.message for rule in self.dependency_rules if rule.pattern.search(raw_package)
            ]

        has_license = bool(matches[r.LICENSE])
        has_env_example = bool(matches[r.ENV_EXAMPLE])
        has_security_config = bool(matches[r.SECURITY_CONFIG])

        missing: List[str] = []
        if not matches[r.README]:
            missing.append("README.md")
        if not has_license:
            missing.append("LICENSE")
        if not has_env_example and matches[r.ENV_FILE]:
            missing.append(".env.example")

        automations: List[str] = []
        if ci_provider:
            automations.append(ci_provider)
        if has_security_config:
            automations.append("Dependabot")
        husky = self._first_label(r.HUSKY, paths)
        if husky:
            automations.append(husky)

        test_file_count = len(matches[r.TEST])
        metrics = CodeMetrics(
            has_tests=test_file_count > 0,
            test_file_count=test_file_count,
            has_ci=ci_provider is not None,
            ci_provider=ci_provider,
            has_linting=has_linting,
            has_typescript=bool(matches[r.TYPESCRIPT]),
            strict_mode=strict_mode,
            has_prettier=has_prettier,
            has_security_config=has_security_config,
            has_env_example=has_env_example,
            exposed_secrets=tuple(exposed_secrets),
            has_changelog=bool(matches[r.CHANGELOG]),
            has_contributing=bool(matches[r.CONTRIBUTING]),
            has_license=has_license,
            readme_quality=assess_readme(readme),
            dependency_count=len(dependencies),
            dev_dependency_count=len(dev_dependencies),
            vulnerable_patterns=tuple(vulnerable),
            large_files=tuple(large_files),
            code_patterns=CodePatterns(
                has_error_handling=r.ERROR_HANDLING in patterns_found,
                has_logging=r.LOGGING in patterns_found,
                has_validation=r.VALIDATION in patterns_found,
            ),
            missing_essentials=tuple(missing),
            existing_automations=tuple(automations),
        )
        logger.debug(
            "Analyzed %d paths and %d files (tests=%d, ci=%s)",
            len(paths),
            len(file_contents),
            test_file_count,
            ci_provider,
        )
        return metrics

    def _match_paths(self, paths: Sequence[str]) -> Dict[str, set[str]]:
        # A path matched by two rules with the same finding counts once.
        matches: Dict[str, set[str]] = defaultdict(set)
        for path in paths:
            for rule in self.path_rules:
                if rule.matches(path):
                    matches[rule.finding].add(path)
        return matches

    def _first_label(self, finding: str, paths: Sequence[str]) -> Optional[str]:
        for rule in self.path_rules:
            if rule.finding != finding:
                continue
            if any(rule.matches(path) for path in paths):
                return rule.label
        return None


def analyze_code_metrics(
    tree: Iterable[FileTreeNode], file_contents: Mapping[str, str]
) -> CodeMetrics:
    """Run the default analyzer."""
    return MetricsAnalyzer().analyze(tree, file_contents)


def assess_readme(readme: str) -> str:
    if len(readme) < 100:
        return "missing"
    if len(readme) < 300:
        return "minimal"
    score = 0
    if re.search(r"install|setup", readme, re.IGNORECASE):
        score += 1
    if re.search(r"usage|example", readme, re.IGNORECASE):
        score += 1
    if "```" in readme:
        score += 1
    if score >= 3:
        return "excellent"
    if score >= 2:
        return "good"
    return "basic"


def _load_json(raw: Optional[str], name: str) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Ignoring unparsable %s", name)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _as_mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


__all__ = ["MetricsAnalyzer", "analyze_code_metrics", "assess_readme"]
