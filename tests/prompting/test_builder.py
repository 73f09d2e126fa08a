"""Tests for the analysis prompt builder."""

from __future__ import annotations

from repohealth.models import CodeMetrics, FileStats, RepoMetadata
from repohealth.prompting import PromptBuilder, format_metrics_context, prepare_files_content
from repohealth.prompting.builder import format_languages
from repohealth.scoring import score

METADATA = RepoMetadata(
    owner="octo",
    name="widgets",
    full_name="octo/widgets",
    description="Widgets for everyone",
    language="TypeScript",
    stars=12345,
    forks=67,
    open_issues=8,
)


def _build(tree_builder, builder: PromptBuilder | None = None) -> str:
    tree_builder.write(
        {
            "README.md": "# widgets\n",
            "package.json": '{"dependencies": {"react": "18"}}',
        }
    )
    tree_builder.touch("src/index.ts", "src/widget.test.ts")
    tree = tree_builder.tree()
    metrics = CodeMetrics(has_tests=True, test_file_count=1, has_typescript=True)
    builder = builder or PromptBuilder()
    context = builder.build_context(
        METADATA,
        tree,
        FileStats(total_files=4, total_directories=1, languages={"TypeScript": 2}),
        tree_builder.contents(),
        "main",
    )
    return builder.build_prompt(context, metrics, score(metrics))


def test_prompt_contains_metadata_scores_and_contract(tree_builder) -> None:
    prompt = _build(tree_builder)

    assert prompt.startswith("# GitHub Repository Analysis: octo/widgets")
    assert "| **Stars** | 12,345 |" in prompt
    assert "| **Languages** | TypeScript (2) |" in prompt
    assert "DO NOT RECOMPUTE" in prompt
    assert '"code_quality": 70' in prompt
    assert "### README.md" in prompt
    assert "src/" in prompt
    assert '"what_it_does"' in prompt
    assert "git clone https://github.com/octo/widgets.git" in prompt
    assert '"strength", "weakness"' in prompt


def test_prompt_truncates_long_description(tree_builder) -> None:
    prompt = _build(tree_builder, PromptBuilder(max_description_length=10))

    assert "Widgets for everyone" not in prompt
    assert "Widgets f…" in prompt


def test_prepare_files_content_caps_count_and_length() -> None:
    files = {f"file{index}.py": "x" * 100 for index in range(10)}

    content = prepare_files_content(files, max_files=3, max_length=20)

    assert content.count("### ") == 3
    assert "x" * 21 not in content
    assert "file3.py" not in content


def test_metrics_context_section_order() -> None:
    metrics = CodeMetrics(
        has_ci=True,
        ci_provider="GitHub Actions",
        exposed_secrets=("a.py", "b.py"),
        large_files=("big.js",),
        missing_essentials=("LICENSE",),
        existing_automations=("GitHub Actions",),
    )

    context = format_metrics_context(metrics)
    headers = [line for line in context.splitlines() if line.startswith("### ")]

    assert headers == [
        "### Testing",
        "### CI/CD",
        "### Code Quality",
        "### Security",
        "### Documentation",
        "### Dependencies",
        "### Issues",
        "### Existing Automations",
    ]
    assert "- Has CI: Yes (GitHub Actions)" in context
    assert "- ⚠️ Potential Secrets: 2 detected" in context
    assert "- Missing: LICENSE" in context


def test_metrics_context_omits_empty_optional_sections() -> None:
    context = format_metrics_context(CodeMetrics())

    assert "### Issues" not in context
    assert "### Existing Automations" not in context
    assert "- Has Tests: No" in context


def test_format_languages_limits_entries() -> None:
    languages = {name: 1 for name in ("A", "B", "C", "D", "E", "F")}

    assert format_languages(languages) == "A (1), B (1), C (1), D (1), E (1)"
    assert format_languages({}) == "Unknown"
