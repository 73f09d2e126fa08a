"""CLI parser and command behaviour tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from repohealth.cli import _build_parser, main
from repohealth.models import AnalysisResult, CodeMetrics, RepoMetadata
from repohealth.scoring import score
from repohealth.stores import ResultCache


def _result(full_name: str) -> AnalysisResult:
    owner, name = full_name.split("/")
    metrics = CodeMetrics()
    return AnalysisResult(
        metadata=RepoMetadata(owner=owner, name=name, full_name=full_name),
        branch="main",
        metrics=metrics,
        scores=score(metrics),
    )


def test_cli_accepts_verbose_before_and_after_command() -> None:
    parser = _build_parser()

    assert parser.parse_args(["--verbose", "cache", "clear"]).verbose is True
    assert parser.parse_args(["analyze", "octo/widgets", "--verbose"]).verbose is True
    assert parser.parse_args(["analyze", "octo/widgets"]).verbose is False


def test_cli_parses_analyze_options() -> None:
    args = _build_parser().parse_args(
        [
            "analyze",
            "https://github.com/octo/widgets",
            "--branch",
            "dev",
            "--force-refresh",
            "--server",
            "http://localhost:8000",
            "--json",
        ]
    )

    assert args.command == "analyze"
    assert args.url == "https://github.com/octo/widgets"
    assert args.branch == "dev"
    assert args.force_refresh is True
    assert args.server == "http://localhost:8000"
    assert args.as_json is True


def test_cli_parses_serve_defaults() -> None:
    args = _build_parser().parse_args(["serve"])

    assert (args.host, args.port) == ("0.0.0.0", 8000)


def test_cli_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        _build_parser().parse_args([])


def test_cache_list_and_clear(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cache = ResultCache(tmp_path / ".repohealth" / "results.json")
    cache.set("octo/widgets", _result("octo/widgets"), "dev")
    cache.set("octo/gadgets", _result("octo/gadgets"))

    main(["--config", str(tmp_path), "cache", "list"])
    listing = capsys.readouterr().out
    assert "octo/widgets@dev" in listing
    assert "octo/gadgets  analyzed" in listing
    assert "expires in 6d" in listing or "expires in 7d" in listing

    main(["--config", str(tmp_path), "cache", "clear"])
    assert capsys.readouterr().out.strip() == "Cache cleared"

    main(["--config", str(tmp_path), "cache", "list"])
    assert capsys.readouterr().out.strip() == "No cached analyses"


def test_analyze_rejects_invalid_reference(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(tmp_path), "analyze", "not a repository"])

    assert excinfo.value.code == 1
    assert "Invalid GitHub repository URL" in capsys.readouterr().err


def test_invalid_config_exits(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (tmp_path / ".repohealth.yml").write_text("llm: [unclosed\n", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(tmp_path), "cache", "list"])

    assert excinfo.value.code == 1
    assert "Failed to parse" in capsys.readouterr().err


def test_cache_remove_single_branch_and_all_branches(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cache_path = tmp_path / ".repohealth" / "results.json"
    cache = ResultCache(cache_path)
    for branch in (None, "dev", "release"):
        cache.set("octo/widgets", _result("octo/widgets"), branch)
    cache.set("octo/gadgets", _result("octo/gadgets"))

    main(["--config", str(tmp_path), "cache", "remove", "octo/widgets", "--branch", "dev"])
    assert capsys.readouterr().out.strip() == "Removed octo/widgets@dev"
    assert ResultCache(cache_path).get("octo/widgets", "dev") is None
    assert ResultCache(cache_path).get("octo/widgets", "release") is not None

    main(["--config", str(tmp_path), "cache", "remove", "https://github.com/octo/widgets", "--all-branches"])
    removed = capsys.readouterr().out.splitlines()
    assert sorted(removed) == ["Removed octo/widgets", "Removed octo/widgets@release"]

    reloaded = ResultCache(cache_path)
    assert reloaded.get_for_repo("octo/widgets") == []
    assert reloaded.get("octo/gadgets") is not None

    main(["--config", str(tmp_path), "cache", "remove", "octo/widgets"])
    assert capsys.readouterr().out.strip() == "No cached analysis for octo/widgets"


def test_cache_remove_rejects_branch_with_all_branches() -> None:
    with pytest.raises(SystemExit):
        _build_parser().parse_args(["cache", "remove", "octo/widgets", "--branch", "x", "--all-branches"])


def test_log_file_receives_command_logs(tmp_path: Path) -> None:
    ResultCache(tmp_path / ".repohealth" / "results.json").set("octo/widgets", _result("octo/widgets"))
    log_file = tmp_path / "repohealth.log"

    main(["--config", str(tmp_path), "--log-file", str(log_file), "cache", "remove", "octo/widgets"])

    assert "Removed 1 cached analyses of octo/widgets" in log_file.read_text(encoding="utf-8")
