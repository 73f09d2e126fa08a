"""Tests for the client result cache."""

from __future__ import annotations

import json
from pathlib import Path

from repohealth.models import AnalysisResult, CodeMetrics, RepoMetadata
from repohealth.scoring import score
from repohealth.stores import CacheEvent, ResultCache, cache_key

DAY = 24 * 60 * 60


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _result(full_name: str = "Octo/Widgets") -> AnalysisResult:
    owner, name = full_name.split("/")
    metrics = CodeMetrics(has_tests=True)
    return AnalysisResult(
        metadata=RepoMetadata(owner=owner, name=name, full_name=full_name),
        branch="main",
        metrics=metrics,
        scores=score(metrics),
    )


def test_cache_key_format() -> None:
    assert cache_key("Octo/Widgets") == "octo/widgets"
    assert cache_key("Octo/Widgets", "dev") == "octo/widgets@dev"


def test_entry_expires_exactly_at_ttl_boundary() -> None:
    clock = FakeClock()
    cache = ResultCache(ttl_days=7, clock=clock)
    cache.set("Octo/Widgets", _result())

    clock.now += 7 * DAY - 1
    assert cache.get("octo/widgets") is not None

    clock.now += 1
    assert cache.get("octo/widgets") is None


def test_branches_are_cached_separately() -> None:
    cache = ResultCache(clock=FakeClock())
    cache.set("octo/widgets", _result(), branch="dev")

    assert cache.get("octo/widgets") is None
    assert cache.get("octo/widgets", "dev") is not None
    assert [record.branch for record in cache.get_for_repo("OCTO/widgets")] == ["dev"]


def test_get_round_trips_result() -> None:
    cache = ResultCache(clock=FakeClock())
    original = _result()
    cache.set("octo/widgets", original)

    restored = cache.get("octo/widgets")

    assert restored == original


def test_recent_is_newest_first_and_limited() -> None:
    clock = FakeClock()
    cache = ResultCache(clock=clock)
    for index in range(12):
        clock.now += 1
        cache.set(f"octo/repo{index}", _result(f"octo/repo{index}"))

    recent = cache.get_recent()

    assert len(recent) == 10
    assert recent[0].repo_full_name == "octo/repo11"
    assert [record.repo_full_name for record in cache.get_recent(2)] == [
        "octo/repo11",
        "octo/repo10",
    ]


def test_subscribers_see_mutations_synchronously() -> None:
    cache = ResultCache(clock=FakeClock())
    seen = []

    def listener(event: CacheEvent) -> None:
        seen.append((event, cache.get("octo/widgets") is not None))

    unsubscribe = cache.subscribe(listener)
    cache.set("octo/widgets", _result())
    assert cache.remove("octo/widgets") is True
    assert cache.remove("octo/widgets") is False
    cache.clear_all()
    unsubscribe()
    cache.set("octo/widgets", _result())

    assert seen == [
        (CacheEvent("set", "octo/widgets"), True),
        (CacheEvent("remove", "octo/widgets"), False),
        (CacheEvent("clear"), False),
    ]


def test_persists_and_reloads(tmp_path: Path) -> None:
    path = tmp_path / "cache" / "results.json"
    clock = FakeClock()
    ResultCache(path, clock=clock).set("octo/widgets", _result(), branch="main")

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["version"] == 1
    assert list(payload["entries"]) == ["octo/widgets@main"]

    reloaded = ResultCache(path, clock=clock)
    assert reloaded.get("octo/widgets", "main") == _result()


def test_tolerates_corrupt_files_and_records(tmp_path: Path) -> None:
    path = tmp_path / "results.json"
    path.write_text("{broken", encoding="utf-8")
    assert ResultCache(path).get_recent() == []

    path.write_text(
        json.dumps(
            {
                "version": 1,
                "entries": {
                    "bad": {"repo_full_name": "x/y", "timestamp": "yesterday", "data": {}},
                    "worse": ["not", "a", "record"],
                },
            }
        ),
        encoding="utf-8",
    )
    assert ResultCache(path).get_recent() == []


def test_days_until_expiry() -> None:
    clock = FakeClock()
    cache = ResultCache(ttl_days=7, clock=clock)
    cache.set("octo/widgets", _result())
    record = cache.get_recent()[0]

    clock.now += 2.5 * DAY
    assert cache.days_until_expiry(record) == 4
