"""Client-side cache of finished analyses with lazy TTL expiry and change notification."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..logging import get_logger
from ..models import AnalysisResult

_CACHE_VERSION = 1
_SECONDS_PER_DAY = 24 * 60 * 60

logger = get_logger("stores.result_cache")


@dataclass(frozen=True)
class CacheEvent:
    """Published to subscribers after every mutation."""

    action: str
    key: Optional[str] = None


@dataclass
class CacheRecord:
    repo_full_name: str
    branch: Optional[str]
    timestamp: float
    data: Dict[str, object]

    def to_dict(self) -> Dict[str, object]:
        return {
            "repo_full_name": self.repo_full_name,
            "branch": self.branch,
            "timestamp": self.timestamp,
            "data": self.data,
        }


Listener = Callable[[CacheEvent], None]


class CacheSubject:
    """Minimal synchronous pub-sub; listeners run before the mutating call returns."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def notify(self, event: CacheEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    def __len__(self) -> int:
        return len(self._listeners)


def cache_key(repo_full_name: str, branch: Optional[str] = None) -> str:
    """Stable storage key for (repository, branch)."""
    base = repo_full_name.strip().lower()
    return f"{base}@{branch}" if branch else base


class ResultCache:
    """Stores `AnalysisResult` records keyed by repository and optional branch.

    Entries older than `ttl_days` read as misses; there is no separate sweep.
    When `path` is set every mutation is written through to a JSON file.
    """

    def __init__(
        self,
        path: Path | None = None,
        *,
        ttl_days: int = 7,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._path = path
        self.ttl_seconds = ttl_days * _SECONDS_PER_DAY
        self._clock = clock
        self._entries: Dict[str, CacheRecord] = {}
        self._subject = CacheSubject()
        if self._path is not None:
            self._load(self._path)

    def get(self, repo_full_name: str, branch: Optional[str] = None) -> Optional[AnalysisResult]:
        record = self._live_record(cache_key(repo_full_name, branch))
        if record is None:
            return None
        return AnalysisResult.from_dict(record.data)

    def set(
        self, repo_full_name: str, value: AnalysisResult, branch: Optional[str] = None
    ) -> None:
        key = cache_key(repo_full_name, branch)
        self._entries[key] = CacheRecord(
            repo_full_name=repo_full_name,
            branch=branch,
            timestamp=self._clock(),
            data=value.to_dict(),
        )
        self._commit(CacheEvent("set", key))

    def remove(self, repo_full_name: str, branch: Optional[str] = None) -> bool:
        key = cache_key(repo_full_name, branch)
        if self._entries.pop(key, None) is None:
            return False
        self._commit(CacheEvent("remove", key))
        return True

    def get_for_repo(self, repo_full_name: str) -> List[CacheRecord]:
        """Live records for every cached branch of one repository."""
        wanted = repo_full_name.strip().lower()
        return [
            record
            for record in self._live_records()
            if record.repo_full_name.strip().lower() == wanted
        ]

    def get_recent(self, limit: int = 10) -> List[CacheRecord]:
        records = sorted(self._live_records(), key=lambda record: record.timestamp, reverse=True)
        return records[: max(0, limit)]

    def clear_all(self) -> None:
        self._entries.clear()
        self._commit(CacheEvent("clear"))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._subject.subscribe(listener)

    def days_until_expiry(self, record: CacheRecord) -> int:
        remaining = record.timestamp + self.ttl_seconds - self._clock()
        return max(0, int(remaining // _SECONDS_PER_DAY))

    # ------------------------------------------------------------------
    # Internal helpers

    def _is_expired(self, record: CacheRecord) -> bool:
        return self._clock() - record.timestamp >= self.ttl_seconds

    def _live_record(self, key: str) -> Optional[CacheRecord]:
        record = self._entries.get(key)
        if record is None or self._is_expired(record):
            return None
        return record

    def _live_records(self) -> List[CacheRecord]:
        return [record for record in self._entries.values() if not self._is_expired(record)]

    def _commit(self, event: CacheEvent) -> None:
        self._persist()
        self._subject.notify(event)

    def _persist(self) -> None:
        if self._path is None:
            return
        payload = {
            "version": _CACHE_VERSION,
            "entries": {key: record.to_dict() for key, record in self._entries.items()},
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable cache file %s: %s", path, exc)
            return
        if not isinstance(data, dict) or data.get("version") != _CACHE_VERSION:
            return
        entries = data.get("entries")
        if not isinstance(entries, dict):
            return
        for key, raw in entries.items():
            record = _record_from_dict(raw)
            if isinstance(key, str) and record is not None:
                self._entries[key] = record


def _record_from_dict(payload: object) -> Optional[CacheRecord]:
    if not isinstance(payload, dict):
        return None
    name = payload.get("repo_full_name")
    timestamp = payload.get("timestamp")
    data = payload.get("data")
    if not isinstance(name, str) or not isinstance(data, dict):
        return None
    if not isinstance(timestamp, (int, float)) or isinstance(timestamp, bool):
        return None
    branch = payload.get("branch")
    return CacheRecord(
        repo_full_name=name,
        branch=branch if isinstance(branch, str) else None,
        timestamp=float(timestamp),
        data=data,
    )


__all__ = ["CacheEvent", "CacheRecord", "CacheSubject", "ResultCache", "cache_key"]
