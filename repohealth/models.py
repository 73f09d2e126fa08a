"""Core data models shared across repohealth components."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

README_QUALITIES = ("missing", "minimal", "basic", "good", "excellent")


@dataclass(frozen=True)
class RepoMetadata:
    """Repository identity and counters as reported by the source-hosting API."""

    owner: str
    name: str
    full_name: str
    description: Optional[str] = None
    language: Optional[str] = None
    stars: int = 0
    forks: int = 0
    open_issues: int = 0
    default_branch: str = "main"
    avatar_url: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: object) -> Optional["RepoMetadata"]:
        if not isinstance(payload, dict):
            return None
        owner = _as_str(payload.get("owner"))
        name = _as_str(payload.get("name"))
        if not owner or not name:
            return None
        return cls(
            owner=owner,
            name=name,
            full_name=_as_str(payload.get("full_name")) or f"{owner}/{name}",
            description=_as_str(payload.get("description")),
            language=_as_str(payload.get("language")),
            stars=_as_int(payload.get("stars")),
            forks=_as_int(payload.get("forks")),
            open_issues=_as_int(payload.get("open_issues")),
            default_branch=_as_str(payload.get("default_branch")) or "main",
            avatar_url=_as_str(payload.get("avatar_url")),
        )


@dataclass
class FileTreeNode:
    """A file or directory in the repository tree; directories own their children."""

    path: str
    name: str
    type: str
    size: int = 0
    children: List["FileTreeNode"] = field(default_factory=list)

    @property
    def is_directory(self) -> bool:
        return self.type == "directory"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "path": self.path,
            "name": self.name,
            "type": self.type,
            "size": self.size,
        }
        if self.is_directory:
            data["children"] = [child.to_dict() for child in self.children]
        return data

    @classmethod
    def from_dict(cls, payload: object) -> Optional["FileTreeNode"]:
        if not isinstance(payload, dict):
            return None
        path = _as_str(payload.get("path"))
        if not path:
            return None
        node_type = "directory" if payload.get("type") == "directory" else "file"
        children: List[FileTreeNode] = []
        for raw in _as_list(payload.get("children")):
            child = cls.from_dict(raw)
            if child is not None:
                children.append(child)
        return cls(
            path=path,
            name=_as_str(payload.get("name")) or path.rsplit("/", 1)[-1],
            type=node_type,
            size=_as_int(payload.get("size")),
            children=children,
        )


@dataclass(frozen=True)
class BranchInfo:
    """A branch of the analysed repository."""

    name: str
    is_default: bool = False
    protected: bool = False

    @classmethod
    def from_dict(cls, payload: object) -> Optional["BranchInfo"]:
        if not isinstance(payload, dict):
            return None
        name = _as_str(payload.get("name"))
        if not name:
            return None
        return cls(
            name=name,
            is_default=bool(payload.get("is_default")),
            protected=bool(payload.get("protected")),
        )


@dataclass
class FileStats:
    """Aggregate counts over the repository tree."""

    total_files: int = 0
    total_directories: int = 0
    languages: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: object) -> "FileStats":
        if not isinstance(payload, dict):
            return cls()
        languages = payload.get("languages")
        return cls(
            total_files=_as_int(payload.get("total_files")),
            total_directories=_as_int(payload.get("total_directories")),
            languages=(
                {str(key): _as_int(value) for key, value in languages.items()}
                if isinstance(languages, dict)
                else {}
            ),
        )


@dataclass(frozen=True)
class CodePatterns:
    has_error_handling: bool = False
    has_logging: bool = False
    has_validation: bool = False


@dataclass(frozen=True)
class CodeMetrics:
    """Structural and quality signals derived once per analysis."""

    has_tests: bool = False
    test_file_count: int = 0
    has_ci: bool = False
    ci_provider: Optional[str] = None
    has_linting: bool = False
    has_typescript: bool = False
    strict_mode: bool = False
    has_prettier: bool = False
    has_security_config: bool = False
    has_env_example: bool = False
    exposed_secrets: tuple[str, ...] = ()
    has_changelog: bool = False
    has_contributing: bool = False
    has_license: bool = False
    readme_quality: str = "missing"
    dependency_count: int = 0
    dev_dependency_count: int = 0
    vulnerable_patterns: tuple[str, ...] = ()
    large_files: tuple[str, ...] = ()
    code_patterns: CodePatterns = field(default_factory=CodePatterns)
    missing_essentials: tuple[str, ...] = ()
    existing_automations: tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, tuple):
                data[key] = list(value)
        return data

    @classmethod
    def from_dict(cls, payload: object) -> "CodeMetrics":
        if not isinstance(payload, dict):
            return cls()
        patterns = payload.get("code_patterns")
        patterns = patterns if isinstance(patterns, dict) else {}
        quality = _as_str(payload.get("readme_quality"))
        return cls(
            has_tests=bool(payload.get("has_tests")),
            test_file_count=_as_int(payload.get("test_file_count")),
            has_ci=bool(payload.get("has_ci")),
            ci_provider=_as_str(payload.get("ci_provider")),
            has_linting=bool(payload.get("has_linting")),
            has_typescript=bool(payload.get("has_typescript")),
            strict_mode=bool(payload.get("strict_mode")),
            has_prettier=bool(payload.get("has_prettier")),
            has_security_config=bool(payload.get("has_security_config")),
            has_env_example=bool(payload.get("has_env_example")),
            exposed_secrets=tuple(_as_str_list(payload.get("exposed_secrets"))),
            has_changelog=bool(payload.get("has_changelog")),
            has_contributing=bool(payload.get("has_contributing")),
            has_license=bool(payload.get("has_license")),
            readme_quality=quality if quality in README_QUALITIES else "missing",
            dependency_count=_as_int(payload.get("dependency_count")),
            dev_dependency_count=_as_int(payload.get("dev_dependency_count")),
            vulnerable_patterns=tuple(_as_str_list(payload.get("vulnerable_patterns"))),
            large_files=tuple(_as_str_list(payload.get("large_files"))),
            code_patterns=CodePatterns(
                has_error_handling=bool(patterns.get("has_error_handling")),
                has_logging=bool(patterns.get("has_logging")),
                has_validation=bool(patterns.get("has_validation")),
            ),
            missing_essentials=tuple(_as_str_list(payload.get("missing_essentials"))),
            existing_automations=tuple(_as_str_list(payload.get("existing_automations"))),
        )


@dataclass
class CategoryScore:
    score: int
    factors: List[str] = field(default_factory=list)


@dataclass
class Scores:
    """One overall score plus six category scores, each in [0, 100]."""

    overall: int
    code_quality: int
    documentation: int
    security: int
    maintainability: int
    test_coverage: int
    dependencies: int
    breakdown: Dict[str, CategoryScore] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: object) -> Optional["Scores"]:
        if not isinstance(payload, dict):
            return None
        breakdown: Dict[str, CategoryScore] = {}
        raw_breakdown = payload.get("breakdown")
        if isinstance(raw_breakdown, dict):
            for key, entry in raw_breakdown.items():
                if isinstance(entry, dict):
                    breakdown[str(key)] = CategoryScore(
                        score=_as_int(entry.get("score")),
                        factors=_as_str_list(entry.get("factors")),
                    )
        return cls(
            overall=_as_int(payload.get("overall")),
            code_quality=_as_int(payload.get("code_quality")),
            documentation=_as_int(payload.get("documentation")),
            security=_as_int(payload.get("security")),
            maintainability=_as_int(payload.get("maintainability")),
            test_coverage=_as_int(payload.get("test_coverage")),
            dependencies=_as_int(payload.get("dependencies")),
            breakdown=breakdown,
        )


@dataclass
class Suggestion:
    """A deterministic automation or refactor recommendation."""

    id: str
    kind: str
    title: str
    description: str
    category: str
    priority: str = "medium"
    effort: str = "medium"
    impact: Optional[str] = None
    body: Optional[str] = None
    labels: List[str] = field(default_factory=list)
    files: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: object) -> Optional["Suggestion"]:
        if not isinstance(payload, dict):
            return None
        identifier = _as_str(payload.get("id"))
        title = _as_str(payload.get("title"))
        if not identifier or not title:
            return None
        return cls(
            id=identifier,
            kind=_as_str(payload.get("kind")) or "issue",
            title=title,
            description=_as_str(payload.get("description")) or "",
            category=_as_str(payload.get("category")) or "General",
            priority=_as_str(payload.get("priority")) or "medium",
            effort=_as_str(payload.get("effort")) or "medium",
            impact=_as_str(payload.get("impact")),
            body=_as_str(payload.get("body")),
            labels=_as_str_list(payload.get("labels")),
            files=_as_str_list(payload.get("files")),
        )


@dataclass(frozen=True)
class DiagramSource:
    """Mermaid text plus the family and title it was produced for."""

    type: str
    title: str
    code: str

    @classmethod
    def from_dict(cls, payload: object) -> Optional["DiagramSource"]:
        if not isinstance(payload, dict):
            return None
        code = payload.get("code")
        if not isinstance(code, str):
            return None
        return cls(
            type=_as_str(payload.get("type")) or "flowchart",
            title=_as_str(payload.get("title")) or "",
            code=code,
        )


def _empty_data_flow() -> Dict[str, List[Dict[str, Any]]]:
    return {"nodes": [], "edges": []}


@dataclass
class GeneratedNarrative:
    """Fields produced by the generative backend; list fields are never None."""

    summary: str = ""
    what_it_does: str = ""
    target_audience: str = ""
    tech_stack: List[str] = field(default_factory=list)
    how_to_run: List[str] = field(default_factory=list)
    key_folders: List[Dict[str, Any]] = field(default_factory=list)
    insights: List[Dict[str, Any]] = field(default_factory=list)
    architecture: List[Dict[str, Any]] = field(default_factory=list)
    data_flow: Dict[str, List[Dict[str, Any]]] = field(default_factory=_empty_data_flow)
    diagrams: Dict[str, DiagramSource] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: object) -> "GeneratedNarrative":
        """Coerce an untrusted decoded payload into a well-formed narrative."""
        if not isinstance(payload, dict):
            return cls()
        data_flow = payload.get("data_flow")
        data_flow = data_flow if isinstance(data_flow, dict) else {}
        diagrams: Dict[str, DiagramSource] = {}
        raw_diagrams = payload.get("diagrams")
        if isinstance(raw_diagrams, dict):
            for key, raw in raw_diagrams.items():
                diagram = DiagramSource.from_dict(raw)
                if diagram is not None:
                    diagrams[str(key)] = diagram
        return cls(
            summary=_as_str(payload.get("summary")) or "",
            what_it_does=_as_str(payload.get("what_it_does")) or "",
            target_audience=_as_str(payload.get("target_audience")) or "",
            tech_stack=_as_str_list(payload.get("tech_stack")),
            how_to_run=_as_str_list(payload.get("how_to_run")),
            key_folders=_as_dict_list(payload.get("key_folders")),
            insights=_as_dict_list(payload.get("insights")),
            architecture=_as_dict_list(payload.get("architecture")),
            data_flow={
                "nodes": _as_dict_list(data_flow.get("nodes")),
                "edges": _as_dict_list(data_flow.get("edges")),
            },
            diagrams=diagrams,
        )


@dataclass
class AnalysisResult:
    """The merged health report cached and returned to callers."""

    metadata: RepoMetadata
    branch: str
    metrics: CodeMetrics
    scores: Scores
    file_tree: List[FileTreeNode] = field(default_factory=list)
    file_stats: FileStats = field(default_factory=FileStats)
    available_branches: List[BranchInfo] = field(default_factory=list)
    automations: List[Suggestion] = field(default_factory=list)
    refactors: List[Suggestion] = field(default_factory=list)
    narrative: GeneratedNarrative = field(default_factory=GeneratedNarrative)
    diagrams: Dict[str, DiagramSource] = field(default_factory=dict)
    parse_failed: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metadata": asdict(self.metadata),
            "branch": self.branch,
            "metrics": self.metrics.to_dict(),
            "scores": self.scores.to_dict(),
            "file_tree": [node.to_dict() for node in self.file_tree],
            "file_stats": asdict(self.file_stats),
            "available_branches": [asdict(branch) for branch in self.available_branches],
            "automations": [asdict(item) for item in self.automations],
            "refactors": [asdict(item) for item in self.refactors],
            "narrative": asdict(self.narrative),
            "diagrams": {key: asdict(value) for key, value in self.diagrams.items()},
            "parse_failed": self.parse_failed,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, payload: object) -> Optional["AnalysisResult"]:
        """Rebuild a result from `to_dict` output, tolerating missing optional fields."""
        if not isinstance(payload, dict):
            return None
        metadata = RepoMetadata.from_dict(payload.get("metadata"))
        scores = Scores.from_dict(payload.get("scores"))
        if metadata is None or scores is None:
            return None
        diagrams: Dict[str, DiagramSource] = {}
        raw_diagrams = payload.get("diagrams")
        if isinstance(raw_diagrams, dict):
            for key, raw in raw_diagrams.items():
                diagram = DiagramSource.from_dict(raw)
                if diagram is not None:
                    diagrams[str(key)] = diagram
        return cls(
            metadata=metadata,
            branch=_as_str(payload.get("branch")) or metadata.default_branch,
            metrics=CodeMetrics.from_dict(payload.get("metrics")),
            scores=scores,
            file_tree=_collect(FileTreeNode.from_dict, payload.get("file_tree")),
            file_stats=FileStats.from_dict(payload.get("file_stats")),
            available_branches=_collect(BranchInfo.from_dict, payload.get("available_branches")),
            automations=_collect(Suggestion.from_dict, payload.get("automations")),
            refactors=_collect(Suggestion.from_dict, payload.get("refactors")),
            narrative=GeneratedNarrative.from_payload(payload.get("narrative")),
            diagrams=diagrams,
            parse_failed=bool(payload.get("parse_failed")),
            error=_as_str(payload.get("error")),
        )


def _collect(factory, value: object) -> list:
    items = []
    for raw in _as_list(value):
        item = factory(raw)
        if item is not None:
            items.append(item)
    return items


def _as_str(value: object) -> Optional[str]:
    return value if isinstance(value, str) else None


def _as_int(value: object) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return 0


def _as_list(value: object) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _as_str_list(value: object) -> List[str]:
    return [item for item in _as_list(value) if isinstance(item, str)]


def _as_dict_list(value: object) -> List[Dict[str, Any]]:
    return [item for item in _as_list(value) if isinstance(item, dict)]
