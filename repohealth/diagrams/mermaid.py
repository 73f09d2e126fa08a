"""Mermaid diagram synthesis, sanitisation and validation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..models import DiagramSource

MAX_ID_LENGTH = 32
MAX_LABEL_LENGTH = 50

VALID_KEYWORDS: Tuple[str, ...] = (
    "flowchart",
    "graph",
    "sequencediagram",
    "classdiagram",
    "statediagram",
    "erdiagram",
    "gantt",
    "pie",
    "mindmap",
)

_ID_STRIP = re.compile(r"[^A-Za-z0-9_-]")
_LABEL_REMOVE = re.compile(r"[\"`()\[\]{}<>#;]")
_WHITESPACE = re.compile(r"\s+")

_DATA_FLOW_SHAPES: Dict[str, Tuple[str, str]] = {
    "source": ("([", "])"),
    "process": ("[", "]"),
    "store": ("[(", ")]"),
    "output": ("[[", "]]"),
}

_ARCHITECTURE_SHAPES: Dict[str, Tuple[str, str]] = {
    "frontend": ("[", "]"),
    "backend": ("[[", "]]"),
    "database": ("[(", ")]"),
    "service": ("{{", "}}"),
    "external": (">", "]"),
    "middleware": ("(", ")"),
}

_DATA_FLOW_STYLES = (
    "    classDef source fill:#22c55e,stroke:#16a34a,color:#fff",
    "    classDef process fill:#3b82f6,stroke:#2563eb,color:#fff",
    "    classDef store fill:#8b5cf6,stroke:#7c3aed,color:#fff",
    "    classDef output fill:#f97316,stroke:#ea580c,color:#fff",
)

_ARCHITECTURE_STYLES = (
    "    classDef frontend fill:#3b82f6,stroke:#1d4ed8,color:#fff",
    "    classDef backend fill:#10b981,stroke:#059669,color:#fff",
    "    classDef database fill:#8b5cf6,stroke:#6d28d9,color:#fff",
    "    classDef service fill:#f59e0b,stroke:#d97706,color:#fff",
    "    classDef external fill:#6b7280,stroke:#4b5563,color:#fff",
    "    classDef middleware fill:#ec4899,stroke:#db2777,color:#fff",
)


class DiagramKind(str, Enum):
    ARCHITECTURE = "architecture"
    DATA_FLOW = "data_flow"
    SEQUENCE = "sequence"


@dataclass
class DiagramSet:
    """The three diagram slots handed to the renderer; never empty."""

    architecture: DiagramSource
    data_flow: DiagramSource
    components: DiagramSource

    def as_dict(self) -> Dict[str, DiagramSource]:
        return {
            "architecture": self.architecture,
            "data_flow": self.data_flow,
            "components": self.components,
        }


def sanitize_id(raw: object) -> str:
    """Restrict to ``[A-Za-z0-9_-]``, start with a letter, cap the length.

    Idempotent: ``sanitize_id(sanitize_id(x)) == sanitize_id(x)``.
    """
    cleaned = _ID_STRIP.sub("", str(raw) if raw is not None else "")
    if not cleaned:
        return "node"
    if not cleaned[0].isalpha():
        cleaned = f"n{cleaned}"
    cleaned = cleaned[:MAX_ID_LENGTH]
    # `end` terminates subgraphs in flowchart grammar.
    if cleaned.lower() == "end":
        cleaned = f"{cleaned}_"
    return cleaned


def sanitize_label(raw: object) -> str:
    """Drop grammar-significant characters, collapse whitespace, cap the length."""
    text = str(raw) if raw is not None else ""
    text = text.replace("|", "/")
    text = _LABEL_REMOVE.sub("", text)
    text = _WHITESPACE.sub(" ", text).strip()
    return text[:MAX_LABEL_LENGTH].rstrip()


def validate(text: object) -> bool:
    """Return True when the text starts with a recognised diagram keyword."""
    if not isinstance(text, str) or not text.strip():
        return False
    trimmed = text.strip().lower()
    return any(trimmed.startswith(keyword) for keyword in VALID_KEYWORDS)


def placeholder(kind: DiagramKind) -> DiagramSource:
    """Single-node diagram used when there is nothing to draw."""
    if kind is DiagramKind.ARCHITECTURE:
        return DiagramSource(
            type="flowchart",
            title="System Architecture",
            code="flowchart TD\n    A[No architecture data available]",
        )
    if kind is DiagramKind.DATA_FLOW:
        return DiagramSource(
            type="flowchart",
            title="Data Flow",
            code="flowchart LR\n    A[No data flow available]",
        )
    return DiagramSource(
        type="sequenceDiagram",
        title="Sequence Diagram",
        code="sequenceDiagram\n    Note over System: No sequence data available",
    )


class _IdRegistry:
    """Maps raw identifiers to unique sanitised ones."""

    def __init__(self) -> None:
        self._by_raw: Dict[str, str] = {}
        self._used: set[str] = set()

    def register(self, raw: object) -> str:
        key = str(raw)
        if key in self._by_raw:
            return self._by_raw[key]
        candidate = sanitize_id(raw)
        base = candidate
        suffix = 2
        while candidate in self._used:
            tail = f"_{suffix}"
            candidate = f"{base[: MAX_ID_LENGTH - len(tail)]}{tail}"
            suffix += 1
        self._used.add(candidate)
        self._by_raw[key] = candidate
        return candidate

    def lookup(self, raw: object) -> Optional[str]:
        return self._by_raw.get(str(raw))


def generate_data_flow_diagram(
    nodes: Sequence[Mapping[str, Any]], edges: Sequence[Mapping[str, Any]]
) -> DiagramSource:
    """Left-to-right flowchart of typed data-flow nodes."""
    nodes = [node for node in nodes if isinstance(node, Mapping) and node.get("id") is not None]
    if not nodes:
        return placeholder(DiagramKind.DATA_FLOW)

    registry = _IdRegistry()
    lines: List[str] = ["flowchart LR"]
    groups: Dict[str, List[str]] = {}
    for node in nodes:
        node_id = registry.register(node["id"])
        node_type = node.get("type") if node.get("type") in _DATA_FLOW_SHAPES else "process"
        opening, closing = _DATA_FLOW_SHAPES[node_type]
        label = sanitize_label(node.get("name")) or node_id
        lines.append(f"    {node_id}{opening}{label}{closing}")
        groups.setdefault(node_type, []).append(node_id)

    for edge in _mappings(edges):
        source = registry.lookup(edge.get("from"))
        target = registry.lookup(edge.get("to"))
        if source is None or target is None:
            continue
        label = sanitize_label(edge.get("label")) if edge.get("label") else ""
        arrow = f"-->|{label}|" if label else "-->"
        lines.append(f"    {source} {arrow} {target}")

    lines.append("")
    lines.extend(_DATA_FLOW_STYLES)
    for node_type, ids in groups.items():
        lines.append(f"    class {','.join(ids)} {node_type}")

    return DiagramSource(type="flowchart", title="Data Flow", code="\n".join(lines))


def generate_architecture_diagram(components: Sequence[Mapping[str, Any]]) -> DiagramSource:
    """Top-down flowchart of typed architecture components."""
    components = [
        item for item in components if isinstance(item, Mapping) and item.get("id") is not None
    ]
    if not components:
        return placeholder(DiagramKind.ARCHITECTURE)

    registry = _IdRegistry()
    lines: List[str] = ["flowchart TD"]
    groups: Dict[str, List[str]] = {}
    for component in components:
        node_id = registry.register(component["id"])
        component_type = (
            component.get("type") if component.get("type") in _ARCHITECTURE_SHAPES else "backend"
        )
        opening, closing = _ARCHITECTURE_SHAPES[component_type]
        label = sanitize_label(component.get("name")) or node_id
        technologies = [
            str(tech) for tech in _as_list(component.get("technologies"))[:2] if tech
        ]
        if technologies:
            label = sanitize_label(f"{label} - {', '.join(technologies)}")
        lines.append(f"    {node_id}{opening}{label}{closing}")
        groups.setdefault(component_type, []).append(node_id)

    seen: set[frozenset[str]] = set()
    for component in components:
        source = registry.lookup(component["id"])
        for target_raw in _as_list(component.get("connections")):
            target = registry.lookup(target_raw)
            if source is None or target is None or source == target:
                continue
            pair = frozenset((source, target))
            if pair in seen:
                continue
            seen.add(pair)
            lines.append(f"    {source} --> {target}")

    lines.append("")
    lines.extend(_ARCHITECTURE_STYLES)
    for component_type, ids in groups.items():
        lines.append(f"    class {','.join(ids)} {component_type}")

    return DiagramSource(type="flowchart", title="System Architecture", code="\n".join(lines))


def generate_sequence_diagram(
    nodes: Sequence[Mapping[str, Any]], edges: Sequence[Mapping[str, Any]]
) -> DiagramSource:
    """Sequence-style interaction listing for a data-flow graph."""
    nodes = [node for node in nodes if isinstance(node, Mapping) and node.get("id") is not None]
    edges = _mappings(edges)
    if not nodes or not edges:
        return placeholder(DiagramKind.SEQUENCE)

    registry = _IdRegistry()
    lines: List[str] = ["sequenceDiagram"]
    for node in nodes:
        alias = registry.register(node["id"])
        label = sanitize_label(node.get("name")) or alias
        lines.append(f"    participant {alias} as {label}")
    lines.append("")

    messages = 0
    for edge in edges:
        source = registry.lookup(edge.get("from"))
        target = registry.lookup(edge.get("to"))
        if source is None or target is None:
            continue
        label = sanitize_label(edge.get("label") or edge.get("data_type") or "data") or "data"
        lines.append(f"    {source}->>{target}: {label}")
        messages += 1

    if not messages:
        return placeholder(DiagramKind.SEQUENCE)
    return DiagramSource(type="sequenceDiagram", title="Sequence Diagram", code="\n".join(lines))


def generate(
    kind: DiagramKind | str,
    *,
    nodes: Sequence[Mapping[str, Any]] = (),
    edges: Sequence[Mapping[str, Any]] = (),
    components: Sequence[Mapping[str, Any]] = (),
) -> DiagramSource:
    """Synthesise a diagram of the requested kind from structured data."""
    kind = DiagramKind(kind)
    if kind is DiagramKind.ARCHITECTURE:
        return generate_architecture_diagram(components)
    if kind is DiagramKind.DATA_FLOW:
        return generate_data_flow_diagram(nodes, edges)
    return generate_sequence_diagram(nodes, edges)


def process_diagrams(
    generated: Mapping[str, DiagramSource] | None,
    architecture: Sequence[Mapping[str, Any]] | None,
    data_flow: Mapping[str, Any] | None,
) -> DiagramSet:
    """Prefer valid backend diagrams, then synthesis, then placeholders."""
    generated = generated or {}
    data_flow = data_flow or {}
    nodes = _mappings(data_flow.get("nodes"))
    edges = _mappings(data_flow.get("edges"))

    def _pick(slot: str, kind: DiagramKind, has_data: bool) -> DiagramSource:
        candidate = generated.get(slot)
        if candidate is not None and validate(candidate.code):
            return candidate
        if has_data:
            return generate(kind, nodes=nodes, edges=edges, components=architecture or ())
        return placeholder(kind)

    return DiagramSet(
        architecture=_pick("architecture", DiagramKind.ARCHITECTURE, bool(architecture)),
        data_flow=_pick("data_flow", DiagramKind.DATA_FLOW, bool(nodes)),
        components=_pick("components", DiagramKind.SEQUENCE, bool(nodes)),
    )


def _as_list(value: object) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _mappings(value: object) -> List[Mapping[str, Any]]:
    if isinstance(value, (list, tuple)):
        return [item for item in value if isinstance(item, Mapping)]
    return []


__all__ = [
    "DiagramKind",
    "DiagramSet",
    "MAX_ID_LENGTH",
    "MAX_LABEL_LENGTH",
    "VALID_KEYWORDS",
    "generate",
    "generate_architecture_diagram",
    "generate_data_flow_diagram",
    "generate_sequence_diagram",
    "placeholder",
    "process_diagrams",
    "sanitize_id",
    "sanitize_label",
    "validate",
]
