"""Diagram DSL generation and validation."""

from .mermaid import (
    DiagramKind,
    DiagramSet,
    generate,
    process_diagrams,
    sanitize_id,
    sanitize_label,
    validate,
)

__all__ = [
    "DiagramKind",
    "DiagramSet",
    "generate",
    "process_diagrams",
    "sanitize_id",
    "sanitize_label",
    "validate",
]
