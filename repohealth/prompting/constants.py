"""Shared constants for analysis prompting."""

from __future__ import annotations

METRIC_SECTIONS: tuple[str, ...] = (
    "Testing",
    "CI/CD",
    "Code Quality",
    "Security",
    "Documentation",
    "Dependencies",
    "Issues",
    "Existing Automations",
)

SCORE_KEYS: tuple[str, ...] = (
    "overall",
    "code_quality",
    "documentation",
    "security",
    "maintainability",
    "test_coverage",
    "dependencies",
)

INSIGHT_TYPES: tuple[str, ...] = ("strength", "weakness", "suggestion", "warning")
PRIORITIES: tuple[str, ...] = ("low", "medium", "high", "critical")
ARCHITECTURE_TYPES: tuple[str, ...] = (
    "frontend",
    "backend",
    "database",
    "service",
    "external",
    "middleware",
)
DATA_FLOW_TYPES: tuple[str, ...] = ("source", "process", "store", "output")

SYSTEM_PROMPT = (
    "You are a senior software engineer reviewing a public repository. Stay grounded in the "
    "supplied facts, reference files that exist in the directory structure, and answer with a "
    "single JSON object only."
)


def response_example(full_name: str, name: str) -> dict[str, object]:
    """Return the JSON shape the backend is asked to produce."""
    return {
        "summary": "2-3 sentence technical summary",
        "what_it_does": "Plain English explanation",
        "target_audience": "Who benefits from this project",
        "tech_stack": ["Tech1", "Tech2", "Framework1"],
        "how_to_run": [
            f"git clone https://github.com/{full_name}.git",
            f"cd {name}",
            "<install command>",
            "<run command>",
        ],
        "key_folders": [{"name": "src/", "description": "Main source code"}],
        "insights": [
            {
                "type": "strength",
                "category": "Architecture",
                "title": "Well-organized structure",
                "description": "Clear separation of concerns.",
                "priority": "medium",
                "affected_files": ["src/"],
            }
        ],
        "architecture": [
            {
                "id": "arch-1",
                "name": "Frontend",
                "type": "frontend",
                "description": "User interface",
                "technologies": ["React", "TypeScript"],
                "connections": ["arch-2"],
            }
        ],
        "data_flow": {
            "nodes": [
                {"id": "df-1", "name": "User Input", "type": "source", "description": "User interactions"}
            ],
            "edges": [{"from": "df-1", "to": "df-2", "label": "Request", "data_type": "JSON"}],
        },
        "diagrams": {
            "architecture": {
                "type": "flowchart",
                "title": "System Architecture",
                "code": "flowchart TD\n    A[Client] --> B[Server]",
            },
            "data_flow": {
                "type": "sequenceDiagram",
                "title": "Request Flow",
                "code": "sequenceDiagram\n    U->>S: Request\n    S-->>U: Response",
            },
        },
    }


__all__ = [
    "ARCHITECTURE_TYPES",
    "DATA_FLOW_TYPES",
    "INSIGHT_TYPES",
    "METRIC_SECTIONS",
    "PRIORITIES",
    "SCORE_KEYS",
    "SYSTEM_PROMPT",
    "response_example",
]
