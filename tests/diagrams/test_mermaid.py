"""Tests for Mermaid synthesis, sanitisation and validation."""

from __future__ import annotations

import pytest

from repohealth.diagrams import (
    DiagramKind,
    generate,
    process_diagrams,
    sanitize_id,
    sanitize_label,
    validate,
)
from repohealth.diagrams.mermaid import (
    MAX_ID_LENGTH,
    MAX_LABEL_LENGTH,
    generate_architecture_diagram,
    generate_data_flow_diagram,
)
from repohealth.models import DiagramSource

ID_SAMPLES = [
    "",
    None,
    "api",
    "123abc",
    "_private",
    "-dash",
    "user service",
    "café-api",
    "end",
    "END",
    "x" * 80,
    "9" * 40,
    "!!!",
    42,
]


@pytest.mark.parametrize("raw", ID_SAMPLES)
def test_sanitize_id_is_idempotent_and_starts_with_letter(raw) -> None:
    once = sanitize_id(raw)

    assert sanitize_id(once) == once
    assert once[0].isalpha()
    assert len(once) <= MAX_ID_LENGTH + 1
    assert once.lower() != "end"


def test_sanitize_id_examples() -> None:
    assert sanitize_id("") == "node"
    assert sanitize_id("!!!") == "node"
    assert sanitize_id("123abc") == "n123abc"
    assert sanitize_id("user service") == "userservice"
    assert sanitize_id("end") == "end_"


@pytest.mark.parametrize(
    "raw",
    ['Say "hi" (now)', "a|b", "x <script> y", "# heading; done", "multi\nline\ttext", "z" * 90],
)
def test_sanitize_label_is_idempotent(raw) -> None:
    once = sanitize_label(raw)

    assert sanitize_label(once) == once
    assert len(once) <= MAX_LABEL_LENGTH
    assert not set('"`()[]{}<>#;|') & set(once)


def test_sanitize_label_examples() -> None:
    assert sanitize_label("a|b") == "a/b"
    assert sanitize_label('Say "hi"  (now)') == "Say hi now"
    assert sanitize_label("multi\nline") == "multi line"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("flowchart TD\n A-->B", True),
        ("  GRAPH LR", True),
        ("sequenceDiagram\n A->>B: hi", True),
        ("classDiagram", True),
        ("stateDiagram-v2", True),
        ("erDiagram", True),
        ("gantt", True),
        ("pie title Pets", True),
        ("mindmap", True),
        ("journey", False),
        ("A --> B", False),
        ("", False),
        ("   ", False),
        (None, False),
    ],
)
def test_validate(text, expected) -> None:
    assert validate(text) is expected


def test_data_flow_diagram_shapes_and_edges() -> None:
    diagram = generate_data_flow_diagram(
        [
            {"id": "user", "name": "User Input", "type": "source"},
            {"id": "api", "name": "API (REST)", "type": "process"},
            {"id": "db", "name": "Postgres", "type": "store"},
            {"id": "ui", "name": "Dashboard", "type": "output"},
        ],
        [
            {"from": "user", "to": "api", "label": "request"},
            {"from": "api", "to": "db"},
            {"from": "api", "to": "missing"},
        ],
    )

    assert diagram.code.startswith("flowchart LR")
    assert "user([User Input])" in diagram.code
    assert "api[API REST]" in diagram.code
    assert "db[(Postgres)]" in diagram.code
    assert "ui[[Dashboard]]" in diagram.code
    assert "user -->|request| api" in diagram.code
    assert "api --> db" in diagram.code
    assert "missing" not in diagram.code
    assert validate(diagram.code)


def test_architecture_diagram_drops_duplicate_and_unknown_connections() -> None:
    diagram = generate_architecture_diagram(
        [
            {"id": "web", "name": "Web", "type": "frontend", "connections": ["api", "ghost"]},
            {
                "id": "api",
                "name": "API",
                "type": "backend",
                "technologies": ["FastAPI", "httpx", "extra"],
                "connections": ["web", "db"],
            },
            {"id": "db", "name": "DB", "type": "database"},
            {"id": "stripe", "name": "Stripe", "type": "external"},
            {"id": "queue", "name": "Queue", "type": "service"},
        ]
    )

    code = diagram.code
    assert code.startswith("flowchart TD")
    assert "web --> api" in code
    assert "api --> web" not in code
    assert "api --> db" in code
    assert "ghost" not in code
    assert "api[[API - FastAPI, httpx]]" in code
    assert "stripe>Stripe]" in code
    assert "queue{{Queue}}" in code


def test_colliding_ids_get_unique_suffixes() -> None:
    diagram = generate_data_flow_diagram(
        [{"id": "a b", "name": "One"}, {"id": "ab", "name": "Two"}],
        [{"from": "a b", "to": "ab"}],
    )

    assert "ab[One]" in diagram.code
    assert "ab_2[Two]" in diagram.code
    assert "ab --> ab_2" in diagram.code


def test_generate_dispatches_sequence_diagrams() -> None:
    diagram = generate(
        DiagramKind.SEQUENCE,
        nodes=[{"id": "client", "name": "Client"}, {"id": "server", "name": "Server"}],
        edges=[{"from": "client", "to": "server", "label": "GET /"}],
    )

    assert diagram.type == "sequenceDiagram"
    assert "participant client as Client" in diagram.code
    assert "client->>server: GET /" in diagram.code


def test_generate_with_no_data_returns_placeholders() -> None:
    for kind in DiagramKind:
        diagram = generate(kind)
        assert validate(diagram.code)
        assert "No " in diagram.code


def test_process_diagrams_prefers_valid_generated_text() -> None:
    generated = {
        "architecture": DiagramSource("flowchart", "Arch", "flowchart TD\n    A-->B"),
        "data_flow": DiagramSource("flowchart", "Flow", "not a diagram"),
    }
    data_flow = {
        "nodes": [{"id": "in", "name": "In"}, {"id": "out", "name": "Out"}],
        "edges": [{"from": "in", "to": "out"}],
    }

    diagrams = process_diagrams(generated, [], data_flow)

    assert diagrams.architecture.code == "flowchart TD\n    A-->B"
    assert diagrams.data_flow.code.startswith("flowchart LR")
    assert "in --> out" in diagrams.data_flow.code
    assert diagrams.components.type == "sequenceDiagram"


def test_process_diagrams_always_fills_every_slot() -> None:
    diagrams = process_diagrams(None, None, None)

    assert set(diagrams.as_dict()) == {"architecture", "data_flow", "components"}
    assert all(validate(item.code) for item in diagrams.as_dict().values())
