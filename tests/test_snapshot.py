import json
from pathlib import Path

import pytest

from sfgraph.categories import Category, RelationshipType
from sfgraph.graph import GraphError, load_snapshot, parse_snapshot


def test_load_json_fixture(fixture_snapshot_path: Path) -> None:
    snapshot = load_snapshot(fixture_snapshot_path)
    assert len(snapshot.nodes) == 7
    assert len(snapshot.edges) == 7
    assert snapshot.skipped == []

    by_id = {n.id: n for n in snapshot.nodes}
    assert by_id["Account"].weight == 42
    assert by_id["Invoice__c"].category is Category.CUSTOM_OBJECT
    assert by_id["AccountService"].category is Category.APEX_CLASS
    assert by_id["AccountTrigger"].category is Category.APEX_TRIGGER

    strong = next(e for e in snapshot.edges if e.source == "AccountTrigger")
    assert strong.relationship_type is RelationshipType.REFERENCE
    assert strong.value == 3.0
    master = next(e for e in snapshot.edges if e.source == "Invoice__c")
    assert master.relationship_type is RelationshipType.MASTER_DETAIL


def test_load_yaml(tmp_path: Path) -> None:
    path = tmp_path / "org.yml"
    path.write_text(
        "\n".join(
            [
                "nodes:",
                "  - id: Case",
                "    label: Support Case",
                "    category: StandardObject",
                "  - id: CaseFlow",
                "    type: Flow",
                "edges:",
                "  - from: CaseFlow",
                "    to: Case",
                "    value: 4",
                "",
            ]
        ),
        encoding="utf-8",
    )

    graph = load_snapshot(path).build()
    assert graph.node("Case").display_name == "Support Case"
    assert graph.node("CaseFlow").category is Category.FLOW
    assert graph.edges[0].value == 4.0


def test_index_endpoints_resolve_to_component_ids() -> None:
    snapshot = parse_snapshot(
        {
            "nodes": [{"name": "Lead"}, {"name": "Opportunity"}],
            "links": [{"source": 0, "target": 1, "value": 7}],
        }
    )
    assert (snapshot.edges[0].source, snapshot.edges[0].target) == ("Lead", "Opportunity")


def test_malformed_records_are_skipped() -> None:
    snapshot = parse_snapshot(
        {
            "components": [{"id": "A"}, "junk", {"displayName": "no id"}, {"id": "B", "weight": "heavy"}],
            "relationships": [{"source": "A"}, {"source": "A", "target": 9}, {"source": "A", "target": "A", "type": "Self Join"}],
        }
    )
    assert [n.id for n in snapshot.nodes] == ["A"]
    assert len(snapshot.skipped) == 5
    assert snapshot.edges[0].relationship_type is RelationshipType.SELF_JOIN


def test_referential_problems_surface_at_build(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text(
        json.dumps({"components": [{"id": "A"}], "relationships": [{"source": "A", "target": "Missing"}]}),
        encoding="utf-8",
    )
    snapshot = load_snapshot(path)
    with pytest.raises(GraphError):
        snapshot.build()

    graph = snapshot.build(lenient=True)
    assert graph.edges == ()
    assert graph.violations[0].kind == "dangling_endpoint"


def test_non_mapping_document_is_rejected() -> None:
    with pytest.raises(ValueError):
        parse_snapshot([1, 2, 3])
