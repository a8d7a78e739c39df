import pytest

from sfgraph.categories import Category, RelationshipType
from sfgraph.graph import FilterCriteria, Graph, filter_graph, filter_relationships, neighborhood


def test_category_filter_can_empty_the_graph(sales_graph: Graph) -> None:
    result = filter_graph(sales_graph, FilterCriteria(categories=frozenset({Category.CUSTOM_OBJECT})))
    assert len(result.nodes) == 0
    assert len(result.edges) == 0


def test_empty_criteria_match_everything(sales_graph: Graph) -> None:
    assert filter_graph(sales_graph, FilterCriteria(search_term="  ", categories=frozenset())) == sales_graph
    assert filter_graph(sales_graph) == sales_graph


def test_search_is_case_insensitive_on_name_and_id(fixture_graph: Graph) -> None:
    by_name = filter_graph(fixture_graph, FilterCriteria(search_term="invoice"))
    assert by_name.node_ids == ("Invoice__c",)

    by_id = filter_graph(fixture_graph, FilterCriteria(search_term="ONBOARDING_"))
    assert by_id.node_ids == ("Onboarding_Flow",)


def test_category_strings_are_normalized() -> None:
    criteria = FilterCriteria(categories=frozenset({"Apex Trigger", "flow"}))
    assert criteria.categories == frozenset({Category.APEX_TRIGGER, Category.FLOW})


def test_unknown_category_in_allow_list_is_rejected() -> None:
    with pytest.raises(ValueError, match="Custom Objekt"):
        FilterCriteria(categories=frozenset({"Custom Objekt"}))
    assert FilterCriteria(categories=frozenset({"other"})).categories == frozenset({Category.OTHER})


def test_result_is_induced_subgraph(fixture_graph: Graph) -> None:
    result = filter_graph(fixture_graph, FilterCriteria(search_term="account"))
    kept = set(result.node_ids)
    assert kept == {"Account", "AccountService", "AccountTrigger"}
    expected = [e for e in fixture_graph.edges if e.source in kept and e.target in kept]
    assert list(result.edges) == expected


def test_filter_is_idempotent(fixture_graph: Graph) -> None:
    criteria = FilterCriteria(search_term="account", categories=frozenset({Category.APEX_CLASS, Category.APEX_TRIGGER}))
    once = filter_graph(fixture_graph, criteria)
    assert filter_graph(once, criteria) == once


@pytest.mark.parametrize(
    "a,b",
    [
        (FilterCriteria(search_term="a"), FilterCriteria(categories=frozenset({Category.STANDARD_OBJECT}))),
        (FilterCriteria(search_term="service"), FilterCriteria(search_term="account")),
        (FilterCriteria(categories=frozenset({Category.FLOW})), FilterCriteria(search_term="zzz")),
    ],
)
def test_successive_filters_equal_conjunction(fixture_graph: Graph, a: FilterCriteria, b: FilterCriteria) -> None:
    assert filter_graph(filter_graph(fixture_graph, a), b) == filter_graph(fixture_graph, a & b)
    assert filter_graph(filter_graph(fixture_graph, b), a) == filter_graph(fixture_graph, a & b)


def test_relationship_filter_keeps_all_nodes(fixture_graph: Graph) -> None:
    result = filter_relationships(fixture_graph, ["Reference"])
    assert result.node_ids == fixture_graph.node_ids
    assert {e.relationship_type for e in result.edges} == {RelationshipType.REFERENCE}
    assert filter_relationships(fixture_graph, []) == fixture_graph


class TestNeighborhood:
    def test_both_directions(self, fixture_graph: Graph) -> None:
        sub = neighborhood(fixture_graph, "AccountService")
        assert set(sub.node_ids) == {"AccountService", "AccountTrigger", "Account"}

    def test_dependencies_only(self, fixture_graph: Graph) -> None:
        sub = neighborhood(fixture_graph, "AccountTrigger", depth=2, direction="out")
        assert sub.node_ids == ("Account", "AccountService", "AccountTrigger")

    def test_dependents_only(self, fixture_graph: Graph) -> None:
        sub = neighborhood(fixture_graph, "Contact", depth=1, direction="in")
        assert set(sub.node_ids) == {"Contact", "Onboarding_Flow"}

    def test_depth_zero_is_the_node_alone(self, fixture_graph: Graph) -> None:
        assert neighborhood(fixture_graph, "Account", depth=0).node_ids == ("Account",)

    def test_bad_arguments(self, fixture_graph: Graph) -> None:
        with pytest.raises(KeyError):
            neighborhood(fixture_graph, "Nope")
        with pytest.raises(ValueError):
            neighborhood(fixture_graph, "Account", direction="sideways")  # type: ignore[arg-type]
        with pytest.raises(ValueError):
            neighborhood(fixture_graph, "Account", depth=-1)
