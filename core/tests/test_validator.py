"""Tests for structural validation: cycles and branch completeness."""

from builders import build_graph, edge, node

from flowgraph.graph.catalog import NodeCategory, NodeTypeCatalog, NodeTypeDefinition
from flowgraph.graph.edge import BranchType
from flowgraph.graph.validator import branch_problems, has_cycle, is_runnable, validate_workflow


class TestHasCycle:
    def test_empty_graph_has_no_cycle(self):
        assert has_cycle(build_graph([])) is False

    def test_chain_has_no_cycle(self):
        graph = build_graph([node("a"), node("b"), node("c")], [edge("a", "b"), edge("b", "c")])
        assert has_cycle(graph) is False

    def test_diamond_is_not_a_cycle(self):
        graph = build_graph(
            [node("t"), node("a"), node("b"), node("d")],
            [edge("t", "a"), edge("t", "b"), edge("a", "d"), edge("b", "d")],
        )
        assert has_cycle(graph) is False

    def test_self_loop_is_a_cycle(self):
        graph = build_graph([node("a")], [edge("a", "a")])
        assert has_cycle(graph) is True

    def test_cycle_found_whatever_the_node_order(self):
        edges = [edge("a", "b"), edge("b", "c"), edge("c", "a")]
        for order in (["a", "b", "c"], ["b", "c", "a"], ["c", "a", "b"], ["c", "b", "a"]):
            graph = build_graph([node(n) for n in order], edges)
            assert has_cycle(graph) is True, order

    def test_cycle_in_disconnected_component(self):
        graph = build_graph(
            [node("t"), node("x"), node("p"), node("q")],
            [edge("t", "x"), edge("p", "q"), edge("q", "p")],
        )
        assert has_cycle(graph) is True

    def test_cycle_not_reachable_from_any_root(self):
        # Every node in the cycle has an incoming edge, so no root reaches it.
        graph = build_graph([node("root"), node("p"), node("q")], [edge("p", "q"), edge("q", "p")])
        assert has_cycle(graph) is True

    def test_deep_chain_does_not_hit_recursion_limit(self):
        count = 5000
        nodes = [node(f"n{i}") for i in range(count)]
        edges = [edge(f"n{i}", f"n{i + 1}") for i in range(count - 1)]
        assert has_cycle(build_graph(nodes, edges)) is False


class TestIsRunnable:
    def test_graph_without_edges_is_runnable(self):
        graph = build_graph([node("a", "manual-trigger"), node("b", "email-action")])
        assert is_runnable(graph) is True

    def test_condition_without_edges_is_not_runnable(self):
        graph = build_graph([node("t", "manual-trigger"), node("c", "condition")])
        assert is_runnable(graph) is False

    def test_single_edge_of_any_tag_is_runnable(self):
        for branch in BranchType:
            graph = build_graph(
                [node("c", "condition"), node("a")],
                [edge("c", "a", branch)],
            )
            assert is_runnable(graph) is True, branch

    def test_two_true_edges_are_not_runnable(self):
        graph = build_graph(
            [node("c", "condition"), node("a"), node("b")],
            [edge("c", "a", BranchType.TRUE), edge("c", "b", BranchType.TRUE)],
        )
        assert is_runnable(graph) is False

    def test_true_and_default_are_not_runnable(self):
        graph = build_graph(
            [node("c", "condition"), node("a"), node("b")],
            [edge("c", "a", BranchType.TRUE), edge("c", "b")],
        )
        assert is_runnable(graph) is False

    def test_true_false_and_extra_default_are_runnable(self):
        graph = build_graph(
            [node("c", "condition"), node("a"), node("b"), node("d")],
            [
                edge("c", "a", BranchType.TRUE),
                edge("c", "b", BranchType.FALSE),
                edge("c", "d"),
            ],
        )
        assert is_runnable(graph) is True

    def test_cycle_is_not_runnable(self):
        graph = build_graph([node("a"), node("b")], [edge("a", "b"), edge("b", "a")])
        assert is_runnable(graph) is False

    def test_sink_nodes_need_no_outgoing_edges(self):
        graph = build_graph([node("t", "manual-trigger"), node("a")], [edge("t", "a")])
        assert is_runnable(graph) is True

    def test_custom_catalog_marks_branching_types(self):
        catalog = NodeTypeCatalog(
            [NodeTypeDefinition(type="gate", category=NodeCategory.LOGIC, branching=True)]
        )
        graph = build_graph([node("g", "gate")])
        assert is_runnable(graph, catalog) is False
        # Under the default catalog "gate" is unknown and not conditional.
        assert is_runnable(graph) is True


class TestValidateWorkflow:
    def test_valid_graph_has_no_errors(self):
        graph = build_graph([node("t", "manual-trigger"), node("a")], [edge("t", "a")])
        assert validate_workflow(graph) == []

    def test_reports_cycle_and_branch_problems(self):
        graph = build_graph(
            [node("a"), node("b"), node("c", "condition")],
            [edge("a", "b"), edge("b", "a")],
        )
        errors = validate_workflow(graph)
        assert "Workflow contains a cycle" in errors
        assert "Condition 'c' has no outgoing edges" in errors

    def test_reports_missing_branch(self):
        graph = build_graph(
            [node("c", "condition"), node("a"), node("b")],
            [edge("c", "a", BranchType.TRUE), edge("c", "b", BranchType.TRUE)],
        )
        assert branch_problems(graph) == [
            "Condition 'c' has 2 outgoing edges but no false branch"
        ]

    def test_reports_dangling_edges(self):
        graph = build_graph([node("a")], [edge("a", "ghost")])
        assert validate_workflow(graph) == ["Edge 'a->ghost' references missing target 'ghost'"]
