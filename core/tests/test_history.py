"""Tests for snapshot-based undo/redo."""

from unittest.mock import patch

import pytest
from builders import node

from flowgraph.graph.history import MAX_HISTORY, HistoryManager, HistorySnapshot
from flowgraph.graph.node import Position
from flowgraph.graph.workflow import WorkflowGraph


def labels(graph: WorkflowGraph) -> list[str]:
    return [n.label for n in graph.nodes]


class TestHistoryManager:
    def test_baseline_is_not_an_undo_target(self):
        graph = WorkflowGraph()
        history = HistoryManager()

        history.save_snapshot(graph)

        assert history.can_undo is False
        assert history.undo() is None

    def test_undo_returns_new_top_of_past(self):
        graph = WorkflowGraph()
        history = HistoryManager()
        history.save_snapshot(graph)
        graph.nodes.append(node("a"))
        history.save_snapshot(graph)

        snapshot = history.undo()

        assert snapshot is not None
        assert snapshot.nodes == []
        assert history.can_undo is False
        assert history.can_redo is True

    def test_redo_returns_the_undone_state(self):
        graph = WorkflowGraph()
        history = HistoryManager()
        history.save_snapshot(graph)
        graph.nodes.append(node("a"))
        history.save_snapshot(graph)
        history.undo()

        snapshot = history.redo()

        assert snapshot is not None
        assert [n.id for n in snapshot.nodes] == ["a"]
        assert history.can_redo is False
        assert history.redo() is None

    def test_save_clears_future(self):
        graph = WorkflowGraph()
        history = HistoryManager()
        history.save_snapshot(graph)
        history.save_snapshot(graph)
        history.undo()
        assert history.can_redo is True

        history.save_snapshot(graph)

        assert history.can_redo is False
        assert history.future == []

    def test_past_is_bounded(self):
        graph = WorkflowGraph()
        history = HistoryManager(max_history=3)
        for i in range(5):
            graph.nodes = [node(f"n{i}")]
            history.save_snapshot(graph)

        assert len(history.past) == 3
        assert [s.nodes[0].id for s in history.past] == ["n2", "n3", "n4"]

    def test_default_bound(self):
        assert HistoryManager().max_history == MAX_HISTORY == 50

    def test_rejects_zero_bound(self):
        with pytest.raises(ValueError):
            HistoryManager(max_history=0)

    def test_clear(self):
        graph = WorkflowGraph()
        history = HistoryManager()
        history.save_snapshot(graph)
        history.save_snapshot(graph)
        history.undo()

        history.clear()

        assert history.past == [] and history.future == []
        assert history.can_undo is False and history.can_redo is False

    def test_try_save_snapshot_logs_instead_of_raising(self, caplog):
        graph = WorkflowGraph()
        history = HistoryManager()
        with patch.object(HistorySnapshot, "capture", side_effect=RuntimeError("disk on fire")):
            assert history.try_save_snapshot(graph) is False
        assert "History snapshot failed" in caplog.text
        assert history.past == []


class TestSnapshotIndependence:
    def test_snapshot_unaffected_by_later_edits(self):
        graph = WorkflowGraph()
        graph.add_node(node("a"), {"url": "https://example.com"})
        snapshot = graph.snapshot()

        graph.update_node("a", label="renamed", position={"x": 10, "y": 20})
        graph.node_configs["a"]["url"] = "https://changed.example.com"

        assert snapshot.nodes[0].label == "a"
        assert snapshot.nodes[0].position == Position()
        assert snapshot.node_configs["a"]["url"] == "https://example.com"

    def test_restored_state_unaffected_by_history(self):
        graph = WorkflowGraph()
        graph.add_node(node("a"), {"url": "x"})
        graph.update_node_config("a", {"url": "y"})
        graph.undo()

        graph.node_configs["a"]["url"] = "mutated"

        graph.redo()
        graph.undo()
        assert graph.node_configs["a"] == {"url": "x"}


class TestUndoRedoThroughGraph:
    def test_n_mutations_undo_back_to_baseline(self):
        graph = WorkflowGraph()
        for i in range(4):
            graph.add_node(node(f"n{i}"))

        # N mutations on an empty history give baseline + N snapshots.
        assert len(graph.history.past) == 5
        for _ in range(4):
            assert graph.undo() is True
        assert graph.nodes == []
        assert graph.undo() is False
        assert graph.nodes == []

    def test_undo_n_minus_one_times_returns_to_first_committed_state(self):
        graph = WorkflowGraph()
        graph.history.save_snapshot(graph)  # explicit baseline
        graph.add_node(node("a"))
        graph.update_node("a", label="b")
        graph.update_node("a", label="c")

        graph.undo()
        graph.undo()

        assert labels(graph) == ["a"]

    def test_redo_restores_state_before_undo_exactly(self):
        graph = WorkflowGraph()
        graph.add_node(node("a"), {"url": "x"})
        graph.update_node_positions([("a", {"x": 5, "y": 7})])
        before = graph.snapshot()

        graph.undo()
        assert graph.snapshot() != before
        graph.redo()

        assert graph.snapshot() == before

    def test_mutation_after_undo_discards_redo(self):
        graph = WorkflowGraph()
        graph.add_node(node("a"))
        graph.add_node(node("b"))
        graph.undo()
        assert graph.history.can_redo is True

        graph.add_node(node("c"))

        assert graph.history.can_redo is False
        assert graph.redo() is False
        assert [n.id for n in graph.nodes] == ["a", "c"]

    def test_history_failure_does_not_block_edit(self, caplog):
        graph = WorkflowGraph()
        with patch.object(HistorySnapshot, "capture", side_effect=RuntimeError("boom")):
            graph.add_node(node("a"))

        assert [n.id for n in graph.nodes] == ["a"]
        assert graph.history.past == []
        assert "History snapshot failed" in caplog.text

    def test_history_depth_follows_configuration(self, tmp_path, monkeypatch):
        config_file = tmp_path / "configuration.json"
        config_file.write_text('{"engine": {"max_history": 3}}')
        monkeypatch.setenv("FLOWGRAPH_CONFIG", str(config_file))

        assert WorkflowGraph().history.max_history == 3
