"""Tests for the run log and derived node status."""

from flowgraph.runtime.run_log import (
    SYSTEM_NODE_ID,
    ExecutionState,
    ExecutionStatus,
    LogEntry,
    NodeExecutionStatus,
    RunLog,
)


def entry(node_id: str, status: NodeExecutionStatus, message: str = "") -> LogEntry:
    return LogEntry(node_id=node_id, node_name=node_id.upper(), status=status, message=message)


def test_append_keeps_order_and_optionally_advances_step():
    log = RunLog()
    log.append(entry("a", NodeExecutionStatus.RUNNING))
    log.append(entry("a", NodeExecutionStatus.SUCCESS), advance_step=True)
    log.append(entry("b", NodeExecutionStatus.RUNNING))

    assert log.trace() == [
        ("a", NodeExecutionStatus.RUNNING),
        ("a", NodeExecutionStatus.SUCCESS),
        ("b", NodeExecutionStatus.RUNNING),
    ]
    assert log.current_step == 1
    assert len(log) == 3


def test_status_is_most_recent_entry():
    log = RunLog()
    log.append(entry("a", NodeExecutionStatus.RUNNING))
    log.append(entry("a", NodeExecutionStatus.ERROR))
    log.append(entry("b", NodeExecutionStatus.SUCCESS))

    assert log.status_of("a") == NodeExecutionStatus.ERROR
    assert log.status_of("b") == NodeExecutionStatus.SUCCESS


def test_status_defaults_to_pending():
    assert RunLog().status_of("nobody") == NodeExecutionStatus.PENDING


def test_active_node_is_running_whatever_the_log_says():
    log = RunLog()
    log.append(entry("a", NodeExecutionStatus.SUCCESS))
    assert log.status_of("a", active_node_id="a") == NodeExecutionStatus.RUNNING
    assert log.status_of("a", active_node_id="b") == NodeExecutionStatus.SUCCESS


def test_entries_is_a_copy():
    log = RunLog()
    log.append(entry("a", NodeExecutionStatus.RUNNING))
    log.entries.clear()
    assert len(log) == 1


def test_for_node_and_system_entries():
    log = RunLog()
    log.append(entry(SYSTEM_NODE_ID, NodeExecutionStatus.RUNNING, "Execution started"))
    log.append(entry("a", NodeExecutionStatus.RUNNING))
    assert [e.message for e in log.for_node(SYSTEM_NODE_ID)] == ["Execution started"]
    assert log.entries[0].is_system is True
    assert log.entries[1].is_system is False


def test_to_dicts_is_json_ready():
    log = RunLog()
    log.append(
        LogEntry(
            node_id="a",
            node_name="A",
            status=NodeExecutionStatus.SUCCESS,
            message="done",
            data={"result": {"status": 200}},
        )
    )
    [dumped] = log.to_dicts()
    assert dumped["status"] == "success"
    assert dumped["data"] == {"result": {"status": 200}}
    assert isinstance(dumped["timestamp"], str)


def test_execution_state_defaults():
    state = ExecutionState()
    assert state.status == ExecutionStatus.IDLE
    assert state.active_node_id is None
    assert state.logs == []
    assert state.current_step == 0

    state.active_node_id = "a"
    assert state.node_status("a") == NodeExecutionStatus.RUNNING
