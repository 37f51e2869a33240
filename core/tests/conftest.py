import pytest

from flowgraph.config import FlowgraphConfig
from flowgraph.observability import clear_trace_context


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point configuration at an empty location so ~/.flowgraph never leaks in."""
    monkeypatch.setenv("FLOWGRAPH_CONFIG", str(tmp_path / "no-such-config.json"))
    clear_trace_context()
    yield
    clear_trace_context()


@pytest.fixture
def fast_config(tmp_path) -> FlowgraphConfig:
    return FlowgraphConfig(
        max_history=50,
        settle_delay=0.0,
        step_delay=0.0,
        max_simulated_delay=0.0,
        storage_path=tmp_path / "workflows",
    )
