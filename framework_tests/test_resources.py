import itertools
import pathlib as pl

import hypothesis
import hypothesis.strategies as st
import pytest

from es_cluster_runner.cluster_management import cluster_config
from es_cluster_runner.cluster_management import resources
from es_cluster_runner.utils import exceptions


@hypothesis.given(
    num_of_node=st.integers(min_value=1, max_value=50),
    base_transport_port=st.integers(min_value=1024, max_value=30000),
    base_http_port=st.integers(min_value=1024, max_value=30000),
)
@hypothesis.settings(max_examples=200, deadline=None)
def test_allocated_resources_are_distinct(
    num_of_node: int, base_transport_port: int, base_http_port: int
):
    """Ports and node directories of two different nodes never collide."""
    configs = [
        resources.allocate(
            base_path="/es",
            base_transport_port=base_transport_port,
            base_http_port=base_http_port,
            index=i,
        )
        for i in range(1, num_of_node + 1)
    ]

    for first, second in itertools.combinations(configs, 2):
        assert first.transport_port != second.transport_port
        assert first.http_port != second.http_port
        assert first.data_path != second.data_path
        assert first.logs_path != second.logs_path
        assert first.work_path != second.work_path

    assert len({c.name for c in configs}) == num_of_node


def test_allocate_layout():
    node_config = resources.allocate(
        base_path="/es", base_transport_port=9300, base_http_port=9200, index=2
    )
    assert node_config.name == "Node 2"
    assert node_config.transport_port == 9302
    assert node_config.http_port == 9202
    assert node_config.data_path == pl.Path("/es/data/node_2")
    assert node_config.logs_path == pl.Path("/es/logs/node_2")
    assert node_config.work_path == pl.Path("/es/work/node_2")
    assert node_config.node_dirs == (
        node_config.data_path,
        node_config.logs_path,
        node_config.work_path,
    )


def test_shared_paths():
    first, second = (
        resources.allocate(base_path="/es", base_transport_port=9300, base_http_port=9200, index=i)
        for i in (1, 2)
    )
    assert first.conf_path == second.conf_path == pl.Path("/es/config")
    assert first.plugins_path == second.plugins_path == pl.Path("/es/plugins")


@pytest.mark.parametrize("index", (0, -1))
def test_allocate_invalid_index(index: int):
    with pytest.raises(ValueError, match="must be >= 1"):
        resources.allocate(
            base_path="/es", base_transport_port=9300, base_http_port=9200, index=index
        )


def test_three_node_cluster_configs(tmp_path: pl.Path):
    config = cluster_config.ClusterConfig(
        base_path=tmp_path, num_of_node=3, base_transport_port=9300, base_http_port=9200
    )
    node_configs = config.node_configs()

    assert [c.index for c in node_configs] == [1, 2, 3]
    assert {c.transport_port for c in node_configs} == {9301, 9302, 9303}
    assert {c.http_port for c in node_configs} == {9201, 9202, 9203}
    assert [c.data_path for c in node_configs] == [
        tmp_path / "data" / f"node_{i}" for i in (1, 2, 3)
    ]
    # Allocation doesn't touch the filesystem
    assert not list(tmp_path.iterdir())


class TestClusterConfigValidation:
    def test_defaults_are_valid(self):
        cluster_config.ClusterConfig(base_path=pl.Path("/es")).validate()

    @pytest.mark.parametrize(
        "kwargs",
        (
            {"num_of_node": 0},
            {"cluster_name": ""},
            {"base_http_port": 65530, "num_of_node": 10},
            {"base_transport_port": 9300, "base_http_port": 9302},
        ),
        ids=("no_nodes", "no_name", "port_overflow", "ports_overlap"),
    )
    def test_invalid(self, kwargs: dict):
        config = cluster_config.ClusterConfig(base_path=pl.Path("/es"), **kwargs)
        with pytest.raises(exceptions.ConfigurationError):
            config.validate()

    def test_node_configs_need_base_path(self):
        with pytest.raises(exceptions.ConfigurationError):
            cluster_config.ClusterConfig().node_configs()
