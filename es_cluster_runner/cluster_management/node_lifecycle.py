"""Starting and stopping of the fleet of engine nodes.

The fleet is the ordered list of started node handles, in node index order. Node at position 0
is the coordinator used for all client calls. The list only grows while the cluster is being
built; afterwards nodes only change their state to closed, they are never removed.
"""

import logging
import threading
import typing as tp

from es_cluster_runner.cluster_management import cluster_config
from es_cluster_runner.cluster_management import resources
from es_cluster_runner.utils import engine_node
from es_cluster_runner.utils import exceptions

LOGGER = logging.getLogger(__name__)

NodeFactory = tp.Callable[[resources.NodeConfig, dict[str, str]], engine_node.EngineNode]


def build_node_settings(
    config: cluster_config.ClusterConfig, node_config: resources.NodeConfig
) -> dict[str, str]:
    """Return engine settings for the given node.

    Every node knows transport ports and names of all the nodes of the cluster, so the nodes can
    discover each other and elect the first master.
    """
    all_indices = range(1, config.num_of_node + 1)
    seed_hosts = ",".join(f"127.0.0.1:{config.base_transport_port + i}" for i in all_indices)
    master_nodes = ",".join(resources.get_node_name(i) for i in all_indices)

    return {
        "cluster.name": config.cluster_name,
        "node.name": node_config.name,
        "path.data": str(node_config.data_path.absolute()),
        "path.logs": str(node_config.logs_path.absolute()),
        "transport.port": str(node_config.transport_port),
        "http.port": str(node_config.http_port),
        "discovery.seed_hosts": seed_hosts,
        "cluster.initial_master_nodes": master_nodes,
    }


def process_node_factory(
    node_config: resources.NodeConfig, settings: dict[str, str]
) -> engine_node.EngineNode:
    """Create handle of a node running as a child process."""
    return engine_node.ProcessNode(
        name=node_config.name,
        settings=settings,
        http_port=node_config.http_port,
        conf_dir=node_config.conf_path.absolute(),
        logs_dir=node_config.logs_path,
    )


class NodeLifecycleManager:
    """Owner of the fleet of started nodes."""

    def __init__(self, node_factory: NodeFactory = process_node_factory) -> None:
        self.node_factory = node_factory
        self._fleet: list[engine_node.EngineNode] = []
        self._node_indices: list[int] = []
        # Closing can be triggered by a signal handler while closing is already in progress
        self._close_lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._fleet)

    def start_node(
        self, node_config: resources.NodeConfig, settings: dict[str, str]
    ) -> engine_node.EngineNode:
        """Create node directories, start the node and add it to the fleet."""
        index = node_config.index
        if index in self._node_indices:
            msg = f"Node with index {index} is already part of the cluster."
            raise exceptions.StartupFailure(msg, node_index=index)

        for node_dir in node_config.node_dirs:
            if node_dir.exists():
                continue
            LOGGER.debug(f"Creating {node_dir}")
            try:
                node_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                msg = f"Failed to create {node_dir}"
                raise exceptions.StartupFailure(msg, node_index=index) from exc

        try:
            node = self.node_factory(node_config, settings)
        except Exception as exc:
            msg = f"Failed to create node '{node_config.name}': {exc}"
            raise exceptions.StartupFailure(msg, node_index=index) from exc

        try:
            node.start()
        except Exception as exc:
            # The node is not part of the fleet, `close_all` would never reach it
            self._close_failed_node(node)
            msg = f"Failed to start node '{node_config.name}': {exc}"
            raise exceptions.StartupFailure(msg, node_index=index) from exc

        self._fleet.append(node)
        self._node_indices.append(index)
        return node

    def _close_failed_node(self, node: engine_node.EngineNode) -> None:
        try:
            node.close()
        except Exception:
            LOGGER.exception(f"Failed to close node '{node.name}' after failed start")

    def is_all_closed(self) -> bool:
        return all(node.is_closed() for node in self._fleet)

    def close_all(self) -> list[tuple[int, Exception]]:
        """Close all the nodes, in fleet order.

        Failure to close a node doesn't stop closing of the remaining nodes. Return list of
        (node index, error) for nodes that failed to close.
        """
        errors: list[tuple[int, Exception]] = []
        with self._close_lock:
            for index, node in zip(self._node_indices, self._fleet, strict=True):
                if node.is_closed():
                    continue
                try:
                    node.close()
                except Exception as exc:
                    LOGGER.exception(f"Failed to close node '{node.name}'")
                    errors.append((index, exc))
        return errors

    def get(self, index: int) -> engine_node.EngineNode:
        """Return node at the given (0-based) position of the fleet."""
        if not 0 <= index < len(self._fleet):
            msg = f"Node index {index} out of range, the cluster has {len(self._fleet)} nodes."
            raise exceptions.NodeIndexError(msg)
        return self._fleet[index]

    def size(self) -> int:
        return len(self._fleet)
