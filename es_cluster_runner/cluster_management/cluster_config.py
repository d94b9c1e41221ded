import dataclasses
import pathlib as pl

from es_cluster_runner.cluster_management import failures
from es_cluster_runner.cluster_management import resources
from es_cluster_runner.utils import configuration
from es_cluster_runner.utils import exceptions

MAX_PORT = 65535


@dataclasses.dataclass(frozen=True)
class ClusterConfig:
    """Settings of the whole cluster; fixed for the lifetime of a build."""

    base_path: pl.Path | None = None
    num_of_node: int = configuration.NUM_OF_NODE
    base_transport_port: int = configuration.BASE_TRANSPORT_PORT
    base_http_port: int = configuration.BASE_HTTP_PORT
    cluster_name: str = configuration.CLUSTER_NAME
    index_store_type: str = configuration.INDEX_STORE_TYPE
    failure_policy: failures.FailurePolicy = failures.FailurePolicy.FAIL_FAST
    use_stdout: bool = True
    health_timeout: str = configuration.HEALTH_TIMEOUT

    def validate(self) -> None:
        """Check that the configuration can be used for starting a cluster."""
        if self.num_of_node < 1:
            msg = f"Invalid number of nodes '{self.num_of_node}': must be >= 1"
            raise exceptions.ConfigurationError(msg)
        if not self.cluster_name:
            msg = "Cluster name must not be empty."
            raise exceptions.ConfigurationError(msg)

        for port_name, base_port in (
            ("transport", self.base_transport_port),
            ("http", self.base_http_port),
        ):
            if base_port < 0 or base_port + self.num_of_node > MAX_PORT:
                msg = (
                    f"Base {port_name} port {base_port} leaves no room for "
                    f"{self.num_of_node} nodes."
                )
                raise exceptions.ConfigurationError(msg)

        transport_ports = set(self._port_range(self.base_transport_port))
        if transport_ports.intersection(self._port_range(self.base_http_port)):
            msg = (
                f"Transport ports (base {self.base_transport_port}) and HTTP ports "
                f"(base {self.base_http_port}) overlap for {self.num_of_node} nodes."
            )
            raise exceptions.ConfigurationError(msg)

    def index_settings(self) -> dict[str, str]:
        """Return settings applied to every index created through the runner.

        Index level settings are refused in node config, so the index store type is set per index.
        """
        if not self.index_store_type or self.index_store_type == "default":
            return {}
        return {"index.store.type": self.index_store_type}

    def _port_range(self, base_port: int) -> range:
        return range(base_port + 1, base_port + self.num_of_node + 1)

    def node_configs(self) -> list[resources.NodeConfig]:
        """Allocate resources for all the nodes, in node index order."""
        if self.base_path is None:
            msg = "Base path is not set."
            raise exceptions.ConfigurationError(msg)
        return [
            resources.allocate(
                base_path=self.base_path,
                base_transport_port=self.base_transport_port,
                base_http_port=self.base_http_port,
                index=i,
            )
            for i in range(1, self.num_of_node + 1)
        ]
