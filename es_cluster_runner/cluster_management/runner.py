"""High-level management of a local cluster.

The `ClusterRunner` owns everything that belongs to one cluster: its configuration, the fleet of
started nodes, the health waiter and the operations. Typical use:

    with runner.ClusterRunner(cluster_config.ClusterConfig(base_path=tmp_path)) as es:
        es.ensure_yellow()
        es.insert("i1", "t", "1", '{"a": 1}')
    es.clean()

The build phase allocates resources and starts nodes in node index order; the close phase stops
all the nodes; the clean phase deletes the whole base path.
"""

import dataclasses
import logging
import pathlib as pl
import shutil
import tempfile
import typing as tp

import filelock
import yaml

from es_cluster_runner.cluster_management import cluster_config
from es_cluster_runner.cluster_management import failures
from es_cluster_runner.cluster_management import health
from es_cluster_runner.cluster_management import node_lifecycle
from es_cluster_runner.cluster_management import operations
from es_cluster_runner.cluster_management import resources
from es_cluster_runner.utils import configuration
from es_cluster_runner.utils import engine_client
from es_cluster_runner.utils import engine_node
from es_cluster_runner.utils import exceptions
from es_cluster_runner.utils import fs_cleanup
from es_cluster_runner.utils import helpers
from es_cluster_runner.utils import http_client
from es_cluster_runner.utils import locking

LOGGER = logging.getLogger(__name__)

ENGINE_CONFIG = "elasticsearch.yml"
LOGGING_CONFIG = "log4j2.properties"
JVM_OPTIONS = "jvm.options"
CONFIG_FILES = (ENGINE_CONFIG, LOGGING_CONFIG, JVM_OPTIONS)
# Files taken from the engine distribution when available; they must match the engine version
ENGINE_PROVIDED_FILES = (JVM_OPTIONS,)
NODE_CONFIG_DIR = pl.Path(__file__).parent.parent / "node_config"
SEPARATOR = "-" * 40


class ClusterRunner:
    """Local multi-node cluster."""

    def __init__(
        self,
        config: cluster_config.ClusterConfig,
        node_factory: node_lifecycle.NodeFactory = node_lifecycle.process_node_factory,
    ) -> None:
        self.config = config
        self.print = helpers.get_print_func(use_stdout=config.use_stdout, logger=LOGGER)
        self.nodes = node_lifecycle.NodeLifecycleManager(node_factory=node_factory)
        self.escalator = failures.FailureEscalator(
            policy=config.failure_policy, print_func=self.print
        )
        self.health = health.ClusterHealthWaiter(
            client_getter=self.client, escalator=self.escalator, timeout=config.health_timeout
        )
        self.operations = operations.OperationFacade(
            client_getter=self.client,
            health_waiter=self.health,
            escalator=self.escalator,
            index_settings=config.index_settings(),
        )
        self._lock: filelock.FileLock | None = None
        # Set when closing was requested, e.g. by a signal handler while the cluster is built
        self._close_requested = False

    def __enter__(self) -> "ClusterRunner":
        try:
            self.build()
        except Exception:
            self.close()
            raise
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def base_path(self) -> pl.Path:
        if self.config.base_path is None:
            msg = "Cluster was not built yet, base path is not known."
            raise RuntimeError(msg)
        return self.config.base_path

    def _create_dir(self, path: pl.Path) -> None:
        if path.exists():
            return
        self.print(f"Creating {path}")
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            msg = f"Failed to create {path}"
            raise exceptions.ConfigurationError(msg) from exc

    def _copy_default_config(self, conf_path: pl.Path, fname: str) -> None:
        dest = conf_path / fname
        if dest.exists():
            return
        src = NODE_CONFIG_DIR / fname
        engine_src = configuration.ES_CONF_DIR / fname
        if fname in ENGINE_PROVIDED_FILES and engine_src.exists():
            src = engine_src
        if not src.exists():
            msg = f"Default config '{src}' not found."
            raise exceptions.ConfigurationError(msg)
        try:
            shutil.copyfile(src, dest)
        except OSError as exc:
            msg = f"Could not create: {dest}"
            raise exceptions.ConfigurationError(msg) from exc

    def _check_engine_config(self, conf_file: pl.Path) -> None:
        """Check that the engine config is a YAML mapping; nodes fail late on a broken one."""
        try:
            with open(conf_file, encoding="utf-8") as in_fp:
                content = yaml.safe_load(in_fp)
        except (OSError, yaml.YAMLError) as exc:
            msg = f"Invalid engine config '{conf_file}': {exc}"
            raise exceptions.ConfigurationError(msg) from exc

        if content is not None and not isinstance(content, dict):
            msg = f"Invalid engine config '{conf_file}': expected a mapping of settings"
            raise exceptions.ConfigurationError(msg)

    def _prepare_base_path(self) -> None:
        if self.config.base_path is None:
            try:
                tmp_path = tempfile.mkdtemp(prefix="es-cluster")
            except OSError as exc:
                msg = "Could not create base path."
                raise exceptions.ConfigurationError(msg) from exc
            self.config = dataclasses.replace(self.config, base_path=pl.Path(tmp_path).absolute())

        base_path = self.base_path
        self._create_dir(base_path)
        self._lock = locking.lock_base_path(base_path)

        conf_path = base_path / resources.CONFIG_DIR
        self._create_dir(conf_path)
        self._create_dir(base_path / resources.PLUGINS_DIR)
        for fname in CONFIG_FILES:
            self._copy_default_config(conf_path=conf_path, fname=fname)
        self._check_engine_config(conf_path / ENGINE_CONFIG)

    def build(self) -> None:
        """Prepare the base path and start all the nodes."""
        if self.nodes.size():
            msg = "Cluster was already built."
            raise RuntimeError(msg)

        self.config.validate()
        self._prepare_base_path()

        self.print(SEPARATOR)
        self.print(f"Cluster Name: {self.config.cluster_name}")
        self.print(f"Base Path:    {self.base_path}")
        self.print(f"Num Of Node:  {self.config.num_of_node}")
        self.print(SEPARATOR)

        for node_config in self.config.node_configs():
            self._check_close_requested(node_config.index)
            self.build_node(node_config)
        # A node that was starting when closing was requested is not closed yet
        self._check_close_requested(self.config.num_of_node)

    def _check_close_requested(self, node_index: int) -> None:
        if not self._close_requested:
            return
        # Already closed nodes are skipped
        self.nodes.close_all()
        msg =f"Cluster was closed while it was being built (at node {node_index})."
        raise exceptions.StartupFailure(msg, node_index=node_index)

    def build_node(self, node_config: resources.NodeConfig) -> engine_node.EngineNode:
        settings = node_lifecycle.build_node_settings(self.config, node_config)
        node = self.nodes.start_node(node_config, settings)

        self.print(f"Node Name:      {node_config.name}")
        self.print(f"HTTP Port:      {node_config.http_port}")
        self.print(f"Transport Port: {node_config.transport_port}")
        self.print(f"Data Directory: {node_config.data_path}")
        self.print(f"Log Directory:  {node_config.logs_path}")
        self.print(SEPARATOR)
        return node

    def is_closed(self) -> bool:
        return self.nodes.is_all_closed()

    def close(self) -> list[tuple[int, Exception]]:
        """Close all the nodes; failures are reported, not raised."""
        self._close_requested = True
        errors = self.nodes.close_all()
        http_client.close_session()
        for index, err in errors:
            self.print(f"Failed to close node {index}: {err}")

        if self._lock is not None:
            self._lock.release()
            self._lock = None

        self.print("Closed all nodes.")
        return errors

    def clean(self) -> bool:
        """Delete the base path. Nodes must be closed first."""
        if self.config.base_path is None:
            return True

        if not self.is_closed():
            LOGGER.warning(f"Deleting '{self.base_path}' while some nodes are still running.")

        try:
            fs_cleanup.delete_tree(self.base_path)
        except exceptions.DeletionVerificationFailure as exc:
            LOGGER.debug(f"Deletion failure: {exc}")
            self.print(f"Failed to delete {self.base_path}")
            return False

        self.print(f"Deleted {self.base_path}")
        return True

    def get_node(self, index: int) -> engine_node.EngineNode:
        return self.nodes.get(index)

    def get_node_size(self) -> int:
        return self.nodes.size()

    def client(self) -> engine_client.EngineClient:
        """Return client of the coordinator node."""
        return self.nodes.get(0).client()

    def ensure_green(self, *indices: str) -> health.HealthStatus:
        return self.health.ensure_green(*indices).status

    def ensure_yellow(self, *indices: str) -> health.HealthStatus:
        return self.health.ensure_yellow(*indices).status

    def wait_for_relocation(self) -> health.HealthStatus:
        return self.health.wait_for_no_relocation().status

    def create_index(
        self, index: str, settings: dict | None = None
    ) -> engine_client.EngineResponse:
        return self.operations.create_index(index, settings=settings)

    def index_exists(self, index: str) -> bool:
        return self.operations.index_exists(index)

    def insert(
        self, index: str, doc_type: str, doc_id: str, source: str | dict
    ) -> engine_client.EngineResponse:
        return self.operations.insert(index, doc_type, doc_id, source)

    def delete(self, index: str, doc_type: str, doc_id: str) -> engine_client.EngineResponse:
        return self.operations.delete(index, doc_type, doc_id)

    def search(
        self, index: str, doc_type: str = "", **kwargs: tp.Any
    ) -> engine_client.EngineResponse:
        return self.operations.search(index, doc_type, **kwargs)

    def flush(self) -> engine_client.EngineResponse:
        return self.operations.flush()

    def refresh(self) -> engine_client.EngineResponse:
        return self.operations.refresh()

    def optimize(self, max_num_segments: int | None = None) -> engine_client.EngineResponse:
        return self.operations.optimize(max_num_segments=max_num_segments)
