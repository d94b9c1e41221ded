"""Module for exposing useful components of cluster management.

The cluster management system starts a local multi-node engine cluster for development and
integration testing, and tears it down again.

Key concepts:
    - **Resource allocation**: every node gets its own transport port, HTTP port and
      data/logs/work directories, all derived from the node index (`resources`).
    - **Fleet**: the ordered list of started nodes. The first node is the coordinator used for
      all client calls (`node_lifecycle`).
    - **Health waits**: single blocking health requests that let the engine wait until the
      cluster is green/yellow and no shards are relocating (`health`).
    - **Failure policy**: detected failures are either raised (fail-fast) or only printed and
      returned to the caller (fail-soft); the decision is made in one place (`failures`).
    - **`ClusterRunner`**: the main class that owns all of the above (`runner`).
"""

# flake8: noqa
from es_cluster_runner.cluster_management.cluster_config import ClusterConfig
from es_cluster_runner.cluster_management.failures import FailurePolicy
from es_cluster_runner.cluster_management.health import HealthResult
from es_cluster_runner.cluster_management.health import HealthStatus
from es_cluster_runner.cluster_management.resources import NodeConfig
from es_cluster_runner.cluster_management.runner import ClusterRunner
