#!/usr/bin/env python3
"""Start a local multi-node Elasticsearch cluster and keep it running until interrupted.

For defaults it uses the same env variables as the rest of the framework.
"""

import argparse
import atexit
import logging
import pathlib as pl
import signal
import sys
import time
import types as tt

from es_cluster_runner.cluster_management import cluster_config
from es_cluster_runner.cluster_management import failures
from es_cluster_runner.cluster_management import runner
from es_cluster_runner.utils import configuration
from es_cluster_runner.utils import exceptions
from es_cluster_runner.utils import helpers

LOGGER = logging.getLogger(__name__)


def get_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Get command line arguments."""
    parser = argparse.ArgumentParser(description=(__doc__ or "").split("\n", maxsplit=1)[0])
    parser.add_argument(
        "-basePath",
        "--base-path",
        dest="base_path",
        default="",
        help="Base path for Elasticsearch (default: new temporary directory)",
    )
    parser.add_argument(
        "-numOfNode",
        "--num-of-node",
        dest="num_of_node",
        type=helpers.check_positive_int_arg,
        default=configuration.NUM_OF_NODE,
        help=f"The number of Elasticsearch nodes (default: {configuration.NUM_OF_NODE})",
    )
    parser.add_argument(
        "-baseTransportPort",
        "--base-transport-port",
        dest="base_transport_port",
        type=helpers.check_port_arg,
        default=configuration.BASE_TRANSPORT_PORT,
        help=f"Base transport port (default: {configuration.BASE_TRANSPORT_PORT})",
    )
    parser.add_argument(
        "-baseHttpPort",
        "--base-http-port",
        dest="base_http_port",
        type=helpers.check_port_arg,
        default=configuration.BASE_HTTP_PORT,
        help=f"Base HTTP port (default: {configuration.BASE_HTTP_PORT})",
    )
    parser.add_argument(
        "-clusterName",
        "--cluster-name",
        dest="cluster_name",
        default=configuration.CLUSTER_NAME,
        help=f"Cluster name (default: {configuration.CLUSTER_NAME})",
    )
    parser.add_argument(
        "-indexStoreType",
        "--index-store-type",
        dest="index_store_type",
        default=configuration.INDEX_STORE_TYPE,
        help=f"Index store type (default: {configuration.INDEX_STORE_TYPE})",
    )
    parser.add_argument(
        "-useStdOut",
        "--use-stdout",
        dest="use_stdout",
        type=helpers.check_bool_arg,
        nargs="?",
        const=True,
        default=True,
        help="Print messages to stdout instead of the log (default: true)",
    )
    parser.add_argument(
        "-throwOnFailure",
        "--throw-on-failure",
        dest="throw_on_failure",
        type=helpers.check_bool_arg,
        nargs="?",
        const=True,
        default=True,
        help="Raise an error on a failed operation instead of only printing it (default: true)",
    )
    parser.add_argument(
        "-c",
        "--clean",
        action="store_true",
        help="Delete the base path after all the nodes are closed (default: false)",
    )
    return parser.parse_args(argv)


def get_cluster_config(args: argparse.Namespace) -> cluster_config.ClusterConfig:
    """Return cluster configuration for the parsed command line arguments."""
    return cluster_config.ClusterConfig(
        base_path=pl.Path(args.base_path).expanduser().absolute() if args.base_path else None,
        num_of_node=args.num_of_node,
        base_transport_port=args.base_transport_port,
        base_http_port=args.base_http_port,
        cluster_name=args.cluster_name,
        index_store_type=args.index_store_type,
        failure_policy=failures.FailurePolicy.from_flag(args.throw_on_failure),
        use_stdout=args.use_stdout,
    )


def install_shutdown_hook(cluster: runner.ClusterRunner) -> None:
    """Close all the nodes when the process is interrupted or terminated."""

    def _handler(signum: int, frame: tt.FrameType | None) -> None:  # noqa: ARG001
        LOGGER.info(f"Received signal {signal.Signals(signum).name}, closing all nodes.")
        cluster.close()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)
    atexit.register(cluster.close)


def wait_until_closed(cluster: runner.ClusterRunner, interval: float) -> None:
    """Keep the process alive while the nodes are serving."""
    while not cluster.is_closed():
        time.sleep(interval)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        format="%(name)s:%(levelname)s:%(message)s",
        level=logging.INFO,
    )
    args = get_args(argv)

    cluster = runner.ClusterRunner(config=get_cluster_config(args))
    install_shutdown_hook(cluster)

    try:
        cluster.build()
    except exceptions.ClusterRunnerError:
        LOGGER.exception("Failed to start the cluster")
        cluster.close()
        return 1

    wait_until_closed(cluster, interval=configuration.POLL_INTERVAL)

    if args.clean and not cluster.clean():
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
