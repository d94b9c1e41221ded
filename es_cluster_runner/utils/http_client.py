"""Shared HTTP session for talking to the engine nodes.

All the nodes listen on localhost, each on its own port, and `requests` keeps a separate
connection pool per port. Pools are cached for the default number of nodes, so querying one node
doesn't evict the pooled connections to the coordinator.
"""

import requests
from requests import adapters

from es_cluster_runner.utils import configuration

DEFAULT_HEADERS = {"Accept": "application/json"}

_session: requests.Session | None = None


def get_session() -> requests.Session:
    """Get the session object shared by all engine clients."""
    global _session  # noqa: PLW0603

    if _session is None:
        session = requests.Session()
        session.headers.update(DEFAULT_HEADERS)
        adapter = adapters.HTTPAdapter(
            pool_connections=max(adapters.DEFAULT_POOLSIZE, configuration.NUM_OF_NODE + 1)
        )
        session.mount("http://", adapter)
        _session = session
    return _session


def close_session() -> None:
    """Drop pooled connections to nodes that were stopped.

    A new session is created on the next `get_session` call.
    """
    global _session  # noqa: PLW0603

    if _session is not None:
        _session.close()
        _session = None
