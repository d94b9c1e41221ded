"""Cluster runner configuration.

Values are read from environment variables, CLI arguments override the defaults defined here.
"""

import os
import pathlib as pl
import shutil

DEFAULT_CLUSTER_NAME = "elasticsearch-cluster-runner"

NUM_OF_NODE = int(os.environ.get("NUM_OF_NODE") or 3)
if NUM_OF_NODE < 1:
    msg = f"Invalid NUM_OF_NODE '{NUM_OF_NODE}': must be >= 1"
    raise RuntimeError(msg)

BASE_TRANSPORT_PORT = int(os.environ.get("BASE_TRANSPORT_PORT") or 9300)
BASE_HTTP_PORT = int(os.environ.get("BASE_HTTP_PORT") or 9200)
for _port_name, _port in (
    ("BASE_TRANSPORT_PORT", BASE_TRANSPORT_PORT),
    ("BASE_HTTP_PORT", BASE_HTTP_PORT),
):
    if not 0 < _port < 65535:
        msg = f"Invalid {_port_name} '{_port}'"
        raise RuntimeError(msg)

CLUSTER_NAME = os.environ.get("CLUSTER_NAME") or DEFAULT_CLUSTER_NAME
INDEX_STORE_TYPE = os.environ.get("INDEX_STORE_TYPE") or "default"

# Resolve ES_HOME; fall back to the `elasticsearch` executable found on PATH
ES_HOME: str | pl.Path = os.environ.get("ES_HOME") or ""
if ES_HOME:
    ES_HOME = pl.Path(ES_HOME).expanduser().resolve()
    ES_BIN = ES_HOME / "bin" / "elasticsearch"
else:
    _es_on_path = shutil.which("elasticsearch")
    ES_BIN = (
        pl.Path(_es_on_path).resolve() if _es_on_path else pl.Path("/nonexistent/elasticsearch")
    )
# Config dir of the engine distribution, source of version specific files like `jvm.options`
ES_CONF_DIR = ES_BIN.parent.parent / "config"

# Seconds to wait for a started node to answer on its HTTP port
STARTUP_TIMEOUT = int(os.environ.get("ES_STARTUP_TIMEOUT") or 120)
# Seconds to wait for a node process to exit before it gets killed
SHUTDOWN_TIMEOUT = int(os.environ.get("ES_SHUTDOWN_TIMEOUT") or 30)
# Engine-side timeout of health waits, in the engine's time unit format
HEALTH_TIMEOUT = os.environ.get("ES_HEALTH_TIMEOUT") or "30s"
# Client-side timeout of a single HTTP request; must be longer than HEALTH_TIMEOUT
HTTP_TIMEOUT = int(os.environ.get("ES_HTTP_TIMEOUT") or 120)

# Interval of the main loop that waits for all nodes to be closed
POLL_INTERVAL = 5
