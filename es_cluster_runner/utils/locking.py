import logging
import pathlib as pl

from filelock import FileLock
from filelock import Timeout

from es_cluster_runner.utils import exceptions

# Suppress messages from filelock
logging.getLogger("filelock").setLevel(logging.WARNING)

BASE_PATH_LOCK = ".cluster.lock"


def lock_base_path(base_path: pl.Path) -> FileLock:
    """Take exclusive ownership of the base path.

    Two runners sharing a base path would start nodes on each other's data directories.
    """
    lock = FileLock(str(base_path / BASE_PATH_LOCK))
    try:
        lock.acquire(timeout=0)
    except Timeout as exc:
        msg = f"Base path '{base_path}' is already used by another cluster runner."
        raise exceptions.ConfigurationError(msg) from exc
    return lock
