"""Allocation of per-node ports and directories.

All values are derived from the node index, so two different nodes of the same cluster never
share a port or a data/logs/work directory. Nothing is created on disk here.
"""

import dataclasses
import pathlib as pl
import typing as tp

from es_cluster_runner.utils import types as ttypes

DATA_DIR: tp.Final[str] = "data"
LOGS_DIR: tp.Final[str] = "logs"
WORK_DIR: tp.Final[str] = "work"
CONFIG_DIR: tp.Final[str] = "config"
PLUGINS_DIR: tp.Final[str] = "plugins"


@dataclasses.dataclass(frozen=True, order=True)
class NodeConfig:
    index: int
    name: str
    transport_port: int
    http_port: int
    data_path: pl.Path
    logs_path: pl.Path
    work_path: pl.Path
    conf_path: pl.Path
    plugins_path: pl.Path

    @property
    def node_dirs(self) -> tuple[pl.Path, pl.Path, pl.Path]:
        """Directories owned by this node only."""
        return (self.data_path, self.logs_path, self.work_path)


def get_node_dirname(index: int) -> str:
    return f"node_{index}"


def get_node_name(index: int) -> str:
    return f"Node {index}"


def allocate(
    base_path: ttypes.FileType,
    base_transport_port: int,
    base_http_port: int,
    index: int,
) -> NodeConfig:
    """Return ports and paths of the node with the given (1-based) index."""
    if index < 1:
        msg = f"Node index must be >= 1, got {index}."
        raise ValueError(msg)

    base_path = pl.Path(base_path)
    node_dirname = get_node_dirname(index)

    return NodeConfig(
        index=index,
        name=get_node_name(index),
        transport_port=base_transport_port + index,
        http_port=base_http_port + index,
        data_path=base_path / DATA_DIR / node_dirname,
        logs_path=base_path / LOGS_DIR / node_dirname,
        work_path=base_path / WORK_DIR / node_dirname,
        conf_path=base_path / CONFIG_DIR,
        plugins_path=base_path / PLUGINS_DIR,
    )
