import dataclasses
import pathlib as pl
import typing as tp

import pytest

from es_cluster_runner.cluster_management import cluster_config
from es_cluster_runner.cluster_management import failures
from es_cluster_runner.cluster_management import resources
from es_cluster_runner.cluster_management import runner
from es_cluster_runner.utils import engine_client

EngineResponse = engine_client.EngineResponse

GREEN_HEALTH = EngineResponse(status_code=200, body={"status": "green", "timed_out": False})


class FakeCoordinator:
    """Simulated engine client with in-memory indices and documents."""

    def __init__(self) -> None:
        self.health_response = GREEN_HEALTH
        self.shard_failures: list[dict] = []
        # Returned by flush, refresh and optimize instead of a regular response when set
        self.maintenance_error: EngineResponse | None = None
        self.indices: dict[str, dict[tuple[str, str], tp.Any]] = {}
        self.calls: list[tuple[str, tuple, dict]] = []

    def _record(self, name: str, *args: tp.Any, **kwargs: tp.Any) -> None:
        self.calls.append((name, args, kwargs))

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]

    def cluster_health(self, indices: tp.Iterable[str] = (), **kwargs: tp.Any) -> EngineResponse:
        self._record("cluster_health", tuple(indices), **kwargs)
        return self.health_response

    def cluster_state(self) -> EngineResponse:
        self._record("cluster_state")
        return EngineResponse(status_code=200, body={"cluster_name": "fake", "nodes": {}})

    def pending_tasks(self) -> EngineResponse:
        self._record("pending_tasks")
        return EngineResponse(status_code=200, body={"tasks": []})

    def create_index(self, index: str, *, settings: dict | None = None) -> EngineResponse:
        self._record("create_index", index, settings=settings)
        if index in self.indices:
            return EngineResponse(
                status_code=400, body={"error": {"type": "resource_already_exists_exception"}}
            )
        self.indices[index] = {}
        return EngineResponse(status_code=200, body={"acknowledged": True, "index": index})

    def index_exists(self, index: str) -> EngineResponse:
        self._record("index_exists", index)
        return EngineResponse(status_code=200 if index in self.indices else 404)

    def index_doc(
        self, index: str, doc_type: str, doc_id: str, source: tp.Any, *, refresh: bool = True
    ) -> EngineResponse:
        self._record("index_doc", index, doc_type, doc_id, source, refresh=refresh)
        docs = self.indices.setdefault(index, {})
        created = (doc_type, doc_id) not in docs
        docs[(doc_type, doc_id)] = source
        return EngineResponse(
            status_code=201 if created else 200,
            body={"_id": doc_id, "created": created},
        )

    def delete_doc(
        self, index: str, doc_type: str, doc_id: str, *, refresh: bool = True
    ) -> EngineResponse:
        self._record("delete_doc", index, doc_type, doc_id, refresh=refresh)
        docs = self.indices.get(index, {})
        found = docs.pop((doc_type, doc_id), None) is not None
        return EngineResponse(status_code=200 if found else 404, body={"found": found})

    def search(self, index: str, **kwargs: tp.Any) -> EngineResponse:
        self._record("search", index, **kwargs)
        hits = [
            {"_id": doc_id, "_source": source}
            for (_, doc_id), source in self.indices.get(index, {}).items()
        ]
        return EngineResponse(status_code=200, body={"hits": {"total": len(hits), "hits": hits}})

    def _shards_response(self) -> EngineResponse:
        if self.maintenance_error is not None:
            return self.maintenance_error
        body = {
            "_shards": {
                "total": 2,
                "successful": 2 - len(self.shard_failures),
                "failed": len(self.shard_failures),
                "failures": self.shard_failures,
            }
        }
        return EngineResponse(status_code=200, body=body)

    def flush(self, indices: tp.Iterable[str] = ()) -> EngineResponse:
        self._record("flush", tuple(indices))
        return self._shards_response()

    def refresh(self, indices: tp.Iterable[str] = ()) -> EngineResponse:
        self._record("refresh", tuple(indices))
        return self._shards_response()

    def optimize(self, indices: tp.Iterable[str] = (), **kwargs: tp.Any) -> EngineResponse:
        self._record("optimize", tuple(indices), **kwargs)
        return self._shards_response()


class FakeNode:
    def __init__(
        self,
        name: str,
        coordinator: FakeCoordinator,
        *,
        fail_on_start: bool = False,
        fail_on_close: bool = False,
    ) -> None:
        self.name = name
        self.coordinator = coordinator
        self.fail_on_start = fail_on_start
        self.fail_on_close = fail_on_close
        self.started = False
        self.closed = False
        self.close_calls = 0

    def start(self) -> None:
        if self.fail_on_start:
            msg = f"Address already in use: {self.name}"
            raise OSError(msg)
        self.started = True

    def close(self) -> None:
        self.close_calls += 1
        if self.fail_on_close:
            msg = f"Failed to stop {self.name}"
            raise RuntimeError(msg)
        self.closed = True

    def is_closed(self) -> bool:
        return self.closed

    def client(self) -> FakeCoordinator:
        return self.coordinator


@dataclasses.dataclass
class FakeNodeFactory:
    coordinator: FakeCoordinator = dataclasses.field(default_factory=FakeCoordinator)
    fail_on_start: set[int] = dataclasses.field(default_factory=set)
    fail_on_close: set[int] = dataclasses.field(default_factory=set)
    nodes: list[FakeNode] = dataclasses.field(default_factory=list)
    settings: list[dict[str, str]] = dataclasses.field(default_factory=list)

    def __call__(self, node_config: resources.NodeConfig, settings: dict[str, str]) -> FakeNode:
        node = FakeNode(
            node_config.name,
            self.coordinator,
            fail_on_start=node_config.index in self.fail_on_start,
            fail_on_close=node_config.index in self.fail_on_close,
        )
        self.nodes.append(node)
        self.settings.append(settings)
        return node


@pytest.fixture
def node_factory() -> FakeNodeFactory:
    return FakeNodeFactory()


@pytest.fixture
def coordinator(node_factory: FakeNodeFactory) -> FakeCoordinator:
    return node_factory.coordinator


@pytest.fixture
def base_path(tmp_path: pl.Path) -> pl.Path:
    return tmp_path / "es"


@pytest.fixture
def make_runner(
    base_path: pl.Path, node_factory: FakeNodeFactory
) -> tp.Iterator[tp.Callable[..., runner.ClusterRunner]]:
    """Return function for creating (not yet built) cluster runners with fake nodes."""
    created: list[runner.ClusterRunner] = []

    def _make(**kwargs: tp.Any) -> runner.ClusterRunner:
        kwargs.setdefault("base_path", base_path)
        config = cluster_config.ClusterConfig(**kwargs)
        cluster = runner.ClusterRunner(config=config, node_factory=node_factory)
        created.append(cluster)
        return cluster

    yield _make

    for cluster in created:
        cluster.close()


@pytest.fixture
def fail_fast_cluster(
    make_runner: tp.Callable[..., runner.ClusterRunner],
) -> runner.ClusterRunner:
    cluster = make_runner(num_of_node=1, failure_policy=failures.FailurePolicy.FAIL_FAST)
    cluster.build()
    return cluster


@pytest.fixture
def fail_soft_cluster(
    make_runner: tp.Callable[..., runner.ClusterRunner],
) -> runner.ClusterRunner:
    cluster = make_runner(num_of_node=1, failure_policy=failures.FailurePolicy.FAIL_SOFT)
    cluster.build()
    return cluster
