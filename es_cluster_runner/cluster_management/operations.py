"""Data and maintenance operations on the running cluster.

Each operation calls the coordinator client and checks the response for the failure signal
specific to the operation kind. Failures are passed to the `FailureEscalator`.
"""

import logging
import typing as tp

from es_cluster_runner.cluster_management import failures
from es_cluster_runner.cluster_management import health
from es_cluster_runner.utils import engine_client

LOGGER = logging.getLogger(__name__)

EngineResponse = engine_client.EngineResponse


class OperationFacade:
    """Operations with uniform failure detection."""

    def __init__(
        self,
        client_getter: tp.Callable[[], engine_client.EngineClient],
        health_waiter: health.ClusterHealthWaiter,
        escalator: failures.FailureEscalator,
        *,
        index_settings: dict | None = None,
    ) -> None:
        self._client_getter = client_getter
        self._health_waiter = health_waiter
        self._escalator = escalator
        self.index_settings = index_settings or {}

    def _check(self, response: EngineResponse, *, success: bool, message: str) -> EngineResponse:
        if success:
            return response
        return self._escalator.escalate(failures.Outcome.failed(response, message=message))

    def _check_shard_failures(self, response: EngineResponse, op_name: str) -> EngineResponse:
        # Error responses carry no `_shards` section at all
        if not response.ok:
            return self._check(
                response,
                success=False,
                message=f"{op_name} failed with HTTP {response.status_code}: {response.body}",
            )

        shard_failures = response.shard_failures
        return self._check(
            response,
            success=not shard_failures,
            message=f"{op_name} failed on {len(shard_failures)} shards: {shard_failures}",
        )

    def create_index(self, index: str, settings: dict | None = None) -> EngineResponse:
        """Create the index; explicitly passed settings take precedence over the defaults."""
        merged = {**self.index_settings, **(settings or {})}
        response = self._client_getter().create_index(index, settings=merged or None)
        return self._check(
            response, success=response.acknowledged, message=f"Failed to create {index}."
        )

    def index_exists(self, index: str) -> bool:
        return self._client_getter().index_exists(index).exists

    def insert(self, index: str, doc_type: str, doc_id: str, source: str | dict) -> EngineResponse:
        """Index the document and make it searchable before returning."""
        response = self._client_getter().index_doc(index, doc_type, doc_id, source, refresh=True)
        return self._check(
            response,
            success=response.created,
            message=f"Failed to insert {doc_id} into {index}/{doc_type}.",
        )

    def delete(self, index: str, doc_type: str, doc_id: str) -> EngineResponse:
        response = self._client_getter().delete_doc(index, doc_type, doc_id, refresh=True)
        return self._check(
            response,
            success=response.found,
            message=f"Failed to delete {doc_id} from {index}/{doc_type}.",
        )

    def search(
        self,
        index: str,
        doc_type: str = "",
        query: dict | None = None,
        sort: list | None = None,
        from_: int = 0,
        size: int = 10,
    ) -> EngineResponse:
        return self._client_getter().search(
            index, doc_type=doc_type, query=query, sort=sort, from_=from_, size=size
        )

    def flush(self) -> EngineResponse:
        self._health_waiter.wait_for_no_relocation()
        return self._check_shard_failures(self._client_getter().flush(), "flush")

    def refresh(self) -> EngineResponse:
        self._health_waiter.wait_for_no_relocation()
        return self._check_shard_failures(self._client_getter().refresh(), "refresh")

    def optimize(self, max_num_segments: int | None = None) -> EngineResponse:
        self._health_waiter.wait_for_no_relocation()
        response = self._client_getter().optimize(max_num_segments=max_num_segments)
        return self._check_shard_failures(response, "optimize")
