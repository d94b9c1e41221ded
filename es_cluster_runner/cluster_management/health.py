"""Waiting for cluster health.

Every wait is a single health request to the coordinator node. The engine itself blocks the
request until the requested condition is met or until its timeout elapses, there's no polling on
our side.
"""

import dataclasses
import enum
import logging
import typing as tp

import requests

from es_cluster_runner.cluster_management import failures
from es_cluster_runner.utils import engine_client
from es_cluster_runner.utils import exceptions

LOGGER = logging.getLogger(__name__)

# Wait until all the pending cluster tasks, down to the lowest priority ones, are processed
WAIT_FOR_EVENTS_LANGUID = "languid"


class HealthStatus(enum.StrEnum):
    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"


@dataclasses.dataclass(frozen=True)
class HealthResult:
    status: HealthStatus
    timed_out: bool
    diagnostic: str = ""
    response: engine_client.EngineResponse | None = None


def _parse_status(response: engine_client.EngineResponse) -> HealthStatus:
    try:
        return HealthStatus(response.status.lower())
    except ValueError:
        LOGGER.warning(f"Unexpected cluster health status '{response.status}', assuming red.")
        return HealthStatus.RED


class ClusterHealthWaiter:
    """Blocking waits for cluster health conditions."""

    def __init__(
        self,
        client_getter: tp.Callable[[], engine_client.EngineClient],
        escalator: failures.FailureEscalator,
        *,
        timeout: str = "",
    ) -> None:
        self._client_getter = client_getter
        self._escalator = escalator
        self.timeout = timeout

    def wait_for_status(self, *indices: str, target_status: HealthStatus) -> HealthResult:
        """Wait until the cluster (or the given indices) reach at least the target status."""
        if target_status not in (HealthStatus.YELLOW, HealthStatus.GREEN):
            msg = f"Can wait only for yellow or green status, not '{target_status}'."
            raise ValueError(msg)

        return self._wait(
            f"ensure_{target_status}",
            indices=indices,
            wait_for_status=str(target_status),
            wait_for_events=WAIT_FOR_EVENTS_LANGUID,
        )

    def ensure_green(self, *indices: str) -> HealthResult:
        return self.wait_for_status(*indices, target_status=HealthStatus.GREEN)

    def ensure_yellow(self, *indices: str) -> HealthResult:
        return self.wait_for_status(*indices, target_status=HealthStatus.YELLOW)

    def wait_for_no_relocation(self) -> HealthResult:
        """Wait until there are no relocating shards in the cluster."""
        return self._wait("wait_for_relocation")

    def _wait(
        self,
        wait_name: str,
        *,
        indices: tp.Iterable[str] = (),
        wait_for_status: str = "",
        wait_for_events: str = "",
    ) -> HealthResult:
        client = self._client_getter()
        response = client.cluster_health(
            indices,
            wait_for_status=wait_for_status,
            wait_for_no_relocating_shards=True,
            wait_for_events=wait_for_events,
            timeout=self.timeout,
        )
        status = _parse_status(response)

        if not (response.ok or response.timed_out):
            # Request was rejected, e.g. because of an invalid timeout value
            result = HealthResult(status=status, timed_out=False, response=response)
            outcome = failures.Outcome.failed(
                result,
                message=f"{wait_name} failed with HTTP {response.status_code}:\n"
                f"{response.pretty()}",
            )
            return self._escalator.escalate(outcome, error_cls=exceptions.OperationFailure)

        if not response.timed_out:
            LOGGER.debug(f"{wait_name}: cluster status is {status}")
            return HealthResult(status=status, timed_out=False, response=response)

        diagnostic = self.get_diagnostic(client)
        result = HealthResult(
            status=status, timed_out=True, diagnostic=diagnostic, response=response
        )
        outcome = failures.Outcome.failed(
            result,
            message=f"{wait_name} timed out, cluster state:\n{diagnostic}",
            diagnostic=diagnostic,
        )
        return self._escalator.escalate(outcome, error_cls=exceptions.HealthTimeout)

    def get_diagnostic(self, client: engine_client.EngineClient) -> str:
        """Return pretty printed cluster state and pending cluster tasks."""
        parts = []
        for name, call in (
            ("cluster state", client.cluster_state),
            ("pending tasks", client.pending_tasks),
        ):
            try:
                parts.append(call().pretty())
            except requests.RequestException as exc:
                parts.append(f"<{name} unavailable: {exc}>")
        return "\n".join(parts)
