"""Escalation of detected failures.

Health waits and data operations don't raise on their own when the engine reports a failure.
They build an `Outcome` and hand it to `FailureEscalator.escalate`, which is the only place where
the fail-fast / fail-soft policy is evaluated:

* fail-fast - raise a `ClusterRunnerError` subclass carrying the original response
* fail-soft - print the message and give the (unsuccessful) response back to the caller
"""

import dataclasses
import enum
import logging
import typing as tp

from es_cluster_runner.utils import exceptions

LOGGER = logging.getLogger(__name__)

T = tp.TypeVar("T")


class FailurePolicy(enum.StrEnum):
    FAIL_FAST = "fail-fast"
    FAIL_SOFT = "fail-soft"

    @classmethod
    def from_flag(cls, throw_on_failure: bool) -> "FailurePolicy":
        return cls.FAIL_FAST if throw_on_failure else cls.FAIL_SOFT


@dataclasses.dataclass(frozen=True)
class Outcome(tp.Generic[T]):
    success: bool
    response: T
    message: str = ""
    diagnostic: str = ""

    @classmethod
    def ok(cls, response: T) -> "Outcome[T]":
        return cls(success=True, response=response)

    @classmethod
    def failed(cls, response: T, *, message: str, diagnostic: str = "") -> "Outcome[T]":
        return cls(success=False, response=response, message=message, diagnostic=diagnostic)


class FailureEscalator:
    """Apply the failure policy to outcomes."""

    def __init__(
        self, policy: FailurePolicy, print_func: tp.Callable[[str], None] = LOGGER.info
    ) -> None:
        self.policy = policy
        self.print_func = print_func

    def escalate(
        self,
        outcome: Outcome[T],
        *,
        error_cls: type[exceptions.ClusterRunnerError] = exceptions.OperationFailure,
    ) -> T:
        """Return the response of a successful outcome, otherwise apply the policy."""
        if outcome.success:
            return outcome.response

        if self.policy == FailurePolicy.FAIL_FAST:
            raise error_cls(
                outcome.message, response=outcome.response, diagnostic=outcome.diagnostic
            )

        self.print_func(outcome.message)
        return outcome.response
