"""Errors raised by the cluster runner.

Configuration and startup errors are always raised. Health and operation failures are raised only
when the failure policy is fail-fast, see `cluster_management.failures`.
"""

import pathlib as pl
import typing as tp


class ClusterRunnerError(Exception):
    """Base error carrying the engine response (if any) and a diagnostic snapshot."""

    def __init__(self, message: str, *, response: tp.Any = None, diagnostic: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.response = response
        self.diagnostic = diagnostic


class ConfigurationError(ClusterRunnerError):
    pass


class StartupFailure(ClusterRunnerError):
    def __init__(self, message: str, *, node_index: int) -> None:
        super().__init__(message)
        self.node_index = node_index


class DeletionVerificationFailure(ClusterRunnerError):
    def __init__(self, message: str, *, path: pl.Path, report: tp.Any = None) -> None:
        super().__init__(message, response=report)
        self.path = path

    @property
    def report(self) -> tp.Any:
        return self.response


class HealthTimeout(ClusterRunnerError):
    pass


class OperationFailure(ClusterRunnerError):
    pass


class NodeIndexError(ClusterRunnerError, IndexError):
    pass
