"""Engine node handles.

A node handle is the only way the runner touches an engine instance: `start`, `close`,
`is_closed` and `client`. `ProcessNode` runs the engine executable as a child process of the
runner; anything implementing `EngineNode` can be used instead.
"""

import logging
import os
import pathlib as pl
import subprocess
import time
import typing as tp

import requests

from es_cluster_runner.utils import configuration
from es_cluster_runner.utils import engine_client

LOGGER = logging.getLogger(__name__)

NODE_STDOUT_LOG = "stdout.log"


class EngineNode(tp.Protocol):
    name: str

    def start(self) -> None: ...

    def close(self) -> None: ...

    def is_closed(self) -> bool: ...

    def client(self) -> engine_client.EngineClient: ...


class ProcessNode:
    """Engine node running as a child process."""

    def __init__(
        self,
        *,
        name: str,
        settings: dict[str, str],
        http_port: int,
        conf_dir: pl.Path,
        logs_dir: pl.Path,
        es_bin: pl.Path = configuration.ES_BIN,
        startup_timeout: int = configuration.STARTUP_TIMEOUT,
        shutdown_timeout: int = configuration.SHUTDOWN_TIMEOUT,
    ) -> None:
        self.name = name
        self.settings = settings
        self.http_port = http_port
        self.conf_dir = conf_dir
        self.logs_dir = logs_dir
        self.es_bin = es_bin
        self.startup_timeout = startup_timeout
        self.shutdown_timeout = shutdown_timeout

        self._proc: subprocess.Popen | None = None
        self._closed = False
        self._client = engine_client.EngineClient(f"http://127.0.0.1:{http_port}")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, http_port={self.http_port})"

    def get_command(self) -> list[str]:
        return [str(self.es_bin), *(f"-E{k}={v}" for k, v in self.settings.items())]

    def start(self) -> None:
        """Start the node process and wait until it answers on its HTTP port."""
        if self._proc is not None:
            msg = f"Node '{self.name}' was already started."
            raise RuntimeError(msg)
        if not self.es_bin.exists():
            msg = f"Engine executable '{self.es_bin}' not found, set the 'ES_HOME' env variable."
            raise FileNotFoundError(msg)

        env = {**os.environ, "ES_PATH_CONF": str(self.conf_dir)}
        cmd = self.get_command()
        LOGGER.debug(f"Starting node '{self.name}' with `{' '.join(cmd)}`")

        with open(self.logs_dir / NODE_STDOUT_LOG, "ab") as logfile:
            self._proc = subprocess.Popen(  # noqa: S603
                cmd, stdout=logfile, stderr=subprocess.STDOUT, env=env
            )

        try:
            self._wait_ready()
        except BaseException:
            self.close()
            raise
        LOGGER.info(f"Node '{self.name}' started (PID {self._proc.pid}).")

    def _wait_ready(self) -> None:
        assert self._proc is not None
        end_time = time.monotonic() + self.startup_timeout
        while time.monotonic() < end_time:
            retcode = self._proc.poll()
            if retcode is not None:
                msg = (
                    f"Node '{self.name}' exited with code {retcode} during startup, "
                    f"see '{self.logs_dir / NODE_STDOUT_LOG}'."
                )
                raise RuntimeError(msg)

            try:
                if self._client.info().ok:
                    return
            except requests.exceptions.ConnectionError:
                pass
            time.sleep(1)

        msg = f"Node '{self.name}' didn't start within {self.startup_timeout} seconds."
        raise TimeoutError(msg)

    def close(self) -> None:
        """Stop the node process; does nothing if the node is already closed."""
        if self._closed:
            return
        self._closed = True

        if self._proc is None or self._proc.poll() is not None:
            return

        LOGGER.debug(f"Stopping node '{self.name}' (PID {self._proc.pid}).")
        self._proc.terminate()
        try:
            self._proc.wait(timeout=self.shutdown_timeout)
        except subprocess.TimeoutExpired:
            LOGGER.warning(f"Node '{self.name}' didn't stop in time, killing it.")
            self._proc.kill()
            self._proc.wait()

    def is_closed(self) -> bool:
        if self._closed:
            return True
        return self._proc is not None and self._proc.poll() is not None

    def client(self) -> engine_client.EngineClient:
        return self._client
