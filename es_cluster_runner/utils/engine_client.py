"""Client for the REST API of a single engine node.

The client doesn't interpret responses. Every call returns `EngineResponse`, including HTTP error
statuses like "404 Not Found" on delete of a missing document, so the callers can decide what is
a failure. Only transport errors (connection refused, read timeout) are raised.
"""

import dataclasses
import json
import logging
import typing as tp

import requests

from es_cluster_runner.utils import configuration
from es_cluster_runner.utils import helpers
from es_cluster_runner.utils import http_client

LOGGER = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}
# First engine major version with typeless document and search endpoints
TYPELESS_MAJOR_VERSION = 7


@dataclasses.dataclass(frozen=True)
class EngineResponse:
    status_code: int
    body: dict = dataclasses.field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def acknowledged(self) -> bool:
        return bool(self.body.get("acknowledged"))

    @property
    def created(self) -> bool:
        if "created" in self.body:
            return bool(self.body["created"])
        return self.body.get("result") == "created"

    @property
    def found(self) -> bool:
        if "found" in self.body:
            return bool(self.body["found"])
        return self.body.get("result") == "deleted"

    @property
    def exists(self) -> bool:
        return self.ok

    @property
    def shard_failures(self) -> list[dict]:
        shards = self.body.get("_shards") or {}
        return list(shards.get("failures") or [])

    @property
    def timed_out(self) -> bool:
        return bool(self.body.get("timed_out"))

    @property
    def status(self) -> str:
        return str(self.body.get("status") or "")

    def pretty(self) -> str:
        return helpers.pretty_json(self.body)


def _join_names(names: tp.Iterable[str]) -> str:
    return ",".join(names)


class EngineClient:
    """REST client bound to the HTTP port of one node."""

    def __init__(
        self,
        base_url: str,
        *,
        session: requests.Session | None = None,
        timeout: float = configuration.HTTP_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._session = session
        self.timeout = timeout
        self._uses_types: bool | None = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.base_url!r})"

    @property
    def session(self) -> requests.Session:
        return self._session or http_client.get_session()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        body: tp.Any = None,
    ) -> EngineResponse:
        url = f"{self.base_url}/{path.lstrip('/')}"
        data = None
        if body is not None:
            data = body if isinstance(body, str | bytes) else json.dumps(body)

        LOGGER.debug(f"{method} {url} {params or ''}")
        response = self.session.request(
            method,
            url,
            params=params,
            data=data,
            headers=JSON_HEADERS if data is not None else None,
            timeout=self.timeout,
        )

        decoded: dict = {}
        if method != "HEAD" and response.content:
            try:
                loaded = response.json()
            except ValueError:
                loaded = {"error": response.text}
            decoded = loaded if isinstance(loaded, dict) else {"items": loaded}

        return EngineResponse(status_code=response.status_code, body=decoded)

    def info(self) -> EngineResponse:
        return self._request("GET", "/")

    def uses_types(self) -> bool:
        """Check whether the engine still has mapping types in document and search URLs.

        The engine version is queried once; the type given by callers is ignored by newer engines.
        """
        if self._uses_types is not None:
            return self._uses_types

        response = self.info()
        version = str((response.body.get("version") or {}).get("number") or "")
        major = version.split(".", maxsplit=1)[0]
        uses_types = major.isdigit() and int(major) < TYPELESS_MAJOR_VERSION
        if response.ok:
            LOGGER.debug(f"Engine version {version}, mapping types in URLs: {uses_types}")
            self._uses_types = uses_types
        return uses_types

    def _doc_path(self, index: str, doc_type: str, doc_id: str) -> str:
        if doc_type and self.uses_types():
            return f"/{index}/{doc_type}/{doc_id}"
        return f"/{index}/_doc/{doc_id}"

    def cluster_health(
        self,
        indices: tp.Iterable[str] = (),
        *,
        wait_for_status: str = "",
        wait_for_no_relocating_shards: bool = False,
        wait_for_events: str = "",
        timeout: str = "",
    ) -> EngineResponse:
        """Query cluster health, blocking on the engine side until the conditions are met."""
        path = "/_cluster/health"
        indices_str = _join_names(indices)
        if indices_str:
            path = f"{path}/{indices_str}"

        params: dict[str, str] = {}
        if wait_for_status:
            params["wait_for_status"] = wait_for_status
        if wait_for_no_relocating_shards:
            params["wait_for_no_relocating_shards"] = "true"
        if wait_for_events:
            params["wait_for_events"] = wait_for_events
        if timeout:
            params["timeout"] = timeout

        return self._request("GET", path, params=params)

    def cluster_state(self) -> EngineResponse:
        return self._request("GET", "/_cluster/state")

    def pending_tasks(self) -> EngineResponse:
        return self._request("GET", "/_cluster/pending_tasks")

    def create_index(self, index: str, *, settings: dict | None = None) -> EngineResponse:
        body = {"settings": settings} if settings else None
        return self._request("PUT", f"/{index}", body=body)

    def index_exists(self, index: str) -> EngineResponse:
        return self._request("HEAD", f"/{index}")

    def index_doc(
        self,
        index: str,
        doc_type: str,
        doc_id: str,
        source: str | dict,
        *,
        refresh: bool = True,
    ) -> EngineResponse:
        params = {"refresh": "true"} if refresh else None
        return self._request(
            "PUT", self._doc_path(index, doc_type, doc_id), params=params, body=source
        )

    def delete_doc(
        self, index: str, doc_type: str, doc_id: str, *, refresh: bool = True
    ) -> EngineResponse:
        params = {"refresh": "true"} if refresh else None
        return self._request("DELETE", self._doc_path(index, doc_type, doc_id), params=params)

    def search(
        self,
        index: str,
        *,
        doc_type: str = "",
        query: dict | None = None,
        sort: list | None = None,
        from_: int = 0,
        size: int = 10,
    ) -> EngineResponse:
        path = f"/{index}/_search"
        if doc_type and self.uses_types():
            path = f"/{index}/{doc_type}/_search"
        body = {
            "query": query or {"match_all": {}},
            "sort": sort or ["_score"],
            "from": from_,
            "size": size,
        }
        return self._request("POST", path, body=body)

    def _indices_path(self, indices: tp.Iterable[str], endpoint: str) -> str:
        indices_str = _join_names(indices)
        return f"/{indices_str}/{endpoint}" if indices_str else f"/{endpoint}"

    def flush(self, indices: tp.Iterable[str] = ()) -> EngineResponse:
        return self._request("POST", self._indices_path(indices, "_flush"))

    def refresh(self, indices: tp.Iterable[str] = ()) -> EngineResponse:
        return self._request("POST", self._indices_path(indices, "_refresh"))

    def optimize(
        self, indices: tp.Iterable[str] = (), *, max_num_segments: int | None = None
    ) -> EngineResponse:
        """Merge index segments (the "optimize" API is called "force merge" in newer engines)."""
        params = {"max_num_segments": str(max_num_segments)} if max_num_segments else None
        return self._request("POST", self._indices_path(indices, "_forcemerge"), params=params)
