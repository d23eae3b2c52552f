"""Better BibTeX JSON-RPC client.

Talks to the running Zotero desktop app through the Better BibTeX endpoint
on localhost. Transport failures surface as ServiceUnreachable, answers that
don't parse as MalformedResponse. No retries: Zotero is either running or not,
and retry policy belongs to the caller.
"""

import logging
from typing import Any, List, Optional

import requests

from bibcite import config
from bibcite.errors import MalformedResponse, RpcError, ServiceUnreachable

log = logging.getLogger(__name__)

_HEADERS = {"Content-Type": "application/json"}


def _request(method: str, url: str, **kwargs) -> requests.Response:
    try:
        return requests.request(method, url, timeout=config.HTTP_TIMEOUT, **kwargs)
    except requests.exceptions.RequestException as exc:
        raise ServiceUnreachable(
            f"Unable to connect to Zotero at {config.base_url()} ({type(exc).__name__})"
        ) from exc


def _json(resp: requests.Response, what: str) -> Any:
    try:
        return resp.json()
    except ValueError as exc:
        raise MalformedResponse(f"{what}: response is not valid JSON") from exc


def call(method: str, params: Optional[List[Any]] = None) -> Any:
    """Invoke a JSON-RPC method and return its ``result`` member."""
    payload = {"jsonrpc": "2.0", "method": method, "params": params or []}
    log.debug("RPC %s %s", method, payload["params"])
    resp = _request("POST", config.rpc_url(), json=payload, headers=_HEADERS)

    if not resp.ok:
        raise MalformedResponse(f"{method}: HTTP {resp.status_code}")

    body = _json(resp, method)
    if not isinstance(body, dict):
        raise MalformedResponse(f"{method}: expected a JSON object, got {type(body).__name__}")

    error = body.get("error")
    if error:
        if isinstance(error, dict):
            raise RpcError(method, error.get("code"), error.get("message", ""))
        raise RpcError(method, message=str(error))

    if "result" not in body:
        raise MalformedResponse(f"{method}: response has no result")
    return body["result"]


def get(path: str) -> requests.Response:
    """GET a path on the Better BibTeX server (e.g. a collection export)."""
    log.debug("GET %s", path)
    return _request("GET", config.base_url() + path, headers=_HEADERS)

