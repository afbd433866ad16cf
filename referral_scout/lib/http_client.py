# referral_scout/lib/http_client.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import PermanentRemoteError, RemoteCallError, TransientRemoteError

LOG = logging.getLogger(__name__)


class HttpClient:
    """
    Shared HTTP session for JSON APIs.

    Connection-level hiccups are retried by urllib3; HTTP status retries are
    deliberately off because backoff.call_with_backoff owns that policy.
    Errors come out as RemoteCallError carrying status + decoded payload.
    """

    def __init__(
        self,
        timeout: float = 60.0,
        user_agent: str = "referral-scout/0.1",
    ):
        self.timeout = float(timeout)
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

        retry = Retry(
            total=2,
            connect=2,
            read=0,
            status=0,
            backoff_factor=0.5,
            allowed_methods=frozenset(["GET", "POST"]),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry, pool_connections=2, pool_maxsize=4)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def post_json(
        self,
        url: str,
        body: Any,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """POST a JSON body and return the decoded JSON response."""
        try:
            resp = self.session.post(url, json=body, params=params, headers=headers, timeout=timeout or self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientRemoteError(f"Network error calling {_strip_query(url)}: {e}") from e

        if resp.status_code >= 400:
            raise RemoteCallError(
                f"HTTP {resp.status_code} from {_strip_query(url)}",
                status=resp.status_code,
                payload=_decode_body(resp),
            )
        try:
            return resp.json()
        except ValueError as e:
            preview = resp.text[:200].replace("\n", " ")
            raise PermanentRemoteError(
                f"JSON decode failed for {_strip_query(url)}; body starts: {preview!r}",
                status=resp.status_code,
            ) from e

    def close(self) -> None:
        try:
            self.session.close()
        except Exception:
            LOG.debug("HttpClient.close() swallow", exc_info=True)


def _decode_body(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text[:2000]


def _strip_query(url: str) -> str:
    # API keys travel in the query string; keep them out of messages.
    return url.split("?", 1)[0]
