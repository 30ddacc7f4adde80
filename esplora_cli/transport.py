"""HTTP transport used by :class:`esplora_cli.client.EsploraClient`.

The client only depends on the :class:`Transport` protocol; the default
implementation is backed by ``requests``. Connection failures surface as
:class:`TransportError` and are never retried here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Protocol

import requests
from requests import RequestException

from .errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
USER_AGENT = "esplora-cli/0.1.0"


@dataclass(frozen=True)
class HTTPResponse:
    status: int
    body: bytes
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class Transport(Protocol):
    def send(self, method: str, url: str, body: Optional[bytes] = None) -> HTTPResponse:
        ...


class RequestsTransport:
    """Transport built on ``requests``.

    Without an explicit *session* every call goes through ``requests.request``
    and owns its connection, so one instance can be shared across threads.
    Passing a ``requests.Session`` enables connection reuse for callers that
    manage their own threading.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.timeout = timeout
        self._session = session

    def send(self, method: str, url: str, body: Optional[bytes] = None) -> HTTPResponse:
        headers = {"User-Agent": USER_AGENT}
        if body is not None:
            headers["Content-Type"] = "text/plain"
        requester = self._session.request if self._session is not None else requests.request
        try:
            response = requester(method, url, data=body, headers=headers, timeout=self.timeout)
        except RequestException as exc:
            logger.error(
                "Esplora request %s %s failed: %s",
                method,
                url,
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise TransportError(
                f"Could not reach {url}: {exc}. Check the --network URL and your connection.",
                url=url,
            ) from exc
        return HTTPResponse(
            status=response.status_code,
            body=response.content,
            headers=dict(response.headers),
        )
