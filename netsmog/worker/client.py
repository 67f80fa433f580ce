"""HTTP client a worker uses to talk to the coordinator."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple
from urllib import error as urlerr
from urllib import request as urlreq

from netsmog.auth import codec
from netsmog.catalogue.model import Catalogue
from netsmog.errors import ProtocolError, TransportError

VERSION = "0.1"
USER_AGENT = f"NetSmog Worker version {VERSION}"

ResultBatch = Dict[str, Dict[str, List[Optional[float]]]]


class CoordinatorClient:
    """
    Fetch assignments from and submit results to the coordinator.

    Every request carries the ``Worker`` and ``Authorisation`` headers. The
    token is issued once and reused; bcrypt salts make it unique per process.
    """

    def __init__(
        self,
        url: str,
        worker: str,
        secret: str,
        *,
        timeout: float = 10.0,
        rounds: Optional[int] = None,
    ) -> None:
        """
        Initialize the coordinator client.

        Args:
            url: Worker endpoint of the coordinator (e.g., http://smog:8080/worker).
            worker: This worker's identity.
            secret: Shared secret registered for this worker on the coordinator.
            timeout: Socket timeout for each HTTP round trip, in seconds.
            rounds: bcrypt work factor for the token (default codec.DEFAULT_ROUNDS).
        """
        self.url = url
        self.worker = worker
        self.timeout = timeout
        self._secret = secret
        self._rounds = rounds
        self._token: Optional[str] = None

    @property
    def token(self) -> str:
        if self._token is None:
            self._token = codec.issue(self.worker, self._secret, rounds=self._rounds)
        return self._token

    def headers(self) -> Dict[str, str]:
        return {
            "User-Agent": USER_AGENT,
            "Content-Type": "application/json",
            "Worker": self.worker,
            "Authorisation": self.token,
        }

    def _req(self, method: str, body: Optional[Any] = None) -> Tuple[int, bytes]:
        """
        Make one HTTP request to the worker endpoint.

        Returns:
            (status, raw body) for a 2xx response.

        Raises:
            ProtocolError: The coordinator answered with a non-2xx status.
            TransportError: Connection failure or timeout.
        """
        data = json.dumps(body).encode("utf-8") if body is not None else None
        req = urlreq.Request(self.url, data, headers=self.headers(), method=method.upper())
        try:
            with urlreq.urlopen(req, timeout=self.timeout) as resp:
                return resp.status, resp.read()
        except urlerr.HTTPError as e:
            detail = e.read().decode("utf-8", errors="replace").strip()
            raise ProtocolError(f"coordinator HTTP {e.code}{': ' + detail if detail else ''}") from None
        except (urlerr.URLError, OSError) as e:
            raise TransportError(f"coordinator unreachable: {e}") from e

    def fetch_assignment(self) -> Catalogue:
        """GET this worker's share of the catalogue."""
        _status, raw = self._req("GET")
        try:
            doc = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ProtocolError(f"assignment is not valid JSON: {exc}") from exc
        return Catalogue.from_dict(doc)

    def submit(self, batch: ResultBatch) -> None:
        """POST one result batch; raises on any non-2xx answer."""
        self._req("POST", body=batch)
