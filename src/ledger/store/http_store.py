"""
HTTP remote store client.

Talks to a ledger backend over a small JSON API:

    POST /parties/id     {"name", "phone"}            -> {"id": "..."}
    POST /parties        {"id", "name", ..., "dueAmount"}
    GET  /parties                                     -> [[id, party], ...]
    GET  /export                                      -> snapshot JSON
    PUT  /import         snapshot JSON

Bodies use the same wire encoding as export files (integers as decimal
strings). Blocking requests calls run in worker threads so the batch
coordinator can keep several in flight; each thread gets its own
requests.Session, since a Session is not guaranteed to be thread-safe.
"""

import asyncio
import json
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from ..core.exceptions import (
    DuplicateNameError, RemoteNetworkError, RemoteStoreError, RemoteTimeoutError,
)
from ..core.models import ParsedPartyInput, PartyRecord, Snapshot
from ..core.remote_store import RemoteStore
from ..transfer.codec import decode_snapshot, encode_snapshot

logger = logging.getLogger(__name__)

# Only idempotent calls are retried; a retried POST could allocate twice
RETRYABLE_METHODS = frozenset({"GET", "PUT"})


class HttpRemoteStore(RemoteStore):
    """
    requests-based client for an HTTP ledger backend.

    Supports:
    - Bearer token authentication
    - Per-request timeout
    - Retries with exponential backoff for GET and PUT
    - Transport error translation (409, connection errors, timeouts)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
        api_token: Optional[str] = None,
        user_agent: Optional[str] = None,
        session: Optional[requests.Session] = None,
        session_factory: Optional[Callable[[], requests.Session]] = None,
    ):
        """
        Initialize the HTTP store.

        Args:
            base_url: Backend root URL
            timeout: Request timeout in seconds
            max_retries: Maximum attempts for retryable requests
            backoff_factor: Base delay for exponential backoff
            api_token: Optional bearer token
            user_agent: Custom User-Agent header
            session: Pre-built session shared by every thread (for testing)
            session_factory: Builds one session per worker thread
                (default: requests.Session)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.backoff_factor = backoff_factor
        self.headers = {
            "User-Agent": user_agent or "PartyLedger/0.1",
            "Accept": "application/json",
        }
        if api_token:
            self.headers["Authorization"] = f"Bearer {api_token}"

        self._shared_session = session
        if session is not None:
            session.headers.update(self.headers)
        self._session_factory = session_factory or requests.Session
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._sessions_lock = threading.Lock()

    def _session(self) -> requests.Session:
        """Session for the calling thread, created on first use."""
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            session.headers.update(self.headers)
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text or response.reason or f"HTTP {response.status_code}"
        if isinstance(payload, dict):
            return str(payload.get("error") or payload.get("message") or payload)
        return str(payload)

    def _request(self, method: str, path: str, body: Any = None) -> Any:
        """
        Execute one logical request, retrying where allowed.

        Returns:
            Decoded JSON body, or None for an empty response

        Raises:
            DuplicateNameError: On HTTP 409
            RemoteNetworkError: If the backend cannot be reached
            RemoteTimeoutError: If the backend does not answer in time
            RemoteStoreError: On any other non-2xx response
        """
        url = self._url(path)
        data = json.dumps(body) if body is not None else None
        headers = {"Content-Type": "application/json"} if data is not None else None
        attempts = self.max_retries if method in RETRYABLE_METHODS else 1

        last_error: Optional[RemoteStoreError] = None
        for attempt in range(attempts):
            try:
                response = self._session().request(
                    method, url, data=data, headers=headers, timeout=self.timeout
                )
            except requests.exceptions.Timeout as e:
                last_error = RemoteTimeoutError(f"{method} {path} timed out: {e}")
            except requests.exceptions.ConnectionError as e:
                last_error = RemoteNetworkError(f"Network error on {method} {path}: {e}")
            except requests.exceptions.RequestException as e:
                raise RemoteStoreError(f"{method} {path} failed: {e}") from e
            else:
                if response.status_code == 409:
                    raise DuplicateNameError(self._error_message(response), status_code=409)
                if response.status_code >= 500:
                    last_error = RemoteStoreError(
                        f"{method} {path} failed: {self._error_message(response)}",
                        status_code=response.status_code,
                    )
                elif response.status_code >= 400:
                    raise RemoteStoreError(
                        f"{method} {path} failed: {self._error_message(response)}",
                        status_code=response.status_code,
                    )
                else:
                    if not response.content:
                        return None
                    try:
                        return response.json()
                    except ValueError as e:
                        raise RemoteStoreError(
                            f"{method} {path} returned invalid JSON: {e}",
                            status_code=response.status_code,
                        ) from e

            if attempt < attempts - 1:
                logger.warning(
                    f"Request failed (attempt {attempt + 1}/{attempts}): {last_error}"
                )
                time.sleep(self.backoff_factor * (2 ** attempt))

        raise last_error

    async def _call(self, method: str, path: str, body: Any = None) -> Any:
        return await asyncio.to_thread(self._request, method, path, body)

    async def generate_id(self, name: str, phone: str) -> str:
        payload = await self._call("POST", "/parties/id", {"name": name, "phone": phone})
        if not isinstance(payload, dict) or not payload.get("id"):
            raise RemoteStoreError(f"Id allocation returned no id: {payload!r}")
        return str(payload["id"])

    async def create_party(self, party_id: str, fields: ParsedPartyInput) -> None:
        await self._call("POST", "/parties", {
            "id": party_id,
            "name": fields.name,
            "address": fields.address,
            "phone": fields.phone,
            "pan": fields.tax_id,
            "dueAmount": str(fields.due_amount),
        })

    async def get_all_parties(self) -> List[Tuple[str, PartyRecord]]:
        payload = await self._call("GET", "/parties")
        snapshot = decode_snapshot({"parties": payload or [], "partyVisitRecords": []})
        return list(snapshot.parties.items())

    async def export_snapshot(self) -> Snapshot:
        payload = await self._call("GET", "/export")
        return decode_snapshot(payload)

    async def apply_snapshot(self, snapshot: Snapshot) -> None:
        await self._call("PUT", "/import", encode_snapshot(snapshot))

    def get_name(self) -> str:
        """Return the store name."""
        return f"http:{self.base_url}"

    async def close(self) -> None:
        """Close every session opened by this store."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        self._local = threading.local()
        for session in sessions:
            session.close()
        if self._shared_session is not None:
            self._shared_session.close()
