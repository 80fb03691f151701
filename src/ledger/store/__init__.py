"""
Remote store implementations.

To select a backend, pass it to create_remote_store() or set the
LEDGER_STORE_BACKEND environment variable:
    - LEDGER_STORE_BACKEND=sqlite (default)
    - LEDGER_STORE_BACKEND=http
    - LEDGER_STORE_BACKEND=memory
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from ..core.exceptions import LedgerConfigError
from ..core.remote_store import RemoteStore
from .memory_store import InMemoryRemoteStore
from .sqlite_store import SqliteRemoteStore


logger = logging.getLogger(__name__)

DEFAULT_SQLITE_PATH = Path("local/ledger/ledger.db")


def create_remote_store(
    backend: Optional[str] = None,
    # SQLite options
    db_path: Optional[Union[str, Path]] = None,
    # HTTP options
    base_url: Optional[str] = None,
    timeout: float = 30.0,
    max_retries: int = 3,
    api_token: Optional[str] = None,
    auto_init: bool = True,
) -> RemoteStore:
    """
    Factory function to create the appropriate remote store.

    Args:
        backend: 'sqlite', 'http' or 'memory'. Defaults to LEDGER_STORE_BACKEND
            env var or 'sqlite'.

        SQLite options:
            db_path: Path to SQLite database file

        HTTP options:
            base_url: Backend root URL (or LEDGER_HTTP_BASE_URL)
            timeout: Request timeout in seconds
            max_retries: Attempts for retryable requests
            api_token: Bearer token (or LEDGER_HTTP_TOKEN)

    Returns:
        RemoteStore instance

    Raises:
        LedgerConfigError: If the backend is unknown or misconfigured
    """
    if backend is None:
        backend = os.environ.get("LEDGER_STORE_BACKEND", "sqlite")
    backend = backend.lower()

    if backend == "sqlite":
        if db_path is None:
            db_path = os.environ.get("LEDGER_SQLITE_PATH") or DEFAULT_SQLITE_PATH
        logger.debug(f"Using SQLite store at {db_path}")
        return SqliteRemoteStore(db_path=db_path, auto_init=auto_init)

    elif backend == "http":
        from .http_store import HttpRemoteStore

        base_url = base_url or os.environ.get("LEDGER_HTTP_BASE_URL")
        if not base_url:
            raise LedgerConfigError(
                "HTTP backend requires base_url (or LEDGER_HTTP_BASE_URL)"
            )
        return HttpRemoteStore(
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            api_token=api_token or os.environ.get("LEDGER_HTTP_TOKEN"),
        )

    elif backend == "memory":
        return InMemoryRemoteStore()

    else:
        raise LedgerConfigError(
            f"Unknown backend: {backend}. "
            "Supported backends: 'sqlite' (default), 'http', 'memory'"
        )


__all__ = ["InMemoryRemoteStore", "SqliteRemoteStore", "create_remote_store"]
