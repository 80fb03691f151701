"""
Configuration loader for the party ledger pipeline.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..core.exceptions import LedgerConfigError
from ..core.remote_store import RemoteStore
from ..csv_io.parser import CsvParserOptions
from ..runner.batch_coordinator import BatchImportConfig
from ..transfer.merge import ImportMode


logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
STORE_BACKENDS = ("sqlite", "http", "memory")

DEFAULT_CONFIG: Dict[str, Any] = {
    "store": {
        "backend": "sqlite",
        "sqlite": {
            "path": "local/ledger/ledger.db",
        },
        "http": {
            "base_url": None,
            "timeout": 30.0,
            "max_retries": 3,
        },
    },
    "import": {
        "batch_size": 10,
        "max_concurrency": None,  # None = batch_size
        "inter_batch_delay_seconds": 0.1,
    },
    "csv": {
        "max_name_length": None,
        "max_address_length": None,
    },
    "transfer": {
        "default_mode": "merge",
        "export_filename": "party-ledger-export.json",
        "indent": 2,
    },
    "logging": {
        "level": "INFO",
        "structured": False,
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class LedgerConfig:
    """
    Configuration for the party ledger pipeline.

    Loads and validates YAML configuration files. Values missing from the
    file fall back to DEFAULT_CONFIG.
    """

    def __init__(self, config_path: Optional[Path] = None, validate: bool = True):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML config file (optional)
            validate: Validate immediately; pass False when the caller applies
                further overrides and calls validate() itself
        """
        self.config_path = Path(config_path) if config_path else None
        self.config = self._load_config() if self.config_path else self._default_config()
        self._apply_env_overrides()
        if validate:
            self.validate()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise LedgerConfigError(f"Config file not found: {self.config_path}")

        logger.info(f"Loading config from: {self.config_path}")

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise LedgerConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise LedgerConfigError(f"Config root must be a mapping: {self.config_path}")

        return _deep_merge(self._default_config(), loaded)

    def _default_config(self) -> Dict[str, Any]:
        """Return default configuration."""
        return copy.deepcopy(DEFAULT_CONFIG)

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to loaded config."""
        store = self.config.setdefault("store", {})

        backend = os.environ.get("LEDGER_STORE_BACKEND")
        if backend:
            store["backend"] = backend.lower()

        sqlite_path = os.environ.get("LEDGER_SQLITE_PATH")
        if sqlite_path:
            store.setdefault("sqlite", {})["path"] = sqlite_path

        base_url = os.environ.get("LEDGER_HTTP_BASE_URL")
        if base_url:
            store.setdefault("http", {})["base_url"] = base_url

        batch_size = os.environ.get("LEDGER_BATCH_SIZE")
        if batch_size:
            try:
                self.config.setdefault("import", {})["batch_size"] = int(batch_size)
            except ValueError:
                raise LedgerConfigError(
                    f"LEDGER_BATCH_SIZE must be an integer, got {batch_size!r}"
                )

        log_level = os.environ.get("LEDGER_LOG_LEVEL")
        if log_level:
            self.config.setdefault("logging", {})["level"] = log_level.upper()

    def validate(self) -> None:
        """
        Check configuration values.

        Raises:
            LedgerConfigError: If any value is out of range
        """
        backend = self.get("store.backend")
        if backend not in STORE_BACKENDS:
            raise LedgerConfigError(
                f"store.backend must be one of {', '.join(STORE_BACKENDS)}, got {backend!r}"
            )
        if backend == "http" and not self.get("store.http.base_url"):
            raise LedgerConfigError("store.http.base_url is required for the http backend")

        batch_size = self.get("import.batch_size")
        if not isinstance(batch_size, int) or batch_size < 1:
            raise LedgerConfigError(f"import.batch_size must be a positive integer, got {batch_size!r}")

        max_concurrency = self.get("import.max_concurrency")
        if max_concurrency is not None and (not isinstance(max_concurrency, int) or max_concurrency < 1):
            raise LedgerConfigError(
                f"import.max_concurrency must be a positive integer, got {max_concurrency!r}"
            )

        delay = self.get("import.inter_batch_delay_seconds", 0.0)
        if not isinstance(delay, (int, float)) or delay < 0:
            raise LedgerConfigError(
                f"import.inter_batch_delay_seconds must be non-negative, got {delay!r}"
            )

        for key in ("csv.max_name_length", "csv.max_address_length"):
            limit = self.get(key)
            if limit is not None and (not isinstance(limit, int) or limit < 1):
                raise LedgerConfigError(f"{key} must be a positive integer, got {limit!r}")

        mode = self.get("transfer.default_mode")
        if mode not in {m.value for m in ImportMode}:
            raise LedgerConfigError(f"transfer.default_mode must be merge or overwrite, got {mode!r}")

        level = self.get("logging.level")
        if str(level).upper() not in LOG_LEVELS:
            raise LedgerConfigError(f"logging.level must be one of {', '.join(LOG_LEVELS)}, got {level!r}")

    def get_store_config(self) -> Dict[str, Any]:
        """Get remote store configuration."""
        return self.config.get("store", {})

    def get_import_config(self) -> Dict[str, Any]:
        """Get batch import configuration."""
        return self.config.get("import", {})

    def get_csv_config(self) -> Dict[str, Any]:
        """Get CSV validation configuration."""
        return self.config.get("csv", {})

    def get_transfer_config(self) -> Dict[str, Any]:
        """Get export/import configuration."""
        return self.config.get("transfer", {})

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self.config.get("logging", {})

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key."""
        keys = key.split(".")
        value = self.config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default

    def batch_import_config(self) -> BatchImportConfig:
        """Build the batch coordinator settings."""
        section = self.get_import_config()
        return BatchImportConfig(
            batch_size=section.get("batch_size", 10),
            max_concurrency=section.get("max_concurrency"),
            inter_batch_delay_seconds=float(section.get("inter_batch_delay_seconds", 0.1)),
        )

    def csv_parser_options(self) -> CsvParserOptions:
        """Build the CSV parser validation limits."""
        section = self.get_csv_config()
        return CsvParserOptions(
            max_name_length=section.get("max_name_length"),
            max_address_length=section.get("max_address_length"),
        )

    def log_level(self) -> int:
        """Logging level as a logging module constant."""
        return getattr(logging, str(self.get("logging.level", "INFO")).upper())

    def create_store(self) -> RemoteStore:
        """Create the configured remote store."""
        from ..store import create_remote_store

        store = self.get_store_config()
        http = store.get("http", {})
        return create_remote_store(
            backend=store.get("backend"),
            db_path=store.get("sqlite", {}).get("path"),
            base_url=http.get("base_url"),
            timeout=http.get("timeout", 30.0),
            max_retries=http.get("max_retries", 3),
            api_token=http.get("api_token"),
        )
