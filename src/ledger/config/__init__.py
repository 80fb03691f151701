"""
Configuration loading for the party ledger pipeline.
"""

from .config_loader import DEFAULT_CONFIG, LedgerConfig

__all__ = ["DEFAULT_CONFIG", "LedgerConfig"]
