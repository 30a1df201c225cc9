"""
commlog - Import and reconcile exported phone communication logs.

This package provides functionality to:
- Import multi-line SMS, call, instant-message and calendar exports
- Resolve and deduplicate contacts by phone number
- Repair sender/receiver attribution after import
- Browse, search and correct the resulting store
"""

__version__ = "0.1.0"

from commlog.config import get_config, Config
from commlog.database import StoreConnection

__all__ = [
    "get_config",
    "Config",
    "StoreConnection",
]
