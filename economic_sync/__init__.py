"""
e-conomic Sync - Multi-agreement synchronization from e-conomic to PostgreSQL.

Pulls master data, the accounting hierarchy (years, periods, entries,
totals) and invoices for every registered agreement through the
e-conomic REST API and upserts them into PostgreSQL by natural key.

Key Features:
- One API client per agreement, bound to that agreement's grant token
- Table-driven sync engine with parent/child fan-out and failure isolation
- Idempotent natural-key upserts in chunked transactions
- Draft -> Booked invoice promotion with payment-status precedence
- Append-only sync log and duplicate cleanup

Usage:
    # Initialize the schema
    python -m economic_sync --init-db

    # Sync everything for every active agreement
    python -m economic_sync --all

    # Sync one family
    python -m economic_sync --family invoices

    # Sync one agreement
    python -m economic_sync --agreement 3
"""

__version__ = "1.0.0"

from .config import SyncConfig
from .errors import (
    EconomicSyncError,
    NotFoundError,
    RemoteApiError,
    TransportError,
    ValidationError,
)
from .sync import EconomicSync, run_sync

__all__ = [
    "SyncConfig",
    "EconomicSync",
    "run_sync",
    "EconomicSyncError",
    "NotFoundError",
    "RemoteApiError",
    "TransportError",
    "ValidationError",
    "__version__",
]
