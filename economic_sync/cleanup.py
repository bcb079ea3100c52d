"""
Duplicate cleanup.

Collapses rows that share a natural key (left behind by earlier key
revisions, e.g. draft numbers colliding with booked numbers) down to the
most recently updated row. Running it again without an intervening sync
removes nothing.
"""
from __future__ import annotations
from collections import defaultdict
from datetime import datetime, timezone
from typing import Iterable, Optional
from loguru import logger

from .stores import EntityStore, SyncLogStore


def _recency(row: dict):
    # Ties on updated_at go to the highest id
    return (row["updated_at"], row["id"])


def stale_row_ids(rows: Iterable[dict], key_fields: Iterable[str]) -> list:
    """
    Ids of every row except the newest in each group sharing ``key_fields``.

    Groups with a single row contribute nothing.
    """
    key_fields = tuple(key_fields)
    groups: dict[tuple, list[dict]] = defaultdict(list)
    for row in rows:
        groups[tuple(row.get(k) for k in key_fields)].append(row)

    stale = []
    for group in groups.values():
        if len(group) < 2:
            continue
        keep = max(group, key=_recency)
        stale.extend(row["id"] for row in group if row["id"] != keep["id"])
    return stale


def cleanup_duplicates(
    stores: dict[str, EntityStore],
    agreement_numbers: Iterable[int],
    sync_log: Optional[SyncLogStore] = None,
) -> dict:
    """
    Remove duplicate rows from every store for every agreement.

    Returns:
        Dict with removed_count and per_table counts
    """
    started_at = datetime.now(timezone.utc)
    agreement_numbers = list(agreement_numbers)
    per_table: dict[str, int] = {}
    removed_count = 0

    try:
        for name, store in stores.items():
            key_fields = store.dedupe_keys or store.key_columns
            table_removed = 0
            for agreement_number in agreement_numbers:
                ids = stale_row_ids(store.find_duplicate_rows(agreement_number), key_fields)
                if not ids:
                    continue
                deleted = store.delete_ids(ids)
                logger.info(f"Removed {deleted} duplicate {name} rows for agreement {agreement_number}")
                table_removed += deleted
            per_table[name] = table_removed
            removed_count += table_removed
    except Exception as e:
        logger.error(f"Duplicate cleanup failed after removing {removed_count} rows: {e}")
        if sync_log is not None:
            sync_log.record(
                "duplicates",
                operation="cleanup",
                status="error",
                record_count=removed_count,
                error_message=str(e),
                started_at=started_at,
            )
        raise

    logger.info(f"Duplicate cleanup removed {removed_count} rows")
    if sync_log is not None:
        sync_log.record(
            "duplicates",
            operation="cleanup",
            status="success",
            record_count=removed_count,
            started_at=started_at,
        )
    return {"removed_count": removed_count, "per_table": per_table}
