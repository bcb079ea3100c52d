"""
Generic sync engine.

Runs one entity family for one agreement:
fetch -> transform -> validate -> batch upsert -> children -> sync log.
Failures record an error log carrying the rows already committed and are
re-raised; failures inside a child collection are logged and contained.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union
from loguru import logger

from .client import EconomicClient
from .families import EntityFamily, get_family
from .stores import EntityStore, SyncLogStore


@dataclass
class SyncProgress:
    """Running totals for one sync pass, children included."""

    record_count: int = 0
    inserted: int = 0
    updated: int = 0
    child_errors: list[dict] = field(default_factory=list)

    def add(self, rows: int):
        self.record_count += rows


def agreement_summary(agreement: dict) -> dict:
    return {
        "id": agreement.get("id"),
        "name": agreement.get("name"),
        "agreement_number": agreement.get("agreement_number"),
    }


class SyncEngine:
    """
    Table-driven sync over ``EntityFamily`` records.

    The engine never builds API clients itself: every call receives the
    client bound to the agreement being synced.
    """

    def __init__(self, stores: dict[str, EntityStore], sync_log: SyncLogStore, registry):
        self.stores = stores
        self.sync_log = sync_log
        self.registry = registry

    def sync_family(
        self,
        agreement: dict,
        family: Union[str, EntityFamily],
        client: EconomicClient,
        context: Optional[dict] = None,
    ) -> dict:
        """
        Sync one family (and its children) for one agreement.

        Args:
            agreement: Stored agreement row
            family: Family name or record
            client: Client bound to this agreement's grant token
            context: Extra context for families synced on their own
                (e.g. ``year`` and ``period_number`` for period totals)

        Returns:
            Dict with record_count, inserted, updated and child_errors
        """
        family = get_family(family)
        started_at = datetime.now(timezone.utc)
        progress = SyncProgress()
        agreement_number = agreement.get("agreement_number")
        entity = family.describe(context or {})

        try:
            agreement = self.registry.resolve_identity(agreement, client)
            agreement_number = agreement["agreement_number"]
            logger.info(f"Syncing {entity} for agreement {agreement_number} ({agreement.get('name')})")

            sync_context = {**(context or {}), "agreement_number": agreement_number}
            self._sync_collection(client, family, sync_context, progress, started_at)
        except Exception as e:
            logger.error(
                f"Failed to sync {entity} for agreement {agreement_number} "
                f"after {progress.record_count} records: {e}"
            )
            self.sync_log.record(
                entity,
                status="error",
                record_count=progress.record_count,
                error_message=str(e),
                started_at=started_at,
                agreement_number=agreement_number,
            )
            raise

        self.sync_log.record(
            entity,
            status="success",
            record_count=progress.record_count,
            started_at=started_at,
            agreement_number=agreement_number,
        )
        logger.info(
            f"Synced {progress.record_count} {entity} records for agreement {agreement_number} "
            f"({progress.inserted} inserted, {progress.updated} updated, "
            f"{len(progress.child_errors)} child errors)"
        )
        return {
            "agreement": agreement_summary(agreement),
            "status": "success",
            "record_count": progress.record_count,
            "inserted": progress.inserted,
            "updated": progress.updated,
            "child_errors": progress.child_errors,
        }

    def sync_children_for(
        self,
        agreement: dict,
        family_name: str,
        context: dict,
        client: EconomicClient,
    ) -> dict:
        """Sync a single child collection, e.g. the totals of one period."""
        return self.sync_family(agreement, family_name, client, context)

    def _sync_collection(
        self,
        client: EconomicClient,
        family: EntityFamily,
        context: dict,
        progress: SyncProgress,
        started_at: datetime,
    ):
        store = self.stores[family.store]
        for source in family.sources:
            source_context = {**context, **source.context}
            path = source.path(source_context)

            records = client.fetch_all_pages(path)
            logger.debug(f"Fetched {len(records)} {family.name} records from {path}")

            rows = [family.transform(record, source_context) for record in records]
            counts = store.batch_upsert(rows, on_chunk=progress.add)
            progress.inserted += counts["inserted"]
            progress.updated += counts["updated"]

            if not family.children:
                continue
            for row in rows:
                child_context = {**source_context, **family.child_context(row)}
                for child in family.children:
                    self._sync_child(client, child, child_context, progress, started_at)

    def _sync_child(
        self,
        client: EconomicClient,
        child: EntityFamily,
        context: dict,
        progress: SyncProgress,
        started_at: datetime,
    ):
        before = progress.record_count
        try:
            self._sync_collection(client, child, context, progress, started_at)
        except Exception as e:
            entity = child.describe(context)
            logger.error(f"Error syncing {entity} for agreement {context.get('agreement_number')}: {e}")
            progress.child_errors.append({"entity": entity, "error": str(e)})
            self.sync_log.record(
                entity,
                status="error",
                record_count=progress.record_count - before,
                error_message=str(e),
                started_at=started_at,
                agreement_number=context.get("agreement_number"),
            )
