"""
Main sync orchestration for the e-conomic sync bridge.

Provides:
- Family sync: one entity family across every active agreement
- Agreement sync: every family for one agreement
- Full sync: every family for every agreement, references first
- On-demand sync of a single period or year collection
- Duplicate cleanup
"""
from __future__ import annotations
import json
import sys
from datetime import datetime, timezone
from typing import Callable, Optional, Union
import psycopg
from loguru import logger
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from . import endpoints
from .agreements import AgreementRegistry
from .cleanup import cleanup_duplicates
from .client import AgreementClientFactory, EconomicClient
from .config import SyncConfig
from .engine import SyncEngine, agreement_summary
from .errors import EconomicSyncError, TransportError, ValidationError
from .families import FAMILIES, REQUIRED_CONTEXT, SYNC_ORDER, EntityFamily, get_family
from .readers import AccountingReader, InvoiceReader, recent_sync_logs
from .stores import AgreementStore, Database, SyncLogStore, build_stores


def overall_status(results: list[dict]) -> str:
    errors = sum(1 for r in results if r.get("status") == "error")
    if not errors:
        return "success"
    return "error" if errors == len(results) else "partial"


def log_status(status: str) -> str:
    """Sync log entries are success or error; any failed agreement or family is an error."""
    return "success" if status == "success" else "error"


class EconomicSync:
    """
    Main synchronization orchestrator.

    Agreements are processed one after another; a failing agreement is
    recorded in the results and never stops the others.

    Usage:
        with EconomicSync() as sync:
            # One family for every agreement
            sync.sync_all("invoices")

            # Everything for one agreement
            sync.sync_agreement(3)

            # Everything, references first
            sync.sync_everything()
    """

    def __init__(
        self,
        config: Optional[SyncConfig] = None,
        db: Optional[Database] = None,
        client_factory: Optional[Callable[[str], EconomicClient]] = None,
    ):
        self.config = config or SyncConfig.from_env()
        self.db = db or Database(self.config)
        self.client_factory = client_factory or AgreementClientFactory(self.config)
        self.stores = build_stores(self.db)
        self.sync_log = SyncLogStore(self.db)
        self.agreement_store = AgreementStore(self.db)
        self.registry = AgreementRegistry(self.agreement_store, self.client_factory)
        self.engine = SyncEngine(self.stores, self.sync_log, self.registry)
        self.invoices = InvoiceReader(self.stores["invoices"])
        self.accounting = AccountingReader.from_stores(
            self.stores,
            cache_ttl=self.config.cache_ttl,
            lazy_sync=self._sync_totals_on_demand,
        )

    def initialize_schema(self):
        """Create database schema and tables if they don't exist."""
        self.db.initialize_schema()

    def test_agreement(self, agreement_id: int) -> dict:
        """Test the stored grant token of one agreement."""
        agreement = self.registry.get_agreement(agreement_id)
        return self.registry.test_connection(agreement["agreement_grant_token"])

    def _run(self, agreement: dict, family: EntityFamily, context: Optional[dict] = None) -> dict:
        client = self.client_factory(agreement["agreement_grant_token"])
        try:
            return self.engine.sync_family(agreement, family, client, context)
        finally:
            client.close()

    def _run_with_retry(self, agreement: dict, family: EntityFamily, context: Optional[dict] = None) -> dict:
        """Run one agreement pass, retrying transport failures when configured."""
        attempts = self.config.retry_attempts
        if attempts <= 1:
            return self._run(agreement, family, context)

        retrying = Retrying(
            wait=wait_exponential(multiplier=self.config.retry_delay, min=self.config.retry_delay, max=30),
            stop=stop_after_attempt(attempts),
            retry=retry_if_exception_type(TransportError),
            before_sleep=lambda retry_state: logger.warning(
                f"Retrying {family.name} for agreement {agreement.get('agreement_number')} "
                f"(attempt {retry_state.attempt_number})..."
            ),
            reraise=True,
        )
        return retrying(self._run, agreement, family, context)

    @staticmethod
    def _error_result(agreement: dict, error: Exception) -> dict:
        return {
            "agreement": agreement_summary(agreement),
            "status": "error",
            "record_count": 0,
            "error": str(error),
            "error_kind": getattr(error, "kind", "internal"),
        }

    def sync_all(self, family: Union[str, EntityFamily]) -> dict:
        """
        Sync one entity family for every active agreement.

        Returns:
            Dict with status, results (one per agreement) and total_count
        """
        family = get_family(family)
        started_at = datetime.now(timezone.utc)
        agreements = self.registry.list_agreements(active_only=True)

        if not agreements:
            logger.warning(f"No active agreements found, skipping {family.name} sync")
            return {
                "status": "warning",
                "message": "No active agreements found",
                "results": [],
                "total_count": 0,
            }

        logger.info(f"=== Syncing {family.name} for {len(agreements)} agreement(s) ===")
        results = []
        total_count = 0
        for agreement in agreements:
            try:
                result = self._run_with_retry(agreement, family)
            except Exception as e:
                logger.error(f"Error syncing {family.name} for agreement {agreement.get('id')}: {e}")
                result = self._error_result(agreement, e)
            results.append(result)
            total_count += result["record_count"]

        status = overall_status(results)
        errors = [r["error"] for r in results if r["status"] == "error"]
        self.sync_log.record(
            f"{family.name}_all",
            status=log_status(status),
            record_count=total_count,
            error_message="; ".join(errors) or None,
            started_at=started_at,
        )
        logger.info(f"=== {family.name} sync complete: {total_count} records, status {status} ===")
        return {"status": status, "results": results, "total_count": total_count}

    def sync_agreement(self, agreement_id: int, families: Optional[list[str]] = None) -> dict:
        """
        Sync the given families (default: all, references first) for one agreement.

        Raises:
            NotFoundError: If the agreement does not exist
        """
        agreement = self.registry.get_agreement(agreement_id)
        names = families or list(SYNC_ORDER)
        selected = [get_family(name) for name in names]
        started_at = datetime.now(timezone.utc)

        results = {}
        total_count = 0
        for family in selected:
            try:
                result = self._run_with_retry(agreement, family)
            except Exception as e:
                logger.error(f"Error syncing {family.name} for agreement {agreement_id}: {e}")
                result = self._error_result(agreement, e)
            results[family.name] = result
            total_count += result["record_count"]

        status = overall_status(list(results.values()))
        errors = [f"{name}: {r['error']}" for name, r in results.items() if r["status"] == "error"]
        self.sync_log.record(
            "agreement",
            status=log_status(status),
            record_count=total_count,
            error_message="; ".join(errors) or None,
            started_at=started_at,
            agreement_number=agreement.get("agreement_number"),
        )
        self.accounting.invalidate()
        return {
            "status": status,
            "agreement": agreement_summary(agreement),
            "results": results,
            "total_count": total_count,
        }

    def sync_everything(self, families: Optional[list[str]] = None) -> dict:
        """
        Run ``sync_all`` for every family in dependency order.

        A family that fails outright is recorded and the next one runs.
        """
        names = families or list(SYNC_ORDER)
        for name in names:
            get_family(name)
        started_at = datetime.now(timezone.utc)

        results = {}
        total_count = 0
        for name in names:
            try:
                summary = self.sync_all(name)
            except Exception as e:
                logger.error(f"Error syncing {name}: {e}")
                summary = {"status": "error", "error": str(e), "results": [], "total_count": 0}
            results[name] = summary
            total_count += summary["total_count"]

        statuses = {r["status"] for r in results.values()}
        if statuses <= {"success"}:
            status = "success"
        elif statuses <= {"warning"}:
            status = "warning"
        elif statuses <= {"error"}:
            status = "error"
        else:
            status = "partial"

        duration_ms = int((datetime.now(timezone.utc) - started_at).total_seconds() * 1000)
        self.accounting.invalidate()
        logger.info(f"=== Full sync complete: {total_count} records in {duration_ms} ms ===")
        return {
            "status": status,
            "results": results,
            "total_count": total_count,
            "duration_ms": duration_ms,
        }

    def sync_collection(
        self,
        agreement_id: int,
        family: str,
        year: str,
        period_number: Optional[int] = None,
    ) -> dict:
        """
        Sync one child collection for one agreement, e.g. the entries of a period.

        Raises:
            ValidationError: If the family needs a period and none was given
        """
        family = get_family(family)
        given = {"year": year, "period_number": period_number}
        missing = [key for key in REQUIRED_CONTEXT.get(family.name, ()) if given.get(key) is None]
        if missing:
            raise ValidationError(f"{family.name} requires {', '.join(missing)}")
        agreement = self.registry.get_agreement(agreement_id)
        context = self._year_context(agreement, year, period_number)
        result = self._run_with_retry(agreement, family, context)
        self.accounting.invalidate()
        return result

    def _year_context(self, agreement: dict, year: str, period_number: Optional[int]) -> dict:
        """Context for a child collection, addressed by the stored year's self link when known."""
        context = {"year": year, "period_number": period_number}
        stored = self.stores["accounting_years"].find_by_natural_key(agreement.get("agreement_number"), year)
        if stored and stored.get("self_url"):
            context["year_id"] = endpoints.year_id(year, stored["self_url"])
        return context

    def _sync_totals_on_demand(self, agreement_number: int, year: str, period_number: Optional[int]):
        agreement = self.registry.get_by_number(agreement_number)
        family = "accounting_year_totals" if period_number is None else "accounting_period_totals"
        client = self.client_factory(agreement["agreement_grant_token"])
        try:
            self.engine.sync_children_for(
                agreement, family, self._year_context(agreement, year, period_number), client
            )
        finally:
            client.close()

    def cleanup_duplicates(self) -> dict:
        """Collapse duplicate rows in every table for every known agreement."""
        return cleanup_duplicates(
            self.stores,
            self.agreement_store.agreement_numbers(),
            self.sync_log,
        )

    def recent_logs(self, limit: int = 10) -> list[dict]:
        return recent_sync_logs(self.sync_log, limit)

    def close(self):
        """Close the database connection."""
        self.db.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def run_sync(
    families: Optional[list[str]] = None,
    agreement_id: Optional[int] = None,
    config: Optional[SyncConfig] = None,
) -> dict:
    """
    Convenience function to run sync.

    Args:
        families: Families to sync, or None for all of them
        agreement_id: Restrict the sync to one agreement
        config: Optional config override

    Returns:
        Dict with sync results
    """
    with EconomicSync(config) as sync:
        if agreement_id is not None:
            return sync.sync_agreement(agreement_id, families)
        return sync.sync_everything(families)


def configure_logging(level: str = "INFO", log_file: Optional[str] = None):
    logger.remove()
    logger.add(sys.stderr, level=level)
    if log_file:
        logger.add(log_file, level=level, rotation="10 MB", retention=5)


def build_parser():
    import argparse

    parser = argparse.ArgumentParser(
        description="e-conomic sync - Sync e-conomic agreements to PostgreSQL"
    )
    parser.add_argument(
        "--family",
        action="append",
        choices=sorted(FAMILIES),
        help="Entity family to sync (repeatable, default: all top-level families)",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Sync every top-level family in dependency order",
    )
    parser.add_argument(
        "--agreement",
        type=int,
        metavar="ID",
        help="Only sync the agreement with this id",
    )
    parser.add_argument(
        "--year",
        help="Accounting year for period and year collections",
    )
    parser.add_argument(
        "--period",
        type=int,
        help="Period number for period collections",
    )
    parser.add_argument(
        "--cleanup",
        action="store_true",
        help="Remove duplicate rows and exit",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Only initialize database schema, don't sync",
    )
    parser.add_argument(
        "--test-agreement",
        type=int,
        metavar="ID",
        help="Test the grant token of an agreement and exit",
    )
    parser.add_argument(
        "--logs",
        type=int,
        metavar="N",
        help="Print the N most recent sync log entries and exit",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = SyncConfig.from_env()
    configure_logging("DEBUG" if args.verbose else config.log_level, config.log_file)

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return 1

    try:
        with EconomicSync(config) as sync:
            if args.init_db:
                sync.initialize_schema()
                print("Schema initialized successfully")
                return 0

            if args.test_agreement is not None:
                result = sync.test_agreement(args.test_agreement)
                print(json.dumps(result, indent=2, default=str))
                return 0 if result["status"] == "connected" else 1

            if args.logs is not None:
                result = sync.recent_logs(args.logs)
            elif args.cleanup:
                result = sync.cleanup_duplicates()
            elif args.year is not None and args.agreement is not None and args.family and len(args.family) == 1:
                result = sync.sync_collection(args.agreement, args.family[0], args.year, args.period)
            elif args.agreement is not None:
                result = sync.sync_agreement(args.agreement, args.family)
            elif args.family and not args.all:
                result = {name: sync.sync_all(name) for name in args.family}
            else:
                result = sync.sync_everything(args.family)

            print(json.dumps(result, indent=2, default=str))
            return 0

    except psycopg.OperationalError as e:
        logger.error(f"Database connection error: {e}")
        return 1
    except EconomicSyncError as e:
        logger.error(f"Sync error ({e.kind}): {e}")
        return 1
    except Exception as e:
        logger.exception(f"Sync failed: {e}")
        return 1
