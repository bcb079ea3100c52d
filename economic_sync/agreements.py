"""
Agreement registry.

Agreements are the tenants of the bridge: each one holds the grant token
that binds an API client to a single e-conomic agreement. The remote
``/self`` resource is the source of truth for an agreement's number and
company name; the stored row is a cache of it.
"""
from __future__ import annotations
from typing import Any, Callable, Optional
from loguru import logger

from .client import EconomicClient
from .errors import NotFoundError, RemoteApiError, TransportError, ValidationError
from .stores import AgreementStore


class AgreementRegistry:
    """
    CRUD over agreements plus token verification against the remote API.

    Args:
        store: Agreement persistence
        client_factory: Callable building a client from a grant token
    """

    def __init__(self, store: AgreementStore, client_factory: Callable[[str], EconomicClient]):
        self.store = store
        self.client_factory = client_factory

    def list_agreements(self, active_only: bool = True) -> list[dict]:
        return self.store.list(active_only=active_only)

    def get_agreement(self, agreement_id: int) -> dict:
        agreement = self.store.get(agreement_id)
        if not agreement:
            raise NotFoundError(f"Agreement {agreement_id} not found")
        return agreement

    def get_by_number(self, agreement_number: int) -> dict:
        agreement = self.store.get_by_number(agreement_number)
        if not agreement:
            raise NotFoundError(f"No agreement with number {agreement_number}")
        return agreement

    def _verify_token(self, agreement_grant_token: str) -> dict:
        """Resolve a grant token to its agreement, or raise ValidationError."""
        if not agreement_grant_token:
            raise ValidationError("Agreement grant token is required")
        client = self.client_factory(agreement_grant_token)
        try:
            info = client.get_self_info()
        except TransportError:
            raise
        except RemoteApiError as e:
            raise ValidationError(f"Invalid agreement grant token: {e}") from e
        finally:
            client.close()
        if not info.get("agreement_number"):
            raise ValidationError("API did not report an agreement number for this token")
        return info

    def test_connection(self, agreement_grant_token: str) -> dict:
        """
        Check a grant token without storing anything.

        Returns:
            Dict with status, and agreement_number/company_name on success
        """
        try:
            info = self._verify_token(agreement_grant_token)
        except (ValidationError, TransportError) as e:
            logger.warning(f"Agreement connection test failed: {e}")
            return {"status": "error", "error": e.kind, "message": str(e)}
        return {
            "status": "connected",
            "agreement_number": info["agreement_number"],
            "company_name": info["company_name"],
        }

    def create_agreement(
        self,
        agreement_grant_token: str,
        name: Optional[str] = None,
        is_active: bool = True,
    ) -> dict:
        """Verify the token and store the agreement the API reports for it."""
        info = self._verify_token(agreement_grant_token)
        agreement = self.store.create(
            name=name or info["company_name"] or f"Agreement {info['agreement_number']}",
            agreement_grant_token=agreement_grant_token,
            agreement_number=info["agreement_number"],
            is_active=is_active,
        )
        logger.info(f"Registered agreement {agreement['agreement_number']} ({agreement['name']})")
        return agreement

    def update_agreement(self, agreement_id: int, **fields: Any) -> dict:
        """Update an agreement; a new grant token is verified first."""
        current = self.get_agreement(agreement_id)
        token = fields.get("agreement_grant_token")
        if token is not None and token != current["agreement_grant_token"]:
            info = self._verify_token(token)
            fields["agreement_number"] = info["agreement_number"]
        try:
            updated = self.store.update(agreement_id, **fields)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if not updated:
            raise NotFoundError(f"Agreement {agreement_id} not found")
        return updated

    def disable_agreement(self, agreement_id: int) -> dict:
        return self.update_agreement(agreement_id, is_active=False)

    def delete_agreement(self, agreement_id: int):
        if not self.store.delete(agreement_id):
            raise NotFoundError(f"Agreement {agreement_id} not found")
        logger.info(f"Deleted agreement {agreement_id}")

    def resolve_identity(self, agreement: dict, client: EconomicClient) -> dict:
        """
        Confirm which agreement ``client`` talks to and heal the stored row.

        Makes exactly one ``/self`` call. When the API reports a different
        agreement number or company name than the stored row, the row is
        updated and the updated row returned.
        """
        info = client.get_self_info()
        agreement_number = info.get("agreement_number")
        if not agreement_number:
            raise ValidationError(
                f"API did not report an agreement number for agreement {agreement.get('id')}"
            )

        changes = {}
        if agreement.get("agreement_number") != agreement_number:
            changes["agreement_number"] = agreement_number
        company_name = info.get("company_name")
        if company_name and agreement.get("name") != company_name:
            changes["name"] = company_name
        if not changes:
            return agreement

        logger.warning(
            f"Agreement {agreement.get('id')} is out of date "
            f"(stored {agreement.get('agreement_number')}/{agreement.get('name')}), updating: {changes}"
        )
        if agreement.get("id") is None:
            return {**agreement, **changes}
        return self.store.update(agreement["id"], **changes) or {**agreement, **changes}
