"""Tests for the agreement registry."""
from unittest.mock import Mock

import pytest

from economic_sync.agreements import AgreementRegistry
from economic_sync.errors import NotFoundError, RemoteApiError, TransportError, ValidationError

from conftest import make_agreement, make_client


@pytest.fixture
def store():
    return Mock()


def registry_with(store, client):
    factory = Mock(return_value=client)
    return AgreementRegistry(store, factory), factory


class TestAgreementCrud:
    def test_get_missing_agreement(self, store):
        store.get.return_value = None
        registry, _ = registry_with(store, Mock())
        with pytest.raises(NotFoundError):
            registry.get_agreement(42)

    def test_create_uses_identity_reported_by_api(self, store):
        client = make_client(123456, "Acme ApS")
        registry, factory = registry_with(store, client)
        store.create.side_effect = lambda **kw: {"id": 1, **kw}

        agreement = registry.create_agreement("grant-x")

        factory.assert_called_once_with("grant-x")
        store.create.assert_called_once_with(
            name="Acme ApS",
            agreement_grant_token="grant-x",
            agreement_number=123456,
            is_active=True,
        )
        assert agreement["agreement_number"] == 123456
        client.close.assert_called_once()

    def test_create_with_invalid_token(self, store):
        client = Mock()
        client.get_self_info.side_effect = RemoteApiError("Unauthorized", status_code=401)
        registry, _ = registry_with(store, client)
        with pytest.raises(ValidationError):
            registry.create_agreement("bad")
        store.create.assert_not_called()
        client.close.assert_called_once()

    def test_create_when_api_unreachable(self, store):
        client = Mock()
        client.get_self_info.side_effect = TransportError("timeout")
        registry, _ = registry_with(store, client)
        with pytest.raises(TransportError):
            registry.create_agreement("grant-x")
        store.create.assert_not_called()

    def test_update_revalidates_new_token(self, store):
        store.get.return_value = make_agreement(1, 555)
        store.update.side_effect = lambda agreement_id, **fields: {"id": agreement_id, **fields}
        registry, factory = registry_with(store, make_client(777, "New Co"))

        updated = registry.update_agreement(1, agreement_grant_token="grant-new")

        factory.assert_called_once_with("grant-new")
        assert updated["agreement_number"] == 777

    def test_update_without_token_change_skips_api(self, store):
        store.get.return_value = make_agreement(1, 555)
        store.update.return_value = {"id": 1, "name": "Renamed"}
        registry, factory = registry_with(store, Mock())
        registry.update_agreement(1, name="Renamed")
        factory.assert_not_called()

    def test_update_unknown_field(self, store):
        store.get.return_value = make_agreement(1, 555)
        store.update.side_effect = ValueError("Cannot update agreement column(s): id")
        registry, _ = registry_with(store, Mock())
        with pytest.raises(ValidationError):
            registry.update_agreement(1, id=2)

    def test_disable_is_soft(self, store):
        store.get.return_value = make_agreement(1, 555)
        store.update.return_value = {"id": 1, "is_active": False}
        registry, _ = registry_with(store, Mock())
        registry.disable_agreement(1)
        store.update.assert_called_once_with(1, is_active=False)
        store.delete.assert_not_called()

    def test_delete_missing(self, store):
        store.delete.return_value = False
        registry, _ = registry_with(store, Mock())
        with pytest.raises(NotFoundError):
            registry.delete_agreement(5)

    def test_connection_test(self, store):
        registry, _ = registry_with(store, make_client(555, "Acme"))
        assert registry.test_connection("grant-1") == {
            "status": "connected",
            "agreement_number": 555,
            "company_name": "Acme",
        }

    def test_connection_test_failure(self, store):
        client = Mock()
        client.get_self_info.side_effect = RemoteApiError("Unauthorized", status_code=401)
        registry, _ = registry_with(store, client)
        result = registry.test_connection("bad")
        assert result["status"] == "error"
        assert result["error"] == "validation"


class TestResolveIdentity:
    """The API is the source of truth for agreement identity."""

    def test_matching_identity_is_left_alone(self, store):
        registry, _ = registry_with(store, Mock())
        agreement = make_agreement(1, 555, name="Acme")
        client = make_client(555, "Acme")
        assert registry.resolve_identity(agreement, client) is agreement
        client.get_self_info.assert_called_once()
        store.update.assert_not_called()

    def test_mismatch_heals_stored_row(self, store):
        store.update.side_effect = lambda agreement_id, **fields: {**make_agreement(agreement_id, 0), **fields}
        registry, _ = registry_with(store, Mock())
        agreement = make_agreement(1, 555, name="Old Name")

        resolved = registry.resolve_identity(agreement, make_client(999, "New Name"))

        store.update.assert_called_once_with(1, agreement_number=999, name="New Name")
        assert resolved["agreement_number"] == 999
        assert resolved["name"] == "New Name"

    def test_missing_agreement_number(self, store):
        registry, _ = registry_with(store, Mock())
        client = make_client(None, "Acme")
        with pytest.raises(ValidationError):
            registry.resolve_identity(make_agreement(1, 555), client)
