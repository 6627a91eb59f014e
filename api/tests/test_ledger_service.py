# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the MongoDB ledger service.

The MongoDB client is mocked; these tests pin down what the service sends to
pymongo: document metadata and hashes, revision snapshots, transaction
options and the mapping of exhausted conflicts.
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch
from bson import ObjectId
from pymongo.errors import OperationFailure, PyMongoError, ServerSelectionTimeoutError

from domain.errors import ConflictExhaustedError, ShipmentNotFoundError
from services.ledger import (
    REVISIONS, LedgerService, TransactionExecutor, content_hash, get_ledger_service,
    close_ledger_connection
)

NOW = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def database():
    collections = {}

    def collection(name):
        return collections.setdefault(name, MagicMock(name=name))

    db = MagicMock()
    db.__getitem__.side_effect = collection
    db.collections = collections
    return db


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def executor(database, session):
    return TransactionExecutor(database, session, clock=lambda: NOW)


class TestContentHash:
    """Test document hashing."""

    def test_independent_of_key_order(self):
        assert content_hash({"a": 1, "b": 2}) == content_hash({"b": 2, "a": 1})

    def test_changes_with_content(self):
        assert content_hash({"temperature": -20}) != content_hash({"temperature": -19})

    def test_datetimes_supported(self):
        digest = content_hash({"shippingDate": NOW})

        assert len(digest) == 64

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            content_hash({"value": object()})


class TestTransactionExecutor:
    """Test versioned writes inside a session."""

    def test_insert_sets_metadata_and_revision(self, executor, database, session):
        data = {"shipmentId": "SHP-001", "quantity": 10}

        document_id = executor.insert("Shipment", data)

        stored = database.collections["Shipment"].insert_one.call_args.args[0]
        assert stored["metadata"] == {"documentId": document_id, "version": 0, "txTime": NOW}
        assert stored["hash"] == content_hash(data)
        assert str(stored["_id"]) == document_id
        assert database.collections["Shipment"].insert_one.call_args.kwargs["session"] is session

        revision = database.collections[REVISIONS].insert_one.call_args.args[0]
        assert revision["collection"] == "Shipment"
        assert revision["data"] == data
        assert revision["metadata"]["version"] == 0

    def test_insert_does_not_mutate_input(self, executor):
        data = {"shipmentId": "SHP-001"}

        executor.insert("Shipment", data)

        assert data == {"shipmentId": "SHP-001"}

    def test_update_bumps_version_and_merges(self, executor, database):
        oid = ObjectId()
        current = {
            "_id": oid,
            "shipmentId": "SHP-001",
            "temperatureExcursion": 1,
            "metadata": {"documentId": str(oid), "version": 3, "txTime": NOW},
            "hash": "old"
        }
        database.collections.setdefault("Shipment", MagicMock()).find_one.return_value = current

        document_id = executor.update_one("Shipment", {"shipmentId": "SHP-001"}, {"temperatureExcursion": 2})

        assert document_id == str(oid)
        replace_filter, replacement = database.collections["Shipment"].replace_one.call_args.args
        assert replace_filter == {"_id": oid}
        assert replacement["temperatureExcursion"] == 2
        assert replacement["shipmentId"] == "SHP-001"
        assert replacement["metadata"]["version"] == 4
        assert replacement["hash"] == content_hash({"shipmentId": "SHP-001", "temperatureExcursion": 2})

    def test_update_without_match(self, executor, database):
        database.collections.setdefault("Shipment", MagicMock()).find_one.return_value = None

        assert executor.update_one("Shipment", {"shipmentId": "SHP-404"}, {"x": 1}) is None
        database.collections["Shipment"].replace_one.assert_not_called()

    def test_find_hides_object_ids(self, executor, database):
        database.collections.setdefault("Shipment", MagicMock()).find.return_value = [
            {"_id": ObjectId(), "shipmentId": "SHP-001"}
        ]

        assert executor.find("Shipment", {"shipmentId": "SHP-001"}) == [{"shipmentId": "SHP-001"}]

    def test_history_sorted_by_version(self, executor, database):
        cursor = MagicMock()
        cursor.sort.return_value = [{"_id": ObjectId(), "metadata": {"version": 0}}]
        database.collections.setdefault(REVISIONS, MagicMock()).find.return_value = cursor

        revisions = executor.history("Shipment", "abc")

        query = database.collections[REVISIONS].find.call_args.args[0]
        assert query == {"collection": "Shipment", "metadata.documentId": "abc"}
        cursor.sort.assert_called_once_with("metadata.version", 1)
        assert revisions == [{"metadata": {"version": 0}}]


class TestExecuteInTransaction:
    """Test transaction driving and conflict handling."""

    @pytest.fixture
    def ledger(self, database, session):
        service = LedgerService("mongodb://localhost:27017/test?replicaSet=rs0", "cold_chain_test",
                                clock=lambda: NOW)
        client = MagicMock()
        client.start_session.return_value.__enter__.return_value = session
        service._client = client
        service._database = database
        return service

    def test_runs_body_with_snapshot_and_majority(self, ledger, session):
        session.with_transaction.side_effect = lambda callback, **kwargs: callback(session)

        result = ledger.execute_in_transaction(lambda txn: txn.session is session and "done")

        assert result == "done"
        kwargs = session.with_transaction.call_args.kwargs
        assert kwargs["read_concern"].level == "snapshot"
        assert kwargs["write_concern"].document == {"w": "majority"}

    def test_body_rerun_logs_retry(self, ledger, session, caplog):
        calls = []

        def with_transaction(callback, **kwargs):
            callback(session)
            return callback(session)

        session.with_transaction.side_effect = with_transaction

        with caplog.at_level("INFO", logger="services.ledger"):
            ledger.execute_in_transaction(lambda txn: calls.append(txn))

        assert len(calls) == 2
        assert "Retrying due to OCC conflict" in caplog.text

    def test_transient_error_becomes_conflict_exhausted(self, ledger, session):
        error = OperationFailure("Write conflict", code=112, details={"errorLabels": ["TransientTransactionError"]})
        session.with_transaction.side_effect = error

        with pytest.raises(ConflictExhaustedError) as exc_info:
            ledger.execute_in_transaction(lambda txn: None)

        assert exc_info.value.status_code == 500
        assert exc_info.value.__cause__ is error

    def test_other_database_errors_propagate(self, ledger, session):
        session.with_transaction.side_effect = PyMongoError("boom")

        with pytest.raises(PyMongoError):
            ledger.execute_in_transaction(lambda txn: None)

    def test_domain_errors_propagate_unchanged(self, ledger, session):
        session.with_transaction.side_effect = lambda callback, **kwargs: callback(session)

        def body(txn):
            raise ShipmentNotFoundError("missing")

        with pytest.raises(ShipmentNotFoundError):
            ledger.execute_in_transaction(body)


class TestLedgerService:
    """Test configuration, health and indexes."""

    def test_configuration_from_environment(self, monkeypatch):
        monkeypatch.setenv('MONGODB_URI', 'mongodb://db:27017/?replicaSet=rs0')
        monkeypatch.setenv('MONGODB_DATABASE', 'ledger')
        monkeypatch.setenv('LEDGER_TRANSACTION_TIMEOUT_S', '5')

        service = LedgerService()

        assert service.connection_string == 'mongodb://db:27017/?replicaSet=rs0'
        assert service.database_name == 'ledger'
        assert service.transaction_timeout_s == 5.0

    def test_client_is_lazy(self):
        with patch('services.ledger.MongoClient') as mock_client:
            service = LedgerService("mongodb://localhost:27017", "test")
            mock_client.assert_not_called()

            service.client

            assert mock_client.call_args.kwargs["tz_aware"] is True
            mock_client.return_value.admin.command.assert_called_once_with('ping')

    def test_health_check_healthy(self):
        service = LedgerService("mongodb://localhost:27017", "test")
        service._client = MagicMock()
        service._client.admin.command.return_value = {'ok': 1}
        service._client.server_info.return_value = {'version': '7.0.4'}

        health = service.health_check()

        assert health['status'] == 'healthy'
        assert health['version'] == '7.0.4'

    def test_health_check_unhealthy(self):
        service = LedgerService("mongodb://localhost:27017", "test")
        service._client = MagicMock()
        service._client.admin.command.side_effect = ServerSelectionTimeoutError("no servers")

        health = service.health_check()

        assert health['status'] == 'unhealthy'
        assert 'no servers' in health['error']

    def test_create_indexes_unique_identifiers(self, database):
        service = LedgerService("mongodb://localhost:27017", "test")
        service._database = database

        service.create_indexes()

        database.collections["Shipment"].create_index.assert_any_call("shipmentId", unique=True)
        database.collections["RetailShipment"].create_index.assert_any_call("retailShipmentId", unique=True)

    def test_singleton(self):
        close_ledger_connection()
        try:
            assert get_ledger_service() is get_ledger_service()
        finally:
            close_ledger_connection()
