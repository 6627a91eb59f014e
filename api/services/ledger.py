# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Ledger service: versioned documents with append-only history on MongoDB.

Every operation runs inside a multi-document transaction driven by
``ClientSession.with_transaction``, which re-runs the transaction body on
transient write conflicts. Every stored document carries ledger metadata
(document id, version, commit time) and a SHA-256 hash of its data, and every
write appends a snapshot to the ``revisions`` collection.
"""

import os
import json
import hashlib
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar
import pymongo
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.client_session import ClientSession
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern
from bson import ObjectId
from opentelemetry import trace
from domain.errors import ConflictExhaustedError
from models.base import utc_now
from models.documents import SHIPMENTS, RETAIL_SHIPMENTS, SENSOR_DATA, CLAIMS

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

T = TypeVar('T')

REVISIONS = "revisions"
TRANSIENT_LABELS = ("TransientTransactionError", "UnknownTransactionCommitResult")


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, ObjectId):
        return str(value)
    raise TypeError(f"Cannot serialize {type(value).__name__}")


def content_hash(data: Dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of a document's data."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=_json_default)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _data_of(document: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in document.items() if k not in ("_id", "metadata", "hash")}


def _public(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if document is None:
        return None
    document = dict(document)
    document.pop("_id", None)
    return document


class TransactionExecutor:
    """Transaction-scoped access to ledger collections."""

    def __init__(self, database: Database, session: ClientSession,
                 clock: Callable[[], datetime] = utc_now):
        self.database = database
        self.session = session
        self.clock = clock

    def find(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        cursor = self.database[collection].find(filters or {}, session=self.session)
        return [_public(doc) for doc in cursor]

    def find_one(self, collection: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return _public(self.database[collection].find_one(filters, session=self.session))

    def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int:
        return self.database[collection].count_documents(filters or {}, session=self.session)

    def insert(self, collection: str, data: Dict[str, Any]) -> str:
        """Insert a new document and return its ledger document id."""
        oid = ObjectId()
        document_id = str(oid)
        metadata = {"documentId": document_id, "version": 0, "txTime": self.clock()}
        digest = content_hash(data)

        document = dict(data)
        document["_id"] = oid
        document["metadata"] = metadata
        document["hash"] = digest

        self.database[collection].insert_one(document, session=self.session)
        self._append_revision(collection, metadata, digest, data)

        logger.debug(f"Inserted document {document_id} into {collection}")
        return document_id

    def update_one(self, collection: str, filters: Dict[str, Any],
                   changes: Dict[str, Any]) -> Optional[str]:
        """
        Merge ``changes`` into the first matching document as a new version.

        Returns:
            The updated document id, or None when nothing matched
        """
        current = self.database[collection].find_one(filters, session=self.session)
        if current is None:
            return None

        data = _data_of(current)
        data.update(changes)
        metadata = {
            "documentId": current["metadata"]["documentId"],
            "version": current["metadata"]["version"] + 1,
            "txTime": self.clock()
        }
        digest = content_hash(data)

        document = dict(data)
        document["metadata"] = metadata
        document["hash"] = digest

        self.database[collection].replace_one({"_id": current["_id"]}, document, session=self.session)
        self._append_revision(collection, metadata, digest, data)

        logger.debug(f"Updated document {metadata['documentId']} in {collection} to version {metadata['version']}")
        return metadata["documentId"]

    def history(self, collection: str, document_id: str) -> List[Dict[str, Any]]:
        """Committed revisions of one document, oldest first."""
        cursor = self.database[REVISIONS].find(
            {"collection": collection, "metadata.documentId": document_id},
            session=self.session
        ).sort("metadata.version", ASCENDING)
        return [_public(doc) for doc in cursor]

    def _append_revision(self, collection: str, metadata: Dict[str, Any],
                         digest: str, data: Dict[str, Any]) -> None:
        self.database[REVISIONS].insert_one({
            "collection": collection,
            "metadata": dict(metadata),
            "hash": digest,
            "data": dict(data)
        }, session=self.session)


class LedgerService:
    """MongoDB-backed ledger with connection pooling and retried transactions."""

    def __init__(self, connection_string: str = None, database_name: str = None,
                 clock: Callable[[], datetime] = utc_now):
        """Initialize ledger service with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/cold_chain_dev?replicaSet=rs0'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'cold_chain_dev')
        self.clock = clock
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))
        self.transaction_timeout_s = float(os.getenv('LEDGER_TRANSACTION_TIMEOUT_S', '30'))

        logger.info(f"Ledger service initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=True,
                    retryReads=True,
                    tz_aware=True
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("Ledger connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to ledger: {e}")
                self._client = None
                raise

        return self._client

    @property
    def database(self) -> Database:
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def execute_in_transaction(self, fn: Callable[[TransactionExecutor], T]) -> T:
        """
        Run ``fn`` inside a retried transaction and return its result.

        The body may run more than once: pymongo re-invokes it on transient
        write conflicts until the transaction commits or the time limit is
        reached. Exceptions raised by the body abort the transaction and
        propagate unchanged.

        Raises:
            ConflictExhaustedError: If conflicts persist past the time limit
        """
        attempt = 0

        def callback(session: ClientSession) -> T:
            nonlocal attempt
            attempt += 1
            if attempt > 1:
                logger.info("Retrying due to OCC conflict", extra={
                    "extra_fields": {"attempt": attempt}
                })
            return fn(TransactionExecutor(self.database, session, self.clock))

        with tracer.start_as_current_span("ledger.transaction") as span:
            try:
                with pymongo.timeout(self.transaction_timeout_s):
                    with self.client.start_session() as session:
                        result = session.with_transaction(
                            callback,
                            read_concern=ReadConcern("snapshot"),
                            write_concern=WriteConcern("majority")
                        )
            except PyMongoError as e:
                span.set_attribute("ledger.attempts", attempt)
                if any(e.has_error_label(label) for label in TRANSIENT_LABELS):
                    logger.error(f"Ledger transaction conflicts exhausted after {attempt} attempts: {e}")
                    span.record_exception(e)
                    raise ConflictExhaustedError(
                        f"Transaction could not be committed after {attempt} attempts"
                    ) from e
                raise

            span.set_attribute("ledger.attempts", attempt)
            return result

    def close_connection(self) -> None:
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("Ledger connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check ledger connection health."""
        try:
            result = self.client.admin.command('ping')
            server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name,
                'connection_pool_size': self.max_pool_size
            }
        except PyMongoError as e:
            logger.error(f"Ledger health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    def create_indexes(self) -> None:
        """Create the ledger collections and their indexes."""
        logger.info("Creating ledger indexes...")

        shipments = self.database[SHIPMENTS]
        shipments.create_index("shipmentId", unique=True)
        shipments.create_index([("manufacturer", ASCENDING), ("shippingDate", DESCENDING)])
        shipments.create_index("temperatureExcursion")
        shipments.create_index("claimId")

        retail = self.database[RETAIL_SHIPMENTS]
        retail.create_index("retailShipmentId", unique=True)
        retail.create_index("masterShipmentId")

        self.database[SENSOR_DATA].create_index([("shipmentId", ASCENDING), ("metadata.txTime", DESCENDING)])
        self.database[CLAIMS].create_index([("shipmentId", ASCENDING), ("claimRequestDate", DESCENDING)])

        self.database[REVISIONS].create_index([
            ("collection", ASCENDING),
            ("metadata.documentId", ASCENDING),
            ("metadata.version", ASCENDING)
        ], unique=True)

        logger.info("Ledger indexes created successfully")


# Singleton instance for application use
_ledger_service: Optional[LedgerService] = None


def get_ledger_service() -> LedgerService:
    """Get singleton ledger service instance."""
    global _ledger_service
    if _ledger_service is None:
        _ledger_service = LedgerService()
    return _ledger_service


def close_ledger_connection() -> None:
    global _ledger_service
    if _ledger_service:
        _ledger_service.close_connection()
        _ledger_service = None
