# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.

The ledger fixture is an in-memory stand-in for LedgerService with the same
transaction contract: every attempt works on a private copy of the committed
state, an injected conflict discards the attempt and re-runs the body, and
persistent conflicts end in ConflictExhaustedError.
"""

import copy
import os
import re
import pytest
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional
from pymongo.errors import DuplicateKeyError

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ['DOCS_ENABLED'] = 'false'
os.environ['MONGODB_DATABASE'] = 'cold_chain_test'

from domain.errors import ConflictExhaustedError
from models.documents import SHIPMENTS, RETAIL_SHIPMENTS, encode_shipment
from models.requests import CreateShipmentRequest
from services.ledger import REVISIONS, content_hash

UNIQUE_KEYS = {
    SHIPMENTS: "shipmentId",
    RETAIL_SHIPMENTS: "retailShipmentId",
}


class TickingClock:
    """Clock that moves forward one second on every reading."""

    def __init__(self, start: datetime = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


def _resolve(document: Dict[str, Any], dotted: str) -> Any:
    value: Any = document
    for part in dotted.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _matches_condition(value: Any, condition: Any) -> bool:
    if not (isinstance(condition, dict) and any(key.startswith("$") for key in condition)):
        return value == condition

    for operator, operand in condition.items():
        if operator == "$ne" and value == operand:
            return False
        if operator == "$gte" and (value is None or value < operand):
            return False
        if operator == "$in" and value not in operand:
            return False
        if operator == "$regex":
            flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
            if not isinstance(value, str) or re.search(operand, value, flags) is None:
                return False
    return True


def matches(document: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    return all(_matches_condition(_resolve(document, key), condition)
               for key, condition in (filters or {}).items())


class FakeTransaction:
    """Mirror of TransactionExecutor over plain dictionaries."""

    def __init__(self, state: Dict[str, List[Dict[str, Any]]], clock: Callable[[], datetime],
                 next_id: Callable[[], str]):
        self.state = state
        self.clock = clock
        self.next_id = next_id

    def find(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return [copy.deepcopy(doc) for doc in self.state[collection] if matches(doc, filters)]

    def find_one(self, collection: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        found = self.find(collection, filters)
        return found[0] if found else None

    def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int:
        return len(self.find(collection, filters))

    def insert(self, collection: str, data: Dict[str, Any]) -> str:
        key = UNIQUE_KEYS.get(collection)
        if key and any(doc.get(key) == data.get(key) for doc in self.state[collection]):
            raise DuplicateKeyError(f"E11000 duplicate key error collection: {collection}", 11000)

        document_id = self.next_id()
        metadata = {"documentId": document_id, "version": 0, "txTime": self.clock()}
        self._store(collection, None, copy.deepcopy(data), metadata)
        return document_id

    def update_one(self, collection: str, filters: Dict[str, Any], changes: Dict[str, Any]) -> Optional[str]:
        for index, current in enumerate(self.state[collection]):
            if matches(current, filters):
                data = {k: v for k, v in current.items() if k not in ("metadata", "hash")}
                data.update(copy.deepcopy(changes))
                metadata = {
                    "documentId": current["metadata"]["documentId"],
                    "version": current["metadata"]["version"] + 1,
                    "txTime": self.clock()
                }
                self._store(collection, index, data, metadata)
                return metadata["documentId"]
        return None

    def history(self, collection: str, document_id: str) -> List[Dict[str, Any]]:
        revisions = self.find(REVISIONS, {"collection": collection, "metadata.documentId": document_id})
        return sorted(revisions, key=lambda rev: rev["metadata"]["version"])

    def _store(self, collection: str, index: Optional[int], data: Dict[str, Any],
               metadata: Dict[str, Any]) -> None:
        digest = content_hash(data)
        document = dict(data, metadata=metadata, hash=digest)
        if index is None:
            self.state[collection].append(document)
        else:
            self.state[collection][index] = document
        self.state[REVISIONS].append({
            "collection": collection,
            "metadata": dict(metadata),
            "hash": digest,
            "data": copy.deepcopy(data)
        })


class FakeLedger:
    """In-memory ledger with injectable transaction conflicts."""

    def __init__(self, clock: Callable[[], datetime], max_attempts: int = 5):
        self.clock = clock
        self.max_attempts = max_attempts
        self.collections: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self.attempts = 0
        self.conflicts = 0
        self.on_conflict: Optional[Callable[["FakeLedger"], None]] = None
        self.healthy = True
        self._sequence = 0

    def _next_id(self) -> str:
        self._sequence += 1
        return f"{self._sequence:024x}"

    def execute_in_transaction(self, fn):
        for _ in range(self.max_attempts):
            self.attempts += 1
            working = copy.deepcopy(self.collections)
            result = fn(FakeTransaction(working, self.clock, self._next_id))

            if self.conflicts > 0:
                self.conflicts -= 1
                hook, self.on_conflict = self.on_conflict, None
                if hook is not None:
                    hook(self)
                continue

            self.collections = working
            return result

        raise ConflictExhaustedError(f"Transaction could not be committed after {self.max_attempts} attempts")

    def documents(self, collection: str) -> List[Dict[str, Any]]:
        return copy.deepcopy(self.collections[collection])

    def revisions(self, collection: str) -> List[Dict[str, Any]]:
        return [rev for rev in self.collections[REVISIONS] if rev["collection"] == collection]

    def health_check(self) -> Dict[str, Any]:
        if self.healthy:
            return {"status": "healthy", "database": "cold_chain_test"}
        return {"status": "unhealthy", "error": "replica set unavailable", "database": "cold_chain_test"}


class FakePublisher:
    """Records published alerts instead of sending them."""

    def __init__(self):
        self.published: List[Dict[str, Any]] = []
        self.healthy = True

    def publish(self, topic: str, payload: Dict[str, Any], correlation_id: Optional[str] = None):
        self.published.append({"topic": topic, "payload": payload})

    def health_check(self) -> bool:
        return self.healthy


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def ledger(clock):
    return FakeLedger(clock)


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def fixed_humidity():
    """Humidity source returning the midpoint of the requested range."""
    calls = []

    def source(low, high):
        calls.append((low, high))
        return float((low + high) // 2)

    source.calls = calls
    return source


@pytest.fixture
def shipment_service(ledger, publisher, clock, fixed_humidity):
    from services.shipments import ShipmentService
    return ShipmentService(ledger, publisher, clock=clock, humidity_source=fixed_humidity)


@pytest.fixture
def retail_service(ledger, clock):
    from services.retail import RetailService
    return RetailService(ledger, clock=clock)


@pytest.fixture
def claim_service(ledger, clock):
    from services.claims import ClaimService
    return ClaimService(ledger, clock=clock)


@pytest.fixture
def reporting_service(ledger):
    from services.reporting import ReportingService
    return ReportingService(ledger)


@pytest.fixture
def sample_shipment_data():
    """Sample create-shipment payload as sent on the wire."""
    return {
        "shipmentId": "shp-001",
        "vaccineName": "Covaxin",
        "quantity": 1000,
        "policyId": "POL-001",
        "insurer": "Acme Insurance",
        "insuredValue": 50000,
        "wayBill": {
            "origin": "ABC-Manufacturer",
            "originRole": "Manufacturer",
            "destination": "XYZ-Wholesaler",
            "destinationRole": "Wholesaler",
            "logistics": "FastFreight"
        }
    }


@pytest.fixture
def make_shipment_request(sample_shipment_data):
    def factory(shipment_id: str = "SHP-001", **overrides) -> CreateShipmentRequest:
        data = dict(sample_shipment_data, shipmentId=shipment_id)
        data.update(overrides)
        return CreateShipmentRequest.model_validate(data)
    return factory


@pytest.fixture
def seed_shipment(ledger, clock):
    """Store a shipment directly, bypassing the service, e.g. for another manufacturer."""
    from domain.shipments import new_shipment

    def factory(shipment_id: str, manufacturer: Optional[str] = None, **fields):
        request = CreateShipmentRequest(
            shipment_id=shipment_id,
            vaccine_name="Covaxin",
            quantity=100,
            policy_id=f"POL-{shipment_id}",
            insurer="Acme Insurance",
            insured_value=1000
        )
        shipment = new_shipment(request, clock())
        if manufacturer is not None:
            shipment = shipment.model_copy(update={"manufacturer": manufacturer, "current_owner": manufacturer})
        document = encode_shipment(shipment)
        document.update(fields)
        ledger.execute_in_transaction(lambda txn: txn.insert(SHIPMENTS, document))
        return document
    return factory


@pytest.fixture
def app(ledger, publisher, clock):
    from app import create_app
    application = create_app(ledger=ledger, publisher=publisher, clock=clock)
    application.config['TESTING'] = True
    return application


@pytest.fixture
def client(app):
    return app.test_client()
