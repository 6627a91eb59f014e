# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Reporting service.

Read-only projections over the ledger. Each report runs in its own
transaction, orders rows deterministically and truncates where the report
defines a limit. A report with no rows raises ReportingNotFoundError; counts
always answer, zero included.
"""

import re
import logging
from typing import Any, Dict, List, Optional
from opentelemetry import trace
from domain.errors import ReportingNotFoundError
from domain.reporting import (
    HIGH_RISK_THRESHOLD, RECENT_CLAIMS_LIMIT, RECENT_SHIPMENTS_LIMIT, SERIES_LIMIT,
    by_commit_time, by_field, order_recent_shipments, party_key, require_rows,
    sort_newest_first, truncate
)
from models.documents import (
    SHIPMENTS, RETAIL_SHIPMENTS, SENSOR_DATA, claimed_filter, decode_sensor_data,
    decode_shipment, shipment_kind
)
from models.entities import GeoLocation, Shipment
from models.responses import (
    AuditTrailEntry, GraphPoint, LatestSensorReading, RecentShipment, RevisionEntry,
    SensorSeriesPoint, ShipmentMovements, ShipmentReportRow
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def party_filter(party: Optional[str]) -> Dict[str, Any]:
    """Case-insensitive exact match on the manufacturer."""
    key = party_key(party)
    if key is None:
        return {}
    return {"manufacturer": {"$regex": f"^{re.escape(key)}$", "$options": "i"}}


def report_row(shipment: Shipment) -> ShipmentReportRow:
    return ShipmentReportRow(
        shipment_id=shipment.shipment_id,
        shipping_date=shipment.shipping_date,
        vaccine_name=shipment.vaccine_name,
        quantity=shipment.quantity,
        manufacturer=shipment.manufacturer,
        status=shipment.status,
        insurer=shipment.insurer,
        policy_id=shipment.policy_id,
        insured_value=shipment.insured_value,
        claim_state=shipment.claim_state,
        claim_id=shipment.claim_id,
        claim_request_date=shipment.claim_request_date,
        origin=shipment.way_bill.origin,
        destination=shipment.way_bill.destination,
        temperature_alert=shipment.temperature_excursion,
        current_role=shipment.current_role,
        current_geo_location=shipment.current_geo_location
    )


def _scope(filters: Dict[str, Any], party: Optional[str]) -> Dict[str, Any]:
    scoped = dict(filters)
    scoped.update(party_filter(party))
    return scoped


class ReportingService:
    """Read-only reports over shipments, sensor facts and claims."""

    def __init__(self, ledger):
        self.ledger = ledger

    def _read(self, name: str, body, **attributes):
        with tracer.start_as_current_span(f"reports.{name}") as span:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(f"report.{key}", value)
            return self.ledger.execute_in_transaction(body)

    def _shipment_rows(self, txn, filters: Dict[str, Any], entity: str, detail: str,
                       sort_field: str = "shippingDate", limit: Optional[int] = None) -> List[ShipmentReportRow]:
        documents = sort_newest_first(txn.find(SHIPMENTS, filters), by_field(sort_field))
        rows = truncate([report_row(decode_shipment(doc)) for doc in documents], limit)
        return require_rows(rows, entity, detail)

    def shipments_by_party(self, party: str) -> List[ShipmentReportRow]:
        def body(txn):
            return self._shipment_rows(
                txn, party_filter(party), "Shipment",
                f"Shipment Data record with Manufacturer {party} does not exist"
            )
        return self._read("shipments_by_party", body, party=party)

    def high_risk_shipments(self, party: Optional[str] = None) -> List[ShipmentReportRow]:
        def body(txn):
            filters = _scope({"temperatureExcursion": {"$gte": HIGH_RISK_THRESHOLD}}, party)
            return self._shipment_rows(txn, filters, "HighRiskShipment", "No high risk shipments found")
        return self._read("high_risk_shipments", body, party=party)

    def recent_claims(self, party: Optional[str] = None) -> List[ShipmentReportRow]:
        def body(txn):
            return self._shipment_rows(
                txn, _scope(claimed_filter(), party), "Claim", "No claims found",
                sort_field="claimRequestDate", limit=RECENT_CLAIMS_LIMIT
            )
        return self._read("recent_claims", body, party=party)

    def claim_overview(self) -> List[ShipmentReportRow]:
        def body(txn):
            return self._shipment_rows(txn, {}, "Shipment", "No shipments found")
        return self._read("claim_overview", body)

    def shipment_locations(self, party: str) -> List[ShipmentReportRow]:
        def body(txn):
            return self._shipment_rows(
                txn, party_filter(party), "Shipment",
                f"No shipments found for manufacturer {party}"
            )
        return self._read("shipment_locations", body, party=party)

    def recent_shipments(self) -> List[RecentShipment]:
        """Latest master shipments, each followed by its own retail legs."""
        def body(txn):
            ordered = order_recent_shipments(
                txn.find(SHIPMENTS), txn.find(RETAIL_SHIPMENTS), RECENT_SHIPMENTS_LIMIT
            )
            rows = [
                RecentShipment(
                    shipment_id=doc.get("shipmentId") or doc["retailShipmentId"],
                    shipping_date=doc["shippingDate"],
                    kind=shipment_kind(doc.get("shipmentId") or doc["retailShipmentId"]),
                    master_shipment_id=doc.get("masterShipmentId")
                )
                for doc in ordered
            ]
            return require_rows(rows, "Shipment", "No shipments found")
        return self._read("recent_shipments", body)

    def _sensor_facts(self, txn, shipment_id: str) -> List[Dict[str, Any]]:
        return sort_newest_first(txn.find(SENSOR_DATA, {"shipmentId": shipment_id}), by_commit_time)

    def _series(self, shipment_id: str, field: str, name: str) -> List[SensorSeriesPoint]:
        shipment_id = shipment_id.upper()

        def body(txn):
            facts = truncate(self._sensor_facts(txn, shipment_id), SERIES_LIMIT)
            points = [
                SensorSeriesPoint(
                    shipment_id=fact["shipmentId"],
                    device_id=fact["deviceId"],
                    value=fact[field],
                    event_date=fact["eventDate"],
                    tx_time=fact["metadata"]["txTime"]
                )
                for fact in facts
            ]
            return require_rows(points, "SensorData", f"No sensor data recorded for shipment {shipment_id}")
        return self._read(name, body, shipment_id=shipment_id)

    def temperature_series(self, shipment_id: str) -> List[SensorSeriesPoint]:
        return self._series(shipment_id, "temperature", "temperature_series")

    def humidity_series(self, shipment_id: str) -> List[SensorSeriesPoint]:
        return self._series(shipment_id, "humidity", "humidity_series")

    def audit_trail(self, shipment_id: str) -> List[AuditTrailEntry]:
        """Every sensor fact of a shipment with its ledger metadata, newest commit first."""
        shipment_id = shipment_id.upper()

        def body(txn):
            entries = [
                AuditTrailEntry(
                    shipment_id=fact["shipmentId"],
                    device_id=fact["deviceId"],
                    temperature=fact["temperature"],
                    humidity=fact["humidity"],
                    event_date=fact["eventDate"],
                    temp_hash=fact.get("tempHash"),
                    document_id=fact["metadata"]["documentId"],
                    version=fact["metadata"]["version"],
                    tx_time=fact["metadata"]["txTime"],
                    hash=fact["hash"]
                )
                for fact in self._sensor_facts(txn, shipment_id)
            ]
            return require_rows(entries, "SensorData", f"No sensor data recorded for shipment {shipment_id}")
        return self._read("audit_trail", body, shipment_id=shipment_id)

    def latest_sensor_reading(self, shipment_id: str) -> LatestSensorReading:
        shipment_id = shipment_id.upper()

        def body(txn):
            facts = require_rows(
                self._sensor_facts(txn, shipment_id), "SensorData",
                f"No sensor data recorded for shipment {shipment_id}"
            )
            latest = facts[0]
            fact = decode_sensor_data(latest)
            return LatestSensorReading(
                shipment_id=fact.shipment_id,
                device_id=fact.device_id,
                temperature=fact.temperature,
                humidity=fact.humidity,
                current_geo_location=GeoLocation(
                    latitude=fact.latitude,
                    xaxis=fact.xaxis,
                    longitude=fact.longitude,
                    yaxis=fact.yaxis,
                    location=fact.location
                ),
                event_date=fact.event_date,
                tx_time=latest["metadata"]["txTime"]
            )
        return self._read("latest_sensor_reading", body, shipment_id=shipment_id)

    def shipment_movements(self, shipment_id: str) -> ShipmentMovements:
        shipment_id = shipment_id.upper()

        def body(txn):
            document = txn.find_one(SHIPMENTS, {"shipmentId": shipment_id})
            if document is None:
                raise ReportingNotFoundError("Shipment", f"Shipment record with ShipmentId {shipment_id} does not exist")
            shipment = decode_shipment(document)
            return ShipmentMovements(
                shipment_id=shipment.shipment_id,
                status=shipment.status,
                manufacturer=shipment.manufacturer,
                vaccine_name=shipment.vaccine_name,
                current_role=shipment.current_role,
                shipment_tracker_events=shipment.shipment_tracker_events
            )
        return self._read("shipment_movements", body, shipment_id=shipment_id)

    def graph_info(self) -> List[GraphPoint]:
        """Temperature alerts and position of every shipment."""
        def body(txn):
            documents = sort_newest_first(txn.find(SHIPMENTS), by_field("shippingDate"))
            points = []
            for doc in documents:
                position = GeoLocation.model_validate(doc.get("currentGeoLocation") or {})
                points.append(GraphPoint(
                    shipment_id=doc["shipmentId"],
                    temperature_alert=doc.get("temperatureExcursion", 0),
                    latitude=position.latitude,
                    longitude=position.longitude,
                    xaxis=position.xaxis,
                    yaxis=position.yaxis,
                    location=position.location
                ))
            return require_rows(points, "Shipment", "No shipments found")
        return self._read("graph_info", body)

    def revision_history(self, shipment_id: str) -> List[RevisionEntry]:
        """Committed revisions of a shipment document, newest version first."""
        shipment_id = shipment_id.upper()

        def body(txn):
            document = txn.find_one(SHIPMENTS, {"shipmentId": shipment_id})
            if document is None:
                raise ReportingNotFoundError("Shipment", f"Shipment record with ShipmentId {shipment_id} does not exist")
            revisions = txn.history(SHIPMENTS, document["metadata"]["documentId"])
            return [
                RevisionEntry(
                    document_id=rev["metadata"]["documentId"],
                    version=rev["metadata"]["version"],
                    tx_time=rev["metadata"]["txTime"],
                    hash=rev["hash"],
                    data=rev["data"]
                )
                for rev in sorted(revisions, key=lambda rev: rev["metadata"]["version"], reverse=True)
            ]
        return self._read("revision_history", body, shipment_id=shipment_id)

    def count_shipments(self, party: Optional[str] = None) -> int:
        return self._read(
            "count_shipments",
            lambda txn: txn.count(SHIPMENTS, party_filter(party)),
            party=party
        )

    def count_claims(self, party: Optional[str] = None) -> int:
        return self._read(
            "count_claims",
            lambda txn: txn.count(SHIPMENTS, _scope(claimed_filter(), party)),
            party=party
        )

    def high_risk_count(self) -> int:
        return self._read(
            "high_risk_count",
            lambda txn: txn.count(SHIPMENTS, {"temperatureExcursion": {"$gte": HIGH_RISK_THRESHOLD}})
        )
