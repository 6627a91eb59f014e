# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Shipment lifecycle service.

Creates master shipments, transfers custody and records sensor telemetry.
Each operation is one ledger transaction whose body reads the current state
afresh, so it stays correct when the ledger re-runs it after a conflict.
Alerts are published only after the transaction has committed.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple
from pymongo.errors import DuplicateKeyError
from opentelemetry import trace
from domain.errors import DuplicateShipmentError, ShipmentNotFoundError
from domain.risk import (
    HumiditySource, SIMULATED_HUMIDITY_RANGE, WHOLESALE_HUMIDITY_RANGE,
    alert_payload, random_humidity
)
from domain.shipments import (
    TelemetryUpdate, apply_reading, batch_id_for, custody_event, new_shipment, prepend_event
)
from models.base import utc_now
from models.documents import (
    SHIPMENTS, RETAIL_SHIPMENTS, SENSOR_DATA,
    decode_retail_shipment, decode_shipment, encode_sensor_data, encode_shipment, shipment_kind
)
from models.entities import Event, SensorReading, Shipment
from models.enums import ShipmentKind
from models.requests import CreateShipmentRequest, EventDetails
from models.responses import CustodyTransferResult, TelemetryResult

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ALERT_TOPIC = "shipment.temperature.excursion"


def _dump_events(events) -> list:
    return [event.model_dump(by_alias=True) for event in events]


class ShipmentService:
    """Manager for the master shipment aggregate and leg telemetry."""

    def __init__(self, ledger, publisher=None,
                 clock: Callable[[], datetime] = utc_now,
                 humidity_source: HumiditySource = random_humidity):
        self.ledger = ledger
        self.publisher = publisher
        self.clock = clock
        self.humidity_source = humidity_source

    def create_shipment(self, request: CreateShipmentRequest) -> Shipment:
        """
        Create a master shipment and stamp its ledger id as batch id.

        Raises:
            DuplicateShipmentError: If the shipment id is already taken
        """
        shipment_id = request.shipment_id.upper()

        def body(txn) -> Shipment:
            if txn.count(SHIPMENTS, {"shipmentId": shipment_id}) > 0:
                raise DuplicateShipmentError(f"Shipment record with ShipmentId {shipment_id} already exists")

            shipment = new_shipment(request, self.clock())
            document_id = txn.insert(SHIPMENTS, encode_shipment(shipment))
            batch_id = batch_id_for(document_id)
            txn.update_one(SHIPMENTS, {"shipmentId": shipment_id}, {"batchId": batch_id})
            return shipment.model_copy(update={"batch_id": batch_id})

        with tracer.start_as_current_span("shipments.create") as span:
            span.set_attribute("shipment.id", shipment_id)
            try:
                shipment = self.ledger.execute_in_transaction(body)
            except DuplicateKeyError as e:
                raise DuplicateShipmentError(
                    f"Shipment record with ShipmentId {shipment_id} already exists"
                ) from e

        logger.info(
            f"Created shipment {shipment_id}",
            extra={"extra_fields": {"shipment_id": shipment_id, "batch_id": shipment.batch_id}}
        )
        return shipment

    def get_shipment(self, shipment_id: str) -> Shipment:
        """
        Raises:
            ShipmentNotFoundError: If no shipment has this id
        """
        shipment_id = shipment_id.upper()

        def body(txn) -> Shipment:
            document = txn.find_one(SHIPMENTS, {"shipmentId": shipment_id})
            if document is None:
                raise ShipmentNotFoundError(f"Shipment record with ShipmentId {shipment_id} does not exist")
            return decode_shipment(document)

        with tracer.start_as_current_span("shipments.get") as span:
            span.set_attribute("shipment.id", shipment_id)
            return self.ledger.execute_in_transaction(body)

    def transfer_custody(self, shipment_id: str, current_owner: str, current_role: str,
                         next_role: Optional[str], event: EventDetails) -> CustodyTransferResult:
        """
        Hand a shipment to a new owner and record the transfer event.

        Owner, role and the full tracker log are written in one update.

        Raises:
            ShipmentNotFoundError: If no shipment has this id
        """
        shipment_id = shipment_id.upper()

        def body(txn) -> Event:
            document = txn.find_one(SHIPMENTS, {"shipmentId": shipment_id})
            if document is None:
                raise ShipmentNotFoundError(f"Shipment record with ShipmentId {shipment_id} does not exist")

            shipment = decode_shipment(document)
            recorded = custody_event(event, current_owner, current_role, next_role, self.clock())
            txn.update_one(SHIPMENTS, {"shipmentId": shipment_id}, {
                "currentOwner": current_owner,
                "currentRole": current_role,
                "shipmentTrackerEvents": _dump_events(
                    prepend_event(shipment.shipment_tracker_events, recorded)
                )
            })
            return recorded

        with tracer.start_as_current_span("shipments.transfer_custody") as span:
            span.set_attributes({
                "shipment.id": shipment_id,
                "shipment.current_role": str(current_role),
            })
            recorded = self.ledger.execute_in_transaction(body)

        logger.info(
            f"Transferred custody of shipment {shipment_id} to {current_owner}",
            extra={"extra_fields": {
                "shipment_id": shipment_id,
                "current_role": current_role,
                "next_role": next_role
            }}
        )
        return CustodyTransferResult(
            shipment_id=shipment_id,
            current_role=current_role,
            next_role=next_role,
            response=recorded.event_desc
        )

    def record_telemetry(self, shipment_id: str, device_id: Optional[str],
                         reading: SensorReading) -> TelemetryResult:
        """Record a reading against a master shipment."""
        return self._record(shipment_id, device_id, reading, ShipmentKind.MASTER, WHOLESALE_HUMIDITY_RANGE)

    def record_telemetry_simulated(self, shipment_id: str, device_id: Optional[str],
                                   reading: SensorReading) -> TelemetryResult:
        """Record a reading against a master shipment or a retail leg, chosen by id prefix."""
        return self._record(shipment_id, device_id, reading, shipment_kind(shipment_id), SIMULATED_HUMIDITY_RANGE)

    def _record(self, shipment_id: str, device_id: Optional[str], reading: SensorReading,
                kind: ShipmentKind, humidity_range: Tuple[int, int]) -> TelemetryResult:
        shipment_id = shipment_id.upper()
        if kind == ShipmentKind.RETAIL_LEG:
            collection, key, decode = RETAIL_SHIPMENTS, "retailShipmentId", decode_retail_shipment
        else:
            collection, key, decode = SHIPMENTS, "shipmentId", decode_shipment

        def body(txn) -> TelemetryUpdate:
            document = txn.find_one(collection, {key: shipment_id})
            if document is None:
                raise ShipmentNotFoundError(f"Shipment record with Shipment ID {shipment_id} does not exist")

            update = apply_reading(
                shipment_id, decode(document), device_id, reading,
                self.clock(), humidity_range, self.humidity_source
            )
            txn.update_one(collection, {key: shipment_id}, {
                "deviceId": update.device_id,
                "temperatureExcursion": update.counters.temperature_excursion,
                "humidityRangeViolation": update.counters.humidity_range_violation,
                "currentGeoLocation": update.position.model_dump(by_alias=True),
                "shipmentTrackerEvents": _dump_events(update.events)
            })
            txn.insert(SENSOR_DATA, encode_sensor_data(update.fact))
            return update

        with tracer.start_as_current_span("shipments.record_telemetry") as span:
            span.set_attributes({
                "shipment.id": shipment_id,
                "shipment.kind": ShipmentKind(kind).value,
            })
            update = self.ledger.execute_in_transaction(body)
            span.set_attribute("telemetry.alert", update.assessment.alert)

        if update.assessment.alert:
            self._publish_alert(alert_payload(shipment_id, update.device_id, reading.temperature, update.temp_hash))

        logger.info(
            f"Recorded telemetry for {shipment_id}",
            extra={"extra_fields": {
                "shipment_id": shipment_id,
                "device_id": update.device_id,
                "temperature": reading.temperature,
                "alert": update.assessment.alert
            }}
        )
        return TelemetryResult(
            shipment_id=shipment_id,
            device_id=update.device_id,
            response=reading.temperature,
            temperature_excursion=update.counters.temperature_excursion,
            humidity_range_violation=update.counters.humidity_range_violation,
            alert=update.assessment.alert
        )

    def _publish_alert(self, payload: Dict[str, Any]) -> None:
        if self.publisher is None:
            logger.warning(
                "No alert publisher configured, dropping alert",
                extra={"extra_fields": {"shipment_id": payload.get("shipmentId")}}
            )
            return
        # The reading is already committed; a publish failure must not surface
        try:
            self.publisher.publish(ALERT_TOPIC, payload)
        except Exception as e:
            logger.error(
                f"Failed to publish temperature alert: {e}",
                extra={"extra_fields": {
                    "shipment_id": payload.get("shipmentId"),
                    "topic": ALERT_TOPIC,
                    "error_type": type(e).__name__
                }},
                exc_info=True
            )
