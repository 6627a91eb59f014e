# SPDX-License-Identifier: Apache-2.0

"""
Tests for the shipment lifecycle service: creation, custody transfer and
telemetry intake, including transaction re-execution under conflicts.
"""

import pytest
from unittest.mock import Mock
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError

from domain.errors import (
    ConflictExhaustedError, DuplicateShipmentError, MalformedCoordinateError,
    ShipmentNotFoundError
)
from domain.risk import SIMULATED_HUMIDITY_RANGE, SIMULATOR_DEVICE_ID, WHOLESALE_HUMIDITY_RANGE
from models.documents import SENSOR_DATA, SHIPMENTS, RETAIL_SHIPMENTS
from models.entities import SensorReading
from models.enums import EventType, ShipmentRole
from models.requests import CreateRetailLegRequest, EventDetails
from services.shipments import ALERT_TOPIC, ShipmentService


def warm(temperature: float = 0.0, **fields) -> SensorReading:
    return SensorReading(temperature=temperature, **fields)


class TestCreateShipment:
    """Test master shipment creation."""

    def test_create_shipment(self, shipment_service, ledger, make_shipment_request):
        shipment = shipment_service.create_shipment(make_shipment_request("shp-001"))

        assert shipment.shipment_id == "SHP-001"
        assert shipment.manufacturer == "ABC-Manufacturer"
        assert shipment.current_owner == "ABC-Manufacturer"
        assert shipment.current_role == ShipmentRole.MANUFACTURER.value
        assert shipment.status == "In-Transit"
        assert shipment.temperature_excursion == 0

        events = shipment.shipment_tracker_events
        assert len(events) == 1
        assert events[0].event_type == EventType.SHIPPING.value
        assert events[0].event_desc == "Left Facility"

    def test_batch_id_is_upper_cased_document_id(self, shipment_service, ledger, make_shipment_request):
        shipment = shipment_service.create_shipment(make_shipment_request())

        [document] = ledger.documents(SHIPMENTS)
        assert document["batchId"] == document["metadata"]["documentId"].upper()
        assert shipment.batch_id == document["batchId"]

    def test_stored_with_unclaimed_encoding(self, shipment_service, ledger, make_shipment_request):
        shipment_service.create_shipment(make_shipment_request())

        [document] = ledger.documents(SHIPMENTS)
        assert document["claimId"] == "NC"
        assert document["claimStatus"] == "NA"
        assert document["claimRequestDate"] == "NA"

    def test_insert_and_batch_stamp_are_two_revisions(self, shipment_service, ledger, make_shipment_request):
        shipment_service.create_shipment(make_shipment_request())

        [document] = ledger.documents(SHIPMENTS)
        assert document["metadata"]["version"] == 1
        assert [rev["metadata"]["version"] for rev in ledger.revisions(SHIPMENTS)] == [0, 1]

    def test_duplicate_shipment_id_case_insensitive(self, shipment_service, ledger, make_shipment_request):
        shipment_service.create_shipment(make_shipment_request("SHP-001"))

        with pytest.raises(DuplicateShipmentError) as exc_info:
            shipment_service.create_shipment(make_shipment_request("shp-001"))

        assert "SHP-001" in exc_info.value.detail
        assert len(ledger.documents(SHIPMENTS)) == 1

    def test_unique_index_violation_maps_to_duplicate(self, make_shipment_request):
        """A concurrent insert that slips past the count check still reports a duplicate."""
        ledger = Mock()
        ledger.execute_in_transaction.side_effect = DuplicateKeyError("E11000 duplicate key", 11000)
        service = ShipmentService(ledger)

        with pytest.raises(DuplicateShipmentError):
            service.create_shipment(make_shipment_request())

    def test_get_shipment(self, shipment_service, make_shipment_request):
        shipment_service.create_shipment(make_shipment_request())

        shipment = shipment_service.get_shipment("shp-001")

        assert shipment.shipment_id == "SHP-001"
        assert shipment.claim_state == "Unclaimed"
        assert shipment.claim_id is None

    def test_get_unknown_shipment(self, shipment_service):
        with pytest.raises(ShipmentNotFoundError):
            shipment_service.get_shipment("SHP-404")


class TestTransferCustody:
    """Test custody transfer."""

    def test_transfer_updates_owner_and_prepends_event(self, shipment_service, ledger, make_shipment_request):
        shipment_service.create_shipment(make_shipment_request())
        event = EventDetails(event_type="CUSTODY_TRANSFER", event_desc="Handed to carrier")

        result = shipment_service.transfer_custody(
            "shp-001", "FastFreight", ShipmentRole.LOGISTICS.value, ShipmentRole.WHOLESALER.value, event
        )

        assert result.shipment_id == "SHP-001"
        assert result.current_role == "Logistics"
        assert result.next_role == "Wholesaler"
        assert result.response == "Handed to carrier"

        shipment = shipment_service.get_shipment("SHP-001")
        assert shipment.current_owner == "FastFreight"
        assert shipment.current_role == "Logistics"
        events = shipment.shipment_tracker_events
        assert [e.event_type for e in events] == ["CUSTODY_TRANSFER", "SHIPPING"]
        assert events[0].event_owner == "FastFreight"
        assert events[0].next_role == "Wholesaler"

    def test_transfer_is_one_revision(self, shipment_service, ledger, make_shipment_request):
        shipment_service.create_shipment(make_shipment_request())
        event = EventDetails(event_type="CUSTODY_TRANSFER", event_desc="Handed over")

        shipment_service.transfer_custody("SHP-001", "FastFreight", "Logistics", None, event)

        [document] = ledger.documents(SHIPMENTS)
        assert document["metadata"]["version"] == 2
        assert len(ledger.revisions(SHIPMENTS)) == 3

    def test_transfer_unknown_shipment(self, shipment_service):
        event = EventDetails(event_type="CUSTODY_TRANSFER", event_desc="Handed over")

        with pytest.raises(ShipmentNotFoundError):
            shipment_service.transfer_custody("SHP-404", "FastFreight", "Logistics", None, event)


class TestRecordTelemetry:
    """Test telemetry intake on master shipments and retail legs."""

    @pytest.fixture(autouse=True)
    def shipment(self, shipment_service, make_shipment_request):
        return shipment_service.create_shipment(make_shipment_request())

    def test_excursion_increments_counter_and_alerts(self, shipment_service, ledger, publisher):
        result = shipment_service.record_telemetry("SHP-001", "DEV-1", warm(-5.0, humidity=50))

        assert result.alert is True
        assert result.temperature_excursion == 1
        assert result.response == -5.0
        assert result.device_id == "DEV-1"

        [document] = ledger.documents(SHIPMENTS)
        assert document["temperatureExcursion"] == 1
        assert document["deviceId"] == "DEV-1"
        assert document["shipmentTrackerEvents"][0]["eventType"] == "SENSOR_REPORT"
        assert document["shipmentTrackerEvents"][0]["eventDesc"] == "Abnormal sensor data"
        assert document["shipmentTrackerEvents"][0]["sensorCondition"] == "Active, abnormal readings"

        assert len(publisher.published) == 1
        message = publisher.published[0]
        assert message["topic"] == ALERT_TOPIC
        assert message["payload"]["shipmentId"] == "SHP-001"
        assert message["payload"]["deviceId"] == "DEV-1"
        assert message["payload"]["temperature"] == -5.0

        [fact] = ledger.documents(SENSOR_DATA)
        assert message["payload"]["hash"] == fact["tempHash"]

    def test_normal_reading_does_not_alert(self, shipment_service, ledger, publisher):
        result = shipment_service.record_telemetry("SHP-001", "DEV-1", warm(-20.0, humidity=50))

        assert result.alert is False
        assert result.temperature_excursion == 0
        assert publisher.published == []
        assert ledger.documents(SHIPMENTS)[0]["shipmentTrackerEvents"][0]["eventDesc"] == "Normal sensor data"

    def test_humidity_violation_counted(self, shipment_service):
        result = shipment_service.record_telemetry("SHP-001", "DEV-1", warm(-20.0, humidity=75))

        assert result.humidity_range_violation == 1

    def test_missing_device_uses_simulator_id(self, shipment_service, ledger):
        result = shipment_service.record_telemetry("SHP-001", None, warm(-20.0))

        assert result.device_id == SIMULATOR_DEVICE_ID
        assert ledger.documents(SENSOR_DATA)[0]["deviceId"] == SIMULATOR_DEVICE_ID

    def test_missing_humidity_drawn_from_wholesale_range(self, shipment_service, ledger, fixed_humidity):
        shipment_service.record_telemetry("SHP-001", "DEV-1", warm(-20.0))

        assert fixed_humidity.calls == [WHOLESALE_HUMIDITY_RANGE]
        assert ledger.documents(SENSOR_DATA)[0]["humidity"] == 60.0

    def test_sensor_fact_records_position(self, shipment_service, ledger):
        shipment_service.record_telemetry(
            "SHP-001", "DEV-1", warm(-20.0, humidity=40, latitude="33.8688° S", longitude="151.2093° E")
        )

        [fact] = ledger.documents(SENSOR_DATA)
        assert fact["shipmentId"] == "SHP-001"
        assert fact["xaxis"] == pytest.approx(-33.8688)
        assert fact["yaxis"] == pytest.approx(151.2093)
        assert fact["location"] == "CA"
        assert fact["currentOwner"] == "ABC-Manufacturer"

        [document] = ledger.documents(SHIPMENTS)
        assert document["currentGeoLocation"]["latitude"] == "33.8688° S"

    def test_unknown_shipment(self, shipment_service, ledger):
        with pytest.raises(ShipmentNotFoundError):
            shipment_service.record_telemetry("SHP-404", "DEV-1", warm())

        assert ledger.documents(SENSOR_DATA) == []

    def test_malformed_coordinate_commits_nothing(self, shipment_service, ledger, publisher):
        with pytest.raises(MalformedCoordinateError):
            shipment_service.record_telemetry("SHP-001", "DEV-1", warm(latitude="nowhere"))

        assert ledger.documents(SENSOR_DATA) == []
        assert ledger.documents(SHIPMENTS)[0]["temperatureExcursion"] == 0
        assert publisher.published == []

    def test_alert_without_publisher(self, ledger, clock, fixed_humidity):
        service = ShipmentService(ledger, None, clock=clock, humidity_source=fixed_humidity)

        result = service.record_telemetry("SHP-001", "DEV-1", warm())

        assert result.alert is True

    def test_publish_failure_does_not_fail_reading(self, ledger, clock, fixed_humidity, caplog):
        publisher = Mock()
        publisher.publish.side_effect = RuntimeError("broker client crashed")
        service = ShipmentService(ledger, publisher, clock=clock, humidity_source=fixed_humidity)

        with caplog.at_level("ERROR", logger="services.shipments"):
            result = service.record_telemetry("SHP-001", "DEV-1", warm(5.0))

        assert result.alert is True
        assert result.temperature_excursion == 1
        assert ledger.documents(SHIPMENTS)[0]["temperatureExcursion"] == 1
        assert len(ledger.documents(SENSOR_DATA)) == 1
        publisher.publish.assert_called_once()
        assert "Failed to publish temperature alert" in caplog.text


class TestTelemetryHistory:
    """Counters and tracker events across a sequence of readings."""

    @pytest.fixture(autouse=True)
    def shipment(self, shipment_service, make_shipment_request):
        return shipment_service.create_shipment(make_shipment_request())

    @pytest.mark.parametrize("temperatures", [
        [-20.0, -5.0, -30.0, 0.0, -10.0],
        [-10.0, -10.0, -25.0],
        [4.0, -11.0, 8.0, -40.0, -9.5, -15.0],
        [-50.0, -20.0],
    ])
    def test_excursions_count_warm_readings(self, shipment_service, ledger, temperatures):
        seen = []
        for temperature in temperatures:
            result = shipment_service.record_telemetry("SHP-001", "DEV-1", warm(temperature, humidity=50))
            seen.append(result.temperature_excursion)

        assert seen == sorted(seen)
        assert seen[-1] == sum(1 for t in temperatures if t >= -10)
        assert ledger.documents(SHIPMENTS)[0]["temperatureExcursion"] == seen[-1]

    @pytest.mark.parametrize("first,second", [
        (-20.0, -5.0),
        (-5.0, -20.0),
        (-20.0, -30.0),
    ])
    def test_latest_reading_event_comes_first(self, shipment_service, ledger, first, second):
        shipment_service.record_telemetry("SHP-001", "DEV-1", warm(first, humidity=50))
        shipment_service.record_telemetry("SHP-001", "DEV-2", warm(second, humidity=50))

        events = ledger.documents(SHIPMENTS)[0]["shipmentTrackerEvents"]
        facts = {fact["deviceId"]: fact for fact in ledger.documents(SENSOR_DATA)}

        assert [event["eventType"] for event in events] == ["SENSOR_REPORT", "SENSOR_REPORT", "SHIPPING"]
        assert events[0]["eventDate"] == facts["DEV-2"]["eventDate"]
        assert events[1]["eventDate"] == facts["DEV-1"]["eventDate"]
        assert events[0]["eventDate"] > events[1]["eventDate"]

    @pytest.mark.parametrize("field", ["temperature", "humidity"])
    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_reading_rejected(self, field, value):
        fields = {"temperature": -20.0, field: value}

        with pytest.raises(ValidationError):
            SensorReading(**fields)


class TestSimulatedTelemetry:
    """Test the simulator path, which also serves retail legs."""

    def test_master_shipment(self, shipment_service, ledger, fixed_humidity, make_shipment_request):
        shipment_service.create_shipment(make_shipment_request())

        result = shipment_service.record_telemetry_simulated("shp-001", None, warm(-20.0))

        assert result.shipment_id == "SHP-001"
        assert fixed_humidity.calls == [SIMULATED_HUMIDITY_RANGE]
        assert ledger.documents(SENSOR_DATA)[0]["humidity"] == 50.0

    def test_retail_leg(self, shipment_service, retail_service, ledger, publisher, make_shipment_request):
        shipment_service.create_shipment(make_shipment_request())
        retail_service.create_retail_leg(CreateRetailLegRequest(
            retail_shipment_id="rs-001", master_shipment_id="SHP-001", retail_quantity=100
        ))

        result = shipment_service.record_telemetry_simulated("rs-001", "DEV-9", warm(-1.0))

        assert result.alert is True
        [leg] = ledger.documents(RETAIL_SHIPMENTS)
        assert leg["temperatureExcursion"] == 1
        assert leg["shipmentTrackerEvents"][0]["eventOwner"] == "ABC-Wholesaler"
        assert ledger.documents(SHIPMENTS)[0]["temperatureExcursion"] == 0
        assert ledger.documents(SENSOR_DATA)[0]["shipmentId"] == "RS-001"
        assert publisher.published[0]["payload"]["shipmentId"] == "RS-001"

    def test_unknown_retail_leg(self, shipment_service):
        with pytest.raises(ShipmentNotFoundError):
            shipment_service.record_telemetry_simulated("RS-404", None, warm())


class TestTelemetryUnderConflicts:
    """Transaction bodies re-run on conflicts without double counting."""

    @pytest.fixture(autouse=True)
    def shipment(self, shipment_service, make_shipment_request):
        return shipment_service.create_shipment(make_shipment_request())

    def test_retried_body_applies_once(self, shipment_service, ledger, publisher):
        ledger.attempts = 0
        ledger.conflicts = 2

        result = shipment_service.record_telemetry("SHP-001", "DEV-1", warm())

        assert ledger.attempts == 3
        assert result.temperature_excursion == 1
        assert ledger.documents(SHIPMENTS)[0]["temperatureExcursion"] == 1
        assert len(ledger.documents(SENSOR_DATA)) == 1
        assert len(publisher.published) == 1

    def test_concurrent_reading_is_not_lost(self, shipment_service, ledger, publisher):
        """A reading committed between attempts is seen by the retry."""
        ledger.conflicts = 1
        ledger.on_conflict = lambda _: shipment_service.record_telemetry("SHP-001", "DEV-2", warm())

        result = shipment_service.record_telemetry("SHP-001", "DEV-1", warm())

        assert result.temperature_excursion == 2
        [document] = ledger.documents(SHIPMENTS)
        assert document["temperatureExcursion"] == 2
        assert document["deviceId"] == "DEV-1"
        assert sorted(fact["deviceId"] for fact in ledger.documents(SENSOR_DATA)) == ["DEV-1", "DEV-2"]
        assert len(publisher.published) == 2

    def test_exhausted_conflicts(self, shipment_service, ledger, publisher):
        ledger.conflicts = ledger.max_attempts

        with pytest.raises(ConflictExhaustedError):
            shipment_service.record_telemetry("SHP-001", "DEV-1", warm())

        assert ledger.documents(SENSOR_DATA) == []
        assert ledger.documents(SHIPMENTS)[0]["temperatureExcursion"] == 0
        assert publisher.published == []
