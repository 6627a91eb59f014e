# SPDX-License-Identifier: Apache-2.0

"""
Shipment lifecycle domain logic.

Pure state transitions for master shipments and the telemetry update shared by
master and retail legs. Every function works on state read inside the current
transaction attempt and returns new values; nothing here touches the ledger.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple, Union
from models.entities import (
    Event, GeoLocation, RetailShipment, SensorData, SensorReading, Shipment
)
from models.enums import ClaimState, EventType, ShipmentRole, ShipmentStatus
from models.requests import CreateShipmentRequest, EventDetails
from .geo import resolve_position
from .risk import (
    RiskAssessment, RiskCounters, HumiditySource, assess_reading,
    random_humidity, reading_humidity, resolve_device_id, temperature_fingerprint
)


DEFAULT_MANUFACTURER = "ABC-Manufacturer"
NORMAL_CONDITION = "Active, normal readings"
ABNORMAL_CONDITION = "Active, abnormal readings"

Leg = Union[Shipment, RetailShipment]


def initial_event(now: datetime) -> Event:
    """Synthetic first tracker event of a new shipment."""
    return Event(
        event_owner=DEFAULT_MANUFACTURER,
        event_role=ShipmentRole.MANUFACTURER.value,
        event_type=EventType.SHIPPING.value,
        event_desc="Left Facility",
        sensor_condition=NORMAL_CONDITION,
        event_date=now
    )


def new_shipment(request: CreateShipmentRequest, now: datetime) -> Shipment:
    """Build a freshly created master shipment."""
    return Shipment(
        shipment_id=request.shipment_id.upper(),
        vaccine_name=request.vaccine_name,
        quantity=request.quantity,
        shipping_date=now,
        manufacturer=DEFAULT_MANUFACTURER,
        current_owner=DEFAULT_MANUFACTURER,
        current_role=ShipmentRole.MANUFACTURER,
        status=ShipmentStatus.IN_TRANSIT,
        temperature_excursion=0,
        humidity_range_violation=0,
        policy_id=request.policy_id,
        insurer=request.insurer,
        insured_value=request.insured_value,
        claim_state=ClaimState.UNCLAIMED,
        shipment_tracker_events=[initial_event(now)],
        way_bill=request.way_bill,
        current_geo_location=request.current_geo_location or GeoLocation()
    )


def batch_id_for(document_id: str) -> str:
    return str(document_id).upper()


def prepend_event(events: List[Event], event: Event) -> List[Event]:
    """Tracker log with ``event`` as the newest entry."""
    return [event] + list(events)


def custody_event(
    details: EventDetails,
    current_owner: str,
    current_role: str,
    next_role: Optional[str],
    now: datetime
) -> Event:
    """Complete a caller-supplied event with the custody details."""
    return Event(
        event_owner=current_owner,
        event_role=current_role,
        event_type=details.event_type,
        event_desc=details.event_desc,
        sensor_condition=NORMAL_CONDITION,
        event_date=now,
        next_role=next_role
    )


@dataclass(frozen=True)
class TelemetryUpdate:
    """Everything one reading changes on a leg."""
    device_id: str
    assessment: RiskAssessment
    position: GeoLocation
    events: List[Event]
    fact: SensorData
    temp_hash: str

    @property
    def counters(self) -> RiskCounters:
        return self.assessment.counters


def apply_reading(
    leg_id: str,
    leg: Leg,
    device_id: Optional[str],
    reading: SensorReading,
    now: datetime,
    humidity_range: Tuple[int, int],
    humidity_source: HumiditySource = random_humidity
) -> TelemetryUpdate:
    """
    Derive the update a reading makes to a shipment leg.

    Counters, position and tracker log are computed from ``leg`` as read in
    the current transaction attempt, so re-running this for a retried
    transaction yields the same increments against the fresh state.
    """
    device_id = resolve_device_id(device_id)
    humidity = reading_humidity(reading.humidity, humidity_range, humidity_source)

    current = RiskCounters(leg.temperature_excursion, leg.humidity_range_violation)
    assessment = assess_reading(current, reading.temperature, humidity)
    position = resolve_position(reading, leg.current_geo_location)
    temp_hash = temperature_fingerprint(device_id, now, reading.temperature)

    event = Event(
        event_owner=leg.current_owner,
        event_role=leg.current_role,
        event_type=EventType.SENSOR_REPORT.value,
        event_desc=assessment.event_desc,
        sensor_condition=ABNORMAL_CONDITION if assessment.alert else NORMAL_CONDITION,
        event_date=now
    )

    fact = SensorData(
        shipment_id=leg_id,
        device_id=device_id,
        temperature=reading.temperature,
        humidity=humidity,
        latitude=position.latitude,
        longitude=position.longitude,
        xaxis=position.xaxis,
        yaxis=position.yaxis,
        location=position.location,
        event_date=now,
        current_role=leg.current_role,
        current_owner=leg.current_owner,
        temp_hash=temp_hash
    )

    return TelemetryUpdate(
        device_id=device_id,
        assessment=assessment,
        position=position,
        events=prepend_event(leg.shipment_tracker_events, event),
        fact=fact,
        temp_hash=temp_hash
    )
