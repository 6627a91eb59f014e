# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the cold-chain ledger.
"""

from datetime import datetime
from typing import List, Optional, Union
from pydantic import AliasChoices, Field, field_validator
from .base import LedgerModel, utc_now
from .enums import ShipmentRole, ShipmentStatus, ClaimState


DEFAULT_LATITUDE = "12.9716° N"
DEFAULT_LONGITUDE = "77.5946° E"
DEFAULT_LOCATION = "CA"


class WayBill(LedgerModel):
    """Origin, destination and carrier of a shipment leg."""

    origin: Optional[str] = Field(None, description="Shipping party")
    origin_role: Optional[str] = Field(None, description="Role of the shipping party")
    origin_address: Optional[str] = Field(None, description="Shipping address")
    destination: Optional[str] = Field(None, description="Receiving party")
    destination_role: Optional[str] = Field(None, description="Role of the receiving party")
    destination_address: Optional[str] = Field(None, description="Receiving address")
    logistics: Optional[str] = Field(None, description="Carrier")


class GeoLocation(LedgerModel):
    """Last known position: raw hemisphere strings plus signed decimal axes."""

    latitude: str = Field(DEFAULT_LATITUDE, description="Latitude as reported")
    xaxis: float = Field(12.9716, description="Signed decimal latitude")
    longitude: str = Field(DEFAULT_LONGITUDE, description="Longitude as reported")
    yaxis: float = Field(77.5946, description="Signed decimal longitude")
    location: Optional[str] = Field(DEFAULT_LOCATION, description="Named location")


class Event(LedgerModel):
    """Entry of a shipment's tracker log."""

    event_owner: str = Field(..., description="Party that recorded the event")
    event_role: str = Field(..., description="Role of the recording party")
    event_type: str = Field(..., description="Event type")
    event_desc: str = Field(..., description="Event description")
    sensor_condition: str = Field(..., description="Sensor condition at event time")
    event_date: datetime = Field(default_factory=utc_now, description="Event timestamp")
    next_role: Optional[str] = Field(None, description="Role receiving custody next")


class Shipment(LedgerModel):
    """Master shipment aggregate."""

    shipment_id: str = Field(..., min_length=1, description="Unique shipment identifier")
    vaccine_name: str = Field(..., description="Vaccine name")
    quantity: int = Field(..., ge=0, description="Units shipped")
    shipping_date: datetime = Field(default_factory=utc_now, description="Shipping timestamp")
    manufacturer: str = Field(..., description="Manufacturing party")
    current_owner: str = Field(..., description="Party holding custody")
    current_role: ShipmentRole = Field(..., description="Role holding custody")
    status: ShipmentStatus = Field(default=ShipmentStatus.IN_TRANSIT, description="Transit status")
    temperature_excursion: int = Field(default=0, ge=0, description="Temperature excursion counter")
    humidity_range_violation: int = Field(default=0, ge=0, description="Humidity violation counter")
    policy_id: str = Field(..., description="Insurance policy identifier")
    insurer: str = Field(..., description="Insurer")
    insured_value: float = Field(..., ge=0, allow_inf_nan=False, description="Insured value")
    claim_state: ClaimState = Field(default=ClaimState.UNCLAIMED, description="Claim workflow state")
    claim_id: Optional[str] = Field(None, description="Claim identifier")
    claim_request_date: Optional[datetime] = Field(None, description="Claim request timestamp")
    shipment_tracker_events: List[Event] = Field(default_factory=list, description="Tracker log, newest first")
    way_bill: WayBill = Field(default_factory=WayBill, description="Waybill")
    current_geo_location: GeoLocation = Field(default_factory=GeoLocation, description="Last known position")
    device_id: Optional[str] = Field(None, description="Last reporting sensor device")
    batch_id: Optional[str] = Field(None, description="Ledger document identifier")


class RetailShipment(LedgerModel):
    """Retail leg shipped out of a master shipment."""

    retail_shipment_id: str = Field(..., min_length=1, description="Unique retail leg identifier")
    master_shipment_id: str = Field(..., min_length=1, description="Master shipment identifier")
    retail_quantity: int = Field(..., ge=0, description="Units in this leg")
    way_bill: WayBill = Field(default_factory=WayBill, description="Waybill")
    current_geo_location: GeoLocation = Field(default_factory=GeoLocation, description="Last known position")
    temperature_excursion: int = Field(default=0, ge=0, description="Temperature excursion counter")
    humidity_range_violation: int = Field(default=0, ge=0, description="Humidity violation counter")
    wholesaler: str = Field(..., description="Wholesaling party")
    current_owner: str = Field(..., description="Party holding custody")
    current_role: ShipmentRole = Field(default=ShipmentRole.WHOLESALER, description="Role holding custody")
    status: ShipmentStatus = Field(default=ShipmentStatus.IN_TRANSIT, description="Transit status")
    shipping_date: datetime = Field(default_factory=utc_now, description="Shipping timestamp")
    delivery_date: Optional[datetime] = Field(None, description="Delivery timestamp")
    device_id: Optional[str] = Field(None, description="Last reporting sensor device")
    shipment_tracker_events: List[Event] = Field(default_factory=list, description="Tracker log, newest first")


class SensorReading(LedgerModel):
    """A single reading submitted by a sensor or the simulator."""

    temperature: float = Field(
        ...,
        validation_alias=AliasChoices("temperature", "temp"),
        allow_inf_nan=False,
        description="Temperature in degrees Celsius"
    )
    humidity: Optional[float] = Field(None, allow_inf_nan=False, description="Relative humidity; synthesized when absent")
    latitude: Optional[str] = Field(None, description="Latitude, e.g. '12.9716° N'")
    longitude: Optional[str] = Field(None, description="Longitude, e.g. '77.5946° E'")
    location: Optional[str] = Field(None, description="Named location")

    @field_validator('latitude', 'longitude', mode='before')
    @classmethod
    def coerce_coordinate(cls, v: Union[str, float, int, None]):
        """Accept bare numbers for coordinates."""
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, bool):
            raise ValueError('Coordinate must be a string or a number')
        return str(v)


class SensorData(LedgerModel):
    """Append-only telemetry fact, one per reading."""

    shipment_id: str
    device_id: str
    temperature: float
    humidity: float
    latitude: str
    longitude: str
    xaxis: float
    yaxis: float
    location: Optional[str] = None
    event_date: datetime = Field(default_factory=utc_now)
    current_role: str
    current_owner: str
    temp_hash: Optional[str] = Field(None, description="Readable device/time/temperature fingerprint")


class Claim(LedgerModel):
    """Append-only insurance claim fact."""

    shipment_id: str
    policy_id: str
    claim_id: str
    claim_request_date: datetime
    claim_status: ClaimState
    insured_value: Optional[float] = None
