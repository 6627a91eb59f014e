# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Response models for API endpoints.
"""

from typing import List, Optional, Dict, Any
from pydantic import Field
from datetime import datetime
from .base import LedgerModel
from .entities import Event, GeoLocation, WayBill
from .enums import ClaimState, ShipmentKind


class CustodyTransferResult(LedgerModel):
    """Result of a custody transfer."""

    shipment_id: str = Field(..., description="Shipment identifier")
    current_role: str = Field(..., description="Role now holding custody")
    next_role: Optional[str] = Field(None, description="Role receiving custody next")
    response: str = Field(..., description="Recorded event description")


class TelemetryResult(LedgerModel):
    """Result of recording a sensor reading."""

    shipment_id: str = Field(..., description="Shipment or retail leg identifier")
    device_id: str = Field(..., description="Reporting device")
    response: float = Field(..., description="Recorded temperature")
    temperature_excursion: int = Field(..., description="Excursion counter after the reading")
    humidity_range_violation: int = Field(..., description="Humidity violation counter after the reading")
    alert: bool = Field(..., description="Whether the reading raised an alert")


class ClaimFiledResult(LedgerModel):
    shipment_id: str
    claim_id: str
    response: str = "New claim request initiated"


class ClaimResolvedResult(LedgerModel):
    shipment_id: str
    claim_id: str
    claim_status: ClaimState
    response: str


class OriginLeg(LedgerModel):
    """Master leg of a provenance tree."""

    shipment_id: str = Field(..., description="Master shipment identifier")
    batch_id: Optional[str] = Field(None, description="Ledger batch identifier")
    device_id: Optional[str] = Field(None, description="Last reporting device")
    way_bill: WayBill = Field(default_factory=WayBill, description="Waybill")


class ChildLeg(LedgerModel):
    """Retail leg of a provenance tree."""

    retail_shipment_id: str = Field(..., description="Retail leg identifier")
    master_shipment_id: str = Field(..., description="Master shipment identifier")
    retail_quantity: int = Field(..., description="Units in this leg")
    way_bill: WayBill = Field(default_factory=WayBill, description="Waybill")
    status: str = Field(..., description="Transit status")
    delivery_date: Optional[datetime] = Field(None, description="Delivery timestamp")


class TrackingProvenance(LedgerModel):
    """Master leg with every retail leg shipped out of it."""

    origin_leg: OriginLeg
    child_legs: List[ChildLeg] = Field(default_factory=list)


class ShipmentReportRow(LedgerModel):
    """Shipment projection used by party, risk and claim reports."""

    shipment_id: str
    shipping_date: datetime
    vaccine_name: str
    quantity: int
    manufacturer: str
    status: str
    insurer: Optional[str] = None
    policy_id: Optional[str] = None
    insured_value: Optional[float] = None
    claim_state: ClaimState = ClaimState.UNCLAIMED
    claim_id: Optional[str] = None
    claim_request_date: Optional[datetime] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    temperature_alert: int = Field(0, description="Temperature excursion counter")
    current_role: Optional[str] = None
    current_geo_location: Optional[GeoLocation] = None


class RecentShipment(LedgerModel):
    shipment_id: str
    shipping_date: datetime
    kind: ShipmentKind
    master_shipment_id: Optional[str] = None


class SensorSeriesPoint(LedgerModel):
    """One point of a temperature or humidity series."""

    shipment_id: str
    device_id: str
    value: float
    event_date: datetime
    tx_time: datetime = Field(..., description="Ledger commit time")


class AuditTrailEntry(LedgerModel):
    """Sensor fact with its ledger metadata."""

    shipment_id: str
    device_id: str
    temperature: float
    humidity: float
    event_date: datetime
    temp_hash: Optional[str] = None
    document_id: str
    version: int
    tx_time: datetime
    hash: str = Field(..., description="SHA-256 of the stored document")


class ShipmentMovements(LedgerModel):
    """Tracker log of a shipment, newest event first."""

    shipment_id: str
    status: str
    manufacturer: Optional[str] = None
    vaccine_name: Optional[str] = None
    current_role: str
    shipment_tracker_events: List[Event] = Field(default_factory=list)


class LatestSensorReading(LedgerModel):
    shipment_id: str
    device_id: str
    temperature: float
    humidity: float
    current_geo_location: GeoLocation
    event_date: datetime
    tx_time: datetime


class GraphPoint(LedgerModel):
    """Temperature alerts and position of one shipment."""

    shipment_id: str
    temperature_alert: int
    latitude: str
    longitude: str
    xaxis: float
    yaxis: float
    location: Optional[str] = None


class RevisionEntry(LedgerModel):
    """Committed revision of a ledger document."""

    document_id: str
    version: int
    tx_time: datetime
    hash: str
    data: Dict[str, Any] = Field(default_factory=dict)


class CountResult(LedgerModel):
    count: int = Field(..., ge=0)


class HealthCheckResponse(LedgerModel):
    """Health check response model."""

    status: str = Field(..., description="Overall health status")
    version: str = Field(..., description="Application version")
    environment: str = Field(..., description="Environment name")
    timestamp: datetime = Field(..., description="Check timestamp")
    dependencies: Dict[str, Dict[str, Any]] = Field(default_factory=dict, description="Dependency health")


class ErrorResponse(LedgerModel):
    """Error body returned for every failed request."""

    status: int = Field(..., description="HTTP status code")
    type: str = Field(..., description="Stable error kind")
    title: str = Field(..., description="Error title")
    detail: str = Field(..., description="Error detail")
    entity: Optional[str] = Field(None, description="Entity a reporting query was scoped to")
