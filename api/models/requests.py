# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.
"""

from typing import Optional
from pydantic import BaseModel, Field, field_validator
from .base import LedgerModel
from .entities import WayBill, GeoLocation, SensorReading
from .enums import ClaimDecision, ShipmentRole


def _upper_identifier(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError('Identifier must not be blank')
    return v.upper()


class CreateShipmentRequest(LedgerModel):
    """Request model for creating a master shipment."""

    shipment_id: str = Field(..., min_length=1, max_length=100, description="Shipment identifier")
    vaccine_name: str = Field(..., min_length=1, max_length=200, description="Vaccine name")
    quantity: int = Field(..., ge=0, description="Units shipped")
    policy_id: str = Field(..., min_length=1, max_length=100, description="Insurance policy identifier")
    insurer: str = Field(..., min_length=1, max_length=200, description="Insurer")
    insured_value: float = Field(..., ge=0, allow_inf_nan=False, description="Insured value")
    way_bill: WayBill = Field(default_factory=WayBill, description="Waybill")
    current_geo_location: Optional[GeoLocation] = Field(None, description="Starting position")

    @field_validator('shipment_id')
    @classmethod
    def normalize_shipment_id(cls, v):
        return _upper_identifier(v)


class EventDetails(LedgerModel):
    """Caller-supplied part of a custody transfer event."""

    event_type: str = Field(..., min_length=1, description="Event type")
    event_desc: str = Field(..., min_length=1, description="Event description")


class TransferCustodyRequest(LedgerModel):
    """Request model for handing a shipment to the next party."""

    current_owner: str = Field(..., min_length=1, description="Party taking custody")
    current_role: ShipmentRole = Field(..., description="Role taking custody")
    next_role: Optional[ShipmentRole] = Field(None, description="Role receiving custody next")
    shipment_tracker_event: EventDetails = Field(..., description="Event to record")


class TelemetryRequest(LedgerModel):
    """Request model for a sensor reading."""

    device_id: Optional[str] = Field(None, description="Reporting device; simulator id when absent")
    telemetry: SensorReading = Field(..., description="Sensor reading")


class CreateRetailLegRequest(LedgerModel):
    """Request model for shipping a retail leg out of a master shipment."""

    retail_shipment_id: str = Field(..., min_length=1, max_length=100, description="Retail leg identifier")
    master_shipment_id: str = Field(..., min_length=1, max_length=100, description="Master shipment identifier")
    retail_quantity: int = Field(..., ge=0, description="Units in this leg")
    way_bill: WayBill = Field(default_factory=WayBill, description="Waybill")

    @field_validator('retail_shipment_id', 'master_shipment_id')
    @classmethod
    def normalize_identifiers(cls, v):
        """Identifiers are matched case-insensitively."""
        return _upper_identifier(v)


class FileClaimRequest(LedgerModel):
    """Request model for filing an insurance claim."""

    shipment_id: str = Field(..., min_length=1, description="Claimed shipment")
    policy_id: str = Field(..., min_length=1, description="Insurance policy identifier")
    insured_value: Optional[float] = Field(None, ge=0, allow_inf_nan=False, description="Claimed value")

    @field_validator('shipment_id')
    @classmethod
    def normalize_shipment_id(cls, v):
        return _upper_identifier(v)


class ResolveClaimRequest(LedgerModel):
    """Request model for approving or rejecting a pending claim."""

    decision: ClaimDecision = Field(..., description="Claim outcome")


class ShipmentPath(BaseModel):
    shipment_id: str = Field(..., description="Shipment or retail leg identifier")


class PartyQuery(BaseModel):
    party: Optional[str] = Field(None, description="Manufacturer scope")
