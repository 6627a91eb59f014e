# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and ledger documents for the cold-chain ledger.
"""

# Base models
from .base import LedgerModel, utc_now

# Enumerations
from .enums import (
    ShipmentRole,
    ShipmentStatus,
    ClaimState,
    ClaimDecision,
    ShipmentKind,
    Axis,
    HemisphereConvention,
    EventType
)

# Core entities
from .entities import (
    WayBill,
    GeoLocation,
    Event,
    Shipment,
    RetailShipment,
    SensorReading,
    SensorData,
    Claim
)

# Request models
from .requests import (
    CreateShipmentRequest,
    EventDetails,
    TransferCustodyRequest,
    TelemetryRequest,
    CreateRetailLegRequest,
    FileClaimRequest,
    ResolveClaimRequest,
    ShipmentPath,
    PartyQuery
)

# Response models
from .responses import (
    CustodyTransferResult,
    TelemetryResult,
    ClaimFiledResult,
    ClaimResolvedResult,
    OriginLeg,
    ChildLeg,
    TrackingProvenance,
    ShipmentReportRow,
    RecentShipment,
    SensorSeriesPoint,
    AuditTrailEntry,
    ShipmentMovements,
    LatestSensorReading,
    GraphPoint,
    RevisionEntry,
    CountResult,
    HealthCheckResponse,
    ErrorResponse
)

__all__ = [
    # Base models
    "LedgerModel",
    "utc_now",

    # Enumerations
    "ShipmentRole",
    "ShipmentStatus",
    "ClaimState",
    "ClaimDecision",
    "ShipmentKind",
    "Axis",
    "HemisphereConvention",
    "EventType",

    # Core entities
    "WayBill",
    "GeoLocation",
    "Event",
    "Shipment",
    "RetailShipment",
    "SensorReading",
    "SensorData",
    "Claim",

    # Request models
    "CreateShipmentRequest",
    "EventDetails",
    "TransferCustodyRequest",
    "TelemetryRequest",
    "CreateRetailLegRequest",
    "FileClaimRequest",
    "ResolveClaimRequest",
    "ShipmentPath",
    "PartyQuery",

    # Response models
    "CustodyTransferResult",
    "TelemetryResult",
    "ClaimFiledResult",
    "ClaimResolvedResult",
    "OriginLeg",
    "ChildLeg",
    "TrackingProvenance",
    "ShipmentReportRow",
    "RecentShipment",
    "SensorSeriesPoint",
    "AuditTrailEntry",
    "ShipmentMovements",
    "LatestSensorReading",
    "GraphPoint",
    "RevisionEntry",
    "CountResult",
    "HealthCheckResponse",
    "ErrorResponse"
]
