# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the cold-chain ledger.
"""

from enum import Enum


class ShipmentRole(str, Enum):
    """Custody roles along the supply chain."""
    MANUFACTURER = "Manufacturer"
    LOGISTICS = "Logistics"
    WHOLESALER = "Wholesaler"
    RETAILER = "Retailer"


class ShipmentStatus(str, Enum):
    """Shipment transit status."""
    IN_TRANSIT = "In-Transit"
    DELIVERED = "Delivered"


class ClaimState(str, Enum):
    """Insurance claim workflow state."""
    UNCLAIMED = "Unclaimed"
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ClaimDecision(str, Enum):
    """Outcomes that close a pending claim."""
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ShipmentKind(str, Enum):
    """Leg type of a shipment identifier."""
    MASTER = "Master"
    RETAIL_LEG = "RetailLeg"


class Axis(str, Enum):
    """Coordinate axis."""
    LATITUDE = "latitude"
    LONGITUDE = "longitude"


class HemisphereConvention(str, Enum):
    """Sign conventions applied when normalizing coordinates."""
    FRESH = "fresh"
    FALLBACK = "fallback"


class EventType(str, Enum):
    """Tracker event types."""
    SHIPPING = "SHIPPING"
    CUSTODY_TRANSFER = "CUSTODY_TRANSFER"
    RECEIVING = "RECEIVING"
    SENSOR_REPORT = "SENSOR_REPORT"
