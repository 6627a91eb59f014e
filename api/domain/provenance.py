# SPDX-License-Identifier: Apache-2.0

"""
Retail leg creation and provenance assembly.
"""

from datetime import datetime
from typing import Iterable, List
from models.entities import GeoLocation, RetailShipment, Shipment
from models.enums import ShipmentRole, ShipmentStatus
from models.requests import CreateRetailLegRequest
from models.responses import ChildLeg, OriginLeg, TrackingProvenance


DEFAULT_WHOLESALER = "ABC-Wholesaler"


def new_retail_leg(request: CreateRetailLegRequest, now: datetime) -> RetailShipment:
    """Build a freshly created retail leg held by the wholesaler."""
    return RetailShipment(
        retail_shipment_id=request.retail_shipment_id.upper(),
        master_shipment_id=request.master_shipment_id.upper(),
        retail_quantity=request.retail_quantity,
        way_bill=request.way_bill,
        current_geo_location=GeoLocation(),
        temperature_excursion=0,
        humidity_range_violation=0,
        wholesaler=DEFAULT_WHOLESALER,
        current_owner=DEFAULT_WHOLESALER,
        current_role=ShipmentRole.WHOLESALER,
        status=ShipmentStatus.IN_TRANSIT,
        shipping_date=now,
        shipment_tracker_events=[]
    )


def origin_leg(shipment: Shipment) -> OriginLeg:
    return OriginLeg(
        shipment_id=shipment.shipment_id,
        batch_id=shipment.batch_id,
        device_id=shipment.device_id,
        way_bill=shipment.way_bill
    )


def child_leg(leg: RetailShipment) -> ChildLeg:
    return ChildLeg(
        retail_shipment_id=leg.retail_shipment_id,
        master_shipment_id=leg.master_shipment_id,
        retail_quantity=leg.retail_quantity,
        way_bill=leg.way_bill,
        status=leg.status,
        delivery_date=leg.delivery_date
    )


def assemble_provenance(shipment: Shipment, legs: Iterable[RetailShipment]) -> TrackingProvenance:
    """
    Tree of a master shipment and its retail legs.

    Legs are listed by shipping date, oldest first, with the leg identifier
    as tiebreak. A master without legs yields an empty child list.
    """
    ordered: List[RetailShipment] = sorted(
        legs, key=lambda leg: (leg.shipping_date, leg.retail_shipment_id)
    )
    return TrackingProvenance(
        origin_leg=origin_leg(shipment),
        child_legs=[child_leg(leg) for leg in ordered]
    )
