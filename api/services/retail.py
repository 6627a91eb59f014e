# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Retail leg and provenance service.
"""

import logging
from datetime import datetime
from typing import Callable
from pymongo.errors import DuplicateKeyError
from opentelemetry import trace
from domain.errors import (
    DuplicateRetailShipmentError, MasterShipmentNotFoundError, ShipmentNotFoundError
)
from domain.provenance import assemble_provenance, new_retail_leg
from models.base import utc_now
from models.documents import (
    SHIPMENTS, RETAIL_SHIPMENTS, decode_retail_shipment, decode_shipment, encode_retail_shipment
)
from models.entities import RetailShipment
from models.requests import CreateRetailLegRequest
from models.responses import TrackingProvenance

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class RetailService:
    """Manager for retail legs shipped out of master shipments."""

    def __init__(self, ledger, clock: Callable[[], datetime] = utc_now):
        self.ledger = ledger
        self.clock = clock

    def create_retail_leg(self, request: CreateRetailLegRequest) -> RetailShipment:
        """
        Create a retail leg held by the wholesaler.

        Raises:
            DuplicateRetailShipmentError: If the leg id is already taken
            MasterShipmentNotFoundError: If the master shipment does not exist
        """
        leg_id = request.retail_shipment_id.upper()
        master_id = request.master_shipment_id.upper()

        def body(txn) -> RetailShipment:
            if txn.count(RETAIL_SHIPMENTS, {"retailShipmentId": leg_id}) > 0:
                raise DuplicateRetailShipmentError(
                    f"RetailShipment record with RetailShipmentId {leg_id} already exists"
                )
            if txn.find_one(SHIPMENTS, {"shipmentId": master_id}) is None:
                raise MasterShipmentNotFoundError(
                    f"Origin Shipment record with ShipmentId {master_id} does not exist"
                )

            leg = new_retail_leg(request, self.clock())
            txn.insert(RETAIL_SHIPMENTS, encode_retail_shipment(leg))
            return leg

        with tracer.start_as_current_span("retail.create") as span:
            span.set_attributes({"retail.id": leg_id, "shipment.id": master_id})
            try:
                leg = self.ledger.execute_in_transaction(body)
            except DuplicateKeyError as e:
                raise DuplicateRetailShipmentError(
                    f"RetailShipment record with RetailShipmentId {leg_id} already exists"
                ) from e

        logger.info(
            f"Created retail leg {leg_id} from shipment {master_id}",
            extra={"extra_fields": {"retail_shipment_id": leg_id, "master_shipment_id": master_id}}
        )
        return leg

    def get_tracking_provenance(self, shipment_id: str) -> TrackingProvenance:
        """
        Master shipment with all of its retail legs.

        Raises:
            ShipmentNotFoundError: If the master shipment does not exist
        """
        shipment_id = shipment_id.upper()

        def body(txn) -> TrackingProvenance:
            document = txn.find_one(SHIPMENTS, {"shipmentId": shipment_id})
            if document is None:
                raise ShipmentNotFoundError(f"Shipment record with ShipmentId {shipment_id} does not exist")

            legs = txn.find(RETAIL_SHIPMENTS, {"masterShipmentId": shipment_id})
            return assemble_provenance(
                decode_shipment(document),
                [decode_retail_shipment(leg) for leg in legs]
            )

        with tracer.start_as_current_span("retail.provenance") as span:
            span.set_attribute("shipment.id", shipment_id)
            return self.ledger.execute_in_transaction(body)
