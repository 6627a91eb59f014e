# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Ledger document codec.

Ledger documents keep the legacy field encoding: a shipment without a claim
carries ``claimId = "NC"`` and ``"NA"`` in the other claim fields, and retail
legs are recognized by an ``RS`` identifier prefix. Translation between that
encoding and the typed models happens here and nowhere else.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from .entities import Shipment, RetailShipment, SensorData, Claim
from .enums import ClaimState, ShipmentKind


# Collection names
SHIPMENTS = "Shipment"
RETAIL_SHIPMENTS = "RetailShipment"
SENSOR_DATA = "SensorData"
CLAIMS = "Claim"

NO_CLAIM_ID = "NC"
NOT_APPLICABLE = "NA"
RETAIL_PREFIX = "RS"

# Fields managed by the ledger itself
LEDGER_FIELDS = ("_id", "metadata", "hash")


def shipment_kind(identifier: str) -> ShipmentKind:
    """Leg type of an identifier: retail legs carry an ``RS`` prefix."""
    if identifier[:2].upper() == RETAIL_PREFIX:
        return ShipmentKind.RETAIL_LEG
    return ShipmentKind.MASTER


def strip_ledger_fields(document: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in document.items() if k not in LEDGER_FIELDS}


def claimed_filter() -> Dict[str, Any]:
    """Filter matching shipments that carry a claim."""
    return {"claimId": {"$ne": NO_CLAIM_ID}}


def is_claimed(document: Dict[str, Any]) -> bool:
    return document.get("claimId", NO_CLAIM_ID) != NO_CLAIM_ID


def claim_fields(state: ClaimState, claim_id: Optional[str] = None,
                 request_date: Optional[datetime] = None) -> Dict[str, Any]:
    """Encode a claim state into the stored shipment claim fields."""
    state = ClaimState(state)
    if state == ClaimState.UNCLAIMED:
        return {
            "claimId": NO_CLAIM_ID,
            "claimStatus": NOT_APPLICABLE,
            "claimRequestDate": NOT_APPLICABLE,
        }
    return {
        "claimId": claim_id,
        "claimStatus": state.value,
        "claimRequestDate": request_date,
    }


def decode_claim_state(document: Dict[str, Any]) -> ClaimState:
    if not is_claimed(document):
        return ClaimState.UNCLAIMED
    return ClaimState(document["claimStatus"])


def encode_shipment(shipment: Shipment) -> Dict[str, Any]:
    """Shipment model to ledger document."""
    document = shipment.model_dump(by_alias=True, exclude={"claim_state", "claim_id", "claim_request_date"})
    document.update(claim_fields(shipment.claim_state, shipment.claim_id, shipment.claim_request_date))
    return document


def decode_shipment(document: Dict[str, Any]) -> Shipment:
    """Ledger document to Shipment model."""
    data = strip_ledger_fields(document)
    state = decode_claim_state(data)
    claim_id = data.pop("claimId", None)
    request_date = data.pop("claimRequestDate", None)
    data.pop("claimStatus", None)
    if state != ClaimState.UNCLAIMED:
        data["claimId"] = claim_id
        data["claimRequestDate"] = request_date
    data["claimState"] = state
    return Shipment.model_validate(data)


def encode_retail_shipment(leg: RetailShipment) -> Dict[str, Any]:
    return leg.model_dump(by_alias=True)


def decode_retail_shipment(document: Dict[str, Any]) -> RetailShipment:
    return RetailShipment.model_validate(strip_ledger_fields(document))


def encode_sensor_data(fact: SensorData) -> Dict[str, Any]:
    return fact.model_dump(by_alias=True)


def decode_sensor_data(document: Dict[str, Any]) -> SensorData:
    return SensorData.model_validate(strip_ledger_fields(document))


def encode_claim(claim: Claim) -> Dict[str, Any]:
    return claim.model_dump(by_alias=True)


def decode_claim(document: Dict[str, Any]) -> Claim:
    return Claim.model_validate(strip_ledger_fields(document))
