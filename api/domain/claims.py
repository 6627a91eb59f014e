# SPDX-License-Identifier: Apache-2.0

"""
Insurance claim workflow.

A shipment moves Unclaimed -> Pending when a claim is filed and Pending ->
Approved | Rejected when it is resolved. Each transition also produces an
append-only Claim fact.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from models.entities import Claim, Shipment
from models.enums import ClaimDecision, ClaimState
from .errors import ClaimAlreadyExistsError, ClaimTransitionError


CLAIM_PREFIX = "CLM-"


@dataclass(frozen=True)
class ClaimTransition:
    """New claim fields for the shipment plus the fact recording them."""
    state: ClaimState
    claim_id: str
    request_date: datetime
    fact: Claim


def claim_id_for(policy_id: str) -> str:
    return f"{CLAIM_PREFIX}{policy_id}"


def file_claim(
    shipment: Shipment,
    policy_id: str,
    insured_value: Optional[float],
    now: datetime
) -> ClaimTransition:
    """
    Open a claim on an unclaimed shipment.

    Raises:
        ClaimAlreadyExistsError: If the shipment already carries a claim
    """
    if shipment.claim_state != ClaimState.UNCLAIMED:
        raise ClaimAlreadyExistsError(
            f"Shipment {shipment.shipment_id} already has claim {shipment.claim_id} "
            f"in state {ClaimState(shipment.claim_state).value}"
        )

    claim_id = claim_id_for(policy_id)
    if insured_value is None:
        insured_value = shipment.insured_value

    fact = Claim(
        shipment_id=shipment.shipment_id,
        policy_id=policy_id,
        claim_id=claim_id,
        claim_request_date=now,
        claim_status=ClaimState.PENDING,
        insured_value=insured_value
    )
    return ClaimTransition(ClaimState.PENDING, claim_id, now, fact)


def resolve_claim(shipment: Shipment, decision: ClaimDecision, now: datetime) -> ClaimTransition:
    """
    Approve or reject a pending claim.

    The claim keeps its id and request date; the fact records the decision
    time.

    Raises:
        ClaimTransitionError: If the shipment has no pending claim
    """
    state = ClaimState(shipment.claim_state)
    if state != ClaimState.PENDING:
        raise ClaimTransitionError(
            f"Claim on shipment {shipment.shipment_id} is {state.value}, only Pending claims can be resolved"
        )

    new_state = ClaimState(ClaimDecision(decision).value)
    fact = Claim(
        shipment_id=shipment.shipment_id,
        policy_id=shipment.policy_id,
        claim_id=shipment.claim_id,
        claim_request_date=now,
        claim_status=new_state,
        insured_value=shipment.insured_value
    )
    return ClaimTransition(new_state, shipment.claim_id, shipment.claim_request_date, fact)
