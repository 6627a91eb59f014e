# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Insurance claim service.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional
from opentelemetry import trace
from domain import claims as claim_rules
from domain.errors import ClaimSubjectNotFoundError
from domain.reporting import by_field, require_rows, sort_newest_first
from models.base import utc_now
from models.documents import (
    SHIPMENTS, CLAIMS, claim_fields, decode_claim, decode_shipment, encode_claim
)
from models.entities import Claim
from models.enums import ClaimDecision
from models.responses import ClaimFiledResult, ClaimResolvedResult

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class ClaimService:
    """Manager for the claim workflow of a shipment."""

    def __init__(self, ledger, clock: Callable[[], datetime] = utc_now):
        self.ledger = ledger
        self.clock = clock

    def _load_subject(self, txn, shipment_id: str):
        document = txn.find_one(SHIPMENTS, {"shipmentId": shipment_id})
        if document is None:
            raise ClaimSubjectNotFoundError(f"Shipment record with ShipmentId {shipment_id} does not exist")
        return decode_shipment(document)

    def file_claim(self, shipment_id: str, policy_id: str,
                   insured_value: Optional[float] = None) -> ClaimFiledResult:
        """
        File a claim against a shipment.

        The shipment's claim fields and the Claim fact are written in the same
        transaction.

        Raises:
            ClaimSubjectNotFoundError: If the shipment does not exist
            ClaimAlreadyExistsError: If the shipment already carries a claim
        """
        shipment_id = shipment_id.upper()

        def body(txn) -> claim_rules.ClaimTransition:
            shipment = self._load_subject(txn, shipment_id)
            transition = claim_rules.file_claim(shipment, policy_id, insured_value, self.clock())
            txn.update_one(
                SHIPMENTS,
                {"shipmentId": shipment_id},
                claim_fields(transition.state, transition.claim_id, transition.request_date)
            )
            txn.insert(CLAIMS, encode_claim(transition.fact))
            return transition

        with tracer.start_as_current_span("claims.file") as span:
            span.set_attribute("shipment.id", shipment_id)
            transition = self.ledger.execute_in_transaction(body)

        logger.info(
            f"Filed claim {transition.claim_id} for shipment {shipment_id}",
            extra={"extra_fields": {"shipment_id": shipment_id, "claim_id": transition.claim_id}}
        )
        return ClaimFiledResult(shipment_id=shipment_id, claim_id=transition.claim_id)

    def resolve_claim(self, shipment_id: str, decision: ClaimDecision) -> ClaimResolvedResult:
        """
        Approve or reject the pending claim of a shipment.

        Raises:
            ClaimSubjectNotFoundError: If the shipment does not exist
            ClaimTransitionError: If the shipment has no pending claim
        """
        shipment_id = shipment_id.upper()

        def body(txn) -> claim_rules.ClaimTransition:
            shipment = self._load_subject(txn, shipment_id)
            transition = claim_rules.resolve_claim(shipment, decision, self.clock())
            txn.update_one(
                SHIPMENTS,
                {"shipmentId": shipment_id},
                claim_fields(transition.state, transition.claim_id, transition.request_date)
            )
            txn.insert(CLAIMS, encode_claim(transition.fact))
            return transition

        with tracer.start_as_current_span("claims.resolve") as span:
            span.set_attribute("shipment.id", shipment_id)
            transition = self.ledger.execute_in_transaction(body)

        logger.info(
            f"Claim {transition.claim_id} for shipment {shipment_id} {transition.state.value}",
            extra={"extra_fields": {
                "shipment_id": shipment_id,
                "claim_id": transition.claim_id,
                "claim_status": transition.state.value
            }}
        )
        return ClaimResolvedResult(
            shipment_id=shipment_id,
            claim_id=transition.claim_id,
            claim_status=transition.state,
            response=f"Claim {transition.state.value.lower()}"
        )

    def get_claims(self, shipment_id: str) -> List[Claim]:
        """
        Claim facts of a shipment, newest first.

        Raises:
            ReportingNotFoundError: If the shipment has no claim facts
        """
        shipment_id = shipment_id.upper()

        def body(txn) -> List[Claim]:
            facts = sort_newest_first(txn.find(CLAIMS, {"shipmentId": shipment_id}), by_field("claimRequestDate"))
            require_rows(facts, "Claim", f"No claims recorded for shipment {shipment_id}")
            return [decode_claim(fact) for fact in facts]

        with tracer.start_as_current_span("claims.list") as span:
            span.set_attribute("shipment.id", shipment_id)
            return self.ledger.execute_in_transaction(body)
