# SPDX-License-Identifier: Apache-2.0

"""
Domain error taxonomy for the cold-chain ledger.

Every error carries a stable machine-readable kind (``error_type``), a short
title and a human-readable detail. The HTTP boundary maps the kind to a status
code; nothing in the core catches these errors.
"""

from typing import Any, Dict


class ColdChainError(Exception):
    """Base class for domain errors raised by the ledger managers."""

    status_code = 500
    error_type = "application-error"
    title = "Application Error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status_code,
            "type": self.error_type,
            "title": self.title,
            "detail": self.detail,
        }


class DuplicateShipmentError(ColdChainError):
    """A shipment with the same identifier already exists."""

    status_code = 400
    error_type = "duplicate-shipment"
    title = "ShipmentData Integrity Error"


class DuplicateRetailShipmentError(ColdChainError):
    """A retail leg with the same identifier already exists."""

    status_code = 400
    error_type = "duplicate-retail-shipment"
    title = "RetailShipment Integrity Error"


class NotFoundError(ColdChainError):
    """A referenced aggregate or projection is absent."""

    status_code = 400
    error_type = "not-found"
    title = "Not Found Error"


class ShipmentNotFoundError(NotFoundError):
    error_type = "shipment-not-found"
    title = "ShipmentData Not Found Error"


class MasterShipmentNotFoundError(NotFoundError):
    error_type = "master-shipment-not-found"
    title = "Origin ShipmentData Not Found Error"


class ClaimSubjectNotFoundError(NotFoundError):
    error_type = "claim-subject-not-found"
    title = "Claim Subject Not Found Error"


class ReportingNotFoundError(NotFoundError):
    """A reporting query matched no rows."""

    error_type = "reporting-not-found"
    title = "Reporting Data Not Found Error"

    def __init__(self, entity: str, detail: str):
        super().__init__(detail)
        self.entity = entity

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["entity"] = self.entity
        return body


class ClaimAlreadyExistsError(ColdChainError):
    status_code = 400
    error_type = "claim-already-exists"
    title = "Claim Integrity Error"


class ClaimTransitionError(ColdChainError):
    status_code = 400
    error_type = "invalid-claim-transition"
    title = "Claim Transition Error"


class MalformedInputError(ColdChainError):
    """An input field could not be interpreted."""

    status_code = 400
    error_type = "malformed-input"
    title = "Malformed Input Error"


class MalformedCoordinateError(MalformedInputError):
    error_type = "malformed-coordinate"
    title = "Malformed Coordinate Error"


class ConflictExhaustedError(ColdChainError):
    """The ledger gave up retrying a conflicting transaction."""

    status_code = 500
    error_type = "conflict-exhausted"
    title = "Transaction Conflict Error"
