# SPDX-License-Identifier: Apache-2.0

"""
Insurance claim endpoints.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag

from middleware.validation import parse_json_body
from models.requests import FileClaimRequest, ResolveClaimRequest, ShipmentPath

claims_tag = Tag(name="Claims", description="Insurance claim workflow")
claims_bp = APIBlueprint('claims', __name__, url_prefix='/api/claims', abp_tags=[claims_tag])


@claims_bp.post('')
def file_claim():
    """File a claim against a shipment."""
    request_model = parse_json_body(FileClaimRequest)
    result = current_app.claim_service.file_claim(
        request_model.shipment_id, request_model.policy_id, request_model.insured_value
    )
    return jsonify(result.to_wire()), 201


@claims_bp.post('/<shipment_id>/resolution')
def resolve_claim(path: ShipmentPath):
    """Approve or reject the pending claim of a shipment."""
    request_model = parse_json_body(ResolveClaimRequest)
    result = current_app.claim_service.resolve_claim(path.shipment_id, request_model.decision)
    return jsonify(result.to_wire())


@claims_bp.get('/<shipment_id>')
def get_claims(path: ShipmentPath):
    """Claim facts of a shipment, newest first."""
    claims = current_app.claim_service.get_claims(path.shipment_id)
    return jsonify([claim.to_wire() for claim in claims])
