# SPDX-License-Identifier: Apache-2.0

"""
Retail leg and provenance endpoints.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag

from middleware.validation import parse_json_body
from models.requests import CreateRetailLegRequest, ShipmentPath

retail_tag = Tag(name="Retail", description="Retail legs and provenance")
retail_bp = APIBlueprint('retail', __name__, url_prefix='/api', abp_tags=[retail_tag])


@retail_bp.post('/retail-shipments')
def create_retail_leg():
    """Ship a retail leg out of a master shipment."""
    request_model = parse_json_body(CreateRetailLegRequest)
    leg = current_app.retail_service.create_retail_leg(request_model)
    return jsonify(leg.to_wire()), 201


@retail_bp.get('/provenance/<shipment_id>')
def get_tracking_provenance(path: ShipmentPath):
    """Master shipment with its retail legs."""
    provenance = current_app.retail_service.get_tracking_provenance(path.shipment_id)
    return jsonify(provenance.to_wire())
