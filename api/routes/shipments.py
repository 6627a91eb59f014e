# SPDX-License-Identifier: Apache-2.0

"""
Shipment lifecycle endpoints.

Creation, lookup, custody transfer, telemetry intake and the per-shipment
tracker and revision views.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag

from middleware.validation import parse_json_body
from models.requests import CreateShipmentRequest, ShipmentPath, TelemetryRequest, TransferCustodyRequest


shipments_tag = Tag(name="Shipments", description="Shipment lifecycle and telemetry")
shipments_bp = APIBlueprint(
    'shipments',
    __name__,
    url_prefix='/api/shipments',
    abp_tags=[shipments_tag]
)


@shipments_bp.post('')
def create_shipment():
    """Create a master shipment."""
    request_model = parse_json_body(CreateShipmentRequest)
    shipment = current_app.shipment_service.create_shipment(request_model)
    return jsonify(shipment.to_wire()), 201


@shipments_bp.get('/<shipment_id>')
def get_shipment(path: ShipmentPath):
    """Get a shipment by id."""
    shipment = current_app.shipment_service.get_shipment(path.shipment_id)
    return jsonify(shipment.to_wire())


@shipments_bp.post('/<shipment_id>/custody')
def transfer_custody(path: ShipmentPath):
    """Hand a shipment to the next party."""
    request_model = parse_json_body(TransferCustodyRequest)
    result = current_app.shipment_service.transfer_custody(
        path.shipment_id,
        request_model.current_owner,
        request_model.current_role,
        request_model.next_role,
        request_model.shipment_tracker_event
    )
    return jsonify(result.to_wire()), 201


@shipments_bp.post('/<shipment_id>/telemetry')
def record_telemetry(path: ShipmentPath):
    """Record a sensor reading against a master shipment."""
    request_model = parse_json_body(TelemetryRequest)
    result = current_app.shipment_service.record_telemetry(
        path.shipment_id, request_model.device_id, request_model.telemetry
    )
    return jsonify(result.to_wire())


@shipments_bp.post('/<shipment_id>/telemetry/simulated')
def record_telemetry_simulated(path: ShipmentPath):
    """Record a sensor reading against a master shipment or retail leg."""
    request_model = parse_json_body(TelemetryRequest)
    result = current_app.shipment_service.record_telemetry_simulated(
        path.shipment_id, request_model.device_id, request_model.telemetry
    )
    return jsonify(result.to_wire())


@shipments_bp.get('/<shipment_id>/movements')
def shipment_movements(path: ShipmentPath):
    """Tracker log of a shipment, newest first."""
    movements = current_app.reporting_service.shipment_movements(path.shipment_id)
    return jsonify(movements.to_wire())


@shipments_bp.get('/<shipment_id>/history')
def revision_history(path: ShipmentPath):
    """Committed revisions of a shipment, newest first."""
    revisions = current_app.reporting_service.revision_history(path.shipment_id)
    return jsonify([revision.to_wire() for revision in revisions])
