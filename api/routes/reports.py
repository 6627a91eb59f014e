# SPDX-License-Identifier: Apache-2.0

"""
Read-only reporting endpoints.

Every view runs one snapshot read through the reporting service. Party
scoped reports take the manufacturer name as a `party` query parameter.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag

from domain.errors import MalformedInputError
from models.requests import PartyQuery, ShipmentPath
from models.responses import CountResult

reports_tag = Tag(name="Reports", description="Dashboards, counts and audit views")
reports_bp = APIBlueprint('reports', __name__, url_prefix='/api/reports', abp_tags=[reports_tag])


def _rows(rows):
    return jsonify([row.to_wire() for row in rows])


def _count(value: int):
    return jsonify(CountResult(count=value).to_wire())


def _required_party(query: PartyQuery) -> str:
    if not query.party or not query.party.strip():
        raise MalformedInputError("Query parameter 'party' is required")
    return query.party


@reports_bp.get('/shipments')
def shipments_by_party(query: PartyQuery):
    """Shipments of one manufacturer, newest first."""
    return _rows(current_app.reporting_service.shipments_by_party(_required_party(query)))


@reports_bp.get('/shipments/recent')
def recent_shipments():
    """Latest master shipments followed by their retail legs."""
    return _rows(current_app.reporting_service.recent_shipments())


@reports_bp.get('/shipments/high-risk')
def high_risk_shipments(query: PartyQuery):
    return _rows(current_app.reporting_service.high_risk_shipments(query.party))


@reports_bp.get('/shipments/locations')
def shipment_locations(query: PartyQuery):
    return _rows(current_app.reporting_service.shipment_locations(_required_party(query)))


@reports_bp.get('/claims/recent')
def recent_claims(query: PartyQuery):
    return _rows(current_app.reporting_service.recent_claims(query.party))


@reports_bp.get('/claims/overview')
def claim_overview():
    return _rows(current_app.reporting_service.claim_overview())


@reports_bp.get('/graph')
def graph_info():
    """Temperature alerts and position of every shipment."""
    return _rows(current_app.reporting_service.graph_info())


@reports_bp.get('/sensors/<shipment_id>/temperature')
def temperature_series(path: ShipmentPath):
    return _rows(current_app.reporting_service.temperature_series(path.shipment_id))


@reports_bp.get('/sensors/<shipment_id>/humidity')
def humidity_series(path: ShipmentPath):
    return _rows(current_app.reporting_service.humidity_series(path.shipment_id))


@reports_bp.get('/sensors/<shipment_id>/audit')
def audit_trail(path: ShipmentPath):
    """Sensor facts with ledger metadata, newest commit first."""
    return _rows(current_app.reporting_service.audit_trail(path.shipment_id))


@reports_bp.get('/sensors/<shipment_id>/latest')
def latest_sensor_reading(path: ShipmentPath):
    reading = current_app.reporting_service.latest_sensor_reading(path.shipment_id)
    return jsonify(reading.to_wire())


@reports_bp.get('/counts/shipments')
def count_shipments(query: PartyQuery):
    return _count(current_app.reporting_service.count_shipments(query.party))


@reports_bp.get('/counts/claims')
def count_claims(query: PartyQuery):
    return _count(current_app.reporting_service.count_claims(query.party))


@reports_bp.get('/counts/high-risk')
def high_risk_count():
    return _count(current_app.reporting_service.high_risk_count())
