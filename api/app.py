"""
Cold-Chain Ledger API - Flask Application Entry Point

This module builds the Flask application with OpenAPI 3.0 support, wires
the ledger, alert publisher and domain services, and registers the
shipment, retail, claim and reporting endpoints.
"""

import os
from flask import jsonify
from flask_openapi3 import OpenAPI, Info, Tag
from observability.config import setup_observability
from observability.middleware import add_observability_middleware

from middleware.error_handler import ErrorHandlerMiddleware
from middleware.validation import openapi_validation_error
from models.base import utc_now
from models.responses import HealthCheckResponse
from services.amqp import create_amqp_service
from services.claims import ClaimService
from services.ledger import get_ledger_service
from services.reporting import ReportingService
from services.retail import RetailService
from services.shipments import ShipmentService

# OpenAPI info
info = Info(
    title="Cold-Chain Ledger API",
    version=os.getenv('SERVICE_VERSION', '1.0.0'),
    description="Tamper-evident custody, telemetry and insurance ledger for vaccine shipments"
)

health_tag = Tag(name="Health", description="System health and status")


def create_app(ledger=None, publisher=None, clock=None) -> OpenAPI:
    """
    Build the application.

    Args:
        ledger: Ledger service, defaults to the shared MongoDB-backed ledger
        publisher: Alert publisher, defaults to the AMQP service
        clock: Callable returning the current UTC time

    Returns:
        Configured OpenAPI (Flask) application
    """
    # Initialize observability first
    setup_observability()

    docs_enabled = os.getenv('DOCS_ENABLED', 'true').lower() == 'true'
    app = OpenAPI(
        __name__,
        info=info,
        doc_ui=docs_enabled,
        validation_error_status=400,
        validation_error_callback=openapi_validation_error
    )

    add_observability_middleware(app)

    # Environment configuration
    app.config['ENVIRONMENT'] = os.getenv('ENVIRONMENT', 'development')
    app.config['DEBUG'] = app.config['ENVIRONMENT'] == 'development'
    app.config['DOCS_ENABLED'] = docs_enabled
    app.config['SERVICE_VERSION'] = info.version
    app.config['OTEL_ENABLED'] = os.getenv('OTEL_ENABLED', 'true').lower() == 'true'

    ErrorHandlerMiddleware(app)

    # Initialize services
    clock = clock or utc_now
    ledger = ledger or get_ledger_service()
    publisher = publisher or create_amqp_service()

    # Make services available to routes
    app.ledger_service = ledger
    app.amqp_service = publisher
    app.shipment_service = ShipmentService(ledger, publisher, clock=clock)
    app.retail_service = RetailService(ledger, clock=clock)
    app.claim_service = ClaimService(ledger, clock=clock)
    app.reporting_service = ReportingService(ledger)

    # Register routes
    from routes.shipments import shipments_bp
    from routes.retail import retail_bp
    from routes.claims import claims_bp
    from routes.reports import reports_bp

    app.register_api(shipments_bp)
    app.register_api(retail_bp)
    app.register_api(claims_bp)
    app.register_api(reports_bp)

    @app.get('/api/healthz', tags=[health_tag])
    def health_check():
        """Ledger and broker health"""
        ledger_health = app.ledger_service.health_check()
        broker_healthy = app.amqp_service.health_check()

        # Broker outage degrades, ledger outage fails
        if ledger_health.get('status') != 'healthy':
            status, status_code = 'unhealthy', 503
        elif not broker_healthy:
            status, status_code = 'degraded', 200
        else:
            status, status_code = 'healthy', 200

        response = HealthCheckResponse(
            status=status,
            version=app.config['SERVICE_VERSION'],
            environment=app.config['ENVIRONMENT'],
            timestamp=clock(),
            dependencies={
                'ledger': ledger_health,
                'amqp': {'status': 'healthy' if broker_healthy else 'unhealthy'}
            }
        )
        return jsonify(response.to_wire()), status_code

    return app


if __name__ == '__main__':
    # Development server
    app = create_app()
    app.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=app.config['DEBUG']
    )
