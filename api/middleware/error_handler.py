# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware.
Maps domain errors, HTTP errors and unexpected exceptions to JSON error bodies
of the form ``{status, type, title, detail}``.
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from pydantic import ValidationError
from typing import Any, Dict, Tuple
from opentelemetry import trace
import logging

from domain.errors import ColdChainError, MalformedInputError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


def error_body(status: int, error_type: str, title: str, detail: str) -> Dict[str, Any]:
    return {
        "status": status,
        "type": error_type,
        "title": title,
        "detail": detail,
    }


def malformed_input(error: ValidationError) -> MalformedInputError:
    """Turn a pydantic validation failure into a domain error."""
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "body"
        problems.append(f"{location}: {item.get('msg')}")
    return MalformedInputError("; ".join(problems) or "Invalid request")


class ErrorHandlerMiddleware:
    """Centralized error handling for the Flask application."""

    def __init__(self, app: Flask):
        self.app = app
        self.register_error_handlers()

    def register_error_handlers(self):
        """Register error handlers with Flask application."""

        @self.app.errorhandler(ColdChainError)
        def handle_domain_error(error):
            return self.handle_domain_error(error)

        @self.app.errorhandler(ValidationError)
        def handle_validation_error(error):
            return self.handle_domain_error(malformed_input(error))

        @self.app.errorhandler(HTTPException)
        def handle_http_error(error):
            return self.handle_http_error(error)

        @self.app.errorhandler(Exception)
        def handle_generic_exception(error):
            return self.handle_unexpected_error(error)

    def handle_domain_error(self, error: ColdChainError) -> Tuple[Any, int]:
        """
        Render a domain error with the status its kind maps to.

        Args:
            error: Domain error raised by a manager

        Returns:
            Tuple of (JSON response, status code)
        """
        with tracer.start_as_current_span("error_handler.domain_error") as span:
            span.set_attributes({
                "error.type": error.error_type,
                "error.status": error.status_code,
                "http.method": request.method,
                "http.path": request.path
            })

            log = logger.error if error.status_code >= 500 else logger.warning
            log(
                f"Request failed: {error.title}",
                extra={
                    "extra_fields": {
                        "error_type": error.error_type,
                        "status_code": error.status_code,
                        "detail": error.detail,
                        "path": request.path,
                        "method": request.method
                    }
                }
            )

            return jsonify(error.to_dict()), error.status_code

    def handle_http_error(self, error: HTTPException) -> Tuple[Any, int]:
        status = error.code or 500
        title = error.name or "HTTP Error"
        error_type = title.lower().replace(" ", "-")
        detail = str(error.description) if error.description else title

        logger.warning(
            f"HTTP error: {title}",
            extra={
                "extra_fields": {
                    "status_code": status,
                    "path": request.path,
                    "method": request.method
                }
            }
        )
        return jsonify(error_body(status, error_type, title, detail)), status

    def handle_unexpected_error(self, error: Exception) -> Tuple[Any, int]:
        """
        Wrap any other exception into a 500 body that keeps the original
        class and message for diagnostics.
        """
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": "internal-server-error",
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "extra_fields": {
                        "error_class": error.__class__.__name__,
                        "error_message": str(error),
                        "path": request.path,
                        "method": request.method
                    }
                },
                exc_info=True
            )

            detail = f"{error.__class__.__name__}: {error}"
            return jsonify(error_body(500, "internal-server-error", "Internal Server Error", detail)), 500
