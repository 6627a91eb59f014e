# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request validation using Pydantic models.
Turns request bodies into typed request models and validation failures into
MalformedInputError.
"""

from flask import request, jsonify
from typing import Type, TypeVar
from pydantic import BaseModel, ValidationError
from opentelemetry import trace
import logging

from domain.errors import MalformedInputError
from middleware.error_handler import malformed_input

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

M = TypeVar('M', bound=BaseModel)


def parse_json_body(model_class: Type[M]) -> M:
    """
    Validate the JSON request body against a Pydantic model.

    Args:
        model_class: Pydantic model class for validation

    Returns:
        Validated model instance

    Raises:
        MalformedInputError: If the body is missing, not JSON or invalid
    """
    with tracer.start_as_current_span("validation.validate_json_body") as span:
        span.set_attributes({
            "validation.model": model_class.__name__,
            "http.method": request.method,
            "http.path": request.path
        })

        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            span.set_attribute("validation.result", "missing_body")
            raise MalformedInputError("Request body must be a JSON object")

        try:
            model = model_class.model_validate(payload)
        except ValidationError as e:
            span.set_attribute("validation.result", "invalid")
            logger.warning(
                "Request body validation failed",
                extra={
                    "extra_fields": {
                        "model": model_class.__name__,
                        "error_count": e.error_count(),
                        "path": request.path
                    }
                }
            )
            raise malformed_input(e) from e

        span.set_attribute("validation.result", "valid")
        return model


def openapi_validation_error(e: ValidationError):
    """Response for path and query parameters rejected by flask-openapi3."""
    error = malformed_input(e)
    response = jsonify(error.to_dict())
    response.status_code = error.status_code
    return response
