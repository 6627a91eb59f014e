# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base models with common configuration and time helpers.
"""

from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class LedgerModel(BaseModel):
    """Base model for ledger documents and API projections.

    Attributes are snake_case in Python and camelCase on the wire and in the
    ledger, which is the field naming the stored documents have always used.
    """

    model_config = ConfigDict(
        # Accept both shipment_id and shipmentId
        populate_by_name=True,
        alias_generator=to_camel,
        # Use enum values instead of enum objects
        use_enum_values=True,
        validate_assignment=True
    )

    def to_wire(self) -> dict:
        """Serialize to the camelCase JSON-compatible form."""
        return self.model_dump(mode="json", by_alias=True)
