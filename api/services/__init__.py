# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Ledger access, notification delivery and the managers built on them.
"""

from .ledger import (
    LedgerService, TransactionExecutor, content_hash, get_ledger_service, close_ledger_connection
)
from .amqp import AMQPService, AMQPConfig, PublishResult, create_amqp_service
from .shipments import ShipmentService
from .retail import RetailService
from .claims import ClaimService
from .reporting import ReportingService

__all__ = [
    "LedgerService",
    "TransactionExecutor",
    "content_hash",
    "get_ledger_service",
    "close_ledger_connection",
    "AMQPService",
    "AMQPConfig",
    "PublishResult",
    "create_amqp_service",
    "ShipmentService",
    "RetailService",
    "ClaimService",
    "ReportingService"
]
