#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Script to create the ledger collections and indexes, unique shipment and
retail leg identifiers included. Run once per database before serving.
"""

import sys
import os
import logging

# Add the parent directory to the path so we can import from api
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pymongo.errors import PyMongoError

from services.ledger import get_ledger_service, close_ledger_connection

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main():
    """Create ledger indexes."""
    ledger = get_ledger_service()
    try:
        health = ledger.health_check()
        if health['status'] != 'healthy':
            logger.error(f"Ledger database is not healthy: {health}")
            sys.exit(1)

        logger.info(f"Connected to MongoDB {health['version']} - Database: {health['database']}")
        ledger.create_indexes()
        logger.info("Ledger indexes created successfully!")

    except PyMongoError as e:
        logger.error(f"Failed to create indexes: {e}")
        sys.exit(1)
    finally:
        close_ledger_connection()


if __name__ == "__main__":
    main()
