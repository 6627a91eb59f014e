# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the cold-chain ledger.

This package contains pure business logic functions with no side effects:
coordinate normalization, telemetry risk scoring, shipment and claim state
transitions, provenance assembly and report ordering. All domain functions
are testable without a ledger or a broker.
"""
