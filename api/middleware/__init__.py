# SPDX-License-Identifier: Apache-2.0

"""
Middleware package for request processing.

This package contains the request body validation and the error handling
that maps domain errors to JSON responses for the cold-chain ledger API.
"""
