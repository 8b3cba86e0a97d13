"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the token ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Balances always sum to the fixed total supply
2. atomicity.py - Rejected operations leave no trace
3. determinism.py - Reproducible behavior, replay and fingerprints
4. idempotency.py - Reads never mutate

These tests use hypothesis for property-based testing.
"""
