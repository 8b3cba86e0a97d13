"""
conftest.py - Shared pytest fixtures for token ledger tests

Provides common fixtures used across unit and conformance tests:
- Well-known account ids
- Ledgers (fresh, funded, with an approval in place)
- Comparison utilities
"""

import pytest
from typing import Dict, Tuple

from tokenledger import AccountId, Ledger, LedgerState


# =============================================================================
# ACCOUNTS
# =============================================================================

CREATOR = AccountId.repeat(0x01)
RECIPIENT = AccountId.repeat(0x00)
SPENDER = AccountId.repeat(0x02)
OUTSIDER = AccountId.repeat(0x03)

ALL_ACCOUNTS = (CREATOR, RECIPIENT, SPENDER, OUTSIDER)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def full_state(ledger: Ledger) -> Tuple[Dict, Dict]:
    """Copy of every balance and allowance, for byte-for-byte comparisons."""
    return dict(ledger.balances), dict(ledger.allowances)


def ledger_state_equals(ledger1: Ledger, ledger2: Ledger) -> bool:
    """Check if two ledgers hold the same supply, balances and allowances."""
    return ledger1.snapshot() == ledger2.snapshot()


def make_state(supply: int, balances=None, allowances=None) -> LedgerState:
    """Build a LedgerState directly, bypassing construct()."""
    return LedgerState(supply=supply, balances=balances or {}, allowances=allowances or {})


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def creator():
    return CREATOR


@pytest.fixture
def recipient():
    return RECIPIENT


@pytest.fixture
def spender():
    return SPENDER


@pytest.fixture
def ledger():
    """Ledger with 100 tokens minted to CREATOR."""
    return Ledger(100, CREATOR, name="test", verbose=False)


@pytest.fixture
def approved_ledger(ledger):
    """Ledger where CREATOR has approved SPENDER for 20."""
    assert ledger.approve(CREATOR, SPENDER, 20).ok
    return ledger
