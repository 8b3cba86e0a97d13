"""
tokenledger - Fixed-Supply Fungible Token Ledger

A deterministic ledger for a fixed-supply divisible token: balances, delegated
allowances, and the invariants that must hold after every mutation.

Usage:
    from tokenledger import Ledger, AccountId

    alice = AccountId.repeat(1)
    bob = AccountId.repeat(2)
    carol = AccountId.repeat(3)

    ledger = Ledger(1000, alice)            # mints 1000 to alice
    ledger.transfer(alice, bob, 100)        # direct transfer
    ledger.approve(alice, carol, 50)        # carol may spend 50 of alice's tokens
    receipt = ledger.transfer_from(carol, alice, bob, 20)
    assert receipt.ok

Pure usage (no mutable state):
    from tokenledger import construct, transfer

    outcome = construct(1000, alice)
    outcome = transfer(outcome.state, alice, bob, 100)
"""

# Core types
from .core import (
    AccountId,
    Amount,
    LedgerView,
    LedgerState,
    PendingTransaction,
    Transaction,
    Receipt,
    Outcome,
    Transfer,
    Approval,
    Event,
    TokenError,
    LedgerError,
    InsufficientBalance,
    InsufficientAllowance,
    ArithmeticOverflow,
    InvalidAmount,
    StaleTransaction,
    AMOUNT_BITS,
    MAX_AMOUNT,
    ACCOUNT_ID_SIZE,
    checked_add,
    checked_sub,
    check_invariants,
    stale_writes,
    compute_transfer,
    compute_approve,
    compute_transfer_from,
    construct,
    total_supply,
    balance_of,
    allowance,
    transfer,
    approve,
    transfer_from,
)

# Ledger
from .ledger import Ledger

__all__ = [
    # Core
    'AccountId', 'Amount', 'LedgerView', 'LedgerState',
    'PendingTransaction', 'Transaction', 'Receipt', 'Outcome',
    'Transfer', 'Approval', 'Event',
    'TokenError', 'LedgerError', 'InsufficientBalance', 'InsufficientAllowance',
    'ArithmeticOverflow', 'InvalidAmount', 'StaleTransaction',
    'AMOUNT_BITS', 'MAX_AMOUNT', 'ACCOUNT_ID_SIZE',
    'checked_add', 'checked_sub', 'check_invariants', 'stale_writes',
    'compute_transfer', 'compute_approve', 'compute_transfer_from',
    # Pure operations
    'construct', 'total_supply', 'balance_of', 'allowance',
    'transfer', 'approve', 'transfer_from',
    # Ledger
    'Ledger',
]
