"""
Read Idempotency Conformance Tests

INVARIANT: Reads never mutate.

    ∀ state S, read R:
        R(S) = R(S) and S is unchanged after R

total_supply, balance_of and allowance may be called any number of times
with the same result absent an intervening write.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from tokenledger import Ledger, balance_of, allowance, total_supply
from tests.conformance.strategies import ACCOUNTS, account, operations, run


class TestReadIdempotency:

    @given(operations, account, account, st.integers(min_value=1, max_value=5))
    @settings(max_examples=100)
    def test_reads_are_stable(self, ops, a, b, repeats):
        ledger = Ledger(200, ACCOUNTS[0], verbose=False)
        for op in ops:
            run(ledger, op)
        fingerprint = ledger.snapshot().fingerprint()
        log_len = len(ledger.transaction_log)

        first = (ledger.total_supply(), ledger.balance_of(a), ledger.allowance(a, b))
        for _ in range(repeats):
            assert (ledger.total_supply(), ledger.balance_of(a), ledger.allowance(a, b)) == first

        assert ledger.snapshot().fingerprint() == fingerprint
        assert len(ledger.transaction_log) == log_len

    @given(account, account)
    def test_reads_of_unknown_accounts_do_not_create_entries(self, a, b):
        ledger = Ledger(200, ACCOUNTS[0], verbose=False)
        ledger.balance_of(a)
        ledger.allowance(a, b)
        assert set(ledger.balances) == {ACCOUNTS[0]}
        assert ledger.allowances == {}

    @given(operations, account)
    @settings(max_examples=50)
    def test_pure_reads_leave_state_equal(self, ops, a):
        ledger = Ledger(200, ACCOUNTS[0], verbose=False)
        for op in ops:
            run(ledger, op)
        state = ledger.snapshot()
        before = state.fingerprint()
        total_supply(state)
        balance_of(state, a)
        allowance(state, a, a)
        assert state.fingerprint() == before
