"""
Hypothesis strategies shared by the conformance tests.
"""

from typing import Optional

from hypothesis import strategies as st

from tokenledger import (
    AccountId, Ledger, PendingTransaction, Receipt,
    ArithmeticOverflow, InsufficientAllowance, InsufficientBalance,
    compute_approve, compute_transfer, compute_transfer_from,
)


ACCOUNTS = [AccountId.repeat(i) for i in range(4)]

account = st.sampled_from(ACCOUNTS)

BUILDERS = {
    "transfer": compute_transfer,
    "approve": compute_approve,
    "transfer_from": compute_transfer_from,
}


@st.composite
def operation(draw, max_value: int = 250):
    """Generate one (name, args) operation over a small account set."""
    value = draw(st.integers(min_value=0, max_value=max_value))
    kind = draw(st.sampled_from(["transfer", "approve", "transfer_from"]))
    if kind == "transfer_from":
        return kind, (draw(account), draw(account), draw(account), value)
    return kind, (draw(account), draw(account), value)


operations = st.lists(operation(), min_size=1, max_size=30)


def run(ledger: Ledger, op) -> Receipt:
    """Dispatch a generated operation to the ledger."""
    name, args = op
    return getattr(ledger, name)(*args)


def build(ledger: Ledger, op) -> Optional[PendingTransaction]:
    """Build the intent for a generated operation, or None if it would be rejected."""
    name, args = op
    try:
        return BUILDERS[name](ledger, *args)
    except (InsufficientBalance, InsufficientAllowance, ArithmeticOverflow):
        return None
