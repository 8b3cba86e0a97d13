"""
fake_view.py - Test Helper for LedgerView

Provides a minimal LedgerView implementation for testing the compute_*
intent builders without requiring a full Ledger instance.
"""

from __future__ import annotations
from typing import Dict, Optional, Tuple

from tokenledger import AccountId


class FakeView:
    """
    Minimal LedgerView implementation for testing intent builders.

    Example:
        view = FakeView(
            supply=100,
            balances={alice: 60, bob: 40},
            allowances={(alice, carol): 10},
        )

        view.balance_of(alice)
        # Returns: 60
    """

    def __init__(
        self,
        supply: int,
        balances: Dict[AccountId, int],
        allowances: Optional[Dict[Tuple[AccountId, AccountId], int]] = None,
    ):
        self._supply = supply
        self._balances = balances
        self._allowances = allowances or {}
        self.reads = 0

    def total_supply(self) -> int:
        return self._supply

    def balance_of(self, account: AccountId) -> int:
        self.reads += 1
        return self._balances.get(account, 0)

    def allowance(self, owner: AccountId, spender: AccountId) -> int:
        self.reads += 1
        return self._allowances.get((owner, spender), 0)
