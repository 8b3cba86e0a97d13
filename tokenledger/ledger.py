"""
ledger.py - Stateful Token Ledger

The Ledger class is the host-side state manager for the token ledger.
It is the only module that mutates state, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by pure functions
    - Executes pending transactions atomically (every write lands or none does)
    - Maintains balances and allowances with absent-as-zero semantics
    - Keeps the audit trail (transaction log, ordered event log) and supports
      clone(), snapshot() and replay()
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Tuple

from .core import (
    # Types
    AccountId, Amount, AllowanceKey, Event, LedgerState,
    PendingTransaction, Receipt, Transaction,
    # Constants
    MAX_AMOUNT, OP_APPROVE, OP_TRANSFER, OP_TRANSFER_FROM,
    # Exceptions
    ArithmeticOverflow, InsufficientAllowance, InsufficientBalance, LedgerError,
    StaleTransaction,
    # Pure functions
    check_invariants, compute_approve, compute_transfer, compute_transfer_from,
    construct, stale_writes,
)


# Maps logged operation names back to the intent builders, for replay.
_BUILDERS: Dict[str, Callable[..., PendingTransaction]] = {
    OP_TRANSFER: compute_transfer,
    OP_APPROVE: compute_approve,
    OP_TRANSFER_FROM: compute_transfer_from,
}


class Ledger:
    """
    Fixed-supply fungible token ledger with full validation and audit trail.

    Implements the LedgerView protocol, allowing the ledger to be passed to the
    pure compute_* functions in core.

    Design Principles:
        - Always validates: every intent is built by a pure function against the
          current state and re-checked before its writes are applied.
        - Always logs: every applied transition is recorded, enabling replay().
        - Idempotent: re-submitting an intent after it landed writes nothing.

    Thread Safety:
        Not thread-safe. A host that serves concurrent callers must hold a single
        lock (or route through a single owning task) for each call's full duration.

    Example:
        alice, bob = AccountId.repeat(1), AccountId.repeat(2)
        ledger = Ledger(1000, alice)
        receipt = ledger.transfer(alice, bob, 100)
        assert receipt.ok
    """

    def __init__(
        self,
        initial_supply: Amount,
        creator: AccountId,
        name: str = "token",
        verbose: bool = True,
    ):
        """
        Create a ledger and mint the whole supply to ``creator``.

        Args:
            initial_supply: Total supply, fixed for the ledger's lifetime
            creator: Account that receives the supply
            name: Ledger identifier (used in exec ids)
            verbose: Enable debug output (default: True)
        """
        outcome = construct(initial_supply, creator)
        self._load(outcome.state, name, verbose)
        self._genesis_events = outcome.events
        self.event_log.extend(outcome.events)
        if self.verbose:
            print(f"🪙 Minted {initial_supply} to {creator!r} [{name}]")

    def _load(self, state: LedgerState, name: str, verbose: bool) -> None:
        self.name = name
        self.verbose = verbose
        self._genesis = state
        self._genesis_events: Tuple[Event, ...] = ()
        self._supply: Amount = state.supply
        self.balances: Dict[AccountId, Amount] = dict(state.balances)
        self.allowances: Dict[AllowanceKey, Amount] = dict(state.allowances)
        self.transaction_log: List[Transaction] = []
        self.event_log: List[Event] = []
        # Monotonic sequence counter for execution ordering
        self._next_sequence: int = 0
        # intent_id -> exec_id of every applied intent
        self.seen_intent_ids: Dict[str, str] = {}

    @classmethod
    def from_state(cls, state: LedgerState, name: str = "token", verbose: bool = True) -> Ledger:
        """
        Restore a ledger from a state handed over by the host.

        The restored state becomes the ledger's genesis: replay() starts
        from it and no mint event is recorded.

        Raises:
            LedgerError: If the state violates conservation or range invariants
        """
        violations = check_invariants(state)
        if violations:
            raise LedgerError(f"Cannot restore inconsistent state: {'; '.join(violations)}")
        ledger = cls.__new__(cls)
        ledger._load(state, name, verbose)
        return ledger

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    def total_supply(self) -> Amount:
        """Total supply fixed at construction."""
        return self._supply

    def balance_of(self, account: AccountId) -> Amount:
        """Balance of ``account`` (0 if it never held tokens)."""
        return self.balances.get(account, 0)

    def allowance(self, owner: AccountId, spender: AccountId) -> Amount:
        """Amount ``spender`` may still move out of ``owner`` (0 if never approved)."""
        return self.allowances.get((owner, spender), 0)

    def list_accounts(self) -> List[AccountId]:
        """Accounts with a non-zero balance, in sorted order."""
        return sorted(self.balances)

    def snapshot(self) -> LedgerState:
        """Immutable copy of the current state, for the host to persist."""
        return LedgerState(
            supply=self._supply,
            balances=self.balances,
            allowances=self.allowances,
        )

    def verify_conservation(self) -> Dict[str, Any]:
        """
        Verify that balances still sum to the total supply.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all invariants hold
            - 'supply': Amount - The fixed total supply
            - 'actual': Amount - Sum of all balances
            - 'discrepancies': List[str] - Description of each violation

        Example:
            result = ledger.verify_conservation()
            assert result['valid'], f"Conservation violated: {result['discrepancies']}"
        """
        discrepancies = check_invariants(self.snapshot())
        return {
            'valid': len(discrepancies) == 0,
            'supply': self._supply,
            'actual': sum(self.balances.values()),
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # OPERATIONS (Mutating)
    # ========================================================================

    def transfer(self, caller: AccountId, to: AccountId, value: Amount) -> Receipt:
        """
        Transfer ``value`` from ``caller`` to ``to``.

        Returns:
            Receipt with error INSUFFICIENT_BALANCE if caller holds less than value
        """
        return self._submit(OP_TRANSFER, caller, to, value)

    def approve(self, caller: AccountId, spender: AccountId, value: Amount) -> Receipt:
        """
        Set ``spender``'s allowance on ``caller`` to ``value``.

        Overwrites any previous allowance; never fails for valid arguments.
        """
        return self._submit(OP_APPROVE, caller, spender, value)

    def transfer_from(
        self,
        caller: AccountId,
        from_account: AccountId,
        to: AccountId,
        value: Amount,
    ) -> Receipt:
        """
        Transfer ``value`` from ``from_account`` to ``to`` on ``caller``'s allowance.

        Returns:
            Receipt with error INSUFFICIENT_ALLOWANCE or INSUFFICIENT_BALANCE on
            rejection; in both cases balances and allowances are untouched.
        """
        return self._submit(OP_TRANSFER_FROM, caller, from_account, to, value)

    def _submit(self, operation: str, caller: AccountId, *args) -> Receipt:
        try:
            pending = _BUILDERS[operation](self, caller, *args)
        except (InsufficientBalance, InsufficientAllowance, ArithmeticOverflow) as exc:
            if self.verbose:
                print(f"✗ REJECTED: {operation} by {caller!r}: {exc}")
            return Receipt(error=exc.code)
        return self.execute(pending)

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """
        Generate a unique execution ID.

        Format: exec:{ledger_name}:{sequence:012d}
        """
        return f"exec:{self.name}:{sequence:012d}"

    def execute(self, pending: PendingTransaction) -> Receipt:
        """
        Apply a PendingTransaction atomically.

        The intent must have been built against this ledger's current state
        (the Ledger's own operations always do so): every write carries the
        value its builder read, and all of them must still match before any
        write is applied.

        Execution is idempotent: re-submitting an intent that was already
        applied here, and whose prior values have since been overwritten by
        it, writes nothing, logs nothing and emits nothing.

        Returns:
            Receipt with exec_id set if applied
            Receipt with already_applied set if the intent was executed before

        Raises:
            StaleTransaction: If a prior value no longer matches and the intent
                was never applied here
            LedgerError: If the intent would break conservation or range invariants
        """
        stale = stale_writes(self, pending)
        if stale:
            applied_as = self.seen_intent_ids.get(pending.intent_id)
            if applied_as is not None:
                if self.verbose:
                    print(f"⚠️  ALREADY_APPLIED: intent_id={pending.intent_id}")
                return Receipt(exec_id=applied_as, already_applied=True)
            if self.verbose:
                print(f"✗ REJECTED: {stale}")
            raise StaleTransaction(f"Stale pending transaction: {stale}")

        valid, reason = self._validate_pending(pending)
        if not valid:
            if self.verbose:
                print(f"✗ REJECTED: {reason}")
            raise LedgerError(f"Invalid pending transaction: {reason}")

        sequence = self._next_sequence
        self._next_sequence += 1
        tx = Transaction(
            operation=pending.operation,
            caller=pending.caller,
            args=pending.args,
            balance_writes=pending.balance_writes,
            allowance_writes=pending.allowance_writes,
            events=pending.events,
            intent_id=pending.intent_id,
            exec_id=self._generate_exec_id(sequence),
            ledger_name=self.name,
            sequence_number=sequence,
        )

        self._apply_writes(self.balances, tx.balance_writes)
        self._apply_writes(self.allowances, tx.allowance_writes)

        # Log transaction (always - audit trail is mandatory)
        self.transaction_log.append(tx)
        self.event_log.extend(tx.events)
        self.seen_intent_ids[tx.intent_id] = tx.exec_id

        if self.verbose:
            print(f"✓ APPLIED: {tx!r}")
        return Receipt(events=tx.events, exec_id=tx.exec_id)

    def _validate_pending(self, pending: PendingTransaction) -> Tuple[bool, str]:
        """
        Validate a pending transaction's writes against the current state.

        Checks:
        1. No key is written twice
        2. Every balance write is within [0, total_supply]
        3. The balance writes conserve total supply
        4. Every allowance write is within [0, MAX_AMOUNT]

        Prior values are checked separately, before this runs.

        Returns:
            (True, "") if valid, (False, reason) if not
        """
        for writes in (pending.balance_writes, pending.allowance_writes):
            keys = [key for key, _, _ in writes]
            if len(set(keys)) != len(keys):
                return False, "a key is written more than once"
        delta = 0
        for account, old, amount in pending.balance_writes:
            if amount < 0 or amount > self._supply:
                return False, f"balance write {amount} for {account!r} out of range"
            delta += amount - old
        if delta != 0:
            return False, f"balance writes change total supply by {delta}"
        for (owner, spender), _, amount in pending.allowance_writes:
            if amount < 0 or amount > MAX_AMOUNT:
                return False, f"allowance write {amount} for {owner!r}->{spender!r} out of range"
        return True, ""

    @staticmethod
    def _apply_writes(target: Dict, writes: Tuple) -> None:
        """Overwrite entries in place; zero amounts remove the entry."""
        for key, _, amount in writes:
            if amount:
                target[key] = amount
            else:
                target.pop(key, None)

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def clone(self) -> Ledger:
        """
        Create a copy of this ledger.

        Copies:
        - Balances and allowances
        - Genesis state and events (so the clone can replay)
        - Transaction and event logs, seen intent ids
        - Configuration (name, verbose)

        The logged records themselves are immutable and shared.
        """
        cloned = Ledger.__new__(Ledger)
        cloned.name = self.name
        cloned.verbose = self.verbose
        cloned._genesis = self._genesis
        cloned._genesis_events = self._genesis_events
        cloned._supply = self._supply
        cloned.balances = dict(self.balances)
        cloned.allowances = dict(self.allowances)
        cloned.transaction_log = list(self.transaction_log)
        cloned.event_log = list(self.event_log)
        cloned._next_sequence = self._next_sequence
        cloned.seen_intent_ids = dict(self.seen_intent_ids)
        return cloned

    def replay(self, from_tx: int = 0) -> Ledger:
        """
        Create a new ledger by replaying the transaction log.

        Starts from this ledger's genesis state (the constructed or restored
        state) and re-executes each logged operation from ``from_tx`` onward
        by rebuilding its intent. Replaying the full log reproduces the
        current state exactly.

        A non-zero ``from_tx`` still starts from genesis; the earlier
        transactions are skipped, not fast-forwarded. The result is the
        ledger that would exist had they never run, which is useful for
        what-if analysis but is not a prefix of this ledger's history.

        Args:
            from_tx: Index of the first logged transaction to re-execute
                (0 = replay from beginning)

        Returns:
            New Ledger instance with replayed state

        Raises:
            LedgerError: If a logged operation is rejected during replay
        """
        new_ledger = Ledger.from_state(
            self._genesis, name=f"{self.name}_replayed", verbose=self.verbose
        )
        new_ledger._genesis_events = self._genesis_events
        new_ledger.event_log.extend(self._genesis_events)

        for tx in self.transaction_log[from_tx:]:
            receipt = new_ledger._submit(tx.operation, tx.caller, *tx.args)
            if not receipt.ok:
                raise LedgerError(f"Replay failed at tx {tx.exec_id}: {receipt.error.value}")

        return new_ledger
