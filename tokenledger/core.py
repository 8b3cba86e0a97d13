"""
Core types and pure functions for the token ledger.

This module provides the foundational data structures and transitions:
1. Protocols: LedgerView for read-only ledger access
2. Immutable data structures: AccountId, Transfer, Approval, PendingTransaction, LedgerState
3. Exceptions: LedgerError and domain-specific error types
4. Checked arithmetic on fixed-width amounts
5. Pure operations: construct, transfer, approve, transfer_from

All functions in this module are pure and operate on read-only views.
No function can mutate ledger state directly; LedgerState.apply() returns
a new state and leaves the old one untouched.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
import hashlib
from typing import (
    Dict, List, Optional, Protocol, Tuple, Union, Mapping, runtime_checkable
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Width of the unsigned integer used for amounts.
AMOUNT_BITS = 128
MAX_AMOUNT = 2 ** AMOUNT_BITS - 1

# Account identifiers are fixed-size opaque byte strings.
ACCOUNT_ID_SIZE = 32

# Operation names recorded on pending and executed transactions.
OP_TRANSFER = "transfer"
OP_APPROVE = "approve"
OP_TRANSFER_FROM = "transfer_from"


# ============================================================================
# ACCOUNTS
# ============================================================================

@dataclass(frozen=True, slots=True, order=True)
class AccountId:
    """
    Opaque account identity.

    Hashable and totally ordered by its raw bytes, so it can key mappings and
    be sorted for deterministic iteration.
    """
    raw: bytes

    def __post_init__(self):
        if not isinstance(self.raw, (bytes, bytearray)):
            raise ValueError(f"AccountId must be bytes, got {type(self.raw)}")
        if len(self.raw) != ACCOUNT_ID_SIZE:
            raise ValueError(
                f"AccountId must be {ACCOUNT_ID_SIZE} bytes, got {len(self.raw)}"
            )
        object.__setattr__(self, 'raw', bytes(self.raw))

    @classmethod
    def repeat(cls, byte: int) -> AccountId:
        """Build an id whose bytes are all ``byte`` (handy for fixtures)."""
        return cls(bytes([byte]) * ACCOUNT_ID_SIZE)

    @classmethod
    def from_hex(cls, text: str) -> AccountId:
        if text.startswith("0x"):
            text = text[2:]
        return cls(bytes.fromhex(text))

    def hex(self) -> str:
        return self.raw.hex()

    def __repr__(self) -> str:
        return f"AccountId(0x{self.raw[:4].hex()}…)"


# Type aliases
Amount = int
AllowanceKey = Tuple[AccountId, AccountId]


# ============================================================================
# ERRORS
# ============================================================================

class TokenError(Enum):
    """
    Reason a state transition was rejected.

    INSUFFICIENT_BALANCE: source balance is below the requested value.
    INSUFFICIENT_ALLOWANCE: spender's remaining allowance is below the requested value.
    ARITHMETIC_OVERFLOW: an amount would leave [0, MAX_AMOUNT].
    """
    INSUFFICIENT_BALANCE = "insufficient_balance"
    INSUFFICIENT_ALLOWANCE = "insufficient_allowance"
    ARITHMETIC_OVERFLOW = "arithmetic_overflow"


class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    code: Optional[TokenError] = None


class InsufficientBalance(LedgerError):
    """Raised when the source account cannot cover the requested value."""
    code = TokenError.INSUFFICIENT_BALANCE


class InsufficientAllowance(LedgerError):
    """Raised when a spender's allowance cannot cover the requested value."""
    code = TokenError.INSUFFICIENT_ALLOWANCE


class ArithmeticOverflow(LedgerError):
    """Raised when checked arithmetic would wrap."""
    code = TokenError.ARITHMETIC_OVERFLOW


class StaleTransaction(LedgerError):
    """Raised when a pending transaction's prior values no longer match the state."""
    pass


class InvalidAmount(LedgerError, ValueError):
    """Raised when an amount argument is not an int in [0, MAX_AMOUNT]."""
    pass


# ============================================================================
# CHECKED ARITHMETIC
# ============================================================================

def require_amount(value: Amount) -> Amount:
    """
    Validate that ``value`` is a representable amount.

    Raises:
        InvalidAmount: If value is not an int (bool excluded) in [0, MAX_AMOUNT]
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(f"Amount must be int, got {type(value).__name__}")
    if value < 0 or value > MAX_AMOUNT:
        raise InvalidAmount(f"Amount {value} outside [0, 2**{AMOUNT_BITS}-1]")
    return value


def require_account(account: AccountId) -> AccountId:
    if not isinstance(account, AccountId):
        raise ValueError(f"Expected AccountId, got {type(account).__name__}")
    return account


def checked_add(a: Amount, b: Amount) -> Amount:
    result = a + b
    if result > MAX_AMOUNT:
        raise ArithmeticOverflow(f"{a} + {b} exceeds 2**{AMOUNT_BITS}-1")
    return result


def checked_sub(a: Amount, b: Amount) -> Amount:
    result = a - b
    if result < 0:
        raise ArithmeticOverflow(f"{a} - {b} is negative")
    return result


# ============================================================================
# NOTIFICATIONS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Transfer:
    """
    Emitted when ``value`` tokens move from ``source`` to ``dest``.

    ``source`` is None only for the mint at construction. ``dest`` is never
    None in this ledger since there is no burn operation.
    """
    source: Optional[AccountId]
    dest: Optional[AccountId]
    value: Amount

    def __repr__(self) -> str:
        src = "mint" if self.source is None else repr(self.source)
        return f"Transfer({self.value}: {src}→{self.dest!r})"


@dataclass(frozen=True, slots=True)
class Approval:
    """Emitted when ``owner`` sets the allowance of ``spender``."""
    owner: AccountId
    spender: AccountId
    value: Amount


Event = Union[Transfer, Approval]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    The compute_* functions accept a LedgerView and only read through it.
    Both LedgerState and the stateful Ledger implement this protocol.
    """

    def total_supply(self) -> Amount:
        """Return the fixed total supply."""
        ...

    def balance_of(self, account: AccountId) -> Amount:
        """Return the balance of ``account``, 0 if it never held tokens."""
        ...

    def allowance(self, owner: AccountId, spender: AccountId) -> Amount:
        """Return what ``spender`` may still move out of ``owner``, 0 if never set."""
        ...


# ============================================================================
# PENDING TRANSACTIONS
# ============================================================================

def _canonical(value) -> str:
    if isinstance(value, AccountId):
        return value.hex()
    if isinstance(value, tuple):
        return "(" + ",".join(_canonical(v) for v in value) + ")"
    return str(value)


def _compute_intent_id(
    operation: str,
    caller: AccountId,
    args: Tuple,
    balance_writes: Tuple,
    allowance_writes: Tuple,
) -> str:
    """
    Compute a deterministic content hash for a transaction's intent.

    Prior values are part of the content, so the same call built against
    two different states yields two different ids.
    """
    content_parts = [
        f"op:{operation}",
        f"caller:{caller.hex()}",
        f"args:{_canonical(args)}",
    ]
    for write in balance_writes:
        content_parts.append(f"balance:{_canonical(write)}")
    for write in allowance_writes:
        content_parts.append(f"allowance:{_canonical(write)}")
    content = "|".join(content_parts)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A validated state transition before it is applied - represents INTENT.

    Writes are absolute post-values, not deltas, each paired with the value
    the builder read. Applying an intent is a plain overwrite, allowed only
    while every prior value still matches the target state.

    Attributes:
        operation: One of the OP_* names
        caller: Identity that invoked the operation
        args: Operation arguments in call order
        balance_writes: (account, old_balance, new_balance) triples
        allowance_writes: ((owner, spender), old_allowance, new_allowance) triples
        events: Notifications to relay, in order
        intent_id: Content hash of the intent (auto-computed)
    """
    operation: str
    caller: AccountId
    args: Tuple = ()
    balance_writes: Tuple[Tuple[AccountId, Amount, Amount], ...] = ()
    allowance_writes: Tuple[Tuple[AllowanceKey, Amount, Amount], ...] = ()
    events: Tuple[Event, ...] = ()
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            computed_id = _compute_intent_id(
                self.operation, self.caller, self.args,
                self.balance_writes, self.allowance_writes,
            )
            object.__setattr__(self, 'intent_id', computed_id)

    def __repr__(self) -> str:
        return (f"PendingTransaction({self.operation}, {len(self.balance_writes)} balance writes, "
                f"{len(self.allowance_writes)} allowance writes)")


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of a state transition - represents FACT.

    Created by the ledger when executing a PendingTransaction.

    Attributes:
        operation, caller, args, balance_writes, allowance_writes, events, intent_id:
            Copied from the PendingTransaction
        exec_id: Unique execution identifier (ledger + sequence)
        ledger_name: Name of the ledger that executed this
        sequence_number: Monotonic sequence within the ledger (for ordering)
    """
    operation: str
    caller: AccountId
    args: Tuple
    balance_writes: Tuple[Tuple[AccountId, Amount, Amount], ...]
    allowance_writes: Tuple[Tuple[AllowanceKey, Amount, Amount], ...]
    events: Tuple[Event, ...]
    intent_id: str
    exec_id: str
    ledger_name: str
    sequence_number: int

    def __repr__(self) -> str:
        return f"Transaction({self.exec_id}: {self.operation} by {self.caller!r}, {len(self.events)} events)"


@dataclass(frozen=True, slots=True)
class Receipt:
    """
    What the stateful ledger hands back for each mutating call.

    ``error`` is None when the transition was applied; then ``events`` holds
    the notifications to relay and ``exec_id`` identifies the logged
    Transaction. ``already_applied`` marks a re-submitted intent: nothing
    was written or emitted, and ``exec_id`` names the original execution.
    """
    error: Optional[TokenError] = None
    events: Tuple[Event, ...] = ()
    exec_id: Optional[str] = None
    already_applied: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def _move_writes(
    view: LedgerView,
    source: AccountId,
    dest: AccountId,
    value: Amount,
) -> Tuple[Tuple[AccountId, Amount, Amount], ...]:
    """
    Compute the balance writes for moving ``value`` from source to dest.

    Raises:
        InsufficientBalance: If source holds less than value
        ArithmeticOverflow: If the destination balance would exceed MAX_AMOUNT
    """
    source_balance = view.balance_of(source)
    if source_balance < value:
        raise InsufficientBalance(
            f"balance {source_balance} < {value} for {source!r}"
        )
    if source == dest:
        return ((source, source_balance, source_balance),)
    dest_balance = view.balance_of(dest)
    new_source = checked_sub(source_balance, value)
    new_dest = checked_add(dest_balance, value)
    return ((source, source_balance, new_source), (dest, dest_balance, new_dest))


def compute_transfer(
    view: LedgerView,
    caller: AccountId,
    to: AccountId,
    value: Amount,
) -> PendingTransaction:
    """
    Build the intent for ``caller`` sending ``value`` to ``to``.

    Raises:
        InsufficientBalance: If caller holds less than value
        ArithmeticOverflow: If the recipient balance would overflow
    """
    require_account(caller)
    require_account(to)
    require_amount(value)
    return PendingTransaction(
        operation=OP_TRANSFER,
        caller=caller,
        args=(to, value),
        balance_writes=_move_writes(view, caller, to, value),
        events=(Transfer(caller, to, value),),
    )


def compute_approve(
    view: LedgerView,
    caller: AccountId,
    spender: AccountId,
    value: Amount,
) -> PendingTransaction:
    """Build the intent for ``caller`` setting ``spender``'s allowance to ``value``."""
    require_account(caller)
    require_account(spender)
    require_amount(value)
    return PendingTransaction(
        operation=OP_APPROVE,
        caller=caller,
        args=(spender, value),
        allowance_writes=(((caller, spender), view.allowance(caller, spender), value),),
        events=(Approval(caller, spender, value),),
    )


def compute_transfer_from(
    view: LedgerView,
    caller: AccountId,
    from_account: AccountId,
    to: AccountId,
    value: Amount,
) -> PendingTransaction:
    """
    Build the intent for ``caller`` spending ``value`` of ``from_account``'s
    tokens on behalf of ``to``.

    The allowance is checked first, then the balance. Nothing is written
    unless both hold, so a rejected call never consumes allowance.

    Raises:
        InsufficientAllowance: If allowance(from_account, caller) < value
        InsufficientBalance: If from_account holds less than value
        ArithmeticOverflow: If the recipient balance would overflow
    """
    require_account(caller)
    require_account(from_account)
    require_account(to)
    require_amount(value)
    current = view.allowance(from_account, caller)
    if current < value:
        raise InsufficientAllowance(
            f"allowance {current} < {value} for {caller!r} on {from_account!r}"
        )
    balance_writes = _move_writes(view, from_account, to, value)
    return PendingTransaction(
        operation=OP_TRANSFER_FROM,
        caller=caller,
        args=(from_account, to, value),
        balance_writes=balance_writes,
        allowance_writes=(((from_account, caller), current, checked_sub(current, value)),),
        events=(Transfer(from_account, to, value),),
    )


# ============================================================================
# LEDGER STATE
# ============================================================================

def stale_writes(view: LedgerView, pending: PendingTransaction) -> str:
    """
    Describe the first write whose prior value differs from ``view``.

    Returns "" when every prior value still matches, i.e. when ``pending``
    is exactly what its builder would produce against ``view`` now.
    """
    for account, old, _ in pending.balance_writes:
        current = view.balance_of(account)
        if current != old:
            return f"balance of {account!r} is {current}, intent expected {old}"
    for (owner, spender), old, _ in pending.allowance_writes:
        current = view.allowance(owner, spender)
        if current != old:
            return f"allowance {owner!r}->{spender!r} is {current}, intent expected {old}"
    return ""


def _sparse_write(mapping: Mapping, writes: Tuple) -> Dict:
    """Copy ``mapping`` with writes applied, dropping entries that become zero."""
    updated = dict(mapping)
    for key, _, amount in writes:
        if amount:
            updated[key] = amount
        else:
            updated.pop(key, None)
    return updated


@dataclass(frozen=True, slots=True)
class LedgerState:
    """
    Complete, immutable token state.

    Attributes:
        supply: Fixed supply minted at construction
        balances: Sparse account -> amount map (absent means 0)
        allowances: Sparse (owner, spender) -> amount map (absent means 0)

    The mappings are wrapped in read-only proxies; use apply() to derive
    the next state.
    """
    supply: Amount
    balances: Mapping[AccountId, Amount] = field(default_factory=dict)
    allowances: Mapping[AllowanceKey, Amount] = field(default_factory=dict)

    def __post_init__(self):
        require_amount(self.supply)
        object.__setattr__(self, 'balances', MappingProxyType(
            {k: v for k, v in self.balances.items() if v}
        ))
        object.__setattr__(self, 'allowances', MappingProxyType(
            {k: v for k, v in self.allowances.items() if v}
        ))

    # LedgerView
    def total_supply(self) -> Amount:
        return self.supply

    def balance_of(self, account: AccountId) -> Amount:
        return self.balances.get(account, 0)

    def allowance(self, owner: AccountId, spender: AccountId) -> Amount:
        return self.allowances.get((owner, spender), 0)

    def apply(self, pending: PendingTransaction) -> LedgerState:
        """
        Return the state that results from applying ``pending``.

        Raises:
            StaleTransaction: If a prior value in ``pending`` differs from this state
        """
        stale = stale_writes(self, pending)
        if stale:
            raise StaleTransaction(stale)
        return LedgerState(
            supply=self.supply,
            balances=_sparse_write(self.balances, pending.balance_writes),
            allowances=_sparse_write(self.allowances, pending.allowance_writes),
        )

    def fingerprint(self) -> str:
        """
        Content hash of the state.

        Entries are serialized in sorted key order so two states with the
        same balances and allowances hash identically regardless of the
        order in which they were written.
        """
        parts = [f"supply:{self.supply}"]
        for account in sorted(self.balances):
            parts.append(f"balance:{account.hex()}:{self.balances[account]}")
        for owner, spender in sorted(self.allowances):
            parts.append(
                f"allowance:{owner.hex()}:{spender.hex()}:{self.allowances[(owner, spender)]}"
            )
        return hashlib.sha256("|".join(parts).encode()).hexdigest()[:16]

    def __eq__(self, other) -> bool:
        if not isinstance(other, LedgerState):
            return NotImplemented
        return (self.supply == other.supply
                and dict(self.balances) == dict(other.balances)
                and dict(self.allowances) == dict(other.allowances))

    def __hash__(self) -> int:
        return hash(self.fingerprint())


def check_invariants(state: LedgerState) -> List[str]:
    """
    Return a list of invariant violations (empty if the state is valid).

    Checks conservation (balances sum to total supply) and that every stored
    amount is within range.
    """
    violations = []
    held = sum(state.balances.values())
    if held != state.supply:
        violations.append(f"balances sum to {held}, total supply is {state.supply}")
    for account, amount in state.balances.items():
        if amount < 0 or amount > state.supply:
            violations.append(f"balance {amount} of {account!r} out of range")
    for (owner, spender), amount in state.allowances.items():
        if amount < 0 or amount > MAX_AMOUNT:
            violations.append(f"allowance {amount} of {owner!r}->{spender!r} out of range")
    return violations


# ============================================================================
# PURE OPERATIONS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Outcome:
    """
    Result of a pure operation.

    On success ``state`` is the next state and ``events`` the ordered
    notifications. On failure ``state`` is the input state, ``events`` is
    empty and ``error`` names the reason.
    """
    state: LedgerState
    events: Tuple[Event, ...] = ()
    error: Optional[TokenError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def construct(initial_supply: Amount, creator: AccountId) -> Outcome:
    """
    Create a ledger with ``initial_supply`` minted to ``creator``.

    A supply of 0 is legal and leaves every balance empty; the mint
    notification is still emitted.
    """
    require_amount(initial_supply)
    require_account(creator)
    state = LedgerState(supply=initial_supply, balances={creator: initial_supply})
    return Outcome(state=state, events=(Transfer(None, creator, initial_supply),))


def total_supply(state: LedgerState) -> Amount:
    return state.total_supply()


def balance_of(state: LedgerState, account: AccountId) -> Amount:
    return state.balance_of(account)


def allowance(state: LedgerState, owner: AccountId, spender: AccountId) -> Amount:
    return state.allowance(owner, spender)


def _run(state: LedgerState, build, *args) -> Outcome:
    try:
        pending = build(state, *args)
    except (InsufficientBalance, InsufficientAllowance, ArithmeticOverflow) as exc:
        return Outcome(state=state, error=exc.code)
    return Outcome(state=state.apply(pending), events=pending.events)


def transfer(state: LedgerState, caller: AccountId, to: AccountId, value: Amount) -> Outcome:
    """Move ``value`` from ``caller`` to ``to``."""
    return _run(state, compute_transfer, caller, to, value)


def approve(state: LedgerState, caller: AccountId, spender: AccountId, value: Amount) -> Outcome:
    """Set ``spender``'s allowance on ``caller`` to exactly ``value``."""
    return _run(state, compute_approve, caller, spender, value)


def transfer_from(
    state: LedgerState,
    caller: AccountId,
    from_account: AccountId,
    to: AccountId,
    value: Amount,
) -> Outcome:
    """Move ``value`` from ``from_account`` to ``to`` using ``caller``'s allowance."""
    return _run(state, compute_transfer_from, caller, from_account, to, value)
