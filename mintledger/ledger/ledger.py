"""
Token ledger implementation for mintledger.

State machine:

    MINTING  ── finish_minting (owner) ──▶  FINALIZED

    mint, burn                MINTING only
    transfer, transfer_from   FINALIZED only
    approve, add_emitter      both phases
    queries                   both phases

Every public method runs under one re-entrant lock and validates all
preconditions before its first write, so a raised error means no effect.
"""

import logging
import threading
from typing import Dict, FrozenSet, Iterable, Sequence, Set, Tuple

from mintledger.core.exceptions import (
    AuthorizationError,
    InsufficientAllowance,
    InsufficientBalance,
    InvalidArgument,
    StateError,
)
from mintledger.core.models import (
    Address,
    LedgerSnapshot,
    MintPhase,
    ZERO_ADDRESS,
    check_amount,
    checked_add,
    normalize_address,
)

logger = logging.getLogger(__name__)


class Ledger:
    """
    Fungible-token ledger with a minting phase and delegated transfers.

    Tables:
        _balances     account → amount          (missing = 0)
        _allowances   (owner, spender) → amount (missing = 0)
        _emitters     accounts allowed to mint and burn, owner included

    Invariant: sum(_balances.values()) == _total_supply after every call.
    """

    def __init__(self, owner: Address):
        owner = normalize_address(owner)
        if owner == ZERO_ADDRESS:
            raise InvalidArgument("ledger owner cannot be the zero address")

        self._owner:        Address                             = owner
        self._lock:         threading.RLock                     = threading.RLock()
        self._phase:        MintPhase                           = MintPhase.MINTING
        self._total_supply: int                                 = 0
        self._balances:     Dict[Address, int]                  = {}
        self._allowances:   Dict[Tuple[Address, Address], int]  = {}
        self._emitters:     Set[Address]                        = {owner}

    # ── Minting ───────────────────────────────────────────────

    def mint(
        self,
        recipients: Sequence[Address],
        amounts:    Sequence[int],
        *,
        caller:     Address,
    ) -> None:
        """
        Credit each recipient with the matching amount.

        The whole batch is validated and staged first; balances and the
        total supply change only once every pair is known to be valid.

        Raises:
            AuthorizationError  caller is not an emitter
            StateError          minting is finished
            InvalidArgument     length mismatch, bad address or amount
            AmountOverflow      a balance or the supply would exceed uint256
        """
        caller = normalize_address(caller)
        with self._lock:
            self._require_emitter(caller)
            self._require_phase(MintPhase.MINTING, "mint")

            if isinstance(recipients, (str, bytes)) or isinstance(amounts, (str, bytes)):
                raise InvalidArgument("recipients and amounts must be sequences")
            recipients = list(recipients)
            amounts    = list(amounts)
            if len(recipients) != len(amounts):
                raise InvalidArgument(
                    "recipients and amounts differ in length",
                    {"recipients": len(recipients), "amounts": len(amounts)},
                )

            staged: Dict[Address, int] = {}
            supply = self._total_supply
            for recipient, amount in zip(recipients, amounts):
                recipient = normalize_address(recipient)
                amount    = check_amount(amount)
                current   = staged.get(recipient, self._balances.get(recipient, 0))
                staged[recipient] = checked_add(current, amount)
                supply = checked_add(supply, amount)

            for recipient, balance in staged.items():
                self._set_balance(recipient, balance)
            self._total_supply = supply

            logger.info(
                "minted %d to %d account(s), caller=%s, supply=%d",
                sum(amounts), len(staged), caller, supply,
            )

    def finish_minting(self, *, caller: Address) -> None:
        """
        Close the minting phase. Owner only, exactly once.

        Raises:
            AuthorizationError  caller is not the owner
            StateError          minting was already finished
        """
        caller = normalize_address(caller)
        with self._lock:
            self._require_owner(caller)
            self._phase = self._phase.finish()
            logger.info(
                "minting finished, supply=%d", self._total_supply
            )

    def add_emitter(self, account: Address, *, caller: Address) -> None:
        """Authorize account to mint and burn. Owner only."""
        caller  = normalize_address(caller)
        account = normalize_address(account)
        with self._lock:
            self._require_owner(caller)
            if account not in self._emitters:
                self._emitters.add(account)
                logger.info("emitter added: %s", account)

    def burn(self, account: Address, amount: int, *, caller: Address) -> None:
        """
        Destroy amount from account during the minting phase.

        Restricted to emitters, like mint.

        Raises:
            AuthorizationError  caller is not an emitter
            StateError          minting is finished
            InsufficientBalance account holds less than amount
        """
        caller = normalize_address(caller)
        with self._lock:
            self._require_emitter(caller)
            self._require_phase(MintPhase.MINTING, "burn")

            account = normalize_address(account)
            amount  = check_amount(amount)
            balance = self._balances.get(account, 0)
            if balance < amount:
                raise InsufficientBalance(
                    "burn exceeds balance",
                    {"account": account, "balance": balance, "amount": amount},
                )

            self._set_balance(account, balance - amount)
            self._total_supply -= amount
            logger.info(
                "burned %d from %s, caller=%s, supply=%d",
                amount, account, caller, self._total_supply,
            )

    # ── Transfers ─────────────────────────────────────────────

    def transfer(self, to: Address, amount: int, *, caller: Address) -> None:
        """
        Move amount from caller to `to`.

        Raises:
            StateError          minting is not finished
            InvalidArgument     `to` is the zero address
            InsufficientBalance caller holds less than amount
        """
        caller = normalize_address(caller)
        with self._lock:
            self._require_phase(MintPhase.FINALIZED, "transfer")

            to     = self._require_recipient(to)
            amount = check_amount(amount)
            self._move(caller, to, amount)
            logger.debug("transfer %s -> %s: %d", caller, to, amount)

    def approve(self, spender: Address, amount: int, *, caller: Address) -> None:
        """
        Set the amount spender may move out of caller's balance.

        A nonzero allowance cannot be overwritten: it must be spent down to
        zero first. The zero-address spender is exempt. The amount is not
        checked against caller's balance.

        Raises:
            StateError  a nonzero allowance already exists for the pair
        """
        caller = normalize_address(caller)
        with self._lock:
            spender = normalize_address(spender)
            amount  = check_amount(amount)
            key     = (caller, spender)
            current = self._allowances.get(key, 0)
            if spender != ZERO_ADDRESS and current != 0:
                raise StateError(
                    "allowance already approved",
                    {"owner": caller, "spender": spender, "allowance": current},
                )

            self._set_allowance(key, amount)
            logger.debug("approve %s -> %s: %d", caller, spender, amount)

    def transfer_from(
        self,
        owner:  Address,
        to:     Address,
        amount: int,
        *,
        caller: Address,
    ) -> None:
        """
        Move amount from owner to `to` using caller's allowance.

        Checks run in this order:
            StateError            minting is not finished
            InvalidArgument       `to` is the zero address
            InsufficientBalance   balance[owner] < amount
            InsufficientAllowance allowance[owner][caller] < amount
        """
        caller = normalize_address(caller)
        with self._lock:
            self._require_phase(MintPhase.FINALIZED, "transfer_from")

            owner  = normalize_address(owner)
            to     = self._require_recipient(to)
            amount = check_amount(amount)

            balance = self._balances.get(owner, 0)
            if balance < amount:
                raise InsufficientBalance(
                    "transfer exceeds owner balance",
                    {"account": owner, "balance": balance, "amount": amount},
                )

            key       = (owner, caller)
            allowance = self._allowances.get(key, 0)
            if allowance < amount:
                raise InsufficientAllowance(
                    "transfer exceeds allowance",
                    {"owner": owner, "spender": caller,
                     "allowance": allowance, "amount": amount},
                )

            self._move(owner, to, amount)
            self._set_allowance(key, allowance - amount)
            logger.debug(
                "transfer_from %s -> %s by %s: %d", owner, to, caller, amount
            )

    # ── Queries ───────────────────────────────────────────────

    @property
    def owner(self) -> Address:
        return self._owner

    @property
    def phase(self) -> MintPhase:
        with self._lock:
            return self._phase

    @property
    def minting_finished(self) -> bool:
        return self.phase.minting_finished

    def balance_of(self, account: Address) -> int:
        account = normalize_address(account)
        with self._lock:
            return self._balances.get(account, 0)

    def total_supply(self) -> int:
        with self._lock:
            return self._total_supply

    def allowance(self, owner: Address, spender: Address) -> int:
        key = (normalize_address(owner), normalize_address(spender))
        with self._lock:
            return self._allowances.get(key, 0)

    def is_emitter(self, account: Address) -> bool:
        account = normalize_address(account)
        with self._lock:
            return account in self._emitters

    def emitters(self) -> FrozenSet[Address]:
        with self._lock:
            return frozenset(self._emitters)

    def holders(self) -> Dict[Address, int]:
        """Copy of every nonzero balance."""
        with self._lock:
            return dict(self._balances)

    # ── Snapshots ─────────────────────────────────────────────

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return LedgerSnapshot(
                owner=        self._owner,
                phase=        self._phase,
                total_supply= self._total_supply,
                balances=     dict(self._balances),
                allowances=   dict(self._allowances),
                emitters=     frozenset(self._emitters),
            )

    def _restore(self, snapshot: LedgerSnapshot) -> None:
        """
        Replace every table with the snapshot's contents.

        Rollback only: this can move the phase backwards, so it is reserved
        for JournaledLedger undoing a call whose journal write failed.
        Build a ledger from a snapshot with from_snapshot().

        The snapshot must belong to this ledger's owner and satisfy the
        conservation and non-negativity invariants.
        """
        if normalize_address(snapshot.owner) != self._owner:
            raise StateError(
                "snapshot belongs to another ledger",
                {"owner": self._owner, "snapshot_owner": snapshot.owner},
            )
        _check_tables(
            snapshot.total_supply,
            snapshot.balances.values(),
            snapshot.allowances.values(),
        )
        with self._lock:
            self._phase        = snapshot.phase
            self._total_supply = snapshot.total_supply
            self._balances     = {a: v for a, v in snapshot.balances.items() if v}
            self._allowances   = {k: v for k, v in snapshot.allowances.items() if v}
            self._emitters     = set(snapshot.emitters) | {self._owner}

    @classmethod
    def from_snapshot(cls, snapshot: LedgerSnapshot) -> "Ledger":
        ledger = cls(snapshot.owner)
        ledger._restore(snapshot)
        return ledger

    def check_invariants(self) -> None:
        """Raise StateError if conservation or non-negativity is broken."""
        with self._lock:
            _check_tables(
                self._total_supply,
                self._balances.values(),
                self._allowances.values(),
            )

    # ── Internal ──────────────────────────────────────────────

    def _require_owner(self, caller: Address) -> None:
        if caller != self._owner:
            raise AuthorizationError(
                "caller is not the ledger owner", {"caller": caller}
            )

    def _require_emitter(self, caller: Address) -> None:
        if caller not in self._emitters:
            raise AuthorizationError(
                "caller is not an emitter", {"caller": caller}
            )

    def _require_phase(self, phase: MintPhase, operation: str) -> None:
        if self._phase is not phase:
            raise StateError(
                f"{operation} not allowed while {self._phase.value}",
                {"operation": operation},
            )

    @staticmethod
    def _require_recipient(to: Address) -> Address:
        to = normalize_address(to)
        if to == ZERO_ADDRESS:
            raise InvalidArgument("recipient is the zero address")
        return to

    def _move(self, src: Address, dst: Address, amount: int) -> None:
        """Debit src and credit dst. Validates before writing either side."""
        src_balance = self._balances.get(src, 0)
        if src_balance < amount:
            raise InsufficientBalance(
                "transfer exceeds balance",
                {"account": src, "balance": src_balance, "amount": amount},
            )
        if src == dst:
            return
        dst_balance = checked_add(self._balances.get(dst, 0), amount)
        self._set_balance(src, src_balance - amount)
        self._set_balance(dst, dst_balance)

    def _set_balance(self, account: Address, amount: int) -> None:
        if amount:
            self._balances[account] = amount
        else:
            self._balances.pop(account, None)

    def _set_allowance(self, key: Tuple[Address, Address], amount: int) -> None:
        if amount:
            self._allowances[key] = amount
        else:
            self._allowances.pop(key, None)

    def __repr__(self) -> str:
        return (
            f"Ledger(owner={self._owner}, phase={self._phase.value}, "
            f"total_supply={self._total_supply})"
        )


def _check_tables(
    total_supply: int,
    balances:     Iterable[int],
    allowances:   Iterable[int],
) -> None:
    balances = list(balances)
    if any(b < 0 for b in balances) or any(a < 0 for a in allowances):
        raise StateError("negative balance or allowance")
    if sum(balances) != total_supply:
        raise StateError(
            "balances do not sum to total supply",
            {"sum": sum(balances), "total_supply": total_supply},
        )
