"""
tests/test_ledger_invariants.py

Ledger Law Suite

These tests do not exercise features; they check laws that must hold
after every call, successful or not:

  CONSERVATION   sum of balances == total supply
  LATCH          once finished, minting never reopens
  PHASE GATE     transfers need FINALIZED, mint/burn need MINTING
  NON-NEGATIVE   no balance or allowance ever drops below zero
  OVERWRITE      a nonzero allowance is never silently replaced
  ATOMICITY      a failed call leaves the state byte-for-byte unchanged
  UINT256        no balance or supply wraps past 2**256 - 1

Random walks use fixed seeds so failures reproduce.
"""

import random

import pytest

from mintledger import (
    AmountOverflow,
    InvalidArgument,
    Ledger,
    MintLedgerError,
    MintPhase,
    StateError,
    UINT256_MAX,
    ZERO_ADDRESS,
)


OWNER    = "0x" + "aa" * 20
ACCOUNTS = [OWNER] + ["0x" + f"{i:02x}" * 20 for i in range(1, 6)]

OPS = ("mint", "burn", "transfer", "approve", "transfer_from", "finish_minting", "add_emitter")


def assert_laws(ledger: Ledger) -> None:
    snap = ledger.snapshot()
    assert sum(snap.balances.values()) == snap.total_supply
    assert all(b >= 0 for b in snap.balances.values())
    assert all(a >= 0 for a in snap.allowances.values())
    ledger.check_invariants()


def random_call(ledger: Ledger, rng: random.Random) -> None:
    """Issue one random call. Errors are expected and swallowed by the caller."""
    op     = rng.choice(OPS)
    caller = rng.choice(ACCOUNTS)
    a, b   = rng.choice(ACCOUNTS + [ZERO_ADDRESS]), rng.choice(ACCOUNTS)
    amount = rng.choice([0, 1, 5, 50, 500, rng.randrange(0, 2_000)])

    if op == "mint":
        n = rng.randrange(0, 4)
        ledger.mint(
            [rng.choice(ACCOUNTS) for _ in range(n)],
            [rng.randrange(0, 1_000) for _ in range(n)],
            caller=caller,
        )
    elif op == "burn":
        ledger.burn(b, amount, caller=caller)
    elif op == "transfer":
        ledger.transfer(a, amount, caller=caller)
    elif op == "approve":
        ledger.approve(a, amount, caller=caller)
    elif op == "transfer_from":
        ledger.transfer_from(b, a, amount, caller=caller)
    elif op == "finish_minting":
        # rare, so both phases get exercised
        if rng.random() < 0.05:
            ledger.finish_minting(caller=caller)
    else:
        ledger.add_emitter(b, caller=caller)


# ─────────────────────────────────────────────────────────────
# Random walks
# ─────────────────────────────────────────────────────────────

class TestRandomWalks:

    @pytest.mark.parametrize("seed", range(20))
    def test_laws_hold_after_every_call(self, seed):
        rng    = random.Random(seed)
        ledger = Ledger(OWNER)

        for _ in range(300):
            try:
                random_call(ledger, rng)
            except MintLedgerError:
                pass
            assert_laws(ledger)

    @pytest.mark.parametrize("seed", range(10))
    def test_failed_calls_change_nothing(self, seed):
        rng    = random.Random(1_000 + seed)
        ledger = Ledger(OWNER)

        for _ in range(300):
            before = ledger.snapshot()
            try:
                random_call(ledger, rng)
            except MintLedgerError:
                assert ledger.snapshot() == before

    @pytest.mark.parametrize("seed", range(10))
    def test_latch_never_reopens(self, seed):
        rng    = random.Random(2_000 + seed)
        ledger = Ledger(OWNER)
        ledger.mint([OWNER], [1_000], caller=OWNER)
        ledger.finish_minting(caller=OWNER)

        for _ in range(200):
            try:
                random_call(ledger, rng)
            except MintLedgerError:
                pass
            assert ledger.phase is MintPhase.FINALIZED


# ─────────────────────────────────────────────────────────────
# Phase gate
# ─────────────────────────────────────────────────────────────

class TestPhaseGate:

    @pytest.mark.parametrize("caller", ACCOUNTS)
    @pytest.mark.parametrize("amount", [0, 1, 100])
    def test_mint_and_burn_fail_after_finish_for_every_emitter(self, caller, amount):
        ledger = Ledger(OWNER)
        ledger.add_emitter(caller, caller=OWNER)
        ledger.mint([caller], [100], caller=OWNER)
        ledger.finish_minting(caller=OWNER)

        with pytest.raises(StateError):
            ledger.mint([caller], [amount], caller=caller)
        with pytest.raises(StateError):
            ledger.burn(caller, amount, caller=caller)

    @pytest.mark.parametrize("amount", [0, 1, 100])
    def test_transfers_fail_while_minting_regardless_of_balance(self, amount):
        ledger = Ledger(OWNER)
        ledger.mint([OWNER], [1_000], caller=OWNER)
        ledger.approve(ACCOUNTS[1], 1_000, caller=OWNER)

        with pytest.raises(StateError):
            ledger.transfer(ACCOUNTS[2], amount, caller=OWNER)
        with pytest.raises(StateError):
            ledger.transfer_from(OWNER, ACCOUNTS[2], amount, caller=ACCOUNTS[1])


# ─────────────────────────────────────────────────────────────
# Approval overwrite guard
# ─────────────────────────────────────────────────────────────

class TestOverwriteGuard:

    @pytest.mark.parametrize("first", [1, 2, 100])
    @pytest.mark.parametrize("second", [0, 1, 2, 100])
    def test_second_approval_fails_after_nonzero(self, first, second):
        ledger = Ledger(OWNER)
        ledger.approve(ACCOUNTS[1], first, caller=OWNER)
        with pytest.raises(StateError):
            ledger.approve(ACCOUNTS[1], second, caller=OWNER)
        assert ledger.allowance(OWNER, ACCOUNTS[1]) == first

    @pytest.mark.parametrize("second", [0, 1, 2, 100])
    def test_second_approval_succeeds_after_zero(self, second):
        ledger = Ledger(OWNER)
        ledger.approve(ACCOUNTS[1], 0, caller=OWNER)
        ledger.approve(ACCOUNTS[1], second, caller=OWNER)
        assert ledger.allowance(OWNER, ACCOUNTS[1]) == second

    @pytest.mark.parametrize("first,second", [(1, 2), (5, 0), (100, 100)])
    def test_zero_spender_always_overwrites(self, first, second):
        ledger = Ledger(OWNER)
        ledger.approve(ZERO_ADDRESS, first, caller=OWNER)
        ledger.approve(ZERO_ADDRESS, second, caller=OWNER)
        assert ledger.allowance(OWNER, ZERO_ADDRESS) == second


# ─────────────────────────────────────────────────────────────
# Amount bounds
# ─────────────────────────────────────────────────────────────

class TestAmountBounds:

    @pytest.mark.parametrize("bad", [-1, 1.5, "10", True, None, UINT256_MAX + 1])
    def test_rejects_malformed_amounts(self, bad):
        ledger = Ledger(OWNER)
        with pytest.raises(InvalidArgument):
            ledger.mint([OWNER], [bad], caller=OWNER)
        assert ledger.total_supply() == 0

    def test_mint_up_to_uint256_max(self):
        ledger = Ledger(OWNER)
        ledger.mint([OWNER], [UINT256_MAX], caller=OWNER)
        assert ledger.total_supply() == UINT256_MAX

    def test_supply_overflow_is_rejected_atomically(self):
        ledger = Ledger(OWNER)
        ledger.mint([OWNER], [UINT256_MAX], caller=OWNER)
        before = ledger.snapshot()

        with pytest.raises(AmountOverflow):
            ledger.mint([ACCOUNTS[1]], [1], caller=OWNER)
        assert ledger.snapshot() == before

    def test_overflow_within_one_batch(self):
        ledger = Ledger(OWNER)
        with pytest.raises(AmountOverflow):
            ledger.mint([OWNER, ACCOUNTS[1]], [UINT256_MAX, 1], caller=OWNER)
        assert ledger.total_supply() == 0
        assert ledger.balance_of(OWNER) == 0

    def test_overflow_is_an_invalid_argument(self):
        assert issubclass(AmountOverflow, InvalidArgument)

    @pytest.mark.parametrize("bad", ["", "0x1234", 12345, None, b"\x00" * 19])
    def test_rejects_malformed_addresses(self, bad):
        ledger = Ledger(OWNER)
        with pytest.raises(InvalidArgument):
            ledger.balance_of(bad)

    def test_zero_address_cannot_own_a_ledger(self):
        with pytest.raises(InvalidArgument):
            Ledger(ZERO_ADDRESS)


# ─────────────────────────────────────────────────────────────
# Snapshots
# ─────────────────────────────────────────────────────────────

class TestSnapshots:

    def _populated(self) -> Ledger:
        ledger = Ledger(OWNER)
        ledger.add_emitter(ACCOUNTS[1], caller=OWNER)
        ledger.mint(ACCOUNTS[:3], [10, 20, 30], caller=OWNER)
        ledger.finish_minting(caller=OWNER)
        ledger.approve(ACCOUNTS[2], 7, caller=ACCOUNTS[1])
        return ledger

    def test_from_snapshot_restores_everything(self):
        ledger = self._populated()
        clone  = Ledger.from_snapshot(ledger.snapshot())

        assert clone.snapshot() == ledger.snapshot()
        assert clone.phase is MintPhase.FINALIZED
        assert clone.is_emitter(ACCOUNTS[1])
        assert clone.allowance(ACCOUNTS[1], ACCOUNTS[2]) == 7

    def test_restore_rejects_unbalanced_snapshot(self):
        ledger = self._populated()
        snap   = ledger.snapshot()
        broken = type(snap)(
            owner=        snap.owner,
            phase=        snap.phase,
            total_supply= snap.total_supply + 1,
            balances=     snap.balances,
            allowances=   snap.allowances,
            emitters=     snap.emitters,
        )
        with pytest.raises(StateError):
            Ledger.from_snapshot(broken)

    def test_restore_rejects_foreign_snapshot(self):
        ledger = self._populated()
        other  = Ledger(ACCOUNTS[1])
        with pytest.raises(StateError):
            other._restore(ledger.snapshot())

    def test_no_public_way_to_reopen_minting(self):
        ledger = Ledger(OWNER)
        before = ledger.snapshot()
        ledger.finish_minting(caller=OWNER)

        assert not hasattr(ledger, "restore")
        clone = Ledger.from_snapshot(before)
        assert ledger.minting_finished
        assert not clone.minting_finished
        assert clone is not ledger

    def test_state_hash_ignores_history(self):
        a = Ledger(OWNER)
        a.mint([ACCOUNTS[1]], [10], caller=OWNER)

        b = Ledger(OWNER)
        b.mint([ACCOUNTS[1], ACCOUNTS[2]], [10, 5], caller=OWNER)
        b.burn(ACCOUNTS[2], 5, caller=OWNER)

        assert a.snapshot().state_hash() == b.snapshot().state_hash()
