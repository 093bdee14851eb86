"""
tests/test_models.py

Data model tests.

Tests:
    - Address normalization (strings, bytes, rejects)
    - Address derivation from public keys
    - uint256 amount checks and wire form
    - MintPhase latch
    - LedgerSnapshot JSON form and state hash
"""

import hashlib

import pytest

from mintledger.core.exceptions import AmountOverflow, InvalidArgument, StateError
from mintledger.core.models import (
    UINT256_MAX,
    ZERO_ADDRESS,
    LedgerSnapshot,
    MintPhase,
    address_from_public_key,
    amount_from_wire,
    amount_to_wire,
    check_amount,
    checked_add,
    is_zero_address,
    normalize_address,
)


ALICE = "0x" + "a1" * 20
BOB   = "0x" + "b2" * 20


# ─────────────────────────────────────────────────────────────
# Addresses
# ─────────────────────────────────────────────────────────────

class TestAddresses:

    @pytest.mark.parametrize("spelling", [
        "0x" + "AB" * 20,
        "0X" + "ab" * 20,
        "ab" * 20,
        "  0x" + "ab" * 20 + "  ",
    ])
    def test_spellings_normalize_to_one_form(self, spelling):
        assert normalize_address(spelling) == "0x" + "ab" * 20

    def test_bytes_normalize(self):
        assert normalize_address(b"\xab" * 20) == "0x" + "ab" * 20
        assert normalize_address(bytearray(20)) == ZERO_ADDRESS

    @pytest.mark.parametrize("bad", [
        "", "0x", "0x" + "ab" * 19, "0x" + "ab" * 21, "0x" + "zz" * 20,
        b"\x00" * 21, 42, None, ["0x" + "ab" * 20],
    ])
    def test_rejects(self, bad):
        with pytest.raises(InvalidArgument):
            normalize_address(bad)

    def test_error_details_carry_the_bad_value(self):
        with pytest.raises(InvalidArgument) as exc:
            normalize_address("0xnothex")
        assert exc.value.details == {"address": "'0xnothex'"}

    def test_zero_address(self):
        assert is_zero_address(ZERO_ADDRESS)
        assert is_zero_address("0" * 40)
        assert not is_zero_address(ALICE)

    def test_derived_from_last_20_bytes_of_sha256(self):
        public_key = bytes(range(32))
        expected = "0x" + hashlib.sha256(public_key).digest()[-20:].hex()
        assert address_from_public_key(public_key) == expected
        assert normalize_address(expected) == expected


# ─────────────────────────────────────────────────────────────
# Amounts
# ─────────────────────────────────────────────────────────────

class TestAmounts:

    @pytest.mark.parametrize("good", [0, 1, 10 ** 30, UINT256_MAX])
    def test_accepts_uint256(self, good):
        assert check_amount(good) == good

    @pytest.mark.parametrize("bad", [-1, UINT256_MAX + 1, 1.0, "1", True, False, None])
    def test_rejects(self, bad):
        with pytest.raises(InvalidArgument):
            check_amount(bad)

    def test_error_names_the_argument(self):
        with pytest.raises(InvalidArgument, match="allowance"):
            check_amount(-1, "allowance")

    def test_checked_add(self):
        assert checked_add(UINT256_MAX - 1, 1) == UINT256_MAX
        with pytest.raises(AmountOverflow):
            checked_add(UINT256_MAX, 1)

    def test_wire_form_is_decimal_string(self):
        assert amount_to_wire(UINT256_MAX) == str(UINT256_MAX)
        assert amount_from_wire(str(UINT256_MAX)) == UINT256_MAX
        assert amount_from_wire("0") == 0

    @pytest.mark.parametrize("bad", [10, "-1", "1e3", "0x10", "", " 1", str(UINT256_MAX + 1)])
    def test_wire_rejects(self, bad):
        with pytest.raises(InvalidArgument):
            amount_from_wire(bad)


# ─────────────────────────────────────────────────────────────
# MintPhase
# ─────────────────────────────────────────────────────────────

class TestMintPhase:

    def test_finish_moves_to_finalized(self):
        assert MintPhase.MINTING.finish() is MintPhase.FINALIZED

    def test_finalized_is_terminal(self):
        with pytest.raises(StateError):
            MintPhase.FINALIZED.finish()

    def test_minting_finished(self):
        assert not MintPhase.MINTING.minting_finished
        assert MintPhase.FINALIZED.minting_finished

    def test_values_round_trip(self):
        assert MintPhase("minting") is MintPhase.MINTING
        assert MintPhase("finalized") is MintPhase.FINALIZED


# ─────────────────────────────────────────────────────────────
# LedgerSnapshot
# ─────────────────────────────────────────────────────────────

class TestLedgerSnapshot:

    @pytest.fixture
    def snap(self):
        return LedgerSnapshot(
            owner=        ALICE,
            phase=        MintPhase.FINALIZED,
            total_supply= 150,
            balances=     {ALICE: 100, BOB: 50},
            allowances=   {(ALICE, BOB): 30},
            emitters=     frozenset({ALICE, BOB}),
        )

    def test_to_dict_shape(self, snap):
        d = snap.to_dict()
        assert d == {
            "owner":        ALICE,
            "phase":        "finalized",
            "total_supply": "150",
            "balances":     {ALICE: "100", BOB: "50"},
            "allowances":   {ALICE: {BOB: "30"}},
            "emitters":     [ALICE, BOB],
        }

    def test_from_dict_inverts_to_dict(self, snap):
        assert LedgerSnapshot.from_dict(snap.to_dict()) == snap

    def test_zero_entries_do_not_change_hash(self, snap):
        padded = LedgerSnapshot(
            owner=        snap.owner,
            phase=        snap.phase,
            total_supply= snap.total_supply,
            balances=     {**snap.balances, ZERO_ADDRESS: 0},
            allowances=   {**snap.allowances, (BOB, ALICE): 0},
            emitters=     snap.emitters,
        )
        assert padded.state_hash() == snap.state_hash()

    def test_any_change_changes_hash(self, snap):
        moved = LedgerSnapshot(
            owner=        snap.owner,
            phase=        snap.phase,
            total_supply= snap.total_supply,
            balances=     {ALICE: 99, BOB: 51},
            allowances=   snap.allowances,
            emitters=     snap.emitters,
        )
        assert moved.state_hash() != snap.state_hash()

    def test_state_hash_is_sha256_hex(self, snap):
        h = snap.state_hash()
        assert len(h) == 64
        int(h, 16)

    def test_from_dict_rejects_unknown_phase(self, snap):
        data = snap.to_dict()
        data["phase"] = "paused"
        with pytest.raises(InvalidArgument):
            LedgerSnapshot.from_dict(data)

    def test_from_dict_rejects_numeric_amounts(self, snap):
        data = snap.to_dict()
        data["total_supply"] = 150
        with pytest.raises(InvalidArgument):
            LedgerSnapshot.from_dict(data)
