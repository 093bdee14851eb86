"""
mintledger/core/models.py

Ledger Data Model

CONTRACT 1 — Addresses
    An account is a 20-byte identifier, rendered "0x" + 40 lowercase hex.
    normalize_address() is the only way a value becomes an Address.
    ZERO_ADDRESS is the null recipient; transfers to it are rejected.

CONTRACT 2 — Amounts
    Checked unsigned 256-bit integers. bool and float are rejected.
    Overflow is an error, never a wrap.
    On the wire (journal, snapshots) amounts travel as decimal strings.

CONTRACT 3 — Mint phase
    MINTING -> FINALIZED, once, via MintPhase.finish().
    FINALIZED is terminal.
"""

import hashlib
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Tuple, Union

from mintledger.core.canonical import canonical_hash
from mintledger.core.exceptions import (
    AmountOverflow,
    InvalidArgument,
    StateError,
)


# ─────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────

ADDRESS_BYTES = 20
ZERO_ADDRESS  = "0x" + "0" * (ADDRESS_BYTES * 2)
UINT256_MAX   = (1 << 256) - 1

_HEX_ADDRESS_RE = re.compile(r"^[0-9a-fA-F]{40}$")
_DECIMAL_RE     = re.compile(r"^[0-9]+$")

Address = str


# ─────────────────────────────────────────────────────────────
# Addresses
# ─────────────────────────────────────────────────────────────

def normalize_address(value: Union[str, bytes, bytearray]) -> Address:
    """
    Return the canonical "0x"-prefixed lowercase form of an address.

    Accepts a hex string (with or without "0x", any case) or 20 raw bytes.
    Raises InvalidArgument for anything else.
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != ADDRESS_BYTES:
            raise InvalidArgument(
                f"address must be {ADDRESS_BYTES} bytes",
                {"length": len(value)},
            )
        return "0x" + bytes(value).hex()

    if not isinstance(value, str):
        raise InvalidArgument(
            f"address must be str or bytes, got {type(value).__name__}"
        )

    raw = value.strip()
    if raw[:2] in ("0x", "0X"):
        raw = raw[2:]
    if not _HEX_ADDRESS_RE.match(raw):
        raise InvalidArgument(
            "address must be 40 hex characters", {"address": repr(value)}
        )
    return "0x" + raw.lower()


def is_zero_address(value: Address) -> bool:
    return normalize_address(value) == ZERO_ADDRESS


def address_from_public_key(public_key: bytes) -> Address:
    """Derive an account address: the last 20 bytes of SHA-256(public key)."""
    digest = hashlib.sha256(public_key).digest()
    return "0x" + digest[-ADDRESS_BYTES:].hex()


# ─────────────────────────────────────────────────────────────
# Amounts
# ─────────────────────────────────────────────────────────────

def check_amount(value: Any, name: str = "amount") -> int:
    """Validate a uint256 amount and return it unchanged."""
    # bool is an int subclass; True must not mean 1 token
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(
            f"{name} must be int, got {type(value).__name__}"
        )
    if value < 0 or value > UINT256_MAX:
        raise InvalidArgument(
            f"{name} out of uint256 range", {name: value}
        )
    return value


def checked_add(a: int, b: int) -> int:
    c = a + b
    if c > UINT256_MAX:
        raise AmountOverflow("uint256 overflow", {"a": a, "b": b})
    return c


def amount_to_wire(value: int) -> str:
    return str(check_amount(value))


def amount_from_wire(value: Any, name: str = "amount") -> int:
    """Parse a decimal-string amount as stored in the journal."""
    if isinstance(value, str) and _DECIMAL_RE.match(value):
        return check_amount(int(value), name)
    raise InvalidArgument(
        f"{name} must be a decimal string", {name: repr(value)}
    )


# ─────────────────────────────────────────────────────────────
# Mint phase: one-way latch
# ─────────────────────────────────────────────────────────────

class MintPhase(str, Enum):
    """
    Ledger lifecycle.

    MINTING    mint/burn enabled, transfers disabled   (initial)
    FINALIZED  transfers enabled, mint/burn disabled   (terminal)
    """
    MINTING   = "minting"
    FINALIZED = "finalized"

    def finish(self) -> "MintPhase":
        """Return the phase after finishing minting. Fails from FINALIZED."""
        if self is MintPhase.FINALIZED:
            raise StateError("minting already finished")
        return MintPhase.FINALIZED

    @property
    def minting_finished(self) -> bool:
        return self is MintPhase.FINALIZED


# ─────────────────────────────────────────────────────────────
# LedgerSnapshot: full state export
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LedgerSnapshot:
    """Immutable copy of every table a Ledger owns."""

    owner:        Address
    phase:        MintPhase
    total_supply: int
    balances:     Dict[Address, int]                  = field(default_factory=dict)
    allowances:   Dict[Tuple[Address, Address], int]  = field(default_factory=dict)
    emitters:     FrozenSet[Address]                  = field(default_factory=frozenset)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe form. Zero entries are omitted so equal states compare equal."""
        allowances: Dict[str, Dict[str, str]] = {}
        for (owner, spender), amount in sorted(self.allowances.items()):
            if amount:
                allowances.setdefault(owner, {})[spender] = str(amount)

        return {
            "owner":        self.owner,
            "phase":        self.phase.value,
            "total_supply": str(self.total_supply),
            "balances":     {
                addr: str(amount)
                for addr, amount in sorted(self.balances.items())
                if amount
            },
            "allowances":   allowances,
            "emitters":     sorted(self.emitters),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerSnapshot":
        try:
            phase = MintPhase(data["phase"])
        except ValueError as exc:
            raise InvalidArgument(f"unknown phase {data['phase']!r}") from exc

        allowances: Dict[Tuple[Address, Address], int] = {}
        for owner, spenders in data.get("allowances", {}).items():
            for spender, amount in spenders.items():
                key = (normalize_address(owner), normalize_address(spender))
                allowances[key] = amount_from_wire(amount, "allowance")

        return cls(
            owner=        normalize_address(data["owner"]),
            phase=        phase,
            total_supply= amount_from_wire(data["total_supply"], "total_supply"),
            balances=     {
                normalize_address(addr): amount_from_wire(amount, "balance")
                for addr, amount in data.get("balances", {}).items()
            },
            allowances=   allowances,
            emitters=     frozenset(
                normalize_address(a) for a in data.get("emitters", [])
            ),
        )

    def state_hash(self) -> str:
        """SHA-256 over the canonical JSON form of the snapshot."""
        return canonical_hash(self.to_dict())
