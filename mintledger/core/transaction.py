"""
mintledger/core/transaction.py

Journal Record — one signed, chained line per successful ledger call.

CONTRACT 1 — Signing
    bytes_signed = canonicalize(tx.to_signing_dict())
    algorithm    = Ed25519, signed by the CALLER's key
    encoding     = base64url, no padding

CONTRACT 2 — Chain
    prev_hash    = SHA-256(canonicalize(prev.to_signing_dict()))
    first record = GENESIS_HASH ("0" * 64), op "deploy"

CONTRACT 3 — Caller binding
    caller == address_from_public_key(signer_public_key)
    A record whose signer does not derive its caller is not a valid call.

CONTRACT 4 — Arguments
    Addresses as normalized "0x" strings, amounts as decimal strings.
"""

import re
import secrets
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from mintledger.core.canonical import canonical_hash, canonicalize
from mintledger.core.crypto import Ed25519KeyManager, address_from_public_key_hex
from mintledger.core.exceptions import InvalidArgument
from mintledger.core.models import (
    amount_from_wire,
    amount_to_wire,
    normalize_address,
)
from mintledger.core.time import journal_timestamp


JOURNAL_VERSION = "1.0"
GENESIS_HASH    = "0" * 64

_NONCE_HEX_LENGTH      = 32
_PUBLIC_KEY_HEX_LENGTH = 64

_TIMESTAMP_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$"
)


class Op:
    """Journal op vocabulary. One constant per mutating ledger call."""
    DEPLOY         = "deploy"
    MINT           = "mint"
    FINISH_MINTING = "finish_minting"
    ADD_EMITTER    = "add_emitter"
    TRANSFER       = "transfer"
    APPROVE        = "approve"
    TRANSFER_FROM  = "transfer_from"
    BURN           = "burn"


# op → (address arg names, amount arg names)
_ARG_SCHEMA: Dict[str, tuple] = {
    Op.DEPLOY:         ((), ()),
    Op.MINT:           ((), ()),   # list-valued, encoded separately
    Op.FINISH_MINTING: ((), ()),
    Op.ADD_EMITTER:    (("account",), ()),
    Op.TRANSFER:       (("to",), ("amount",)),
    Op.APPROVE:        (("spender",), ("amount",)),
    Op.TRANSFER_FROM:  (("owner", "to"), ("amount",)),
    Op.BURN:           (("account",), ("amount",)),
}

VALID_OPS = frozenset(_ARG_SCHEMA)


# ─────────────────────────────────────────────────────────────
# Argument encoding
# ─────────────────────────────────────────────────────────────

def encode_args(op: str, args: Dict[str, Any]) -> Dict[str, Any]:
    """Turn Python call arguments into their journal wire form."""
    if not isinstance(op, str) or op not in VALID_OPS:
        raise InvalidArgument(f"unknown op {op!r}")

    try:
        if op == Op.MINT:
            return {
                "recipients": [normalize_address(r) for r in args["recipients"]],
                "amounts":    [amount_to_wire(a) for a in args["amounts"]],
            }

        address_names, amount_names = _ARG_SCHEMA[op]
        wire: Dict[str, Any] = {}
        for name in address_names:
            wire[name] = normalize_address(args[name])
        for name in amount_names:
            wire[name] = amount_to_wire(args[name])
        return wire
    except KeyError as exc:
        raise InvalidArgument(f"{op} args missing {exc}") from exc


def decode_args(op: str, wire: Dict[str, Any]) -> Dict[str, Any]:
    """Inverse of encode_args. Raises InvalidArgument on malformed input."""
    if not isinstance(op, str) or op not in VALID_OPS:
        raise InvalidArgument(f"unknown op {op!r}")
    if not isinstance(wire, dict):
        raise InvalidArgument("args must be an object")

    try:
        if op == Op.MINT:
            recipients = wire["recipients"]
            amounts    = wire["amounts"]
            if not isinstance(recipients, list) or not isinstance(amounts, list):
                raise InvalidArgument("mint args must be lists")
            return {
                "recipients": [normalize_address(r) for r in recipients],
                "amounts":    [amount_from_wire(a) for a in amounts],
            }

        address_names, amount_names = _ARG_SCHEMA[op]
        expected = set(address_names) | set(amount_names)
        if set(wire) != expected:
            raise InvalidArgument(
                f"{op} args must be exactly {sorted(expected)}",
                {"got": sorted(wire)},
            )
        args: Dict[str, Any] = {}
        for name in address_names:
            args[name] = normalize_address(wire[name])
        for name in amount_names:
            args[name] = amount_from_wire(wire[name], name)
        return args

    except KeyError as exc:
        raise InvalidArgument(f"{op} args missing {exc}") from exc


# ─────────────────────────────────────────────────────────────
# SchemaValidationResult
# ─────────────────────────────────────────────────────────────

@dataclass
class SchemaValidationResult:
    """
    Result of Transaction.validate_schema().

    Returned, not raised, so callers can choose hard fail vs report.
    bool(result) is True iff valid.
    """
    valid:  bool
    errors: List[str]

    def __bool__(self) -> bool:
        return self.valid

    def __repr__(self) -> str:
        if self.valid:
            return "SchemaValidationResult(VALID)"
        return f"SchemaValidationResult(INVALID, errors={self.errors})"


# ─────────────────────────────────────────────────────────────
# Transaction
# ─────────────────────────────────────────────────────────────

@dataclass
class Transaction:
    """A journaled ledger call. See module docstring for the contracts."""

    journal_version:   str
    tx_id:             str
    op:                str
    caller:            str
    signer_public_key: str
    sequence:          int
    nonce:             str
    timestamp:         str
    prev_hash:         str
    args:              Dict[str, Any]
    signature:         Optional[str] = None

    # ── Constructor ───────────────────────────────────────────

    @classmethod
    def create(
        cls,
        op:                str,
        signer_public_key: str,
        sequence:          int,
        args:              Dict[str, Any],
        prev:              Optional["Transaction"] = None,
    ) -> "Transaction":
        """
        Create an unsigned Transaction with correct prev_hash.

        args are Python values (addresses, ints); they are encoded here.
        The caller is derived from signer_public_key.

        Call .sign(key_manager) immediately after:
            tx = Transaction.create(...).sign(key_manager)
        """
        if not isinstance(sequence, int) or sequence < 0:
            raise ValueError(
                f"sequence must be non-negative int, got {sequence!r}"
            )
        caller = address_from_public_key_hex(signer_public_key)
        if caller is None:
            raise ValueError(
                f"signer_public_key must be {_PUBLIC_KEY_HEX_LENGTH}-char hex string"
            )

        return cls(
            journal_version=   JOURNAL_VERSION,
            tx_id=             f"tx-{uuid.uuid4()}",
            op=                op,
            caller=            caller,
            signer_public_key= signer_public_key,
            sequence=          sequence,
            nonce=             secrets.token_hex(_NONCE_HEX_LENGTH // 2),
            timestamp=         journal_timestamp(),
            prev_hash=         cls.chain_hash(prev),
            args=              encode_args(op, args),
            signature=         None,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        """
        Deserialize from a JSONL line dict.

        Trusts persisted data. Callers MUST call validate_schema().
        Raises KeyError if a required field is missing.
        """
        return cls(
            journal_version=   data["journal_version"],
            tx_id=             data["tx_id"],
            op=                data["op"],
            caller=            data["caller"],
            signer_public_key= data["signer_public_key"],
            sequence=          data["sequence"],
            nonce=             data["nonce"],
            timestamp=         data["timestamp"],
            prev_hash=         data["prev_hash"],
            args=              data.get("args", {}),
            signature=         data.get("signature"),
        )

    # ── Schema Validation ─────────────────────────────────────

    def validate_schema(self) -> SchemaValidationResult:
        errors: List[str] = []

        if self.journal_version != JOURNAL_VERSION:
            errors.append(
                f"journal_version: expected '{JOURNAL_VERSION}', "
                f"got '{self.journal_version}'"
            )

        if not isinstance(self.op, str) or self.op not in VALID_OPS:
            errors.append(f"op {self.op!r} not in {sorted(VALID_OPS)}")
        else:
            try:
                decode_args(self.op, self.args)
            except InvalidArgument as exc:
                errors.append(f"args: {exc}")

        if not isinstance(self.tx_id, str) or not self.tx_id.startswith("tx-"):
            errors.append(
                f"tx_id must be a string starting with 'tx-', got {self.tx_id!r}"
            )

        try:
            if normalize_address(self.caller) != self.caller:
                errors.append(f"caller is not normalized: {self.caller!r}")
        except InvalidArgument:
            errors.append(f"caller is not an address: {self.caller!r}")

        if address_from_public_key_hex(self.signer_public_key) is None:
            errors.append(
                f"signer_public_key must be {_PUBLIC_KEY_HEX_LENGTH} hex chars"
            )

        if (
            isinstance(self.sequence, bool)
            or not isinstance(self.sequence, int)
            or self.sequence < 0
        ):
            errors.append(
                f"sequence must be non-negative int, got {self.sequence!r}"
            )

        if not _is_hex(self.nonce, _NONCE_HEX_LENGTH):
            errors.append(f"nonce must be {_NONCE_HEX_LENGTH} hex chars")

        if not isinstance(self.timestamp, str) or not _TIMESTAMP_RE.match(self.timestamp):
            errors.append(
                f"timestamp {self.timestamp!r} does not match "
                f"YYYY-MM-DDTHH:MM:SS.mmmZ"
            )

        if not _is_hex(self.prev_hash, 64):
            errors.append("prev_hash must be 64 hex chars")

        return SchemaValidationResult(valid=len(errors) == 0, errors=errors)

    # ── Canonical forms ───────────────────────────────────────

    def to_signing_dict(self) -> Dict[str, Any]:
        """All fields except signature. Also the chain dict."""
        return {
            "args":              self.args,
            "caller":            self.caller,
            "journal_version":   self.journal_version,
            "nonce":             self.nonce,
            "op":                self.op,
            "prev_hash":         self.prev_hash,
            "sequence":          self.sequence,
            "signer_public_key": self.signer_public_key,
            "timestamp":         self.timestamp,
            "tx_id":             self.tx_id,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Full serialization including signature. JSONL persistence only."""
        d = self.to_signing_dict().copy()
        d["signature"] = self.signature
        return d

    def canonical_bytes_for_signing(self) -> bytes:
        return canonicalize(self.to_signing_dict())

    @staticmethod
    def chain_hash(prev: Optional["Transaction"]) -> str:
        """What the record after `prev` must carry as prev_hash."""
        if prev is None:
            return GENESIS_HASH
        return canonical_hash(prev.to_signing_dict())

    # ── Signing / Verification ────────────────────────────────

    def sign(self, key_manager: Ed25519KeyManager) -> "Transaction":
        """Sign in place with the caller's key. Returns self."""
        if key_manager.address != self.caller:
            raise ValueError(
                f"key {key_manager.address} cannot sign for caller {self.caller}"
            )
        self.signature = key_manager.sign(self.canonical_bytes_for_signing())
        return self

    def verify_signature(self) -> bool:
        """True iff signed by signer_public_key over the current fields."""
        if not self.signature:
            return False
        return Ed25519KeyManager.verify_detached(
            self.canonical_bytes_for_signing(),
            self.signature,
            self.signer_public_key,
        )

    def verify_signer(self) -> bool:
        """True iff signer_public_key derives the recorded caller."""
        return address_from_public_key_hex(self.signer_public_key) == self.caller

    def verify_chain(self, prev: Optional["Transaction"]) -> bool:
        return self.prev_hash == Transaction.chain_hash(prev)

    def is_signed(self) -> bool:
        return bool(self.signature)

    # ── Execution ─────────────────────────────────────────────

    def call_args(self) -> Dict[str, Any]:
        """Decoded Python arguments for the ledger call."""
        return decode_args(self.op, self.args)

    def apply(self, ledger) -> None:
        """
        Re-execute this call against a Ledger.

        deploy is not applied: it is the ledger's constructor.
        Raises whatever the ledger raises.
        """
        if self.op == Op.DEPLOY:
            return
        method: Callable[..., None] = getattr(ledger, self.op)
        method(**self.call_args(), caller=self.caller)


def _is_hex(value: Any, length: int) -> bool:
    if not isinstance(value, str) or len(value) != length:
        return False
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True
