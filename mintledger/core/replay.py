"""
mintledger/core/replay.py

Journal Replay Engine

Laws enforced here:
    1. Load    → Transaction.from_dict(line)  — no other deserialization
    2. Schema  → tx.validate_schema()         — fail fast, no silent pass
    3. Genesis → line 0 is the only "deploy"; its caller owns the ledger
    4. Chain   → tx.verify_chain(prev)        — sequential
    5. Sig     → tx.verify_signature() and tx.verify_signer()
    6. Nonce   → no two records in a journal share a nonce
    7. State   → every authentic record re-executes cleanly on a fresh Ledger

Records that fail law 5 are reported and NOT re-executed: an unsigned
or mis-signed call never moves tokens, not even during replay.
"""

import json
import logging
from collections import Counter
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional, Set

from mintledger.core.exceptions import JournalError, MintLedgerError
from mintledger.core.transaction import Op, Transaction
from mintledger.ledger.ledger import Ledger

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Result / Summary Types
# ─────────────────────────────────────────────────────────────

@dataclass
class JournalViolation:
    """A single detected violation in the journal."""
    at_sequence:    int
    tx_id:          str
    violation_type: str   # "genesis" | "sequence_gap" | "chain_break" | "duplicate_nonce"
                          # | "invalid_signature" | "signer_mismatch" | "rejected_call"
    detail:         str


@dataclass
class ReplaySummary:
    """Aggregate result of a full journal verification pass."""
    total_entries:      int
    chain_valid:        bool
    violations:         List[JournalViolation]
    valid_signatures:   int
    invalid_signatures: int
    op_counts:          Dict[str, int]
    callers_seen:       List[str]
    owner:              Optional[str]
    state_hash:         Optional[str]
    first_timestamp:    Optional[str]
    last_timestamp:     Optional[str]

    @property
    def valid(self) -> bool:
        return not self.violations

    def to_dict(self) -> Dict:
        d = asdict(self)
        d["valid"] = self.valid
        return d


# ─────────────────────────────────────────────────────────────
# Replay Engine
# ─────────────────────────────────────────────────────────────

class ReplayEngine:
    """
    Verifies a journal and rebuilds the ledger it describes.

    Usage:
        engine = ReplayEngine()
        engine.load(Path(".mintledger/ledger.jsonl"))
        summary = engine.verify()
        ledger  = engine.ledger        # None if there was no valid deploy

    Strict rebuild (raises JournalError on any violation):
        ledger = ReplayEngine().load(path).rebuild()
    """

    def __init__(self):
        self.transactions:  List[Transaction]      = []
        self.violations:    List[JournalViolation] = []
        self.ledger:        Optional[Ledger]       = None
        self._journal_path: Optional[Path]         = None

    # ── Load ──────────────────────────────────────────────────

    def load(self, journal_path: Path) -> "ReplayEngine":
        """
        Load a journal JSONL file. Records are kept in file order.

        Raises:
            FileNotFoundError — journal file does not exist
            ValueError        — malformed JSON or schema violation
        """
        journal_path       = Path(journal_path)
        self._journal_path = journal_path
        self.transactions  = []
        self.violations    = []
        self.ledger        = None

        if not journal_path.exists():
            raise FileNotFoundError(f"Journal not found: {journal_path}")

        with open(journal_path, "r", encoding="utf-8") as f:
            for line_num, raw in enumerate(f, 1):
                raw = raw.strip()
                if not raw:
                    continue

                try:
                    data = json.loads(raw)
                except json.JSONDecodeError as e:
                    raise ValueError(
                        f"Malformed JSON at journal line {line_num}: {e}"
                    ) from e

                try:
                    tx = Transaction.from_dict(data)
                except (KeyError, TypeError) as e:
                    raise ValueError(
                        f"Missing required field at journal line {line_num}: {e}"
                    ) from e

                schema = tx.validate_schema()
                if not schema:
                    raise ValueError(
                        f"Schema violation at journal line {line_num} "
                        f"(tx_id={data.get('tx_id', '?')}): {schema.errors}"
                    )

                self.transactions.append(tx)

        logger.info(
            "loaded %d transaction(s) from %s",
            len(self.transactions), journal_path.name,
        )
        return self

    # ── Verify ────────────────────────────────────────────────

    def verify(self) -> ReplaySummary:
        """
        Full verification pass. Rebuilds self.ledger as a side effect.

        Per record, in order:
            1. sequence == position
            2. prev_hash links to the previous record
            3. nonce not seen before
            4. signature valid and signer derives caller
            5. re-execute against the rebuilt ledger
        """
        self.violations = []
        self.ledger     = None

        if not self.transactions:
            return self._summary(0, 0)

        genesis = self.transactions[0]
        if genesis.op == Op.DEPLOY and genesis.verify_signature() and genesis.verify_signer():
            self.ledger = Ledger(genesis.caller)
        else:
            self._violation(
                genesis, "genesis",
                "first record must be a correctly signed deploy",
            )

        seen_nonces: Set[str] = set()
        valid_sigs   = 0
        invalid_sigs = 0

        for i, tx in enumerate(self.transactions):
            prev = self.transactions[i - 1] if i > 0 else None

            if tx.sequence != i:
                self._violation(tx, "sequence_gap", f"expected sequence {i}, got {tx.sequence}")

            if not tx.verify_chain(prev):
                expected = Transaction.chain_hash(prev)
                self._violation(
                    tx, "chain_break",
                    f"prev_hash mismatch: expected ...{expected[-12:]}, "
                    f"got ...{tx.prev_hash[-12:]}",
                )

            if tx.nonce in seen_nonces:
                self._violation(tx, "duplicate_nonce", f"nonce {tx.nonce} reused")
            seen_nonces.add(tx.nonce)

            if i > 0 and tx.op == Op.DEPLOY:
                self._violation(tx, "genesis", "deploy is only valid as the first record")
                continue

            if not tx.verify_signer():
                invalid_sigs += 1
                self._violation(
                    tx, "signer_mismatch",
                    f"signer key does not derive caller {tx.caller}",
                )
                continue

            if not tx.verify_signature():
                invalid_sigs += 1
                self._violation(tx, "invalid_signature", "signature does not verify")
                continue

            valid_sigs += 1

            if self.ledger is not None:
                try:
                    tx.apply(self.ledger)
                except MintLedgerError as exc:
                    self._violation(
                        tx, "rejected_call",
                        f"{type(exc).__name__}: {exc}",
                    )

        return self._summary(valid_sigs, invalid_sigs)

    def rebuild(self) -> Ledger:
        """Verify and return the ledger. Raises JournalError on any violation."""
        summary = self.verify()
        if not summary.valid or self.ledger is None:
            first = summary.violations[0] if summary.violations else None
            detail = (
                f"{first.violation_type} at sequence {first.at_sequence}: {first.detail}"
                if first else "journal is empty"
            )
            raise JournalError(
                "journal cannot be replayed",
                {"journal": str(self._journal_path), "problem": detail,
                 "violations": len(summary.violations)},
            )
        return self.ledger

    def export_json(
        self,
        output_path: Path,
        summary:     Optional[ReplaySummary] = None,
    ) -> None:
        """Write a verification summary to a JSON file, verifying first if none is given."""
        if summary is None:
            summary = self.verify()
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(summary.to_dict(), f, indent=2)

    # ── Internal ──────────────────────────────────────────────

    def _violation(self, tx: Transaction, kind: str, detail: str) -> None:
        self.violations.append(JournalViolation(
            at_sequence=    tx.sequence,
            tx_id=          tx.tx_id,
            violation_type= kind,
            detail=         detail,
        ))

    def _summary(self, valid_sigs: int, invalid_sigs: int) -> ReplaySummary:
        txs = self.transactions
        chain_kinds = {"sequence_gap", "chain_break"}
        return ReplaySummary(
            total_entries=      len(txs),
            chain_valid=        not any(v.violation_type in chain_kinds for v in self.violations),
            violations=         list(self.violations),
            valid_signatures=   valid_sigs,
            invalid_signatures= invalid_sigs,
            op_counts=          dict(Counter(tx.op for tx in txs)),
            callers_seen=       sorted({tx.caller for tx in txs}),
            owner=              self.ledger.owner if self.ledger else None,
            state_hash=         self.ledger.snapshot().state_hash() if self.ledger else None,
            first_timestamp=    txs[0].timestamp if txs else None,
            last_timestamp=     txs[-1].timestamp if txs else None,
        )
