"""
mintledger/core/journal.py

Journaled Ledger

submit() MUST, in this exact order:
  1. Acquire lock
  2. Snapshot the ledger
  3. Transaction.create(op, signer_public_key, sequence, args, prev=last)
  4. tx.sign(caller key)
  5. tx.apply(ledger)            — ledger errors propagate, nothing written
  6. Append to JSONL journal     — on failure, restore the snapshot
  7. Advance sequence / last tx  — only after confirmed write
  8. Return the signed Transaction

Only successful calls reach the journal. The journal is the durable
form of the ledger: opening it replays every record.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from mintledger.core.crypto import Ed25519KeyManager
from mintledger.core.exceptions import JournalError
from mintledger.core.models import Address
from mintledger.core.replay import ReplayEngine
from mintledger.core.transaction import GENESIS_HASH, JOURNAL_VERSION, Op, Transaction
from mintledger.ledger.ledger import Ledger

logger = logging.getLogger(__name__)


class JournaledLedger:
    """
    A Ledger whose every successful mutating call is signed by the caller's
    key and appended to a hash-chained JSONL journal.

    Thread-safe via internal lock (single-process only).

    Construction:
        JournaledLedger.deploy(path, owner_key)   → new journal, new ledger
        JournaledLedger.open(path)                → replay an existing journal

    Queries go straight to .ledger; mutations go through submit() or the
    named helpers (mint, transfer, ...), which take the caller's key.
    """

    def __init__(
        self,
        journal_path: Path,
        ledger:       Ledger,
        last_tx:      Transaction,
    ) -> None:
        self._journal_path: Path                  = Path(journal_path)
        self._ledger:       Ledger                = ledger
        self._lock:         threading.Lock        = threading.Lock()
        self._last_tx:      Optional[Transaction] = last_tx
        self._sequence:     int                   = last_tx.sequence + 1

    # ── Construction ──────────────────────────────────────────

    @classmethod
    def deploy(
        cls,
        journal_path: Path,
        owner_key:    Ed25519KeyManager,
    ) -> "JournaledLedger":
        """
        Create a new ledger owned by owner_key's address.
        Refuses to overwrite a non-empty journal.
        """
        journal_path = Path(journal_path)
        if journal_path.exists() and journal_path.stat().st_size > 0:
            raise JournalError(
                "journal already exists", {"journal": str(journal_path)}
            )

        ledger  = Ledger(owner_key.address)
        genesis = Transaction.create(
            op=                Op.DEPLOY,
            signer_public_key= owner_key.public_key_hex,
            sequence=          0,
            args=              {},
        ).sign(owner_key)

        _append_line(journal_path, genesis)
        logger.info(
            "deployed ledger owner=%s journal=%s", ledger.owner, journal_path
        )
        return cls(journal_path, ledger, genesis)

    @classmethod
    def open(cls, journal_path: Path) -> "JournaledLedger":
        """
        Replay an existing journal into a fresh Ledger.
        Raises JournalError if the journal is missing, malformed or violated.
        """
        journal_path = Path(journal_path)
        engine = ReplayEngine()
        try:
            engine.load(journal_path)
        except FileNotFoundError as exc:
            raise JournalError(str(exc), {"journal": str(journal_path)}) from exc
        except ValueError as exc:
            raise JournalError(
                "journal is malformed", {"journal": str(journal_path), "error": exc}
            ) from exc

        ledger = engine.rebuild()
        return cls(journal_path, ledger, engine.transactions[-1])

    # ── Public API ────────────────────────────────────────────

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def journal_path(self) -> Path:
        return self._journal_path

    def submit(
        self,
        op:   str,
        key:  Ed25519KeyManager,
        args: Optional[Dict[str, Any]] = None,
    ) -> Transaction:
        """
        Execute one ledger call as key's address and journal it.

        Raises whatever the ledger raises (no journal write happens), or
        JournalError if the write fails (the ledger is rolled back).
        """
        if op == Op.DEPLOY:
            raise JournalError("deploy is only valid for a new journal")

        with self._lock:
            before = self._ledger.snapshot()

            tx = Transaction.create(
                op=                op,
                signer_public_key= key.public_key_hex,
                sequence=          self._sequence,
                args=              args or {},
                prev=              self._last_tx,
            ).sign(key)

            tx.apply(self._ledger)

            try:
                _append_line(self._journal_path, tx)
            except JournalError:
                self._ledger._restore(before)
                raise

            self._sequence += 1
            self._last_tx   = tx
            return tx

    def mint(
        self,
        recipients: Sequence[Address],
        amounts:    Sequence[int],
        *,
        key:        Ed25519KeyManager,
    ) -> Transaction:
        return self.submit(Op.MINT, key, {"recipients": recipients, "amounts": amounts})

    def finish_minting(self, *, key: Ed25519KeyManager) -> Transaction:
        return self.submit(Op.FINISH_MINTING, key)

    def add_emitter(self, account: Address, *, key: Ed25519KeyManager) -> Transaction:
        return self.submit(Op.ADD_EMITTER, key, {"account": account})

    def transfer(self, to: Address, amount: int, *, key: Ed25519KeyManager) -> Transaction:
        return self.submit(Op.TRANSFER, key, {"to": to, "amount": amount})

    def approve(self, spender: Address, amount: int, *, key: Ed25519KeyManager) -> Transaction:
        return self.submit(Op.APPROVE, key, {"spender": spender, "amount": amount})

    def transfer_from(
        self,
        owner:  Address,
        to:     Address,
        amount: int,
        *,
        key:    Ed25519KeyManager,
    ) -> Transaction:
        return self.submit(
            Op.TRANSFER_FROM, key, {"owner": owner, "to": to, "amount": amount}
        )

    def burn(self, account: Address, amount: int, *, key: Ed25519KeyManager) -> Transaction:
        return self.submit(Op.BURN, key, {"account": account, "amount": amount})

    def get_stats(self) -> Dict[str, Any]:
        """Return current journal state snapshot."""
        with self._lock:
            return {
                "owner":           self._ledger.owner,
                "phase":           self._ledger.phase.value,
                "total_supply":    self._ledger.total_supply(),
                "next_sequence":   self._sequence,
                "last_tx_id":      self._last_tx.tx_id if self._last_tx else None,
                "last_chain_hash": Transaction.chain_hash(self._last_tx)
                                   if self._last_tx else GENESIS_HASH,
                "journal_file":    str(self._journal_path),
                "journal_version": JOURNAL_VERSION,
            }


def _append_line(journal_path: Path, tx: Transaction) -> None:
    """
    Append one signed record as a newline-terminated JSON line, fsynced.
    Raises JournalError on any I/O failure.
    """
    try:
        journal_path.parent.mkdir(parents=True, exist_ok=True)
        with open(journal_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(tx.to_dict()) + "\n")
            f.flush()
            os.fsync(f.fileno())
    except OSError as exc:
        raise JournalError(
            "journal write failed", {"journal": str(journal_path), "error": exc}
        ) from exc
