"""
mintledger: Basic Usage Example

Demonstrates:
- Deploying a journaled ledger
- Batch minting, then closing the minting phase
- Transfers and allowance-based transfers
- Journal replay and verification
"""

import tempfile
from pathlib import Path

from mintledger import (
    Ed25519KeyManager,
    JournaledLedger,
    ReplayEngine,
    StateError,
)


def main():
    """Basic mintledger usage."""

    print("=" * 60)
    print("mintledger: Basic Usage Example")
    print("=" * 60)
    print()

    owner = Ed25519KeyManager.generate()
    alice = Ed25519KeyManager.generate()
    bob   = Ed25519KeyManager.generate()

    with tempfile.TemporaryDirectory() as tmp:
        journal_path = Path(tmp) / "ledger.jsonl"

        # 1. Deploy
        print("1. Deploying ledger...")
        journal = JournaledLedger.deploy(journal_path, owner)
        ledger  = journal.ledger
        print(f"   owner: {ledger.owner}")
        print()

        # 2. Mint
        print("2. Minting during the minting phase...")
        journal.mint([alice.address, bob.address], [700, 300], key=owner)
        print(f"   alice={ledger.balance_of(alice.address)} "
              f"bob={ledger.balance_of(bob.address)} "
              f"supply={ledger.total_supply()}")

        try:
            journal.transfer(bob.address, 1, key=alice)
        except StateError as exc:
            print(f"   transfer refused while minting: {exc}")
        print()

        # 3. Finish minting
        print("3. Finishing minting...")
        journal.finish_minting(key=owner)
        print(f"   phase: {ledger.phase.value}")
        print()

        # 4. Transfers
        print("4. Transferring...")
        journal.transfer(bob.address, 200, key=alice)
        journal.approve(bob.address, 100, key=alice)
        journal.transfer_from(alice.address, bob.address, 60, key=bob)
        print(f"   alice={ledger.balance_of(alice.address)} "
              f"bob={ledger.balance_of(bob.address)} "
              f"allowance={ledger.allowance(alice.address, bob.address)}")
        print()

        # 5. Replay
        print("5. Replaying the journal...")
        engine = ReplayEngine().load(journal_path)
        summary = engine.verify()
        print(f"   entries: {summary.total_entries}")
        print(f"   valid:   {summary.valid}")
        print(f"   state matches live ledger: "
              f"{summary.state_hash == ledger.snapshot().state_hash()}")
        print()

    print("=" * 60)
    print("Done")
    print("=" * 60)


if __name__ == "__main__":
    main()
