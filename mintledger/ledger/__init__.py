"""
mintledger Ledger - the token state machine

Balances, allowances, emitters and the mint-phase latch live here.
"""

from mintledger.ledger.ledger import Ledger

__all__ = ["Ledger"]
