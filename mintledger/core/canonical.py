"""
mintledger: Canonical JSON Encoding — RFC 8785 (JCS)

Every hash and signature in mintledger is computed over the output of
this module: transaction signing dicts, chain links and state hashes.

RFC 8785: https://www.rfc-editor.org/rfc/rfc8785
"""

import hashlib

import jcs as _jcs


def canonicalize(obj: dict) -> bytes:
    """
    Encode a dict to RFC 8785 canonical JSON bytes.

    Output is deterministic regardless of key insertion order.
    Amounts must already be decimal strings: JCS serializes numbers as
    IEEE doubles, which cannot hold a 256-bit balance.
    """
    return _jcs.canonicalize(obj)


def canonical_hash(obj: dict) -> str:
    """
    SHA-256 of the RFC 8785 canonical form.

    Returns:
        Lowercase hex-encoded SHA-256 digest (64 characters).
    """
    return hashlib.sha256(canonicalize(obj)).hexdigest()
