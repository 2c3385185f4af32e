"""
Fingerprinting of serialized call arguments.

A fingerprint is the first 12 hex characters of the SHA-256 hash of the
serialized arguments: short enough to scan in a directory listing, and
identical for any two calls whose arguments serialize identically.
"""

import hashlib


HASH_LENGTH = 12


def fingerprint(serialized_args: str, length: int = HASH_LENGTH) -> str:
    """
    Hash serialized call arguments into a filename-safe identity.

    Args:
        serialized_args: Output of the argument serializer
        length: Number of hex characters to keep

    Returns:
        Truncated SHA-256 hex digest
    """
    digest = hashlib.sha256(serialized_args.encode("utf-8", "surrogatepass")).hexdigest()
    return digest[:length]


def fixture_filename(prefix: str, fp: str) -> str:
    """Build the fixture file name for a prefix and fingerprint."""
    return f"{prefix}-{fp}.json"
