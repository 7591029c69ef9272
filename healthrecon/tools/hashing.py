"""Content fingerprinting for document dedup."""

import hashlib


def hash_text(text: str) -> str:
    """Lowercase hex SHA-256 of the UTF-8 encoded text.

    Two pages with byte-identical content always produce the same
    fingerprint, which is what makes re-crawls idempotent.
    """
    if not isinstance(text, str):
        raise TypeError(f"hash_text expects str, got {type(text).__name__}")
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
