"""Content hashing for canonical record JSON.

The hash is taken over the exact UTF-8 bytes of the canonical string and
rendered as `<algorithm>:<lowercase hex>`. The string is never re-parsed
or re-serialized before hashing.
"""

import hashlib
from typing import Union

ALGORITHM_TAG = "sha256"


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def hash_content(content: Union[str, bytes], tag: str = ALGORITHM_TAG) -> str:
    """Compute the tagged SHA256 content hash.

    Args:
        content: Canonical JSON as string or UTF-8 bytes
        tag: Algorithm tag written before the colon

    Returns:
        Tagged hex digest, e.g. "sha256:e43a..."
    """
    if isinstance(content, str):
        content_bytes = content.encode("utf-8")
    else:
        content_bytes = content
    return f"{tag}:{sha256_hex(content_bytes)}"


def split_content_hash(content_hash: str) -> tuple[str, str]:
    """Split a tagged hash into (tag, hex digest)."""
    tag, sep, digest = content_hash.partition(":")
    if not sep or not tag or len(digest) != 64:
        raise ValueError(f"content hash must look like '<tag>:<64 hex>', got '{content_hash}'")
    return tag, digest


def verify_content_hash(content: Union[str, bytes], content_hash: str) -> bool:
    """Re-hash `content` and compare with a tagged hash."""
    tag, _ = split_content_hash(content_hash)
    return hash_content(content, tag=tag) == content_hash
