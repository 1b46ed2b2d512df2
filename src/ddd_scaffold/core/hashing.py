"""Content addressing for generated files.

Change detection is based solely on these hashes: never on modification
times or file sizes.
"""

import hashlib
from pathlib import Path

from ddd_scaffold.core.constants import HASH_LENGTH


def content_hash(content: bytes | str) -> str:
    """Return the short content address of ``content``.

    Text is encoded as UTF-8 first, so a rendered template and the file it was
    written to always hash identically.

    Args:
        content: Raw bytes or text

    Returns:
        First HASH_LENGTH hex characters of the SHA-256 digest
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()[:HASH_LENGTH]


def file_hash(path: Path) -> str | None:
    """Hash the bytes of a file on disk.

    Args:
        path: File to hash

    Returns:
        Content address, or None if the file does not exist
    """
    if not path.is_file():
        return None

    sha256_hash = hashlib.sha256()
    with open(path, "rb") as f:
        for byte_block in iter(lambda: f.read(4096), b""):
            sha256_hash.update(byte_block)

    return sha256_hash.hexdigest()[:HASH_LENGTH]
