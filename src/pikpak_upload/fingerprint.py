"""Content fingerprint (GCID) used by the drive for deduplication."""

import hashlib
import os
from pathlib import Path

MIN_BLOCK_SIZE = 256 * 1024
MAX_BLOCK_SIZE = 2 * 1024 * 1024
MAX_BLOCKS = 0x200


def gcid_block_size(file_size: int) -> int:
    """Block size grows with the file until there are at most 512 blocks."""
    block_size = MIN_BLOCK_SIZE
    while file_size / block_size > MAX_BLOCKS and block_size < MAX_BLOCK_SIZE:
        block_size <<= 1
    return block_size


def gcid_from_path(path: str | os.PathLike) -> str:
    """
    Compute the GCID of a local file.

    Args:
        path: File to hash

    Returns:
        Upper-case hex SHA1 over the concatenated SHA1 digests of every block
    """
    path = Path(path)
    block_size = gcid_block_size(path.stat().st_size)

    outer = hashlib.sha1()
    with path.open("rb") as f:
        while block := f.read(block_size):
            outer.update(hashlib.sha1(block).digest())
    return outer.hexdigest().upper()
