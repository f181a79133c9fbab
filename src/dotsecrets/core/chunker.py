"""Split ciphertext into bounded text chunks and join them back."""

import base64
import binascii
import re
from collections.abc import Sequence

CHUNK_KEY_PATTERN = re.compile(r"^Chunk (\d+)\.(\d+)$")


def chunk_key(index: int, generation: int = 0) -> str:
    """Blob key for chunk ``index`` of push ``generation``."""
    return f"Chunk {generation}.{index}"


def parse_chunk_key(key: str) -> tuple[int, int] | None:
    """Return ``(generation, index)`` for a chunk key, or None for other keys."""
    match = CHUNK_KEY_PATTERN.match(key)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def split_text(text: str, max_chunk_size: int) -> list[str]:
    if max_chunk_size <= 0:
        raise ValueError(f"max_chunk_size must be positive, got {max_chunk_size}")
    if not text:
        return [""]
    return [
        text[start : start + max_chunk_size]
        for start in range(0, len(text), max_chunk_size)
    ]


def split(blob: bytes, max_chunk_size: int) -> list[str]:
    """Base64-encode ``blob`` and slice it into pieces of at most
    ``max_chunk_size`` characters. Always returns at least one chunk.
    """
    encoded = base64.b64encode(blob).decode("ascii")
    return split_text(encoded, max_chunk_size)


def join(chunks: Sequence[str]) -> bytes:
    """Concatenate chunks in the given order and decode them.

    Raises:
        ValueError: The concatenation is not valid base64.
    """
    try:
        return base64.b64decode("".join(chunks), validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid chunk encoding: {e}") from e
