from __future__ import annotations

import base64
import binascii
import gzip
import zlib
from typing import Optional

from .constants import COMPRESS_LEVEL


def compress_payload(data: bytes, level: Optional[int] = None) -> bytes:
    # mtime=0 keeps the gzip header independent of wall-clock time
    return gzip.compress(data, compresslevel=COMPRESS_LEVEL if level is None else level, mtime=0)


def decompress_payload(data: bytes) -> bytes:
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        raise ValueError(f"gzip decompression failed: {e}") from e


def encode_payload(compressed: bytes) -> str:
    return base64.b64encode(compressed).decode("ascii")


def decode_payload(text: str) -> bytes:
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"invalid base64 payload: {e}") from e


def pack(data: bytes) -> tuple[str, int]:
    """Compress and text-encode ``data``; returns (text, compressed length)."""
    compressed = compress_payload(data)
    return encode_payload(compressed), len(compressed)


def unpack(text: str) -> bytes:
    return decompress_payload(decode_payload(text))
