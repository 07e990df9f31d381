from __future__ import annotations

import os

from .errors import UnsafePathError

# Separators the host filesystem understands. On POSIX a backslash is an
# ordinary filename character.
_SEPARATORS = tuple(s for s in (os.sep, os.altsep) if s)


def norm_path(p: str) -> str:
    """Normalize archive paths to a canonical forward-slash form.

    Rules:
    - Convert host separators to slashes
    - Strip leading/trailing slashes
    - Remove empty and '.' segments
    - Reject '..' segments
    """
    for sep in _SEPARATORS:
        if sep != "/":
            p = p.replace(sep, "/")
    p = p.strip("/")
    parts = [q for q in p.split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise UnsafePathError(f"Path may not contain '..': {p}")
    return "/".join(parts)


def relative_key(root: str, full_path: str) -> str:
    """Strip ``root`` and exactly one following separator from ``full_path``.

    The result uses forward slashes regardless of platform. Both the archive
    assembler and the verifier derive manifest keys through this function, so
    the mapping from file path to key is identical on both sides.
    """
    root = os.fspath(root)
    full_path = os.fspath(full_path)
    if not full_path.startswith(root):
        raise ValueError(f"{full_path} is not under {root}")
    rel = full_path[len(root):]
    if rel[:1] in _SEPARATORS:
        rel = rel[1:]
    elif rel and root[-1:] not in _SEPARATORS:
        raise ValueError(f"{full_path} is not under {root}")
    for sep in _SEPARATORS:
        if sep != "/":
            rel = rel.replace(sep, "/")
    return rel


def _is_absolute_key(rel_key: str) -> bool:
    if rel_key.startswith("/"):
        return True
    if "\\" in _SEPARATORS:
        return rel_key.startswith("\\") or (len(rel_key) > 1 and rel_key[1] == ":")
    return False


def safe_join(base: str, rel_key: str) -> str:
    """Join an archive key onto ``base``, refusing keys that escape it."""
    if _is_absolute_key(rel_key):
        raise UnsafePathError(f"Absolute path in archive: {rel_key}")
    clean = norm_path(rel_key)
    if not clean:
        raise UnsafePathError(f"Empty path in archive: {rel_key!r}")
    return os.path.join(base, *clean.split("/"))
