from __future__ import annotations

import logging
from typing import Sequence

from .codec import unpack
from .errors import (
    ArchiveIOError,
    CountMismatchError,
    DecompressionError,
    IntegrityError,
    MissingFileError,
)
from .hashutil import sha256_file, sha256_hex
from .manifest import Manifest
from .pathutil import relative_key
from .reader import load_manifest


log = logging.getLogger(__name__)


def verify_archive(archive_path: str, original_files: Sequence[str], source_root: str) -> Manifest:
    """Prove that a freshly written archive reproduces ``original_files``.

    Checks, in order:
    1.  The manifest lists exactly as many files as were enumerated.
    2.  Every enumerated file is present under its relative key.
    3.  The live file still hashes to the stored digest (this also catches
        files modified while the archive was being built).
    4.  The stored payload decompresses to bytes with the stored digest.

    Raises the matching :mod:`sandboxci.errors` class on the first failure.
    """
    log.info("Validating compressed archive: %s", archive_path)
    manifest = load_manifest(archive_path)

    if len(manifest.files) != len(original_files):
        raise CountMismatchError(
            f"File count mismatch: archive has {len(manifest.files)} files, "
            f"original had {len(original_files)} files"
        )

    for fs_path in original_files:
        key = relative_key(source_root, fs_path)
        rec = manifest.files.get(key)
        if rec is None:
            raise MissingFileError(f"File {key} not found in archive")
        try:
            live_hash = sha256_file(fs_path)
        except OSError as exc:
            raise ArchiveIOError(f"Cannot re-read {fs_path} for validation: {exc}") from exc
        if live_hash != rec.original_hash:
            raise IntegrityError(f"Hash mismatch for {key}")
        try:
            restored = unpack(rec.content)
        except ValueError as exc:
            raise DecompressionError(f"Decompression validation failed for {key}: {exc}") from exc
        if sha256_hex(restored) != rec.original_hash:
            raise DecompressionError(f"Decompression validation failed for {key}")

    log.info("Validation successful: all %d files verified", len(original_files))
    return manifest
