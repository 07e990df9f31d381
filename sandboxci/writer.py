from __future__ import annotations

import logging
import os
import tempfile
import time
from pathlib import Path
from typing import List, Optional

from .codec import compress_payload, pack, unpack
from .constants import ARCHIVE_INFIX, ARCHIVE_SUFFIX, PARTIAL_SUFFIX
from .errors import ArchiveIOError, EmptyDirectoryError, ValidationError
from .hashutil import sha256_hex
from .manifest import FileRecord, Manifest
from .pathutil import relative_key
from .pool import run_all
from .verify import verify_archive
from .walker import enumerate_files


log = logging.getLogger(__name__)


def compress_file(fs_path: str, root: str) -> FileRecord:
    """Compress one file into a verified :class:`FileRecord`.

    The payload is decompressed again right away and re-hashed; a mismatch
    aborts with :class:`ValidationError` rather than producing a record that
    would not restore.
    """
    try:
        with open(fs_path, "rb") as fh:
            data = fh.read()
    except OSError as exc:
        raise ArchiveIOError(f"Error compressing file {fs_path}: {exc}") from exc
    original_hash = sha256_hex(data)
    content, compressed_size = pack(data)
    try:
        roundtrip = unpack(content)
    except ValueError as exc:
        raise ValidationError(f"Compression validation failed for {fs_path}: {exc}") from exc
    if sha256_hex(roundtrip) != original_hash:
        raise ValidationError(f"Compression validation failed for {fs_path}. Hash mismatch.")
    return FileRecord(
        relative_path=relative_key(root, fs_path),
        content=content,
        original_hash=original_hash,
        original_size=len(data),
        compressed_size=compressed_size,
    )


def archive_name(source_dir: str, when_ms: Optional[int] = None) -> str:
    base = os.path.basename(os.path.normpath(source_dir))
    stamp = int(time.time() * 1000) if when_ms is None else when_ms
    return f"{base}{ARCHIVE_INFIX}{stamp}{ARCHIVE_SUFFIX}"


def compress_directory(source_dir: str, output_dir: Optional[str] = None, *, jobs: int = 1) -> Path:
    """Archive every file under ``source_dir`` into a single gzip file.

    Steps:
    1.  Enumerate regular files (an empty tree is rejected).
    2.  Compress and self-check each file, keyed by its path relative to
        ``source_dir``.
    3.  Serialize the manifest, gzip it as a whole and write it next to its
        final name with a ``.partial`` suffix.
    4.  Verify the written archive against the live tree, then rename it into
        place.

    Returns:
        Path of the archive, ``<output_dir>/<basename>_compressed_<ms>.gz``.
    """
    root = os.path.abspath(os.fspath(source_dir))
    files = enumerate_files(root)
    if not files:
        raise EmptyDirectoryError(f"No files found in {root}")
    log.info("Found %d files in %s", len(files), root)

    records: List[FileRecord] = run_all(lambda p: compress_file(p, root), files, jobs)
    manifest = Manifest.build(records)
    meta = manifest.metadata

    blob = compress_payload(manifest.dumps())

    out_dir = Path(output_dir) if output_dir is not None else Path(tempfile.gettempdir())
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ArchiveIOError(f"Cannot create output directory {out_dir}: {exc}") from exc
    out_path = out_dir / archive_name(root)
    partial = out_path.with_name(out_path.name + PARTIAL_SUFFIX)
    try:
        try:
            with open(partial, "wb") as fh:
                fh.write(blob)
        except OSError as exc:
            raise ArchiveIOError(f"Cannot write archive {partial}: {exc}") from exc
        verify_archive(str(partial), files, root)
        try:
            os.replace(partial, out_path)
        except OSError as exc:
            raise ArchiveIOError(f"Cannot move archive into place at {out_path}: {exc}") from exc
    except BaseException:
        partial.unlink(missing_ok=True)
        raise

    log.info("Successfully compressed directory to %s", out_path)
    log.info(
        "Original size: %d bytes; compressed size: %d bytes; ratio: %.2f%%",
        meta.total_original_size,
        meta.total_compressed_size,
        meta.ratio,
    )
    return out_path
