from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

from .codec import decompress_payload, unpack
from .errors import ArchiveIOError, DecompressionError, ManifestFormatError, NotFoundError
from .hashutil import sha256_file, sha256_hex
from .manifest import FileRecord, Manifest
from .pathutil import safe_join
from .pool import run_all


log = logging.getLogger(__name__)


def load_manifest(archive_path: str) -> Manifest:
    """Read, gunzip and parse the manifest stored in ``archive_path``."""
    if not os.path.isfile(archive_path):
        raise NotFoundError(f"Archive not found at {archive_path}")
    try:
        with open(archive_path, "rb") as fh:
            blob = fh.read()
    except OSError as exc:
        raise ArchiveIOError(f"Cannot read archive {archive_path}: {exc}") from exc
    try:
        raw = decompress_payload(blob)
    except ValueError as exc:
        raise ManifestFormatError(f"Archive {archive_path} is not a valid gzip stream: {exc}") from exc
    return Manifest.loads(raw)


class ArchiveReader:
    """Read-only access to an archive written by :func:`compress_directory`."""

    def __init__(self, path: str):
        self.path = os.fspath(path)
        self.manifest: Optional[Manifest] = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self.manifest is not None:
            return
        self.manifest = load_manifest(self.path)

    def close(self):
        self.manifest = None

    def list(self) -> List[FileRecord]:
        if self.manifest is None:
            raise RuntimeError("Archive not open")
        return self.manifest.records()

    def extract(self, record: FileRecord, out_path: str):
        """Restore one record to ``out_path`` and check the written bytes."""
        try:
            data = unpack(record.content)
        except ValueError as exc:
            raise DecompressionError(f"Decompression failed for {record.relative_path}: {exc}") from exc
        try:
            os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
            with open(out_path, "wb") as wf:
                wf.write(data)
            written = sha256_file(out_path)
        except OSError as exc:
            raise ArchiveIOError(f"Cannot write {out_path}: {exc}") from exc
        if written != record.original_hash:
            raise DecompressionError(f"Decompression validation failed for {record.relative_path}")

    def verify(self) -> bool:
        """
        Check that every stored payload decompresses to its recorded digest
        and size, and that the metadata aggregates match the records.

        Returns:
            True if all checks pass, False otherwise.
        """
        if self.manifest is None:
            raise RuntimeError("Archive not open")
        ok = True
        records = self.manifest.records()
        for rec in records:
            try:
                data = unpack(rec.content)
            except ValueError:
                log.warning("payload for %s does not decompress", rec.relative_path)
                ok = False
                continue
            if len(data) != rec.original_size or sha256_hex(data) != rec.original_hash:
                log.warning("payload for %s does not match its recorded hash", rec.relative_path)
                ok = False
        meta = self.manifest.metadata
        aggregates = (
            ("fileCount", meta.file_count, len(records)),
            ("totalOriginalSize", meta.total_original_size, sum(r.original_size for r in records)),
            ("totalCompressedSize", meta.total_compressed_size, sum(r.compressed_size for r in records)),
        )
        for name, recorded, actual in aggregates:
            if recorded != actual:
                log.warning("metadata %s %d != %d from entries", name, recorded, actual)
                ok = False
        return ok


def decompress_archive(archive_path: str, output_dir: str, *, jobs: int = 1) -> Path:
    """Recreate the archived tree under ``output_dir``.

    Each file is written, read back and re-hashed; the first mismatch aborts
    with :class:`DecompressionError`. Files restored before the failure stay
    on disk.
    """
    out = Path(output_dir)
    with ArchiveReader(archive_path) as r:
        records = r.list()
        # resolve every destination up front so an unsafe key aborts before
        # anything is written
        targets = [(rec, safe_join(str(out), rec.relative_path)) for rec in records]
        try:
            out.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ArchiveIOError(f"Cannot create output directory {out}: {exc}") from exc
        run_all(lambda item: r.extract(item[0], item[1]), targets, jobs)
    log.info("Successfully decompressed archive to %s", out)
    return out
