from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List

from .constants import MANIFEST_ENCODING
from .errors import ManifestFormatError


@dataclass(frozen=True)
class FileRecord:
    relative_path: str
    content: str  # base64 over gzip
    original_hash: str  # sha256 hex
    original_size: int
    compressed_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "originalHash": self.original_hash,
            "originalSize": self.original_size,
            "compressedSize": self.compressed_size,
        }

    @classmethod
    def from_dict(cls, relative_path: str, d: Any) -> "FileRecord":
        if not isinstance(d, dict):
            raise ManifestFormatError(f"Entry for {relative_path} is not an object")
        try:
            content = d["content"]
            original_hash = d["originalHash"]
            original_size = d["originalSize"]
            compressed_size = d["compressedSize"]
        except KeyError as e:
            raise ManifestFormatError(f"Entry for {relative_path} is missing {e.args[0]!r}") from e
        if not isinstance(content, str) or not isinstance(original_hash, str):
            raise ManifestFormatError(f"Entry for {relative_path} has non-string content or hash")
        if not _is_count(original_size) or not _is_count(compressed_size):
            raise ManifestFormatError(f"Entry for {relative_path} has invalid sizes")
        return cls(
            relative_path=relative_path,
            content=content,
            original_hash=original_hash,
            original_size=original_size,
            compressed_size=compressed_size,
        )


@dataclass(frozen=True)
class ArchiveMetadata:
    timestamp: str
    file_count: int
    total_original_size: int
    total_compressed_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "fileCount": self.file_count,
            "totalOriginalSize": self.total_original_size,
            "totalCompressedSize": self.total_compressed_size,
        }

    @classmethod
    def from_dict(cls, d: Any) -> "ArchiveMetadata":
        if not isinstance(d, dict):
            raise ManifestFormatError("Archive metadata is not an object")
        try:
            return cls(
                timestamp=str(d["timestamp"]),
                file_count=int(d["fileCount"]),
                total_original_size=int(d["totalOriginalSize"]),
                total_compressed_size=int(d["totalCompressedSize"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ManifestFormatError(f"Invalid archive metadata: {e}") from e

    @property
    def ratio(self) -> float:
        """Compressed size as a percentage of the original size."""
        if not self.total_original_size:
            return 0.0
        return self.total_compressed_size * 100.0 / self.total_original_size


@dataclass
class Manifest:
    metadata: ArchiveMetadata
    files: Dict[str, FileRecord] = field(default_factory=dict)

    @classmethod
    def build(cls, records: Iterable[FileRecord], *, timestamp: str | None = None) -> "Manifest":
        files: Dict[str, FileRecord] = {}
        for rec in records:
            if rec.relative_path in files:
                raise ManifestFormatError(f"Duplicate archive path: {rec.relative_path}")
            files[rec.relative_path] = rec
        meta = ArchiveMetadata(
            timestamp=timestamp or iso_timestamp(),
            file_count=len(files),
            total_original_size=sum(r.original_size for r in files.values()),
            total_compressed_size=sum(r.compressed_size for r in files.values()),
        )
        return cls(metadata=meta, files=files)

    def records(self) -> List[FileRecord]:
        return [self.files[k] for k in sorted(self.files)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict(),
            "files": {k: r.to_dict() for k, r in self.files.items()},
        }

    @classmethod
    def from_dict(cls, d: Any) -> "Manifest":
        if not isinstance(d, dict) or "files" not in d or "metadata" not in d:
            raise ManifestFormatError("Archive manifest must contain 'metadata' and 'files'")
        raw_files = d["files"]
        if not isinstance(raw_files, dict):
            raise ManifestFormatError("Archive 'files' is not an object")
        files = {k: FileRecord.from_dict(k, v) for k, v in raw_files.items()}
        return cls(metadata=ArchiveMetadata.from_dict(d["metadata"]), files=files)

    def dumps(self) -> bytes:
        return json.dumps(self.to_dict(), separators=(",", ":")).encode(MANIFEST_ENCODING)

    @classmethod
    def loads(cls, data: bytes) -> "Manifest":
        try:
            obj = json.loads(data.decode(MANIFEST_ENCODING))
        except (UnicodeDecodeError, ValueError) as e:
            raise ManifestFormatError(f"Archive manifest is not valid JSON: {e}") from e
        return cls.from_dict(obj)


def iso_timestamp() -> str:
    """UTC ISO 8601 with millisecond precision, e.g. 2024-05-01T12:00:00.000Z."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def _is_count(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool) and v >= 0
