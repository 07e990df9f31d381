"""
sandboxci: CI helpers for ephemeral blockchain sandbox runs.

The core is a directory archive engine:

- Every regular file under a directory is hashed (SHA-256), gzip-compressed
  at maximum level and base64-encoded into a JSON manifest.
- Each payload is decompressed and re-hashed as soon as it is produced.
- The manifest is gzip-compressed as a whole into a single ``.gz`` file, which
  is verified against the live tree before it is moved into place.
- Restoring writes every file back, re-reads it and checks its hash.

Around it sit thin collaborators: a test-runner wrapper that archives the
runner's output directory, a webhook client that reports the archive to the
backend, a sandbox provisioning/liveness client, and a collector of deployed
contract artifacts for explorer auto-verification.
"""

__version__ = "0.1"

__all__ = [
    "writer",
    "reader",
    "verify",
    "manifest",
    "runner",
    "webhook",
    "artifacts",
    "sandbox",
]

# Programmatic API: sandboxci.writer.compress_directory and
# sandboxci.reader.decompress_archive; the CLI lives in sandboxci.cli.
