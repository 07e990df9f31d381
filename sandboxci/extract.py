from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional

from .errors import SandboxCIError
from .logging_config import setup_logging
from .reader import decompress_archive
from .constants import DEFAULT_EXTRACT_DIRNAME


def human_size(n: int) -> str:
    if n < 1024:
        return f"{n} bytes"
    if n < 1024 * 1024:
        return f"{n / 1024:.2f} KB"
    if n < 1024 ** 3:
        return f"{n / (1024 * 1024):.2f} MB"
    return f"{n / 1024 ** 3:.2f} GB"


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for ``extract-archive <archive-path> [output-directory]``.

    Exits 1 when the archive argument is missing or extraction fails.
    """
    ap = argparse.ArgumentParser(
        prog="extract-archive",
        description="Extract a directory archive created by sandboxci",
    )
    ap.add_argument("archive", nargs="?", help="Compressed archive path")
    ap.add_argument("outdir", nargs="?", help="Output directory (default: ./extracted)")
    ap.add_argument("--jobs", "-j", type=int, default=1, help="Parallel restore workers (default 1)")
    args = ap.parse_args(argv)

    if not args.archive:
        print("Usage: extract-archive <compressed-file-path> [output-directory]", file=sys.stderr)
        sys.exit(1)

    setup_logging()
    outdir = args.outdir or os.path.join(os.getcwd(), DEFAULT_EXTRACT_DIRNAME)
    print(f"Extracting compressed archive: {args.archive}")
    print(f"Output directory: {outdir}")
    try:
        extracted = decompress_archive(args.archive, outdir, jobs=args.jobs)
        names = sorted(os.listdir(extracted))
    except (SandboxCIError, OSError) as exc:
        print(f"Error extracting archive: {exc}", file=sys.stderr)
        sys.exit(1)

    print(f"Successfully extracted archive to: {extracted}")
    print(f"Extracted {len(names)} top-level entries:")
    for name in names:
        full = extracted / name
        if full.is_dir():
            print(f"   - {name}/")
        else:
            print(f"   - {name} ({human_size(full.stat().st_size)})")
    return 0


if __name__ == "__main__":
    main()
