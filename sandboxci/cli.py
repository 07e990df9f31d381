from __future__ import annotations

import argparse
import json
import os
import sys
import time
from typing import List, Optional

from sandboxci.artifacts import collect_contract_artifacts
from sandboxci.config import Settings
from sandboxci.context import ActionContext
from sandboxci.errors import SandboxCIError
from sandboxci.extract import human_size
from sandboxci.logging_config import setup_logging
from sandboxci.reader import ArchiveReader, decompress_archive
from sandboxci.runner import run_tests_and_compress
from sandboxci.webhook import send_compressed_data, send_contract_artifacts
from sandboxci.constants import DEFAULT_OUTPUT_DIRNAME, DEFAULT_TEST_RUNNER
from sandboxci.writer import compress_directory


def cmd_compress(source: str, *, outdir: Optional[str] = None, jobs: int = 1) -> bool:
    """Compress a directory tree into a verified archive.

    Args:
        source: Directory to archive.
        outdir: Destination directory; defaults to the system temp directory.
        jobs: Parallel per-file workers.
    """
    t0 = time.time()
    path = compress_directory(source, outdir, jobs=jobs)
    dt = max(0.000001, time.time() - t0)
    with ArchiveReader(str(path)) as r:
        meta = r.manifest.metadata
    print(path)
    print(
        f"Done: {meta.file_count} files; {human_size(meta.total_original_size)} -> "
        f"{human_size(meta.total_compressed_size)} ({meta.ratio:.2f}%) in {dt:.1f}s; "
        f"archive {human_size(path.stat().st_size)}"
    )
    return True


def cmd_extract(archive: str, *, outdir: str = ".", jobs: int = 1) -> bool:
    """Restore an archive into ``outdir``, verifying every file."""
    out = decompress_archive(archive, outdir, jobs=jobs)
    print(f"Extracted to: {out}")
    return True


def cmd_list(archive: str) -> bool:
    """List archived files as ``size<TAB>compressed<TAB>path``."""
    with ArchiveReader(archive) as r:
        for rec in r.list():
            print(f"{rec.original_size}\t{rec.compressed_size}\t{rec.relative_path}")
    return True


def cmd_info(archive: str) -> bool:
    """Show archive metadata."""
    with ArchiveReader(archive) as r:
        meta = r.manifest.metadata
        print(f"Archive: {archive}")
        print(f"  Created: {meta.timestamp}")
        print(f"  Files: {meta.file_count}")
        print(f"  Original size: {meta.total_original_size}")
        print(f"  Compressed size: {meta.total_compressed_size}")
        print(f"  Ratio: {meta.ratio:.2f}%")
    return True


def cmd_verify(archive: str) -> bool:
    """Check every payload against its recorded hash.

    Prints:
        "OK" on success, "FAIL" on mismatch.
    """
    with ArchiveReader(archive) as r:
        ok = r.verify()
    print("OK" if ok else "FAIL")
    return ok


def cmd_test(
    workdir: str,
    runner_args: List[str],
    *,
    directory_name: str = DEFAULT_OUTPUT_DIRNAME,
    runner: str = DEFAULT_TEST_RUNNER,
    send: bool = False,
) -> bool:
    """Run the test runner, archive its output directory and optionally upload it.

    Returns:
        True when the test runner exited 0.
    """
    outcome = run_tests_and_compress(workdir, runner_args, directory_name=directory_name, runner=runner)
    comp = outcome.compression
    if comp.path is None:
        print(f"No {directory_name} archive produced")
    else:
        print(f"Archive: {comp.path}")
        if send:
            settings = Settings.from_env()
            send_compressed_data(str(comp.path), ActionContext.from_env(), settings, comp.metadata)
            print("Artifacts sent")
    print(f"Tests: {outcome.status} (exit {outcome.result.exit_code})")
    return outcome.result.exit_code == 0


def cmd_contracts(
    workdir: str,
    *,
    script: Optional[str] = None,
    output: Optional[str] = None,
    send: bool = False,
) -> bool:
    """Collect deployed-contract artifacts for auto-verification.

    Returns:
        True when at least one contract was found.
    """
    artifacts = collect_contract_artifacts(workdir, script=script)
    if not artifacts:
        print("No contract artifacts found")
        return False
    for name, entry in sorted(artifacts.items()):
        chains = ", ".join(sorted(entry["contractAddresses"]))
        print(f"{name}\t{chains}")
    if output:
        with open(output, "w", encoding="utf-8") as fh:
            json.dump(artifacts, fh, indent=2)
        print(f"Written: {output}")
    if send:
        send_contract_artifacts(artifacts, ActionContext.from_env(), Settings.from_env())
        print("Artifacts sent")
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="sandboxci",
        description="Archive, restore and report CI sandbox test artifacts",
    )
    ap.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR (default: $LOG_LEVEL or INFO)")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_compress = sub.add_parser("compress", help="Compress a directory")
    ap_compress.add_argument("source", help="Directory to archive")
    ap_compress.add_argument("--outdir", help="Output directory (default: system temp dir)")
    ap_compress.add_argument("--jobs", "-j", type=int, default=None, help="Parallel workers (default $SANDBOXCI_JOBS or 1)")

    ap_extract = sub.add_parser("extract", help="Extract an archive")
    ap_extract.add_argument("archive", help="Archive path")
    ap_extract.add_argument("--outdir", default=".", help="Output directory")
    ap_extract.add_argument("--jobs", "-j", type=int, default=None, help="Parallel workers (default $SANDBOXCI_JOBS or 1)")

    ap_list = sub.add_parser("list", help="List archive contents")
    ap_list.add_argument("archive", help="Archive path")

    ap_info = sub.add_parser("info", help="Show archive information")
    ap_info.add_argument("archive", help="Archive path")

    ap_verify = sub.add_parser("verify", help="Verify archive integrity")
    ap_verify.add_argument("archive", help="Archive path")

    ap_test = sub.add_parser("test", help="Run tests and compress their output directory")
    ap_test.add_argument("--workdir", default=".", help="Project directory (default: .)")
    ap_test.add_argument("--dir", dest="directory_name", default=DEFAULT_OUTPUT_DIRNAME, help=f"Output directory name (default: {DEFAULT_OUTPUT_DIRNAME})")
    ap_test.add_argument("--runner", default=DEFAULT_TEST_RUNNER, help=f"Test runner executable (default: {DEFAULT_TEST_RUNNER})")
    ap_test.add_argument("--send", action="store_true", help="Upload the archive to the backend webhook")
    ap_test.add_argument("runner_args", nargs=argparse.REMAINDER, help="Arguments passed to '<runner> test'")

    ap_contracts = sub.add_parser("contracts", help="Collect deployed-contract artifacts for auto-verification")
    ap_contracts.add_argument("--workdir", default=".", help="Project directory holding broadcast/ and out/ (default: .)")
    ap_contracts.add_argument("--script", help="Only read broadcast/<SCRIPT> (default: every script)")
    ap_contracts.add_argument("--output", help="Also write the collected artifacts to this JSON file")
    ap_contracts.add_argument("--send", action="store_true", help="Upload the artifacts to the backend webhook")

    args = ap.parse_args(argv)
    setup_logging(log_level=args.log_level)
    try:
        jobs = getattr(args, "jobs", None)
        if jobs is None and args.cmd in ("compress", "extract"):
            jobs = Settings.from_env().jobs
        if args.cmd == "compress":
            cmd_compress(args.source, outdir=args.outdir, jobs=jobs)
        elif args.cmd == "extract":
            cmd_extract(args.archive, outdir=args.outdir, jobs=jobs)
        elif args.cmd == "list":
            cmd_list(args.archive)
        elif args.cmd == "info":
            cmd_info(args.archive)
        elif args.cmd == "verify":
            sys.exit(0 if cmd_verify(args.archive) else 1)
        elif args.cmd == "test":
            runner_args = args.runner_args
            if runner_args and runner_args[0] == "--":
                runner_args = runner_args[1:]
            ok = cmd_test(
                os.path.abspath(args.workdir),
                runner_args,
                directory_name=args.directory_name,
                runner=args.runner,
                send=args.send,
            )
            sys.exit(0 if ok else 1)
        elif args.cmd == "contracts":
            cmd_contracts(
                os.path.abspath(args.workdir),
                script=args.script,
                output=args.output,
                send=args.send,
            )
        else:
            raise RuntimeError("Unknown command")
    except (SandboxCIError, ValueError, RuntimeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
