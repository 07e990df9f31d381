from __future__ import annotations

import logging
import os
import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .constants import DEFAULT_OUTPUT_DIRNAME, DEFAULT_TEST_RUNNER, STATUS_FAILED, STATUS_SUCCESS
from .errors import ArchiveError
from .manifest import iso_timestamp
from .reader import load_manifest
from .writer import compress_directory


log = logging.getLogger(__name__)


@dataclass
class CommandResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""


@dataclass
class CompressionResult:
    path: Optional[Path] = None
    metadata: Optional[Dict[str, Any]] = None


@dataclass
class RunOutcome:
    result: CommandResult
    compression: CompressionResult = field(default_factory=CompressionResult)

    @property
    def status(self) -> str:
        return STATUS_SUCCESS if self.result.exit_code == 0 else STATUS_FAILED


def execute_command(command: str, args: Sequence[str] = (), cwd: Optional[str] = None) -> CommandResult:
    """Run ``command`` with ``args``, logging output lines as they arrive.

    Raises:
        OSError: If the command cannot be spawned.
    """
    proc = subprocess.Popen(
        [command, *args],
        cwd=cwd,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        errors="replace",
    )
    err_lines: List[str] = []

    def _drain_stderr():
        assert proc.stderr is not None
        for line in proc.stderr:
            err_lines.append(line)
            log.warning("%s", line.rstrip("\n"))

    t = threading.Thread(target=_drain_stderr, daemon=True)
    t.start()
    out_lines: List[str] = []
    assert proc.stdout is not None
    for line in proc.stdout:
        out_lines.append(line)
        log.info("%s", line.rstrip("\n"))
    exit_code = proc.wait()
    t.join()
    return CommandResult(exit_code=exit_code, stdout="".join(out_lines), stderr="".join(err_lines))


def compress_output_if_exists(
    working_dir: str,
    *,
    status: str = STATUS_SUCCESS,
    message: Optional[str] = None,
    directory_name: str = DEFAULT_OUTPUT_DIRNAME,
    output_dir: Optional[str] = None,
) -> CompressionResult:
    """Archive ``<working_dir>/<directory_name>`` when it exists.

    A missing directory or a failed compression yields an empty result; the
    failure is logged, not raised, so artifact upload never fails a test run.
    """
    target = os.path.join(working_dir, directory_name)
    if not os.path.isdir(target):
        log.info("%s directory not found at %s, skipping compression", directory_name, target)
        return CompressionResult()

    log.info("%s directory found at %s, compressing...", directory_name, target)
    try:
        archive = compress_directory(target, output_dir)
        meta = load_manifest(str(archive)).metadata
        compressed_size = archive.stat().st_size
    except (ArchiveError, OSError) as exc:
        log.error("Error compressing %s: %s", target, exc)
        return CompressionResult()

    ratio = compressed_size * 100.0 / meta.total_original_size if meta.total_original_size else 0.0
    metadata = {
        "status": status,
        "message": message or f"Test artifacts compressed at {iso_timestamp()}",
        "originalSize": meta.total_original_size,
        "compressedSize": compressed_size,
        "fileCount": meta.file_count,
        "timestamp": iso_timestamp(),
        "compressionRatio": f"{ratio:.2f}%",
    }
    log.info(
        "Compressed %s to %s (%d -> %d bytes, %s)",
        directory_name,
        archive,
        meta.total_original_size,
        compressed_size,
        metadata["compressionRatio"],
    )
    return CompressionResult(path=archive, metadata=metadata)


def run_tests_and_compress(
    working_dir: str,
    runner_args: Sequence[str] = (),
    *,
    directory_name: str = DEFAULT_OUTPUT_DIRNAME,
    runner: str = DEFAULT_TEST_RUNNER,
    output_dir: Optional[str] = None,
) -> RunOutcome:
    """Run ``<runner> test <args>`` in ``working_dir`` and archive its output.

    The output directory is compressed whether the tests pass or fail, and also
    when the runner could not be started at all.
    """
    log.info("Running %s test in %s...", runner, working_dir)
    try:
        result = execute_command(runner, ["test", *runner_args], cwd=working_dir)
    except OSError as exc:
        log.error("Error running %s test: %s", runner, exc)
        result = CommandResult(exit_code=1, stderr=str(exc))
        message = f"{runner} test command failed: {exc}"
    else:
        log.info("%s test completed with exit code %d", runner, result.exit_code)
        if result.exit_code == 0:
            message = f"{runner} test completed successfully"
        else:
            message = f"{runner} test failed with exit code {result.exit_code}"

    run = RunOutcome(result=result)
    run.compression = compress_output_if_exists(
        working_dir,
        status=run.status,
        message=message,
        directory_name=directory_name,
        output_dir=output_dir,
    )
    return run
