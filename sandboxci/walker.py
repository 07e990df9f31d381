from __future__ import annotations

import logging
import os
import stat
from typing import List

from .errors import ArchiveIOError, NotFoundError


log = logging.getLogger(__name__)


def enumerate_files(root: str) -> List[str]:
    """Return absolute paths of every regular file under ``root``.

    Directories are walked with an explicit stack, so arbitrarily deep trees do
    not hit the recursion limit. Entries are visited in name order and the
    result is sorted, which keeps archives reproducible for an unchanged tree.

    Symlinks that resolve to regular files are included; symlinked directories
    are not descended into. Anything else (sockets, FIFOs, dangling links) is
    skipped.
    """
    root = os.path.abspath(os.fspath(root))
    if not os.path.isdir(root):
        raise NotFoundError(f"Source directory not found at {root}")

    files: List[str] = []
    stack = [root]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            raise ArchiveIOError(f"Cannot list directory {current}: {exc}") from exc
        subdirs: List[str] = []
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                subdirs.append(entry.path)
                continue
            try:
                st = os.stat(entry.path)
            except OSError:
                log.debug("skipping dangling entry %s", entry.path)
                continue
            if stat.S_ISREG(st.st_mode):
                files.append(entry.path)
            else:
                log.debug("skipping non-regular entry %s", entry.path)
        # reversed so the lexicographically first subdirectory is popped next
        stack.extend(reversed(subdirs))
    files.sort()
    return files
