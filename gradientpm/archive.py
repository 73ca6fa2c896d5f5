"""Extraction of package archives with the system tar."""

from __future__ import annotations

import os
import subprocess


class ArchiveError(Exception):
    """Raised when an archive cannot be extracted."""


def _run_tar(args: list[str], archive: str) -> None:
    try:
        result = subprocess.run(["tar", *args], capture_output=True, text=True)
    except OSError as exc:
        raise ArchiveError(f"cannot run tar: {exc}") from exc
    if result.returncode != 0:
        detail = result.stderr.strip()
        raise ArchiveError(f"tar failed on '{archive}': {detail}")


def extract(archive, dest) -> None:
    """Extract the whole archive into ``dest``."""
    archive, dest = os.fspath(archive), os.fspath(dest)
    _run_tar(["-xf", archive, "-C", dest], archive)


def extract_member(archive, member, dest_dir) -> None:
    """Extract a single member of the archive into ``dest_dir``."""
    archive, dest_dir = os.fspath(archive), os.fspath(dest_dir)
    _run_tar(["-xf", archive, "-C", dest_dir, os.fspath(member)], archive)