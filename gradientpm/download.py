"""Concurrent downloads of package archives with a progress line per file."""

from __future__ import annotations

import http.client
import os
import sys
import threading
import urllib.error
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

BAR_WIDTH = 40
# A transfer that stalls for this long is abandoned.
STALL_TIMEOUT = 30
_CHUNK_SIZE = 64 * 1024


@dataclass
class DownloadContext:
    """Where one download stands among a batch, and the lock its output shares."""

    index: int
    total: int
    name: str
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


def _bar(filled: int) -> str:
    filled = max(0, min(filled, BAR_WIDTH))
    return "=" * filled + " " * (BAR_WIDTH - filled)


def render_progress(ctx: DownloadContext, downloaded: int, total: int) -> str:
    """The progress line for a download, meant to overwrite the previous one."""
    fraction = downloaded / total if total > 0 else 0.0
    pos = int(fraction * BAR_WIDTH)
    percent = int(fraction * 100.0)
    return (
        f"\r  ↓ [{ctx.index}/{ctx.total}] {ctx.name:<20} "
        f"[{_bar(pos)}] {percent:3d}%"
    )


def _emit(ctx: DownloadContext, text: str) -> None:
    with ctx.lock:
        sys.stdout.write(text)
        sys.stdout.flush()


def download(url: str, out_path, ctx: DownloadContext) -> bool:
    """Fetch ``url`` into ``out_path``, showing progress; tell whether it worked."""
    try:
        out = open(os.fspath(out_path), "wb")
    except OSError:
        return False

    error: Exception | None = None
    with out:
        try:
            with urllib.request.urlopen(url, timeout=STALL_TIMEOUT) as response:
                length = int(response.headers.get("Content-Length") or 0)
                done = 0
                _emit(ctx, render_progress(ctx, done, length))
                while chunk := response.read(_CHUNK_SIZE):
                    out.write(chunk)
                    done += len(chunk)
                    _emit(ctx, render_progress(ctx, done, length))
        except (OSError, ValueError, http.client.HTTPException) as exc:
            error = exc

    if error is None:
        _emit(
            ctx,
            f"\r  ✔ [{ctx.index}/{ctx.total}] {ctx.name:<20} "
            f"[{_bar(BAR_WIDTH)}] 100%\n",
        )
        return True

    reason = error.reason if isinstance(error, urllib.error.URLError) else error
    _emit(
        ctx,
        f"\r  ✖ [{ctx.index}/{ctx.total}] {ctx.name:<20} download failed: {reason}\n",
    )
    return False


def download_all(jobs) -> bool:
    """Run ``(url, out_path, name)`` downloads in parallel; tell whether all worked."""
    jobs = list(jobs)
    if not jobs:
        return True
    lock = threading.Lock()
    contexts = [
        DownloadContext(number, len(jobs), name, lock)
        for number, (_, _, name) in enumerate(jobs, start=1)
    ]
    with ThreadPoolExecutor(max_workers=len(jobs)) as pool:
        futures = [
            pool.submit(download, url, out_path, ctx)
            for (url, out_path, _), ctx in zip(jobs, contexts)
        ]
        results = [future.result() for future in futures]
    return all(results)