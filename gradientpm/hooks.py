"""Running install, upgrade and removal hooks from package scripts."""

from __future__ import annotations

import os
import shlex
import subprocess
import sys


def build_hook_command(script_path, hook_name: str, chroot_dir="") -> list[str]:
    """Build the command that sources a script and calls its hooks.

    ``post_common`` is always attempted before ``hook_name``. When a chroot
    other than ``/`` is given, the script path is made relative to it.
    """
    script_path = os.fspath(script_path)
    chroot_dir = os.fspath(chroot_dir)
    do_chroot = bool(chroot_dir) and chroot_dir != "/"

    in_chroot_path = script_path
    if do_chroot and script_path.startswith(chroot_dir):
        in_chroot_path = script_path[len(chroot_dir):] or "/"

    inner = (
        f". {shlex.quote(in_chroot_path)}; "
        "if command -v post_common >/dev/null 2>&1; then post_common; fi; "
        f"if command -v {hook_name} >/dev/null 2>&1; then {hook_name}; fi"
    )
    shell = ["/bin/sh", "-e", "-c", inner]
    return ["chroot", chroot_dir, *shell] if do_chroot else shell


def run_script(script_path, hook_name: str, chroot_dir="") -> int | None:
    """Run a hook from a script; return its exit status, or None if skipped."""
    if not os.path.exists(script_path):
        print(
            f"\033[33minfo:\033[0m script '{script_path}' not found; skipping hooks",
            file=sys.stderr,
        )
        return None
    rc = subprocess.run(build_hook_command(script_path, hook_name, chroot_dir)).returncode
    if rc != 0:
        print(
            f"\033[33mwarning:\033[0m hook '{hook_name}' in script '{script_path}' "
            f"exited with code {rc}",
            file=sys.stderr,
        )
    return rc