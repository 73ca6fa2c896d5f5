"""Installing package archives onto a root file system and removing them."""

from __future__ import annotations

import os
import platform
import shutil
import subprocess
import sys
import tempfile
from collections.abc import Iterable, Iterator
from pathlib import Path

from gradientpm.archive import ArchiveError, extract
from gradientpm.database import DatabaseError
from gradientpm.hooks import run_script
from gradientpm.metadata import Metadata, MetadataError, Package
from gradientpm.resolver import DependencyResolver
from gradientpm.versions import eval_constraint, parse_constraint

SCRIPT_FILENAME = "install.anemonix"
SCRIPTS_SUBDIR = "var/lib/gradient/scripts"


class InstallError(Exception):
    """Raised when a package cannot be installed or removed."""


def detect_host_arch() -> str:
    """Machine architecture of the running host, as reported by uname."""
    return platform.machine()


def _warn(message: str) -> None:
    print(f"\033[33mwarning:\033[0m {message}", file=sys.stderr)


def _find_script(root: Path) -> Path | None:
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        if SCRIPT_FILENAME in filenames:
            candidate = Path(dirpath) / SCRIPT_FILENAME
            if candidate.is_file():
                return candidate
    return None


def _installed_entries(pkg_root: Path) -> Iterator[Path]:
    """Regular files and symlinks below ``pkg_root``, without following links."""
    for dirpath, dirnames, filenames in os.walk(pkg_root):
        dirnames.sort()
        for name in sorted(filenames) + dirnames:
            path = Path(dirpath) / name
            if path.is_symlink() or path.is_file():
                yield path


def _copy_tree(src: Path, dest: str) -> bool:
    """Stream ``src`` into ``dest`` through tar, keeping links, modes, ACLs and xattrs."""
    try:
        create = subprocess.Popen(
            ["tar", "--acls", "--xattrs", "-C", os.fspath(src), "-cf", "-", "."],
            stdout=subprocess.PIPE,
        )
    except OSError:
        return False
    try:
        unpack = subprocess.run(
            ["tar", "--acls", "--xattrs", "-C", dest, "-xpf", "-"],
            stdin=create.stdout,
        )
        unpack_rc = unpack.returncode
    except OSError:
        unpack_rc = -1
    finally:
        if create.stdout is not None:
            create.stdout.close()
        create_rc = create.wait()
    return create_rc == 0 and unpack_rc == 0


class Installer:
    """Installs and removes packages, keeping the database in step."""

    def __init__(self, db, repo, force=False, root_dir="/", staged=()):
        self.db = db
        self.repo = repo
        self.resolver = DependencyResolver(db, repo)
        self.force = force
        self.root_dir = os.fspath(root_dir)
        self.staged = frozenset(staged)
        self.warnings = False

    def _problem(self, warning: str, abort: str) -> None:
        _warn(warning)
        if not self.force:
            raise InstallError(abort)
        self.warnings = True

    def _check_dependencies(self, meta: Metadata) -> None:
        for raw_dep in meta.deps:
            constraint = parse_constraint(raw_dep)
            dep = constraint.name
            if ".so" in dep:
                continue
            if dep in meta.provides:
                continue
            if self.db.is_provided(dep) or self.db.provides_satisfies(constraint):
                continue
            if dep in self.staged:
                continue
            installed = self.db.package_version(dep)
            if installed is not None:
                if not eval_constraint(installed, constraint):
                    self._problem(
                        f"dependency '{raw_dep}' demands version "
                        f"{constraint.op}{constraint.version}, but found {installed}",
                        "Aborting due to version mismatch.",
                    )
                continue
            self._problem(
                f"Missing dependency '{raw_dep}'",
                "Aborting due to missing dependency.",
            )

    def _check_conflicts(self, meta: Metadata) -> None:
        for raw_conf in meta.conflicts:
            constraint = parse_constraint(raw_conf)
            installed = self.db.package_version(constraint.name)
            if installed is not None and eval_constraint(installed, constraint):
                self._problem(
                    f"conflict with installed '{raw_conf}'",
                    "Aborting due to conflict.",
                )

    def _apply_replaces(self, meta: Metadata) -> None:
        for raw_rep in meta.replaces:
            constraint = parse_constraint(raw_rep)
            installed = self.db.package_version(constraint.name)
            if installed is not None and eval_constraint(installed, constraint):
                print(f"\033[32minfo:\033[0m Replacing '{raw_rep}'")
                try:
                    self.remove_package(constraint.name)
                except InstallError as exc:
                    print(f"\033[31merror:\033[0m {exc}", file=sys.stderr)

    def _persist_script(self, meta: Metadata, extracted: Path) -> str:
        source = _find_script(extracted)
        if source is None:
            return ""
        scripts_dir = Path(self.root_dir) / SCRIPTS_SUBDIR
        scripts_dir.mkdir(parents=True, exist_ok=True)
        target = scripts_dir / f"{meta.name}-{meta.version}.anemonix"
        shutil.copyfile(source, target)
        return os.fspath(target)

    def install_archive(self, archive_path) -> Metadata:
        """Install a package archive and return its metadata."""
        self.warnings = False

        try:
            meta = Package(archive_path).load_metadata()
        except MetadataError as exc:
            raise InstallError("Failed to read package metadata.") from exc

        host_arch = detect_host_arch()
        if meta.arch not in ("any", "all") and meta.arch != host_arch:
            raise InstallError(
                f"Arch mismatch: package is '{meta.arch}' but host is '{host_arch}'."
            )

        self._check_dependencies(meta)
        self._check_conflicts(meta)
        self._apply_replaces(meta)

        with tempfile.TemporaryDirectory(prefix="gradient") as tmp:
            try:
                extract(archive_path, tmp)
            except ArchiveError as exc:
                raise InstallError("Failed to extract package.") from exc

            stored_script = self._persist_script(meta, Path(tmp))
            installed_files: list[Path] = []

            def rollback() -> None:
                try:
                    self.db.rollback()
                except DatabaseError:
                    print(
                        "\033[31merror:\033[0m Failed to rollback transaction.",
                        file=sys.stderr,
                    )
                for path in reversed(installed_files):
                    try:
                        path.unlink()
                    except OSError:
                        pass
                if stored_script:
                    try:
                        os.remove(stored_script)
                    except OSError:
                        pass

            try:
                self.db.begin()
            except DatabaseError as exc:
                raise InstallError("Failed to begin DB transaction.") from exc

            try:
                self.db.add_package(meta, stored_script)
            except DatabaseError as exc:
                rollback()
                raise InstallError("Failed to add package record.") from exc

            pkg_root = Path(tmp) / "package"
            has_files = pkg_root.is_dir() and any(pkg_root.iterdir())
            if not has_files:
                print(
                    "\033[33minfo:\033[0m package contains no files; "
                    "skipping file installation",
                    file=sys.stderr,
                )
            else:
                if not _copy_tree(pkg_root, self.root_dir):
                    rollback()
                    raise InstallError(
                        "Failed to extract package files via tar pipeline."
                    )
                for entry in _installed_entries(pkg_root):
                    rel = entry.relative_to(pkg_root)
                    record_path = "/" + rel.as_posix()
                    try:
                        self.db.log_file(meta.name, record_path)
                    except DatabaseError as exc:
                        rollback()
                        raise InstallError(
                            f"Failed logging file '{record_path}'."
                        ) from exc
                    installed_files.append(Path(self.root_dir) / rel)

            try:
                self.db.commit()
            except DatabaseError as exc:
                rollback()
                raise InstallError("Failed to commit DB transaction.") from exc

        if self.warnings and self.force:
            print(
                "\033[33mwarning:\033[0m Package installed with warnings; "
                "marking as broken."
            )
            try:
                self.db.mark_broken(meta.name)
            except DatabaseError as exc:
                raise InstallError(f"Failed to mark '{meta.name}' broken.") from exc
            return meta

        if stored_script:
            try:
                run_script(stored_script, "post_install", self.root_dir)
            except OSError as exc:
                _warn(f"hook 'post_install' in script '{stored_script}' failed: {exc}")

        print(f"\033[32msuccess:\033[0m Installed '{meta.name}-{meta.version}'.")
        return meta

    def remove_package(self, name: str) -> None:
        """Remove an installed package, its files and its script."""
        if not self.db.is_installed(name):
            raise InstallError(f"Package '{name}' is not installed.")

        dependents = self.db.reverse_dependencies(name)
        if dependents:
            if not self.force:
                listing = "".join(f"\n  - {pkg}" for pkg in dependents)
                raise InstallError(
                    f"Cannot remove '{name}'; other packages depend on it:{listing}"
                )
            _warn(f"Force removing '{name}'; marking dependents as broken.")
            for pkg in dependents:
                self.db.mark_broken(pkg)

        script = self.db.install_script(name)

        try:
            self.db.begin()
        except DatabaseError as exc:
            raise InstallError("Failed to begin DB transaction.") from exc

        for recorded in self.db.files(name):
            dest = Path(self.root_dir) / recorded[1:]
            if os.path.lexists(dest):
                try:
                    dest.unlink()
                except OSError:
                    _warn(f"Failed to remove file '{dest}'.")

        self._in_transaction(
            lambda: self.db.remove_files(name), "Failed to remove file records."
        )

        if script and os.path.exists(script):
            print(script)
            try:
                run_script(script, "post_remove")
            except OSError as exc:
                _warn(f"hook 'post_remove' in script '{script}' failed: {exc}")

        if script:
            try:
                os.remove(script)
            except OSError:
                _warn(f"Failed to remove script '{script}'.")

        self._in_transaction(
            lambda: self.db.delete_package(name), "Failed to remove package record."
        )
        self._in_transaction(self.db.commit, "Failed to commit DB transaction.")

        print(f"\033[32msuccess:\033[0m Removed '{name}'.")

    def _in_transaction(self, action, failure: str) -> None:
        try:
            action()
        except DatabaseError as exc:
            try:
                self.db.rollback()
            except DatabaseError:
                pass
            raise InstallError(failure) from exc

    def install_order(self, target: Metadata) -> list[str]:
        """Archive names needed to install ``target``, dependencies first."""
        return self.resolver.resolve_install(target)