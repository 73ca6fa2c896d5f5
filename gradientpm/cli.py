"""Command-line front end of the package manager."""

from __future__ import annotations

import argparse
import os
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path

from gradientpm.database import Database, DatabaseError
from gradientpm.download import download_all
from gradientpm.installer import InstallError, Installer
from gradientpm.repos import (
    DEFAULT_PRIORITY,
    SYSTEM_REPOS_DIR,
    RepoError,
    add_repo,
    load_package_index,
    query,
    remove_repo,
    repos_dir,
    resolve_install_order,
    sync_repos,
    unsynced_repos,
)
from gradientpm.repository import Repository

PROGRAM = "gradient"
DESCRIPTION = "gradient package manager - epoch III. (version 2.0)"

RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
RESET = "\033[0m"


class _CommandError(Exception):
    """A command failed; the message is shown to the user."""


@dataclass
class _Session:
    db: Database
    repo: Repository
    force: bool
    bootstrap: str
    parse_output: bool


def _error(message: str) -> None:
    print(f"{RED}error:{RESET} {message}", file=sys.stderr)


def _info(message: str) -> None:
    print(f"{GREEN}info:{RESET} {message}")


def _require_root() -> None:
    geteuid = getattr(os, "geteuid", None)
    if geteuid is None or geteuid() != 0:
        raise _CommandError("this operation requires root privileges")


def build_parser() -> argparse.ArgumentParser:
    """Parser for the global flags; the command and its arguments are left over."""
    parser = argparse.ArgumentParser(
        prog=PROGRAM,
        description=DESCRIPTION,
        usage=f"{PROGRAM} [OPTION...] <command> [args]",
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument("-f", "--force", action="store_true",
                        help="Force action (ignore warnings)")
    parser.add_argument("-b", "--bootstrap", default="",
                        help="Bootstrap directory prefix")
    parser.add_argument("-p", "--parse", action="store_true",
                        help="Parseable output")
    parser.add_argument("-h", "--help", action="store_true", help="Print help")
    return parser


def _cmd_install_bin(session: _Session, args: list[str]) -> int:
    _require_root()
    if not args:
        raise _CommandError("'install' requires at least one .apkg path")
    installer = Installer(session.db, session.repo, session.force,
                          session.bootstrap or "/")
    status = 0
    for pkg in args:
        try:
            installer.install_archive(pkg)
        except InstallError as exc:
            _error(str(exc))
            _error(f"Failed to install '{pkg}'")
            status = 1
    return status


def _cmd_install(session: _Session, args: list[str]) -> int:
    _require_root()
    base = SYSTEM_REPOS_DIR
    if not base.is_dir():
        raise _CommandError(f"system repos directory '{base}' does not exist")

    index = load_package_index(base)
    order = resolve_install_order(args, index, session.db.package_version)

    to_install = []
    for pkg in order:
        if session.db.package_version(pkg.pkgname) == pkg.pkgver:
            _info(f"{pkg.label} already installed; skipping")
        else:
            to_install.append(pkg)
    if not to_install:
        _info("all requested packages are already installed")
        return 0

    tmp = Path(tempfile.gettempdir()) / "grad_pkgs"
    tmp.mkdir(exist_ok=True)
    jobs = [(pkg.url, tmp / pkg.filename, pkg.label) for pkg in to_install]
    if not download_all(jobs):
        print(file=sys.stderr)
        raise _CommandError("one or more downloads failed; aborting install")

    staged = {pkg.pkgname for pkg in to_install}
    installer = Installer(session.db, session.repo, session.force,
                          session.bootstrap or "/", staged)
    for pkg in to_install:
        print(f"\n\033[1;34m📦 Installing \033[1m{pkg.label}{RESET}")
        try:
            installer.install_archive(tmp / pkg.filename)
        except InstallError as exc:
            _error(str(exc))
            raise _CommandError(f"Failed to install '{pkg.pkgname}'") from exc

    print(f"{GREEN}success:{RESET} All packages installed.")
    return 0


def _cmd_remove(session: _Session, args: list[str]) -> int:
    _require_root()
    if session.bootstrap:
        raise _CommandError("Cannot remove packages when bootstrapping.")
    if not args:
        raise _CommandError("'remove' requires at least one package name")
    installer = Installer(session.db, session.repo, session.force, "/")
    status = 0
    for pkg in args:
        try:
            installer.remove_package(pkg)
        except InstallError as exc:
            _error(str(exc))
            _error(f"Failed to remove '{pkg}'")
            status = 1
    return status


def _cmd_add_repo(session: _Session, args: list[str]) -> int:
    _require_root()
    if len(args) < 2:
        raise _CommandError("'add-repo' requires a <name> and a <url>")
    name, url = args[0], args[1]
    priority = DEFAULT_PRIORITY
    if len(args) >= 3:
        try:
            priority = int(args[2])
        except ValueError as exc:
            raise _CommandError(f"invalid priority '{args[2]}'") from exc
    add_repo(repos_dir(session.bootstrap), name, url, priority)
    _info(f"repository '{name}' added with priority {priority}")
    return 0


def _cmd_sync_repo(session: _Session, args: list[str]) -> int:
    _require_root()
    base = repos_dir(session.bootstrap)
    if not base.is_dir():
        raise _CommandError(f"repos directory '{base}' does not exist")
    print(f"\033[1;34m🔄 Syncing repositories from {base}{RESET}")
    for result in sync_repos(base):
        outcome = f"{GREEN}✔ done{RESET}" if result.ok else f"{RED}✖ failed{RESET}"
        print(f"  🔄 {result.name}: fetching {result.url} ... {outcome}")
    print(f"\033[1;34m🔄 Sync complete.{RESET}")
    return 0


def _cmd_remove_repo(session: _Session, args: list[str]) -> int:
    _require_root()
    if not args:
        raise _CommandError("'remove-repo' requires a repository name")
    name = args[0]
    base = repos_dir(session.bootstrap)
    data_dir = base / name
    data_existed = data_dir.exists()
    removed_data = remove_repo(base, name)
    _info(f"removed repository descriptor '{name}.json'")
    if data_existed and removed_data:
        _info(f"removed repository data at '{data_dir}'")
    print(f"{GREEN}success:{RESET} repository '{name}' removed")
    return 0


def _cmd_system_update(session: _Session, args: list[str]) -> int:
    _require_root()
    _info("system-update command invoked")
    return 0


def _cmd_audit(session: _Session, args: list[str]) -> int:
    _require_root()
    db = session.db
    broken = db.broken_packages()
    if not broken:
        _info("No broken packages found.")
        return 0

    print(f"{RED}broken packages:{RESET}")
    for pkg in broken:
        print(f"  - {pkg}")

    fixed = []
    for pkg in broken:
        if all(db.is_installed(dep) for dep in db.dependencies(pkg)):
            try:
                db.remove_broken(pkg)
            except DatabaseError as exc:
                print(f"DB error: failed to delete broken_packages entry: {exc}",
                      file=sys.stderr)
                continue
            fixed.append(pkg)

    if fixed:
        _info("Packages now fixed:")
        for pkg in fixed:
            print(f"  + {pkg}")
    return 0


def _cmd_info(session: _Session, args: list[str]) -> int:
    if not args:
        raise _CommandError("'info' requires a package name")
    installed = {pkg.name: pkg for pkg in session.db.list_packages()}
    status = 0
    for name in args:
        pkg = installed.get(name)
        if pkg is None:
            _error(f"Package '{name}' is not installed")
            status = 1
            continue
        if session.parse_output:
            print(f"{pkg.name}|{pkg.version}|{pkg.arch}")
        else:
            print(f"\n\033[1;36m📄 Package:{RESET} \033[1m{pkg.name}{RESET}")
            print(f"  \033[1mVersion:{RESET} {pkg.version}")
            print(f"  \033[1mArch:{RESET}    {pkg.arch}")
    return status


def _cmd_query(session: _Session, args: list[str]) -> int:
    if not args:
        raise _CommandError("'query' requires a search pattern")
    base = repos_dir(session.bootstrap)
    if not base.is_dir():
        raise _CommandError(f"repos directory '{base}' does not exist")

    if not session.parse_output:
        for repo_name in unsynced_repos(base):
            print(f"{YELLOW}info:{RESET} repo '{repo_name}' not synced; skipping",
                  file=sys.stderr)

    matches = query(base, args[0])
    current_repo = None
    for pkg in matches:
        if session.parse_output:
            print(f"{pkg.repo_name}|{pkg.pkgname}|{pkg.pkgver}|{pkg.arch}|{pkg.filename}")
            continue
        if pkg.repo_name != current_repo:
            print(f"\033[1;35mRepository:{RESET} \033[1m{pkg.repo_name}{RESET}")
            current_repo = pkg.repo_name
        print(f"  {GREEN}•{RESET} {pkg.pkgname} \033[90m{pkg.pkgver}{RESET} [{pkg.arch}]")
        print(f"      {pkg.description}")

    if not matches and not session.parse_output:
        print(f"{YELLOW}info:{RESET} no packages matching '{args[0]}' found in any repo")
    return 0


def _cmd_list(session: _Session, args: list[str]) -> int:
    packages = session.db.list_packages()
    if session.parse_output:
        for pkg in packages:
            print(f"{pkg.name}|{pkg.version}|{pkg.arch}|{1 if pkg.broken else 0}")
        return 0
    print(f"\n\033[1;34m📦 Installed Packages{RESET}\n")
    for pkg in packages:
        symbol, color = ("⚠", YELLOW) if pkg.broken else ("✔", GREEN)
        print(f"  {color}{symbol} \033[1m{pkg.name}{RESET} "
              f"\033[90m{pkg.version}{RESET} ({pkg.arch}){RESET}")
    print()
    return 0


def _cmd_count(session: _Session, args: list[str]) -> int:
    print(len(session.db.list_packages()))
    return 0


_COMMANDS = {
    "install-bin": _cmd_install_bin,
    "install": _cmd_install,
    "remove": _cmd_remove,
    "add-repo": _cmd_add_repo,
    "sync-repo": _cmd_sync_repo,
    "remove-repo": _cmd_remove_repo,
    "system-update": _cmd_system_update,
    "audit": _cmd_audit,
    "info": _cmd_info,
    "query": _cmd_query,
    "list": _cmd_list,
    "count": _cmd_count,
}


def _make_dir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise _CommandError(f"cannot create directory '{path}': {exc}") from exc


def _run(options: argparse.Namespace, command: str, args: list[str]) -> int:
    prefix = options.bootstrap or ""
    db_dir = Path(f"{prefix}/var/lib/gradient")
    repo_dir = Path(f"{prefix}/var/lib/gradient/repos")
    _make_dir(db_dir)
    _make_dir(repo_dir)
    db_path = db_dir / "gradient.db"

    db = Database(db_path)
    try:
        db.open()
        db.init_schema()
    except DatabaseError as exc:
        db.close()
        raise _CommandError(
            f"Unable to open or initialize database at {db_path}"
        ) from exc

    with db:
        session = _Session(db, Repository("", repo_dir), options.force,
                           options.bootstrap or "", options.parse)
        handler = _COMMANDS.get(command)
        if handler is None:
            raise _CommandError(f"Unknown command '{command}'")
        return handler(session, args)


def main(argv=None) -> int:
    """Parse the command line and run the requested command."""
    parser = build_parser()
    options, extras = parser.parse_known_args(argv)
    if options.help:
        print(parser.format_help())
        return 0

    words = list(extras)
    if "--" in words:
        words.remove("--")
    if not words:
        print(parser.format_help())
        return 0

    command, args = words[0], words[1:]
    try:
        return _run(options, command, args)
    except (_CommandError, RepoError, DatabaseError) as exc:
        _error(str(exc))
        return 1


if __name__ == "__main__":
    sys.exit(main())