"""Remote repository descriptors, their synced indexes and install planning."""

from __future__ import annotations

import json
import shutil
import sys
import urllib.request
from dataclasses import dataclass, field
from functools import cmp_to_key
from pathlib import Path
from typing import Callable, NamedTuple

import yaml

from gradientpm.versions import eval_constraint, parse_constraint, version_compare

DEFAULT_PRIORITY = 50
SYSTEM_REPOS_DIR = Path("/var/lib/gradient/repos")
INDEX_FILENAME = "repo.json"
_FETCH_TIMEOUT = 30


class RepoError(Exception):
    """Raised when repositories cannot be read, changed or resolved against."""


@dataclass
class RepoPackage:
    """A package entry offered by a synced repository index."""

    pkgname: str
    pkgver: str
    arch: str
    filename: str
    repo_url: str = ""
    depends: list[str] = field(default_factory=list)
    provides: list[str] = field(default_factory=list)
    priority: int = 0
    repo_name: str = ""
    description: str = ""

    @property
    def label(self) -> str:
        return f"{self.pkgname}-{self.pkgver}"

    @property
    def url(self) -> str:
        return f"{self.repo_url}/{self.filename}"


class SyncResult(NamedTuple):
    """Outcome of fetching one repository's index."""

    name: str
    url: str
    ok: bool


def _error(message: str) -> None:
    print(f"\033[31merror:\033[0m {message}", file=sys.stderr)


def repos_dir(bootstrap_dir="") -> Path:
    """Directory holding repository descriptors, below a bootstrap root if given."""
    if not bootstrap_dir:
        return SYSTEM_REPOS_DIR
    return Path(bootstrap_dir) / "var/lib/gradient/repos"


def _require_dir(repo_dir) -> Path:
    repo_dir = Path(repo_dir)
    if not repo_dir.is_dir():
        raise RepoError(f"repos directory '{repo_dir}' does not exist")
    return repo_dir


def _descriptors(repo_dir: Path) -> list[Path]:
    return sorted(p for p in repo_dir.iterdir() if p.suffix == ".json")


def _load(path: Path):
    # Every scalar stays a string, so versions such as 1.10 keep their digits.
    with open(path, encoding="utf-8") as handle:
        return yaml.load(handle, Loader=yaml.BaseLoader)


def _field(node, key: str, where: str) -> str:
    if not isinstance(node, dict) or key not in node:
        raise RepoError(f"missing '{key}' in {where}")
    value = node[key]
    if not isinstance(value, str):
        raise RepoError(f"'{key}' in {where} is not a scalar")
    return value


def _priority(node, where: str) -> int:
    raw = _field(node, "priority", where)
    try:
        return int(raw)
    except ValueError as exc:
        raise RepoError(f"invalid priority '{raw}' in {where}") from exc


def _strings(node, key: str, where: str) -> list[str]:
    value = node.get(key)
    if not isinstance(value, list):
        return []
    if not all(isinstance(item, str) for item in value):
        raise RepoError(f"'{key}' in {where} holds a non-scalar entry")
    return list(value)


def _repo_package(node, where: str, *, repo_url="", priority=0, repo_name="",
                  require_description=False) -> RepoPackage:
    if require_description:
        description = _field(node, "description", where)
    else:
        description = node.get("description", "") if isinstance(node, dict) else ""
        if not isinstance(description, str):
            description = ""
    return RepoPackage(
        pkgname=_field(node, "pkgname", where),
        pkgver=_field(node, "pkgver", where),
        arch=_field(node, "arch", where),
        filename=_field(node, "filename", where),
        repo_url=repo_url,
        depends=_strings(node, "depends", where),
        provides=[p.split("=", 1)[0] for p in _strings(node, "provides", where)],
        priority=priority,
        repo_name=repo_name,
        description=description,
    )


def _index_packages(index_file: Path) -> list | None:
    try:
        idx = _load(index_file)
    except (yaml.YAMLError, OSError) as exc:
        _error(f"failed to parse '{index_file.name}': {exc}")
        return None
    packages = idx.get("packages") if isinstance(idx, dict) else None
    return packages if isinstance(packages, list) else None


def add_repo(repo_dir, name: str, url: str, priority: int = DEFAULT_PRIORITY) -> Path:
    """Write a descriptor for a new repository and return its path."""
    repo_dir = Path(repo_dir)
    try:
        repo_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise RepoError(f"unable to create directory '{repo_dir}': {exc}") from exc

    descriptor = repo_dir / f"{name}.json"
    if descriptor.exists():
        raise RepoError(f"repository '{name}' already exists")

    content = (
        "{\n"
        f'  "name":     {json.dumps(name)},\n'
        f'  "url":      {json.dumps(url)},\n'
        f'  "priority": {int(priority)}\n'
        "}\n"
    )
    try:
        descriptor.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise RepoError(f"cannot open '{descriptor}' for writing: {exc}") from exc
    return descriptor


def remove_repo(repo_dir, name: str) -> bool:
    """Delete a repository's descriptor and synced data; tell whether data was removed."""
    repo_dir = _require_dir(repo_dir)
    descriptor = repo_dir / f"{name}.json"
    if not descriptor.exists():
        raise RepoError(f"repository '{name}' not found in {repo_dir}")
    try:
        descriptor.unlink()
    except OSError as exc:
        raise RepoError(f"failed to remove '{descriptor}': {exc}") from exc

    data_dir = repo_dir / name
    if not data_dir.exists():
        return False
    try:
        shutil.rmtree(data_dir)
    except OSError as exc:
        print(
            f"\033[33mwarning:\033[0m failed to remove data directory "
            f"'{data_dir}': {exc}",
            file=sys.stderr,
        )
        return False
    return True


def _fetch(url: str, dest: Path) -> bool:
    try:
        with urllib.request.urlopen(url, timeout=_FETCH_TIMEOUT) as response:
            data = response.read()
        dest.write_bytes(data)
    except (OSError, ValueError):
        return False
    return True


def sync_repos(repo_dir, fetch: Callable[[str, Path], bool] | None = None) -> list[SyncResult]:
    """Fetch the index of every configured repository into its data directory."""
    repo_dir = _require_dir(repo_dir)
    fetch = fetch or _fetch
    results: list[SyncResult] = []
    for descriptor in _descriptors(repo_dir):
        try:
            desc = _load(descriptor)
        except (yaml.YAMLError, OSError) as exc:
            _error(f"Failed to parse '{descriptor.name}': {exc}")
            continue
        name = _field(desc, "name", descriptor.name)
        url = _field(desc, "url", descriptor.name)

        local_dir = repo_dir / name
        try:
            local_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            _error(f"Cannot create directory '{local_dir}': {exc}")
            continue

        remote = f"{url}/{INDEX_FILENAME}"
        results.append(SyncResult(name, remote, bool(fetch(remote, local_dir / INDEX_FILENAME))))
    return results


def load_package_index(repo_dir) -> dict[str, list[RepoPackage]]:
    """Map package and provided names to the entries of all synced repositories."""
    repo_dir = _require_dir(repo_dir)
    index: dict[str, list[RepoPackage]] = {}
    for descriptor in _descriptors(repo_dir):
        repo_name = descriptor.stem
        try:
            desc = _load(descriptor)
        except (yaml.YAMLError, OSError) as exc:
            _error(f"parsing {descriptor.name}: {exc}")
            continue
        url = _field(desc, "url", descriptor.name)
        priority = _priority(desc, descriptor.name)

        index_file = repo_dir / repo_name / INDEX_FILENAME
        if not index_file.exists():
            continue
        packages = _index_packages(index_file)
        if packages is None:
            continue

        for node in packages:
            pkg = _repo_package(
                node, str(index_file), repo_url=url, priority=priority, repo_name=repo_name
            )
            index.setdefault(pkg.pkgname, []).append(pkg)
            for provided in pkg.provides:
                if provided != pkg.pkgname:
                    index.setdefault(provided, []).append(pkg)
    return index


def unsynced_repos(repo_dir) -> list[str]:
    """Names of configured repositories whose index has not been fetched."""
    repo_dir = _require_dir(repo_dir)
    return [
        d.stem for d in _descriptors(repo_dir)
        if not (repo_dir / d.stem / INDEX_FILENAME).exists()
    ]


def query(repo_dir, pattern: str) -> list[RepoPackage]:
    """Entries of synced repositories whose name contains ``pattern``, ignoring case."""
    repo_dir = _require_dir(repo_dir)
    needle = pattern.lower()
    matches: list[RepoPackage] = []
    for descriptor in _descriptors(repo_dir):
        repo_name = descriptor.stem
        index_file = repo_dir / repo_name / INDEX_FILENAME
        if not index_file.exists():
            continue
        packages = _index_packages(index_file)
        if packages is None:
            continue
        for node in packages:
            name = _field(node, "pkgname", str(index_file))
            if needle not in name.lower():
                continue
            matches.append(
                _repo_package(node, str(index_file), repo_name=repo_name,
                              require_description=True)
            )
    return matches


def _preference(a: RepoPackage, b: RepoPackage) -> int:
    if a.priority != b.priority:
        return -1 if a.priority > b.priority else 1
    return -version_compare(a.pkgver, b.pkgver)


def resolve_install_order(requests, index, installed_version) -> list[RepoPackage]:
    """Order the entries needed for ``requests`` so dependencies come first.

    ``installed_version`` maps a name to its installed version or None.
    Requests may carry version constraints such as ``foo>=1.2``.
    """
    order: list[RepoPackage] = []
    visited: set[str] = set()
    in_stack: set[str] = set()

    def satisfied(constraint) -> bool:
        version = installed_version(constraint.name)
        return version is not None and (
            not constraint.op or eval_constraint(version, constraint)
        )

    def visit(raw: str) -> None:
        constraint = parse_constraint(raw)
        name = constraint.name
        if name in visited:
            return
        if satisfied(constraint):
            visited.add(name)
            return
        if name not in index:
            raise RepoError(f"package '{raw}' not found in any repo")

        candidates = [
            pkg for pkg in index[name]
            if not constraint.op or eval_constraint(pkg.pkgver, constraint)
        ]
        if not candidates:
            raise RepoError(f"no candidate for '{raw}'")
        real = [pkg for pkg in candidates if pkg.pkgname == name]
        if real:
            candidates = real
        best = sorted(candidates, key=cmp_to_key(_preference))[0]

        if name in in_stack:
            print(f"  \033[33mwarning:\033[0m cycle on '{name}', skipping")
            visited.add(name)
            return
        in_stack.add(name)

        for raw_dep in best.depends:
            dep = parse_constraint(raw_dep)
            if ".so" in dep.name or dep.name == name or satisfied(dep):
                continue
            visit(raw_dep)

        in_stack.discard(name)
        visited.add(name)
        order.append(best)

    for request in requests:
        visit(request)
    return order