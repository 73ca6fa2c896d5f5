# gradientpm

A small package manager for `.apkg` archives. It installs packages into a
root directory, records every installed file, dependency and provided name
in an SQLite database, and resolves dependencies against the indexes of
configured repositories.

It relies on the system `tar` for unpacking and copying package contents,
and on `/bin/sh` (and `chroot` when installing under another root) for
package hook scripts.

## Installation

```
pip install .
```

This installs the `gradient` command.

## Usage

```
gradient [--force] [--bootstrap DIR] [--parse] <command> [args]
```

Global options:

- `-f`, `--force`: go on despite missing dependencies, version mismatches,
  conflicts or dependent packages. A package installed with such warnings
  is marked broken; removing a package others depend on marks those
  dependents broken.
- `-b`, `--bootstrap DIR`: operate on a root other than `/`. The database
  then lives at `DIR/var/lib/gradient/gradient.db` and repository
  descriptors under `DIR/var/lib/gradient/repos`.
- `-p`, `--parse`: print machine-readable output (`|`-separated fields).
- `-h`, `--help`: show help.

The commands `install-bin`, `install`, `remove`, `add-repo`, `sync-repo`,
`remove-repo`, `system-update` and `audit` require root privileges.

### Packages

```
gradient install-bin ./foo-1.0-1.apkg     # install local archives
gradient install foo "bar>=2.1"            # resolve, download and install from repositories
gradient remove foo                        # remove installed packages
gradient list                              # list installed packages
gradient info foo                          # show name, version and architecture
gradient count                             # number of installed packages
gradient audit                             # re-check packages marked broken
```

`install` reads the repository indexes under `/var/lib/gradient/repos`,
orders the requested packages after their dependencies (skipping
dependencies whose name contains `.so` and those already installed at a
matching version), downloads the archives in parallel into
`<tmp>/grad_pkgs` and installs them in order. `install-bin` checks
dependencies but does not fetch them. `remove` cannot be used together with
`--bootstrap`. `audit` clears the broken mark of packages whose recorded
dependencies are all installed.

With `--parse`, `list` prints `name|version|arch|broken` (broken is `1` or
`0`), `info` prints `name|version|arch` and `query` prints
`repo|name|version|arch|filename`.

### Repositories

```
gradient add-repo core https://repo.example.com/core 60
gradient sync-repo
gradient query editor
gradient remove-repo core
```

A repository is a JSON descriptor `<name>.json` holding its `name`, `url` and
`priority` (default 50). `sync-repo` fetches `<url>/repo.json` into
`<name>/repo.json`; `install` and `query` read those indexes. An index holds
a `packages` list whose entries carry `pkgname`, `pkgver`, `arch`,
`filename`, and optionally `depends`, `provides` and `description`
(`query` needs `description`). When several repositories offer a package,
an entry with that exact name is preferred over one that only provides it,
then the highest priority wins, then the newest version. `query` matches
names case-insensitively.

### Archive layout

An `.apkg` is a tar archive holding:

- `anemonix.yaml` with `name`, `version`, `arch` and optionally
  `description`, `deps`, `makedepends`, `conflicts`, `replaces`, `provides`;
- `package/`, whose contents are copied into the root directory;
- optionally `install.anemonix`, a shell script kept under
  `var/lib/gradient/scripts/` whose `post_common` and `post_install` /
  `post_remove` functions are run after install and removal.

Packages whose `arch` is not `any`, `all` or the host's machine type are
refused. Installed packages listed in `replaces` (and matching its version
constraint) are removed first.

### Version constraints

Dependencies may carry one of the operators `<=`, `>=`, `<`, `>` or `=`, for
example `libfoo>=1.2.3-4`. Versions are split on `.`, `-` and `+`; numeric
parts compare as numbers and other parts as text, and trailing numeric-only
parts (a release number) are ignored when one version is otherwise a prefix
of the other.

## Library use

```python
from gradientpm.versions import parse_constraint, eval_constraint, version_compare

c = parse_constraint("zlib>=1.3")
eval_constraint("1.3.1", c)       # True
version_compare("1.10", "1.9")    # 1
```

```python
from gradientpm.database import Database

with Database("gradient.db") as db:
    db.init_schema()
    for pkg in db.list_packages():
        print(pkg.name, pkg.version, pkg.arch, pkg.broken)
```

`gradientpm.installer.Installer` installs archives (`install_archive`) and
removes packages (`remove_package`), raising `InstallError` on failure;
`gradientpm.repos` offers `add_repo`, `remove_repo`, `sync_repos`,
`load_package_index`, `query` and `resolve_install_order`.

## What it does not do

- `system-update` only prints a message; there is no upgrade of installed
  packages.
- There is no signature or checksum verification of downloaded archives or
  indexes.
- `install` always reads repository indexes from `/var/lib/gradient/repos`,
  even when `--bootstrap` is given.