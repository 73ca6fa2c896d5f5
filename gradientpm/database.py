"""SQLite store of installed packages, their files, dependencies and provides."""

from __future__ import annotations

import os
import sqlite3
from dataclasses import dataclass

from gradientpm.metadata import Metadata
from gradientpm.versions import Constraint, eval_constraint, parse_constraint

_SCHEMA = """
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS packages (
  name           TEXT PRIMARY KEY,
  version        TEXT NOT NULL,
  arch           TEXT NOT NULL,
  install_script TEXT
);

CREATE TABLE IF NOT EXISTS dependencies (
  package    TEXT NOT NULL,
  dependency TEXT NOT NULL,
  FOREIGN KEY(package) REFERENCES packages(name) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS provides (
  package  TEXT NOT NULL,
  provided TEXT NOT NULL,
  FOREIGN KEY(package) REFERENCES packages(name) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS files (
  package  TEXT NOT NULL,
  filepath TEXT NOT NULL,
  FOREIGN KEY(package) REFERENCES packages(name) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS broken_packages (
  name TEXT PRIMARY KEY
);
"""

_LIST_SQL = """
SELECT p.name, p.version, p.arch, (b.name IS NOT NULL) AS broken
FROM packages p
LEFT JOIN broken_packages b ON p.name = b.name
ORDER BY p.name;
"""


class DatabaseError(Exception):
    """Raised when the package database cannot carry out an operation."""


@dataclass(frozen=True)
class PackageInfo:
    """An installed package as shown by listings."""

    name: str
    version: str
    arch: str
    broken: bool


class Database:
    """The installed-package database backed by an SQLite file."""

    def __init__(self, path):
        self.path = os.fspath(path)
        self._conn: sqlite3.Connection | None = None

    def open(self) -> None:
        """Open the database file, creating it if needed."""
        try:
            # Autocommit mode: transactions are begun and ended explicitly.
            self._conn = sqlite3.connect(self.path, isolation_level=None)
            self._conn.execute("PRAGMA foreign_keys = ON;")
        except sqlite3.Error as exc:
            raise DatabaseError(f"cannot open database '{self.path}': {exc}") from exc

    def close(self) -> None:
        """Close the connection if it is open."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> Database:
        if self._conn is None:
            self.open()
        return self

    def __exit__(self, *args) -> None:
        self.close()

    @property
    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise DatabaseError("database is not open")
        return self._conn

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._connection.execute(sql, params)
        except sqlite3.Error as exc:
            raise DatabaseError(str(exc)) from exc

    def _column(self, sql: str, params: tuple = ()) -> list[str]:
        return [row[0] for row in self._execute(sql, params) if row[0] is not None]

    def init_schema(self) -> None:
        """Create the tables if they do not exist yet."""
        try:
            self._connection.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise DatabaseError(f"DB schema error: {exc}") from exc

    def begin(self) -> None:
        """Begin a transaction."""
        self._execute("BEGIN;")

    def commit(self) -> None:
        """Commit the current transaction."""
        self._execute("COMMIT;")

    def rollback(self) -> None:
        """Roll back the current transaction."""
        self._execute("ROLLBACK;")

    def add_package(self, meta: Metadata, install_script_path) -> None:
        """Record a package with its dependencies and provides."""
        script = os.fspath(install_script_path) if install_script_path else None
        self._execute(
            "INSERT OR REPLACE INTO packages(name,version,arch,install_script) "
            "VALUES(?,?,?,?);",
            (meta.name, meta.version, meta.arch, script),
        )
        self._execute("DELETE FROM dependencies WHERE package = ?;", (meta.name,))
        for dep in meta.deps:
            self._execute(
                "INSERT INTO dependencies(package,dependency) VALUES(?,?);",
                (meta.name, dep),
            )
        self.add_provides(meta)

    def add_provides(self, meta: Metadata) -> None:
        """Replace the names a package provides with those in ``meta``."""
        self._execute("DELETE FROM provides WHERE package = ?;", (meta.name,))
        for provided in meta.provides:
            self._execute(
                "INSERT INTO provides(package, provided) VALUES(?,?);",
                (meta.name, provided),
            )

    def is_provided(self, name: str) -> bool:
        """Tell whether any installed package provides exactly ``name``."""
        cursor = self._execute(
            "SELECT 1 FROM provides WHERE provided = ? LIMIT 1;", (name,)
        )
        return cursor.fetchone() is not None

    def reverse_dependencies(self, package_name: str) -> list[str]:
        """Packages that list ``package_name`` as a dependency."""
        return self._column(
            "SELECT package FROM dependencies WHERE dependency = ?;", (package_name,)
        )

    def files(self, package_name: str) -> list[str]:
        """Absolute paths of the files a package installed."""
        return self._column(
            "SELECT filepath FROM files WHERE package = ?;", (package_name,)
        )

    def install_script(self, package_name: str) -> str | None:
        """Stored install script path of a package, if it has one."""
        row = self._execute(
            "SELECT install_script FROM packages WHERE name = ?;", (package_name,)
        ).fetchone()
        if row is None or not row[0]:
            return None
        return row[0]

    def remove_files(self, package_name: str) -> None:
        """Forget every file recorded for a package."""
        self._execute("DELETE FROM files WHERE package = ?;", (package_name,))

    def delete_package(self, package_name: str) -> None:
        """Delete a package record; its dependent rows go with it."""
        self._execute("DELETE FROM packages WHERE name = ?;", (package_name,))

    def mark_broken(self, package_name: str) -> None:
        """Flag a package as broken."""
        self._execute(
            "INSERT OR IGNORE INTO broken_packages(name) VALUES(?);", (package_name,)
        )

    def is_installed(self, name: str) -> bool:
        """Tell whether a package of this name is installed."""
        row = self._execute(
            "SELECT COUNT(1) FROM packages WHERE name = ?;", (name,)
        ).fetchone()
        return bool(row and row[0] > 0)

    def log_file(self, package: str, path) -> None:
        """Record that ``package`` installed the file at ``path``."""
        try:
            self._connection.execute(
                "INSERT INTO files(package, filepath) VALUES(?,?);",
                (package, os.fspath(path)),
            )
        except sqlite3.Error as exc:
            raise DatabaseError(f"failed to log file '{path}': {exc}") from exc

    def package_version(self, name: str) -> str | None:
        """Installed version of a package, or None if it is not installed."""
        row = self._execute(
            "SELECT version FROM packages WHERE name = ?;", (name,)
        ).fetchone()
        if row is None or row[0] is None:
            return None
        return row[0]

    def broken_packages(self) -> list[str]:
        """Names of all packages flagged broken."""
        return self._column("SELECT name FROM broken_packages;")

    def dependencies(self, package_name: str) -> list[str]:
        """Runtime dependencies recorded for a package."""
        return self._column(
            "SELECT dependency FROM dependencies WHERE package = ?;", (package_name,)
        )

    def remove_broken(self, package_name: str) -> None:
        """Clear the broken flag of a package."""
        self._execute("DELETE FROM broken_packages WHERE name = ?;", (package_name,))

    def list_packages(self) -> list[PackageInfo]:
        """All installed packages, ordered by name."""
        return [
            PackageInfo(name, version, arch, bool(broken))
            for name, version, arch, broken in self._execute(_LIST_SQL)
        ]

    def provides_satisfies(self, constraint: Constraint) -> bool:
        """Tell whether some installed package provides a matching name and version."""
        rows = self._column(
            "SELECT provided FROM provides WHERE provided LIKE ?;",
            (constraint.name + "%",),
        )
        for raw in rows:
            provided = parse_constraint(raw)
            if provided.name != constraint.name:
                continue
            if not constraint.op or eval_constraint(provided.version, constraint):
                return True
        return False