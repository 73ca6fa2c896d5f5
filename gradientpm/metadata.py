"""Package metadata and archives that carry it."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from gradientpm.archive import ArchiveError, extract

METADATA_FILENAME = "anemonix.yaml"


class MetadataError(Exception):
    """Raised when package metadata cannot be read."""


@dataclass
class Metadata:
    """Description of a package as given in its metadata file."""

    name: str
    version: str
    arch: str
    description: str = ""
    deps: list[str] = field(default_factory=list)
    makedepends: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    replaces: list[str] = field(default_factory=list)
    provides: list[str] = field(default_factory=list)


def _scalar(root: dict, key: str) -> str:
    if key not in root:
        raise MetadataError(f"missing field '{key}'")
    value = root[key]
    if not isinstance(value, str):
        raise MetadataError(f"field '{key}' is not a scalar")
    return value


def _string_list(root: dict, key: str) -> list[str]:
    value = root.get(key)
    if not isinstance(value, list):
        return []
    if not all(isinstance(item, str) for item in value):
        raise MetadataError(f"field '{key}' holds a non-scalar entry")
    return list(value)


def parse_metadata(path) -> Metadata:
    """Read a metadata YAML file into a :class:`Metadata`."""
    path = Path(path)
    if not path.exists():
        raise MetadataError(f"metadata file not found at '{path}'")
    try:
        content = path.read_text()
    except OSError as exc:
        raise MetadataError(f"failed to open '{path}' for reading: {exc}") from exc
    try:
        # Every scalar stays a string, so "1.10" is not read as a number.
        root = yaml.load(content, Loader=yaml.BaseLoader)
    except yaml.YAMLError as exc:
        raise MetadataError(f"YAML parse error: {exc}") from exc
    if not isinstance(root, dict):
        raise MetadataError(f"'{path}' does not hold a mapping")

    description = root.get("description", "")
    if not isinstance(description, str):
        raise MetadataError("field 'description' is not a scalar")

    return Metadata(
        name=_scalar(root, "name"),
        version=_scalar(root, "version"),
        arch=_scalar(root, "arch"),
        description=description,
        deps=_string_list(root, "deps"),
        makedepends=_string_list(root, "makedepends"),
        conflicts=_string_list(root, "conflicts"),
        replaces=_string_list(root, "replaces"),
        provides=_string_list(root, "provides"),
    )


def _find_file(root: Path, filename: str) -> Path | None:
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        if filename in filenames:
            candidate = Path(dirpath) / filename
            if candidate.is_file():
                return candidate
    return None


class Package:
    """A package archive whose metadata can be loaded on demand."""

    def __init__(self, archive_path):
        self.archive_path = os.fspath(archive_path)
        self.metadata: Metadata | None = None

    def load_metadata(self) -> Metadata:
        """Extract the archive and parse the metadata file inside it."""
        with tempfile.TemporaryDirectory(prefix="gradient_meta") as tmp:
            try:
                extract(self.archive_path, tmp)
            except ArchiveError as exc:
                raise MetadataError(
                    f"failed to extract '{self.archive_path}' for metadata"
                ) from exc
            meta_path = _find_file(Path(tmp), METADATA_FILENAME)
            if meta_path is None:
                raise MetadataError(
                    f"{METADATA_FILENAME} not found in '{self.archive_path}'"
                )
            self.metadata = parse_metadata(meta_path)
        return self.metadata