"""Local package repository."""

from __future__ import annotations

import os

from gradientpm.metadata import Metadata, Package


class Repository:
    """A repository whose archives live in a local directory."""

    def __init__(self, url: str, local_path):
        self.url = url
        self.local_path = os.fspath(local_path)

    def sync(self) -> bool:
        """Synchronise with the remote; nothing to fetch for a local store."""
        return True

    def list_packages(self) -> list[Metadata]:
        """Metadata of the packages the repository advertises."""
        return []

    def fetch_package(self, name: str, version: str) -> Package:
        """Return the package archive for ``name`` at ``version``."""
        return Package(f"{self.local_path}/{name}-{version}.apkg")