"""Install-order resolution through repository metadata."""

from __future__ import annotations

from gradientpm.metadata import Metadata, MetadataError


class ResolutionError(Exception):
    """Raised when a dependency's metadata cannot be obtained."""


class DependencyResolver:
    """Orders package archives so dependencies come before dependents."""

    def __init__(self, db, repo):
        self.db = db
        self.repo = repo
        self._visited: set[str] = set()

    def resolve_install(self, target: Metadata) -> list[str]:
        """Return archive names to install, ending with the target's own."""
        order: list[str] = []
        self._visited = set()
        self._resolve(target.name, order)
        order.append(f"{target.name}-{target.version}.apkg")
        return order

    def _resolve(self, name: str, order: list[str]) -> None:
        if name in self._visited:
            return
        self._visited.add(name)

        pkg = self.repo.fetch_package(name, "")
        if pkg is None:
            raise ResolutionError(f"Failed to fetch metadata for {name}")
        try:
            meta = pkg.load_metadata()
        except MetadataError as exc:
            raise ResolutionError(f"Failed to fetch metadata for {name}") from exc

        for dep in meta.deps:
            if not self.db.is_installed(dep):
                self._resolve(dep, order)
        order.append(f"{name}-{meta.version}.apkg")