import pytest

from gradientpm.metadata import Metadata, MetadataError
from gradientpm.resolver import DependencyResolver, ResolutionError


class FakePackage:
    def __init__(self, meta):
        self._meta = meta

    def load_metadata(self):
        if self._meta is None:
            raise MetadataError("broken")
        return self._meta


class FakeRepo:
    def __init__(self, metas):
        self.metas = metas
        self.fetched = []

    def fetch_package(self, name, version):
        self.fetched.append(name)
        return FakePackage(self.metas.get(name))


class FakeDb:
    def __init__(self, installed=()):
        self.installed = set(installed)

    def is_installed(self, name):
        return name in self.installed


def test_dependencies_come_first():
    app = Metadata("app", "2.0", "any", deps=["lib"])
    lib = Metadata("lib", "1.0", "any")
    resolver = DependencyResolver(FakeDb(), FakeRepo({"app": app, "lib": lib}))
    order = resolver.resolve_install(app)
    assert order == ["lib-1.0.apkg", "app-2.0.apkg", "app-2.0.apkg"]


def test_installed_dependencies_are_skipped():
    app = Metadata("app", "2.0", "any", deps=["lib"])
    repo = FakeRepo({"app": app})
    resolver = DependencyResolver(FakeDb(installed=["lib"]), repo)
    order = resolver.resolve_install(app)
    assert "lib" not in repo.fetched
    assert all(not entry.startswith("lib-") for entry in order)


def test_cycle_terminates_and_visits_once():
    a = Metadata("a", "1", "any", deps=["b"])
    b = Metadata("b", "1", "any", deps=["a"])
    repo = FakeRepo({"a": a, "b": b})
    order = DependencyResolver(FakeDb(), repo).resolve_install(a)
    assert sorted(repo.fetched) == ["a", "b"]
    assert order[0] == "b-1.apkg"
    assert order[-1] == "a-1.apkg"


def test_missing_metadata_raises():
    app = Metadata("app", "2.0", "any", deps=["ghost"])
    resolver = DependencyResolver(FakeDb(), FakeRepo({"app": app}))
    with pytest.raises(ResolutionError):
        resolver.resolve_install(app)


def test_resolver_can_be_reused():
    app = Metadata("app", "2.0", "any", deps=["lib"])
    lib = Metadata("lib", "1.0", "any")
    repo = FakeRepo({"app": app, "lib": lib})
    resolver = DependencyResolver(FakeDb(), repo)
    expected = ["lib-1.0.apkg", "app-2.0.apkg", "app-2.0.apkg"]
    assert resolver.resolve_install(app) == expected
    assert resolver.resolve_install(app) == expected
    assert repo.fetched == ["app", "lib", "app", "lib"]