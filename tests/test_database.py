import pytest

from gradientpm.database import Database, DatabaseError, PackageInfo
from gradientpm.metadata import Metadata
from gradientpm.versions import Constraint, parse_constraint


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "gradient.db")
    database.open()
    database.init_schema()
    yield database
    database.close()


def _meta(name, version="1.0", deps=(), provides=()):
    return Metadata(
        name=name,
        version=version,
        arch="x86_64",
        deps=list(deps),
        provides=list(provides),
    )


def test_empty_database_lists_nothing(db):
    assert db.list_packages() == []
    assert db.broken_packages() == []


def test_add_package_records_version(db):
    db.add_package(_meta("zlib", "1.3"), "")
    assert db.package_version("zlib") == "1.3"
    assert db.is_installed("zlib") is True
    assert db.is_installed("missing") is False
    assert db.package_version("missing") is None


def test_list_packages_sorted_with_broken_flag(db):
    db.add_package(_meta("zsh", "5.9"), "")
    db.add_package(_meta("bash", "5.2"), "")
    db.mark_broken("zsh")
    assert db.list_packages() == [
        PackageInfo("bash", "5.2", "x86_64", False),
        PackageInfo("zsh", "5.9", "x86_64", True),
    ]


def test_dependencies_and_reverse(db):
    db.add_package(_meta("curl", deps=["openssl", "zlib"]), "")
    db.add_package(_meta("git", deps=["zlib"]), "")
    assert sorted(db.dependencies("curl")) == ["openssl", "zlib"]
    assert sorted(db.reverse_dependencies("zlib")) == ["curl", "git"]
    assert db.reverse_dependencies("openssl") == ["curl"]


def test_reinstall_replaces_dependencies(db):
    db.add_package(_meta("curl", deps=["openssl"]), "")
    db.add_package(_meta("curl", "2.0", deps=["zlib"]), "")
    assert db.dependencies("curl") == ["zlib"]
    assert db.package_version("curl") == "2.0"


def test_is_provided_exact_match(db):
    db.add_package(_meta("mesa", provides=["libgl"]), "")
    assert db.is_provided("libgl") is True
    assert db.is_provided("libg") is False


def test_provides_satisfies_with_versions(db):
    db.add_package(_meta("sdl2-compat", provides=["sdl2=2.32.56"]), "")
    assert db.provides_satisfies(parse_constraint("sdl2>=2.0")) is True
    assert db.provides_satisfies(parse_constraint("sdl2<2.0")) is False
    assert db.provides_satisfies(Constraint("sdl2")) is True


def test_provides_satisfies_requires_same_name(db):
    db.add_package(_meta("other", provides=["sdl23=1.0"]), "")
    assert db.provides_satisfies(Constraint("sdl2")) is False


def test_log_and_remove_files(db):
    db.add_package(_meta("nano"), "")
    db.log_file("nano", "/usr/bin/nano")
    db.log_file("nano", "/usr/share/nano/sh.nanorc")
    assert sorted(db.files("nano")) == ["/usr/bin/nano", "/usr/share/nano/sh.nanorc"]
    db.remove_files("nano")
    assert db.files("nano") == []


def test_log_file_for_unknown_package_fails(db):
    with pytest.raises(DatabaseError):
        db.log_file("ghost", "/usr/bin/ghost")


def test_install_script_round_trip(db):
    db.add_package(_meta("with-script"), "/var/lib/gradient/scripts/with-script-1.0.anemonix")
    db.add_package(_meta("plain"), "")
    assert db.install_script("with-script") == "/var/lib/gradient/scripts/with-script-1.0.anemonix"
    assert db.install_script("plain") is None
    assert db.install_script("missing") is None


def test_broken_flag_round_trip(db):
    db.add_package(_meta("vim"), "")
    db.mark_broken("vim")
    db.mark_broken("vim")
    assert db.broken_packages() == ["vim"]
    db.remove_broken("vim")
    assert db.broken_packages() == []


def test_delete_package_cascades(db):
    db.add_package(_meta("curl", deps=["zlib"], provides=["libcurl"]), "")
    db.log_file("curl", "/usr/bin/curl")
    db.delete_package("curl")
    assert db.is_installed("curl") is False
    assert db.dependencies("curl") == []
    assert db.files("curl") == []
    assert db.is_provided("libcurl") is False


def test_rollback_discards_changes(db):
    db.begin()
    db.add_package(_meta("temp"), "")
    assert db.is_installed("temp") is True
    db.rollback()
    assert db.is_installed("temp") is False


def test_commit_keeps_changes(tmp_path):
    path = tmp_path / "state.db"
    with Database(path) as first:
        first.init_schema()
        first.begin()
        first.add_package(_meta("kept", "3.1"), "")
        first.commit()
    with Database(path) as second:
        assert second.package_version("kept") == "3.1"


def test_commit_without_transaction_fails(db):
    with pytest.raises(DatabaseError):
        db.commit()


def test_closed_database_raises(tmp_path):
    database = Database(tmp_path / "closed.db")
    with pytest.raises(DatabaseError):
        database.list_packages()


def test_context_manager_closes(tmp_path):
    with Database(tmp_path / "ctx.db") as database:
        database.init_schema()
        assert database.list_packages() == []
    with pytest.raises(DatabaseError):
        database.is_installed("anything")