from gradientpm.repository import Repository


def test_fetch_package_builds_archive_path(tmp_path):
    repo = Repository("", tmp_path)
    pkg = repo.fetch_package("demo", "1.0")
    assert pkg.archive_path == f"{tmp_path}/demo-1.0.apkg"
    assert pkg.metadata is None


def test_sync_succeeds():
    assert Repository("", "/tmp").sync() is True


def test_list_packages_is_empty():
    assert Repository("", "/tmp").list_packages() == []