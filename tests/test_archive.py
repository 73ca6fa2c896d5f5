import tarfile

import pytest

from gradientpm.archive import ArchiveError, extract, extract_member


@pytest.fixture
def sample_archive(tmp_path):
    src = tmp_path / "src"
    (src / "package" / "usr").mkdir(parents=True)
    (src / "package" / "usr" / "hello.txt").write_text("hello\n")
    (src / "anemonix.yaml").write_text("name: demo\n")
    archive = tmp_path / "demo.apkg"
    with tarfile.open(archive, "w") as tar:
        tar.add(src / "anemonix.yaml", arcname="anemonix.yaml")
        tar.add(src / "package", arcname="package")
    return archive


def test_extract_whole_archive(tmp_path, sample_archive):
    dest = tmp_path / "out"
    dest.mkdir()
    extract(sample_archive, dest)
    assert (dest / "package" / "usr" / "hello.txt").read_text() == "hello\n"
    assert (dest / "anemonix.yaml").read_text() == "name: demo\n"


def test_extract_member_only(tmp_path, sample_archive):
    dest = tmp_path / "out"
    dest.mkdir()
    extract_member(sample_archive, "anemonix.yaml", dest)
    assert (dest / "anemonix.yaml").is_file()
    assert not (dest / "package").exists()


def test_extract_missing_archive(tmp_path):
    dest = tmp_path / "out"
    dest.mkdir()
    with pytest.raises(ArchiveError):
        extract(tmp_path / "missing.apkg", dest)


def test_extract_missing_member(tmp_path, sample_archive):
    dest = tmp_path / "out"
    dest.mkdir()
    with pytest.raises(ArchiveError):
        extract_member(sample_archive, "nothere.txt", dest)