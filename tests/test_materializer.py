"""
Tests for writing manifests to disk.
"""

import pytest

from t3scripts.archive.container import encode_container, parse_container
from t3scripts.archive.materializer import ManifestMaterializer, iter_file_entries
from t3scripts.core.errors import DestinationExists, FileWriteError, MalformedManifest
from t3scripts.schemas.values import IntegerNode, MappingNode, ScalarNode, build_manifest


def files_entry(name: bytes, content: bytes) -> MappingNode:
    return MappingNode(entries=(("name", ScalarNode(value=name)), ("content", ScalarNode(value=content))))


def test_single_file_in_subdirectory(tmp_path):
    manifest = MappingNode(entries=(
        ("FILES", MappingNode(entries=(("f1", files_entry(b"a/b.txt", b"hi")),))),
    ))
    archive = encode_container(manifest, "none")
    out = tmp_path / "out"

    report = ManifestMaterializer(out).materialize(parse_container(archive))

    assert report.succeeded
    assert [p for p in out.rglob("*") if p.is_file()] == [out / "a" / "b.txt"]
    assert (out / "a" / "b.txt").read_bytes() == b"hi"


def test_round_trip_preserves_paths_and_bytes(tmp_path):
    files = {
        "ext_emconf.php": b"<?php\n$EM_CONF[$_EXTKEY] = array();\n",
        "Resources/Public/Icons/icon.gif": bytes(range(256)) * 3,
        "Classes/Domain/Model/Thing.php": b"",
        "deep/er/and/deeper/x.bin": b"\x00\r\n\x00",
        "café.txt": "é".encode("utf-8"),
    }
    for compression in ("gzcompress", "none"):
        out = tmp_path / compression
        manifest = parse_container(encode_container(build_manifest(files), compression))

        report = ManifestMaterializer(out).materialize(manifest)

        assert report.succeeded
        assert len(report.written) == len(files)
        written = {p.relative_to(out).as_posix(): p.read_bytes() for p in out.rglob("*") if p.is_file()}
        assert written == files


def test_existing_destination_is_refused(tmp_path):
    out = tmp_path / "out"
    out.mkdir()
    manifest = build_manifest({"a.txt": b"a"})

    with pytest.raises(DestinationExists):
        ManifestMaterializer(out).materialize(manifest)
    assert list(out.iterdir()) == []


def test_existing_file_as_destination_is_refused(tmp_path):
    out = tmp_path / "out"
    out.write_bytes(b"keep me")

    with pytest.raises(DestinationExists):
        ManifestMaterializer(out).materialize(build_manifest({"a.txt": b"a"}))
    assert out.read_bytes() == b"keep me"


def test_missing_files_section(tmp_path):
    manifest = MappingNode(entries=(("extKey", ScalarNode(value=b"x")),))
    with pytest.raises(MalformedManifest):
        ManifestMaterializer(tmp_path / "out").materialize(manifest)
    assert not (tmp_path / "out").exists()


@pytest.mark.parametrize("files", [
    ScalarNode(value=b"nope"),
    MappingNode(entries=(("f", IntegerNode(value=1)),)),
    MappingNode(entries=(("f", MappingNode(entries=(("name", ScalarNode(value=b"a")),))),)),
    MappingNode(entries=(("f", MappingNode(entries=(("content", ScalarNode(value=b"a")),))),)),
    MappingNode(entries=(("f", MappingNode(entries=(
        ("name", IntegerNode(value=3)), ("content", ScalarNode(value=b"a"))))),)),
    MappingNode(entries=(("f", files_entry(b"\xff\xfe", b"a")),)),
])
def test_badly_shaped_files_section(tmp_path, files):
    manifest = MappingNode(entries=(("FILES", files),))
    with pytest.raises(MalformedManifest):
        iter_file_entries(manifest)
    with pytest.raises(MalformedManifest):
        ManifestMaterializer(tmp_path / "out").materialize(manifest)
    assert not (tmp_path / "out").exists()


def test_failed_file_does_not_stop_the_rest(tmp_path):
    manifest = MappingNode(entries=(("FILES", MappingNode(entries=(
        ("one", files_entry(b"one.txt", b"1")),
        ("escape", files_entry(b"../outside.txt", b"evil")),
        ("dupe", files_entry(b"one.txt", b"overwritten")),
        ("two", files_entry(b"sub/two.txt", b"2")),
    ))),))
    out = tmp_path / "out"

    report = ManifestMaterializer(out).materialize(manifest)

    assert not report.succeeded
    assert len(report.written) == 2
    assert len(report.failures) == 2
    assert all(isinstance(failure, FileWriteError) for failure in report.failures)
    assert (out / "one.txt").read_bytes() == b"1"
    assert (out / "sub" / "two.txt").read_bytes() == b"2"
    assert not (tmp_path / "outside.txt").exists()
    assert "2 failed" in report.summary()


@pytest.mark.parametrize("name", [b"/etc/passwd", b"dir/", b"a//b", b"./a", b""])
def test_unsafe_names_are_not_written(tmp_path, name):
    manifest = MappingNode(entries=(("FILES", MappingNode(entries=(("f", files_entry(name, b"x")),))),))

    report = ManifestMaterializer(tmp_path / "out").materialize(manifest)

    assert len(report.failures) == 1
    assert report.failures[0].name == name.decode("utf-8")


def test_directory_creation_error_is_kept_as_cause(tmp_path):
    # "blocker" is a file, so "blocker/inner.txt" can't get a parent directory
    manifest = MappingNode(entries=(("FILES", MappingNode(entries=(
        ("a", files_entry(b"blocker", b"file")),
        ("b", files_entry(b"blocker/inner.txt", b"x")),
    ))),))

    report = ManifestMaterializer(tmp_path / "out").materialize(manifest)

    assert len(report.written) == 1
    assert len(report.failures) == 1
    assert isinstance(report.failures[0].__cause__, OSError)
    assert report.failures[0].path == tmp_path / "out" / "blocker" / "inner.txt"
