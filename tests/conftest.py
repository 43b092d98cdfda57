"""Shared fixtures for building extension archives."""

import pytest

from t3scripts.archive.container import encode_container
from t3scripts.schemas.values import build_manifest


@pytest.fixture
def make_archive(tmp_path):
    """Write an archive with the given files and return its path."""
    def _make(files, name="myext_1.0.0.t3x", compression="gzcompress"):
        path = tmp_path / name
        path.write_bytes(encode_container(build_manifest(files, extension_key="myext"), compression))
        return path
    return _make
