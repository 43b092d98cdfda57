"""
Extension archive (T3X) container.

A container is laid out as ``<checksum>:<compression>:<payload>``:

- checksum: lowercase hex MD5 of the uncompressed payload
- compression: a tag from COMPRESSION_METHODS
- payload: the serialized manifest, compressed with the named method

The payload may itself contain ':' and is never split further.
"""

import hashlib
import logging
import zlib
from pathlib import Path
from typing import Callable, Dict, Union

from t3scripts.archive import serialization
from t3scripts.core.errors import (
    ChecksumMismatch,
    CorruptArchive,
    FetchError,
    MalformedManifest,
    UnsupportedCompression,
)
from t3scripts.schemas.values import MappingNode

logger = logging.getLogger(__name__)

DELIMITER = b":"

COMPRESSION_GZCOMPRESS = "gzcompress"
COMPRESSION_NONE = "none"


def _identity(data: bytes) -> bytes:
    return data


# tag -> (decompress, compress)
COMPRESSION_METHODS: Dict[str, tuple] = {
    COMPRESSION_GZCOMPRESS: (zlib.decompress, zlib.compress),
    COMPRESSION_NONE: (_identity, _identity),
    "": (_identity, _identity),
}


def content_checksum(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def _decompressor(tag: str, source: str) -> Callable[[bytes], bytes]:
    try:
        return COMPRESSION_METHODS[tag][0]
    except KeyError:
        supported = ", ".join(repr(name) for name in COMPRESSION_METHODS if name)
        raise UnsupportedCompression(
            f"'{source}' uses unsupported compression {tag!r} (supported: {supported})"
        )


def decode_payload(data: bytes, source: str = "<memory>") -> bytes:
    """
    Split a container, decompress its payload and verify the checksum.

    Returns:
        The verified, uncompressed serialized manifest

    Raises:
        CorruptArchive: If the envelope is incomplete or decompression fails
        UnsupportedCompression: If the compression tag is unknown
        ChecksumMismatch: If the payload doesn't match the declared checksum
    """
    parts = data.split(DELIMITER, 2)
    if len(parts) != 3:
        raise CorruptArchive(f"'{source}' is not an extension archive (expected checksum:compression:payload)")
    raw_checksum, raw_tag, payload = parts

    try:
        checksum = raw_checksum.decode("ascii")
        tag = raw_tag.decode("ascii")
    except UnicodeDecodeError:
        raise CorruptArchive(f"'{source}' has a non-ASCII archive header")

    decompress = _decompressor(tag, source)
    try:
        content = decompress(payload)
    except zlib.error as e:
        raise CorruptArchive(f"Unable to decompress '{source}': {e}") from e

    actual = content_checksum(content)
    if actual != checksum:
        raise ChecksumMismatch(
            f"MD5 mismatch in '{source}' (declared {checksum!r}, computed {actual!r}). "
            "Extension file may be corrupt!"
        )
    logger.debug(f"Verified {len(content)} bytes of manifest data in {source} ({tag or 'uncompressed'})")
    return content


def parse_container(data: bytes, source: str = "<memory>") -> MappingNode:
    """
    Decode container bytes into the manifest value tree.

    Args:
        data: Raw container bytes
        source: Name of the input, used in error messages

    Returns:
        The root mapping of the manifest

    Raises:
        UnsupportedCompression, CorruptArchive, ChecksumMismatch, MalformedManifest
    """
    content = decode_payload(data, source)
    try:
        root = serialization.loads(content)
    except MalformedManifest as e:
        raise MalformedManifest(f"Unable to unserialize '{source}': {e}") from e

    if not isinstance(root, MappingNode):
        raise MalformedManifest(f"'{source}' does not contain a manifest mapping (found {root.kind})")
    return root


def load_container(path: Union[str, Path]) -> MappingNode:
    """Read an archive file from disk and decode it."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise FetchError(f"Unable to open '{path}': {e.strerror or e}") from e
    return parse_container(data, source=str(path))


def encode_container(root: MappingNode, compression: str = COMPRESSION_GZCOMPRESS) -> bytes:
    """
    Build container bytes for a manifest.

    Raises:
        UnsupportedCompression: If ``compression`` isn't a known tag
    """
    if compression not in COMPRESSION_METHODS:
        raise UnsupportedCompression(f"Unsupported compression {compression!r}")
    content = serialization.dumps(root)
    compress = COMPRESSION_METHODS[compression][1]
    return DELIMITER.join([
        content_checksum(content).encode("ascii"),
        compression.encode("ascii"),
        compress(content),
    ])
