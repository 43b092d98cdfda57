"""
Exception hierarchy for t3scripts.

Library code raises these; only the CLI layer turns them into an error
message and a non-zero exit code.
"""

from pathlib import Path
from typing import Optional, Union


class T3ScriptsError(Exception):
    """Base class for all errors that abort a script invocation."""
    exit_code = 1


class UsageError(T3ScriptsError):
    """Bad or missing command line arguments."""


class ConfigError(T3ScriptsError):
    """A configuration file could not be read or holds invalid values."""


class ArchiveError(T3ScriptsError):
    """Base class for everything that can go wrong while decoding a container."""


class UnsupportedCompression(ArchiveError):
    """The container names a compression method we don't know."""


class CorruptArchive(ArchiveError):
    """The container envelope is broken or the payload fails to decompress."""


class ChecksumMismatch(ArchiveError):
    """The payload decompressed, but its digest differs from the declared one."""


class MalformedManifest(ArchiveError):
    """The serialized manifest can't be decoded or has the wrong shape."""


class DestinationExists(T3ScriptsError):
    """Refusing to write into an output location that already exists."""


class FetchError(T3ScriptsError):
    """An archive or update file could not be obtained."""


class FileWriteError(T3ScriptsError):
    """
    A single file of a manifest could not be written.

    These are collected by the materializer instead of being raised, so the
    remaining files still get written.
    """

    def __init__(self, path: Union[str, Path], message: str, name: Optional[str] = None):
        super().__init__(message)
        self.path = Path(path)
        self.name = name
