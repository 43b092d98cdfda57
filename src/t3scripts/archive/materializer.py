"""
Writes the files described by a manifest to an output directory.

The destination must not exist yet. Every entry of the manifest's FILES
section is written below it, creating subdirectories as needed. Failing to
write one file doesn't stop the others; failures are collected in the
returned report.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Union

from t3scripts.core.errors import DestinationExists, FileWriteError, MalformedManifest
from t3scripts.schemas.values import FileEntry, MappingNode, ScalarNode

logger = logging.getLogger(__name__)

FILES_KEY = "FILES"
FILE_MODE = 0o644
DIRECTORY_MODE = 0o755


def _scalar_field(entry: MappingNode, field: str, entry_key: str) -> bytes:
    node = entry.get(field)
    if node is None:
        raise MalformedManifest(f"FILES entry '{entry_key}' has no '{field}'")
    if not isinstance(node, ScalarNode):
        raise MalformedManifest(f"FILES entry '{entry_key}': '{field}' is a {node.kind}, not a string")
    return node.value


def iter_file_entries(manifest: MappingNode) -> List[FileEntry]:
    """
    Project the FILES section of a manifest into file entries.

    Raises:
        MalformedManifest: If FILES is missing or an entry lacks a usable
            name or content
    """
    files = manifest.get(FILES_KEY)
    if files is None:
        raise MalformedManifest(f"Manifest has no {FILES_KEY} section")
    if not isinstance(files, MappingNode):
        raise MalformedManifest(f"{FILES_KEY} section is a {files.kind}, not a mapping")

    entries = []
    for key, node in files.items():
        if not isinstance(node, MappingNode):
            raise MalformedManifest(f"FILES entry '{key}' is a {node.kind}, not a mapping")
        raw_name = _scalar_field(node, "name", key)
        try:
            name = raw_name.decode("utf-8")
        except UnicodeDecodeError:
            raise MalformedManifest(f"FILES entry '{key}' has a name that is not valid UTF-8")
        entries.append(FileEntry(name=name, content=_scalar_field(node, "content", key)))
    return entries


class MaterializationReport:
    """Outcome of writing a manifest to disk."""

    def __init__(self, destination: Path):
        self.destination = destination
        self.written: List[Path] = []
        self.failures: List[FileWriteError] = []

    @property
    def succeeded(self) -> bool:
        return not self.failures

    def summary(self) -> str:
        text = f"{len(self.written)} file(s) written to '{self.destination}'"
        if self.failures:
            text += f", {len(self.failures)} failed"
        return text


class ManifestMaterializer:
    """Materializes manifests into a fresh destination directory."""

    def __init__(self, destination: Union[str, Path]):
        self.destination = Path(destination)
        # directory -> error from the failed attempt to create it
        self._directory_errors: Dict[Path, OSError] = {}

    def materialize(self, manifest: MappingNode) -> MaterializationReport:
        """
        Write every FILES entry of ``manifest`` below the destination.

        Raises:
            DestinationExists: If the destination already exists
            MalformedManifest: If the FILES section has the wrong shape
        """
        if self.destination.exists():
            raise DestinationExists(f"The target directory '{self.destination}' already exists.")

        entries = iter_file_entries(manifest)
        report = MaterializationReport(self.destination)
        self._ensure_directory(self.destination)

        for entry in entries:
            try:
                report.written.append(self._write_entry(entry))
            except FileWriteError as e:
                logger.error(str(e))
                report.failures.append(e)

        logger.debug(report.summary())
        return report

    def _ensure_directory(self, directory: Path) -> None:
        # Existence checks can't be trusted on every platform, so failures are
        # remembered and only surface when a file write fails.
        try:
            directory.mkdir(mode=DIRECTORY_MODE, parents=True, exist_ok=True)
        except OSError as e:
            logger.debug(f"Unable to create directory '{directory}': {e}")
            self._directory_errors[directory] = e

    def _target_path(self, entry: FileEntry) -> Path:
        parts = entry.parts
        if entry.name.startswith("/") or any(part in ("", ".", "..") for part in parts):
            raise FileWriteError(
                self.destination / entry.name,
                f"Refusing to write '{entry.name}': not a plain relative path",
                name=entry.name,
            )
        return self.destination.joinpath(*parts)

    def _write_entry(self, entry: FileEntry) -> Path:
        target = self._target_path(entry)
        if target.parent not in self._directory_errors:
            self._ensure_directory(target.parent)

        try:
            fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_BINARY", 0), FILE_MODE)
            with os.fdopen(fd, "wb") as handle:
                handle.write(entry.content)
        except OSError as e:
            error = FileWriteError(target, f"Failed to write file '{target}': {e.strerror or e}", name=entry.name)
            cause = self._directory_errors.get(target.parent)
            if cause is not None:
                raise error from cause
            raise error from e

        logger.debug(f"Wrote {len(entry.content)} bytes to {target}")
        return target
