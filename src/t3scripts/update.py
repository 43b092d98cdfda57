"""
Self-update support.

The update source publishes a ``versions`` file with one ``<script> <md5>``
line per script, next to the scripts themselves. The checksum covers the
script without its first (interpreter) line, so local shebangs don't count
as modifications.
"""

import hashlib
import logging
import os
import stat
import tempfile
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from t3scripts.core.errors import FetchError, FileWriteError
from t3scripts.repository import download

logger = logging.getLogger(__name__)

VERSIONS_FILENAME = "versions"


class UpdateStatus(str, Enum):
    CURRENT = "current"
    AVAILABLE = "available"
    UNLISTED = "unlisted"


def _split_shebang(content: bytes):
    if content.startswith(b"#!"):
        head, _, body = content.partition(b"\n")
        return head + b"\n", body
    return b"", content


def _read_script(script_path: Path) -> bytes:
    try:
        return script_path.read_bytes()
    except OSError as e:
        raise FetchError(f"Unable to read script '{script_path}': {e.strerror or e}") from e


def script_checksum(script_path: Union[str, Path]) -> str:
    """MD5 of a script, not counting its shebang line."""
    _, body = _split_shebang(_read_script(Path(script_path)))
    return hashlib.md5(body).hexdigest()


def latest_checksum(name: str, update_base: str, timeout: float) -> Optional[str]:
    """Published checksum of script ``name``, or None if it isn't listed."""
    url = f"{update_base.rstrip('/')}/{VERSIONS_FILENAME}"
    logger.debug(f"Remote hash source: '{url}'")
    listing = download(url, timeout).decode("utf-8", errors="replace")
    for line in listing.splitlines():
        fields = line.split()
        if len(fields) == 2 and fields[0] == name:
            return fields[1].lower()
    return None


def check_for_update(script_path: Union[str, Path], update_base: str, timeout: float) -> UpdateStatus:
    """Compare the running script against the published version."""
    script_path = Path(script_path)
    remote = latest_checksum(script_path.name, update_base, timeout)
    if remote is None:
        return UpdateStatus.UNLISTED

    own = script_checksum(script_path)
    logger.debug(f"Own hash: '{own}' Remote hash: '{remote}'")
    return UpdateStatus.CURRENT if own == remote else UpdateStatus.AVAILABLE


def apply_update(script_path: Union[str, Path], update_base: str, timeout: float) -> Path:
    """
    Replace the script with the published version.

    The new version keeps the local interpreter line and file mode, and is
    moved over the old one with a single atomic rename.

    Raises:
        FetchError: If the script or its new version can't be read
        FileWriteError: If the new version can't be written in place
    """
    script_path = Path(script_path)
    shebang, _ = _split_shebang(_read_script(script_path))
    mode = stat.S_IMODE(script_path.stat().st_mode)

    url = f"{update_base.rstrip('/')}/{script_path.name}"
    logger.info(f"Downloading latest version from {url}")
    _, payload = _split_shebang(download(url, timeout))

    temp_name = None
    try:
        fd, temp_name = tempfile.mkstemp(prefix=f".{script_path.name}.", suffix=".tmp", dir=script_path.parent)
        with os.fdopen(fd, "wb") as handle:
            handle.write(shebang + payload)
        os.chmod(temp_name, mode)
        os.replace(temp_name, script_path)
    except OSError as e:
        if temp_name is not None and os.path.exists(temp_name):
            os.unlink(temp_name)
        raise FileWriteError(script_path, f"Unable to replace '{script_path}': {e.strerror or e}") from e

    logger.info(f"Updated {script_path}")
    return script_path
