"""
Access to the TYPO3 extension repository and to locally installed extensions.
"""

import logging
import re
from pathlib import Path
from typing import Optional, Union

import requests

from t3scripts.core.errors import FetchError, UsageError

logger = logging.getLogger(__name__)

EMCONF_FILENAME = "ext_emconf.php"
_VERSION_PATTERN = re.compile(r"""['"]version['"]\s*=>\s*['"]([^'"]+)['"]""")


def extension_archive_url(repository_url: str, key: str, version: str) -> str:
    """
    URL of an extension archive in the repository.

    Archives are sharded by the first two letters of the extension key:
    ``<repository>/t/e/templavoila_1.5.0.t3x``.
    """
    key = key.lower()
    if len(key) < 2:
        raise UsageError(f"'{key}' is not a valid extension key")
    return f"{repository_url.rstrip('/')}/{key[0]}/{key[1]}/{key}_{version}.t3x"


def download(url: str, timeout: float) -> bytes:
    """
    Fetch ``url`` in a single blocking request.

    Raises:
        FetchError: On connection problems, timeouts, HTTP errors or an empty
            response
    """
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise FetchError(f"Unable to retrieve '{url}': {e}") from e

    if not response.content:
        raise FetchError(f"Unable to retrieve '{url}': empty response")
    return response.content


def fetch_extension_archive(key: str, version: str, repository_url: str, timeout: float) -> bytes:
    """Download the archive of one extension version."""
    url = extension_archive_url(repository_url, key, version)
    logger.info(f"Retrieving extension archive from {url}")
    return download(url, timeout)


def installed_extension_dir(base: Union[str, Path], key: str) -> Path:
    return Path(base) / "typo3conf" / "ext" / key


def read_installed_version(base: Union[str, Path], key: str) -> Optional[str]:
    """
    Version of an installed extension, taken from its ext_emconf.php.

    Returns:
        The version string, or None if it can't be determined
    """
    emconf = installed_extension_dir(base, key) / EMCONF_FILENAME
    try:
        content = emconf.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug(f"Unable to read {emconf}: {e}")
        return None

    match = _VERSION_PATTERN.search(content)
    return match.group(1) if match else None


def resolve_extension_version(base: Union[str, Path], key: str, force_version: str = "") -> str:
    """
    Version to retrieve for ``key``: the forced one, else the installed one.

    Raises:
        FetchError: If the extension isn't installed below ``base`` and no
            version was forced, or its version can't be read
    """
    if force_version:
        return force_version

    extension_dir = installed_extension_dir(base, key)
    if not extension_dir.is_dir():
        raise FetchError(
            f"Unable to find extension '{key}'. Directory requested: '{extension_dir}'"
        )
    version = read_installed_version(base, key)
    if not version:
        raise FetchError(
            f"Unable to determine the installed version of '{key}'. Use --force-version=VERSION."
        )
    return version
