"""
Layered configuration for the t3scripts command line tools.

Every script builds its configuration the same way, in increasing precedence:

1. compiled-in defaults
2. the global config file shared by all scripts (``typo3scripts.conf``)
3. the script's own config file (``<script>.conf``)
4. command line overrides, applied left to right

Config files hold ``KEY=VALUE`` lines. Blank lines and ``#`` comments are
skipped, and a single pair of matching quotes around the value is removed.
All values stay strings here; turning them into typed settings is the job of
:mod:`t3scripts.schemas.settings`.
"""

import logging
import re
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Optional, Tuple, Union

from t3scripts.core.errors import ConfigError, UsageError

logger = logging.getLogger(__name__)

KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

EXPORT_START_MARKER = "# Script Configuration start"
EXPORT_END_MARKER = "# Script Configuration end"

ORIGIN_DEFAULT = "default"
ORIGIN_COMMAND_LINE = "command line"


class UnknownKeyPolicy(str, Enum):
    """What to do with keys that have no compiled-in default."""
    KEEP = "keep"
    IGNORE = "ignore"
    REJECT = "reject"


class Configuration(Mapping):
    """
    Immutable result of resolving all configuration layers.

    Behaves like a read-only dict of strings and remembers where each value
    came from.
    """

    __slots__ = ("_values", "_origins")

    def __init__(self, values: Dict[str, str], origins: Optional[Dict[str, str]] = None):
        self._values = MappingProxyType(dict(values))
        self._origins = MappingProxyType(dict(origins or {}))

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Configuration({dict(self._values)!r})"

    def origin(self, key: str) -> str:
        """Return the layer that supplied ``key`` (e.g. ``default`` or a file path)."""
        return self._origins[key]


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_config_text(text: str, source: str = "<string>") -> Dict[str, str]:
    """
    Parse the contents of a config file.

    Args:
        text: File contents
        source: Name used in error messages

    Returns:
        Ordered mapping of key to (string) value. A key given twice keeps the
        last value.

    Raises:
        ConfigError: On a line that is neither blank, a comment nor KEY=VALUE
    """
    values: Dict[str, str] = {}
    for number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        key, separator, value = line.partition("=")
        key = key.strip()
        if not separator:
            raise ConfigError(f"{source}, line {number}: expected KEY=VALUE, got '{raw_line}'")
        if not KEY_PATTERN.match(key):
            raise ConfigError(f"{source}, line {number}: invalid key '{key}'")

        values[key] = _strip_quotes(value.strip())
    return values


def read_config_file(path: Union[str, Path]) -> Optional[Dict[str, str]]:
    """
    Read and parse a config file.

    Returns:
        The parsed values, or None if the file doesn't exist

    Raises:
        ConfigError: If the file exists but can't be read or parsed
    """
    path = Path(path)
    if not path.exists():
        return None

    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ConfigError(f"Unable to read '{path}': not valid UTF-8 ({e})") from e
    except OSError as e:
        raise ConfigError(f"Unable to read '{path}'. Check permissions. ({e.strerror or e})") from e

    return parse_config_text(text, source=str(path))


class ConfigurationResolver:
    """Merges defaults, config files and overrides into a :class:`Configuration`."""

    def __init__(self, defaults: Mapping, unknown_keys: UnknownKeyPolicy = UnknownKeyPolicy.IGNORE):
        """
        Args:
            defaults: Compiled-in default for every known key. Values are
                converted to strings.
            unknown_keys: How keys without a default are treated
        """
        self.defaults = {key: str(value) for key, value in defaults.items()}
        self.unknown_keys = UnknownKeyPolicy(unknown_keys)

    def resolve(
        self,
        global_file: Optional[Union[str, Path]] = None,
        local_file: Optional[Union[str, Path]] = None,
        overrides: Iterable[Tuple[str, str]] = (),
    ) -> Configuration:
        """
        Build the configuration for one invocation.

        Args:
            global_file: Config file shared by all scripts, if any
            local_file: Script-specific config file, if any
            overrides: (key, value) pairs from the command line, in the order
                they were given

        Raises:
            ConfigError: If a present config file is unreadable or, with the
                REJECT policy, holds an unknown key
            UsageError: If an override names an unknown key
        """
        values = dict(self.defaults)
        origins = {key: ORIGIN_DEFAULT for key in values}

        for path in (global_file, local_file):
            if path is None:
                continue
            file_values = read_config_file(path)
            if file_values is None:
                logger.debug(f"No configuration file at {path}")
                continue
            logger.debug(f"Sourcing script configuration from {path}")
            self._apply_file(values, origins, file_values, str(path))

        for key, value in overrides:
            if key not in self.defaults and self.unknown_keys != UnknownKeyPolicy.KEEP:
                raise UsageError(f"Unknown option '--{key}'")
            values[key] = str(value)
            origins[key] = ORIGIN_COMMAND_LINE

        return Configuration(values, origins)

    def _apply_file(self, values: Dict[str, str], origins: Dict[str, str],
                    file_values: Dict[str, str], source: str) -> None:
        for key, value in file_values.items():
            if key not in self.defaults:
                if self.unknown_keys == UnknownKeyPolicy.REJECT:
                    raise ConfigError(f"{source}: unknown configuration key '{key}'")
                if self.unknown_keys == UnknownKeyPolicy.IGNORE:
                    logger.debug(f"{source}: ignoring unknown key '{key}'")
                    continue
            values[key] = value
            origins[key] = source


def resolve_configuration(
    defaults: Mapping,
    global_file: Optional[Union[str, Path]] = None,
    local_file: Optional[Union[str, Path]] = None,
    overrides: Iterable[Tuple[str, str]] = (),
    unknown_keys: UnknownKeyPolicy = UnknownKeyPolicy.IGNORE,
) -> Configuration:
    """Shortcut for ``ConfigurationResolver(defaults, unknown_keys).resolve(...)``."""
    return ConfigurationResolver(defaults, unknown_keys).resolve(global_file, local_file, overrides)


def export_configuration(defaults: Mapping, descriptions: Optional[Mapping] = None) -> str:
    """
    Render defaults in config file syntax, ready to be saved as a config file.
    """
    descriptions = descriptions or {}
    lines = [EXPORT_START_MARKER]
    for key, value in defaults.items():
        if key in descriptions:
            lines.append(f"# {descriptions[key]}")
        lines.append(f"{key}={value}")
    lines.append(EXPORT_END_MARKER)
    return "\n".join(lines) + "\n"
