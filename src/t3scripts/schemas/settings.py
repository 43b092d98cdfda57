"""
Typed settings for each script.

Each field is one configuration key (the field name upper-cased, e.g.
``string_limit`` -> ``STRING_LIMIT``). Field defaults feed the configuration
resolver and ``--export-config``; the resolved string configuration is then
validated back into a frozen settings object.
"""

from typing import Dict, Mapping

from pydantic import BaseModel, Field, ValidationError

from t3scripts.core.config import Configuration
from t3scripts.core.errors import ConfigError
from t3scripts.core.settings import (
    DEFAULT_BASE,
    DEFAULT_FETCH_TIMEOUT,
    DEFAULT_STRING_LIMIT,
    REPOSITORY_URL,
    UPDATE_BASE,
)


def _to_config_string(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ScriptSettings(BaseModel):
    """Settings every script understands."""
    model_config = {"frozen": True, "extra": "forbid"}

    base: str = Field(DEFAULT_BASE, description="The base directory where TYPO3 is installed")
    verbose: bool = Field(False, description="Should the script give more detailed feedback?")
    quiet: bool = Field(False, description="Should the script suppress all feedback?")
    repository_url: str = Field(REPOSITORY_URL, description="The extension repository to retrieve archives from")
    update_base: str = Field(UPDATE_BASE, description="The base location from where to retrieve new versions of this script")
    fetch_timeout: float = Field(DEFAULT_FETCH_TIMEOUT, gt=0, description="Seconds to wait for a download before giving up")

    @classmethod
    def config_defaults(cls) -> Dict[str, str]:
        """Default value of every configuration key, in string form."""
        return {
            name.upper(): _to_config_string(field.default)
            for name, field in cls.model_fields.items()
        }

    @classmethod
    def config_descriptions(cls) -> Dict[str, str]:
        return {
            name.upper(): field.description
            for name, field in cls.model_fields.items()
            if field.description
        }

    @classmethod
    def from_configuration(cls, configuration: Mapping[str, str]):
        """
        Validate a resolved configuration into settings.

        Raises:
            ConfigError: If a value doesn't fit its setting's type
        """
        data = {key.lower(): value for key, value in configuration.items()}
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            problems = []
            for error in e.errors():
                key = str(error["loc"][0]).upper() if error["loc"] else "?"
                if isinstance(configuration, Configuration) and key in configuration:
                    key = f"{key} (from {configuration.origin(key)})"
                problems.append(f"{key}: {error['msg']}")
            raise ConfigError("Invalid configuration - " + "; ".join(problems)) from e


class ExtractSettings(ScriptSettings):
    """Settings of t3-ext-extract."""

    extension: str = Field("", description="The extension key or archive file that should be operated on")
    outputdir: str = Field("", description="The directory to where the extension should be extracted")
    dump: bool = Field(False, description="Should the data structure of the extension be printed?")
    extract: bool = Field(True, description="Should the extension files be written to disk?")
    string_limit: int = Field(DEFAULT_STRING_LIMIT, ge=0, description="Longest string shown literally in a dump (0 = no limit)")
    force_version: str = Field("", description="Retrieve this version instead of the installed one")


class DownloadSettings(ScriptSettings):
    """Settings of t3-ext-download."""

    extension: str = Field("", description="The extension key of the extension that should be downloaded")
    force_version: str = Field("", description="Download this version instead of the installed one")
    output_file: str = Field("", description="The file the archive is saved to (default: <key>_<version>.t3x)")
    force: bool = Field(False, description="Overwrite an existing output file")
