"""
Project-wide constants that are unlikely to change at runtime.
"""

# Shared by every script, looked up in the current working directory
GLOBAL_CONFIG_FILENAME = "typo3scripts.conf"
CONFIG_FILE_SUFFIX = ".conf"

DEFAULT_BASE = "typo3"
DEFAULT_STRING_LIMIT = 60  # 0 disables truncation in dumps
DEFAULT_FETCH_TIMEOUT = 30  # seconds

REPOSITORY_URL = "https://extensions.typo3.org/fileadmin/ter"
UPDATE_BASE = "https://raw.github.com/oliversalzburg/typo3scripts/master"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_UPDATE_UNLISTED = 2
EXIT_UPDATE_AVAILABLE = 3
