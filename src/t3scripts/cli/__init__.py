"""
Command line entry points: t3-ext-extract and t3-ext-download.
"""

import logging

# Connection details from urllib3 would drown out our own --verbose output
logging.getLogger("urllib3").setLevel(logging.WARNING)
