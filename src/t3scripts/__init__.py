"""
t3scripts - command-line helpers for working with TYPO3 extension packages.
"""

__version__ = "0.4.0"
