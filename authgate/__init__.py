"""
authgate: pluggable third-party authentication providers.
"""

__version__ = "0.1.0"
