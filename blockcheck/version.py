"""Version information for blockcheck."""

__version__ = "1.0.0"
