"""Public package surface for blockcheck.

Importing `blockcheck` exposes the high-level API function (`CHECK`), the
settings type and package version, keeping internals hidden by default.
"""

from .core import CHECK, CheckSettings
from .version import __version__

__all__ = ["CHECK", "CheckSettings", "__version__"]
