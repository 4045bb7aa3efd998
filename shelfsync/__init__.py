"""shelfsync package root.

Keep this file small so `import shelfsync` stays cheap; the CLI and the sync
pipeline import what they need from the subpackages.
"""

from . import config, logging_cfg

__version__ = "1.0.0"

__all__ = [
    "config",
    "logging_cfg",
    "__version__",
]
