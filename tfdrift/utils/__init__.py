"""
Utility functions for tfdrift.
"""

import subprocess
import sys

from .logger import setup_logging
from .validators import validate_project_is_terraform


def subprocess_creation_flags() -> int:
    """Return creationflags to hide console windows on Windows, 0 elsewhere."""
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


__all__ = ["setup_logging", "validate_project_is_terraform", "subprocess_creation_flags"]
