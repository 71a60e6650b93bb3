"""
Security module for tfdrift.

This module validates inputs that reach external process command lines.
"""

from .sanitizer import InputSanitizer, SecurityError

__all__ = ["InputSanitizer", "SecurityError"]
