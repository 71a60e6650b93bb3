"""
Input sanitization and validation for tfdrift.

This module validates everything that ends up on an IaC tool command line:
- Workspace names passed to `workspace select` / `workspace new`
- Arbitrary command arguments (null bytes, runaway lengths)
"""

import re


class SecurityError(Exception):
    """Raised when a security validation fails."""
    pass


class InputSanitizer:
    """
    Provides input validation methods.

    All sanitize_* methods raise SecurityError if validation fails.
    """

    MAX_WORKSPACE_NAME_LENGTH = 90    # Terraform limit
    MAX_COMMAND_ARG_LENGTH = 10000

    WORKSPACE_NAME_PATTERN = re.compile(r'^[a-zA-Z0-9_.-]+$')

    @staticmethod
    def sanitize_workspace_name(name: str) -> str:
        """
        Validate Terraform/OpenTofu workspace name.

        Rules:
        - Alphanumeric, dots, hyphens, underscores only
        - Max length: 90 characters
        - Cannot be empty
        - Cannot start with hyphen (would be read as a flag)

        Args:
            name: Workspace name to validate

        Returns:
            Validated workspace name (unchanged if valid)

        Raises:
            SecurityError: If name is invalid
        """
        if not name:
            raise SecurityError("Workspace name cannot be empty")

        if len(name) > InputSanitizer.MAX_WORKSPACE_NAME_LENGTH:
            raise SecurityError(
                f"Workspace name too long (max {InputSanitizer.MAX_WORKSPACE_NAME_LENGTH})"
            )

        if name.startswith("-"):
            raise SecurityError("Workspace name cannot start with hyphen")

        if not InputSanitizer.WORKSPACE_NAME_PATTERN.match(name):
            raise SecurityError(
                f"Invalid workspace name '{name}': only alphanumeric, dots, hyphens, "
                "underscores allowed"
            )

        return name

    @staticmethod
    def is_safe_command_arg(arg: str) -> bool:
        """
        Check if a command argument is safe to pass to subprocess.

        Commands always run with shell=False; this only rejects
        arguments that no tool invocation should ever contain.

        Args:
            arg: Command argument to check

        Returns:
            True if safe, False otherwise
        """
        if '\x00' in arg:
            return False

        if len(arg) > InputSanitizer.MAX_COMMAND_ARG_LENGTH:
            return False

        return True
