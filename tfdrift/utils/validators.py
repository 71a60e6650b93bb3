"""
Validation utilities for tfdrift.
"""

from pathlib import Path
from typing import Optional, Tuple

# Entries that mark a directory as holding Terraform/OpenTofu configuration
CONFIG_EXTENSIONS = (".tf", ".tfvars", ".hcl")
CONFIG_MARKERS = ("terraform.tfstate", ".terraform")


def validate_project_is_terraform(project_path: str) -> Tuple[bool, Optional[str]]:
    """
    Check if a directory appears to be a Terraform/OpenTofu project.

    A usable project is an existing directory holding at least one
    configuration file (.tf, .tfvars, .hcl), a state file or a
    .terraform directory at its top level.

    Args:
        project_path: Path to directory

    Returns:
        Tuple of (is_valid, error_message)
        If valid, error_message is None
    """
    path = Path(project_path).expanduser()

    if not path.exists():
        return False, f"Path does not exist: {project_path}"

    if not path.is_dir():
        return False, f"Path is not a directory: {project_path}"

    for entry in path.iterdir():
        if entry.name in CONFIG_MARKERS or entry.name.endswith(CONFIG_EXTENSIONS):
            return True, None

    return False, f"No Terraform/OpenTofu files found in: {project_path}"
