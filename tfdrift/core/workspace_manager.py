"""
Terraform/OpenTofu workspace management.

Provides workspace listing, inspection, switching and creation by
wrapping the `workspace` CLI subcommands of the resolved tool.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..security.sanitizer import InputSanitizer, SecurityError
from .tool_resolver import ToolResolver
from .tool_runner import CommandResult, ToolExecutionError, ToolRunner

logger = logging.getLogger(__name__)


@dataclass
class Workspace:
    """A single workspace; state is "active" iff it is the current one."""
    name: str
    is_current: bool
    state: str = field(init=False)

    def __post_init__(self):
        self.state = "active" if self.is_current else "inactive"


def parse_workspace_list(output: str) -> List[Workspace]:
    """
    Parse `workspace list` output.

    Lines are trimmed, blank lines skipped; a leading "*" marks the
    current workspace.
    """
    workspaces = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        if line.startswith("*"):
            workspaces.append(Workspace(name=line[1:].strip(), is_current=True))
        else:
            workspaces.append(Workspace(name=line, is_current=False))
    return workspaces


class WorkspaceManager:
    """
    Manage workspaces for a project.

    Read operations never raise: failures are logged as warnings and
    reported as an empty list / None / False.
    """

    def __init__(
        self,
        project_path: str,
        resolver: ToolResolver,
        timeout: float = 15,
        runner: Optional[ToolRunner] = None,
    ):
        self.project_path = project_path
        self.resolver = resolver
        self.timeout = timeout
        self._runner = runner if runner is not None else ToolRunner(cwd=project_path)

    def _run(self, args: List[str]) -> Optional[CommandResult]:
        """Run `<tool> <args>`; None if the process could not run."""
        cmd = [self.resolver.resolve().command] + args
        try:
            return self._runner.run(cmd, timeout=self.timeout)
        except (ToolExecutionError, SecurityError) as e:
            logger.warning(f"Failed to run {' '.join(cmd)}: {e}")
            return None

    def list_workspaces(self) -> List[Workspace]:
        """
        List all workspaces for this project.

        Returns:
            List of Workspace, with is_current set on the active one;
            empty if the tool could not be run.
        """
        result = self._run(["workspace", "list"])
        if result is None:
            return []
        if not result.success:
            logger.warning(f"Failed to list workspaces: {result.stderr.strip()}")
            return []
        return parse_workspace_list(result.stdout)

    def get_current_workspace(self) -> Optional[str]:
        """Return the name of the current workspace, or None on failure."""
        result = self._run(["workspace", "show"])
        if result is None:
            return None
        if not result.success:
            logger.warning(f"Failed to get current workspace: {result.stderr.strip()}")
            return None
        return result.stdout.strip() or None

    def switch_workspace(self, name: str) -> bool:
        """
        Switch to an existing workspace.

        Args:
            name: Workspace name (validated)

        Returns:
            True if switch succeeded.
        """
        return self._workspace_command("select", name)

    def create_workspace(self, name: str) -> bool:
        """
        Create a new workspace and switch to it.

        Args:
            name: Workspace name (validated)

        Returns:
            True if creation succeeded.
        """
        return self._workspace_command("new", name)

    def _workspace_command(self, action: str, name: str) -> bool:
        try:
            InputSanitizer.sanitize_workspace_name(name)
        except SecurityError as e:
            logger.warning(f"Refusing workspace {action}: {e}")
            return False

        result = self._run(["workspace", action, name])
        if result is None:
            return False
        if not result.success:
            logger.warning(f"Failed to {action} workspace {name}: {result.stderr.strip()}")
            return False
        logger.info(f"Workspace {action} succeeded: {name}")
        return True
