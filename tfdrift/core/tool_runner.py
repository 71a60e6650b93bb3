"""
External process execution for tfdrift.

Every call to the IaC tool or to the HCL converter goes through
ToolRunner: argument lists only (shell=False), validated arguments,
optional stdin piping and a mandatory timeout.
"""

import logging
import subprocess
from dataclasses import dataclass
from typing import List, Optional

from ..security.sanitizer import InputSanitizer, SecurityError
from ..utils import subprocess_creation_flags

logger = logging.getLogger(__name__)


class ToolExecutionError(Exception):
    """Raised when a process cannot be run at all (missing binary, spawn failure)."""
    pass


class ToolTimeoutError(ToolExecutionError):
    """Raised when a process exceeds its timeout."""

    def __init__(self, command: str, timeout: float):
        super().__init__(f"'{command}' timed out after {timeout}s")
        self.command = command
        self.timeout = timeout


@dataclass
class CommandResult:
    """Result of an external command execution."""
    exit_code: int
    stdout: str
    stderr: str
    success: bool
    command: str  # space-joined argv, for logging


class ToolRunner:
    """
    Runs external commands synchronously with a timeout.

    A non-zero exit code is returned in the CommandResult, never raised:
    for some commands (plan -detailed-exitcode) it is meaningful output.
    """

    def __init__(self, cwd: Optional[str] = None):
        self.cwd = cwd

    def run(
        self,
        cmd: List[str],
        timeout: float,
        input_text: Optional[str] = None,
    ) -> CommandResult:
        """
        Run a command and capture its output.

        Args:
            cmd: Argument list, binary first
            timeout: Seconds before the process is killed
            input_text: Text piped to the process's stdin

        Returns:
            CommandResult with exit code, stdout and stderr

        Raises:
            SecurityError: If an argument is unsafe
            ToolTimeoutError: If the timeout expires
            ToolExecutionError: If the process cannot be started
        """
        for arg in cmd:
            if not InputSanitizer.is_safe_command_arg(arg):
                raise SecurityError(f"Unsafe command argument: {arg!r}")

        command = " ".join(cmd)
        logger.debug(f"Running: {command} (cwd={self.cwd}, timeout={timeout}s)")

        try:
            result = subprocess.run(
                cmd,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=timeout,
                shell=False,
                cwd=self.cwd,
                creationflags=subprocess_creation_flags(),
            )
        except subprocess.TimeoutExpired:
            raise ToolTimeoutError(command, timeout)
        except OSError as e:
            raise ToolExecutionError(f"Failed to run '{command}': {e}") from e

        return CommandResult(
            exit_code=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
            success=result.returncode == 0,
            command=command,
        )
