"""
Detection of the installed IaC tool (OpenTofu or Terraform).

The resolver is built once by the entry point and handed to every
component that invokes the tool.
"""

import logging
import re
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence

from .tool_runner import ToolExecutionError, ToolRunner

logger = logging.getLogger(__name__)


class ToolKind(Enum):
    """Supported IaC tool kinds."""
    OPENTOFU = "opentofu"
    TERRAFORM = "terraform"


@dataclass(frozen=True)
class ToolSelection:
    """The tool binary to invoke and what was detected about it."""
    command: str
    type: ToolKind
    version: Optional[str] = None


@dataclass(frozen=True)
class _ToolProbe:
    command: str
    kind: ToolKind
    version_pattern: "re.Pattern[str]"


KNOWN_TOOLS: Dict[str, _ToolProbe] = {
    "tofu": _ToolProbe("tofu", ToolKind.OPENTOFU, re.compile(r"OpenTofu v([\d.]+)")),
    "terraform": _ToolProbe("terraform", ToolKind.TERRAFORM, re.compile(r"Terraform v([\d.]+)")),
}

DEFAULT_PREFERENCE = ("tofu", "terraform")


class ToolResolver:
    """
    Resolve which IaC tool to use, once per process.

    Probes each preferred binary with `<binary> version`; the first one
    that answers wins. When none answers, the selection falls back to
    plain `terraform` with no version so that the failure surfaces where
    the tool is actually invoked.

    resolve() is thread-safe: concurrent first callers share a single
    probe sequence and observe the same cached selection.
    """

    FALLBACK = ToolSelection(command="terraform", type=ToolKind.TERRAFORM)

    def __init__(
        self,
        preference: Sequence[str] = DEFAULT_PREFERENCE,
        probe_timeout: float = 5,
        runner: Optional[ToolRunner] = None,
    ):
        unknown = [name for name in preference if name not in KNOWN_TOOLS]
        if unknown:
            raise ValueError(f"Unknown tool(s) in preference: {', '.join(unknown)}")

        self._probes: List[_ToolProbe] = [KNOWN_TOOLS[name] for name in preference]
        self.probe_timeout = probe_timeout
        self._runner = runner if runner is not None else ToolRunner()
        self._selection: Optional[ToolSelection] = None
        self._lock = threading.Lock()

    def resolve(self) -> ToolSelection:
        """Return the cached selection, probing on first use."""
        with self._lock:
            if self._selection is None:
                self._selection = self._probe_all()
            return self._selection

    def invalidate(self):
        """Forget the cached selection; the next resolve() probes again."""
        with self._lock:
            self._selection = None

    @property
    def command(self) -> str:
        """Cached command name, or "terraform" if nothing was resolved yet. Never probes."""
        selection = self._selection
        return selection.command if selection else self.FALLBACK.command

    def _probe_all(self) -> ToolSelection:
        for probe in self._probes:
            selection = self._probe(probe)
            if selection is not None:
                logger.info(
                    f"Using {probe.kind.value} ({probe.command}) version: "
                    f"{selection.version or 'unknown'}"
                )
                return selection

        tried = ", ".join(probe.command for probe in self._probes)
        logger.warning(f"None of [{tried}] found, defaulting to {self.FALLBACK.command}")
        return self.FALLBACK

    def _probe(self, probe: _ToolProbe) -> Optional[ToolSelection]:
        try:
            result = self._runner.run([probe.command, "version"], timeout=self.probe_timeout)
        except ToolExecutionError as e:
            logger.debug(f"Probe of {probe.command} failed: {e}")
            return None

        if not result.success:
            logger.debug(f"Probe of {probe.command} exited with {result.exit_code}")
            return None

        match = probe.version_pattern.search(result.stdout)
        return ToolSelection(
            command=probe.command,
            type=probe.kind,
            version=match.group(1) if match else None,
        )
