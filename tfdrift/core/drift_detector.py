"""
State drift detection.

Runs `plan -detailed-exitcode -lock=false` per workspace and turns the
textual plan summary into change counts, with an in-memory cache so a
workspace is planned at most once per retention window.

Plans run with state locking disabled. Read-only drift checks then never
block on (or hold) the backend's lock, but a check can race an apply
that is running at the same time; operators who apply from the same
backend should schedule drift checks accordingly.
"""

import logging
import re
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

from ..security.sanitizer import InputSanitizer, SecurityError
from .tool_resolver import ToolResolver
from .tool_runner import ToolExecutionError, ToolRunner, ToolTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 5 * 60

ANSI_ESCAPE_RE = re.compile(r'\x1b\[[0-9;]*m')

PLAN_MARKER = "Plan:"

# Most detailed first; the first match wins
PLAN_PATTERNS = (
    re.compile(
        r'Plan: (?P<import>\d+) to import, (?P<add>\d+) to add, '
        r'(?P<change>\d+) to change, (?P<destroy>\d+) to destroy'
    ),
    re.compile(
        r'Plan: (?P<add>\d+) to add, (?P<change>\d+) to change, '
        r'(?P<destroy>\d+) to destroy, (?P<replace>\d+) to replace'
    ),
    re.compile(r'Plan: (?P<add>\d+) to add, (?P<change>\d+) to change, (?P<destroy>\d+) to destroy'),
)

NO_CHANGES_PHRASES = ("No changes", "No differences")
NO_CHANGES_DETAILS = "No changes. Infrastructure is up-to-date."


@dataclass
class DriftChanges:
    """Resource change counts from a plan summary."""
    add: int = 0
    change: int = 0
    destroy: int = 0

    def has_changes(self) -> bool:
        return self.add > 0 or self.change > 0 or self.destroy > 0


@dataclass
class DriftResult:
    """
    Outcome of a drift check for one workspace.

    When `error` is set the check did not complete: `has_drift` is False
    and `changes` is all zeros, but the real state is unknown. Callers
    must treat a populated `error` as "unknown", not as "no drift".
    """
    workspace: str
    has_drift: bool
    changes: DriftChanges
    details: str
    last_checked: datetime = field(default_factory=datetime.now)
    error: Optional[str] = None

    @classmethod
    def failed(cls, workspace: str, message: str) -> "DriftResult":
        return cls(
            workspace=workspace,
            has_drift=False,
            changes=DriftChanges(),
            details=message,
            error=message,
        )


def summarize_changes(changes: DriftChanges) -> str:
    """Human-readable summary, e.g. "Plan: 2 to add, 1 to change"."""
    parts = []
    if changes.add > 0:
        parts.append(f"{changes.add} to add")
    if changes.change > 0:
        parts.append(f"{changes.change} to change")
    if changes.destroy > 0:
        parts.append(f"{changes.destroy} to destroy")

    if not parts:
        return NO_CHANGES_DETAILS
    return f"Plan: {', '.join(parts)}"


def parse_plan_output(output: str, workspace: str) -> DriftResult:
    """
    Build a DriftResult from plan output.

    Args:
        output: Captured plan output (ANSI colors allowed)
        workspace: Workspace the plan ran against

    Returns:
        DriftResult with the counts of the first recognised summary line
    """
    lines = [ANSI_ESCAPE_RE.sub("", line) for line in output.splitlines()]
    changes = DriftChanges()

    for line in lines:
        if not line.strip().startswith(PLAN_MARKER):
            continue
        counts = _match_summary(line)
        if counts is not None:
            changes = counts
            break

    if not changes.has_changes():
        if not any(phrase in line for line in lines for phrase in NO_CHANGES_PHRASES):
            logger.debug(f"Plan output for {workspace} has no summary and no 'No changes' line")

    return DriftResult(
        workspace=workspace,
        has_drift=changes.has_changes(),
        changes=changes,
        details=summarize_changes(changes),
    )


def _match_summary(line: str) -> Optional[DriftChanges]:
    for pattern in PLAN_PATTERNS:
        match = pattern.search(line)
        if match:
            groups = match.groupdict()
            return DriftChanges(
                add=int(groups.get("add") or 0),
                change=int(groups.get("change") or 0),
                destroy=int(groups.get("destroy") or 0),
            )
    return None


class DriftCache:
    """
    Thread-safe workspace -> DriftResult cache with a retention window.

    Error results may have their own (typically shorter) window.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_CACHE_TTL,
        error_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.error_ttl = ttl if error_ttl is None else error_ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[DriftResult, float]] = {}
        self._lock = threading.Lock()

    def get(self, workspace: str) -> Optional[DriftResult]:
        """Return the cached result regardless of age."""
        with self._lock:
            entry = self._entries.get(workspace)
        return entry[0] if entry else None

    def get_fresh(self, workspace: str) -> Optional[DriftResult]:
        """Return the cached result if it is still inside its retention window."""
        with self._lock:
            entry = self._entries.get(workspace)
        if entry is None:
            return None

        result, stored_at = entry
        ttl = self.error_ttl if result.error else self.ttl
        if self._clock() - stored_at < ttl:
            return result
        return None

    def put(self, result: DriftResult):
        with self._lock:
            self._entries[result.workspace] = (result, self._clock())

    def evict(self, workspace: str):
        with self._lock:
            self._entries.pop(workspace, None)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DriftDetector:
    """
    Detects drift between configuration and real infrastructure.

    Sequence per workspace: cache check, `workspace select`, `plan`,
    exit-code interpretation, summary parsing, caching. Failures never
    raise; they come back as a DriftResult with `error` set and are
    cached like any other result.

    At most one plan per workspace is in flight, and the select/plan pair
    is serialized per detector because the selected workspace is state of
    the project directory.
    """

    def __init__(
        self,
        project_path: str,
        resolver: ToolResolver,
        cache: Optional[DriftCache] = None,
        select_timeout: float = 10,
        plan_timeout: float = 60,
        stop_on_select_failure: bool = False,
        runner: Optional[ToolRunner] = None,
    ):
        self.project_path = project_path
        self.resolver = resolver
        self.cache = cache if cache is not None else DriftCache()
        self.select_timeout = select_timeout
        self.plan_timeout = plan_timeout
        self.stop_on_select_failure = stop_on_select_failure
        self._runner = runner if runner is not None else ToolRunner(cwd=project_path)
        self._project_lock = threading.Lock()
        self._workspace_locks: Dict[str, threading.Lock] = {}
        self._workspace_locks_guard = threading.Lock()

    def check_drift(self, workspace: str) -> DriftResult:
        """
        Return the drift state of a workspace, from cache when fresh.

        Args:
            workspace: Workspace name

        Returns:
            DriftResult (with `error` set if the check failed)
        """
        cached = self.cache.get_fresh(workspace)
        if cached is not None:
            return cached

        with self._workspace_lock(workspace):
            # Another caller may have finished the same check while we waited
            cached = self.cache.get_fresh(workspace)
            if cached is not None:
                return cached
            return self._check_and_store(workspace)

    def refresh_drift(self, workspace: str) -> DriftResult:
        """Discard any cached result and check the workspace again."""
        with self._workspace_lock(workspace):
            self.cache.evict(workspace)
            return self._check_and_store(workspace)

    def get_cached_drift(self, workspace: str) -> Optional[DriftResult]:
        """Last result for a workspace, whatever its age; never runs the tool."""
        return self.cache.get(workspace)

    def clear_cache(self):
        self.cache.clear()

    def _workspace_lock(self, workspace: str) -> threading.Lock:
        with self._workspace_locks_guard:
            return self._workspace_locks.setdefault(workspace, threading.Lock())

    def _check_and_store(self, workspace: str) -> DriftResult:
        result = self._run_check(workspace)
        self.cache.put(result)
        if result.error:
            logger.warning(f"Drift check for {workspace} failed: {result.error}")
        else:
            logger.info(f"Drift check for {workspace}: {result.details}")
        return result

    def _run_check(self, workspace: str) -> DriftResult:
        try:
            InputSanitizer.sanitize_workspace_name(workspace)
        except SecurityError as e:
            return DriftResult.failed(workspace, f"Drift check failed: {e}")

        command = self.resolver.resolve().command

        with self._project_lock:
            select_error = self._select_workspace(command, workspace)
            if select_error:
                if self.stop_on_select_failure:
                    return DriftResult.failed(workspace, f"Drift check failed: {select_error}")
                logger.warning(
                    f"{select_error}; planning against the currently selected workspace"
                )

            try:
                result = self._runner.run(
                    [
                        command, "plan",
                        "-detailed-exitcode",
                        "-lock=false",
                        "-input=false",
                        "-no-color",
                    ],
                    timeout=self.plan_timeout,
                )
            except ToolTimeoutError:
                return DriftResult.failed(
                    workspace,
                    f"Drift check timed out - {command} plan took longer than "
                    f"{self.plan_timeout}s",
                )
            except (ToolExecutionError, SecurityError) as e:
                return DriftResult.failed(workspace, f"Drift check failed: {e}")

        # -detailed-exitcode: 0 = no changes, 2 = changes present, else error
        if result.exit_code in (0, 2):
            return parse_plan_output(result.stdout or result.stderr, workspace)

        stderr = result.stderr.strip()
        if stderr:
            message = f"Drift check failed: {stderr}"
        else:
            message = f"Drift check failed: {command} plan exited with code {result.exit_code}"
        return DriftResult.failed(workspace, message)

    def _select_workspace(self, command: str, workspace: str) -> Optional[str]:
        """Select the workspace; returns an error description on failure."""
        try:
            result = self._runner.run(
                [command, "workspace", "select", workspace],
                timeout=self.select_timeout,
            )
        except (ToolExecutionError, SecurityError) as e:
            return f"Failed to select workspace {workspace}: {e}"

        if not result.success:
            return f"Failed to select workspace {workspace}: {result.stderr.strip()}"
        return None
