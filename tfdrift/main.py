#!/usr/bin/env python3
"""
tfdrift - Main entry point.

Analyzes a Terraform/OpenTofu project and prints providers, modules,
resources, workspaces and per-workspace drift as a JSON document.

Usage:
    tfdrift <project-path>
"""

import json
import logging
import os
import sys
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from tfdrift.config import Settings
from tfdrift.core import (
    DriftCache,
    DriftDetector,
    HclParser,
    TerraformAnalyzer,
    ToolResolver,
    WorkspaceManager,
)
from tfdrift.utils import setup_logging, validate_project_is_terraform

logger = logging.getLogger(__name__)


def build_report(
    analyzer: TerraformAnalyzer,
    workspace_manager: WorkspaceManager,
    drift_detector: DriftDetector,
) -> Dict[str, Any]:
    """Collect every core result into one serializable document."""
    workspaces = workspace_manager.list_workspaces()
    drift = [drift_detector.check_drift(ws.name) for ws in workspaces]

    tool = drift_detector.resolver.resolve()
    return {
        "tool": {"command": tool.command, "type": tool.type.value, "version": tool.version},
        "providers": [asdict(p) for p in analyzer.get_providers()],
        "modules": [asdict(m) for m in analyzer.get_modules()],
        "resources": [
            dict(asdict(r), dependencies=sorted(r.dependencies))
            for r in analyzer.get_resources()
        ],
        "workspaces": [asdict(ws) for ws in workspaces],
        "current_workspace": next((ws.name for ws in workspaces if ws.is_current), None),
        "drift": [
            dict(asdict(result), last_checked=result.last_checked.isoformat())
            for result in drift
        ],
    }


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for tfdrift."""
    argv = sys.argv[1:] if argv is None else argv

    settings = Settings()
    setup_logging(
        log_level=settings.get("logging.level", "INFO"),
        log_file=settings.get("logging.log_file", False),
    )

    if len(argv) != 1:
        logger.error("Usage: tfdrift <project-path>")
        return 1

    project_path = os.path.realpath(os.path.expanduser(argv[0]))
    is_valid, error = validate_project_is_terraform(project_path)
    if not is_valid:
        logger.error(error)
        return 1

    resolver = ToolResolver(
        preference=settings.get("tool.preference"),
        probe_timeout=settings.get("tool.probe_timeout"),
    )
    parser = HclParser(
        converter_binary=settings.get("hcl.converter_binary"),
        converter_timeout=settings.get("hcl.converter_timeout"),
        python_hcl2_fallback=settings.get("hcl.python_hcl2_fallback"),
    )
    analyzer = TerraformAnalyzer(
        project_path,
        parser=parser,
        extensions=settings.get("scan.extensions"),
        exclude_dirs=settings.get("scan.exclude_dirs"),
    )
    workspace_manager = WorkspaceManager(
        project_path,
        resolver,
        timeout=settings.get("workspace.command_timeout"),
    )
    drift_detector = DriftDetector(
        project_path,
        resolver,
        cache=DriftCache(
            ttl=settings.get("drift.cache_ttl"),
            error_ttl=settings.get("drift.error_cache_ttl"),
        ),
        select_timeout=settings.get("drift.select_timeout"),
        plan_timeout=settings.get("drift.plan_timeout"),
        stop_on_select_failure=settings.get("drift.stop_on_select_failure"),
    )

    report = build_report(analyzer, workspace_manager, drift_detector)
    print(json.dumps(report, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
