"""
Core configuration-analysis and drift-detection engine for tfdrift.

This module provides:
- Detection of the installed IaC tool (OpenTofu / Terraform)
- Parsing of HCL configuration into providers, modules and resources
- Workspace enumeration
- Plan-based drift detection with caching
"""

from .tool_runner import ToolRunner, CommandResult, ToolExecutionError, ToolTimeoutError
from .tool_resolver import ToolResolver, ToolSelection, ToolKind
from .hcl_parser import HclParser, GenericTree, HclValue
from .terraform_analyzer import TerraformAnalyzer, Provider, Module, Resource
from .workspace_manager import WorkspaceManager, Workspace
from .drift_detector import DriftDetector, DriftCache, DriftResult, DriftChanges

__all__ = [
    "ToolRunner",
    "CommandResult",
    "ToolExecutionError",
    "ToolTimeoutError",
    "ToolResolver",
    "ToolSelection",
    "ToolKind",
    "HclParser",
    "GenericTree",
    "HclValue",
    "TerraformAnalyzer",
    "Provider",
    "Module",
    "Resource",
    "WorkspaceManager",
    "Workspace",
    "DriftDetector",
    "DriftCache",
    "DriftResult",
    "DriftChanges",
]
