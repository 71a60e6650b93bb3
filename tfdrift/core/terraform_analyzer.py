"""
Terraform configuration analysis.

This module walks every configuration file of a project and extracts
providers, modules and resources (with their dependency references)
from the parsed HCL trees.
"""

import glob
import os
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Set, Tuple, TypeVar

from .hcl_parser import GenericTree, HclParser, HclValue

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_EXTENSIONS = (".tf", ".tfvars", ".hcl")
DEFAULT_EXCLUDE_DIRS = (".terraform", "node_modules", "vendor")

# Resource type prefix -> provider name, checked in order
PROVIDER_PREFIXES = (
    ("aws", "aws"),
    ("azurerm", "azurerm"),
    ("google", "google"),
    ("kubernetes", "kubernetes"),
    ("helm", "helm"),
    ("docker", "docker"),
    ("null", "null"),
    ("local", "local"),
    ("random", "random"),
)

_INTERPOLATION_RE = re.compile(r'\$\{([^}]+)\}')


@dataclass
class Provider:
    """
    A provider declared in a `terraform { required_providers { ... } }` block.

    Attributes:
        name: Local provider name (e.g. "aws")
        version: Version constraint, if declared
        source: Registry address (e.g. "hashicorp/aws"), if declared
        configuration: Raw entry value
    """
    name: str
    version: Optional[str] = None
    source: Optional[str] = None
    configuration: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Module:
    """
    A `module "<name>" {}` call.

    Attributes:
        name: Block label
        source: Module source address ("" when unknown)
        version: Version constraint, if declared
        configuration: All block arguments
    """
    name: str
    source: str = ""
    version: Optional[str] = None
    configuration: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Resource:
    """
    A `resource "<type>" "<name>" {}` block.

    Attributes:
        name: Block label
        type: Resource type (e.g. "aws_instance")
        provider: Explicit provider, provider inferred from the type, or "unknown"
        configuration: All block arguments
        dependencies: Dotted references found in ${...} expressions
    """
    name: str
    type: str
    provider: str = "unknown"
    configuration: Dict[str, Any] = field(default_factory=dict)
    dependencies: Set[str] = field(default_factory=set)


class TerraformAnalyzer:
    """
    Extracts the structural model of a Terraform/OpenTofu project.

    Every get_* call rescans and reparses the files, so results always
    reflect what is on disk. A file that cannot be read or does not have
    the expected shape is logged and skipped.
    """

    def __init__(
        self,
        project_path: str,
        parser: Optional[HclParser] = None,
        extensions: Sequence[str] = DEFAULT_EXTENSIONS,
        exclude_dirs: Sequence[str] = DEFAULT_EXCLUDE_DIRS,
    ):
        """
        Initialize analyzer for a Terraform project.

        Args:
            project_path: Path to Terraform project directory
            parser: HCL parser to use (a default HclParser if omitted)
            extensions: Configuration file extensions to scan
            exclude_dirs: Directory names never descended into
        """
        self.project_path = project_path
        self.parser = parser if parser is not None else HclParser()
        self.extensions = tuple(extensions)
        self.exclude_dirs = set(exclude_dirs)

    def get_providers(self) -> List[Provider]:
        """
        Collect providers from every required_providers block.

        Returns:
            One Provider per declared entry; the same name declared in
            several files appears several times.
        """
        return self._collect(self._extract_providers)

    def get_modules(self) -> List[Module]:
        """Collect every module block."""
        return self._collect(self._extract_modules)

    def get_resources(self) -> List[Resource]:
        """Collect every resource block with its provider and dependencies."""
        return self._collect(self._extract_resources)

    def find_config_files(self) -> List[str]:
        """
        Find configuration files under the project directory.

        Returns:
            Sorted list of file paths
        """
        files = []
        for ext in self.extensions:
            pattern = os.path.join(self.project_path, "**", f"*{ext}")
            for path in glob.glob(pattern, recursive=True):
                rel_parts = os.path.relpath(path, self.project_path).split(os.sep)
                if self.exclude_dirs.intersection(rel_parts[:-1]):
                    continue
                if os.path.isfile(path):
                    files.append(path)
        return sorted(set(files))

    def _collect(self, extract: Callable[[GenericTree], List[T]]) -> List[T]:
        items: List[T] = []
        for path, tree in self._parsed_files():
            try:
                items.extend(extract(tree))
            except Exception as e:
                logger.warning(f"Failed to extract from {path}: {e}")
        return items

    def _parsed_files(self) -> Iterator[Tuple[str, GenericTree]]:
        files = self.find_config_files()
        if not files:
            logger.warning(f"No configuration files found in {self.project_path}")
            return

        for path in files:
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    content = f.read()
            except (IOError, UnicodeDecodeError) as e:
                logger.warning(f"Failed to read {path}: {e}")
                continue
            yield path, self.parser.parse(content)

    @staticmethod
    def _extract_providers(tree: GenericTree) -> List[Provider]:
        providers = []
        for terraform_block in _as_blocks(tree.get("terraform")):
            for provider_block in _as_blocks(terraform_block.get("required_providers")):
                for name, config in provider_block.items():
                    config = config if isinstance(config, dict) else {}
                    providers.append(Provider(
                        name=name,
                        version=_scalar(config.get("version")),
                        source=_scalar(config.get("source")),
                        configuration=config,
                    ))
        return providers

    @staticmethod
    def _extract_modules(tree: GenericTree) -> List[Module]:
        modules = []
        module_section = tree.get("module")
        if not isinstance(module_section, dict):
            return modules

        for name, configs in module_section.items():
            for config in _as_blocks(configs):
                modules.append(Module(
                    name=name,
                    source=_scalar(config.get("source")) or "",
                    version=_scalar(config.get("version")),
                    configuration=config,
                ))
        return modules

    @staticmethod
    def _extract_resources(tree: GenericTree) -> List[Resource]:
        resources = []
        resource_section = tree.get("resource")
        if not isinstance(resource_section, dict):
            return resources

        for resource_type, by_name in resource_section.items():
            if not isinstance(by_name, dict):
                continue
            for name, configs in by_name.items():
                for config in _as_blocks(configs):
                    resources.append(Resource(
                        name=name,
                        type=resource_type,
                        provider=resolve_provider(resource_type, config),
                        configuration=config,
                        dependencies=extract_dependencies(config),
                    ))
        return resources


def resolve_provider(resource_type: str, config: Dict[str, Any]) -> str:
    """
    Work out which provider manages a resource.

    An explicit `provider` argument wins; otherwise the resource type
    prefix is looked up; otherwise "unknown".
    """
    explicit = _scalar(config.get("provider"))
    if explicit:
        match = _INTERPOLATION_RE.fullmatch(explicit)
        return match.group(1) if match else explicit

    for prefix, provider in PROVIDER_PREFIXES:
        if resource_type.startswith(prefix):
            return provider

    return "unknown"


def extract_dependencies(value: HclValue) -> Set[str]:
    """
    Collect dotted references from ${...} expressions anywhere in value.

    Expressions without a dot (literals, bare function calls) are not
    references and are dropped.
    """
    dependencies: Set[str] = set()

    def walk(node: HclValue):
        if isinstance(node, str):
            for ref in _INTERPOLATION_RE.findall(node):
                if "." in ref:
                    dependencies.add(ref)
        elif isinstance(node, list):
            for item in node:
                walk(item)
        elif isinstance(node, dict):
            for item in node.values():
                walk(item)

    walk(value)
    return dependencies


def _as_blocks(value: HclValue) -> List[Dict[str, Any]]:
    """Normalize a block section to a list of body dicts."""
    if isinstance(value, dict):
        return [value]
    if isinstance(value, list):
        return [item for item in value if isinstance(item, dict)]
    return []


def _scalar(value: HclValue) -> Optional[str]:
    """Return a string attribute, unwrapping single-element lists."""
    if isinstance(value, list) and len(value) == 1:
        value = value[0]
    if isinstance(value, str):
        return value
    return None
