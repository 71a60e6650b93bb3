"""
HCL configuration parsing.

Turns Terraform/OpenTofu source text into a generic tree of dicts and
lists laid out the way the `hcl2json` converter lays it out:

    {
        "terraform": [{"required_providers": [{"aws": {"source": ..., "version": ...}}]}],
        "module": {"vpc": [{"source": ..., ...}]},
        "resource": {"aws_instance": {"web": [{...}]}},
    }

Conversion is attempted, in order, with the external converter (text
piped on stdin), with python-hcl2 in-process, and finally with a small
pattern-based extractor that only recovers provider and module names.
parse() never raises.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Union

import hcl2

from .tool_runner import ToolExecutionError, ToolRunner, ToolTimeoutError

logger = logging.getLogger(__name__)

HclValue = Union[None, bool, int, float, str, List["HclValue"], Dict[str, "HclValue"]]
GenericTree = Dict[str, HclValue]

_REQUIRED_PROVIDERS_RE = re.compile(r'\brequired_providers\s*\{')
_PROVIDER_ENTRY_RE = re.compile(r'^\s*([A-Za-z_][\w-]*)\s*=')
_MODULE_HEADER_RE = re.compile(r'\bmodule\s+"([^"]+)"\s*\{')

# Bookkeeping keys python-hcl2 7.x and later add to every block body
_BLOCK_MARKERS = frozenset({"__is_block__"})


class HclParser:
    """
    Parser for HCL source text.

    Attributes:
        converter_binary: Name or path of the HCL -> JSON converter
        converter_timeout: Seconds allowed per conversion
        python_hcl2_fallback: Try python-hcl2 before pattern parsing
    """

    def __init__(
        self,
        converter_binary: str = "hcl2json",
        converter_timeout: float = 10,
        python_hcl2_fallback: bool = True,
        runner: Optional[ToolRunner] = None,
    ):
        self.converter_binary = converter_binary
        self.converter_timeout = converter_timeout
        self.python_hcl2_fallback = python_hcl2_fallback
        self._runner = runner if runner is not None else ToolRunner()
        self._converter_missing = False

    def parse(self, text: str) -> GenericTree:
        """
        Parse HCL text into a generic tree.

        Args:
            text: HCL source

        Returns:
            Parsed tree; possibly partial or empty when only the
            pattern-based fallback could be used
        """
        tree = self._convert_with_binary(text)
        if tree is not None:
            return tree

        if self.python_hcl2_fallback:
            tree = self._convert_with_python_hcl2(text)
            if tree is not None:
                return tree

        logger.warning("HCL conversion unavailable, falling back to basic parsing")
        return self.basic_parse(text)

    def _convert_with_binary(self, text: str) -> Optional[GenericTree]:
        if self._converter_missing:
            return None

        try:
            result = self._runner.run(
                [self.converter_binary],
                timeout=self.converter_timeout,
                input_text=text,
            )
        except ToolTimeoutError as e:
            logger.warning(f"HCL converter timed out: {e}")
            return None
        except ToolExecutionError as e:
            logger.warning(f"HCL converter {self.converter_binary} not usable: {e}")
            self._converter_missing = True
            return None

        if not result.success:
            logger.warning(
                f"HCL converter exited with {result.exit_code}: {result.stderr.strip()}"
            )
            return None

        try:
            tree = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            logger.warning(f"HCL converter produced invalid JSON: {e}")
            return None

        if not isinstance(tree, dict):
            logger.warning("HCL converter output is not a JSON object")
            return None

        return tree

    def _convert_with_python_hcl2(self, text: str) -> Optional[GenericTree]:
        try:
            parsed = hcl2.loads(text)
        except Exception as e:
            logger.warning(f"python-hcl2 failed to parse input: {e}")
            return None

        if not isinstance(parsed, dict):
            return None
        return normalize_python_hcl2(parsed)

    @staticmethod
    def basic_parse(text: str) -> GenericTree:
        """
        Extract provider and module names with regular expressions.

        Only `required_providers` entry names (no versions or sources)
        and `module "<name>"` headers (no attributes) are recovered.
        """
        result: GenericTree = {}

        providers: List[HclValue] = []
        for match in _REQUIRED_PROVIDERS_RE.finditer(text):
            body = _block_body(text, match.end() - 1)
            for name in _top_level_entries(body):
                providers.append({name: {}})
        if providers:
            result["terraform"] = [{"required_providers": providers}]

        modules: Dict[str, HclValue] = {}
        for match in _MODULE_HEADER_RE.finditer(text):
            modules.setdefault(match.group(1), []).append({})
        if modules:
            result["module"] = modules

        return result


def normalize_python_hcl2(parsed: Dict[str, Any]) -> GenericTree:
    """
    Convert python-hcl2 output to the converter's layout.

    python-hcl2 yields labelled blocks as lists of single-key dicts
    (`resource: [{type: {name: {...}}}]`); the converter groups them
    by label with a list of bodies at the leaf.
    """
    tree: GenericTree = {}
    for key, value in parsed.items():
        if key in _BLOCK_MARKERS:
            continue
        key = _unquote(key)
        if key == "resource" and isinstance(value, list):
            resources: Dict[str, Any] = tree.setdefault("resource", {})
            for block in value:
                for res_type, by_name in _entries(block):
                    for name, body in _entries(by_name):
                        resources.setdefault(_unquote(res_type), {}).setdefault(
                            _unquote(name), []
                        ).append(_unquote_values(body))
        elif key == "module" and isinstance(value, list):
            modules: Dict[str, Any] = tree.setdefault("module", {})
            for block in value:
                for name, body in _entries(block):
                    modules.setdefault(_unquote(name), []).append(_unquote_values(body))
        else:
            tree[key] = _unquote_values(value)
    return tree


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def _entries(block: Dict[str, Any]):
    return ((k, v) for k, v in block.items() if k not in _BLOCK_MARKERS)


def _unquote_values(value: HclValue) -> HclValue:
    if isinstance(value, str):
        return _unquote(value)
    if isinstance(value, list):
        return [_unquote_values(item) for item in value]
    if isinstance(value, dict):
        return {_unquote(k): _unquote_values(v) for k, v in _entries(value)}
    return value


def _block_body(text: str, open_index: int) -> str:
    """Return the text between the brace at open_index and its matching close."""
    depth = 0
    for i in range(open_index, len(text)):
        if text[i] == "{":
            depth += 1
        elif text[i] == "}":
            depth -= 1
            if depth == 0:
                return text[open_index + 1:i]
    return text[open_index + 1:]


def _top_level_entries(body: str) -> List[str]:
    """Names assigned at nesting depth zero of a block body."""
    names = []
    depth = 0
    for line in body.splitlines():
        stripped = line.strip()
        if stripped.startswith(("#", "//")):
            continue
        if depth == 0:
            match = _PROVIDER_ENTRY_RE.match(line)
            if match:
                names.append(match.group(1))
        depth += line.count("{") - line.count("}")
    return names
