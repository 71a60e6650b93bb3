"""
Tests for HclParser: converter path, python-hcl2 path and pattern fallback.
"""

import json
from unittest.mock import MagicMock

import pytest

from tfdrift.core.hcl_parser import HclParser, normalize_python_hcl2
from tfdrift.core.tool_runner import CommandResult, ToolExecutionError, ToolTimeoutError


PROVIDERS_AND_MODULES = '''
terraform {
  required_version = ">= 1.5"

  required_providers {
    aws = {
      source  = "hashicorp/aws"
      version = "~> 5.0"
    }
    # comment = {}
    random = {
      source = "hashicorp/random"
    }
  }
}

module "vpc" {
  source = "terraform-aws-modules/vpc/aws"
  cidr   = "10.0.0.0/16"
}

module "eks" {
  source = "./modules/eks"
}
'''


def _converter_output(tree, exit_code=0, stderr=""):
    return CommandResult(
        exit_code=exit_code,
        stdout=json.dumps(tree) if isinstance(tree, (dict, list)) else tree,
        stderr=stderr,
        success=exit_code == 0,
        command="hcl2json",
    )


@pytest.fixture
def runner():
    return MagicMock()


class TestConverterPath:
    def test_returns_converter_tree(self, runner):
        tree = {"module": {"vpc": [{"source": "./vpc"}]}}
        runner.run.return_value = _converter_output(tree)
        parser = HclParser(runner=runner)

        assert parser.parse('module "vpc" { source = "./vpc" }') == tree

    def test_text_is_piped_on_stdin(self, runner):
        runner.run.return_value = _converter_output({})
        text = "locals {\n  msg = \"it's '${var.name}'\"\n}\n"
        HclParser(converter_binary="/opt/bin/hcl2json", runner=runner).parse(text)

        args, kwargs = runner.run.call_args
        assert args[0] == ["/opt/bin/hcl2json"]
        assert kwargs["input_text"] == text

    def test_nonzero_exit_falls_back(self, runner):
        runner.run.return_value = _converter_output("", exit_code=1, stderr="parse error")
        parser = HclParser(python_hcl2_fallback=False, runner=runner)

        tree = parser.parse(PROVIDERS_AND_MODULES)
        assert set(tree["module"]) == {"vpc", "eks"}

    def test_invalid_json_falls_back(self, runner):
        runner.run.return_value = _converter_output("not json")
        parser = HclParser(python_hcl2_fallback=False, runner=runner)

        tree = parser.parse(PROVIDERS_AND_MODULES)
        assert "terraform" in tree

    def test_non_object_json_falls_back(self, runner):
        runner.run.return_value = _converter_output([1, 2, 3])
        parser = HclParser(python_hcl2_fallback=False, runner=runner)

        assert isinstance(parser.parse(PROVIDERS_AND_MODULES), dict)

    def test_timeout_falls_back_and_retries_next_time(self, runner):
        runner.run.side_effect = ToolTimeoutError("hcl2json", 10)
        parser = HclParser(python_hcl2_fallback=False, runner=runner)

        parser.parse(PROVIDERS_AND_MODULES)
        parser.parse(PROVIDERS_AND_MODULES)
        assert runner.run.call_count == 2

    def test_missing_converter_is_not_retried(self, runner):
        runner.run.side_effect = ToolExecutionError("No such file: hcl2json")
        parser = HclParser(python_hcl2_fallback=False, runner=runner)

        parser.parse(PROVIDERS_AND_MODULES)
        parser.parse(PROVIDERS_AND_MODULES)
        assert runner.run.call_count == 1

    def test_never_raises_on_garbage(self, runner):
        runner.run.side_effect = ToolExecutionError("missing")
        parser = HclParser(runner=runner)

        assert parser.parse("}}}{{{ = = =") == {}


class TestPythonHcl2Path:
    def test_used_when_converter_missing(self, runner):
        runner.run.side_effect = ToolExecutionError("missing")
        parser = HclParser(runner=runner)

        tree = parser.parse(
            'resource "aws_instance" "web" {\n'
            '  ami           = "ami-123456"\n'
            '  instance_type = "t3.micro"\n'
            '}\n'
        )

        assert list(tree["resource"]) == ["aws_instance"]
        assert list(tree["resource"]["aws_instance"]) == ["web"]
        assert len(tree["resource"]["aws_instance"]["web"]) == 1

    def test_malformed_input_reaches_pattern_fallback(self, runner):
        runner.run.side_effect = ToolExecutionError("missing")
        parser = HclParser(runner=runner)

        # Unclosed module block: python-hcl2 rejects it
        tree = parser.parse(PROVIDERS_AND_MODULES + '\nmodule "broken" {\n')

        assert "broken" in tree["module"]
        providers = tree["terraform"][0]["required_providers"]
        assert [list(p)[0] for p in providers] == ["aws", "random"]


class TestNormalizePythonHcl2:
    def test_groups_resources_by_type_and_name(self):
        parsed = {
            "resource": [
                {"aws_instance": {"web": {"ami": "ami-1"}}},
                {"aws_instance": {"web": {"ami": "ami-2"}}},
                {"aws_s3_bucket": {"logs": {"bucket": "logs"}}},
            ],
        }
        tree = normalize_python_hcl2(parsed)

        assert tree["resource"]["aws_instance"]["web"] == [{"ami": "ami-1"}, {"ami": "ami-2"}]
        assert tree["resource"]["aws_s3_bucket"]["logs"] == [{"bucket": "logs"}]

    def test_groups_modules_by_name(self):
        tree = normalize_python_hcl2({"module": [{"vpc": {"source": "./vpc"}}]})
        assert tree["module"] == {"vpc": [{"source": "./vpc"}]}

    def test_strips_quoted_labels_and_values(self):
        parsed = {"resource": [{'"aws_instance"': {'"web"': {"ami": '"ami-1"'}}}]}
        tree = normalize_python_hcl2(parsed)

        assert tree["resource"]["aws_instance"]["web"] == [{"ami": "ami-1"}]

    def test_drops_block_markers(self):
        parsed = {
            "terraform": [{
                "required_providers": [{
                    "aws": {"source": "\"hashicorp/aws\""},
                    "__is_block__": True,
                }],
                "__is_block__": True,
            }],
            "module": [{"\"vpc\"": {"source": "\"./vpc\"", "__is_block__": True}}],
            "resource": [{"\"aws_instance\"": {"\"web\"": {"ami": "\"ami-1\"", "__is_block__": True}}}],
        }
        tree = normalize_python_hcl2(parsed)

        assert tree["terraform"] == [{"required_providers": [{"aws": {"source": "hashicorp/aws"}}]}]
        assert tree["module"] == {"vpc": [{"source": "./vpc"}]}
        assert tree["resource"]["aws_instance"]["web"] == [{"ami": "ami-1"}]

    def test_other_sections_kept(self):
        parsed = {"terraform": [{"required_providers": [{"aws": {"source": "hashicorp/aws"}}]}]}
        assert normalize_python_hcl2(parsed) == parsed


class TestBasicParse:
    def test_extracts_provider_names_only(self):
        tree = HclParser.basic_parse(PROVIDERS_AND_MODULES)
        providers = tree["terraform"][0]["required_providers"]

        assert providers == [{"aws": {}}, {"random": {}}]

    def test_extracts_module_names_only(self):
        tree = HclParser.basic_parse(PROVIDERS_AND_MODULES)
        assert tree["module"] == {"vpc": [{}], "eks": [{}]}

    def test_repeated_module_label(self):
        tree = HclParser.basic_parse('module "a" {}\nmodule "a" {}\n')
        assert tree["module"] == {"a": [{}, {}]}

    def test_empty_input(self):
        assert HclParser.basic_parse("") == {}

    def test_ignores_resources(self):
        tree = HclParser.basic_parse('resource "aws_instance" "web" { ami = "x" }')
        assert tree == {}
