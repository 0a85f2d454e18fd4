"""
Unit tests for checkgate.config pipeline files.
"""

import pytest

from checkgate.config import find_pipeline_file, load_pipeline_file, parse_pipeline
from checkgate.errors import ConfigError
from checkgate.pipeline import FailurePolicy

WORKFLOW = """
[pipeline]
name = "check"
policy = "run-all"
timeout = 600
env = { CARGO_TERM_COLOR = "always" }

[[steps]]
name = "Install Prerequisites"
run = "bin/check/install_prerequisites.sh"

[[steps]]
name = "Rustfmt"
run = "bin/check/rustfmt.sh --verbose"
env = { CARGO_TERM_COLOR = "never", RUSTFMT = "1" }

[[steps]]
name = "Black"
command = ["black", "--check", "integration"]
cwd = "python"
timeout = 30
"""


@pytest.fixture
def workflow_file(tmp_path):
    path = tmp_path / "checkgate.toml"
    path.write_text(WORKFLOW, encoding="utf-8")
    return path


class TestLoad:
    def test_steps_in_declaration_order(self, workflow_file, tmp_path):
        pf = load_pipeline_file(workflow_file, root=tmp_path)
        assert pf.pipeline.name == "check"
        assert pf.pipeline.step_names == ["Install Prerequisites", "Rustfmt", "Black"]
        assert pf.policy is FailurePolicy.RUN_ALL

    def test_run_is_split_not_shelled(self, workflow_file, tmp_path):
        steps = load_pipeline_file(workflow_file, root=tmp_path).pipeline.steps
        assert steps[1].command == ("bin/check/rustfmt.sh", "--verbose")
        assert steps[2].command == ("black", "--check", "integration")

    def test_env_layering(self, workflow_file, tmp_path):
        steps = load_pipeline_file(workflow_file, root=tmp_path).pipeline.steps
        assert dict(steps[0].required_env) == {"CARGO_TERM_COLOR": "always"}
        assert dict(steps[1].required_env) == {"CARGO_TERM_COLOR": "never", "RUSTFMT": "1"}

    def test_cwd_and_timeouts(self, workflow_file, tmp_path):
        steps = load_pipeline_file(workflow_file, root=tmp_path).pipeline.steps
        assert steps[0].working_dir == tmp_path / "."
        assert steps[2].working_dir == tmp_path / "python"
        assert [s.timeout for s in steps] == [600.0, 600.0, 30.0]

    def test_find_pipeline_file(self, workflow_file, tmp_path):
        assert find_pipeline_file(tmp_path) == workflow_file
        assert find_pipeline_file(tmp_path / "elsewhere") is None

    def test_name_defaults_to_file_stem(self, tmp_path):
        path = tmp_path / "lint.toml"
        path.write_text('[[steps]]\nname = "a"\nrun = "true"\n', encoding="utf-8")
        pf = load_pipeline_file(path, root=tmp_path)
        assert pf.pipeline.name == "lint"
        assert pf.policy is None

    def test_no_steps_is_valid(self, tmp_path):
        pf = parse_pipeline({}, root=tmp_path, source="empty.toml")
        assert pf.pipeline.steps == ()


class TestErrors:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="cannot read"):
            load_pipeline_file(tmp_path / "nope.toml", root=tmp_path)

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[[steps]\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="invalid TOML"):
            load_pipeline_file(path, root=tmp_path)

    @pytest.mark.parametrize(
        "data,message",
        [
            ({"pipeline": {"policy": "sometimes"}}, "policy must be one of"),
            ({"pipeline": {"colour": "red"}}, "unknown \\[pipeline\\] keys"),
            ({"pipeline": {"timeout": -1}}, "timeout must be a positive"),
            ({"steps": [{"run": "x"}]}, "'name' is required"),
            ({"steps": [{"name": "a"}]}, "exactly one of"),
            ({"steps": [{"name": "a", "run": "x", "command": ["x"]}]}, "exactly one of"),
            ({"steps": [{"name": "a", "run": ""}]}, "command is empty"),
            ({"steps": [{"name": "a", "run": "x 'unclosed"}]}, "cannot parse"),
            ({"steps": [{"name": "a", "command": "x"}]}, "list of strings"),
            ({"steps": [{"name": "a", "run": "x", "shell": True}]}, "unknown keys"),
            ({"steps": [{"name": "a", "run": "x", "env": {"A": [1]}}]}, "scalar"),
            ({"steps": [{"name": "a", "run": "x"}, {"name": "a", "run": "y"}]}, "duplicate"),
        ],
    )
    def test_validation(self, tmp_path, data, message):
        with pytest.raises(ConfigError, match=message):
            parse_pipeline(data, root=tmp_path, source="checkgate.toml")

    def test_error_names_step_index(self, tmp_path):
        data = {"steps": [{"name": "a", "run": "x"}, {"name": "b"}]}
        with pytest.raises(ConfigError, match=r"steps\[1\]"):
            parse_pipeline(data, root=tmp_path, source="checkgate.toml")
