"""Tests for run configuration loading."""

from matrixci.config import PINNED_TOOLCHAIN_VAR, TOKEN_VAR, RunConfig, load_run_config


class TestLoadRunConfig:
    def test_reads_workflow_env(self, reference_workflow):
        config = load_run_config(reference_workflow, environ={})

        assert config.pinned_toolchain == "nightly-2023-07-01"
        assert config.default_toolchain == "stable"
        assert config.env["RUST_TOOLCHAIN"] == "nightly-2023-07-01"

    def test_secret_reference_reads_process_env(self, reference_workflow):
        config = load_run_config(reference_workflow, environ={"GITHUB_TOKEN": "ghs_abc"})

        assert config.token == "ghs_abc"
        assert config.env["GITHUB_TOKEN"] == "ghs_abc"
        assert "ghs_abc" in config.secrets

    def test_missing_secret_is_empty(self, reference_workflow):
        config = load_run_config(reference_workflow, environ={})

        assert config.env["GITHUB_TOKEN"] == ""
        assert config.token is None
        assert config.secrets == ()

    def test_pinned_toolchain_override(self, reference_workflow):
        config = load_run_config(reference_workflow, environ={PINNED_TOOLCHAIN_VAR: "nightly-2024-01-01"})

        assert config.pinned_toolchain == "nightly-2024-01-01"
        # templates reading env.RUST_TOOLCHAIN see the same id
        assert config.env["RUST_TOOLCHAIN"] == "nightly-2024-01-01"

    def test_token_override(self, reference_workflow):
        config = load_run_config(reference_workflow, environ={TOKEN_VAR: "tok"})

        assert config.token == "tok"
        assert config.secrets == ("tok",)

    def test_workflow_env_is_not_mutated(self, reference_workflow):
        load_run_config(reference_workflow, environ={PINNED_TOOLCHAIN_VAR: "x", "GITHUB_TOKEN": "y"})

        assert reference_workflow.env["RUST_TOOLCHAIN"] == "nightly-2023-07-01"
        assert reference_workflow.env["GITHUB_TOKEN"] == "${{ secrets.GITHUB_TOKEN }}"


class TestMask:
    def test_masks_secrets(self):
        config = RunConfig(secrets=("hunter2",))

        assert config.mask("curl -H 'token: hunter2'") == "curl -H 'token: ***'"

    def test_nothing_to_mask(self):
        assert RunConfig().mask("cargo build") == "cargo build"
