"""Tests for command template resolution."""

import pytest

from matrixci.config import RunConfig
from matrixci.model import ConfigurationError, JobConfig
from matrixci.templating import resolve_command, resolve_toolchain_label, template_refs

FEATURES_TEMPLATE = (
    "cargo +${{ toolchain.label }} build --features "
    "${{ matrix.crypto-backend }},${{ matrix.features }},${{ toolchain.feature }}"
)


def _config(backend="openssl", features="", toolchain="stable"):
    return JobConfig(
        values=(("crypto-backend", backend), ("features", features), ("toolchain", toolchain)),
        pinned=toolchain == "nightly",
    )


class TestToolchainLabel:
    def test_pinned_uses_pinned_id(self, run_config):
        assert resolve_toolchain_label(_config(toolchain="nightly"), run_config) == "nightly-2023-07-01"

    def test_default_uses_stable(self, run_config):
        assert resolve_toolchain_label(_config(toolchain="stable"), run_config) == "stable"

    def test_pinned_without_id_is_configuration_error(self):
        with pytest.raises(ConfigurationError, match="pinned toolchain"):
            resolve_toolchain_label(_config(toolchain="nightly"), RunConfig())


class TestResolveCommand:
    def test_stable_job(self, run_config):
        cmd = resolve_command(FEATURES_TEMPLATE, _config(backend="mbedtls", features="alloc"), run_config,
                              pinned_value="nightly")

        assert cmd == "cargo +stable build --features mbedtls,alloc,"

    def test_pinned_job(self, run_config):
        cmd = resolve_command(FEATURES_TEMPLATE, _config(features="os", toolchain="nightly"), run_config,
                              pinned_value="nightly")

        assert cmd == "cargo +nightly-2023-07-01 build --features openssl,os,nightly"

    def test_resolution_is_pure(self, run_config):
        """Same template and config always give the same command."""
        config = _config(toolchain="nightly")
        results = {resolve_command(FEATURES_TEMPLATE, config, run_config, pinned_value="nightly") for _ in range(5)}

        assert len(results) == 1

    def test_env_placeholder(self, run_config):
        cmd = resolve_command("rustup toolchain install ${{env.RUST_TOOLCHAIN}}", _config(), run_config)

        assert cmd == "rustup toolchain install nightly-2023-07-01"

    def test_text_without_placeholders_is_unchanged(self, run_config):
        assert resolve_command("cargo fmt -- --check", _config(), run_config) == "cargo fmt -- --check"

    def test_missing_env(self, run_config):
        with pytest.raises(ConfigurationError, match="NOPE"):
            resolve_command("echo ${{ env.NOPE }}", _config(), run_config)

    def test_unknown_axis(self, run_config):
        with pytest.raises(ConfigurationError, match="no axis 'python'"):
            resolve_command("echo ${{ matrix.python }}", _config(), run_config)


class TestTemplateRefs:
    def test_lists_references(self):
        assert template_refs(FEATURES_TEMPLATE) == [
            ("toolchain", "label"),
            ("matrix", "crypto-backend"),
            ("matrix", "features"),
            ("toolchain", "feature"),
        ]

    def test_unknown_namespace(self):
        with pytest.raises(ConfigurationError, match="namespace 'secrets'"):
            template_refs("echo ${{ secrets.TOKEN }}")

    def test_unknown_toolchain_key(self):
        with pytest.raises(ConfigurationError, match="toolchain key"):
            template_refs("echo ${{ toolchain.version }}")

    def test_inline_expressions_are_rejected(self):
        with pytest.raises(ConfigurationError, match="Unsupported expression"):
            template_refs("cargo +${{ matrix.toolchain == 'nightly' && env.RUST_TOOLCHAIN || 'stable' }} build")
