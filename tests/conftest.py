"""Shared fixtures for matrixci tests."""

from __future__ import annotations

import subprocess
import threading
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Tuple

import pytest

from matrixci import sh, wf, when_feature, when_toolchain
from matrixci.config import RunConfig
from matrixci.ui.console import Console, set_console

REFERENCE_AXES = {
    "crypto-backend": ["rustcrypto", "mbedtls", "openssl"],
    "features": ["", "alloc", "os"],
    "toolchain": ["stable", "nightly"],
}

FEATURES = "${{ matrix.crypto-backend }},${{ matrix.features }},${{ toolchain.feature }}"
CARGO = "cargo +${{ toolchain.label }}"


class FakeRunner:
    """Command runner that records commands instead of spawning a shell."""

    def __init__(self, fail_when: Optional[Callable[[str], bool]] = None, exit_code: int = 1):
        self.fail_when = fail_when
        self.exit_code = exit_code
        self.calls: List[Tuple[str, Path, dict]] = []
        self._lock = threading.Lock()

    def __call__(self, command: str, cwd: Path, env: Mapping[str, str]) -> subprocess.CompletedProcess:
        with self._lock:
            self.calls.append((command, cwd, dict(env)))
        if self.fail_when is not None and self.fail_when(command):
            return subprocess.CompletedProcess(command, self.exit_code, stdout="", stderr="boom\n")
        return subprocess.CompletedProcess(command, 0, stdout="ok\n", stderr="")

    @property
    def commands(self) -> List[str]:
        return [c for c, _, _ in self.calls]


@pytest.fixture(autouse=True)
def fresh_console():
    """Each test gets its own console so debug flags do not leak."""
    console = Console()
    set_console(console)
    yield console


@pytest.fixture
def reference_workflow():
    return wf(
        "build_and_test",
        sh(
            "Rust",
            "rustup toolchain install ${{ env.RUST_TOOLCHAIN }}",
            when=when_toolchain(pinned=True),
        ),
        sh("Fmt", f"{CARGO} fmt -- --check"),
        sh("Clippy", f"{CARGO} clippy --features {FEATURES} -- -Dwarnings"),
        sh("Build", f"{CARGO} build --features {FEATURES}"),
        sh(
            "Test",
            f"{CARGO} test --features {FEATURES} -- --test-threads=1",
            when=when_feature("os"),
        ),
        matrix=REFERENCE_AXES,
        toolchain_axis="toolchain",
        pinned_value="nightly",
        toolchain_env="RUST_TOOLCHAIN",
        token_env="GITHUB_TOKEN",
        env={"RUST_TOOLCHAIN": "nightly-2023-07-01", "GITHUB_TOKEN": "${{ secrets.GITHUB_TOKEN }}"},
        on=["push", "pull_request", "schedule", "manual"],
    )


@pytest.fixture
def run_config():
    return RunConfig(
        pinned_toolchain="nightly-2023-07-01",
        token="s3cret",
        env={"RUST_TOOLCHAIN": "nightly-2023-07-01", "GITHUB_TOKEN": "s3cret"},
        secrets=("s3cret",),
    )


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def make_runner():
    """Factory for FakeRunner instances with a failure predicate."""
    return FakeRunner
