# matrixci_workflow.py
# Build-verification matrix: crypto backend x feature set x toolchain.
from __future__ import annotations

from matrixci import sh, wf, when_feature, when_toolchain

FEATURES = "${{ matrix.crypto-backend }},${{ matrix.features }},${{ toolchain.feature }}"
CARGO = "cargo +${{ toolchain.label }}"


def workflow():
    return wf(
        "build_and_test",
        sh(
            "Rust",
            "rustup toolchain install ${{ env.RUST_TOOLCHAIN }} --component rustfmt,clippy,rust-src",
            when=when_toolchain(pinned=True),
        ),
        sh("Fmt", f"{CARGO} fmt -- --check"),
        sh("Clippy", f"{CARGO} clippy --no-deps --no-default-features --features {FEATURES} -- -Dwarnings"),
        sh("Build", f"{CARGO} build --no-default-features --features {FEATURES}"),
        # only the os feature set has integration tests worth running
        sh(
            "Test",
            f"{CARGO} test --no-default-features --features {FEATURES} -- --test-threads=1",
            when=when_feature("os"),
        ),
        matrix={
            "crypto-backend": ["rustcrypto", "mbedtls", "openssl"],
            "features": ["", "alloc", "os"],
            "toolchain": ["stable", "nightly"],
        },
        toolchain_axis="toolchain",
        pinned_value="nightly",
        toolchain_env="RUST_TOOLCHAIN",
        token_env="GITHUB_TOKEN",
        env={
            "RUST_TOOLCHAIN": "nightly-2023-07-01",
            "GITHUB_TOKEN": "${{ secrets.GITHUB_TOKEN }}",
            "CARGO_TERM_COLOR": "always",
        },
        on=["push", "pull_request", "schedule", "manual"],
    )
