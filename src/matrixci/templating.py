# templating.py
from __future__ import annotations

import re
from typing import List, Tuple

from .config import RunConfig
from .model import ConfigurationError, JobConfig, Workflow

# ${{ namespace.key }}  e.g. ${{ matrix.crypto-backend }}, ${{ env.RUST_TOOLCHAIN }}
PLACEHOLDER = re.compile(r"\$\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\.([A-Za-z0-9_][A-Za-z0-9_-]*)\s*\}\}")

NAMESPACES = ("matrix", "env", "toolchain")
TOOLCHAIN_KEYS = ("label", "feature")


def template_refs(template: str) -> List[Tuple[str, str]]:
    """
    All (namespace, key) pairs referenced by `template`.

    Raises ConfigurationError for an unknown namespace or a malformed
    `${{ ... }}` expression.
    """
    refs: List[Tuple[str, str]] = []
    for m in PLACEHOLDER.finditer(template):
        namespace, key = m.group(1), m.group(2)
        if namespace not in NAMESPACES:
            raise ConfigurationError(
                f"Unknown placeholder namespace '{namespace}' in {m.group(0)!r} "
                f"(expected one of: {', '.join(NAMESPACES)})"
            )
        if namespace == "toolchain" and key not in TOOLCHAIN_KEYS:
            raise ConfigurationError(
                f"Unknown toolchain key '{key}' in {m.group(0)!r} "
                f"(expected one of: {', '.join(TOOLCHAIN_KEYS)})"
            )
        refs.append((namespace, key))

    leftover = PLACEHOLDER.sub("", template)
    if "${{" in leftover:
        raise ConfigurationError(f"Unsupported expression in command template: {template!r}")
    return refs


def resolve_toolchain_label(config: JobConfig, run_config: RunConfig) -> str:
    """The toolchain to invoke: the pinned id for pinned jobs, the default otherwise."""
    if config.pinned:
        if not run_config.pinned_toolchain:
            raise ConfigurationError(
                f"Job {config.label} uses the pinned toolchain but no pinned toolchain id is configured"
            )
        return run_config.pinned_toolchain
    return run_config.default_toolchain


def _toolchain_feature(config: JobConfig, pinned_value: str | None) -> str:
    return (pinned_value or "") if config.pinned else ""


def resolve_command(
    template: str,
    config: JobConfig,
    run_config: RunConfig,
    *,
    pinned_value: str | None = None,
) -> str:
    """
    Substitute axis values, toolchain selection and env into `template`.

    Pure: the same template, config and run config always give the same string.
    """
    template_refs(template)

    def _sub(m: re.Match) -> str:
        namespace, key = m.group(1), m.group(2)
        if namespace == "matrix":
            value = config.get(key)
            if value is None:
                raise ConfigurationError(f"Job {config.label} has no axis '{key}'")
            return value
        if namespace == "env":
            if key not in run_config.env:
                raise ConfigurationError(f"Environment value '{key}' is not defined by the workflow")
            return run_config.env[key]
        if key == "label":
            return resolve_toolchain_label(config, run_config)
        return _toolchain_feature(config, pinned_value)

    return PLACEHOLDER.sub(_sub, template)


def resolve_step(workflow: Workflow, template: str, config: JobConfig, run_config: RunConfig) -> str:
    return resolve_command(template, config, run_config, pinned_value=workflow.pinned_value)
