# config.py
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

from .model import Workflow

PINNED_TOOLCHAIN_VAR = "MATRIXCI_PINNED_TOOLCHAIN"
TOKEN_VAR = "MATRIXCI_TOKEN"
DEFAULT_TOOLCHAIN = "stable"

# `${{ secrets.NAME }}` in a workflow env value: read NAME from the process environment
_SECRET_REF = re.compile(r"^\$\{\{\s*secrets\.([A-Za-z_][A-Za-z0-9_]*)\s*\}\}$")


@dataclass(frozen=True)
class RunConfig:
    """
    Process-wide, read-only values threaded into command resolution.

    Built once at startup and passed explicitly; nothing reads ambient globals
    during a run.
    """
    pinned_toolchain: str | None = None
    default_toolchain: str = DEFAULT_TOOLCHAIN
    token: str | None = None
    env: Dict[str, str] = field(default_factory=dict)
    secrets: Tuple[str, ...] = ()

    def mask(self, text: str) -> str:
        """Replace secret values with *** for display."""
        for secret in self.secrets:
            if secret:
                text = text.replace(secret, "***")
        return text


def load_run_config(workflow: Workflow, environ: Optional[Mapping[str, str]] = None) -> RunConfig:
    """
    Build the RunConfig for `workflow`.

    - workflow `env` values are taken as-is, except `${{ secrets.X }}`, which
      reads X from the process environment (empty if unset)
    - MATRIXCI_PINNED_TOOLCHAIN overrides the pinned toolchain id
    - MATRIXCI_TOKEN overrides the access token
    """
    if environ is None:
        environ = os.environ

    env: Dict[str, str] = {}
    secrets: list[str] = []
    for key, value in workflow.env.items():
        m = _SECRET_REF.match(value)
        if m:
            resolved = environ.get(m.group(1), "")
            if resolved:
                secrets.append(resolved)
            env[key] = resolved
        else:
            env[key] = value

    pinned = environ.get(PINNED_TOOLCHAIN_VAR) or None
    if pinned and workflow.toolchain_env:
        env[workflow.toolchain_env] = pinned
    if pinned is None and workflow.toolchain_env:
        pinned = env.get(workflow.toolchain_env) or None

    token = environ.get(TOKEN_VAR) or None
    if token and workflow.token_env:
        env[workflow.token_env] = token
    if token is None and workflow.token_env:
        token = env.get(workflow.token_env) or None
    if token and token not in secrets:
        secrets.append(token)

    return RunConfig(
        pinned_toolchain=pinned,
        token=token,
        env=env,
        secrets=tuple(secrets),
    )
