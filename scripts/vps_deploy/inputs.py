"""Collect and validate the run parameters."""

from __future__ import annotations

import getpass
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping

from scripts.vps_deploy.deploy_logging import register_secret
from scripts.vps_deploy.deploy_schema import (
    DEPLOY_SCHEMA,
    SecretsEnum,
    VarsEnum,
    apply_defaults,
    missing_required,
    read_dotenv_key,
)
from scripts.vps_deploy.errors import InvalidPortError, MissingInputError


PORT_PATTERN = re.compile(r"^[0-9]+$")


@dataclass(frozen=True)
class RunParams:
    repo_url: str
    pat: str
    branch: str
    remote_user: str
    remote_host: str
    ssh_key: str
    app_port: int

    @property
    def ssh_target(self) -> str:
        return f"{self.remote_user}@{self.remote_host}"

    def __repr__(self) -> str:
        # Keep the credential out of tracebacks and debug output.
        return (
            f"RunParams(repo_url={self.repo_url!r}, pat='***', branch={self.branch!r}, "
            f"remote_user={self.remote_user!r}, remote_host={self.remote_host!r}, "
            f"ssh_key={self.ssh_key!r}, app_port={self.app_port!r})"
        )


def resolve_raw_values(
    *,
    cli_values: Mapping[str, str | None],
    workdir: Path,
    prompt_fn: Callable[[str], str] = input,
    secret_prompt_fn: Callable[[str], str] = getpass.getpass,
) -> dict[str, str]:
    """Resolve every schema key: CLI -> env var -> dotenv file -> prompt."""
    kv: dict[str, str] = {}
    for spec in DEPLOY_SCHEMA:
        key = spec.key.value
        value = str(cli_values.get(key) or "").strip()
        if not value:
            value = str(os.getenv(key) or "").strip()
        if not value:
            value = read_dotenv_key(dotenv_path=workdir / spec.dotenv_name, key=key)
        if not value:
            ask = secret_prompt_fn if spec.secret else prompt_fn
            value = str(ask(f"{spec.prompt}: ") or "").strip()
        kv[key] = value
    return kv


def validate_run_params(kv: Mapping[str, str]) -> RunParams:
    kv = apply_defaults(DEPLOY_SCHEMA, dict(kv))

    missing = missing_required(DEPLOY_SCHEMA, kv)
    if missing:
        raise MissingInputError(missing)

    port_raw = kv[VarsEnum.APP_PORT.value]
    if not PORT_PATTERN.match(port_raw):
        raise InvalidPortError(port_raw)

    return RunParams(
        repo_url=kv[VarsEnum.GIT_REPO_URL.value],
        pat=kv[SecretsEnum.GIT_PAT.value],
        branch=kv[VarsEnum.GIT_BRANCH.value],
        remote_user=kv[VarsEnum.REMOTE_USER.value],
        remote_host=kv[VarsEnum.REMOTE_HOST.value],
        ssh_key=str(Path(kv[VarsEnum.SSH_KEY_PATH.value]).expanduser()),
        app_port=int(port_raw),
    )


def collect_run_params(
    *,
    cli_values: Mapping[str, str | None],
    workdir: Path,
    prompt_fn: Callable[[str], str] = input,
    secret_prompt_fn: Callable[[str], str] = getpass.getpass,
) -> RunParams:
    kv = resolve_raw_values(
        cli_values=cli_values,
        workdir=workdir,
        prompt_fn=prompt_fn,
        secret_prompt_fn=secret_prompt_fn,
    )
    # Registered before validation so even an error message cannot leak it.
    register_secret(kv.get(SecretsEnum.GIT_PAT.value, ""))
    return validate_run_params(kv)
