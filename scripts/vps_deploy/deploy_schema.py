"""Deterministic schema for the deploy run parameters.

This module is the single source of truth for:
- which keys exist (vars vs secrets)
- which dotenv file they are read from (`.env.deploy` vs `.env.deploy.secrets`)
- whether they are mandatory and/or have defaults

Values are resolved per key: CLI flag -> process env -> dotenv file -> prompt.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Mapping

from dotenv import dotenv_values


DEPLOY_DOTENV = ".env.deploy"
DEPLOY_SECRETS_DOTENV = ".env.deploy.secrets"

DEFAULT_BRANCH = "main"


class VarsEnum(str, Enum):
    GIT_REPO_URL = "GIT_REPO_URL"
    GIT_BRANCH = "GIT_BRANCH"
    REMOTE_USER = "REMOTE_USER"
    REMOTE_HOST = "REMOTE_HOST"
    SSH_KEY_PATH = "SSH_KEY_PATH"
    APP_PORT = "APP_PORT"


class SecretsEnum(str, Enum):
    # Personal access token used only for the authenticated clone/fetch.
    GIT_PAT = "GIT_PAT"


@dataclass(frozen=True)
class EnvKeySpec:
    key: VarsEnum | SecretsEnum
    mandatory: bool
    prompt: str
    default: str | None = None

    @property
    def secret(self) -> bool:
        return isinstance(self.key, SecretsEnum)

    @property
    def dotenv_name(self) -> str:
        return DEPLOY_SECRETS_DOTENV if self.secret else DEPLOY_DOTENV


# Order matters: it is the order the prompts are shown in.
DEPLOY_SCHEMA: tuple[EnvKeySpec, ...] = (
    EnvKeySpec(key=VarsEnum.GIT_REPO_URL, mandatory=True, prompt="Enter Git repository URL"),
    EnvKeySpec(key=SecretsEnum.GIT_PAT, mandatory=True, prompt="Enter Personal Access Token (PAT)"),
    EnvKeySpec(
        key=VarsEnum.GIT_BRANCH,
        mandatory=False,
        default=DEFAULT_BRANCH,
        prompt=f"Enter branch name (default: {DEFAULT_BRANCH})",
    ),
    EnvKeySpec(key=VarsEnum.REMOTE_USER, mandatory=True, prompt="Enter remote server username"),
    EnvKeySpec(key=VarsEnum.REMOTE_HOST, mandatory=True, prompt="Enter remote server IP address"),
    EnvKeySpec(key=VarsEnum.SSH_KEY_PATH, mandatory=True, prompt="Enter SSH key path"),
    EnvKeySpec(key=VarsEnum.APP_PORT, mandatory=True, prompt="Enter application port (container internal port)"),
)


def parse_dotenv_file(path: Path) -> dict[str, str]:
    """Parse a dotenv file, keeping keys with empty values as ""."""
    kv: dict[str, str] = {}
    if not path.exists():
        return kv
    raw = dotenv_values(path)
    for k, v in raw.items():
        if k is None:
            continue
        key = str(k).strip()
        if not key:
            continue
        kv[key] = "" if v is None else str(v).strip()
    return kv


def read_dotenv_key(*, dotenv_path: Path, key: str) -> str:
    return parse_dotenv_file(dotenv_path).get(key, "")


def apply_defaults(schema: Iterable[EnvKeySpec], kv: dict[str, str]) -> dict[str, str]:
    out = dict(kv)
    for spec in schema:
        if str(out.get(spec.key.value) or "").strip():
            continue
        if spec.default is None:
            continue
        out[spec.key.value] = spec.default
    return out


def missing_required(schema: Iterable[EnvKeySpec], kv: Mapping[str, str]) -> list[str]:
    missing: list[str] = []
    for spec in schema:
        if not spec.mandatory:
            continue
        if not str(kv.get(spec.key.value) or "").strip():
            missing.append(spec.key.value)
    return missing
