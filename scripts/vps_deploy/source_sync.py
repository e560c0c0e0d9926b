"""Clone or refresh the application repository.

The access token only ever appears on a git command line, never in
`.git/config`: after an authenticated clone `origin` is reset to the plain
URL, and refreshing an HTTPS checkout passes the authenticated URL explicitly.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

from scripts.vps_deploy.deploy_logging import logger, register_secret
from scripts.vps_deploy.errors import InvalidProjectNameError
from scripts.vps_deploy.shell import run_logged


_UNSAFE_IDENTIFIER_CHARS = re.compile(r"[^a-z0-9_-]")

# Would resolve to the parent or current directory on the remote host.
_RESERVED_REPO_NAMES = {"", ".", ".."}


@dataclass(frozen=True)
class ProjectIdentity:
    # Raw name: local/remote directory. Sanitized: container and nginx file names.
    repo_name: str
    sanitized: str

    @property
    def container_name(self) -> str:
        return f"{self.sanitized}_container"

    @property
    def image_name(self) -> str:
        return f"{self.sanitized}_image"

    @property
    def nginx_conf_name(self) -> str:
        return f"{self.sanitized}.conf"


def derive_repo_name(repo_url: str) -> str:
    """Basename of the repository URL with a trailing `.git` removed."""
    tail = repo_url.strip().rstrip("/")
    # scp-like ssh URLs: git@github.com:org/repo.git
    tail = tail.rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    if tail.endswith(".git") and tail != ".git":
        tail = tail[: -len(".git")]
    return tail


def sanitize_identifier(name: str) -> str:
    return _UNSAFE_IDENTIFIER_CHARS.sub("", name.lower())


def project_identity(repo_url: str) -> ProjectIdentity:
    """Raw and sanitized names; raises InvalidProjectNameError if either is unusable."""
    repo_name = derive_repo_name(repo_url)
    sanitized = sanitize_identifier(repo_name)
    if repo_name in _RESERVED_REPO_NAMES or not sanitized:
        raise InvalidProjectNameError(repo_url, repo_name)
    return ProjectIdentity(repo_name=repo_name, sanitized=sanitized)


def is_https_url(repo_url: str) -> bool:
    return repo_url.startswith("https://")


def authenticated_url(repo_url: str, pat: str) -> str:
    """Embed the token into the URL authority. Non-HTTPS URLs are returned unchanged."""
    if not is_https_url(repo_url) or not pat:
        return repo_url
    token = quote(pat, safe="")
    register_secret(token)
    return f"https://{token}@{repo_url[len('https://'):]}"


def build_clone_cmds(*, repo_url: str, pat: str, branch: str, dest: Path) -> list[list[str]]:
    cmds = [["git", "clone", authenticated_url(repo_url, pat), str(dest)]]
    if is_https_url(repo_url):
        cmds.append(["git", "-C", str(dest), "remote", "set-url", "origin", repo_url])
    cmds.append(["git", "-C", str(dest), "checkout", branch])
    return cmds


def build_refresh_cmds(*, repo_url: str, pat: str, branch: str, repo_dir: Path) -> list[list[str]]:
    if is_https_url(repo_url):
        auth_url = authenticated_url(repo_url, pat)
        return [
            ["git", "-C", str(repo_dir), "fetch", auth_url, "+refs/heads/*:refs/remotes/origin/*"],
            ["git", "-C", str(repo_dir), "checkout", branch],
            ["git", "-C", str(repo_dir), "pull", auth_url, branch],
        ]
    return [
        ["git", "-C", str(repo_dir), "fetch", "--all"],
        ["git", "-C", str(repo_dir), "checkout", branch],
        ["git", "-C", str(repo_dir), "pull", "origin", branch],
    ]


def sync_source(*, repo_url: str, pat: str, branch: str, workdir: Path) -> Path:
    """Clone the repo into `workdir/<repo_name>` or refresh an existing checkout.

    Returns the repository root; later stages run with it as their cwd.
    """
    repo_dir = workdir / project_identity(repo_url).repo_name

    if repo_dir.is_dir():
        logger.info(f"Repository '{repo_dir.name}' exists locally, pulling latest changes on branch '{branch}'.")
        cmds = build_refresh_cmds(repo_url=repo_url, pat=pat, branch=branch, repo_dir=repo_dir)
    else:
        logger.info("Cloning repository...")
        cmds = build_clone_cmds(repo_url=repo_url, pat=pat, branch=branch, dest=repo_dir)

    for cmd in cmds:
        run_logged(cmd, cwd=workdir)
    return repo_dir
