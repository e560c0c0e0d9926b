"""SSH transport to the target host.

Security note: this shells out to `ssh` and `rsync`. The rsync transfer
disables strict host-key checking; every other call uses the user's normal
known_hosts handling.
"""

from __future__ import annotations

import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from scripts.vps_deploy.deploy_logging import logger
from scripts.vps_deploy.errors import SshConnectivityError
from scripts.vps_deploy.shell import run_logged


DEFAULT_CONNECT_TIMEOUT = 8


@runtime_checkable
class RemoteSession(Protocol):
    """What the remote stages need from a session; tests substitute a fake."""

    def run_script(self, script: str, *, args: list[str] | None = None, check: bool = True) -> subprocess.CompletedProcess: ...
    def sync_tree(self, *, source: Path, remote_dir: str, excludes: list[str]) -> None: ...


def build_ssh_cmd(*, host: str, ssh_key: str, remote_command: str, options: list[str] | None = None) -> list[str]:
    cmd = ["ssh", "-i", ssh_key]
    for option in options or []:
        cmd.extend(["-o", option])
    cmd.extend([host, remote_command])
    return cmd


def build_ssh_connectivity_cmd(*, host: str, ssh_key: str, connect_timeout: int = DEFAULT_CONNECT_TIMEOUT) -> list[str]:
    return build_ssh_cmd(
        host=host,
        ssh_key=ssh_key,
        remote_command="echo SSH_OK",
        options=["BatchMode=yes", f"ConnectTimeout={connect_timeout}"],
    )


def build_remote_script_cmd(*, host: str, ssh_key: str, args: list[str]) -> list[str]:
    remote_command = " ".join(["bash", "-s", "--", *[shlex.quote(a) for a in args]])
    return build_ssh_cmd(host=host, ssh_key=ssh_key, remote_command=remote_command)


def build_rsync_cmd(*, source: Path, host: str, ssh_key: str, remote_dir: str, excludes: list[str]) -> list[str]:
    # Trailing slashes: mirror the contents of source into remote_dir.
    src = f"{str(source).rstrip('/')}/"
    dest = f"{host}:{remote_dir.rstrip('/')}/"
    cmd = ["rsync", "-az", "--delete"]
    for pattern in excludes:
        cmd.extend(["--exclude", pattern])
    cmd.extend(["-e", f"ssh -i {shlex.quote(ssh_key)} -o StrictHostKeyChecking=no", src, dest])
    return cmd


@dataclass(frozen=True)
class SshSession:
    """An established, verified route to `user@host` using one key."""

    user: str
    host: str
    ssh_key: str

    @property
    def target(self) -> str:
        return f"{self.user}@{self.host}"

    def probe(self, *, connect_timeout: int = DEFAULT_CONNECT_TIMEOUT) -> None:
        cmd = build_ssh_connectivity_cmd(host=self.target, ssh_key=self.ssh_key, connect_timeout=connect_timeout)
        try:
            result = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True, check=False)
        except OSError as exc:
            raise SshConnectivityError(f"SSH connection to {self.target} failed: {exc}") from exc
        if result.returncode != 0 or "SSH_OK" not in (result.stdout or ""):
            details = (result.stderr or "").strip()
            raise SshConnectivityError(
                f"SSH connection to {self.target} failed" + (f": {details}" if details else "")
            )

    def run_script(self, script: str, *, args: list[str] | None = None, check: bool = True) -> subprocess.CompletedProcess:
        """Run a bash script on the remote host, fed over stdin (`bash -s`)."""
        cmd = build_remote_script_cmd(host=self.target, ssh_key=self.ssh_key, args=list(args or []))
        return run_logged(cmd, input_text=script, check=check)

    def sync_tree(self, *, source: Path, remote_dir: str, excludes: list[str]) -> None:
        logger.info(f"Syncing {source} -> {self.target}:{remote_dir}")
        cmd = build_rsync_cmd(
            source=source,
            host=self.target,
            ssh_key=self.ssh_key,
            remote_dir=remote_dir,
            excludes=excludes,
        )
        run_logged(cmd, cwd=source)
