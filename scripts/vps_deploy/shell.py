"""Local process execution with output mirrored into the run log."""

from __future__ import annotations

import shlex
import subprocess
from pathlib import Path

from scripts.vps_deploy.deploy_logging import log_output, logger


def format_cmd(cmd: list[str]) -> str:
    return " ".join(shlex.quote(part) for part in cmd)


def run_logged(
    cmd: list[str],
    *,
    cwd: Path | None = None,
    input_text: str | None = None,
    check: bool = True,
    echo: bool = True,
) -> subprocess.CompletedProcess:
    """Run a command, capture its output and log it.

    Every logged line goes through the redacting handlers, so commands that
    carry a credential can still be echoed safely.
    """
    if echo:
        logger.info(f"$ {format_cmd(cmd)}")

    result = subprocess.run(
        cmd,
        cwd=str(cwd) if cwd is not None else None,
        input=input_text,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        check=False,
    )
    log_output(result.stdout)

    if check and result.returncode != 0:
        raise subprocess.CalledProcessError(result.returncode, cmd, output=result.stdout)
    return result
