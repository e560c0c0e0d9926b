from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest


def pytest_configure() -> None:
    # Allow tests to import `scripts.*` as a package.
    repo_root = Path(__file__).parents[2]
    sys.path.append(str(repo_root))


class FakeSession:
    """Records remote scripts and transfers instead of running ssh/rsync."""

    def __init__(self, *, probe_error: Exception | None = None, returncode: int = 0, **_: object):
        self.probe_error = probe_error
        self.returncode = returncode
        self.probed = False
        self.scripts: list[tuple[str, list[str], bool]] = []
        self.transfers: list[dict] = []

    def probe(self, *, connect_timeout: int = 8) -> None:
        self.probed = True
        if self.probe_error is not None:
            raise self.probe_error

    def run_script(self, script: str, *, args: list[str] | None = None, check: bool = True) -> subprocess.CompletedProcess:
        self.scripts.append((script, list(args or []), check))
        return subprocess.CompletedProcess(args=["ssh"], returncode=self.returncode, stdout="")

    def sync_tree(self, *, source: Path, remote_dir: str, excludes: list[str]) -> None:
        self.transfers.append({"source": source, "remote_dir": remote_dir, "excludes": excludes})


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture(autouse=True)
def detach_run_log_handlers():
    yield
    from scripts.vps_deploy.deploy_logging import logger

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
