"""Failure classes with the exit codes callers rely on."""

from __future__ import annotations


EXIT_OK = 0
EXIT_GENERIC = 1
EXIT_MISSING_INPUT = 2
EXIT_INVALID_PORT = 3
EXIT_MISSING_DESCRIPTOR = 4
EXIT_SSH_UNREACHABLE = 5


class DeployError(RuntimeError):
    exit_code = EXIT_GENERIC


class MissingInputError(DeployError):
    exit_code = EXIT_MISSING_INPUT

    def __init__(self, missing: list[str]):
        super().__init__("Missing required parameters: " + ", ".join(missing))
        self.missing = missing


class InvalidPortError(DeployError):
    exit_code = EXIT_INVALID_PORT

    def __init__(self, value: str):
        super().__init__(f"Application port must be a number, got {value!r}")
        self.value = value


class MissingDescriptorError(DeployError):
    exit_code = EXIT_MISSING_DESCRIPTOR


class SshConnectivityError(DeployError):
    exit_code = EXIT_SSH_UNREACHABLE


class InvalidProjectNameError(DeployError):
    """The repository URL does not yield a usable directory/container name."""

    def __init__(self, repo_url: str, repo_name: str):
        super().__init__(f"Cannot derive a project name from repository URL {repo_url!r} (got {repo_name!r})")
        self.repo_url = repo_url
        self.repo_name = repo_name
