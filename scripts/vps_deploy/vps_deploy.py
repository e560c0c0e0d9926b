#!/usr/bin/env python3
"""Deploy a containerized app from a Git repository to a single Linux host.

Steps: collect inputs, clone/refresh the repo, detect Compose vs Dockerfile,
verify SSH, provision Docker/Compose/Nginx, rsync the tree, build and run,
write the Nginx reverse-proxy site, and validate.

`--cleanup` skips every deploy step and only tears down what a previous
deploy of the same repository left on the host.

Exit codes: 0 ok, 1 failed command, 2 missing input, 3 non-numeric port,
4 no Dockerfile/compose manifest, 5 SSH unreachable.

Security note: this script shells out to `git`, `ssh` and `rsync`. The access
token is redacted from the console and the log file.
"""

from __future__ import annotations

import argparse
import getpass
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Callable

from scripts.vps_deploy.cleanup import cleanup_remote
from scripts.vps_deploy.deploy_logging import StepLogger, setup_run_logging
from scripts.vps_deploy.deploy_schema import VarsEnum
from scripts.vps_deploy.deploy_type import DeployStrategy, describe_compose_project, detect_strategy
from scripts.vps_deploy.errors import EXIT_GENERIC, EXIT_OK, DeployError
from scripts.vps_deploy.inputs import RunParams, collect_run_params
from scripts.vps_deploy.nginx_proxy import configure_reverse_proxy
from scripts.vps_deploy.provisioning import deploy_application, provision_remote_environment, transfer_project
from scripts.vps_deploy.remote_session import DEFAULT_CONNECT_TIMEOUT, SshSession
from scripts.vps_deploy.shell import format_cmd
from scripts.vps_deploy.source_sync import project_identity, sync_source
from scripts.vps_deploy.validation import probe_public_endpoint, validate_remote


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Deploy a Dockerized Git repository to a remote host behind Nginx")
    parser.add_argument(
        "--cleanup",
        action="store_true",
        help="Remove the containers, remote project dir and Nginx site of a previous deploy instead of deploying",
    )
    parser.add_argument(
        "--repo-url",
        default=None,
        help="Git repository URL. Resolution: CLI -> GIT_REPO_URL env var -> .env.deploy -> prompt",
    )
    parser.add_argument(
        "--branch",
        default=None,
        help="Branch to deploy. Resolution: CLI -> GIT_BRANCH env var -> .env.deploy -> prompt (default: main)",
    )
    parser.add_argument("--remote-user", default=None, help="Remote SSH user (REMOTE_USER)")
    parser.add_argument("--remote-host", default=None, help="Remote host name or IP (REMOTE_HOST)")
    parser.add_argument("--ssh-key", default=None, help="Path to the SSH private key (SSH_KEY_PATH)")
    parser.add_argument("--app-port", default=None, help="Application port inside the container (APP_PORT)")
    parser.add_argument(
        "--workdir",
        default=None,
        help="Directory holding the local checkout and .env.deploy files (default: current directory)",
    )
    parser.add_argument("--log-dir", default=None, help="Where to write the run log (default: current directory)")
    parser.add_argument(
        "--connect-timeout",
        type=int,
        default=DEFAULT_CONNECT_TIMEOUT,
        help=f"SSH connect timeout in seconds for the connectivity check (default: {DEFAULT_CONNECT_TIMEOUT})",
    )
    parser.add_argument(
        "--skip-external-probe",
        action="store_true",
        help="Do not probe http://<host>/ from this machine after deploying",
    )
    return parser


def _cli_values(args: argparse.Namespace) -> dict[str, str | None]:
    # The access token is deliberately not accepted as a flag.
    return {
        VarsEnum.GIT_REPO_URL.value: args.repo_url,
        VarsEnum.GIT_BRANCH.value: args.branch,
        VarsEnum.REMOTE_USER.value: args.remote_user,
        VarsEnum.REMOTE_HOST.value: args.remote_host,
        VarsEnum.SSH_KEY_PATH.value: args.ssh_key,
        VarsEnum.APP_PORT.value: args.app_port,
    }


def run_deploy(
    params: RunParams,
    *,
    workdir: Path,
    log_path: Path,
    steps: StepLogger,
    session_factory: Callable[..., SshSession],
    connect_timeout: int,
    external_probe: bool,
) -> None:
    identity = project_identity(params.repo_url)

    steps.step("Syncing source repository")
    repo_dir = sync_source(repo_url=params.repo_url, pat=params.pat, branch=params.branch, workdir=workdir)

    steps.step("Detecting deployment type")
    strategy = detect_strategy(repo_dir)
    if strategy == DeployStrategy.COMPOSE:
        describe_compose_project(repo_dir, app_port=params.app_port)

    steps.step(f"Testing SSH connection to {params.ssh_target}")
    session = session_factory(user=params.remote_user, host=params.remote_host, ssh_key=params.ssh_key)
    session.probe(connect_timeout=connect_timeout)

    steps.step("Preparing remote environment")
    provision_remote_environment(session, remote_user=params.remote_user)

    steps.step("Transferring project files")
    transfer_project(session, repo_dir=repo_dir, identity=identity, log_file_name=log_path.name)

    steps.step("Deploying application")
    deploy_application(session, strategy=strategy, identity=identity, app_port=params.app_port)

    steps.step("Configuring Nginx reverse proxy")
    configure_reverse_proxy(session, identity=identity, app_port=params.app_port)

    steps.step("Validating deployment")
    healthy = validate_remote(session, app_port=params.app_port)
    if external_probe:
        probe_public_endpoint(params.remote_host)

    if healthy:
        steps.info("Deployment completed successfully.")
    else:
        steps.warning("Remote validation reported problems; see output above.")
        steps.info("Deployment completed successfully (with validation warnings).")


def run_cleanup(
    params: RunParams,
    *,
    steps: StepLogger,
    session_factory: Callable[..., SshSession],
    connect_timeout: int,
) -> None:
    identity = project_identity(params.repo_url)

    steps.step(f"Testing SSH connection to {params.ssh_target}")
    session = session_factory(user=params.remote_user, host=params.remote_host, ssh_key=params.ssh_key)
    session.probe(connect_timeout=connect_timeout)

    steps.step(f"Cleaning up '{identity.repo_name}' on remote host")
    cleanup_remote(session, identity=identity)


def main(
    argv: list[str] | None = None,
    *,
    session_factory: Callable[..., SshSession] = SshSession,
    prompt_fn: Callable[[str], str] = input,
    secret_prompt_fn: Callable[[str], str] = getpass.getpass,
    started_at: datetime | None = None,
) -> int:
    args = build_parser().parse_args(argv)

    workdir = Path(args.workdir).expanduser().resolve() if args.workdir else Path.cwd()
    log_dir = Path(args.log_dir).expanduser().resolve() if args.log_dir else Path.cwd()
    log_path = setup_run_logging(log_dir=log_dir, started_at=started_at or datetime.now())

    steps = StepLogger()
    steps.info(f"Logging to {log_path}")

    try:
        params = collect_run_params(
            cli_values=_cli_values(args),
            workdir=workdir,
            prompt_fn=prompt_fn,
            secret_prompt_fn=secret_prompt_fn,
        )
        if args.cleanup:
            run_cleanup(
                params,
                steps=steps,
                session_factory=session_factory,
                connect_timeout=args.connect_timeout,
            )
        else:
            run_deploy(
                params,
                workdir=workdir,
                log_path=log_path,
                steps=steps,
                session_factory=session_factory,
                connect_timeout=args.connect_timeout,
                external_probe=not args.skip_external_probe,
            )
    except DeployError as exc:
        steps.error(str(exc))
        return exc.exit_code
    except subprocess.CalledProcessError as exc:
        steps.error(
            f"Error at step {steps.step_number}: command exited with code {exc.returncode}: {format_cmd(list(exc.cmd))}"
        )
        return EXIT_GENERIC
    except OSError as exc:
        steps.error(f"Error at step {steps.step_number}: {exc}")
        return EXIT_GENERIC
    except KeyboardInterrupt:
        steps.error("Interrupted. Exiting.")
        return EXIT_GENERIC
    except Exception as exc:
        steps.error(f"Error at step {steps.step_number}: {exc}")
        return EXIT_GENERIC

    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
