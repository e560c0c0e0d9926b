"""Pick the deployment strategy from the files in the checkout."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from scripts.vps_deploy import compose_helpers
from scripts.vps_deploy.deploy_logging import logger
from scripts.vps_deploy.errors import MissingDescriptorError


class DeployStrategy(str, Enum):
    COMPOSE = "compose"
    DOCKERFILE = "dockerfile"


def detect_strategy(repo_dir: Path) -> DeployStrategy:
    """Compose manifest wins over a Dockerfile when both exist."""
    if compose_helpers.find_compose_file(repo_dir) is not None:
        logger.info("docker-compose file found. Using docker-compose deployment.")
        return DeployStrategy.COMPOSE
    if (repo_dir / "Dockerfile").is_file():
        logger.info("Dockerfile found. Using docker build/run deployment.")
        return DeployStrategy.DOCKERFILE
    raise MissingDescriptorError(f"No Dockerfile or docker-compose.yml found in {repo_dir}")


def describe_compose_project(repo_dir: Path, *, app_port: int) -> None:
    """Log the compose services and warn if none publishes the app port.

    Diagnostic only: a manifest that fails to parse here is left for
    docker-compose itself to reject on the remote host.
    """
    try:
        config = compose_helpers.load_docker_compose_config(repo_dir)
    except (OSError, RuntimeError) as exc:
        logger.warning(f"Could not inspect compose manifest: {exc}")
        return

    names = compose_helpers.get_service_names(config)
    logger.info(f"Compose services: {', '.join(names) if names else '(none)'}")
    if app_port not in compose_helpers.published_ports(config):
        logger.warning(
            f"No compose service publishes port {app_port}; the Nginx proxy to 127.0.0.1:{app_port} may not reach the app."
        )
