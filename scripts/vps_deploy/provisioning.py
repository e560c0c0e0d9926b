"""Remote host preparation, file transfer and container deployment."""

from __future__ import annotations

from pathlib import Path

from scripts.vps_deploy.deploy_logging import logger
from scripts.vps_deploy.deploy_type import DeployStrategy
from scripts.vps_deploy.remote_session import RemoteSession
from scripts.vps_deploy.source_sync import ProjectIdentity


# $1 = remote user. Each install only runs when its command is missing.
PROVISION_SCRIPT = """\
set -e
REMOTE_USER="$1"
echo "Updating apt and installing prerequisites if missing..."
if ! command -v docker >/dev/null 2>&1; then
  sudo apt-get update -y
  sudo apt-get install -y docker.io
fi
if ! command -v docker-compose >/dev/null 2>&1; then
  sudo apt-get install -y docker-compose
fi
if ! command -v nginx >/dev/null 2>&1; then
  sudo apt-get install -y nginx
fi
sudo systemctl enable --now docker || true
sudo systemctl enable --now nginx || true
sudo usermod -aG docker "$REMOTE_USER" || true
docker --version || true
docker-compose --version || true
nginx -v 2>&1 || true
"""

# $1 = repo name
COMPOSE_DEPLOY_SCRIPT = """\
set -e
REPO_NAME="$1"
cd "$HOME/$REPO_NAME"
echo "Using docker-compose for deployment"
sudo docker-compose down || true
sudo docker-compose up -d --build
"""

# $1 = repo name, $2 = container, $3 = image, $4 = app port
CONTAINER_DEPLOY_SCRIPT = """\
set -e
REPO_NAME="$1"
CONTAINER_NAME="$2"
IMAGE_NAME="$3"
APP_PORT="$4"
cd "$HOME/$REPO_NAME"
sudo docker stop "$CONTAINER_NAME" || true
sudo docker rm "$CONTAINER_NAME" || true
sudo docker build -t "$IMAGE_NAME" .
sudo docker run -d -p "$APP_PORT:$APP_PORT" --name "$CONTAINER_NAME" --restart always "$IMAGE_NAME"
echo "Container deployed and accessible on port $APP_PORT"
"""


def remote_project_dir(identity: ProjectIdentity) -> str:
    return f"~/{identity.repo_name}"


def transfer_excludes(log_file_name: str) -> list[str]:
    return [".git", log_file_name]


def provision_remote_environment(session: RemoteSession, *, remote_user: str) -> None:
    logger.info("Preparing remote server environment...")
    session.run_script(PROVISION_SCRIPT, args=[remote_user])


def transfer_project(session: RemoteSession, *, repo_dir: Path, identity: ProjectIdentity, log_file_name: str) -> None:
    logger.info("Transferring project files to remote server (rsync)...")
    session.sync_tree(
        source=repo_dir,
        remote_dir=remote_project_dir(identity),
        excludes=transfer_excludes(log_file_name),
    )


def deploy_script_for(strategy: DeployStrategy, *, identity: ProjectIdentity, app_port: int) -> tuple[str, list[str]]:
    if strategy == DeployStrategy.COMPOSE:
        return COMPOSE_DEPLOY_SCRIPT, [identity.repo_name]
    return CONTAINER_DEPLOY_SCRIPT, [
        identity.repo_name,
        identity.container_name,
        identity.image_name,
        str(app_port),
    ]


def deploy_application(
    session: RemoteSession,
    *,
    strategy: DeployStrategy,
    identity: ProjectIdentity,
    app_port: int,
) -> None:
    logger.info(f"Deploying application on remote host ({strategy.value})...")
    script, args = deploy_script_for(strategy, identity=identity, app_port=app_port)
    session.run_script(script, args=args)
