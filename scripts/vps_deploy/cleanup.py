"""Best-effort teardown of everything a deploy put on the remote host."""

from __future__ import annotations

from scripts.vps_deploy.deploy_logging import logger
from scripts.vps_deploy.nginx_proxy import site_paths
from scripts.vps_deploy.remote_session import RemoteSession
from scripts.vps_deploy.source_sync import ProjectIdentity


# $1 = repo name, $2 = container, $3 = conf path, $4 = link path.
# No `set -e`: every step must tolerate "nothing to remove".
CLEANUP_SCRIPT = """\
REPO_NAME="$1"
CONTAINER_NAME="$2"
NGINX_CONF_PATH="$3"
NGINX_LINK_PATH="$4"
if cd "$HOME/$REPO_NAME" 2>/dev/null; then
  sudo docker-compose down || true
  cd "$HOME"
fi
sudo docker stop "$CONTAINER_NAME" || true
sudo docker rm "$CONTAINER_NAME" || true
sudo rm -rf "$HOME/$REPO_NAME" || true
sudo rm -f "$NGINX_CONF_PATH" || true
sudo rm -f "$NGINX_LINK_PATH" || true
sudo systemctl reload nginx || true
exit 0
"""


def cleanup_remote(session: RemoteSession, *, identity: ProjectIdentity) -> None:
    logger.info("Cleanup mode enabled. Removing deployed resources on remote host...")
    conf_path, link_path = site_paths(identity)
    result = session.run_script(
        CLEANUP_SCRIPT,
        args=[identity.repo_name, identity.container_name, conf_path, link_path],
        check=False,
    )
    if result.returncode != 0:
        logger.warning(f"Cleanup script exited with code {result.returncode}; remaining resources may need manual removal.")
    logger.info("Cleanup on remote host finished.")
