"""Advisory post-deploy checks. Nothing here fails the run."""

from __future__ import annotations

import requests

from scripts.vps_deploy.deploy_logging import logger
from scripts.vps_deploy.remote_session import RemoteSession


# $1 = app port
VALIDATE_SCRIPT = """\
APP_PORT="$1"
echo "Docker service status:"
sudo systemctl is-active --quiet docker && echo "docker: active" || echo "docker: inactive"
echo ""
echo "Running containers:"
sudo docker ps
echo ""
echo "Nginx status:"
sudo systemctl is-active --quiet nginx && echo "nginx: active" || echo "nginx: inactive"
echo ""
if command -v curl >/dev/null 2>&1; then
  echo "Testing container on port ${APP_PORT}:"
  curl -s -o /dev/null -w "HTTP %{http_code}\\n" "http://127.0.0.1:${APP_PORT}" || echo "Failed to reach container"
  echo ""
  echo "Testing Nginx proxy on port 80:"
  curl -s -o /dev/null -w "HTTP %{http_code}\\n" http://127.0.0.1:80 || echo "Failed to reach Nginx proxy"
else
  echo "curl not available; skipping HTTP checks"
fi
"""

EXTERNAL_PROBE_TIMEOUT = 10


def validate_remote(session: RemoteSession, *, app_port: int) -> bool:
    logger.info("Validating deployment on remote host...")
    result = session.run_script(VALIDATE_SCRIPT, args=[str(app_port)], check=False)
    if result.returncode != 0:
        logger.warning(f"Remote validation exited with code {result.returncode}; continuing.")
        return False
    return True


def probe_public_endpoint(host: str, *, timeout: int = EXTERNAL_PROBE_TIMEOUT) -> int | None:
    """GET http://<host>/ from this machine; returns the status code or None."""
    url = f"http://{host}/"
    try:
        response = requests.get(url, timeout=timeout, allow_redirects=False)
    except requests.RequestException as exc:
        logger.warning(f"External probe of {url} failed: {exc}")
        return None
    logger.info(f"External probe of {url}: HTTP {response.status_code}")
    return int(response.status_code)
