"""Nginx reverse-proxy site for the deployed app."""

from __future__ import annotations

from scripts.vps_deploy.deploy_logging import logger
from scripts.vps_deploy.remote_session import RemoteSession
from scripts.vps_deploy.source_sync import ProjectIdentity


NGINX_SITES_AVAILABLE = "/etc/nginx/sites-available"
NGINX_SITES_ENABLED = "/etc/nginx/sites-enabled"

APP_PORT_PLACEHOLDER = "APP_PORT_PLACEHOLDER"

NGINX_SITE_TEMPLATE = """\
server {
    listen 80;
    server_name _;
    location / {
        proxy_pass http://127.0.0.1:APP_PORT_PLACEHOLDER;
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
    }
}
"""

# $1 = conf path, $2 = link path. set -e keeps a failing `nginx -t` from reloading.
CONFIGURE_SCRIPT_TEMPLATE = """\
set -e
NGINX_CONF_PATH="$1"
NGINX_LINK_PATH="$2"
sudo tee "$NGINX_CONF_PATH" >/dev/null <<'NGINX_CONF'
{site}NGINX_CONF
sudo ln -sf "$NGINX_CONF_PATH" "$NGINX_LINK_PATH"
sudo nginx -t
sudo systemctl reload nginx
"""


def render_site_config(app_port: int) -> str:
    return NGINX_SITE_TEMPLATE.replace(APP_PORT_PLACEHOLDER, str(app_port))


def site_paths(identity: ProjectIdentity) -> tuple[str, str]:
    return (
        f"{NGINX_SITES_AVAILABLE}/{identity.nginx_conf_name}",
        f"{NGINX_SITES_ENABLED}/{identity.nginx_conf_name}",
    )


def build_configure_script(app_port: int) -> str:
    # str.replace, not str.format: the nginx config itself is full of braces.
    return CONFIGURE_SCRIPT_TEMPLATE.replace("{site}", render_site_config(app_port))


def configure_reverse_proxy(session: RemoteSession, *, identity: ProjectIdentity, app_port: int) -> None:
    logger.info("Configuring Nginx reverse proxy on remote host...")
    conf_path, link_path = site_paths(identity)
    session.run_script(build_configure_script(app_port), args=[conf_path, link_path])
    logger.info(f"Nginx site {conf_path} proxies :80 -> 127.0.0.1:{app_port}")
