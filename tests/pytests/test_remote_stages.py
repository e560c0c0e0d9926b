from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import requests

from scripts.vps_deploy.cleanup import CLEANUP_SCRIPT, cleanup_remote
from scripts.vps_deploy.deploy_type import DeployStrategy
from scripts.vps_deploy.nginx_proxy import build_configure_script, configure_reverse_proxy, render_site_config, site_paths
from scripts.vps_deploy.provisioning import (
    COMPOSE_DEPLOY_SCRIPT,
    CONTAINER_DEPLOY_SCRIPT,
    PROVISION_SCRIPT,
    deploy_application,
    provision_remote_environment,
    transfer_project,
)
from scripts.vps_deploy.source_sync import project_identity
from scripts.vps_deploy.validation import VALIDATE_SCRIPT, probe_public_endpoint, validate_remote

from conftest import FakeSession


IDENTITY = project_identity("https://github.com/acme/My.App.git")


def test_provision_installs_only_missing_tools(fake_session):
    provision_remote_environment(fake_session, remote_user="ubuntu")
    script, args, check = fake_session.scripts[0]
    assert args == ["ubuntu"]
    assert check is True
    assert "if ! command -v docker >/dev/null 2>&1; then" in script
    assert "if ! command -v nginx >/dev/null 2>&1; then" in script
    assert "sudo systemctl enable --now docker || true" in script
    assert 'sudo usermod -aG docker "$REMOTE_USER" || true' in script


def test_transfer_excludes_git_and_run_log(fake_session):
    transfer_project(fake_session, repo_dir=Path("/w/My.App"), identity=IDENTITY, log_file_name="deploy_x.log")
    assert fake_session.transfers == [
        {"source": Path("/w/My.App"), "remote_dir": "~/My.App", "excludes": [".git", "deploy_x.log"]}
    ]


def test_container_deploy_uses_sanitized_names_and_port(fake_session):
    deploy_application(fake_session, strategy=DeployStrategy.DOCKERFILE, identity=IDENTITY, app_port=8080)
    script, args, _ = fake_session.scripts[0]
    assert script == CONTAINER_DEPLOY_SCRIPT
    assert args == ["My.App", "myapp_container", "myapp_image", "8080"]
    # Old container goes before the new one is built.
    assert script.index('docker rm "$CONTAINER_NAME"') < script.index("docker build")
    assert '-p "$APP_PORT:$APP_PORT"' in script
    assert "--restart always" in script


def test_compose_deploy_brings_stack_down_then_up(fake_session):
    deploy_application(fake_session, strategy=DeployStrategy.COMPOSE, identity=IDENTITY, app_port=8080)
    script, args, _ = fake_session.scripts[0]
    assert script == COMPOSE_DEPLOY_SCRIPT
    assert args == ["My.App"]
    assert script.index("docker-compose down || true") < script.index("docker-compose up -d --build")


def test_render_site_config_for_port_8080():
    expected = (
        "server {\n"
        "    listen 80;\n"
        "    server_name _;\n"
        "    location / {\n"
        "        proxy_pass http://127.0.0.1:8080;\n"
        "        proxy_set_header Host $host;\n"
        "        proxy_set_header X-Real-IP $remote_addr;\n"
        "        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;\n"
        "    }\n"
        "}\n"
    )
    assert render_site_config(8080) == expected


def test_site_paths_use_sanitized_identifier():
    assert site_paths(IDENTITY) == (
        "/etc/nginx/sites-available/myapp.conf",
        "/etc/nginx/sites-enabled/myapp.conf",
    )


def test_configure_script_validates_before_reload():
    script = build_configure_script(3000)
    assert script.startswith("set -e\n")
    assert "proxy_pass http://127.0.0.1:3000;" in script
    assert "APP_PORT_PLACEHOLDER" not in script
    assert 'sudo ln -sf "$NGINX_CONF_PATH" "$NGINX_LINK_PATH"' in script
    assert script.index("sudo nginx -t") < script.index("sudo systemctl reload nginx")


def test_configure_reverse_proxy_is_idempotent_per_identifier(fake_session):
    configure_reverse_proxy(fake_session, identity=IDENTITY, app_port=8080)
    configure_reverse_proxy(fake_session, identity=IDENTITY, app_port=8080)
    first, second = fake_session.scripts
    assert first == second
    assert first[1] == ["/etc/nginx/sites-available/myapp.conf", "/etc/nginx/sites-enabled/myapp.conf"]


def test_validate_remote_never_fails():
    session = FakeSession(returncode=1)
    assert validate_remote(session, app_port=8080) is False
    script, args, check = session.scripts[0]
    assert script == VALIDATE_SCRIPT
    assert args == ["8080"]
    assert check is False


def test_validate_script_probes_app_and_proxy():
    assert 'curl -s -o /dev/null -w "HTTP %{http_code}\\n" "http://127.0.0.1:${APP_PORT}"' in VALIDATE_SCRIPT
    assert "http://127.0.0.1:80" in VALIDATE_SCRIPT
    assert "curl not available; skipping HTTP checks" in VALIDATE_SCRIPT


def test_probe_public_endpoint_returns_status():
    with patch("requests.get") as mock_get:
        mock_get.return_value.status_code = 200
        assert probe_public_endpoint("203.0.113.10") == 200
        assert mock_get.call_args[0][0] == "http://203.0.113.10/"


def test_probe_public_endpoint_swallows_network_errors():
    with patch("requests.get", side_effect=requests.ConnectionError("refused")):
        assert probe_public_endpoint("203.0.113.10") is None


def test_cleanup_is_best_effort(fake_session):
    cleanup_remote(fake_session, identity=IDENTITY)
    script, args, check = fake_session.scripts[0]
    assert script == CLEANUP_SCRIPT
    assert check is False
    assert args == [
        "My.App",
        "myapp_container",
        "/etc/nginx/sites-available/myapp.conf",
        "/etc/nginx/sites-enabled/myapp.conf",
    ]
    assert "set -e" not in script
    for line in script.splitlines():
        if line.strip().startswith("sudo "):
            assert line.rstrip().endswith("|| true"), line


def test_cleanup_nonzero_exit_is_only_logged():
    session = FakeSession(returncode=255)
    cleanup_remote(session, identity=IDENTITY)
    assert len(session.scripts) == 1
