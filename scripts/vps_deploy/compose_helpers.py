import os
import re
import yaml
from pathlib import Path
from typing import Any, Dict, Optional

COMPOSE_FILE_NAMES = ("docker-compose.yml", "docker-compose.yaml")

# Regex to match ${VAR:-default} or ${VAR}
INTERPOLATION_PATTERN = re.compile(r'\$\{([^}:]+)(?::-([^}]*))?\}')

def interpolate_value(value: str) -> str:
    """
    Interpolates environment variables in a string.
    Supports ${VAR} and ${VAR:-default}.
    """
    if not isinstance(value, str):
        return value

    def replace_match(match):
        env_val = os.getenv(match.group(1))
        if env_val is not None:
            return env_val
        default_value = match.group(2)
        return default_value if default_value is not None else ""

    return INTERPOLATION_PATTERN.sub(replace_match, value)

def interpolate_dict(data: Any) -> Any:
    """Recursively interpolates strings in a dictionary or list."""
    if isinstance(data, dict):
        return {k: interpolate_dict(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [interpolate_dict(v) for v in data]
    elif isinstance(data, str):
        return interpolate_value(data)
    else:
        return data

def find_compose_file(cwd: Path) -> Optional[Path]:
    """Return the first compose manifest present in `cwd` (.yml before .yaml)."""
    for name in COMPOSE_FILE_NAMES:
        candidate = cwd / name
        if candidate.is_file():
            return candidate
    return None

def load_docker_compose_config(cwd: Path) -> Dict[str, Any]:
    """
    Parses the compose manifest using PyYAML and interpolates variables.
    Returns the parsed configuration dictionary.
    """
    compose_path = find_compose_file(cwd)
    if compose_path is None:
        raise FileNotFoundError(f"docker-compose.yml/.yaml not found in {cwd}")

    try:
        with open(compose_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        raise RuntimeError(f"Failed to parse {compose_path.name}: {e}") from e

    if not isinstance(raw_config, dict):
        raise RuntimeError(f"{compose_path.name} is not a mapping")
    return interpolate_dict(raw_config)

def get_service_names(compose_config: Dict[str, Any]) -> list[str]:
    services = compose_config.get("services") or {}
    if not isinstance(services, dict):
        return []
    return [str(name) for name in services]

def get_ports(service_config: Dict[str, Any]) -> list:
    """Get the exposed ports for a service."""
    # PyYAML parses "80:80" as string usually, but "80" might be int.
    ports = service_config.get("ports", [])
    if not isinstance(ports, list):
        # None or a malformed scalar such as `ports: 8080`.
        return []
    return ports

def published_port(port_entry: Any) -> Optional[int]:
    """Host-side port of a Compose port mapping, if it is a single fixed port.

    Short syntax: "8080", "8080:80", "127.0.0.1:8080:80", "8080:80/tcp".
    Long syntax: {published: 8080, target: 80}.
    """
    if isinstance(port_entry, dict):
        value = port_entry.get("published")
        if value is None:
            return None
        value = str(value)
    elif isinstance(port_entry, (int, str)):
        parts = str(port_entry).split("/", 1)[0].split(":")
        # "8080" publishes the same port; otherwise the host port is second to last.
        value = parts[0] if len(parts) == 1 else parts[-2]
    else:
        return None

    value = value.strip()
    if not value.isdigit():
        return None
    return int(value)

def published_ports(compose_config: Dict[str, Any]) -> set[int]:
    services = compose_config.get("services") or {}
    out: set[int] = set()
    if not isinstance(services, dict):
        return out
    for service_config in services.values():
        if not isinstance(service_config, dict):
            continue
        for entry in get_ports(service_config):
            port = published_port(entry)
            if port is not None:
                out.add(port)
    return out
