"""Container counts from the Docker engine's local API socket."""

from __future__ import annotations

import http.client
import json
import os
import socket
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from barblocks.core import BlockError

DEFAULT_SOCKET_PATH = "/var/run/docker.sock"
_TIMEOUT_SECONDS = 3.0
_PARSE_FAILED = "Failed to parse JSON response."

_FIELDS = {
    "total": "Containers",
    "running": "ContainersRunning",
    "stopped": "ContainersStopped",
    "paused": "ContainersPaused",
    "images": "Images",
}


@dataclass(frozen=True)
class DockerStatus:
    """Container and image counts reported by the engine."""

    total: int
    running: int
    stopped: int
    paused: int
    images: int


def parse_docker_info(data: Any) -> DockerStatus:
    """Build a :class:`DockerStatus` from the engine's ``/info`` reply (decoded or raw JSON)."""
    if isinstance(data, (str, bytes, bytearray)):
        try:
            data = json.loads(data)
        except ValueError as exc:
            raise BlockError("docker", _PARSE_FAILED) from exc
    if not isinstance(data, Mapping):
        raise BlockError("docker", _PARSE_FAILED)
    counts = {}
    for attr, key in _FIELDS.items():
        value = data.get(key)
        if isinstance(value, bool) or not isinstance(value, int):
            raise BlockError("docker", _PARSE_FAILED)
        counts[attr] = value
    return DockerStatus(**counts)


class _UnixHTTPConnection(http.client.HTTPConnection):
    def __init__(self, path: str, timeout: float) -> None:
        super().__init__("localhost", timeout=timeout)
        self._path = path

    def connect(self) -> None:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(self.timeout)
        try:
            sock.connect(self._path)
        except OSError:
            sock.close()
            raise
        self.sock = sock


def fetch_docker_info(socket_path: str = DEFAULT_SOCKET_PATH) -> DockerStatus:
    """Query ``/info`` over the engine's Unix socket; ``~`` and variables in the path are expanded."""
    path = os.path.expandvars(os.path.expanduser(socket_path))
    conn = _UnixHTTPConnection(path, _TIMEOUT_SECONDS)
    try:
        conn.request("GET", "/info")
        response = conn.getresponse()
        body = response.read()
    except (OSError, http.client.HTTPException) as exc:
        raise BlockError("docker", f"Failed to query docker socket {path}") from exc
    finally:
        conn.close()
    if response.status != 200:
        raise BlockError("docker", f"Docker API answered with status {response.status}")
    return parse_docker_info(body)