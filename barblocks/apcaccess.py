"""Client for the apcupsd network information server."""

from __future__ import annotations

import socket
from collections.abc import Iterator, Mapping

from barblocks.core import BlockError

_MAX_FRAME = 1 << 16


def encode_frame(msg: bytes) -> bytes:
    """Prefix ``msg`` with its length as a two-byte big-endian integer."""
    if len(msg) >= _MAX_FRAME:
        raise BlockError(
            "apcaccess",
            "msg is too long, it must be less than 2^16 characters long",
        )
    return len(msg).to_bytes(2, "big") + msg


def parse_status(text: str) -> dict[str, str]:
    """Turn ``KEY : value`` lines into a dictionary with trimmed keys and values."""
    status: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            raise BlockError("apcaccess", f"malformed status line {line!r}")
        status[key.strip()] = value.strip()
    return status


def _resolve_ipv4(addr: str) -> tuple[str, int]:
    host, sep, port_text = addr.rpartition(":")
    if not sep or not host:
        raise BlockError("apcaccess", f"invalid address {addr!r}")
    try:
        port = int(port_text)
    except ValueError:
        raise BlockError("apcaccess", f"invalid port in address {addr!r}") from None
    if not 0 <= port <= 0xFFFF:
        raise BlockError("apcaccess", f"invalid port in address {addr!r}")
    try:
        infos = socket.getaddrinfo(host.strip("[]"), port, socket.AF_INET, socket.SOCK_STREAM)
    except socket.gaierror as exc:
        raise BlockError("apcaccess", f"could not resolve {addr!r}") from exc
    if not infos:
        raise BlockError("apcaccess", f"no IPv4 address for {addr!r}")
    ip, resolved_port = infos[0][4][:2]
    return ip, resolved_port


def _recv_exact(sock: socket.socket, size: int) -> bytes:
    buf = bytearray()
    while len(buf) < size:
        chunk = sock.recv(size - len(buf))
        if not chunk:
            raise ConnectionError("connection closed before the reply was complete")
        buf += chunk
    return bytes(buf)


def _read_frames(sock: socket.socket) -> Iterator[str]:
    """Yield decoded frames until the zero-length terminator; undecodable frames are skipped."""
    while True:
        size = int.from_bytes(_recv_exact(sock, 2), "big")
        if size == 0:
            return
        payload = _recv_exact(sock, size)
        try:
            yield payload.decode("utf-8")
        except UnicodeDecodeError:
            continue


class ApcAccess:
    """Queries an apcupsd daemon over TCP."""

    def __init__(self, addr: str, timeout_seconds: float) -> None:
        self.address = _resolve_ipv4(addr)
        self.timeout_seconds = timeout_seconds

    def get_status(self) -> dict[str, str]:
        """Ask the daemon for its status table."""
        with socket.create_connection(self.address, timeout=self.timeout_seconds) as sock:
            sock.sendall(encode_frame(b"status"))
            text = "".join(_read_frames(sock))
        return parse_status(text)

    def is_available(self, status: Mapping[str, str] | None) -> bool:
        """True when a status was obtained and the UPS link is not lost."""
        if status is None:
            return False
        value = status.get("STATUS")
        return value is not None and "COMMLOST" not in value