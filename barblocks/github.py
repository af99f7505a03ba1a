"""Unread notifications of a GitHub account, counted by reason."""

from __future__ import annotations

import json
import re
import urllib.error
import urllib.request
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from typing import Any

from barblocks.core import BlockError, State

GITHUB_TOKEN_ENV = "I3RS_GITHUB_TOKEN"
DEFAULT_API_SERVER = "https://api.github.com"
_BLOCK = "github"
_TIMEOUT_SECONDS = 3.0

_LINKS_REGEX = re.compile(
    r'(<(?P<url>http(s)?://[^>\s]+)>; rel="(?P<rel>[A-Za-z0-9_]+))+'
)

Fetch = Callable[[str, Mapping[str, str]], tuple[Any, Sequence[str]]]


def _http_get_json(url: str, headers: Mapping[str, str]) -> tuple[Any, list[str]]:
    """GET ``url`` and return the decoded JSON body and the headers as ``Name: value`` lines."""
    request = urllib.request.Request(url, headers=dict(headers))
    try:
        with urllib.request.urlopen(request, timeout=_TIMEOUT_SECONDS) as response:
            body = response.read()
            header_lines = [f"{name}: {value}" for name, value in response.headers.items()]
    except (OSError, urllib.error.URLError) as exc:
        raise BlockError(_BLOCK, f"Failed to fetch {url}") from exc
    try:
        content = json.loads(body)
    except ValueError as exc:
        raise BlockError(_BLOCK, "Failed to decode JSON") from exc
    return content, header_lines


def parse_links_header(raw_links: str) -> dict[str, str]:
    """Map each ``rel`` of an HTTP ``Link`` header to its URL."""
    links: dict[str, str] = {}
    for match in _LINKS_REGEX.finditer(raw_links):
        url, rel = match.group("url"), match.group("rel")
        if url is not None and rel is not None:
            links[rel] = url
    return links


def _reasons(content: Any) -> list[str]:
    if not isinstance(content, list):
        raise BlockError(_BLOCK, "Failed to decode notifications")
    reasons = []
    for item in content:
        if not isinstance(item, Mapping) or not isinstance(item.get("reason"), str):
            raise BlockError(_BLOCK, "Failed to decode notifications")
        reasons.append(item["reason"])
    return reasons


def _next_page(headers: Iterable[str]) -> str:
    for header in headers:
        if header.startswith("Link:"):
            url = parse_links_header(header).get("next")
            if url is not None:
                return url
    return ""


class Notifications:
    """Iterates over the reasons of all unread notifications, following pagination."""

    def __init__(self, api_server: str, token: str, fetch: Fetch | None = None) -> None:
        self.api_server = api_server
        self.token = token
        self._fetch = fetch if fetch is not None else _http_get_json

    def __iter__(self) -> Iterator[str]:
        url = f"{self.api_server}/notifications"
        headers = {"Authorization": f"Bearer {self.token}"}
        while url:
            content, response_headers = self._fetch(url, headers)
            url = _next_page(response_headers)
            reasons = _reasons(content)
            if not reasons:
                return
            yield from reasons


def aggregate(notifications: Iterable[str]) -> dict[str, int]:
    """Count notifications per reason, plus a ``total``."""
    counts = {"total": 0}
    for reason in notifications:
        counts[reason] = counts.get(reason, 0) + 1
        counts["total"] += 1
    return counts


def get_state(
    critical: Sequence[str] | None,
    warning: Sequence[str] | None,
    info: Sequence[str] | None,
    good: Sequence[str] | None,
    agg: Mapping[str, int],
) -> State:
    """State of the first list, from critical down to good, naming a reason with a non-zero count."""
    for reasons, state in (
        (critical, State.CRITICAL),
        (warning, State.WARNING),
        (info, State.INFO),
        (good, State.GOOD),
    ):
        if reasons is None:
            continue
        if any(key in reasons and count > 0 for key, count in agg.items()):
            return state
    return State.IDLE