"""Route matching and status labels for HTTP metrics."""

import re
from typing import Iterable, Optional, Pattern

# {param}, {param:converter} or :param
_PARAM_PATTERN = re.compile(r"\{(?P<brace>[^}/]+)\}|:(?P<colon>\w+)")


def route_path_to_regex(route_path: str) -> Pattern[str]:
    """Compile a route template such as ``/users/{id}`` or ``/users/:id``.

    Each parameter matches one path segment. ``{name:path}`` matches the
    remainder of the path, slashes included.
    """
    parts: list[str] = []
    last = 0
    for match in _PARAM_PATTERN.finditer(route_path):
        parts.append(re.escape(route_path[last : match.start()]))
        brace = match.group("brace")
        parts.append(".+" if brace and brace.endswith(":path") else "[^/]+")
        last = match.end()
    parts.append(re.escape(route_path[last:]))
    return re.compile("^" + "".join(parts) + "$")


def sanitize_path(url: str) -> str:
    """Strip the fragment and query string from a request path."""
    return url.split("#", 1)[0].split("?", 1)[0]


def get_route_pattern(url: str, route_paths: Iterable[str]) -> Optional[str]:
    """Return the first route template matching ``url``, or None."""
    path = sanitize_path(url)
    for route_path in route_paths:
        if route_path_to_regex(route_path).match(path):
            return route_path
    return None


def is_known_route(url: str, route_paths: Iterable[str]) -> bool:
    return get_route_pattern(url, route_paths) is not None


def convert_status_to_status_label(status_code: int) -> str:
    """Collapse a status code into ``2xx``..``5xx``, or ``unknown``."""
    if 200 <= status_code < 300:
        return "2xx"
    if 300 <= status_code < 400:
        return "3xx"
    if 400 <= status_code < 500:
        return "4xx"
    if 500 <= status_code < 600:
        return "5xx"
    return "unknown"
