"""
Ordered route table for the notes front controller.

A route is a `(matcher, handler)` pair. The router evaluates matchers in
declaration order and the first one that accepts the request wins. Matchers
return the keyword arguments for the handler, or `None` to decline.
"""

from dataclasses import dataclass
from typing import Any, Callable

Params = dict[str, Any]
Matcher = Callable[[str, str], Params | None]

FRONT_CONTROLLER_SEGMENT = "/index.py"


def normalize_path(path: str, front_controller: str = FRONT_CONTROLLER_SEGMENT) -> str:
    """Strip the front-controller segment and default an empty path to `/`."""
    path = path.replace(front_controller, "")
    return path or "/"


def parse_int(text: str) -> int | None:
    """Parse a non-negative decimal id, rejecting anything but ASCII digits."""
    if text and text.isascii() and text.isdigit():
        return int(text)
    return None


def exact(path: str, method: str | None = None) -> Matcher:
    """Match one literal path, optionally restricted to one HTTP method."""

    def matcher(request_path: str, request_method: str) -> Params | None:
        if request_path != path:
            return None
        if method is not None and request_method.upper() != method:
            return None
        return {}

    return matcher


def int_segment(prefix: str, name: str) -> Matcher:
    """Match `<prefix><integer>` and hand the parsed integer over as `name`."""

    def matcher(request_path: str, request_method: str) -> Params | None:
        if not request_path.startswith(prefix):
            return None
        value = parse_int(request_path[len(prefix):])
        if value is None:
            return None
        return {name: value}

    return matcher


@dataclass(frozen=True)
class Route:
    name: str
    matcher: Matcher
    handler: Callable[..., Any]


class Router:
    def __init__(self, routes: list[Route]):
        self.routes = list(routes)

    def match(self, path: str, method: str) -> tuple[Route, Params] | None:
        for route in self.routes:
            params = route.matcher(path, method)
            if params is not None:
                return route, params
        return None
