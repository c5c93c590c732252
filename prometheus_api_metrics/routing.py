# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Route classification for metric labels.

Collapses concrete request paths into stable route patterns so that the
``route`` label keeps a bounded cardinality. Routing metadata is gathered
once per request into a RouteInfo, and classified by the first
RouteExtractor whose routing convention applies:

1. ApiDescriptorExtractor: an upstream API description layer stored the
   operation in ``scope["api_descriptor"]``; its ``api_path`` is used verbatim.
2. MountedRouteExtractor: a mounted application (non-empty ``root_path``)
   resolved a route; the label is ``root_path + route.path``.
3. RawPathExtractor: no base path; the raw path, or the matched route
   pattern when the router resolved one.
4. BasePathExtractor: only a base path is known.

When no route pattern was resolved, concrete path parameter values in the
raw path are replaced by ``:name`` placeholders. Unmatched requests ending in
404 get no label at all.
"""

import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

from starlette.requests import Request

API_DESCRIPTOR_SCOPE_KEY = "api_descriptor"

# Matches Starlette path parameters like {task_id} or {path:path}
ROUTE_PARAM_PATTERN = re.compile(r"\{([^{}:]+)(?::[^{}]*)?\}")


def normalize_route_template(template: str) -> str:
    """Convert a Starlette route template to ``:name`` placeholders.

    Examples:
        >>> normalize_route_template("/api/tasks/{task_id}")
        '/api/tasks/:task_id'
        >>> normalize_route_template("/files/{file_path:path}")
        '/files/:file_path'
    """
    return ROUTE_PARAM_PATTERN.sub(lambda match: ":" + match.group(1).strip(), template)


@dataclass(frozen=True)
class RouteInfo:
    """Routing metadata of a completed request."""

    url: str = ""
    base_path: str = ""
    route_path: Optional[str] = None
    descriptor_path: Optional[str] = None
    path_params: Dict[str, Any] = field(default_factory=dict)
    status_code: int = 200

    @property
    def has_route(self) -> bool:
        return self.route_path is not None or self.descriptor_path is not None

    @classmethod
    def from_request(cls, request: Request, status_code: int) -> "RouteInfo":
        scope = request.scope
        route = _resolve_route(scope)
        route_path = getattr(route, "path", None) if route is not None else None
        if isinstance(route_path, str):
            route_path = normalize_route_template(route_path)
        else:
            route_path = None

        return cls(
            url=scope.get("path") or "",
            base_path=(scope.get("root_path") or "").rstrip("/"),
            route_path=route_path,
            descriptor_path=_descriptor_path(scope.get(API_DESCRIPTOR_SCOPE_KEY)),
            path_params=dict(scope.get("path_params") or {}),
            status_code=status_code,
        )


def _resolve_route(scope: Mapping) -> Any:
    # FastAPI stores the matched APIRoute in the scope
    route = scope.get("route")
    if route is not None:
        return route
    # Plain Starlette only leaves the endpoint behind
    endpoint = scope.get("endpoint")
    router = scope.get("router")
    if endpoint is None or router is None:
        return None
    for candidate in getattr(router, "routes", ()):
        if getattr(candidate, "endpoint", None) is endpoint:
            return candidate
    return None


def _descriptor_path(descriptor: Any) -> Optional[str]:
    if descriptor is None:
        return None
    if isinstance(descriptor, Mapping):
        path = descriptor.get("api_path")
    else:
        path = getattr(descriptor, "api_path", None)
    return path if isinstance(path, str) and path else None


class RouteExtractor(ABC):
    """One host routing convention."""

    @abstractmethod
    def applies(self, info: RouteInfo) -> bool:
        """Whether the fields this convention relies on are present."""

    @abstractmethod
    def extract(self, info: RouteInfo) -> Optional[str]:
        """Build the raw route label for ``info``."""


class ApiDescriptorExtractor(RouteExtractor):
    def applies(self, info: RouteInfo) -> bool:
        return info.descriptor_path is not None

    def extract(self, info: RouteInfo) -> Optional[str]:
        return info.descriptor_path


class MountedRouteExtractor(RouteExtractor):
    def applies(self, info: RouteInfo) -> bool:
        return bool(info.base_path) and info.route_path is not None

    def extract(self, info: RouteInfo) -> Optional[str]:
        # Mount roots would otherwise end up as "/api/"
        if info.route_path == "/":
            return info.base_path
        return info.base_path + info.route_path


class RawPathExtractor(RouteExtractor):
    def applies(self, info: RouteInfo) -> bool:
        return bool(info.url) and not info.base_path

    def extract(self, info: RouteInfo) -> Optional[str]:
        if info.route_path is not None:
            return info.route_path
        return info.url


class BasePathExtractor(RouteExtractor):
    def applies(self, info: RouteInfo) -> bool:
        return bool(info.base_path)

    def extract(self, info: RouteInfo) -> Optional[str]:
        return info.base_path


DEFAULT_EXTRACTORS: Sequence[RouteExtractor] = (
    ApiDescriptorExtractor(),
    MountedRouteExtractor(),
    RawPathExtractor(),
    BasePathExtractor(),
)


def replace_path_params(route: str, path_params: Mapping) -> str:
    """Replace concrete path parameter values with ``:name`` placeholders.

    Only whole path segments are replaced, so a value never rewrites part of
    a static segment. Values spanning several segments are replaced at their
    first occurrence.

    Examples:
        >>> replace_path_params("/users/42", {"id": 42})
        '/users/:id'
    """
    for name, value in path_params.items():
        value = str(value)
        if not value:
            continue
        placeholder = ":" + name
        if "/" in value.strip("/"):
            route = route.replace(value, placeholder, 1)
            continue
        segments = route.split("/")
        route = "/".join(
            placeholder if segment == value else segment for segment in segments
        )
    return route


def classify_route(
    info: RouteInfo, extractors: Sequence[RouteExtractor] = DEFAULT_EXTRACTORS
) -> Optional[str]:
    """Derive the route label of a request.

    Args:
        info: Routing metadata of the completed request
        extractors: Routing conventions in priority order

    Returns:
        The route label, or None when the request must not be recorded
    """
    # Unmatched 404s carry a caller controlled path: recording it would grow
    # the label set without bound.
    if not info.has_route and info.status_code == 404:
        return None

    route = None
    for extractor in extractors:
        if extractor.applies(info):
            route = extractor.extract(info)
            break

    if not route:
        return None
    # Resolved patterns are already templates; only raw paths carry values
    if info.has_route:
        return route
    return replace_path_params(route, info.path_params)


def get_route_label(request: Request, status_code: int) -> Optional[str]:
    """Classify a Starlette/FastAPI request once its status code is known."""
    return classify_route(RouteInfo.from_request(request, status_code))
