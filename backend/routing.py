"""Route table for the REST surface.

A path is matched against a fixed list of prefixes (longest first). Whatever
follows the prefix is split into at most two segments: the business id and an
optional action suffix such as ``pay``.
"""
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from errors import MethodNotAllowed, NotFound

COLLECTION = "collection"
ITEM = "item"
FIXED = "fixed"


@dataclass(frozen=True)
class Route:
    prefix: str
    resource: str
    collection_methods: FrozenSet[str] = frozenset()
    item_methods: FrozenSet[str] = frozenset()
    actions: Dict[str, FrozenSet[str]] = field(default_factory=dict)
    fixed: bool = False


@dataclass(frozen=True)
class RouteMatch:
    resource: str
    method: str
    kind: str
    identifier: Optional[str] = None
    action: Optional[str] = None

    @property
    def operation(self) -> str:
        if self.action:
            return self.action
        if self.kind == ITEM:
            return {"GET": "get", "PUT": "update", "DELETE": "delete"}[self.method]
        if self.kind == COLLECTION:
            return {"GET": "list", "POST": "create"}[self.method]
        return self.resource


CRUD_COLLECTION = frozenset({"GET", "POST"})
CRUD_ITEM = frozenset({"GET", "PUT", "DELETE"})
ACTION_METHODS = frozenset({"POST", "PUT"})


def default_routes() -> List[Route]:
    return [
        Route("/health", "health", collection_methods=frozenset({"GET"}), fixed=True),
        Route("/api/auth/login", "login", collection_methods=frozenset({"POST"}), fixed=True),
        Route("/api/patients/deleteAll", "deleteAll", collection_methods=frozenset({"DELETE"}), fixed=True),
        Route("/api/patients", "patients", CRUD_COLLECTION, CRUD_ITEM),
        Route("/api/doctors", "doctors", CRUD_COLLECTION, CRUD_ITEM),
        Route("/api/appointments", "appointments", CRUD_COLLECTION, CRUD_ITEM, {"complete": ACTION_METHODS}),
        Route("/api/bills", "bills", CRUD_COLLECTION, CRUD_ITEM, {"pay": ACTION_METHODS}),
        Route("/api/users", "users", CRUD_COLLECTION, CRUD_ITEM),
    ]


class Router:
    def __init__(self, routes: Optional[List[Route]] = None):
        routes = routes if routes is not None else default_routes()
        self.routes: Tuple[Route, ...] = tuple(sorted(routes, key=lambda r: len(r.prefix), reverse=True))

    def _find(self, path: str) -> Tuple[Optional[Route], str]:
        for route in self.routes:
            if path == route.prefix:
                return route, ""
            if path.startswith(route.prefix + "/"):
                return route, path[len(route.prefix) + 1:]
        return None, ""

    def resolve(self, method: str, path: str) -> RouteMatch:
        """Resolve (method, path) or raise NotFound / MethodNotAllowed."""
        method = method.upper()
        route, rest = self._find(path)
        if route is None:
            raise NotFound("Endpoint not found")

        rest = rest[:-1] if rest.endswith("/") else rest
        if not rest:
            if method not in route.collection_methods:
                raise MethodNotAllowed("Method not allowed")
            return RouteMatch(route.resource, method, FIXED if route.fixed else COLLECTION)
        if route.fixed:
            raise NotFound("Endpoint not found")

        identifier, _, action = rest.partition("/")
        if not identifier:
            raise NotFound("Endpoint not found")
        if not action:
            if method not in route.item_methods:
                raise MethodNotAllowed("Method not allowed")
            return RouteMatch(route.resource, method, ITEM, identifier)

        if action not in route.actions:
            raise NotFound("Endpoint not found")
        if method not in route.actions[action]:
            raise MethodNotAllowed("Method not allowed")
        return RouteMatch(route.resource, method, ITEM, identifier, action)

    def allows(self, path: str) -> bool:
        route, _ = self._find(path)
        return route is not None
