"""Naming-convention classifiers: workflow type, architecture layer, entry point."""

from __future__ import annotations

import re
from collections import Counter
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Optional, Tuple

# ---------------------------------------------------------------------------
# Workflow type by function-name prefix
# ---------------------------------------------------------------------------
_WORKFLOW_PREFIXES: Dict[str, List[str]] = {
    "unknown": ["handle", "process"],
    "authentication": ["auth", "login", "logout", "signup", "register", "signin", "signout"],
    "validation": ["verify", "validate", "check"],
    "payment": ["pay", "charge", "checkout", "purchase", "refund", "subscribe", "invoice"],
    "notification": ["send", "notify", "email", "alert"],
    "data-sync": ["sync", "import", "export", "migrate"],
    "crud": [
        "fetch", "get", "create", "update", "delete", "remove",
        "save", "load", "list", "find", "add",
    ],
}

# Longest prefix first so "checkout" wins over "check".
WORKFLOW_PATTERNS: List[Tuple[str, str]] = sorted(
    ((prefix, kind) for kind, prefixes in _WORKFLOW_PREFIXES.items() for prefix in prefixes),
    key=lambda item: len(item[0]),
    reverse=True,
)

PREFIX_VARIANTS = ("on", "_", "do", "perform")


def match_workflow_type(function_name: str) -> str:
    lower = function_name.lower()
    for pattern, kind in WORKFLOW_PATTERNS:
        if lower.startswith(pattern):
            return kind
        if any(lower.startswith(prefix + pattern) for prefix in PREFIX_VARIANTS):
            return kind
    return "unknown"


def dominant_workflow_type(kinds: Iterable[str]) -> str:
    """Most frequent non-``unknown`` kind; first seen wins a tie."""
    counts = Counter(k for k in kinds if k != "unknown")
    best = "unknown"
    best_count = 0
    for kind, count in counts.items():
        if count > best_count:
            best, best_count = kind, count
    return best


_RESOURCE_NAMES = {
    "auth": "Authentication",
    "users": "User Management",
    "user": "User Management",
    "posts": "Post Management",
    "post": "Post Management",
    "products": "Product Management",
    "product": "Product Management",
    "orders": "Order Management",
    "order": "Order Management",
    "payments": "Payment Processing",
    "payment": "Payment Processing",
    "checkout": "Checkout Flow",
    "cart": "Shopping Cart",
    "notifications": "Notifications",
    "notification": "Notifications",
    "settings": "Settings Management",
    "profile": "Profile Management",
}

_TYPE_NAMES = {
    "authentication": "Authentication",
    "payment": "Payment Processing",
    "notification": "Notifications",
    "data-sync": "Data Synchronization",
    "validation": "Validation",
    "crud": "Data Operations",
    "unknown": "Other Operations",
}


def resource_to_workflow_name(resource: str) -> str:
    key = resource.lower()
    if key in _RESOURCE_NAMES:
        return _RESOURCE_NAMES[key]
    return f"{resource[:1].upper()}{resource[1:]} Management"


def type_to_workflow_name(kind: str) -> str:
    return _TYPE_NAMES.get(kind, "Other Operations")


HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")
METHOD_TO_OPERATION = {
    "GET": "read",
    "POST": "create",
    "PUT": "update",
    "PATCH": "update",
    "DELETE": "delete",
}

# ---------------------------------------------------------------------------
# Architecture layers
# ---------------------------------------------------------------------------
LAYER_PATTERNS: List[Tuple[str, List[str]]] = [
    ("presentation", [
        "components", "pages", "views", "screens", "ui",
        "app", "src/app", "src/pages", "src/components",
    ]),
    ("api", ["api", "routes", "controllers", "handlers", "app/api", "src/api", "pages/api"]),
    ("business", ["services", "usecases", "use-cases", "domain", "core", "business", "logic"]),
    ("data", ["repositories", "repos", "data", "database", "db", "models", "entities", "prisma"]),
    ("infrastructure", [
        "lib", "utils", "helpers", "config", "shared", "common", "infrastructure", "adapters",
    ]),
]

LAYER_ORDER = [layer for layer, _ in LAYER_PATTERNS]


def classify_layer(dir_path: str) -> Optional[str]:
    normalized = dir_path.replace("\\", "/").strip("/").lower()
    if not normalized:
        return None
    segments = normalized.split("/")
    if "api" in segments:
        return "api"
    padded = f"/{normalized}/"
    for layer, fragments in LAYER_PATTERNS:
        for fragment in fragments:
            if "/" in fragment:
                if f"/{fragment}/" in padded:
                    return layer
            elif fragment in segments:
                return layer
    return None


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------
_MAIN_FILES = {
    "index.ts", "index.js", "main.ts", "main.js",
    "app.ts", "app.js", "server.ts", "server.js",
}
_ROUTE_FILES = {"route.ts", "route.js"}
_PAGE_FILES = {"page.tsx", "page.jsx", "page.ts", "page.js"}
_WORKER_FILES = {"worker.ts", "worker.js"}
_CLI_FILES = {"cli.ts", "cli.js", "bin.ts", "bin.js"}

_API_ROUTE_NAME = re.compile(r"app(/api(?:/.*)?)/route\.[jt]s$")
_PAGE_NAME = re.compile(r"app((?:/.*)?)/page\.[jt]sx?$")
_ROUTE_GROUP = re.compile(r"/\([^/)]*\)")


def classify_entry_point(rel_path: str) -> Optional[Tuple[str, str]]:
    """Return ``(kind, name)`` when *rel_path* looks like an entry point."""
    path = rel_path.replace("\\", "/")
    filename = path.rsplit("/", 1)[-1]
    padded = f"/{path}"

    if filename in _ROUTE_FILES and "/app/api/" in padded:
        return "api-route", _entry_name("api-route", path)
    if filename in _PAGE_FILES and "/app/" in padded and "/api/" not in padded:
        return "page", _entry_name("page", path)
    if filename in _MAIN_FILES and path.count("/") < 2:
        return "main", _entry_name("main", path)
    if filename in _WORKER_FILES:
        return "worker", _entry_name("worker", path)
    if filename in _CLI_FILES:
        return "cli", _entry_name("cli", path)
    return None


def _entry_name(kind: str, path: str) -> str:
    if kind == "api-route":
        match = _API_ROUTE_NAME.search(path)
        if match:
            return _ROUTE_GROUP.sub("", match.group(1))
    elif kind == "page":
        match = _PAGE_NAME.search(path)
        if match:
            return _ROUTE_GROUP.sub("", match.group(1)) or "/"
    return PurePosixPath(path).stem
