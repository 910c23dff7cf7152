"""
Endpoint discovery for Express-style route files.

Discovery is a narrow lexical match, not a parse: it finds calls shaped like
``router.get("/path", handler`` and nothing more. Handlers preceded by
middleware arguments are not recognized.

routelens/src/routelens/scanner.py
"""

import logging
import re
from pathlib import Path
from typing import Iterable, List, Sequence

from routelens.config import DEFAULT_EXTENSIONS, DEFAULT_ROUTER_NAMES
from routelens.models import Endpoint

__all__ = [
    "HTTP_VERBS",
    "build_route_pattern",
    "controller_name_for",
    "list_route_files",
    "scan_routes",
    "scan_route_text",
    "scan_routes_directory",
    "scan_routes_file",
]

logger = logging.getLogger(__name__)

HTTP_VERBS = ("get", "post", "put", "delete", "patch", "options", "head")

ROUTES_MARKER = ".routes"
CONTROLLER_MARKER = ".controller"


def build_route_pattern(router_names: Sequence[str] = DEFAULT_ROUTER_NAMES) -> re.Pattern:
    """Compile the route-call pattern for the given receiver names."""
    receivers = "|".join(re.escape(name) for name in router_names)
    verbs = "|".join(HTTP_VERBS)
    return re.compile(
        rf"\b(?:{receivers})\s*\.\s*({verbs})\s*\(\s*"
        r"([\"'`])(.*?)\2\s*,\s*"
        r"([A-Za-z_$][\w$]*)"
        r"(?=\s*[,)])"
    )


def controller_name_for(route_file: Path) -> str:
    """``user.routes.js`` maps to ``user.controller.js``.

    Files that do not carry the ``.routes`` marker keep their own name.
    """
    name = Path(route_file).name
    if ROUTES_MARKER not in name:
        return name
    return name.replace(ROUTES_MARKER, CONTROLLER_MARKER, 1)


def scan_route_text(
    text: str,
    route_file: str = "",
    controller: str = "",
    router_names: Sequence[str] = DEFAULT_ROUTER_NAMES,
) -> List[Endpoint]:
    """Endpoints declared in ``text``, in source order, without duplicates."""
    pattern = build_route_pattern(router_names)
    endpoints: List[Endpoint] = []
    seen = set()

    for match in pattern.finditer(text):
        verb, _quote, route_path, handler = match.groups()
        endpoint = Endpoint(
            method=verb.upper(),
            path=route_path,
            handler=handler,
            controller=controller,
            route_file=route_file,
        )
        if endpoint.key in seen:
            logger.debug(f"Duplicate route binding ignored: {endpoint.identifier}")
            continue
        seen.add(endpoint.key)
        endpoints.append(endpoint)

    return endpoints


def scan_routes_file(
    path: Path, router_names: Sequence[str] = DEFAULT_ROUTER_NAMES
) -> List[Endpoint]:
    """Scan one route file. A missing or unreadable file yields no endpoints."""
    path = Path(path)
    if not path.is_file():
        logger.warning(f"Route file not found: {path}")
        return []

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read route file {path}: {e}")
        return []

    endpoints = scan_route_text(
        text,
        route_file=path.name,
        controller=controller_name_for(path),
        router_names=router_names,
    )
    logger.debug(f"Found {len(endpoints)} endpoints in {path.name}")
    return endpoints


def list_route_files(
    directory: Path, extensions: Iterable[str] = DEFAULT_EXTENSIONS
) -> List[str]:
    """Sorted names of candidate route files directly inside ``directory``."""
    directory = Path(directory)
    if not directory.is_dir():
        logger.warning(f"Routes directory not found: {directory}")
        return []

    suffixes = {ext.lower() for ext in extensions}
    return sorted(
        entry.name
        for entry in directory.iterdir()
        if entry.is_file() and entry.suffix.lower() in suffixes
    )


def scan_routes_directory(
    directory: Path,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    router_names: Sequence[str] = DEFAULT_ROUTER_NAMES,
) -> List[Endpoint]:
    """Scan every route file in ``directory``; results follow sorted file names."""
    directory = Path(directory)
    endpoints: List[Endpoint] = []
    for name in list_route_files(directory, extensions):
        endpoints.extend(scan_routes_file(directory / name, router_names))
    return endpoints


def scan_routes(
    path: Path,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    router_names: Sequence[str] = DEFAULT_ROUTER_NAMES,
) -> List[Endpoint]:
    """Scan a single route file or every route file in a directory."""
    path = Path(path)
    if path.is_dir():
        return scan_routes_directory(path, extensions, router_names)
    return scan_routes_file(path, router_names)
