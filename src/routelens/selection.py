"""
Selection of the route file and endpoints to analyze.

The pipeline only needs an object with ``choose_route_file`` and
``choose_endpoints``. StaticSelector answers from command-line arguments,
PromptSelector asks on the terminal.

routelens/src/routelens/selection.py
"""

import logging
import re
from typing import Iterable, List, Optional, Protocol, Sequence

import click
from rich.console import Console
from rich.table import Table

from routelens.exceptions import SelectionError
from routelens.models import IDENTIFIER_ARROW, Endpoint

__all__ = [
    "PromptSelector",
    "Selector",
    "StaticSelector",
    "endpoint_identifier",
    "normalize_identifier",
    "parse_choice",
]

logger = logging.getLogger(__name__)


class Selector(Protocol):
    def choose_route_file(self, candidates: Sequence[str]) -> str: ...

    def choose_endpoints(self, endpoints: Sequence[Endpoint]) -> List[Endpoint]: ...


def endpoint_identifier(method: str, path: str, handler: str) -> str:
    """``GET /users/:id → getUser``"""
    return f"{method.upper()} {path} {IDENTIFIER_ARROW} {handler}"


def normalize_identifier(text: str) -> str:
    """Accept ``->`` for the arrow and loose spacing in typed identifiers."""
    text = text.replace("->", IDENTIFIER_ARROW)
    parts = [p.strip() for p in text.split(IDENTIFIER_ARROW, 1)]
    if len(parts) != 2:
        return " ".join(text.split())
    head = parts[0].split(None, 1)
    if len(head) != 2:
        return " ".join(text.split())
    return endpoint_identifier(head[0], head[1].strip(), parts[1])


class StaticSelector:
    """Selection supplied up front, e.g. from command-line options."""

    def __init__(
        self,
        route_file: Optional[str] = None,
        endpoint_ids: Optional[Iterable[str]] = None,
        select_all: bool = False,
    ):
        self.route_file = route_file
        self.endpoint_ids = list(endpoint_ids or [])
        self.select_all = select_all

    def choose_route_file(self, candidates: Sequence[str]) -> str:
        if self.route_file is None:
            if len(candidates) == 1:
                return candidates[0]
            raise SelectionError(
                f"No route file chosen; pick one of: {', '.join(candidates) or '(none found)'}"
            )
        if self.route_file not in candidates:
            raise SelectionError(f"Unknown route file '{self.route_file}'")
        return self.route_file

    def choose_endpoints(self, endpoints: Sequence[Endpoint]) -> List[Endpoint]:
        if self.select_all:
            return list(endpoints)

        by_id = {normalize_identifier(ep.identifier): ep for ep in endpoints}
        chosen: List[Endpoint] = []
        for raw_id in self.endpoint_ids:
            endpoint = by_id.get(normalize_identifier(raw_id))
            if endpoint is None:
                raise SelectionError(f"Unknown endpoint '{raw_id}'")
            if endpoint not in chosen:
                chosen.append(endpoint)
        return chosen


def parse_choice(answer: str, count: int) -> List[int]:
    """Zero-based indexes from an answer like ``1,3-4`` or ``all``.

    Raises:
        SelectionError: For numbers out of range or unparsable input.
    """
    answer = answer.strip().lower()
    if answer in ("all", "*"):
        return list(range(count))

    indexes: List[int] = []
    for token in filter(None, (t.strip() for t in answer.split(","))):
        match = re.fullmatch(r"(\d+)(?:\s*-\s*(\d+))?", token)
        if not match:
            raise SelectionError(f"Invalid choice '{token}'")
        start = int(match.group(1))
        end = int(match.group(2) or start)
        for number in range(start, end + 1):
            if not 1 <= number <= count:
                raise SelectionError(f"Choice {number} is out of range 1-{count}")
            if number - 1 not in indexes:
                indexes.append(number - 1)
    return indexes


class PromptSelector:
    """Interactive selection on the terminal."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)

    def _ask(self, label: str) -> str:
        return click.prompt(label, err=True)

    def choose_route_file(self, candidates: Sequence[str]) -> str:
        if not candidates:
            raise SelectionError("No route files found")

        table = Table(title="Route files")
        table.add_column("#", style="cyan")
        table.add_column("File")
        for number, name in enumerate(candidates, start=1):
            table.add_row(str(number), name)
        self.console.print(table)

        indexes = parse_choice(self._ask("Select a route file"), len(candidates))
        if len(indexes) != 1:
            raise SelectionError("Select exactly one route file")
        return candidates[indexes[0]]

    def choose_endpoints(self, endpoints: Sequence[Endpoint]) -> List[Endpoint]:
        if not endpoints:
            return []

        table = Table(title="Endpoints")
        table.add_column("#", style="cyan")
        table.add_column("Method", style="magenta")
        table.add_column("Path")
        table.add_column("Handler", style="green")
        for number, endpoint in enumerate(endpoints, start=1):
            table.add_row(str(number), endpoint.method, endpoint.path, endpoint.handler)
        self.console.print(table)

        answer = self._ask("Select endpoints (e.g. 1,3-4 or 'all')")
        return [endpoints[i] for i in parse_choice(answer, len(endpoints))]
