"""Tests for route-file and endpoint selection."""

from unittest.mock import patch

import pytest

from routelens.exceptions import SelectionError
from routelens.models import Endpoint
from routelens.selection import (
    PromptSelector,
    StaticSelector,
    endpoint_identifier,
    normalize_identifier,
    parse_choice,
)

ENDPOINTS = [
    Endpoint("GET", "/", "getUsers", "user.controller.js"),
    Endpoint("GET", "/:id", "getUser", "user.controller.js"),
    Endpoint("POST", "/", "createUser", "user.controller.js"),
]


def test_endpoint_identifier():
    assert endpoint_identifier("get", "/a", "h") == "GET /a → h"


def test_normalize_identifier_accepts_ascii_arrow():
    assert normalize_identifier("get  /:id -> getUser") == "GET /:id → getUser"


class TestStaticSelector:
    def test_route_file_must_be_known(self):
        with pytest.raises(SelectionError, match="Unknown route file"):
            StaticSelector(route_file="nope.js").choose_route_file(["user.routes.js"])

    def test_single_candidate_chosen_implicitly(self):
        assert StaticSelector().choose_route_file(["user.routes.js"]) == "user.routes.js"

    def test_ambiguous_route_file_rejected(self):
        with pytest.raises(SelectionError):
            StaticSelector().choose_route_file(["a.js", "b.js"])

    def test_select_all(self):
        assert StaticSelector(select_all=True).choose_endpoints(ENDPOINTS) == ENDPOINTS

    def test_select_by_identifier(self):
        chosen = StaticSelector(endpoint_ids=["POST / → createUser", "GET /:id -> getUser"]).choose_endpoints(
            ENDPOINTS
        )
        assert [e.handler for e in chosen] == ["createUser", "getUser"]

    def test_unknown_identifier(self):
        with pytest.raises(SelectionError, match="Unknown endpoint"):
            StaticSelector(endpoint_ids=["GET /missing → nope"]).choose_endpoints(ENDPOINTS)


class TestParseChoice:
    def test_list_and_ranges(self):
        assert parse_choice("1, 3-4", 5) == [0, 2, 3]

    def test_all(self):
        assert parse_choice("all", 3) == [0, 1, 2]

    def test_out_of_range(self):
        with pytest.raises(SelectionError):
            parse_choice("4", 3)

    def test_garbage(self):
        with pytest.raises(SelectionError):
            parse_choice("first", 3)


class TestPromptSelector:
    def test_prompted_endpoints(self):
        selector = PromptSelector()
        with patch("routelens.selection.click.prompt", return_value="1,3"):
            chosen = selector.choose_endpoints(ENDPOINTS)

        assert [e.handler for e in chosen] == ["getUsers", "createUser"]

    def test_prompted_route_file(self):
        selector = PromptSelector()
        with patch("routelens.selection.click.prompt", return_value="2"):
            assert selector.choose_route_file(["a.js", "b.js"]) == "b.js"

    def test_multiple_route_files_rejected(self):
        selector = PromptSelector()
        with patch("routelens.selection.click.prompt", return_value="1,2"):
            with pytest.raises(SelectionError):
                selector.choose_route_file(["a.js", "b.js"])
