"""Fixtures for middleware unit tests."""

from collections.abc import Callable

import pytest
from fastapi import FastAPI
from starlette.requests import Request

type RequestFactory = Callable[..., Request]


@pytest.fixture
def make_request() -> RequestFactory:
    """Build a bare Starlette request without running an application."""

    def factory(
        path: str = "/api/users",
        method: str = "GET",
        headers: dict[str, str] | None = None,
        client: tuple[str, int] | None = ("198.51.100.4", 50000),
        app: FastAPI | None = None,
    ) -> Request:
        scope = {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": b"",
            "headers": [
                (name.lower().encode(), value.encode())
                for name, value in (headers or {}).items()
            ],
            "client": client,
            "server": ("testserver", 80),
            "scheme": "http",
            "app": app or FastAPI(),
        }
        return Request(scope)

    return factory
