"""Test helpers: a scripted HTTP session and listing builders."""

import json
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlparse

import requests

from models import Listing

BASE_URL = "http://backend.test"


def make_response(status: int = 200, json_body: Any = None, text: Optional[str] = None, url: str = BASE_URL) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp.url = url
    resp.encoding = "utf-8"
    if json_body is not None:
        resp._content = json.dumps(json_body).encode("utf-8")
        resp.headers["Content-Type"] = "application/json"
    elif text is not None:
        resp._content = text.encode("utf-8")
    else:
        resp._content = b""
    return resp


@dataclass
class Call:
    method: str
    path: str
    params: Any
    json: Any


class FakeSession:
    """Answers requests from a (method, path) routing table and records every call."""

    def __init__(self):
        self.headers: dict = {}
        self.routes: dict = {}
        self.calls: list[Call] = []

    def add(self, method: str, path: str, status: int = 200, json_body: Any = None,
            text: Optional[str] = None, exc: Optional[Exception] = None, handler=None) -> None:
        if exc is not None:
            self.routes[(method, path)] = exc
        elif handler is not None:
            self.routes[(method, path)] = handler
        else:
            self.routes[(method, path)] = make_response(status, json_body, text, BASE_URL + path)

    def request(self, method, url, params=None, json=None, timeout=None, **kwargs):
        path = urlparse(url).path
        self.calls.append(Call(method, path, params, json))
        route = self.routes.get((method, path))
        if route is None:
            return make_response(404, {"error": "Not found"}, url=url)
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(params=params, json=json)
        return route

    def calls_to(self, path: str) -> list[Call]:
        return [c for c in self.calls if c.path == path]


def record(listid: int, name: str = "", status: Optional[str] = "open", description: str = "",
           address: str = "", **extra) -> dict:
    item = {
        "listid": listid,
        "listing_name": name,
        "description": description,
        "price": 50.0,
        "duration": 60,
        "capacity": 1,
        "address": address,
        "deadline": "2026-11-01T18:00:00Z",
        "status": status,
    }
    item.update(extra)
    return item


def listing(listid: int, name: str = "", status: Optional[str] = "open", description: str = "",
            address: str = "", **extra) -> Listing:
    return Listing.from_api(record(listid, name, status, description, address, **extra))
