from __future__ import annotations

import copy
import json
import logging
import socket
from typing import Any, Dict, List, Optional

import requests

from mock_server.petstore_api import PETSTORE_SPEC, reset_state, start_server


def make_response(
    status: int = 200,
    body: Any = None,
    reason: str = "OK",
    url: str = "http://example.test/",
    content_type: str = "application/json",
) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response.url = url
    response._content = json.dumps(body).encode("utf-8") if body is not None else b""
    response.headers["Content-Type"] = content_type
    return response


class ScriptedSession:
    """Stands in for ``requests.Session``: replays responses or raises exceptions in order."""

    def __init__(self, script: List[Any]) -> None:
        self.script = list(script)
        self.calls: List[Dict[str, Any]] = []

    def request(self, **kwargs: Any) -> requests.Response:
        self.calls.append(kwargs)
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


def closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def petstore_spec(base_url: str) -> Dict[str, Any]:
    spec = copy.deepcopy(PETSTORE_SPEC)
    spec["servers"] = [{"url": base_url}]
    return spec


def openapi_spec(paths: Dict[str, Any], schemas: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "openapi": "3.0.0",
        "info": {"title": "Test API", "version": "1.0"},
        "servers": [{"url": "http://api.example.test/v1"}],
        "paths": paths,
        "components": {"schemas": schemas or {}},
    }


class PetStoreServerMixin:
    server = None
    base_url = ""

    @classmethod
    def setUpClass(cls) -> None:
        super().setUpClass()
        logging.getLogger("werkzeug").setLevel(logging.WARNING)
        cls.server, cls.server_thread = start_server()
        host, port = cls.server.server_address[:2]
        cls.base_url = f"http://{host}:{port}"

    @classmethod
    def tearDownClass(cls) -> None:
        cls.server.shutdown()
        cls.server.server_close()
        super().tearDownClass()

    def setUp(self) -> None:
        super().setUp()
        reset_state()
