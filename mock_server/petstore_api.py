from __future__ import annotations

import os
import threading
from threading import Lock
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request
from werkzeug.serving import BaseWSGIServer, make_server

_lock = Lock()

DEFAULT_PETS: Dict[int, Dict[str, Any]] = {
    pet_id: {"id": pet_id, "name": f"pet-{pet_id}", "status": "available", "photoUrls": []}
    for pet_id in (1, 2, 3, 4, 5, 10)
}
DEFAULT_ORDERS: Dict[int, Dict[str, Any]] = {
    order_id: {"id": order_id, "petId": 1, "quantity": 1, "status": "placed"}
    for order_id in (1, 2, 3, 4, 5)
}
DEFAULT_USERS = ("user1", "user2", "testuser", "john", "demo")

STATE: Dict[str, Any] = {
    "pets": {k: dict(v) for k, v in DEFAULT_PETS.items()},
    "orders": {k: dict(v) for k, v in DEFAULT_ORDERS.items()},
    "users": {name: {"username": name} for name in DEFAULT_USERS},
}

PETSTORE_SPEC: Dict[str, Any] = {
    "openapi": "3.0.3",
    "info": {"title": "Mock Pet Store", "version": "1.0.0"},
    "servers": [{"url": "/"}],
    "paths": {
        "/pet": {
            "post": {
                "requestBody": {
                    "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Pet"}}}
                },
                "responses": {"200": {"description": "created"}},
            }
        },
        "/pet/findByStatus": {
            "get": {
                "parameters": [
                    {
                        "name": "status",
                        "in": "query",
                        "schema": {"type": "string", "enum": ["available", "pending", "sold"]},
                    }
                ],
                "responses": {"200": {"description": "ok"}},
            }
        },
        "/pet/{petId}": {
            "parameters": [
                {"name": "petId", "in": "path", "required": True, "schema": {"type": "integer"}}
            ],
            "get": {"responses": {"200": {"description": "ok"}}},
            "post": {
                "requestBody": {
                    "content": {
                        "application/x-www-form-urlencoded": {
                            "schema": {
                                "type": "object",
                                "properties": {
                                    "name": {"type": "string"},
                                    "status": {"type": "string"},
                                },
                            }
                        }
                    }
                },
                "responses": {"200": {"description": "updated"}},
            },
            "delete": {"responses": {"200": {"description": "deleted"}}},
        },
        "/store/inventory": {"get": {"responses": {"200": {"description": "ok"}}}},
        "/store/order": {
            "post": {
                "requestBody": {
                    "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Order"}}}
                },
                "responses": {"200": {"description": "ok"}},
            }
        },
        "/store/order/{orderId}": {
            "get": {
                "parameters": [
                    {"name": "orderId", "in": "path", "required": True, "schema": {"type": "integer"}}
                ],
                "responses": {"200": {"description": "ok"}},
            }
        },
        "/user/{username}": {
            "get": {
                "parameters": [
                    {"name": "username", "in": "path", "required": True, "schema": {"type": "string"}}
                ],
                "responses": {"200": {"description": "ok"}},
            }
        },
    },
    "components": {
        "schemas": {
            "Category": {
                "type": "object",
                "properties": {"id": {"type": "integer"}, "name": {"type": "string"}},
            },
            "Pet": {
                "type": "object",
                "required": ["name", "photoUrls"],
                "properties": {
                    "id": {"type": "integer", "format": "int64"},
                    "name": {"type": "string", "example": "doggie"},
                    "category": {"$ref": "#/components/schemas/Category"},
                    "photoUrls": {"type": "array", "items": {"type": "string", "format": "uri"}},
                    "status": {"type": "string", "enum": ["available", "pending", "sold"]},
                },
            },
            "Order": {
                "type": "object",
                "required": ["petId", "quantity"],
                "properties": {
                    "id": {"type": "integer"},
                    "petId": {"type": "integer"},
                    "quantity": {"type": "integer", "minimum": 1, "maximum": 5},
                    "shipDate": {"type": "string", "format": "date-time"},
                    "status": {"type": "string", "enum": ["placed", "approved", "delivered"]},
                    "complete": {"type": "boolean"},
                },
            },
        }
    },
}


def reset_state() -> None:
    with _lock:
        STATE["pets"] = {k: dict(v) for k, v in DEFAULT_PETS.items()}
        STATE["orders"] = {k: dict(v) for k, v in DEFAULT_ORDERS.items()}
        STATE["users"] = {name: {"username": name} for name in DEFAULT_USERS}


def _handle_get_pet(pet_id: int) -> Tuple[int, Any]:
    with _lock:
        pet = STATE["pets"].get(pet_id)
    if pet is None:
        return 404, {"error": f"Pet {pet_id} not found"}
    return 200, pet


def _handle_find_by_status(status: Optional[str]) -> Tuple[int, Any]:
    if status not in ("available", "pending", "sold"):
        return 400, {"error": "Invalid status value"}
    with _lock:
        return 200, [pet for pet in STATE["pets"].values() if pet.get("status") == status]


def _handle_add_pet(body: Dict[str, Any]) -> Tuple[int, Any]:
    if not isinstance(body.get("name"), str):
        return 400, {"error": "`name` must be a string"}
    with _lock:
        pet_id = body.get("id") if isinstance(body.get("id"), int) else max(STATE["pets"], default=0) + 1
        pet = dict(body)
        pet["id"] = pet_id
        STATE["pets"][pet_id] = pet
    return 200, pet


def _handle_update_pet(pet_id: int, form: Dict[str, str]) -> Tuple[int, Any]:
    with _lock:
        pet = STATE["pets"].get(pet_id)
        if pet is None:
            return 404, {"error": f"Pet {pet_id} not found"}
        pet.update({k: v for k, v in form.items() if k in ("name", "status")})
        return 200, dict(pet)


def _handle_inventory() -> Tuple[int, Any]:
    counts: Dict[str, int] = {}
    with _lock:
        for pet in STATE["pets"].values():
            status = str(pet.get("status", "unknown"))
            counts[status] = counts.get(status, 0) + 1
    return 200, counts


def _handle_place_order(body: Dict[str, Any]) -> Tuple[int, Any]:
    quantity = body.get("quantity")
    if not isinstance(body.get("petId"), int):
        return 400, {"error": "`petId` must be an integer"}
    if not isinstance(quantity, int) or quantity <= 0:
        return 400, {"error": "`quantity` must be a positive integer"}
    with _lock:
        order_id = max(STATE["orders"], default=0) + 1
        order = dict(body)
        order["id"] = order_id
        STATE["orders"][order_id] = order
    return 200, order


def _handle_get_order(order_id: int) -> Tuple[int, Any]:
    with _lock:
        order = STATE["orders"].get(order_id)
    if order is None:
        return 404, {"error": f"Order {order_id} not found"}
    return 200, order


def _handle_get_user(username: str) -> Tuple[int, Any]:
    with _lock:
        user = STATE["users"].get(username)
    if user is None:
        return 404, {"error": f"User {username} not found"}
    return 200, user


app = Flask(__name__)
# keep the served document in declaration order
app.json.sort_keys = False


@app.get("/openapi.json")
def openapi_document() -> Any:
    return jsonify(PETSTORE_SPEC), 200


@app.post("/pet")
def add_pet() -> Any:
    body = request.get_json(silent=True) or {}
    status, payload = _handle_add_pet(body if isinstance(body, dict) else {})
    return jsonify(payload), status


@app.get("/pet/findByStatus")
def find_pets_by_status() -> Any:
    status, payload = _handle_find_by_status(request.args.get("status"))
    return jsonify(payload), status


@app.get("/pet/<int:pet_id>")
def get_pet(pet_id: int) -> Any:
    status, payload = _handle_get_pet(pet_id)
    return jsonify(payload), status


@app.post("/pet/<int:pet_id>")
def update_pet(pet_id: int) -> Any:
    status, payload = _handle_update_pet(pet_id, request.form.to_dict())
    return jsonify(payload), status


@app.get("/store/inventory")
def get_inventory() -> Any:
    status, payload = _handle_inventory()
    return jsonify(payload), status


@app.post("/store/order")
def place_order() -> Any:
    body = request.get_json(silent=True) or {}
    status, payload = _handle_place_order(body if isinstance(body, dict) else {})
    return jsonify(payload), status


@app.get("/store/order/<int:order_id>")
def get_order(order_id: int) -> Any:
    status, payload = _handle_get_order(order_id)
    return jsonify(payload), status


@app.get("/user/<username>")
def get_user(username: str) -> Any:
    status, payload = _handle_get_user(username)
    return jsonify(payload), status


@app.errorhandler(404)
def not_found(_error: Exception) -> Any:
    return jsonify({"error": "Not Found"}), 404


@app.errorhandler(405)
def method_not_allowed(_error: Exception) -> Any:
    return jsonify({"error": "Method Not Allowed"}), 405


def start_server(host: str = "127.0.0.1", port: int = 0) -> Tuple[BaseWSGIServer, threading.Thread]:
    server = make_server(host, port, app, threaded=True)
    thread = threading.Thread(target=server.serve_forever, name="petstore-mock", daemon=True)
    thread.start()
    return server, thread


if __name__ == "__main__":
    host = os.getenv("PETSTORE_API_HOST", "0.0.0.0")
    port = int(os.getenv("PETSTORE_API_PORT", "5000"))
    app.run(host=host, port=port, debug=False)
