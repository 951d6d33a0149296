from __future__ import annotations

import copy
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import unquote, urljoin, urlparse

import requests
import yaml

from api_evaluator.errors import SpecParseError

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")
SUPPORTED_METHODS = ("GET", "POST")
PARAMETER_LOCATIONS = {"path", "query", "header", "cookie", "formData", "body"}

_SERVER_VARIABLE = re.compile(r"\{([^}]+)\}")


@dataclass(frozen=True)
class Parameter:
    name: str
    location: str
    schema: Dict[str, Any]
    required: bool = False


@dataclass(frozen=True)
class Endpoint:
    path: str
    method: str
    operation: Dict[str, Any]
    full_url: str

    @property
    def key(self) -> str:
        return f"{self.method} {self.path}"

    @property
    def parameters(self) -> List[Parameter]:
        parameters: List[Parameter] = []
        for raw in self.operation.get("parameters") or []:
            location = raw.get("in", "")
            # Swagger 2.0 declares non-body parameter types inline.
            schema = raw.get("schema") if "schema" in raw else raw
            parameters.append(
                Parameter(
                    name=str(raw.get("name", "")),
                    location=location,
                    schema=schema if isinstance(schema, dict) else {},
                    required=bool(raw.get("required", False)),
                )
            )
        return parameters

    @property
    def request_body(self) -> Optional[Dict[str, Any]]:
        body = self.operation.get("requestBody")
        return body if isinstance(body, dict) else None


@dataclass(frozen=True)
class Specification:
    document: Dict[str, Any]
    base_url: str
    paths: Dict[str, Dict[str, Dict[str, Any]]]
    definitions: Dict[str, Any] = field(default_factory=dict)
    source: Optional[str] = None

    @property
    def version(self) -> str:
        return str(self.document.get("openapi") or self.document.get("swagger") or "")

    @property
    def title(self) -> str:
        return str(self.document.get("info", {}).get("title", ""))

    def endpoints(self) -> List[Endpoint]:
        endpoints: List[Endpoint] = []
        for path, operations in self.paths.items():
            for method in SUPPORTED_METHODS:
                operation = operations.get(method)
                if operation is None:
                    continue
                endpoints.append(
                    Endpoint(
                        path=path,
                        method=method,
                        operation=operation,
                        full_url=self.base_url + path,
                    )
                )
        return endpoints


def resolve_pointer(document: Any, pointer: str) -> Any:
    if pointer in ("", "#"):
        return document
    if not pointer.startswith("#/"):
        raise KeyError(pointer)

    node = document
    for raw_token in pointer[2:].split("/"):
        token = unquote(raw_token).replace("~1", "/").replace("~0", "~")
        if isinstance(node, Mapping) and token in node:
            node = node[token]
        elif isinstance(node, list) and token.isdigit() and int(token) < len(node):
            node = node[int(token)]
        else:
            raise KeyError(pointer)
    return node


class SpecLoader:
    def __init__(self, session: Optional[requests.Session] = None, timeout_seconds: float = 30.0) -> None:
        self.session = session or requests.Session()
        self.timeout_seconds = timeout_seconds

    def load(self, source: Any) -> Specification:
        document, origin = self._read(source)
        self._validate_structure(document)

        try:
            document = self._inline_external_refs(document, origin, {}, ())
        except SpecParseError:
            raise
        except (KeyError, OSError, ValueError, requests.RequestException) as exc:
            raise SpecParseError(f"Could not resolve external reference: {exc}") from exc

        broken = sorted(self._broken_local_refs(document))
        if broken:
            raise SpecParseError(f"Unresolvable reference(s): {', '.join(broken)}")

        paths = self._collect_operations(document)
        base_url = self._base_url(document, origin)
        definitions: Dict[str, Any] = {}
        definitions.update(document.get("definitions") or {})
        definitions.update((document.get("components") or {}).get("schemas") or {})

        specification = Specification(
            document=document,
            base_url=base_url,
            paths=paths,
            definitions=definitions,
            source=origin,
        )
        logger.info(
            "Loaded specification %r (%s) with %d path(s), base URL %r",
            specification.title,
            specification.version,
            len(paths),
            base_url,
        )
        return specification

    def _read(self, source: Any) -> Tuple[Dict[str, Any], Optional[str]]:
        if isinstance(source, Mapping):
            return copy.deepcopy(dict(source)), None

        if isinstance(source, Path):
            return self._read_file(source), str(source.resolve())

        if not isinstance(source, str) or not source.strip():
            raise SpecParseError("Specification must be a URL, a file path, or a parsed document")

        text = source.strip()
        if _is_http_url(text):
            return self._fetch(text), text

        if "\n" not in text and text[0] not in "{[":
            path = Path(text)
            if path.exists():
                return self._read_file(path), str(path.resolve())
            raise SpecParseError(f"Specification not found: {text}")

        return _parse_document(text, "inline specification"), None

    def _fetch(self, url: str) -> Dict[str, Any]:
        logger.debug("Fetching specification from %s", url)
        try:
            response = self.session.get(url, timeout=self.timeout_seconds)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise SpecParseError(f"Failed to fetch specification from {url}: {exc}") from exc
        return _parse_document(response.text, url)

    def _read_file(self, path: Path) -> Dict[str, Any]:
        if not path.is_file():
            raise SpecParseError(f"Specification not found: {path}")
        return _parse_document(path.read_text(encoding="utf-8"), str(path))

    def _validate_structure(self, document: Dict[str, Any]) -> None:
        openapi = document.get("openapi")
        swagger = document.get("swagger")
        if openapi is not None:
            if not str(openapi).startswith("3."):
                raise SpecParseError(f"Unsupported OpenAPI version: {openapi!r}")
        elif swagger is not None:
            if str(swagger) != "2.0":
                raise SpecParseError(f"Unsupported Swagger version: {swagger!r}")
        else:
            raise SpecParseError("Document is missing the `openapi` or `swagger` version field")

        info = document.get("info")
        if not isinstance(info, Mapping):
            raise SpecParseError("`info` is required and must be a mapping")
        if not isinstance(info.get("title"), str):
            raise SpecParseError("`info.title` is required and must be a string")

        paths = document.get("paths")
        if paths is None and openapi is not None and str(openapi).startswith("3.1"):
            document["paths"] = {}
            return
        if not isinstance(paths, Mapping):
            raise SpecParseError("`paths` is required and must be a mapping")
        for path, item in paths.items():
            if not isinstance(path, str) or not path.startswith("/"):
                raise SpecParseError(f"Path `{path}` must start with '/'")
            if not isinstance(item, Mapping):
                raise SpecParseError(f"Path item `{path}` must be a mapping")

    def _inline_external_refs(
        self,
        node: Any,
        base: Optional[str],
        documents: Dict[str, Dict[str, Any]],
        stack: Tuple[str, ...],
    ) -> Any:
        if isinstance(node, list):
            return [self._inline_external_refs(item, base, documents, stack) for item in node]
        if not isinstance(node, dict):
            return node

        ref = node.get("$ref")
        if isinstance(ref, str) and not ref.startswith("#"):
            location, _, fragment = ref.partition("#")
            target_url = self._join(base, location)
            key = f"{target_url}#{fragment}"
            if key in stack:
                return {}
            if target_url not in documents:
                documents[target_url] = self._load_external(target_url)
            external = documents[target_url]
            target = resolve_pointer(external, f"#{fragment}" if fragment else "#")
            target = self._inline_local_refs(target, external, ())
            return self._inline_external_refs(target, target_url, documents, stack + (key,))

        return {
            name: self._inline_external_refs(value, base, documents, stack)
            for name, value in node.items()
        }

    def _inline_local_refs(self, node: Any, document: Dict[str, Any], stack: Tuple[str, ...]) -> Any:
        if isinstance(node, list):
            return [self._inline_local_refs(item, document, stack) for item in node]
        if not isinstance(node, dict):
            return node

        ref = node.get("$ref")
        if isinstance(ref, str) and ref.startswith("#"):
            if ref in stack:
                return {}
            return self._inline_local_refs(resolve_pointer(document, ref), document, stack + (ref,))
        return {name: self._inline_local_refs(value, document, stack) for name, value in node.items()}

    def _join(self, base: Optional[str], location: str) -> str:
        if _is_http_url(location):
            return location
        if base is None:
            raise SpecParseError(
                f"External reference `{location}` needs a URL or file specification source"
            )
        if _is_http_url(base):
            return urljoin(base, location)
        return str((Path(base).parent / location).resolve())

    def _load_external(self, location: str) -> Dict[str, Any]:
        if _is_http_url(location):
            return self._fetch(location)
        return self._read_file(Path(location))

    def _broken_local_refs(self, document: Dict[str, Any]) -> set:
        broken = set()
        pending: List[Any] = [document]
        while pending:
            node = pending.pop()
            if isinstance(node, dict):
                ref = node.get("$ref")
                if isinstance(ref, str):
                    try:
                        resolve_pointer(document, ref)
                    except KeyError:
                        broken.add(ref)
                pending.extend(node.values())
            elif isinstance(node, list):
                pending.extend(node)
        return broken

    def _collect_operations(self, document: Dict[str, Any]) -> Dict[str, Dict[str, Dict[str, Any]]]:
        collected: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for path, item in document.get("paths", {}).items():
            item = self._deref(document, item)
            shared = self._parameters(document, item.get("parameters"), path)
            operations: Dict[str, Dict[str, Any]] = {}

            for method in HTTP_METHODS:
                operation = item.get(method)
                if operation is None:
                    continue
                if not isinstance(operation, Mapping):
                    raise SpecParseError(f"Operation {method.upper()} {path} must be a mapping")

                own = self._parameters(document, operation.get("parameters"), f"{method.upper()} {path}")
                own_keys = {(p["name"], p["in"]) for p in own}
                merged = [p for p in shared if (p["name"], p["in"]) not in own_keys] + own

                normalized = dict(operation)
                normalized["parameters"] = merged
                if "requestBody" in normalized:
                    normalized["requestBody"] = self._deref(document, normalized["requestBody"])
                operations[method.upper()] = normalized

            collected[path] = operations
        return collected

    def _parameters(self, document: Dict[str, Any], raw: Any, where: str) -> List[Dict[str, Any]]:
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise SpecParseError(f"`parameters` of {where} must be a list")

        parameters: List[Dict[str, Any]] = []
        for index, param in enumerate(raw):
            param = self._deref(document, param)
            if not isinstance(param, Mapping):
                raise SpecParseError(f"parameters[{index}] of {where} must be a mapping")
            if not isinstance(param.get("name"), str):
                raise SpecParseError(f"parameters[{index}] of {where} is missing string `name`")
            if param.get("in") not in PARAMETER_LOCATIONS:
                raise SpecParseError(
                    f"Parameter `{param['name']}` of {where} has invalid location {param.get('in')!r}"
                )
            parameters.append(dict(param))
        return parameters

    def _deref(self, document: Dict[str, Any], node: Any) -> Any:
        seen = set()
        while isinstance(node, Mapping) and isinstance(node.get("$ref"), str):
            ref = node["$ref"]
            if ref in seen:
                raise SpecParseError(f"Circular reference: {ref}")
            seen.add(ref)
            node = resolve_pointer(document, ref)
        return node

    def _base_url(self, document: Dict[str, Any], origin: Optional[str]) -> str:
        servers = document.get("servers")
        if isinstance(servers, list) and servers and isinstance(servers[0], Mapping):
            server = servers[0]
            url = str(server.get("url", ""))
            variables = server.get("variables") or {}

            def _substitute(match: re.Match) -> str:
                variable = variables.get(match.group(1)) or {}
                return str(variable.get("default", match.group(0)))

            url = _SERVER_VARIABLE.sub(_substitute, url)
            if url.startswith("/") and origin is not None and _is_http_url(origin):
                url = urljoin(origin, url)
            return url.rstrip("/")

        host = document.get("host")
        if host:
            schemes = document.get("schemes") or ["https"]
            base_path = document.get("basePath") or ""
            return f"{schemes[0]}://{host}{base_path}".rstrip("/")

        return ""


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _parse_document(text: str, where: str) -> Dict[str, Any]:
    try:
        document = json.loads(text)
    except json.JSONDecodeError:
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise SpecParseError(f"Could not parse {where} as JSON or YAML: {exc}") from exc

    if not isinstance(document, dict):
        raise SpecParseError(f"Specification root of {where} must be a mapping")
    return document
