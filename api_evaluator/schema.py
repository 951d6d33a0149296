from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping, Optional, Set

_REF_PREFIXES = ("#/definitions/", "#/components/schemas/")


class SchemaType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    REFERENCE = "reference"
    UNKNOWN = "unknown"


def schema_type(schema: Optional[Mapping[str, Any]]) -> SchemaType:
    if not isinstance(schema, Mapping):
        return SchemaType.UNKNOWN
    if "$ref" in schema:
        return SchemaType.REFERENCE

    declared = schema.get("type")
    # OpenAPI 3.1 allows a list of types, e.g. ["string", "null"].
    if isinstance(declared, list):
        declared = next((item for item in declared if item != "null"), None)

    if isinstance(declared, str):
        try:
            return SchemaType(declared)
        except ValueError:
            return SchemaType.UNKNOWN

    if "properties" in schema:
        return SchemaType.OBJECT
    if "items" in schema:
        return SchemaType.ARRAY
    return SchemaType.UNKNOWN


def ref_name(ref: str) -> str:
    for prefix in _REF_PREFIXES:
        if ref.startswith(prefix):
            return ref[len(prefix):]
    return ref.rsplit("/", 1)[-1]


class SchemaResolver:
    """Resolves ``$ref`` schemas by definition name.

    The caller-supplied ``definitions`` mapping is consulted first, then the
    specification's own ``fallback`` bucket. References that cannot be
    resolved, including reference cycles, resolve to ``None``.
    """

    def __init__(
        self,
        definitions: Optional[Mapping[str, Any]] = None,
        fallback: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.definitions = dict(definitions or {})
        self.fallback = dict(fallback or {})

    def lookup(self, ref: str) -> Optional[Dict[str, Any]]:
        name = ref_name(ref)
        schema = self.definitions.get(name)
        if schema is None:
            schema = self.fallback.get(name)
        return schema if isinstance(schema, dict) else None

    def resolve(
        self,
        schema: Optional[Mapping[str, Any]],
        _seen: Optional[Set[str]] = None,
    ) -> Optional[Dict[str, Any]]:
        # refs already being expanded further up the stack
        seen = set(_seen or ())
        current: Any = schema
        while isinstance(current, Mapping) and "$ref" in current:
            ref = current["$ref"]
            if not isinstance(ref, str) or ref in seen:
                return None
            seen.add(ref)
            current = self.lookup(ref)

        if not isinstance(current, Mapping):
            return None
        return self._merge_all_of(dict(current), seen)

    def _merge_all_of(self, schema: Dict[str, Any], seen: Set[str]) -> Dict[str, Any]:
        members = schema.get("allOf")
        if not isinstance(members, list):
            return schema

        merged: Dict[str, Any] = {k: v for k, v in schema.items() if k != "allOf"}
        properties: Dict[str, Any] = dict(merged.get("properties") or {})
        required = list(merged.get("required") or [])

        for member in members:
            resolved = self.resolve(member, seen)
            if resolved is None:
                continue
            properties.update(resolved.get("properties") or {})
            required.extend(name for name in resolved.get("required") or [] if name not in required)
            for key, value in resolved.items():
                if key not in ("properties", "required"):
                    merged.setdefault(key, value)

        if properties:
            merged["properties"] = properties
            merged.setdefault("type", "object")
        if required:
            merged["required"] = required
        return merged
