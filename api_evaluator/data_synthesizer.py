from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence
from urllib.parse import quote

from faker import Faker

from api_evaluator.schema import SchemaResolver, SchemaType, schema_type
from api_evaluator.spec_loader import Endpoint, Parameter, Specification

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "REST-API-Evaluator/1.0"
BODY_CONTENT_TYPES = (
    "application/json",
    "application/x-www-form-urlencoded",
    "multipart/form-data",
)
PET_IDS = (1, 2, 3, 4, 5, 10)
USER_IDS = ("user1", "user2", "testuser", "john")
ORDER_IDS = (1, 2, 3, 4, 5)
PET_STATUSES = ("available", "pending", "sold")
ORDER_STATUSES = ("placed", "approved", "delivered")
TAGS = ("tag1", "tag2", "friendly", "cute")
USERNAMES = ("user1", "testuser", "john", "demo")
PET_NAMES = ("Buddy", "Max", "Bella", "Charlie", "Lucy")
PET_CATEGORIES = ("Dogs", "Cats", "Birds", "Fish")


@dataclass
class RequestPlan:
    url: str
    method: str
    headers: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)
    body: Any = None

    @property
    def content_type(self) -> str:
        for name, value in self.headers.items():
            if name.lower() == "content-type":
                return value
        return ""


@dataclass(frozen=True)
class HeuristicRule:
    """A named value pool picked when ``predicate(name, path)`` matches.

    Both arguments are lower-cased before the predicate sees them.
    """

    name: str
    predicate: Callable[[str, str], bool]
    generator: Callable[["DataSynthesizer"], Any]


def _mentions(word: str, name: str, path: str) -> bool:
    return word in name or word in path


def _is_identifier(name: str) -> bool:
    return "id" in name or "key" in name


PARAMETER_RULES: List[HeuristicRule] = [
    HeuristicRule(
        "pet_id",
        lambda name, path: _is_identifier(name) and _mentions("pet", name, path),
        lambda synth: synth.rng.choice(PET_IDS),
    ),
    HeuristicRule(
        "user_id",
        lambda name, path: _is_identifier(name) and _mentions("user", name, path),
        lambda synth: synth.rng.choice(USER_IDS),
    ),
    HeuristicRule(
        "order_id",
        lambda name, path: _is_identifier(name) and _mentions("order", name, path),
        lambda synth: synth.rng.choice(ORDER_IDS),
    ),
    HeuristicRule(
        "generic_id",
        lambda name, path: _is_identifier(name),
        lambda synth: synth.rng.randint(1, 10),
    ),
    HeuristicRule(
        "pet_status",
        lambda name, path: "status" in name and "pet" in path,
        lambda synth: synth.rng.choice(PET_STATUSES),
    ),
    HeuristicRule(
        "order_status",
        lambda name, path: "status" in name and "order" in path,
        lambda synth: synth.rng.choice(ORDER_STATUSES),
    ),
    HeuristicRule(
        "tag",
        lambda name, path: "tag" in name,
        lambda synth: synth.rng.choice(TAGS),
    ),
    HeuristicRule(
        "username",
        lambda name, path: "user" in name,
        lambda synth: synth.rng.choice(USERNAMES),
    ),
    HeuristicRule(
        "password",
        lambda name, path: "password" in name,
        lambda synth: "password123",
    ),
]

BODY_FIELD_RULES: List[HeuristicRule] = [
    HeuristicRule(
        "pet_name",
        lambda name, path: "pet" in path and "name" in name,
        lambda synth: synth.rng.choice(PET_NAMES),
    ),
    HeuristicRule(
        "pet_status",
        lambda name, path: "pet" in path and "status" in name,
        lambda synth: synth.rng.choice(PET_STATUSES),
    ),
    HeuristicRule(
        "pet_category",
        lambda name, path: "pet" in path and "category" in name,
        lambda synth: {"id": synth.rng.randint(1, 5), "name": synth.rng.choice(PET_CATEGORIES)},
    ),
    HeuristicRule(
        "user_username",
        lambda name, path: "user" in path and "username" in name,
        lambda synth: synth.faker.user_name().lower(),
    ),
    HeuristicRule(
        "user_email",
        lambda name, path: "user" in path and "email" in name,
        lambda synth: synth.faker.email(),
    ),
    HeuristicRule(
        "user_phone",
        lambda name, path: "user" in path and "phone" in name,
        lambda synth: synth.faker.phone_number(),
    ),
    HeuristicRule(
        "order_quantity",
        lambda name, path: "order" in path and "quantity" in name,
        lambda synth: synth.rng.randint(1, 5),
    ),
    HeuristicRule(
        "identifier",
        lambda name, path: "id" in name,
        lambda synth: synth.rng.randint(1, 100),
    ),
]


def match_rule(rules: Sequence[HeuristicRule], name: str, path: str) -> Optional[HeuristicRule]:
    lower_name = name.lower()
    lower_path = path.lower()
    for rule in rules:
        if rule.predicate(lower_name, lower_path):
            return rule
    return None


class DataSynthesizer:
    def __init__(
        self,
        specification: Optional[Specification] = None,
        *,
        rng: Optional[random.Random] = None,
        faker: Optional[Faker] = None,
        optional_probability: float = 0.7,
        max_depth: int = 5,
        user_agent: str = DEFAULT_USER_AGENT,
        parameter_rules: Optional[Sequence[HeuristicRule]] = None,
        body_rules: Optional[Sequence[HeuristicRule]] = None,
    ) -> None:
        self.specification = specification
        self.rng = rng or random.Random()
        if faker is None:
            faker = Faker()
            faker.seed_instance(self.rng.getrandbits(64))
        self.faker = faker
        self.optional_probability = optional_probability
        self.max_depth = max_depth
        self.user_agent = user_agent
        self.parameter_rules = list(PARAMETER_RULES if parameter_rules is None else parameter_rules)
        self.body_rules = list(BODY_FIELD_RULES if body_rules is None else body_rules)
        self._format_generators: Dict[str, Callable[[], Any]] = {
            "email": lambda: self.faker.email(),
            "date": lambda: self.faker.past_date().isoformat(),
            "date-time": lambda: self.faker.past_datetime().isoformat(),
            "uuid": lambda: self.faker.uuid4(),
            "uri": lambda: self.faker.url(),
        }

    def resolver(self, definitions: Optional[Mapping[str, Any]] = None) -> SchemaResolver:
        fallback = self.specification.definitions if self.specification is not None else None
        return SchemaResolver(definitions, fallback)

    def build_plan(
        self,
        endpoint: Endpoint,
        definitions: Optional[Mapping[str, Any]] = None,
    ) -> RequestPlan:
        resolver = self.resolver(definitions)
        plan = RequestPlan(
            url=endpoint.full_url,
            method=endpoint.method,
            headers={"User-Agent": self.user_agent, "Accept": "application/json"},
        )
        parameters = endpoint.parameters

        for param in _located(parameters, "path"):
            value = self.parameter_value(param.name, param.schema, endpoint.path, resolver)
            plan.url = plan.url.replace("{%s}" % param.name, quote(_as_text(value), safe=""))

        for param in _located(parameters, "query"):
            plan.params[param.name] = self.parameter_value(param.name, param.schema, endpoint.path, resolver)

        for param in _located(parameters, "header"):
            value = self.parameter_value(param.name, param.schema, endpoint.path, resolver)
            plan.headers[param.name] = _as_text(value)

        if endpoint.method == "POST":
            for param in _located(parameters, "formData"):
                if plan.body is None:
                    plan.body = {}
                plan.body[param.name] = self.parameter_value(param.name, param.schema, endpoint.path, resolver)
                plan.headers["Content-Type"] = "application/x-www-form-urlencoded"

            self._apply_request_body(plan, endpoint, resolver)

        logger.debug("Built %s plan for %s", endpoint.method, plan.url)
        return plan

    def _apply_request_body(self, plan: RequestPlan, endpoint: Endpoint, resolver: SchemaResolver) -> None:
        content = (endpoint.request_body or {}).get("content")
        if isinstance(content, Mapping):
            for content_type in BODY_CONTENT_TYPES:
                media = content.get(content_type)
                if media is None:
                    continue
                plan.headers["Content-Type"] = content_type
                schema = media.get("schema") if isinstance(media, Mapping) else None
                plan.body = self.request_body(schema, endpoint.path, resolver)
                break

        if plan.body is None:
            body_param = next(iter(_located(endpoint.parameters, "body")), None)
            if body_param is not None and body_param.schema:
                plan.headers["Content-Type"] = "application/json"
                plan.body = self.request_body(body_param.schema, endpoint.path, resolver)

    def parameter_value(
        self,
        name: str,
        schema: Optional[Mapping[str, Any]],
        path: str = "",
        resolver: Optional[SchemaResolver] = None,
    ) -> Any:
        rule = match_rule(self.parameter_rules, name, path)
        if rule is not None:
            return rule.generator(self)
        return self.generate(schema, resolver)

    def request_body(
        self,
        schema: Optional[Mapping[str, Any]],
        path: str = "",
        resolver: Optional[SchemaResolver] = None,
    ) -> Any:
        resolver = resolver or self.resolver()
        resolved = resolver.resolve(schema) if schema is not None else None
        if resolved is None:
            return None

        properties = resolved.get("properties")
        if schema_type(resolved) is not SchemaType.OBJECT or not isinstance(properties, Mapping):
            return self.generate(resolved, resolver)

        required = set(resolved.get("required") or [])
        body: Dict[str, Any] = {}
        for prop, prop_schema in properties.items():
            if prop not in required and not self._include_optional():
                continue
            rule = match_rule(self.body_rules, prop, path)
            if rule is not None:
                body[prop] = rule.generator(self)
            else:
                body[prop] = self.generate(prop_schema, resolver, depth=1)
        return body

    def generate(
        self,
        schema: Optional[Mapping[str, Any]],
        resolver: Optional[SchemaResolver] = None,
        depth: int = 0,
    ) -> Any:
        resolver = resolver or self.resolver()
        if schema is None:
            return None
        resolved = resolver.resolve(schema)
        if resolved is None:
            return None

        kind = schema_type(resolved)
        if kind is SchemaType.STRING:
            return self._string(resolved)
        if kind in (SchemaType.INTEGER, SchemaType.NUMBER):
            return self._number(resolved, integral=kind is SchemaType.INTEGER)
        if kind is SchemaType.BOOLEAN:
            return self.rng.random() < 0.5
        if kind is SchemaType.ARRAY:
            items = resolved.get("items")
            if not isinstance(items, Mapping) or depth >= self.max_depth:
                return []
            return [self.generate(items, resolver, depth + 1) for _ in range(self.rng.randint(1, 3))]
        if kind is SchemaType.OBJECT:
            return self._object(resolved, resolver, depth)
        return _literal(resolved, self.faker.word)

    def _string(self, schema: Mapping[str, Any]) -> Any:
        if schema.get("enum"):
            return self.rng.choice(list(schema["enum"]))
        generator = self._format_generators.get(schema.get("format", ""))
        if generator is not None:
            return generator()
        return _literal(schema, self.faker.word)

    def _number(self, schema: Mapping[str, Any], integral: bool) -> Any:
        if schema.get("enum"):
            return self.rng.choice(list(schema["enum"]))

        has_min = isinstance(schema.get("minimum"), (int, float))
        has_max = isinstance(schema.get("maximum"), (int, float))
        low = schema["minimum"] if has_min else 1
        high = schema["maximum"] if has_max else 100
        if high < low:
            if not has_max:
                high = low + 99
            elif not has_min:
                low = high - 99
            else:
                low, high = high, low

        if integral:
            int_low, int_high = math.ceil(low), math.floor(high)
            if int_high < int_low:
                return int(int_low)
            return self.rng.randint(int_low, int_high)
        # rounding can step outside a narrow range
        return min(max(round(self.rng.uniform(low, high), 2), low), high)

    def _object(self, schema: Mapping[str, Any], resolver: SchemaResolver, depth: int) -> Dict[str, Any]:
        properties = schema.get("properties")
        if not isinstance(properties, Mapping) or depth >= self.max_depth:
            return {}

        required = set(schema.get("required") or [])
        obj: Dict[str, Any] = {}
        for prop, prop_schema in properties.items():
            if prop in required or self._include_optional():
                obj[prop] = self.generate(prop_schema, resolver, depth + 1)
        return obj

    def _include_optional(self) -> bool:
        return self.rng.random() < self.optional_probability


def _located(parameters: Sequence[Parameter], location: str) -> List[Parameter]:
    return [param for param in parameters if param.location == location]


def _literal(schema: Mapping[str, Any], placeholder: Callable[[], Any]) -> Any:
    if "example" in schema:
        return schema["example"]
    if "default" in schema:
        return schema["default"]
    return placeholder()


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_as_text(item) for item in value)
    return str(value)
