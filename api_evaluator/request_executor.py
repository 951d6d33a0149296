from __future__ import annotations

import json
import logging
import socket
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, Optional

import requests

from api_evaluator.data_synthesizer import RequestPlan
from api_evaluator.spec_loader import Endpoint

logger = logging.getLogger(__name__)

TIMEOUT_LABEL = "Request timeout"
DNS_FAILURE_LABEL = "DNS resolution failed"
CONNECTION_REFUSED_LABEL = "Connection refused"

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "failed to resolve",
    "temporary failure in name resolution",
    "no address associated with hostname",
)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class RequestOutcome:
    endpoint: str
    method: str
    url: str
    request_headers: Dict[str, Any] = field(default_factory=dict)
    request_body: Any = None
    response_status: int = 0
    response_headers: Dict[str, Any] = field(default_factory=dict)
    response_body: Any = None
    response_time: float = 0.0
    success: bool = False
    error: Optional[str] = None
    timestamp: str = field(default_factory=utc_now)
    attempts: int = 1

    @property
    def key(self) -> str:
        return f"{self.method} {self.endpoint}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RequestOutcome":
        known = {name: data[name] for name in cls.__dataclass_fields__ if name in data}
        return cls(**known)

    @classmethod
    def failed(cls, endpoint: Endpoint, error: str) -> "RequestOutcome":
        return cls(
            endpoint=endpoint.path,
            method=endpoint.method,
            url=endpoint.full_url,
            success=False,
            error=error,
            attempts=0,
        )


def cap_body(body: Any, max_chars: int = 10000) -> Any:
    """Replace a body whose JSON form exceeds ``max_chars`` with a truncation marker."""
    if body is None:
        return None
    serialized = json.dumps(body, default=str, ensure_ascii=False)
    if len(serialized) <= max_chars:
        return body

    prefix = serialized[:max_chars]
    try:
        data = json.loads(prefix)
    except json.JSONDecodeError:
        data = prefix
    return {"truncated": True, "originalSize": len(serialized), "data": data}


def describe_error(exc: BaseException) -> str:
    response = getattr(exc, "response", None)
    if response is not None:
        return f"HTTP {response.status_code}: {response.reason}"

    if isinstance(exc, requests.Timeout):
        return TIMEOUT_LABEL
    for cause in _causes(exc):
        if isinstance(cause, (socket.timeout, TimeoutError)):
            return TIMEOUT_LABEL
        if isinstance(cause, socket.gaierror):
            return DNS_FAILURE_LABEL
        if isinstance(cause, ConnectionRefusedError):
            return CONNECTION_REFUSED_LABEL

    message = str(exc)
    lowered = message.lower()
    if any(marker in lowered for marker in _DNS_MARKERS):
        return DNS_FAILURE_LABEL
    if "connection refused" in lowered:
        return CONNECTION_REFUSED_LABEL
    return message


def _causes(exc: BaseException) -> Iterator[BaseException]:
    pending = [exc]
    seen = set()
    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current

        # urllib3 keeps the underlying socket error on `.reason`.
        for linked in (current.__cause__, current.__context__, getattr(current, "reason", None)):
            if isinstance(linked, BaseException):
                pending.append(linked)
        pending.extend(arg for arg in current.args if isinstance(arg, BaseException))


class RequestExecutor:
    def __init__(
        self,
        timeout_seconds: float = 10.0,
        retry_count: int = 2,
        retry_delay_seconds: float = 1.0,
        max_body_chars: int = 10000,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.retry_count = retry_count
        self.retry_delay_seconds = retry_delay_seconds
        self.max_body_chars = max_body_chars
        self.session = session or requests.Session()
        self.sleep = sleep

    def execute(self, plan: RequestPlan, endpoint: Optional[Endpoint] = None) -> RequestOutcome:
        endpoint_path = endpoint.path if endpoint is not None else plan.url
        started = time.perf_counter()
        attempt = 0

        while True:
            attempt += 1
            try:
                response = self.session.request(
                    method=plan.method,
                    url=plan.url,
                    params=plan.params or None,
                    headers=self._headers(plan),
                    timeout=self.timeout_seconds,
                    **self._body_kwargs(plan),
                )
            except requests.RequestException as exc:
                if attempt > self.retry_count:
                    error = describe_error(exc)
                    logger.warning(
                        "%s %s failed after %d attempt(s): %s", plan.method, plan.url, attempt, error
                    )
                    return RequestOutcome(
                        endpoint=endpoint_path,
                        method=plan.method,
                        url=plan.url,
                        request_headers=dict(plan.headers),
                        request_body=plan.body,
                        response_status=exc.response.status_code if exc.response is not None else 0,
                        response_time=_elapsed_ms(started),
                        success=False,
                        error=error,
                        attempts=attempt,
                    )

                delay = self.retry_delay_seconds * attempt
                logger.warning(
                    "%s %s attempt %d failed (%s); retrying in %.2fs",
                    plan.method,
                    plan.url,
                    attempt,
                    describe_error(exc),
                    delay,
                )
                self.sleep(delay)
                continue

            success = 200 <= response.status_code < 400
            outcome = RequestOutcome(
                endpoint=endpoint_path,
                method=plan.method,
                url=response.url or plan.url,
                request_headers=dict(plan.headers),
                request_body=plan.body,
                response_status=response.status_code,
                response_headers=dict(response.headers),
                response_body=cap_body(_decode_response_body(response), self.max_body_chars),
                response_time=_elapsed_ms(started),
                success=success,
                error=None if success else f"HTTP {response.status_code}: {response.reason}",
                attempts=attempt,
            )
            logger.debug(
                "%s %s -> %d in %.1fms", plan.method, outcome.url, response.status_code, outcome.response_time
            )
            return outcome

    def _headers(self, plan: RequestPlan) -> Dict[str, str]:
        headers = dict(plan.headers)
        if plan.content_type == "multipart/form-data":
            headers = {k: v for k, v in headers.items() if k.lower() != "content-type"}
        return headers

    def _body_kwargs(self, plan: RequestPlan) -> Dict[str, Any]:
        if plan.method != "POST" or plan.body is None:
            return {}

        content_type = plan.content_type
        if content_type == "application/x-www-form-urlencoded" and isinstance(plan.body, dict):
            return {"data": {k: _form_value(v) for k, v in plan.body.items()}}
        if content_type == "multipart/form-data" and isinstance(plan.body, dict):
            return {"files": {k: (None, _form_value(v)) for k, v in plan.body.items()}}
        return {"json": plan.body}


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def _form_value(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def _decode_response_body(response: requests.Response) -> Any:
    if not response.content:
        return None
    content_type = response.headers.get("Content-Type", "")
    if "json" in content_type.lower():
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text
