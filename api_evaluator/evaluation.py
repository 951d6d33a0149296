from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from api_evaluator.errors import InvalidTransitionError
from api_evaluator.request_executor import RequestOutcome, utc_now


class EvaluationStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (EvaluationStatus.COMPLETED, EvaluationStatus.FAILED)


_TRANSITIONS = {
    EvaluationStatus.PENDING: {EvaluationStatus.RUNNING},
    EvaluationStatus.RUNNING: {EvaluationStatus.COMPLETED, EvaluationStatus.FAILED},
    EvaluationStatus.COMPLETED: set(),
    EvaluationStatus.FAILED: set(),
}

LISTING_EXCLUDED_FIELDS = ("request_logs", "spec_content")


@dataclass
class Evaluation:
    spec_url: str
    spec_content: Dict[str, Any]
    total_endpoints: int
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    successful_requests: int = 0
    failed_requests: int = 0
    success_rate: float = 0.0
    request_logs: List[RequestOutcome] = field(default_factory=list)
    summary: Dict[str, Any] = field(default_factory=dict)
    status: EvaluationStatus = EvaluationStatus.PENDING
    created_at: str = field(default_factory=utc_now)
    completed_at: Optional[str] = None

    @property
    def processed(self) -> int:
        return self.successful_requests + self.failed_requests

    def transition_to(self, status: EvaluationStatus) -> None:
        if status not in _TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Evaluation {self.id} cannot move from {self.status.value} to {status.value}"
            )
        self.status = status
        if status.is_terminal:
            self.completed_at = utc_now()

    def record(self, outcome: RequestOutcome) -> None:
        if self.status is not EvaluationStatus.RUNNING:
            raise InvalidTransitionError(f"Evaluation {self.id} is not running")
        self.request_logs.append(outcome)
        if outcome.success:
            self.successful_requests += 1
        else:
            self.failed_requests += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "spec_url": self.spec_url,
            "spec_content": self.spec_content,
            "total_endpoints": self.total_endpoints,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "success_rate": self.success_rate,
            "request_logs": [log.to_dict() for log in self.request_logs],
            "summary": self.summary,
            "status": self.status.value,
            "created_at": self.created_at,
            "completed_at": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Evaluation":
        return cls(
            id=data["id"],
            spec_url=data.get("spec_url", ""),
            spec_content=data.get("spec_content") or {},
            total_endpoints=data.get("total_endpoints", 0),
            successful_requests=data.get("successful_requests", 0),
            failed_requests=data.get("failed_requests", 0),
            success_rate=data.get("success_rate", 0.0),
            request_logs=[RequestOutcome.from_dict(log) for log in data.get("request_logs") or []],
            summary=data.get("summary") or {},
            status=EvaluationStatus(data.get("status", EvaluationStatus.PENDING.value)),
            created_at=data.get("created_at") or utc_now(),
            completed_at=data.get("completed_at"),
        )

    def to_listing(self) -> Dict[str, Any]:
        listing = self.to_dict()
        for name in LISTING_EXCLUDED_FIELDS:
            listing.pop(name, None)
        return listing
